from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from stackrepl.config.loader import CONFIG_FILE_NAME, load_config
from stackrepl.core.models import (
    BootstrapSettings,
    FrameworkSettings,
    LibraryWatchSettings,
    LoadSettings,
    ProcessSettings,
)
from stackrepl.utils.diagnostics import ConfigError


class StackReplContext(BaseModel):
    """
    Parsed configuration for one project root.
    """
    model_config = ConfigDict(extra="forbid")

    root_dir: str = "."

    # Framework Settings (Maps to 'stackrepl' section)
    settings: FrameworkSettings = Field(default_factory=FrameworkSettings)

    # External Process Settings (Maps to 'process' section)
    process: ProcessSettings = Field(default_factory=ProcessSettings)

    # Load Orchestration Settings (Maps to 'load' section)
    load: LoadSettings = Field(default_factory=LoadSettings)

    # Bootstrap Settings (Maps to 'bootstrap' section)
    bootstrap: BootstrapSettings = Field(default_factory=BootstrapSettings)

    # Library Watcher Settings (Maps to 'library_watch' section)
    library_watch: LibraryWatchSettings = Field(default_factory=LibraryWatchSettings)

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None, **data: Any):
        """
        Initialize the context, optionally with a configuration dictionary.
        """
        if config_dict:
            # Seed fields from config_dict if not explicitly provided in data
            if 'settings' not in data:
                data['settings'] = FrameworkSettings(**(config_dict.get('stackrepl') or {}))
            if 'process' not in data:
                data['process'] = ProcessSettings(**(config_dict.get('process') or {}))
            if 'load' not in data:
                data['load'] = LoadSettings(**(config_dict.get('load') or {}))
            if 'bootstrap' not in data:
                data['bootstrap'] = BootstrapSettings(**(config_dict.get('bootstrap') or {}))
            if 'library_watch' not in data:
                data['library_watch'] = LibraryWatchSettings(**(config_dict.get('library_watch') or {}))

        super().__init__(**data)

    @classmethod
    def from_root(cls, root_dir: Path) -> "StackReplContext":
        """Load stackrepl.yaml from a project root and validate every section."""
        config_data = load_config(root_dir / CONFIG_FILE_NAME)
        try:
            return cls(config_dict=config_data, root_dir=str(root_dir.expanduser().resolve()))
        except ValidationError as exc:
            raise ConfigError(f"Invalid {CONFIG_FILE_NAME} in {root_dir}: {exc}") from exc

    @property
    def build_timeout_seconds(self) -> float:
        return self.process.build_timeout_minutes * 60.0
