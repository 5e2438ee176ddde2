from typing import Dict, List
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class FrameworkSettings(BaseSettings):
    """
    Framework-level settings (the 'stackrepl' section in stackrepl.yaml).
    """
    model_config = SettingsConfigDict(env_prefix='STACKREPL_', extra='ignore')

    env: str = "development"
    log_level: str = "INFO"

    def log_level_rank(self) -> int:
        level = self.log_level.upper()
        if level not in _LOG_LEVELS:
            return _LOG_LEVELS.index("INFO")
        return _LOG_LEVELS.index(level)


class ProcessSettings(BaseModel):
    """
    External process settings (the 'process' section in stackrepl.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    stack_path: str = "stack"
    default_timeout_seconds: float = Field(default=3.0, gt=0)
    build_timeout_minutes: float = Field(default=30.0, gt=0)


class LoadSettings(BaseModel):
    """
    Load orchestration settings (the 'load' section in stackrepl.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    selection_timeout_seconds: float = Field(default=5.0, gt=0)
    worker_pool_size: int = Field(default=4, ge=1)


class BootstrapSettings(BaseModel):
    """
    Project-open bootstrap settings (the 'bootstrap' section in stackrepl.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    tool_targets: List[str] = Field(default_factory=lambda: ["haskell-docs", "hlint", "apply-refact"])
    hoogle_build_targets: List[str] = Field(default_factory=lambda: ["hoogle-5.0.4", "haskell-src-exts-1.18.2"])
    hoogle_min_version: str = "5"
    index_timeout_minutes: float = Field(default=10.0, gt=0)
    join_timeout_minutes: float = Field(default=15.0, gt=0)


class WatchedPackage(BaseModel):
    """A local library package whose sources trigger a rebuild when changed."""
    model_config = ConfigDict(extra='forbid')

    path: str
    target: str


class LibraryWatchSettings(BaseModel):
    """
    Library file-watcher settings (the 'library_watch' section in stackrepl.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    enabled: bool = False
    interval_ms: int = Field(default=1000, ge=100)
    debounce_ms: int = Field(default=300, ge=0)
    include_patterns: List[str] = Field(default_factory=lambda: ["*.hs", "*.lhs", "*.hsc", "*.cabal", "package.yaml"])
    exclude_patterns: List[str] = Field(default_factory=lambda: [".stack-work/*", "dist-newstyle/*"])
    packages: Dict[str, WatchedPackage] = Field(default_factory=dict)
