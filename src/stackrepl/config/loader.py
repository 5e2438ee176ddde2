import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict

from stackrepl.utils.diagnostics import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]+))?\}")

CONFIG_FILE_NAME = "stackrepl.yaml"

ALLOWED_SECTIONS = {"stackrepl", "process", "load", "bootstrap", "library_watch"}

def interpolate_env_vars(content: str) -> str:
    """Replace ${VAR} or ${VAR:default} with environment variables."""
    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, content)

def load_config(path: Path) -> Dict[str, Any]:
    """
    Load stackrepl.yaml with environment variable interpolation.

    Unknown top-level keys are dropped. A missing file yields an empty dict;
    a file that is not a YAML mapping raises ConfigError.
    """
    if not path.exists():
        return {}

    try:
        content = path.read_text(encoding="utf-8")
        full_config = yaml.safe_load(interpolate_env_vars(content)) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to read {path}: {exc}") from exc

    if not isinstance(full_config, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}, got {type(full_config).__name__}.")

    return {k: v for k, v in full_config.items() if k in ALLOWED_SECTIONS}
