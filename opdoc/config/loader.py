"""Config file resolution and ${VAR} expansion for opdoc.yaml."""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import OpdocConfig

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def _candidate_paths(cli_path: str | None) -> list[Path]:
    paths = [Path("./opdoc.yaml"), Path.home() / ".opdoc" / "config.yaml"]
    if cli_path:
        paths.insert(0, Path(cli_path))
    return paths


def _read_mapping(path: Path) -> dict | None:
    """Parse one config file. Returns None for an empty file."""
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: expected a mapping")
    return _expand_env_vars(raw)


def load_config(cli_path: str | None = None) -> OpdocConfig:
    """Load the first config found: --config path, ./opdoc.yaml, ~/.opdoc/config.yaml.

    Falls back to defaults when none of them exist or all are empty.
    """
    if cli_path and not Path(cli_path).exists():
        raise ValueError(f"Config file not found: {cli_path}")

    for path in _candidate_paths(cli_path):
        if not path.exists():
            continue
        raw = _read_mapping(path)
        if raw is None:
            continue
        try:
            return OpdocConfig.model_validate(raw)
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e

    return OpdocConfig()


def _expand_env_vars(obj: object) -> object:
    """Substitute environment references in every string of a parsed YAML tree."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ""), obj)
    return obj


# Default YAML template for `opdoc config init`
DEFAULT_CONFIG_TEMPLATE = """\
# opdoc.yaml

# Directory that document targets are relative to
project_root: "."

# Apply behaviour
apply:
  dry_run: false
  overwrite: false             # let 'create' replace existing files
  partial_apply: false         # commit valid transactions when others fail processing
  continue_on_error: false     # keep going after a failed document
  max_parallelism: 1           # documents processed concurrently
  # timeout_seconds: 30        # per-document staging timeout
  recursive: false             # descend into subdirectories

# Staging artifacts
staging:
  suffix: ".opdoc-stage"
  cleanup_on_start: true       # remove artifacts left by interrupted runs

# Extra language capabilities: key -> "module:attr"
# capabilities:
#   ".rs": "my_plugins.rust:RustCapability"

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
