import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from loguru import logger

from ..errors import ConfigError

DEFAULT_CONFIG: Dict[str, Any] = {
    "enabled": True,
    "prefixes": ["*"],
    "workspace": None,
    "marker": "tsconfig.json",
    "compiler": "tsc",
    "extensions": [".ts"],
    "debounce_seconds": 0.5,
    "kill_grace_seconds": 2.0,
}


class ConfigManager:
    """
    JSON settings stored in ~/.savebuild/config.json, layered over DEFAULT_CONFIG.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir if config_dir else Path.home() / ".savebuild"
        self.config_file = self.config_dir / "config.json"
        self.config = self.load_config()

    def load_config(self) -> Dict[str, Any]:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        config = DEFAULT_CONFIG.copy()

        if not self.config_file.exists():
            return config

        try:
            with open(self.config_file, "r") as f:
                user_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable config {self.config_file}: {e}")
            return config

        if isinstance(user_config, dict):
            config.update(user_config)
        else:
            logger.warning(f"Ignoring config {self.config_file}: expected a JSON object")
        return config

    def save_config(self):
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(self.config, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def set(self, key: str, value: Any):
        self.config[key] = value
        self.save_config()


@dataclass(frozen=True)
class BuildSettings:
    """Read-only view of the settings a BuildCoordinator works from."""

    workspace: Optional[Path] = None
    enabled: bool = True
    prefixes: Tuple[str, ...] = ("*",)
    marker: str = "tsconfig.json"
    compiler: str = "tsc"
    extensions: Tuple[str, ...] = (".ts",)
    debounce_seconds: float = 0.5
    kill_grace_seconds: float = 2.0

    @classmethod
    def from_config(cls, config: ConfigManager, workspace: Optional[str] = None) -> "BuildSettings":
        root = workspace or config.get("workspace")
        prefixes = config.get("prefixes") or []
        extensions = config.get("extensions") or []
        if isinstance(prefixes, str) or isinstance(extensions, str):
            raise ConfigError("'prefixes' and 'extensions' must be lists")

        try:
            debounce = float(config.get("debounce_seconds", 0.5))
            grace = float(config.get("kill_grace_seconds", 2.0))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid timing value: {e}") from e

        return cls(
            workspace=Path(root).resolve() if root else None,
            enabled=bool(config.get("enabled", True)),
            prefixes=tuple(prefixes),
            marker=config.get("marker") or "tsconfig.json",
            compiler=config.get("compiler") or "tsc",
            extensions=tuple(extensions),
            debounce_seconds=debounce,
            kill_grace_seconds=grace,
        )
