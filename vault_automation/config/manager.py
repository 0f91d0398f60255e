from pathlib import Path
from typing import Dict, Any, Optional, List
from vault_automation.config.types import EnvironmentVariables, SettingChange
import logging
import os


class EnvironmentManager:
    """
    Environment manager holding the engine settings.

    Values come from the defaults below, then a ``.env`` file, then process
    environment variables named ``VAULT_AUTOMATION_<SETTING>``.
    """

    _instance = None

    ENV_PREFIX = "VAULT_AUTOMATION_"

    # List of all settings that are paths
    PATH_SETTINGS = [
        "history_dir",
    ]

    # Default settings with their types
    DEFAULT_SETTINGS = {
        # Execution history
        "history_enabled": (True, bool),
        "history_dir": (".workflow-history", str),
        "history_keep_snapshots": (1, int),
        # Safety bounds
        "max_total_steps": (10000, int),
        "max_while_iterations": (1000, int),
        "max_subworkflow_depth": (16, int),
        # Triggers
        "modify_debounce_seconds": (5.0, float),
        "loop_guard_seconds": (2.0, float),
        # History payload abbreviation
        "binary_truncate_threshold": (1000, int),
        # Adapters
        "http_timeout_seconds": (60.0, float),
    }

    # Create mapping dynamically - each setting can be set via its prefixed uppercase env var
    ENV_MAPPING = {"VAULT_AUTOMATION_" + setting.upper(): setting for setting in DEFAULT_SETTINGS.keys()}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize environment with default values"""
        self.env_variables = EnvironmentVariables()
        self.settings: Dict[str, Any] = {}
        self.logger = logging.getLogger(__name__)

        for key, (default_value, _) in self.DEFAULT_SETTINGS.items():
            self.settings[key] = default_value

        self._load_from_env_file()

    def _convert_value(self, value: str, target_type: type) -> Any:
        """Convert string value to target type"""
        if target_type == bool:
            return value.strip().lower() in ("true", "1", "yes", "on")
        return target_type(value)

    def _apply(self, key: str, value: str) -> bool:
        """Apply a raw env value to the mapped setting, if any"""
        setting_name = self.ENV_MAPPING.get(key)
        if setting_name is None:
            return False
        _, target_type = self.DEFAULT_SETTINGS[setting_name]
        try:
            self.settings[setting_name] = self._convert_value(value, target_type)
        except ValueError as e:
            self.logger.warning(f"Ignoring invalid value for {key}: {value!r} ({e})")
            return False
        return True

    def _load_from_env_file(self):
        """Find and load variables from a .env file"""
        env_file_paths = [Path.cwd() / ".env"]

        try:
            env_file_paths.append(Path.home() / ".env")
        except (RuntimeError, OSError):
            # Skip home directory if it can't be determined
            pass

        for env_path in env_file_paths:
            if env_path.exists() and env_path.is_file():
                self.logger.debug(f"Loading environment from: {env_path}")
                self._parse_env_file(env_path)
                return

        self.logger.debug(
            "No .env file found in: " + ", ".join(str(p) for p in env_file_paths)
        )

    def _parse_env_file(self, env_file_path: Path):
        """Parse a .env file and load variables into environment"""
        try:
            with open(env_file_path, "r") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, value = line.split("=", 1)
                        key = key.strip()
                        value = value.strip()

                        # Remove quotes if present
                        if (value.startswith('"') and value.endswith('"')) or (
                            value.startswith("'") and value.endswith("'")
                        ):
                            value = value[1:-1]

                        self.env_variables.set(key, value)
                        self._apply(key, value)
        except OSError as e:
            self.logger.error(f"Error parsing .env file {env_file_path}: {e}")

    def load(self):
        """Load settings from process environment variables"""
        for key, value in os.environ.items():
            if key in self.ENV_MAPPING:
                self.env_variables.set(key, value)
                self._apply(key, value)

    def get_setting(self, name: str, default: Any = None) -> Any:
        """Get a setting value by name"""
        return self.settings.get(name, default)

    def get_path(self, name: str) -> Optional[str]:
        """Get a path setting resolved against the working directory"""
        value = self.settings.get(name)
        if value is None:
            return None
        p = Path(value)
        if not p.is_absolute():
            p = Path.cwd() / p
        return str(p)

    def is_history_enabled(self) -> bool:
        return bool(self.settings.get("history_enabled", True))

    def get_history_dir(self) -> str:
        return self.get_path("history_dir")

    def get_engine_settings_dict(self) -> Dict[str, Any]:
        """Settings dictionary suitable for ``EngineSettings(**...)``"""
        result = dict(self.settings)
        result["history_dir"] = self.get_history_dir()
        return result

    def get_all_configuration(self) -> Dict[str, Any]:
        """Describe every setting with its current value, default and type"""
        return {
            name: {
                "value": self.settings.get(name),
                "default": default,
                "type": target_type.__name__,
                "env_var": self.ENV_PREFIX + name.upper(),
                "is_path": name in self.PATH_SETTINGS,
            }
            for name, (default, target_type) in self.DEFAULT_SETTINGS.items()
        }

    def update_configuration(self, updates: Dict[str, Any]) -> List[SettingChange]:
        """
        Update several settings at once.

        Args:
            updates: Mapping of setting name to new value (raw strings are converted)

        Returns:
            One SettingChange per requested update
        """
        changes = []
        for name, value in updates.items():
            if name not in self.DEFAULT_SETTINGS:
                changes.append(
                    SettingChange(name=name, applied=False, error=f"Unknown setting: {name}")
                )
                continue
            _, target_type = self.DEFAULT_SETTINGS[name]
            old_value = self.settings.get(name)
            try:
                new_value = (
                    self._convert_value(value, target_type)
                    if isinstance(value, str)
                    else target_type(value)
                )
            except (TypeError, ValueError) as e:
                changes.append(
                    SettingChange(name=name, old_value=old_value, applied=False, error=str(e))
                )
                continue
            self.settings[name] = new_value
            changes.append(SettingChange(name=name, old_value=old_value, new_value=new_value))
        return changes

    def reset_setting(self, setting_name: str) -> SettingChange:
        """Reset a setting to its default value"""
        if setting_name not in self.DEFAULT_SETTINGS:
            return SettingChange(
                name=setting_name, applied=False, error=f"Unknown setting: {setting_name}"
            )
        old_value = self.settings.get(setting_name)
        default, _ = self.DEFAULT_SETTINGS[setting_name]
        self.settings[setting_name] = default
        return SettingChange(name=setting_name, old_value=old_value, new_value=default)


# Create singleton instance
env_manager = EnvironmentManager()
