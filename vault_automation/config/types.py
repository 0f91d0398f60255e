from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class EngineSettings(BaseModel):
    """Typed view of the settings consumed by the workflow engine"""

    history_enabled: bool = True
    history_dir: str = ".workflow-history"
    history_keep_snapshots: int = Field(default=1, ge=0)
    max_total_steps: int = Field(default=10000, gt=0)
    max_while_iterations: int = Field(default=1000, gt=0)
    max_subworkflow_depth: int = Field(default=16, gt=0)
    modify_debounce_seconds: float = Field(default=5.0, ge=0)
    loop_guard_seconds: float = Field(default=2.0, ge=0)
    binary_truncate_threshold: int = Field(default=1000, gt=0)
    http_timeout_seconds: float = Field(default=60.0, gt=0)

    @classmethod
    def from_environment(cls) -> "EngineSettings":
        """Build settings from the environment manager singleton"""
        from vault_automation.config.manager import env_manager

        env_manager.load()
        return cls(**env_manager.get_engine_settings_dict())


class EnvironmentVariables(BaseModel):
    """Model representing environment variables"""

    variables: Dict[str, str] = Field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        """Get an environment variable value"""
        return self.variables.get(name, default)

    def set(self, name: str, value: str) -> None:
        """Set an environment variable value"""
        self.variables[name] = value


class SettingChange(BaseModel):
    """Result of a configuration update"""

    name: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    applied: bool = True
    error: Optional[str] = None
