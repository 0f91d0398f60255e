"""
Configuration package.

Centralized settings for the workflow engine, triggers and history storage.
"""

from vault_automation.config.manager import EnvironmentManager, env_manager
from vault_automation.config.types import (
    EngineSettings,
    EnvironmentVariables,
    SettingChange,
)

# Re-export the singleton instance for easy access
env = env_manager

__all__ = [
    "EnvironmentManager",
    "env_manager",
    "env",
    "EngineSettings",
    "EnvironmentVariables",
    "SettingChange",
]
