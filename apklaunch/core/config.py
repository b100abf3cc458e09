"""Configuration management for apklaunch."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Config(BaseSettings):
    """Configuration class for apklaunch.

    Field names double as environment variable names, so the usual Android
    variables (``ANDROID_HOME``, ``ANDROID_SDK_ROOT`` ...) are picked up as-is.
    """

    # Android environment
    android_home: Optional[str] = Field(default=None, description="Deprecated SDK root, wins over ANDROID_SDK_ROOT when valid")
    android_sdk_root: Optional[str] = Field(default=None, description="Android SDK root directory")
    android_emulator_home: Optional[str] = Field(default=None, description="Emulator home (defaults to ~/.android)")
    android_avd_home: Optional[str] = Field(default=None, description="AVD home (defaults to ~/.android/avd)")
    localappdata: Optional[str] = Field(default=None, description="Windows local app data directory")

    # Device bridge timing (seconds)
    adb_command_timeout: float = Field(default=120.0, description="Ceiling for a single adb invocation")
    boot_poll_interval: float = Field(default=1.0)
    boot_timeout: float = Field(default=300.0, description="Ceiling for waiting on sys.boot_completed")
    close_poll_interval: float = Field(default=2.0)
    close_timeout: Optional[float] = Field(default=None, description="Ceiling for waiting on app exit, None waits forever")
    emulator_start_timeout: float = Field(default=180.0, description="Ceiling for a spawned emulator to show up in adb")
    emulator_poll_interval: float = Field(default=1.0)
    teardown_action_timeout: float = Field(default=30.0, description="Ceiling for a single teardown action")

    # Emulator console ports
    emulator_port_min: int = Field(default=5554)
    emulator_port_max: int = Field(default=5682)

    # Framework Configuration
    log_level: str = Field(default="INFO")
    log_to_file: bool = Field(default=False)
    log_dir: str = Field(default="logs")

    class Config:
        """Pydantic configuration for environment loading."""

        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore unexpected env vars rather than raising errors

    def validate_config(self) -> bool:
        """Validate configuration values."""
        for name in ("adb_command_timeout", "boot_poll_interval", "boot_timeout",
                     "close_poll_interval", "emulator_start_timeout",
                     "emulator_poll_interval", "teardown_action_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if self.close_timeout is not None and self.close_timeout <= 0:
            raise ValueError("close_timeout must be positive when set")

        if self.emulator_port_min % 2 or self.emulator_port_min > self.emulator_port_max:
            raise ValueError("Emulator port range must start on an even port and be non-empty")

        return True

    def get_log_path(self) -> str:
        """Get the full path to the log directory."""
        return os.path.join(os.getcwd(), self.log_dir)


# Global configuration instance
try:
    config = Config()
except Exception as e:
    print(f"Warning: Could not load configuration: {e}")
    # Fall back to defaults so the CLI can still report the problem
    config = Config.model_construct()
