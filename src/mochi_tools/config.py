"""Configuration module for mochi-tools using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MochiToolsSettings(BaseSettings):
    """Main configuration settings for mochi-tools.

    All settings can be overridden via environment variables with the
    MOCHI_TOOLS_ prefix. For example, MOCHI_TOOLS_PORT will override the
    port setting.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Tool directories (relative to data_dir unless absolute)
    data_dir: str = "."
    tools_dir: str = "tools"
    user_tools_dir: str | None = None

    # Bundler
    install_root: str | None = None
    extra_resolution_paths: list[str] = Field(default_factory=list)
    max_concurrent_compiles: int = 4
    compile_timeout: float | None = 60.0

    # Execution context
    tool_mode: str = "code"

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="MOCHI_TOOLS_")

    # --- Resolved paths (computed from data_dir + relative dirs) ---

    @property
    def resolved_tools_dir(self) -> Path:
        """Get the full path to the built-in tools directory."""
        return Path(self.data_dir) / self.tools_dir

    @property
    def resolved_user_tools_dir(self) -> Path | None:
        """Get the full path to the override tools directory, if configured."""
        if not self.user_tools_dir:
            return None
        return Path(self.data_dir) / Path(self.user_tools_dir).expanduser()

    @property
    def resolved_tool_dirs(self) -> list[Path]:
        """Get the tool directories in override order (later entries win)."""
        dirs = [self.resolved_tools_dir]
        if self.resolved_user_tools_dir is not None:
            dirs.append(self.resolved_user_tools_dir)
        return dirs
