"""
Application Settings
===================

Main application settings and environment configuration using Pydantic Settings.
The Puppeteer browser binary location is the one required value; everything
else has a default suitable for local use.
"""

from typing import Annotated, Optional, List, Union
from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
import json
import shlex
from pathlib import Path


class ConfigurationError(Exception):
    """Exception raised when the process configuration is unusable."""

    pass


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="mermaid-cli-server", description="MCP server name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(default=None, description="Optional rotating log file")

    # Renderer Configuration
    puppeteer_executable_path: str = Field(
        validation_alias=AliasChoices(
            "PUPPETEER_EXECUTABLE_PATH", "MERMAID_MCP_PUPPETEER_EXECUTABLE_PATH"
        ),
        description="Absolute path to the browser binary used by Mermaid CLI",
    )
    renderer_command: Annotated[List[str], NoDecode] = Field(
        default=["npx", "@mermaid-js/mermaid-cli"],
        description="Command prefix that launches the Mermaid CLI",
    )
    default_output_dir: Path = Field(
        default=Path("."),
        validate_default=True,
        description="Output directory when a request omits folder",
    )
    temp_dir: Optional[Path] = Field(
        default=None, description="Directory for temporary .mmd inputs (system temp if unset)"
    )

    # Rendering flags, applied identically to every invocation
    theme: Optional[str] = Field(default=None, description="Mermaid theme (-t)")
    background_color: Optional[str] = Field(default=None, description="Background colour (-b)")
    scale: Optional[float] = Field(default=None, gt=0, description="Puppeteer scale factor (-s)")
    width: Optional[int] = Field(default=None, gt=0, description="Page width (-w)")
    height: Optional[int] = Field(default=None, gt=0, description="Page height (-H)")
    config_file: Optional[Path] = Field(default=None, description="Mermaid config JSON (-c)")
    puppeteer_config_file: Optional[Path] = Field(
        default=None, description="Puppeteer config JSON (-p)"
    )

    # Limits
    render_timeout: Optional[float] = Field(
        default=120.0, gt=0, description="Seconds before a render is killed (None disables)"
    )
    max_concurrent_renders: Optional[int] = Field(
        default=4, ge=1, description="Simultaneous Mermaid CLI processes (None is unbounded)"
    )
    min_output_bytes: int = Field(
        default=1, ge=0, description="Smallest output file accepted as a rendered image"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("puppeteer_executable_path")
    @classmethod
    def validate_puppeteer_path(cls, v: str) -> str:
        """Reject an empty browser binary path."""
        if not v.strip():
            raise ValueError("PUPPETEER_EXECUTABLE_PATH must not be empty")
        return v.strip()

    @field_validator("renderer_command", mode="before")
    @classmethod
    def parse_renderer_command(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse the renderer command from a JSON list or a shell-style string."""
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return shlex.split(v)
        return v

    @field_validator("renderer_command")
    @classmethod
    def validate_renderer_command(cls, v: List[str]) -> List[str]:
        """Require at least the executable name."""
        if not v:
            raise ValueError("renderer_command must contain at least one element")
        return v

    @field_validator("default_output_dir")
    @classmethod
    def resolve_output_dir(cls, v: Path) -> Path:
        """Store the default output directory as an absolute path."""
        return v.expanduser().resolve()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="MERMAID_MCP_",
        extra="ignore",
        populate_by_name=True,
    )


# Global settings instance - will be initialized when needed
settings = None


def load_settings() -> Settings:
    """
    Load settings from the environment.

    Raises:
        ConfigurationError: If a required value is missing or a value is invalid
    """
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        missing = any(err["type"] == "missing" for err in e.errors())
        if missing:
            problems = (
                "PUPPETEER_EXECUTABLE_PATH environment variable is required but not set. "
                f"{problems}"
            )
        raise ConfigurationError(problems) from e


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = load_settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = load_settings()
    return settings
