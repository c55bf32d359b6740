"""
Configuration settings for the Waymark codec.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Codec settings with environment variable support.

    Attributes:
        extract_styles: Decode styles into feature style functions
        show_point_names: Append a name label style to named point features
        write_styles: Emit the resolved style when encoding placemarks
        default_base_uri: Base used to resolve relative references when a
            read call supplies none (empty means leave references unresolved)
        log_level: Default log level for setup_logging
        environment: Deployment environment
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="WAYMARK_",
        extra="ignore",
    )

    # Codec options
    extract_styles: bool = True
    show_point_names: bool = True
    write_styles: bool = True

    # Reference resolution
    default_base_uri: str = ""

    # Logging
    log_level: str = "INFO"

    # Environment
    environment: Literal["development", "production"] = "development"


# Global settings instance
settings = Settings()
