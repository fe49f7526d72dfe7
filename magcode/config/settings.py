"""
==============================================================================
Application Settings Module
==============================================================================

Configuration management using Pydantic Settings.

This module implements the Singleton pattern to ensure a single global
configuration instance throughout the application lifecycle.

Features:
---------
- Environment variable loading with type validation
- .env file support for local development
- Decoder tuning (segment size, threshold ratio, noise suppression)
- Capture session tuning (frame interval, expected width, queue size)

Configuration Priority (highest to lowest):
------------------------------------------
1. Environment variables
2. .env file
3. Default values

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Module logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: Display name for the application
        app_env: Environment mode (development/staging/production)
        debug: Enable debug mode for verbose logging
        host: Server bind address
        port: Server port number
        cors_origins: Allowed CORS origins (JSON array string)
        segment_size: Columns per binarization segment
        threshold_ratio: Position of the threshold between segment min and max
        noise_max_run: Longest 255-run rewritten to 0 before decoding
        min_frame_interval_ms: Frames arriving sooner than this are dropped
        expected_frame_width: Scan-axis width in pixels (0 disables the check)
        output_crop_height: Row count of each output image half
        frame_queue_size: Capacity of the worker frame queue
        save_results: Write composite images to disk on completion
        result_directory: Directory for saved composite images

    Example:
        >>> settings = Settings()
        >>> print(settings.segment_size)
        135
    """

    # =========================================================================
    # PYDANTIC SETTINGS CONFIGURATION
    # =========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MAGCODE_",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="MagCode Stripe Decoder",
        description="Display name for the application"
    )

    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode for verbose logging"
    )

    # =========================================================================
    # SERVER SETTINGS
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Server bind address"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Server port number"
    )

    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )

    # =========================================================================
    # DECODER SETTINGS
    # =========================================================================
    segment_size: int = Field(
        default=135,
        ge=1,
        description="Columns per adaptive threshold segment"
    )

    threshold_ratio: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Threshold position between segment min and max"
    )

    noise_max_run: int = Field(
        default=3,
        ge=0,
        description="255-runs up to this length are rewritten to 0"
    )

    # =========================================================================
    # CAPTURE SESSION SETTINGS
    # =========================================================================
    min_frame_interval_ms: int = Field(
        default=33,
        ge=0,
        le=10000,
        description="Minimum interval between processed frames"
    )

    expected_frame_width: int = Field(
        default=1080,
        ge=0,
        description="Expected scan-axis width; 0 disables orientation checks"
    )

    output_crop_height: int = Field(
        default=960,
        ge=1,
        description="Rows kept for each output image half"
    )

    frame_queue_size: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Capacity of the detection worker frame queue"
    )

    # =========================================================================
    # RESULT STORAGE SETTINGS
    # =========================================================================
    save_results: bool = Field(
        default=False,
        description="Write composite images to disk on completion"
    )

    result_directory: str = Field(
        default="storage/results",
        description="Directory for saved composite images"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """
        Validate and normalize application environment.

        Unknown values fall back to 'development' with a warning.
        """
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()

        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"

        return normalized

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def min_frame_interval_seconds(self) -> float:
        """Minimum frame interval in seconds."""
        return self.min_frame_interval_ms / 1000.0

    @property
    def result_path(self) -> Path:
        """Result directory as Path object."""
        return Path(self.result_directory)

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS origins from JSON string to list.

        Returns:
            List of allowed origin strings
        """
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
            return ["*"]
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid CORS origins JSON: {self.cors_origins}, "
                "defaulting to ['*']"
            )
            return ["*"]

    def ensure_directories(self) -> None:
        """Create the result directory when result saving is enabled."""
        if self.save_results:
            self.result_path.mkdir(parents=True, exist_ok=True)
            logger.debug("Result directory created/verified")

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"segment_size={self.segment_size}, "
            f"debug={self.debug})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance (singleton pattern).

    Returns:
        Global Settings instance
    """
    settings = Settings()
    settings.ensure_directories()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings
