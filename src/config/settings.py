"""
Configuration settings for the SUBCAM converter.

**Conceptual**: This module provides strongly-typed configuration objects that
load from environment variables (via .env files). Settings are validated when
they are loaded, so a typo in SUBCAM_MIN_CONFIDENCE fails at startup with the
variable name in the message instead of silently disabling the filter.

**Environment variables**:
  - SUBCAM_MIN_CONFIDENCE: default minimum confidence score (unset = no filter).
  - SUBCAM_MIN_QUALITY: default minimum video-quality score (unset = no filter).
  - SUBCAM_OUTPUT_DIR: where actions write converted files (default data/converted).
  - SUBCAM_LOG_LEVEL: logging level for actions (default INFO).

**Teaching note**: Library code never reads these directly. Actions call
get_settings() and pass the values in (for example via to_options()), which
keeps the pipeline testable with explicit arguments.

This module uses python-dotenv to load .env files and dataclasses for type safety.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from src.orchestration.converter import ConversionOptions

# Load .env from project root (dev/local environments)
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_OUTPUT_DIR = "data/converted"
DEFAULT_LOG_LEVEL = "INFO"


def _read_optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw}")


@dataclass(frozen=True)
class ConversionSettings:
    """
    Defaults for conversion runs started from the command line.

    Attributes:
        min_confidence: Default minimum confidence score, or None.
        min_quality: Default minimum video-quality score, or None.
        output_dir: Directory for converted files.
        log_level: Name of a standard logging level.
    """
    min_confidence: Optional[int] = None
    min_quality: Optional[int] = None
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.min_confidence is not None and self.min_confidence < 0:
            raise ValueError(f"SUBCAM_MIN_CONFIDENCE must be non-negative, got: {self.min_confidence}")
        if self.min_quality is not None and self.min_quality < 0:
            raise ValueError(f"SUBCAM_MIN_QUALITY must be non-negative, got: {self.min_quality}")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"SUBCAM_LOG_LEVEL must be a logging level name, got: {self.log_level}")

    @classmethod
    def from_env(cls) -> "ConversionSettings":
        """
        Load conversion settings from environment variables.

        Raises:
            ValueError: If a threshold is not an integer or is negative, or the
                        log level is not a known level name.
        """
        return cls(
            min_confidence=_read_optional_int("SUBCAM_MIN_CONFIDENCE"),
            min_quality=_read_optional_int("SUBCAM_MIN_QUALITY"),
            output_dir=Path(os.getenv("SUBCAM_OUTPUT_DIR", DEFAULT_OUTPUT_DIR) or DEFAULT_OUTPUT_DIR),
            log_level=(os.getenv("SUBCAM_LOG_LEVEL", DEFAULT_LOG_LEVEL) or DEFAULT_LOG_LEVEL).strip().upper(),
        )

    def to_options(self) -> ConversionOptions:
        return ConversionOptions(min_confidence=self.min_confidence, min_quality=self.min_quality)


@dataclass(frozen=True)
class Settings:
    """
    Top-level settings aggregating every configuration section.

    Attributes:
        conversion: Conversion defaults.
    """
    conversion: ConversionSettings

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(conversion=ConversionSettings.from_env())


# Global settings instance (lazy-loaded).
# Tests can build Settings(conversion=ConversionSettings(...)) instead of using this.
_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance (loaded from environment on first call).

    Example:
        >>> from src.config.settings import get_settings
        >>> settings = get_settings()
        >>> settings.conversion.output_dir
        PosixPath('data/converted')
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env()
    return _default_settings


def reset_settings():
    """
    Reset the global settings singleton (for testing).

    **Testing pattern**:
      ```python
      def test_something(monkeypatch):
          monkeypatch.setenv("SUBCAM_MIN_CONFIDENCE", "3")
          reset_settings()
          assert get_settings().conversion.min_confidence == 3
      ```
    """
    global _default_settings
    _default_settings = None
