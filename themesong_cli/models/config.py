"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

# Providers known to the registry, keyed by the prefix of their config fields.
PROVIDER_KEYS = ("plex", "television_tunes")


class ThemeSongConfig(BaseModel):
    """A validated configuration model for the application."""

    # Library
    library_paths: list[str] = Field(default_factory=list)
    cache_dir: str = ""

    # Audio normalization
    normalize_audio: bool = True
    normalize_audio_volume: int = -18
    fade_in_duration: int = 3
    fade_out_duration: int = 3
    ffmpeg_path: str = "ffmpeg"

    # Providers (lower priority number = tried first)
    enable_plex_provider: bool = True
    plex_provider_priority: int = 1
    enable_television_tunes_provider: bool = True
    television_tunes_provider_priority: int = 2

    # Download behaviour
    download_attempts: int = 3

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("normalize_audio_volume")
    @classmethod
    def validate_volume(cls, v: int) -> int:
        """Ensures the normalization target is a sensible dBFS level."""
        if v < -70 or v > 0:
            raise ValueError("Normalization volume must be between -70 and 0 dB.")
        return v

    @field_validator("fade_in_duration", "fade_out_duration")
    @classmethod
    def validate_fade(cls, v: int) -> int:
        """Ensures fade durations are non-negative and reasonably short."""
        if v < 0 or v > 30:
            raise ValueError("Fade durations must be between 0 and 30 seconds.")
        return v

    @field_validator("download_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Download attempts must be between 1 and 10.")
        return v

    @field_validator("ffmpeg_path")
    @classmethod
    def default_ffmpeg(cls, v: str) -> str:
        """Falls back to the bare 'ffmpeg' command when left blank."""
        return v or "ffmpeg"

    @field_validator("library_paths")
    @classmethod
    def validate_library_paths(cls, v: list[str]) -> list[str]:
        """Drops blank entries and duplicates while preserving order."""
        return list(dict.fromkeys(p.strip() for p in v if p and p.strip()))

    @model_validator(mode="after")
    def validate_priorities(self) -> "ThemeSongConfig":
        """Provider priorities must be non-negative."""
        for key in PROVIDER_KEYS:
            if getattr(self, f"{key}_provider_priority") < 0:
                raise ValueError(f"Priority for provider '{key}' cannot be negative.")
        return self

    def provider_enabled(self, key: str) -> bool:
        """Returns the enabled flag for a provider config key."""
        return bool(getattr(self, f"enable_{key}_provider"))

    def provider_priority(self, key: str) -> int:
        """Returns the priority for a provider config key."""
        return int(getattr(self, f"{key}_provider_priority"))

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}

    @property
    def staging_dir(self) -> Path:
        """Directory where downloads are staged before placement."""
        if self.cache_dir:
            return Path(self.cache_dir).expanduser()
        return Path(self.config_path) / "cache"
