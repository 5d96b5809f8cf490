"""
Configuration Management for Voice Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _warn_if_missing(path: str, what: str) -> None:
    if not Path(path).exists():
        import warnings
        warnings.warn(
            f"{what} credentials file not found at {path}. "
            "Make sure it exists before running the application."
        )


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration (structured extraction and audio fallback)."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model used for expense extraction"
    )
    transcription_model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model used when transcribing audio"
    )
    max_tokens: int = Field(
        default=700,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class GoogleSpeechSettings(BaseSettings):
    """Google Cloud Speech-to-Text configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SPEECH_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    endpoint: str = Field(
        default="https://speech.googleapis.com/v1/speech:recognize",
        description="Speech-to-Text recognize endpoint"
    )
    language_code: str = Field(
        default="ar-EG",
        description="Primary recognition language"
    )
    alternative_language_codes: str = Field(
        default="en-US",
        description="Comma-separated alternative recognition languages"
    )
    encoding: str = Field(
        default="WEBM_OPUS",
        description="Audio encoding sent to the API"
    )
    sample_rate_hertz: int = Field(
        default=48000,
        description="Audio sample rate"
    )
    model: str = Field(
        default="latest_long",
        description="Recognition model"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        _warn_if_missing(v, "Google Speech")
        return v

    @property
    def alternative_languages_list(self) -> list[str]:
        return [code.strip() for code in self.alternative_language_codes.split(",") if code.strip()]


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expenses"
    )
    patterns_sheet_name: str = Field(
        default="LearnedPatterns",
        description="Name of the sheet for learned category patterns"
    )
    budgets_sheet_name: str = Field(
        default="Budgets",
        description="Name of the sheet for monthly budgets"
    )
    notifications_sheet_name: str = Field(
        default="Notifications",
        description="Name of the sheet for raised budget notifications"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        _warn_if_missing(v, "Google Sheets")
        return v


class PipelineSettings(BaseSettings):
    """
    Voice pipeline settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="VOICE_LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Transcription
    transcription_providers: str = Field(
        default="google_speech,gemini",
        description="Comma-separated transcription providers in priority order"
    )
    provider_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Upper bound for a single provider call"
    )

    # Upload limits
    max_audio_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum audio payload size in MB"
    )
    supported_audio_formats: str = Field(
        default="audio/webm,audio/ogg,audio/wav,audio/mpeg,audio/mp4",
        description="Comma-separated list of accepted audio mime types"
    )

    # Learning
    max_learned_patterns: int = Field(
        default=50,
        ge=1,
        le=500,
        description="How many learned patterns to load per request"
    )

    # Budget
    default_currency: str = Field(
        default="EGP",
        description="Currency label used in notification text"
    )
    budget_thresholds: str = Field(
        default="50,75,100",
        description="Comma-separated budget percentages that raise notifications"
    )

    @property
    def transcription_providers_list(self) -> list[str]:
        """Get provider order as a list."""
        return [name.strip().lower() for name in self.transcription_providers.split(",") if name.strip()]

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_audio_formats.split(",")]

    @property
    def max_audio_size_bytes(self) -> int:
        """Get max audio size in bytes."""
        return self.max_audio_size_mb * 1024 * 1024

    @property
    def budget_thresholds_list(self) -> list[int]:
        return sorted(int(value) for value in self.budget_thresholds.split(",") if value.strip())


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def google_speech(self) -> GoogleSpeechSettings:
        return GoogleSpeechSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def pipeline(self) -> PipelineSettings:
        return PipelineSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("gemini", "google_speech", "google_sheets", "pipeline"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
