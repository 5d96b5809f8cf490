"""Configuration package."""

from voice_ledger.config.settings import (
    GeminiSettings,
    GoogleSheetsSettings,
    GoogleSpeechSettings,
    PipelineSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "GeminiSettings",
    "GoogleSheetsSettings",
    "GoogleSpeechSettings",
    "PipelineSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
