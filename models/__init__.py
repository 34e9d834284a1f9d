"""Data models for the translation gateway.

This package contains dataclass definitions for configuration, cache payloads, chat API payloads,
translation requests and results, and the language code table.
"""

from __future__ import annotations

from models.cache_models import DEFAULT_TTL, PERMANENT_TTL, CacheEntry
from models.config_models import Config, ModelConfig, ProviderConfig
from models.language_models import LANGUAGES
from models.translation_models import (
    BackendIdentity,
    BatchItemResult,
    TranslateRequest,
    TranslationOutcome,
    TranslationRecord,
)

__all__: list[str] = [
    "DEFAULT_TTL",
    "LANGUAGES",
    "PERMANENT_TTL",
    "BackendIdentity",
    "BatchItemResult",
    "CacheEntry",
    "Config",
    "ModelConfig",
    "ProviderConfig",
    "TranslateRequest",
    "TranslationOutcome",
    "TranslationRecord",
]
