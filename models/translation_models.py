"""Models for translation-related data.

Defines the backend identity, batch request/result items, the detailed translation outcome,
and the telemetry record emitted once per request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from dataclasses_json import DataClassJsonMixin, config, dataclass_json

__all__: list[str] = [
    "BackendIdentity",
    "BatchItemResult",
    "TranslateRequest",
    "TranslationOutcome",
    "TranslationRecord",
]


@dataclass(frozen=True)
class BackendIdentity:
    """Immutable identity of one configured backend.

    Attributes:
        provider (str): Provider name.
        model (str): Model name.
        api_url (str): Endpoint URL.
    """

    provider: str
    model: str
    api_url: str

    def __str__(self) -> str:
        return f"{self.provider}/{self.model}@{self.api_url}"


@dataclass
class TranslateRequest:
    """One item of a batch translation.

    Attributes:
        text (str): Text to translate.
        target_lang (str): Target language code.
        source_lang (str): Source language code. Empty means unspecified.
        provider (str): Optional provider. Used only together with ``model``.
        model (str): Optional model. Used only together with ``provider``.
    """

    text: str
    target_lang: str
    source_lang: str = ""
    provider: str = ""
    model: str = ""


@dataclass
class TranslationOutcome:
    """Detailed result of a single translation.

    Attributes:
        text (str): Translated text.
        identity (BackendIdentity): Backend that produced the text. For a cache hit, the backend
            recorded in the cache entry.
        cache_key (str): Cache key of the request.
        cache_hit (bool): Whether the text came from the cache.
        elapsed_ms (float): Processing time in milliseconds.
    """

    text: str
    identity: BackendIdentity
    cache_key: str
    cache_hit: bool
    elapsed_ms: float


@dataclass
class BatchItemResult:
    """Result of one batch item. Exactly one of ``text`` and ``error`` is meaningful."""

    index: int
    text: str = ""
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass_json
@dataclass
class TranslationRecord(DataClassJsonMixin):
    """Telemetry record written as one JSON line per translation request."""

    source_text: str
    target_text: str
    source_lang: str
    target_lang: str
    api_url: str
    provider: str
    model: str
    cache_key: str
    cache_hit: bool
    process_time_ms: float
    timestamp: datetime | None = field(
        default=None,
        metadata=config(
            encoder=lambda value: value.isoformat() if value is not None else None,
            decoder=lambda value: datetime.fromisoformat(value) if value else None,
        ),
    )
