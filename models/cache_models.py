"""Models for translation cache data.

Defines the JSON payload stored per cache key and the TTL directive constants shared by
every cache layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from dataclasses_json import DataClassJsonMixin, Undefined, dataclass_json

__all__: list[str] = ["DEFAULT_TTL", "PERMANENT_TTL", "CacheEntry", "is_permanent_ttl"]

# TTL directives, in seconds.
# Negative: never expires. Zero: use the layer's configured default. Positive: explicit duration.
PERMANENT_TTL: Final[float] = -1.0
DEFAULT_TTL: Final[float] = 0.0


def is_permanent_ttl(ttl: float) -> bool:
    return ttl < 0


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass(frozen=True)
class CacheEntry(DataClassJsonMixin):
    """Translation stored under one cache key.

    The JSON field names are part of the cache wire format and must stay stable, since entries
    written by earlier deployments are read back as-is.

    Attributes:
        translation (str): Translated text.
        provider (str): Provider that produced the translation.
        api_url (str): Endpoint that produced the translation.
        model (str): Model that produced the translation.
    """

    translation: str
    provider: str = ""
    api_url: str = ""
    model: str = ""
