"""Configuration data models for the translation gateway.

Each dataclass mirrors one INI section. Field names are UPPERCASE so that they match the keys
written in the configuration file. Provider sections are variable in number and are therefore
modelled separately as ProviderConfig / ModelConfig.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

__all__: list[str] = [
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_PROMPT_TEMPLATE",
    "DEFAULT_PROVIDER_TIMEOUT",
    "DEFAULT_TEMPERATURE",
    "TTL_FIELD",
    "Config",
    "ModelConfig",
    "ProviderConfig",
]

DEFAULT_PROVIDER_TIMEOUT: Final[float] = 30.0
DEFAULT_MAX_TOKENS: Final[int] = 2000
DEFAULT_TEMPERATURE: Final[float] = 0.3

DEFAULT_PROMPT_TEMPLATE: Final[str] = (
    "Translate the following text from {{source_lang}} to {{target_lang}}. "
    "Only output the translation, without any explanation.\n\n{{input}}"
)


@dataclass
class General:
    DEBUG: bool = False
    VERSION: str = ""
    SCRIPT_NAME: str = ""
    LOG_FILE: str = ""


@dataclass
class Prompt:
    TEMPLATE: str = DEFAULT_PROMPT_TEMPLATE


@dataclass
class Cache:
    ENABLED: bool = False
    TYPES: list[str] = field(default_factory=list)


# Fields tagged with this metadata are written as TTL strings ("1h", "7d", "permanent") in the INI file.
TTL_FIELD: Final[dict[str, str]] = {"format": "ttl"}


@dataclass
class MemoryCache:
    # TTL values are seconds. Negative means permanent.
    TTL: float = field(default=3600.0, metadata=TTL_FIELD)
    MAX_SIZE: int = 10000


@dataclass
class RedisCache:
    HOST: str = "localhost"
    PORT: int = 6379
    PASSWORD: str = ""
    DB: int = 0
    TTL: float = field(default=86400.0, metadata=TTL_FIELD)


@dataclass
class Telemetry:
    ENABLED: bool = False
    FILE_PATH: str = "logs/translation.log"
    MAX_BYTES: int = 10 * 1024 * 1024
    BACKUP_COUNT: int = 5
    QUEUE_SIZE: int = 1000


@dataclass
class Batch:
    MAX_TEXTS: int = 50
    MAX_CONCURRENT: int = 5


@dataclass
class ModelConfig:
    """One model offered by a provider.

    Attributes:
        name (str): Model name sent to the provider.
        weight (int): Relative weight for weighted selection. 0 excludes the model from the draw.
        max_tokens (int): Completion token limit.
        temperature (float): Sampling temperature.
        timeout (float | None): Per-model request timeout overriding the provider timeout.
    """

    name: str
    weight: int = 1
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    timeout: float | None = None


@dataclass
class ProviderConfig:
    """One provider endpoint and the models served by it.

    Attributes:
        provider (str): Provider name, used as the provider part of a backend identity.
        type (str): Backend type tag (e.g. "openai", "ollama"). Defaults to the provider name.
        api_url (str): Chat endpoint URL.
        api_key (str): Bearer token. Empty means no Authorization header.
        timeout (float): Default request timeout in seconds.
        is_default (bool): Whether the provider supplies the default backend.
        models (list[ModelConfig]): Models in declaration order.
    """

    provider: str
    api_url: str
    type: str = ""
    api_key: str = ""
    timeout: float = DEFAULT_PROVIDER_TIMEOUT
    is_default: bool = False
    models: list[ModelConfig] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.type:
            self.type = self.provider

    def timeout_for(self, model: ModelConfig) -> float:
        """Return the effective timeout for one of this provider's models."""
        return model.timeout if model.timeout is not None else self.timeout


@dataclass
class Config:
    GENERAL: General = field(default_factory=General)
    PROMPT: Prompt = field(default_factory=Prompt)
    CACHE: Cache = field(default_factory=Cache)
    MEMORY_CACHE: MemoryCache = field(default_factory=MemoryCache)
    REDIS_CACHE: RedisCache = field(default_factory=RedisCache)
    TELEMETRY: Telemetry = field(default_factory=Telemetry)
    BATCH: Batch = field(default_factory=Batch)
    PROVIDERS: list[ProviderConfig] = field(default_factory=list)
