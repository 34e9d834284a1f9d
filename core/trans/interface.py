"""This module defines the abstract base class for translation backends and related exceptions.

Backends are registered by their provider-type tag when their class is defined, so that the
model registry can build them from configuration without knowing the concrete classes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import ModelConfig, ProviderConfig
    from models.translation_models import BackendIdentity

__all__: list[str] = [
    "BackendInterface",
    "BackendRequestError",
    "EmptyResultError",
    "GatewayConfigError",
    "InvalidRequestError",
    "ModelNotFoundError",
    "PromptTemplateError",
    "TranslateExceptionError",
    "TranslationFailedError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class TranslateExceptionError(Exception):
    """An error occurred during the translation process."""


class InvalidRequestError(TranslateExceptionError):
    """The translation request is missing text or a target language, or is otherwise malformed."""


class ModelNotFoundError(TranslateExceptionError):
    """No backend is configured for the requested provider and model."""


class BackendRequestError(TranslateExceptionError):
    """The backend endpoint could not be reached or kept answering with an error status."""


class EmptyResultError(TranslateExceptionError):
    """The backend answered successfully but the response carried no translation."""


class TranslationFailedError(TranslateExceptionError):
    """The selected backend failed to produce a translation.

    Attributes:
        identity (BackendIdentity): Backend that failed.
    """

    def __init__(self, msg: str, identity: BackendIdentity) -> None:
        super().__init__(msg)
        self.identity: BackendIdentity = identity


class GatewayConfigError(Exception):
    """The gateway configuration is invalid. Raised at construction time."""


class PromptTemplateError(GatewayConfigError):
    """The prompt template cannot be rendered (e.g. it lacks the input placeholder)."""


class BackendInterface(ABC):
    """Abstract base class for translation backends.

    A backend wraps exactly one (provider, model, endpoint) combination. It is constructed once
    at startup and never reconfigured afterwards.

    Attributes:
        registered (ClassVar[dict[str, type[BackendInterface]]]): Registered backend classes, keyed by
            their provider-type tag.
    """

    registered: ClassVar[dict[str, type[BackendInterface]]] = {}

    def __init_subclass__(cls, **kwargs) -> None:
        """Register the subclass under its provider-type tag.

        Classes returning an empty tag (abstract intermediates) are not registered.

        Args:
            **kwargs: Additional keyword arguments passed to parent class.

        Raises:
            TypeError: If the subclass does not provide fetch_provider_type().
            ValueError: If the tag is already taken by another class.
        """
        super().__init_subclass__(**kwargs)
        if not hasattr(cls, "fetch_provider_type") or not callable(cls.fetch_provider_type):
            msg = "Subclasses of BackendInterface must implement the static method fetch_provider_type()."
            raise TypeError(msg)

        provider_type = cls.fetch_provider_type()
        if not isinstance(provider_type, str) or provider_type == "":
            return

        if provider_type in cls.registered:
            msg: str = f"A backend with the provider type '{provider_type}' is already registered."
            raise ValueError(msg)

        cls.registered[provider_type] = cls

    @staticmethod
    @abstractmethod
    def fetch_provider_type() -> str:
        """Fetch the provider-type tag of the backend.

        This method is called during class registration in __init_subclass__, so the implementation
        must be available at subclass definition time.

        Returns:
            str: The provider-type tag (e.g. "openai"). An empty string disables registration.
        """
        raise NotImplementedError

    def __init__(self, provider: ProviderConfig, model: ModelConfig) -> None:
        """Initialize the backend for one model of a provider.

        Args:
            provider (ProviderConfig): Provider configuration.
            model (ModelConfig): Model configuration.
        """
        _ = provider, model

    @property
    @abstractmethod
    def identity(self) -> BackendIdentity:
        """Describe the backend.

        Returns:
            BackendIdentity: Provider, model and endpoint URL of this backend.
        """
        raise NotImplementedError

    @abstractmethod
    async def translate(self, prompt: str) -> str:
        """Send a rendered prompt to the backend and return the translation.

        Args:
            prompt (str): Fully rendered prompt.

        Returns:
            str: Translated text.

        Raises:
            BackendRequestError: If all attempts failed at transport or HTTP status level.
            EmptyResultError: If the response carried no translation.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by the backend (e.g. HTTP sessions)."""
        raise NotImplementedError
