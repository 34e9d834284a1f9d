"""Registry of configured translation backends with weighted and exact selection."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Self

from core.trans.engines import (
    OllamaChatBackend,  # noqa: F401
    OpenAIChatBackend,  # noqa: F401
)
from core.trans.interface import BackendInterface, GatewayConfigError, ModelNotFoundError
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Sequence

    from models.config_models import ProviderConfig
    from models.translation_models import BackendIdentity

__all__: list[str] = ["ModelRegistry"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class ModelRegistry:
    """Immutable set of backends built from provider configuration.

    Backends are kept in declaration order (provider order, then model order within a provider).
    Every lookup walks that order, so results never depend on dict or set iteration.
    The registry is read-only after construction and can be shared between tasks without locking.

    Weighted selection draws from a random source owned by the registry. Pass a seeded
    ``random.Random`` to make the draws reproducible.
    """

    def __init__(
        self,
        backends: Sequence[BackendInterface],
        weights: Sequence[int],
        default_index: int,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the registry from already constructed backends.

        Use `ModelRegistry.build` to construct a registry from configuration.

        Args:
            backends (Sequence[BackendInterface]): Backends in declaration order.
            weights (Sequence[int]): Weight per backend, same order as ``backends``.
            default_index (int): Index of the default backend.
            rng (random.Random | None): Random source for weighted selection.

        Raises:
            GatewayConfigError: If the arguments are inconsistent.
        """
        msg: str
        if not backends:
            msg = "At least one backend is required"
            raise GatewayConfigError(msg)
        if len(backends) != len(weights):
            msg = "Each backend needs exactly one weight"
            raise GatewayConfigError(msg)
        if any(weight < 0 for weight in weights):
            msg = "Backend weights must not be negative"
            raise GatewayConfigError(msg)
        if not 0 <= default_index < len(backends):
            msg = f"Default backend index out of range: {default_index}"
            raise GatewayConfigError(msg)

        self._backends: tuple[BackendInterface, ...] = tuple(backends)
        self._weights: tuple[int, ...] = tuple(weights)
        self._total_weight: int = sum(self._weights)
        self._default_index: int = default_index
        self._rng: random.Random = rng if rng is not None else random.Random()
        self._by_identity: dict[tuple[str, str], BackendInterface] = {}
        for backend in self._backends:
            key = (backend.identity.provider, backend.identity.model)
            # First declaration wins for exact lookups when the same model is served by two endpoints.
            self._by_identity.setdefault(key, backend)

    @classmethod
    def build(cls, provider_configs: Sequence[ProviderConfig], rng: random.Random | None = None) -> Self:
        """Build a registry from provider configuration.

        The backend class for each provider is looked up by its provider-type tag in
        `BackendInterface.registered`.

        Args:
            provider_configs (Sequence[ProviderConfig]): Providers in declaration order.
            rng (random.Random | None): Random source for weighted selection.

        Returns:
            ModelRegistry: The registry.

        Raises:
            GatewayConfigError: If no provider is configured, a provider type is unknown, a provider has
                no models, a weight is negative, or a backend identity is declared twice.
        """
        msg: str
        if not provider_configs:
            msg = "No translation providers are configured"
            raise GatewayConfigError(msg)

        backends: list[BackendInterface] = []
        weights: list[int] = []
        identities: set[BackendIdentity] = set()
        default_index: int | None = None

        for provider in provider_configs:
            backend_cls: type[BackendInterface] | None = BackendInterface.registered.get(provider.type)
            if backend_cls is None:
                msg = (
                    f"Unknown provider type '{provider.type}' for provider '{provider.provider}'. "
                    f"Available types: {sorted(BackendInterface.registered)}"
                )
                raise GatewayConfigError(msg)
            if not provider.models:
                msg = f"Provider '{provider.provider}' has no models"
                raise GatewayConfigError(msg)

            for model in provider.models:
                if model.weight < 0:
                    msg = f"Negative weight {model.weight} for model '{provider.provider}/{model.name}'"
                    raise GatewayConfigError(msg)

                backend: BackendInterface = backend_cls(provider, model)
                if backend.identity in identities:
                    msg = f"Backend '{backend.identity}' is configured more than once"
                    raise GatewayConfigError(msg)
                identities.add(backend.identity)

                if provider.is_default and default_index is None:
                    default_index = len(backends)
                backends.append(backend)
                weights.append(model.weight)
                logger.debug("Registered backend %s (weight=%d)", backend.identity, model.weight)

        registry = cls(backends, weights, default_index if default_index is not None else 0, rng=rng)
        logger.info(
            "Model registry built: %d backends, total weight %d, default %s",
            len(backends),
            registry.total_weight,
            registry.get_default().identity,
        )
        return registry

    @property
    def total_weight(self) -> int:
        return self._total_weight

    def get_exact(self, provider: str, model: str) -> BackendInterface:
        """Get the backend for a provider and model.

        Args:
            provider (str): Provider name.
            model (str): Model name.

        Returns:
            BackendInterface: The first declared backend matching the pair.

        Raises:
            ModelNotFoundError: If no backend matches.
        """
        backend: BackendInterface | None = self._by_identity.get((provider, model))
        if backend is None:
            msg = f"Model '{model}' of provider '{provider}' is not configured"
            raise ModelNotFoundError(msg)
        return backend

    def get_default(self) -> BackendInterface:
        """Get the default backend.

        Returns:
            BackendInterface: The first model of the first provider flagged as default, or the first
                declared backend if no provider is flagged.
        """
        return self._backends[self._default_index]

    def get_weighted(self) -> BackendInterface:
        """Pick a backend at random, proportionally to the configured weights.

        A uniform integer is drawn from ``[0, total_weight)`` and the backends are walked in declaration
        order, subtracting each weight until the draw falls inside one backend's share. Backends with
        weight 0 are never picked. If the total weight is 0, the default backend is returned.

        Returns:
            BackendInterface: The selected backend.
        """
        if self._total_weight <= 0:
            return self.get_default()

        remainder: int = self._rng.randrange(self._total_weight)
        for backend, weight in zip(self._backends, self._weights, strict=True):
            remainder -= weight
            if remainder < 0:
                return backend

        # Unreachable while total_weight == sum(weights).
        return self.get_default()

    def list_all(self) -> list[BackendIdentity]:
        return [backend.identity for backend in self._backends]

    def list_by_provider(self, provider: str) -> list[str]:
        """List the model names of a provider in declaration order.

        Args:
            provider (str): Provider name.

        Returns:
            list[str]: Model names. Empty if the provider is unknown.
        """
        return [backend.identity.model for backend in self._backends if backend.identity.provider == provider]

    async def close(self) -> None:
        """Close every backend.

        All backends are closed even if some fail. The last failure is re-raised.

        Raises:
            Exception: The last error raised by a backend's close().
        """
        last_error: Exception | None = None
        for backend in self._backends:
            try:
                await backend.close()
            except Exception as err:  # noqa: BLE001
                logger.error("Failed to close backend %s: %s", backend.identity, err)
                last_error = err
        if last_error is not None:
            raise last_error
