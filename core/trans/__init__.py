"""Translation backends, registry and orchestration.

This package provides the pluggable backend interface, the model registry with weighted
selection, and the TransManager that drives the cache-aside translation flow.
"""

from core.trans.interface import (
    BackendInterface,
    BackendRequestError,
    EmptyResultError,
    GatewayConfigError,
    InvalidRequestError,
    ModelNotFoundError,
    PromptTemplateError,
    TranslateExceptionError,
    TranslationFailedError,
)
from core.trans.manager import TransManager
from core.trans.registry import ModelRegistry

__all__: list[str] = [
    "BackendInterface",
    "BackendRequestError",
    "EmptyResultError",
    "GatewayConfigError",
    "InvalidRequestError",
    "ModelNotFoundError",
    "ModelRegistry",
    "PromptTemplateError",
    "TransManager",
    "TranslateExceptionError",
    "TranslationFailedError",
]
