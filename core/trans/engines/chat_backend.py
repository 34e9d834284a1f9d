"""Shared HTTP plumbing for chat-completion style translation backends.

`ChatBackend` owns the request/retry cycle. Concrete backends only describe how to build the
request body for their provider and where the translated text sits in the response.
"""

from __future__ import annotations

import asyncio
from abc import abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Final

from core.trans.interface import BackendInterface, BackendRequestError, EmptyResultError
from handlers.async_comm import AsyncCommError, AsyncCommInvalidContentTypeError, AsyncHttp
from models.config_models import DEFAULT_MAX_TOKENS, DEFAULT_PROVIDER_TIMEOUT, DEFAULT_TEMPERATURE
from models.translation_models import BackendIdentity
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from handlers.async_comm import HttpResponse
    from models.config_models import ModelConfig, ProviderConfig

__all__: list[str] = ["ChatBackend"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

SYSTEM_PROMPT: Final[str] = (
    "You are a professional translator. Translate the text accurately while maintaining its original style and meaning."
)

# Number of characters of an error response body kept in failure messages.
_ERROR_BODY_LIMIT: Final[int] = 500


class ChatBackend(BackendInterface):
    """Base class for backends that talk to a chat-completion HTTP endpoint.

    A request is attempted up to ``max_retries + 1`` times. A transport error or a non-2xx status
    triggers another attempt after ``retry_base_delay * 2 ** attempt`` seconds. The response body
    of a failed attempt is always read completely, so the connection goes back to the pool before
    the next attempt. A 2xx response that carries no translation is not retried.

    Attributes:
        MAX_RETRIES (ClassVar[int]): Default number of retries after the first attempt.
        RETRY_BASE_DELAY (ClassVar[float]): Default delay in seconds before the first retry.
    """

    MAX_RETRIES: ClassVar[int] = 2
    RETRY_BASE_DELAY: ClassVar[float] = 0.2

    def __init__(
        self,
        provider: ProviderConfig,
        model: ModelConfig,
        *,
        max_retries: int | None = None,
        retry_base_delay: float | None = None,
    ) -> None:
        """Initialize the backend for one model of a provider.

        Non-positive timeout, max_tokens or temperature values fall back to the gateway defaults.

        Args:
            provider (ProviderConfig): Provider configuration.
            model (ModelConfig): Model configuration.
            max_retries (int | None): Override for MAX_RETRIES.
            retry_base_delay (float | None): Override for RETRY_BASE_DELAY.
        """
        super().__init__(provider, model)
        self._identity: BackendIdentity = BackendIdentity(
            provider=provider.provider,
            model=model.name,
            api_url=provider.api_url,
        )
        timeout: float = provider.timeout_for(model)
        self.timeout: float = timeout if timeout > 0 else DEFAULT_PROVIDER_TIMEOUT
        self.max_tokens: int = model.max_tokens if model.max_tokens > 0 else DEFAULT_MAX_TOKENS
        self.temperature: float = model.temperature if model.temperature > 0 else DEFAULT_TEMPERATURE
        self.max_retries: int = max(0, self.MAX_RETRIES if max_retries is None else max_retries)
        self.retry_base_delay: float = max(
            0.0, self.RETRY_BASE_DELAY if retry_base_delay is None else retry_base_delay
        )
        self._api_key: str = provider.api_key
        self._http: AsyncHttp = AsyncHttp(headers=self.build_headers())

    @staticmethod
    def fetch_provider_type() -> str:
        return ""

    @property
    def identity(self) -> BackendIdentity:
        return self._identity

    def build_headers(self) -> dict[str, str]:
        """Build the headers sent with every request.

        Returns:
            dict[str, str]: JSON content type, plus a bearer token when an API key is configured.
        """
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    @abstractmethod
    def build_payload(self, prompt: str) -> dict[str, Any]:
        """Build the provider-specific JSON request body.

        Args:
            prompt (str): Fully rendered prompt.

        Returns:
            dict[str, Any]: JSON-serializable request body.
        """
        raise NotImplementedError

    @abstractmethod
    def extract_content(self, data: Any) -> str | None:
        """Extract the translated text from a decoded response body.

        Args:
            data (Any): Decoded JSON response.

        Returns:
            str | None: Translated text, or None if the response carries none.

        Raises:
            EmptyResultError: If the response has no completion to read from.
        """
        raise NotImplementedError

    async def translate(self, prompt: str) -> str:
        response: HttpResponse = await self._post_with_retry(self.build_payload(prompt))

        try:
            data: Any = self._http.decode_response(response)
        except (AsyncCommInvalidContentTypeError, ValueError) as err:
            msg = f"Unreadable response from {self._identity}: {err}"
            raise EmptyResultError(msg) from err

        try:
            content: str | None = self.extract_content(data)
        except (KeyError, TypeError, AttributeError, ValueError) as err:
            msg = f"Malformed response from {self._identity}: {err}"
            raise EmptyResultError(msg) from err

        if not content:
            msg = f"No translation result in response from {self._identity}"
            raise EmptyResultError(msg)
        if not isinstance(content, str):
            msg = f"Non-text content in response from {self._identity}: {type(content).__name__}"
            raise EmptyResultError(msg)
        return content

    async def _post_with_retry(self, payload: dict[str, Any]) -> HttpResponse:
        """POST the payload, retrying transport errors and non-2xx responses.

        Args:
            payload (dict[str, Any]): JSON request body.

        Returns:
            HttpResponse: The first 2xx response.

        Raises:
            BackendRequestError: If every attempt failed. The message carries the last transport error
                or the last error response body.
        """
        attempts: int = self.max_retries + 1
        last_error: AsyncCommError | None = None
        detail: str = ""

        for attempt in range(attempts):
            try:
                response: HttpResponse = await self._http.post(
                    url=self._identity.api_url,
                    data=payload,
                    total_timeout=self.timeout,
                )
            except AsyncCommError as err:
                last_error = err
                detail = str(err)
            else:
                if response.ok:
                    return response
                last_error = None
                detail = f"status {response.status}: {response.text()[:_ERROR_BODY_LIMIT]}"

            logger.warning(
                "Request to %s failed (attempt %d/%d): %s", self._identity, attempt + 1, attempts, detail
            )
            if attempt < attempts - 1:
                await asyncio.sleep(self.retry_base_delay * (2**attempt))

        msg = f"Request to {self._identity} failed after {attempts} attempts: {detail}"
        raise BackendRequestError(msg) from last_error

    async def close(self) -> None:
        await self._http.close()
