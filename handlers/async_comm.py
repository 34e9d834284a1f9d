"""Asynchronous HTTP communication utilities.

This module provides the `AsyncHttp` client used by chat backends. Unlike a plain aiohttp call,
a request always reads the whole response body before returning, so the connection is released
to the pool even when the status is an error. The caller decides what to do with the status.
Transport-level failures (timeouts, refused or reset connections) are raised as `AsyncCommError`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Self

import aiohttp
from aiohttp.client import ClientSession

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Mapping


__all__: list[str] = [
    "AsyncCommError",
    "AsyncCommInvalidContentTypeError",
    "AsyncCommTimeoutError",
    "AsyncHttp",
    "HttpResponse",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

HTTPMethod = Literal["POST"]


@dataclass(frozen=True)
class HttpResponse:
    """A fully read HTTP response.

    Attributes:
        status (int): HTTP status code.
        content_type (str): Media type without parameters (e.g. "application/json").
        body (bytes): Raw response body.
    """

    status: int
    content_type: str
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class AsyncHttp:
    """Asynchronous HTTP client for backend requests.

    The underlying aiohttp session is created lazily on the first request, which allows the client
    to be constructed outside of a running event loop (backends are built at startup, before the
    loop serves requests).
    """

    def __init__(self, *, headers: Mapping[str, str] | None = None) -> None:
        """Initialize the AsyncHttp client.

        Registers default content type handlers for "text/plain", "text/html" and "application/json".

        Args:
            headers (Mapping[str, str] | None): Headers sent with every request of this client.
        """
        logger.debug("%s initializing", self.__class__.__name__)
        self.__session: ClientSession | None = None
        self._headers: dict[str, str] = dict(headers or {})
        self.content_handlers: dict[str, Callable[[bytes], Any]] = {}

        self.add_handler("text/plain", lambda x: x.decode("utf-8"))
        self.add_handler("text/html", lambda x: x.decode("utf-8"))
        self.add_handler("application/json", lambda x: json.loads(x.decode("utf-8")))

    async def __aenter__(self) -> Self:
        logger.debug("%s entering context", self.__class__.__name__)
        self.initialize_session(suppress_already_log=True)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        _ = exc_type, exc_val, exc_tb
        logger.debug("%s exiting context", self.__class__.__name__)
        await self.close()

    def initialize_session(self, *, suppress_already_log: bool = False) -> None:
        """Initialize the aiohttp session.

        Must be called from within a running event loop.

        Args:
            suppress_already_log (bool): If True, do not log when the session is already initialized.
        """
        if self.__session is None or self.__session.closed:
            self.__session = ClientSession(headers=self._headers, raise_for_status=False)
            logger.debug("%s session initialized", self.__class__.__name__)
        elif not suppress_already_log:
            logger.debug("%s session already initialized", self.__class__.__name__)

    @property
    def session(self) -> ClientSession:
        """Get the current aiohttp session."""
        if self.__session is None or self.__session.closed:
            msg = "Session is not initialized or has been closed"
            raise RuntimeError(msg)
        return self.__session

    @property
    def is_open(self) -> bool:
        return self.__session is not None and not self.__session.closed

    async def close(self) -> None:
        """Close the aiohttp session if it is open."""
        if self.__session and not self.__session.closed:
            await self.__session.close()
            logger.debug("%s session closed", self.__class__.__name__)
        self.__session = None

    async def post(
        self,
        *,
        url: str,
        data: Any | None = None,
        headers: Mapping[str, str] | None = None,
        total_timeout: float = 10.0,
    ) -> HttpResponse:
        """Perform an asynchronous HTTP POST request with a JSON body.

        Args:
            url (str): The URL to send the POST request to.
            data (Any | None): JSON-serializable request body.
            headers (Mapping[str, str] | None): Extra headers for this request.
            total_timeout (float): Total timeout for the request in seconds. 0 or negative disables it.

        Returns:
            HttpResponse: The response, whatever its status.

        Raises:
            AsyncCommTimeoutError: If the request timed out.
            AsyncCommError: If the server could not be reached or the connection broke.
        """
        logger.debug("'url': '%s', 'timeout': '%s'", url, total_timeout)
        return await self._request("POST", url=url, total_timeout=total_timeout, json=data, headers=headers)

    def decode_response(self, resp: HttpResponse) -> Any:
        """Parse a response body using the handler registered for its content type.

        Args:
            resp (HttpResponse): The response to parse.

        Returns:
            Any: The parsed data, or None for an empty body.

        Raises:
            AsyncCommInvalidContentTypeError: If no handler is registered for the content type.
        """
        if not resp.body:
            logger.debug("Received empty response")
            return None

        handler: Callable[[bytes], Any] | None = self.content_handlers.get(resp.content_type)
        if handler:
            return handler(resp.body)

        msg: str = f"Unknown Content-Type '{resp.content_type}'"
        raise AsyncCommInvalidContentTypeError(msg)

    def add_handler(self, content_type: str, handler: Callable[[bytes], Any]) -> None:
        """Add a custom handler for a specific content type.

        Args:
            content_type (str): The content type to handle (e.g., "application/x-ndjson").
            handler (Callable[[bytes], Any]): A function that takes bytes and returns the parsed data.
        """
        if self.content_handlers.get(content_type):
            logger.warning("Handler for content type '%s' already exists, replacing it", content_type)
        self.content_handlers[content_type] = handler

    @staticmethod
    def build_timeout(total_timeout: float) -> aiohttp.ClientTimeout:
        """Translate a total timeout in seconds into an aiohttp ClientTimeout.

        Args:
            total_timeout (float): Total timeout in seconds.

        Returns:
            aiohttp.ClientTimeout: The timeout settings.
        """
        if total_timeout <= 0:
            return aiohttp.ClientTimeout(total=None)
        # Connection setup (pool wait, TCP connect, TLS handshake) shares the configured budget.
        return aiohttp.ClientTimeout(total=total_timeout)

    async def _request(
        self,
        method: HTTPMethod,
        *,
        url: str,
        total_timeout: float,
        **kwargs: Any,
    ) -> HttpResponse:
        """Perform an asynchronous HTTP request and read the complete body.

        Args:
            method (HTTPMethod): The HTTP method to use.
            url (str): The URL to send the request to.
            total_timeout (float): Total timeout for the request in seconds.
            **kwargs: Additional keyword arguments to pass to the aiohttp request.

        Returns:
            HttpResponse: The response with its body fully read.
        """
        self.initialize_session(suppress_already_log=True)

        try:
            async with self.session.request(
                method=method,
                url=url,
                timeout=self.build_timeout(total_timeout),
                **kwargs,
            ) as resp:
                body: bytes = await resp.read()
                content_type: str = resp.headers.get("Content-Type", "").split(";")[0].strip()
                return HttpResponse(status=resp.status, content_type=content_type, body=body)

        except TimeoutError as err:
            logger.debug(err)
            msg = "Timeout due to a lack of response from the server."
            raise AsyncCommTimeoutError(msg) from err
        except ConnectionResetError as err:
            logger.debug(err)
            msg = "The connection to the server has been disconnected."
            raise AsyncCommError(msg) from err
        except aiohttp.ClientConnectorError as err:
            logger.debug(err)
            msg = "The server is not running, or the port is closed."
            raise AsyncCommError(msg) from err
        except aiohttp.ClientError as err:
            logger.debug(err)
            msg = f"HTTP request failed: {err}"
            raise AsyncCommError(msg) from err


class AsyncCommError(Exception):
    """Base class for asynchronous communication errors.

    Raised for transport-level failures such as refused connections or broken streams.
    """

    def __init__(self, msg: str | BaseException) -> None:
        self.msg: str = str(msg)
        super().__init__(self.msg)


class AsyncCommTimeoutError(AsyncCommError):
    """Error raised when an asynchronous communication operation times out."""


class AsyncCommInvalidContentTypeError(AsyncCommError):
    """Error raised when no handler is registered for the content type of a response."""
