from __future__ import annotations

import asyncio
import json
import time
from typing import TYPE_CHECKING, Any, Final

from core.cache.interface import CacheError
from core.telemetry.recorder import TelemetryError
from core.trans.interface import (
    InvalidRequestError,
    ModelNotFoundError,
    PromptTemplateError,
    TranslateExceptionError,
    TranslationFailedError,
)
from models.cache_models import DEFAULT_TTL, CacheEntry
from models.config_models import DEFAULT_PROMPT_TEMPLATE
from models.translation_models import (
    BackendIdentity,
    BatchItemResult,
    TranslationOutcome,
    TranslationRecord,
)
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Sequence

    from core.cache.interface import CacheInterface
    from core.telemetry.recorder import TranslationRecorder
    from core.trans.interface import BackendInterface
    from core.trans.registry import ModelRegistry
    from models.translation_models import TranslateRequest


__all__: list[str] = ["MAX_BATCH_TEXTS", "TransManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

MAX_BATCH_TEXTS: Final[int] = 50
DEFAULT_MAX_CONCURRENT: Final[int] = 5


class TransManager:
    """Orchestrates a translation request across cache, registry and backend.

    The flow for one request is cache-aside:

    1. validate the request,
    2. look the cache key up (with a single fallback read under the legacy key namespace),
    3. on a miss, select a backend and render the prompt,
    4. call the backend,
    5. write the result back to the cache and emit a telemetry record.

    Cache failures never reach the caller: a failed read is treated as a miss and a failed write
    is only logged. Backend failures are raised as TranslationFailedError. There is no retry
    across backends.

    The manager itself holds no per-request state, so concurrent calls are independent.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        cache: CacheInterface | None = None,
        recorder: TranslationRecorder | None = None,
        *,
        prompt_template: str = DEFAULT_PROMPT_TEMPLATE,
        max_batch_texts: int = MAX_BATCH_TEXTS,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    ) -> None:
        """Initialize the TransManager.

        Args:
            registry (ModelRegistry): Configured backends.
            cache (CacheInterface | None): Translation cache. None disables caching.
            recorder (TranslationRecorder | None): Telemetry sink. None disables telemetry.
            prompt_template (str): Template used when a call does not supply one.
            max_batch_texts (int): Maximum number of items accepted by batch_translate.
            max_concurrent (int): Default number of batch items translated concurrently.

        Raises:
            PromptTemplateError: If the default template lacks the input placeholder.
        """
        if not StringUtils.has_input_placeholder(prompt_template):
            msg = "Invalid prompt template: must contain {{input}}"
            raise PromptTemplateError(msg)

        self.registry: ModelRegistry = registry
        self.cache: CacheInterface | None = cache
        self.recorder: TranslationRecorder | None = recorder
        self.prompt_template: str = prompt_template
        self.max_batch_texts: int = max_batch_texts
        self.max_concurrent: int = max_concurrent
        self._closed: bool = False

    async def translate(
        self,
        provider: str,
        model: str,
        prompt_template: str,
        text: str,
        source_lang: str,
        target_lang: str,
    ) -> str:
        """Translate a text.

        Args:
            provider (str): Provider to use. Must be given together with ``model``, otherwise a
                backend is chosen by weight.
            model (str): Model to use.
            prompt_template (str): Prompt template. Empty uses the manager's template.
            text (str): Text to translate.
            source_lang (str): Source language code. May be empty.
            target_lang (str): Target language code.

        Returns:
            str: The translated text.

        Raises:
            InvalidRequestError: If the text or the target language is empty.
            PromptTemplateError: If the template lacks the input placeholder.
            TranslationFailedError: If the selected backend failed.
        """
        outcome: TranslationOutcome = await self.translate_with_details(
            provider, model, prompt_template, text, source_lang, target_lang
        )
        return outcome.text

    async def translate_with_details(
        self,
        provider: str,
        model: str,
        prompt_template: str,
        text: str,
        source_lang: str,
        target_lang: str,
    ) -> TranslationOutcome:
        """Translate a text and report how the result was obtained.

        Arguments and errors are those of `translate`.

        Returns:
            TranslationOutcome: Translated text, backend identity, cache key, cache-hit flag and
                elapsed time.
        """
        start: float = time.perf_counter()
        self._validate_request(text, target_lang)

        cache_key: str = StringUtils.generate_cache_key(text, source_lang, target_lang)

        entry: CacheEntry | None = await self.fetch_cached_translation(text, source_lang, target_lang, cache_key)
        if entry is not None:
            identity = BackendIdentity(provider=entry.provider, model=entry.model, api_url=entry.api_url)
            outcome = TranslationOutcome(
                text=entry.translation,
                identity=identity,
                cache_key=cache_key,
                cache_hit=True,
                elapsed_ms=self._elapsed_ms(start),
            )
            logger.debug("Cache hit for key %s (originally by %s)", cache_key[:16], identity)
            self._record(text, source_lang, target_lang, outcome)
            return outcome

        backend: BackendInterface = self.select_backend(provider, model)
        prompt: str = self.render_prompt(prompt_template or self.prompt_template, text, source_lang, target_lang)

        try:
            translation: str = await backend.translate(prompt)
        except TranslateExceptionError as err:
            msg = f"Translation failed with {backend.identity}: {err}"
            raise TranslationFailedError(msg, backend.identity) from err

        await self.write_translation_cache(cache_key, translation, backend.identity)

        outcome = TranslationOutcome(
            text=translation,
            identity=backend.identity,
            cache_key=cache_key,
            cache_hit=False,
            elapsed_ms=self._elapsed_ms(start),
        )
        self._record(text, source_lang, target_lang, outcome)
        return outcome

    @staticmethod
    def _validate_request(text: str, target_lang: str) -> None:
        if not text:
            msg = "Text is required"
            raise InvalidRequestError(msg)
        if not target_lang:
            msg = "Target language is required"
            raise InvalidRequestError(msg)

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.perf_counter() - start) * 1000.0

    def select_backend(self, provider: str, model: str) -> BackendInterface:
        """Select the backend for a request.

        If both provider and model are given, the exact backend is used; when it is not configured,
        the default backend is used instead. Otherwise a backend is chosen by weight.

        Args:
            provider (str): Requested provider, or empty.
            model (str): Requested model, or empty.

        Returns:
            BackendInterface: The selected backend.
        """
        if provider and model:
            try:
                return self.registry.get_exact(provider, model)
            except ModelNotFoundError as err:
                default: BackendInterface = self.registry.get_default()
                logger.warning("%s. Falling back to the default backend %s", err, default.identity)
                return default
        return self.registry.get_weighted()

    @staticmethod
    def render_prompt(template: str, text: str, source_lang: str, target_lang: str) -> str:
        """Render the prompt, substituting language names for language codes.

        Raises:
            PromptTemplateError: If the template lacks the input placeholder.
        """
        try:
            return StringUtils.apply_prompt_template(
                template,
                text,
                StringUtils.language_name(source_lang),
                StringUtils.language_name(target_lang),
            )
        except ValueError as err:
            raise PromptTemplateError(str(err)) from err

    async def fetch_cached_translation(
        self, text: str, source_lang: str, target_lang: str, cache_key: str
    ) -> CacheEntry | None:
        """Look a translation up in the cache.

        A read error, a miss or an undecodable payload is a soft miss. After a soft miss under the
        current key, the legacy key is tried once; a hit there is copied to the current key.

        Args:
            text (str): Source text.
            source_lang (str): Source language code.
            target_lang (str): Target language code.
            cache_key (str): Current cache key of the request.

        Returns:
            CacheEntry | None: The cached entry, or None.
        """
        if self.cache is None:
            return None

        entry: CacheEntry | None = await self._read_entry(cache_key)
        if entry is not None:
            return entry

        legacy_key: str = StringUtils.generate_legacy_cache_key(text, source_lang, target_lang)
        entry = await self._read_entry(legacy_key)
        if entry is not None:
            logger.debug("Legacy cache hit for key %s, migrating to %s", legacy_key[:16], cache_key[:16])
            await self._store_entry(cache_key, entry)
        return entry

    async def _read_entry(self, key: str) -> CacheEntry | None:
        if self.cache is None:
            return None
        try:
            payload: str | None = await self.cache.get(key)
        except CacheError as err:
            logger.warning("Cache lookup failed for key %s: %s", key[:16], err)
            return None
        if not payload:
            return None

        try:
            decoded: Any = json.loads(payload)
            entry: CacheEntry | None = CacheEntry.from_dict(decoded) if isinstance(decoded, dict) else None
        except (ValueError, KeyError, TypeError) as err:
            logger.warning("Discarding undecodable cache entry for key %s: %s", key[:16], err)
            return None
        if entry is None:
            logger.warning("Discarding cache entry for key %s: not a JSON object", key[:16])
            return None
        if not entry.translation or not isinstance(entry.translation, str):
            return None
        return entry

    async def write_translation_cache(self, cache_key: str, translation: str, identity: BackendIdentity) -> bool:
        """Store a successful translation in the cache using each layer's default TTL.

        Args:
            cache_key (str): Cache key of the request.
            translation (str): Translated text.
            identity (BackendIdentity): Backend that produced the translation.

        Returns:
            bool: True if the entry was stored, False if caching is disabled or the write failed.
        """
        entry = CacheEntry(
            translation=translation,
            provider=identity.provider,
            api_url=identity.api_url,
            model=identity.model,
        )
        return await self._store_entry(cache_key, entry)

    async def _store_entry(self, key: str, entry: CacheEntry) -> bool:
        if self.cache is None:
            return False
        try:
            await self.cache.set(key, entry.to_json(ensure_ascii=False), DEFAULT_TTL)
        except CacheError as err:
            logger.warning("Failed to cache translation for key %s: %s", key[:16], err)
            return False
        return True

    def _record(self, text: str, source_lang: str, target_lang: str, outcome: TranslationOutcome) -> None:
        if self.recorder is None:
            return
        record = TranslationRecord(
            source_text=text,
            target_text=outcome.text,
            source_lang=source_lang,
            target_lang=target_lang,
            api_url=outcome.identity.api_url,
            provider=outcome.identity.provider,
            model=outcome.identity.model,
            cache_key=outcome.cache_key,
            cache_hit=outcome.cache_hit,
            process_time_ms=round(outcome.elapsed_ms, 3),
        )
        try:
            self.recorder.log_translation(record)
        except TelemetryError as err:
            logger.warning("Failed to log translation: %s", err)

    async def batch_translate(
        self,
        requests: Sequence[TranslateRequest],
        *,
        prompt_template: str = "",
        max_concurrent: int | None = None,
    ) -> list[BatchItemResult]:
        """Translate several texts concurrently.

        Every item is translated in its own task, with at most ``max_concurrent`` running at once.
        A failing item does not affect the others: its error is returned in its result.

        Args:
            requests (Sequence[TranslateRequest]): Items to translate.
            prompt_template (str): Template for all items. Empty uses the manager's template.
            max_concurrent (int | None): Concurrency limit. None uses the manager's default.

        Returns:
            list[BatchItemResult]: One result per request, in request order.

        Raises:
            InvalidRequestError: If there are more items than the batch limit.
        """
        if len(requests) > self.max_batch_texts:
            msg = f"Too many texts: maximum allowed is {self.max_batch_texts}"
            raise InvalidRequestError(msg)

        limit: int = max_concurrent if max_concurrent is not None else self.max_concurrent
        semaphore = asyncio.Semaphore(max(1, limit))

        async def translate_item(index: int, request: TranslateRequest) -> BatchItemResult:
            async with semaphore:
                try:
                    text: str = await self.translate(
                        request.provider,
                        request.model,
                        prompt_template,
                        request.text,
                        request.source_lang,
                        request.target_lang,
                    )
                except (TranslateExceptionError, PromptTemplateError) as err:
                    logger.info("Batch item %d failed: %s", index, err)
                    return BatchItemResult(index=index, error=err)
                return BatchItemResult(index=index, text=text)

        # gather returns results in argument order, whatever the completion order.
        return list(await asyncio.gather(*(translate_item(index, request) for index, request in enumerate(requests))))

    def list_models(self) -> list[BackendIdentity]:
        return self.registry.list_all()

    def list_models_by_provider(self, provider: str) -> list[str]:
        return self.registry.list_by_provider(provider)

    @staticmethod
    def validate_language(code: str) -> bool:
        """Check whether a language code is a known ISO 639-1 code (region suffixes allowed)."""
        return StringUtils.is_valid_language_code(code)

    async def close(self) -> None:
        """Shut down the telemetry recorder, the cache and the backends, in that order.

        Errors are logged and do not stop the remaining shutdown steps. Calling it more than once
        is allowed.
        """
        if self._closed:
            return
        self._closed = True

        if self.recorder is not None:
            await self.recorder.close()
        if self.cache is not None:
            try:
                await self.cache.close()
            except CacheError as err:
                logger.error("Failed to close cache: %s", err)
        try:
            await self.registry.close()
        except Exception as err:  # noqa: BLE001
            logger.error("Failed to close backends: %s", err)
        logger.info("Translation manager shut down")
