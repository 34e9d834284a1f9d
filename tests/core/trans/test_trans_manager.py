"""Tests for TransManager."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, ClassVar
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.cache.interface import CacheInterface, CacheUnavailableError
from core.cache.memory import MemoryCache
from core.telemetry.recorder import TelemetryQueueFullError, TranslationRecorder
from core.trans.interface import (
    BackendInterface,
    BackendRequestError,
    InvalidRequestError,
    PromptTemplateError,
    TranslationFailedError,
)
from core.trans.manager import TransManager
from core.trans.registry import ModelRegistry
from models.cache_models import CacheEntry
from models.config_models import ModelConfig, ProviderConfig
from models.translation_models import BackendIdentity, TranslateRequest, TranslationRecord
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from models.translation_models import BatchItemResult, TranslationOutcome

TEMPLATE = "{{source_lang}} -> {{target_lang}}: {{input}}"


class DummyBackend(BackendInterface):
    """Backend answering from a per-model translation table."""

    prompts: ClassVar[list[tuple[str, str]]] = []
    fail_models: ClassVar[set[str]] = set()
    delays: ClassVar[dict[str, float]] = {}
    active: ClassVar[int] = 0
    max_active: ClassVar[int] = 0
    closed: ClassVar[int] = 0

    def __init__(self, provider: ProviderConfig, model: ModelConfig) -> None:
        super().__init__(provider, model)
        self._identity = BackendIdentity(provider=provider.provider, model=model.name, api_url=provider.api_url)

    @staticmethod
    def fetch_provider_type() -> str:
        return ""

    @property
    def identity(self) -> BackendIdentity:
        return self._identity

    async def translate(self, prompt: str) -> str:
        DummyBackend.prompts.append((self._identity.model, prompt))
        DummyBackend.active += 1
        DummyBackend.max_active = max(DummyBackend.max_active, DummyBackend.active)
        try:
            text: str = prompt.rsplit(": ", 1)[-1]
            await asyncio.sleep(DummyBackend.delays.get(text, 0))
            if self._identity.model in DummyBackend.fail_models:
                msg = "status 500: upstream failure"
                raise BackendRequestError(msg)
            if text == "Hello":
                return "Bonjour"
            return f"{text} [{self._identity.model}]"
        finally:
            DummyBackend.active -= 1

    async def close(self) -> None:
        DummyBackend.closed += 1


class BrokenCache(CacheInterface):
    async def get(self, key: str) -> str | None:
        msg = "cache down"
        raise CacheUnavailableError(msg)

    async def set(self, key: str, value: str, ttl: float) -> None:
        msg = "cache down"
        raise CacheUnavailableError(msg)

    async def clear(self) -> None:
        pass

    async def close(self) -> None:
        pass


@pytest.fixture(autouse=True)
def reset_dummy_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(BackendInterface, "registered", {"dummy": DummyBackend})
    DummyBackend.prompts = []
    DummyBackend.fail_models = set()
    DummyBackend.delays = {}
    DummyBackend.active = 0
    DummyBackend.max_active = 0
    DummyBackend.closed = 0


@pytest.fixture
def registry() -> ModelRegistry:
    return ModelRegistry.build(
        [
            ProviderConfig(
                provider="alpha",
                type="dummy",
                api_url="http://alpha.invalid/chat",
                models=[ModelConfig(name="a1", weight=1), ModelConfig(name="a2", weight=0)],
            ),
            ProviderConfig(
                provider="beta",
                type="dummy",
                api_url="http://beta.invalid/chat",
                is_default=True,
                models=[ModelConfig(name="b1", weight=0)],
            ),
        ],
        rng=random.Random(0),
    )


@pytest.fixture
async def cache() -> AsyncIterator[MemoryCache]:
    memory = MemoryCache(sweep_interval=0)
    yield memory
    await memory.close()


@pytest.fixture
def manager(registry: ModelRegistry, cache: MemoryCache) -> TransManager:
    return TransManager(registry, cache=cache, prompt_template=TEMPLATE)


@pytest.mark.asyncio
async def test_translation_is_cached_and_served_without_backend_call(
    manager: TransManager, cache: MemoryCache
) -> None:
    first: str = await manager.translate("", "", "", "Hello", "en", "fr")

    key: str = StringUtils.generate_cache_key("Hello", "en", "fr")
    stored: str | None = await cache.get(key)
    assert first == "Bonjour"
    assert stored is not None
    assert CacheEntry.from_json(stored) == CacheEntry(
        translation="Bonjour", provider="alpha", api_url="http://alpha.invalid/chat", model="a1"
    )

    second: TranslationOutcome = await manager.translate_with_details("", "", "", "Hello", "en", "fr")

    assert second.text == "Bonjour"
    assert second.cache_hit is True
    assert second.cache_key == key
    assert second.identity == BackendIdentity(provider="alpha", model="a1", api_url="http://alpha.invalid/chat")
    assert len(DummyBackend.prompts) == 1


@pytest.mark.asyncio
async def test_prompt_uses_language_names(manager: TransManager) -> None:
    await manager.translate("", "", "", "Hello", "en", "fr")

    assert DummyBackend.prompts == [("a1", "English -> French: Hello")]


@pytest.mark.asyncio
async def test_per_call_template_overrides_manager_template(manager: TransManager) -> None:
    await manager.translate("", "", "Into {{target_lang}}: {{input}}", "Good night", "", "ja")

    assert DummyBackend.prompts == [("a1", "Into Japanese: Good night")]


@pytest.mark.asyncio
async def test_template_without_input_is_rejected_before_backend_call(manager: TransManager) -> None:
    with pytest.raises(PromptTemplateError):
        await manager.translate("", "", "Translate to {{target_lang}}", "Hello", "en", "fr")

    assert DummyBackend.prompts == []


@pytest.mark.asyncio
@pytest.mark.parametrize(("text", "target"), [("", "fr"), ("Hello", "")])
async def test_missing_text_or_target_is_invalid(manager: TransManager, text: str, target: str) -> None:
    with pytest.raises(InvalidRequestError):
        await manager.translate("", "", "", text, "en", target)

    assert DummyBackend.prompts == []


@pytest.mark.asyncio
async def test_exact_provider_and_model_selects_that_backend(manager: TransManager) -> None:
    outcome: TranslationOutcome = await manager.translate_with_details("alpha", "a2", "", "Tea", "en", "fr")

    assert outcome.identity.model == "a2"
    assert outcome.text == "Tea [a2]"


@pytest.mark.asyncio
async def test_unknown_model_falls_back_to_default(manager: TransManager, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)

    outcome: TranslationOutcome = await manager.translate_with_details("alpha", "missing", "", "Tea", "en", "fr")

    assert outcome.identity.model == "b1"
    assert any("Falling back to the default backend" in rec.message for rec in caplog.records)


@pytest.mark.asyncio
async def test_provider_without_model_uses_weighted_selection(manager: TransManager) -> None:
    outcome: TranslationOutcome = await manager.translate_with_details("beta", "", "", "Tea", "en", "fr")

    # b1 has weight 0, a1 carries the whole weight.
    assert outcome.identity.model == "a1"


@pytest.mark.asyncio
async def test_backend_failure_is_wrapped_and_not_cached(manager: TransManager, cache: MemoryCache) -> None:
    DummyBackend.fail_models = {"a1"}

    with pytest.raises(TranslationFailedError) as exc_info:
        await manager.translate("", "", "", "Hello", "en", "fr")

    assert exc_info.value.identity.model == "a1"
    assert isinstance(exc_info.value.__cause__, BackendRequestError)
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_cache_failures_are_soft(registry: ModelRegistry) -> None:
    manager = TransManager(registry, cache=BrokenCache(), prompt_template=TEMPLATE)

    assert await manager.translate("", "", "", "Hello", "en", "fr") == "Bonjour"
    assert await manager.translate("", "", "", "Hello", "en", "fr") == "Bonjour"
    assert len(DummyBackend.prompts) == 2


@pytest.mark.asyncio
async def test_undecodable_cache_entry_is_a_miss(manager: TransManager, cache: MemoryCache) -> None:
    await cache.set(StringUtils.generate_cache_key("Hello", "en", "fr"), "not json", 0)

    assert await manager.translate("", "", "", "Hello", "en", "fr") == "Bonjour"
    assert len(DummyBackend.prompts) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload", ["null", '["Bonjour"]', "42", '"Bonjour"', '{"translation": null}', '{"translation": 7}']
)
async def test_non_object_cache_entry_is_a_miss(manager: TransManager, cache: MemoryCache, payload: str) -> None:
    cache_key: str = StringUtils.generate_cache_key("Hello", "en", "fr")
    await cache.set(cache_key, payload, 0)

    assert await manager.translate("", "", "", "Hello", "en", "fr") == "Bonjour"
    assert len(DummyBackend.prompts) == 1
    stored: str | None = await cache.get(cache_key)
    assert stored is not None
    assert CacheEntry.from_json(stored).translation == "Bonjour"


@pytest.mark.asyncio
async def test_corrupt_entry_falls_through_to_legacy_key(manager: TransManager, cache: MemoryCache) -> None:
    await cache.set(StringUtils.generate_cache_key("Hello", "en", "de"), "[]", 0)
    legacy_key: str = StringUtils.generate_legacy_cache_key("Hello", "en", "de")
    await cache.set(legacy_key, CacheEntry(translation="Hallo", provider="old", model="m").to_json(), 0)

    assert await manager.translate("", "", "", "Hello", "en", "de") == "Hallo"
    assert DummyBackend.prompts == []


@pytest.mark.asyncio
async def test_legacy_cache_entry_is_served_and_migrated(manager: TransManager, cache: MemoryCache) -> None:
    legacy_key: str = StringUtils.generate_legacy_cache_key("Hello", "en", "de")
    await cache.set(legacy_key, CacheEntry(translation="Hallo", provider="old", model="m").to_json(), 0)

    outcome: TranslationOutcome = await manager.translate_with_details("", "", "", "Hello", "en", "de")

    assert outcome.text == "Hallo"
    assert outcome.cache_hit is True
    assert DummyBackend.prompts == []
    migrated: str | None = await cache.get(StringUtils.generate_cache_key("Hello", "en", "de"))
    assert migrated is not None
    assert CacheEntry.from_json(migrated).translation == "Hallo"


@pytest.mark.asyncio
async def test_manager_without_cache_always_calls_backend(registry: ModelRegistry) -> None:
    manager = TransManager(registry, prompt_template=TEMPLATE)

    await manager.translate("", "", "", "Hello", "en", "fr")
    outcome: TranslationOutcome = await manager.translate_with_details("", "", "", "Hello", "en", "fr")

    assert outcome.cache_hit is False
    assert len(DummyBackend.prompts) == 2


@pytest.mark.asyncio
async def test_telemetry_record_is_emitted_for_miss_and_hit(registry: ModelRegistry, cache: MemoryCache) -> None:
    recorder = MagicMock(spec=TranslationRecorder)
    manager = TransManager(registry, cache=cache, recorder=recorder, prompt_template=TEMPLATE)

    await manager.translate("", "", "", "Hello", "en", "fr")
    await manager.translate("", "", "", "Hello", "en", "fr")

    records: list[TranslationRecord] = [call.args[0] for call in recorder.log_translation.call_args_list]
    assert [record.cache_hit for record in records] == [False, True]
    assert records[0].source_text == "Hello"
    assert records[0].target_text == "Bonjour"
    assert records[0].provider == "alpha"
    assert records[0].model == "a1"
    assert records[0].cache_key == StringUtils.generate_cache_key("Hello", "en", "fr")
    assert records[1].model == "a1"


@pytest.mark.asyncio
async def test_full_telemetry_queue_does_not_fail_translation(registry: ModelRegistry) -> None:
    recorder = MagicMock(spec=TranslationRecorder)
    recorder.log_translation.side_effect = TelemetryQueueFullError("Telemetry queue is full")
    manager = TransManager(registry, recorder=recorder, prompt_template=TEMPLATE)

    assert await manager.translate("", "", "", "Hello", "en", "fr") == "Bonjour"


@pytest.mark.asyncio
async def test_batch_preserves_order_and_isolates_failures(manager: TransManager) -> None:
    DummyBackend.delays = {"first": 0.05, "third": 0.01}
    requests: list[TranslateRequest] = [
        TranslateRequest(text="first", target_lang="fr"),
        TranslateRequest(text="", target_lang="fr"),
        TranslateRequest(text="third", target_lang="fr"),
        TranslateRequest(text="Hello", target_lang="fr", source_lang="en"),
    ]

    results: list[BatchItemResult] = await manager.batch_translate(requests)

    assert [result.index for result in results] == [0, 1, 2, 3]
    assert [result.ok for result in results] == [True, False, True, True]
    assert results[0].text == "first [a1]"
    assert isinstance(results[1].error, InvalidRequestError)
    assert results[2].text == "third [a1]"
    assert results[3].text == "Bonjour"


@pytest.mark.asyncio
async def test_batch_limits_concurrency(manager: TransManager) -> None:
    DummyBackend.delays = {f"text{index}": 0.01 for index in range(8)}
    requests: list[TranslateRequest] = [TranslateRequest(text=f"text{index}", target_lang="fr") for index in range(8)]

    results: list[BatchItemResult] = await manager.batch_translate(requests, max_concurrent=2)

    assert all(result.ok for result in results)
    assert DummyBackend.max_active == 2


@pytest.mark.asyncio
async def test_batch_reports_backend_failure_per_item(manager: TransManager) -> None:
    DummyBackend.fail_models = {"a2"}
    requests: list[TranslateRequest] = [
        TranslateRequest(text="one", target_lang="fr", provider="alpha", model="a2"),
        TranslateRequest(text="two", target_lang="fr", provider="alpha", model="a1"),
    ]

    results: list[BatchItemResult] = await manager.batch_translate(requests)

    assert isinstance(results[0].error, TranslationFailedError)
    assert results[1].text == "two [a1]"


@pytest.mark.asyncio
async def test_batch_rejects_too_many_texts(manager: TransManager) -> None:
    requests: list[TranslateRequest] = [TranslateRequest(text=str(index), target_lang="fr") for index in range(51)]

    with pytest.raises(InvalidRequestError, match="maximum allowed is 50"):
        await manager.batch_translate(requests)

    assert DummyBackend.prompts == []


def test_invalid_default_template_is_rejected(registry: ModelRegistry) -> None:
    with pytest.raises(PromptTemplateError):
        TransManager(registry, prompt_template="Translate this")


def test_list_models(manager: TransManager) -> None:
    assert [identity.model for identity in manager.list_models()] == ["a1", "a2", "b1"]
    assert manager.list_models_by_provider("alpha") == ["a1", "a2"]
    assert manager.list_models_by_provider("gamma") == []


@pytest.mark.parametrize(("code", "expected"), [("fr", True), ("pt-BR", True), ("xx", False)])
def test_validate_language(code: str, expected: bool) -> None:
    assert TransManager.validate_language(code) is expected


@pytest.mark.asyncio
async def test_close_shuts_down_recorder_cache_and_backends_once(registry: ModelRegistry) -> None:
    recorder = MagicMock(spec=TranslationRecorder)
    recorder.close = AsyncMock()
    cache = MagicMock(spec=CacheInterface)
    cache.close = AsyncMock()
    manager = TransManager(registry, cache=cache, recorder=recorder)

    await manager.close()
    await manager.close()

    recorder.close.assert_awaited_once()
    cache.close.assert_awaited_once()
    assert DummyBackend.closed == 3


@pytest.mark.asyncio
async def test_close_continues_after_cache_error(registry: ModelRegistry) -> None:
    cache = MagicMock(spec=CacheInterface)
    cache.close = AsyncMock(side_effect=CacheUnavailableError("cache down"))
    manager = TransManager(registry, cache=cache)

    await manager.close()

    assert DummyBackend.closed == 3
