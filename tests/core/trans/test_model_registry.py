"""Tests for ModelRegistry construction and selection."""

from __future__ import annotations

import random
from collections import Counter
from typing import ClassVar

import pytest

from core.trans.engines import OllamaChatBackend, OpenAIChatBackend
from core.trans.interface import BackendInterface, GatewayConfigError, ModelNotFoundError
from core.trans.registry import ModelRegistry
from models.config_models import ModelConfig, ProviderConfig
from models.translation_models import BackendIdentity


class StubBackend(BackendInterface):
    closed: ClassVar[list[BackendIdentity]] = []
    fail_close: ClassVar[set[str]] = set()

    def __init__(self, provider: ProviderConfig, model: ModelConfig) -> None:
        super().__init__(provider, model)
        self._identity = BackendIdentity(provider=provider.provider, model=model.name, api_url=provider.api_url)

    @staticmethod
    def fetch_provider_type() -> str:
        # Registered per test through the registry fixture.
        return ""

    @property
    def identity(self) -> BackendIdentity:
        return self._identity

    async def translate(self, prompt: str) -> str:
        return prompt

    async def close(self) -> None:
        StubBackend.closed.append(self._identity)
        if self._identity.model in StubBackend.fail_close:
            msg = f"close failed for {self._identity.model}"
            raise RuntimeError(msg)


@pytest.fixture(autouse=True)
def stub_registered(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        BackendInterface,
        "registered",
        {"stub": StubBackend, "openai": OpenAIChatBackend, "ollama": OllamaChatBackend},
    )
    StubBackend.closed = []
    StubBackend.fail_close = set()


def _provider(name: str, *models: ModelConfig, is_default: bool = False, type_: str = "stub") -> ProviderConfig:
    return ProviderConfig(
        provider=name,
        type=type_,
        api_url=f"http://{name}.invalid/chat",
        is_default=is_default,
        models=list(models),
    )


def test_build_creates_backend_classes_by_provider_type() -> None:
    registry: ModelRegistry = ModelRegistry.build(
        [
            _provider("openai", ModelConfig(name="gpt-4o-mini"), type_="openai"),
            _provider("local", ModelConfig(name="qwen"), type_="ollama"),
        ]
    )

    assert isinstance(registry.get_exact("openai", "gpt-4o-mini"), OpenAIChatBackend)
    assert isinstance(registry.get_exact("local", "qwen"), OllamaChatBackend)


def test_build_rejects_empty_provider_list() -> None:
    with pytest.raises(GatewayConfigError, match="No translation providers"):
        ModelRegistry.build([])


def test_build_rejects_unknown_provider_type() -> None:
    with pytest.raises(GatewayConfigError, match="Unknown provider type 'gemini'"):
        ModelRegistry.build([_provider("g", ModelConfig(name="m"), type_="gemini")])


def test_build_rejects_provider_without_models() -> None:
    with pytest.raises(GatewayConfigError, match="has no models"):
        ModelRegistry.build([_provider("a")])


def test_build_rejects_negative_weight() -> None:
    with pytest.raises(GatewayConfigError, match="Negative weight"):
        ModelRegistry.build([_provider("a", ModelConfig(name="m", weight=-1))])


def test_build_rejects_duplicate_identity() -> None:
    with pytest.raises(GatewayConfigError, match="more than once"):
        ModelRegistry.build([_provider("a", ModelConfig(name="m"), ModelConfig(name="m"))])


def test_default_is_first_model_of_first_default_provider() -> None:
    registry: ModelRegistry = ModelRegistry.build(
        [
            _provider("a", ModelConfig(name="a1")),
            _provider("b", ModelConfig(name="b1"), ModelConfig(name="b2"), is_default=True),
            _provider("c", ModelConfig(name="c1"), is_default=True),
        ]
    )

    assert registry.get_default().identity.model == "b1"


def test_default_is_first_declared_backend_without_default_provider() -> None:
    registry: ModelRegistry = ModelRegistry.build(
        [_provider("a", ModelConfig(name="a1"), ModelConfig(name="a2")), _provider("b", ModelConfig(name="b1"))]
    )

    assert registry.get_default().identity.model == "a1"


def test_get_exact_raises_for_unknown_pair() -> None:
    registry: ModelRegistry = ModelRegistry.build([_provider("a", ModelConfig(name="a1"))])

    with pytest.raises(ModelNotFoundError):
        registry.get_exact("a", "missing")
    with pytest.raises(ModelNotFoundError):
        registry.get_exact("missing", "a1")


def test_get_exact_prefers_first_declaration_of_same_pair() -> None:
    first = ProviderConfig(provider="a", type="stub", api_url="http://one.invalid", models=[ModelConfig(name="m")])
    second = ProviderConfig(provider="a", type="stub", api_url="http://two.invalid", models=[ModelConfig(name="m")])

    registry: ModelRegistry = ModelRegistry.build([first, second])

    assert registry.get_exact("a", "m").identity.api_url == "http://one.invalid"


def test_weighted_selection_follows_weights() -> None:
    registry: ModelRegistry = ModelRegistry.build(
        [_provider("p", ModelConfig(name="A", weight=1), ModelConfig(name="B", weight=3))],
        rng=random.Random(12345),
    )

    counts: Counter[str] = Counter(registry.get_weighted().identity.model for _ in range(10_000))

    assert set(counts) == {"A", "B"}
    assert 2.7 <= counts["B"] / counts["A"] <= 3.3


def test_weighted_selection_never_picks_zero_weight() -> None:
    registry: ModelRegistry = ModelRegistry.build(
        [_provider("p", ModelConfig(name="zero", weight=0), ModelConfig(name="one", weight=1))],
        rng=random.Random(1),
    )

    assert {registry.get_weighted().identity.model for _ in range(500)} == {"one"}


def test_weighted_selection_with_zero_total_returns_default() -> None:
    registry: ModelRegistry = ModelRegistry.build(
        [
            _provider("a", ModelConfig(name="a1", weight=0)),
            _provider("b", ModelConfig(name="b1", weight=0), is_default=True),
        ]
    )

    assert registry.total_weight == 0
    assert all(registry.get_weighted().identity.model == "b1" for _ in range(20))


def test_weighted_selection_is_reproducible_with_seeded_rng() -> None:
    providers: list[ProviderConfig] = [
        _provider("p", ModelConfig(name="A", weight=2), ModelConfig(name="B", weight=5), ModelConfig(name="C"))
    ]
    first: ModelRegistry = ModelRegistry.build(providers, rng=random.Random(7))
    second: ModelRegistry = ModelRegistry.build(providers, rng=random.Random(7))

    assert [first.get_weighted().identity.model for _ in range(50)] == [
        second.get_weighted().identity.model for _ in range(50)
    ]


def test_list_all_and_list_by_provider_keep_declaration_order() -> None:
    registry: ModelRegistry = ModelRegistry.build(
        [
            _provider("b", ModelConfig(name="z"), ModelConfig(name="y")),
            _provider("a", ModelConfig(name="x")),
        ]
    )

    assert [(identity.provider, identity.model) for identity in registry.list_all()] == [
        ("b", "z"),
        ("b", "y"),
        ("a", "x"),
    ]
    assert registry.list_by_provider("b") == ["z", "y"]
    assert registry.list_by_provider("unknown") == []


@pytest.mark.asyncio
async def test_close_closes_every_backend_and_reraises_last_error() -> None:
    registry: ModelRegistry = ModelRegistry.build(
        [_provider("p", ModelConfig(name="one"), ModelConfig(name="two"), ModelConfig(name="three"))]
    )
    StubBackend.fail_close = {"one", "two"}

    with pytest.raises(RuntimeError, match="two"):
        await registry.close()

    assert [identity.model for identity in StubBackend.closed] == ["one", "two", "three"]


@pytest.mark.parametrize(
    ("weights", "default_index"),
    [([1], 0), ([1, 1], 2), ([1, -1], 0)],
)
def test_constructor_rejects_inconsistent_arguments(weights: list[int], default_index: int) -> None:
    backends: list[BackendInterface] = [
        StubBackend(_provider("p"), ModelConfig(name="a")),
        StubBackend(_provider("p"), ModelConfig(name="b")),
    ]

    with pytest.raises(GatewayConfigError):
        ModelRegistry(backends, weights, default_index)
