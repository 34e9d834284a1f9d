"""Data models for chat-completion API payloads (OpenAI-compatible and Ollama)."""

from __future__ import annotations

from dataclasses import dataclass, field

from dataclasses_json import DataClassJsonMixin, Undefined, dataclass_json

__all__: list[str] = [
    "ChatMessage",
    "OllamaChatRequest",
    "OllamaChatResponse",
    "OllamaOptions",
    "OpenAIChatRequest",
    "OpenAIChatResponse",
    "OpenAIChoice",
]


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class ChatMessage(DataClassJsonMixin):
    """A single chat message."""

    role: str = ""
    content: str | None = None


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class OpenAIChatRequest(DataClassJsonMixin):
    """Request body for an OpenAI-compatible ``/chat/completions`` endpoint."""

    model: str
    messages: list[ChatMessage]
    max_tokens: int
    temperature: float


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class OpenAIChoice(DataClassJsonMixin):
    """One completion choice."""

    index: int = 0
    message: ChatMessage | None = None
    finish_reason: str | None = None


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class OpenAIChatResponse(DataClassJsonMixin):
    """Subset of the chat completion response used by the gateway."""

    id: str = ""
    model: str = ""
    choices: list[OpenAIChoice] = field(default_factory=list)


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class OllamaOptions(DataClassJsonMixin):
    """Generation options for Ollama. ``num_predict`` is Ollama's token limit."""

    temperature: float
    num_predict: int


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class OllamaChatRequest(DataClassJsonMixin):
    """Request body for Ollama's ``/api/chat`` endpoint."""

    model: str
    messages: list[ChatMessage]
    options: OllamaOptions
    stream: bool = False


@dataclass_json(undefined=Undefined.EXCLUDE)
@dataclass
class OllamaChatResponse(DataClassJsonMixin):
    """Non-streaming response from Ollama's ``/api/chat`` endpoint."""

    model: str = ""
    message: ChatMessage | None = None
    done: bool = False
