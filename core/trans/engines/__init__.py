"""Translation backend implementations.

Importing this package registers every bundled backend class with `BackendInterface`
under its provider-type tag.

Modules:
- ChatBackend: Shared request/retry logic for chat-completion endpoints.
- OpenAIChatBackend: OpenAI-compatible chat completions ("openai").
- OllamaChatBackend: Ollama chat API ("ollama").
"""

from core.trans.engines.chat_backend import ChatBackend
from core.trans.engines.ollama_chat import OllamaChatBackend
from core.trans.engines.openai_chat import OpenAIChatBackend

__all__: list[str] = ["ChatBackend", "OllamaChatBackend", "OpenAIChatBackend"]
