from __future__ import annotations

from typing import Any

from core.trans.engines.chat_backend import ChatBackend
from core.trans.interface import EmptyResultError
from models.chat_models import ChatMessage, OllamaChatRequest, OllamaChatResponse, OllamaOptions

__all__: list[str] = ["OllamaChatBackend"]


class OllamaChatBackend(ChatBackend):
    """Backend for Ollama's ``/api/chat`` endpoint.

    Requests are non-streaming, and the prompt is sent as a single user message.
    The Authorization header is only sent when an API key is configured
    (e.g. when Ollama sits behind an authenticating proxy).
    """

    @staticmethod
    def fetch_provider_type() -> str:
        return "ollama"

    def build_payload(self, prompt: str) -> dict[str, Any]:
        request = OllamaChatRequest(
            model=self.identity.model,
            messages=[ChatMessage(role="user", content=prompt)],
            options=OllamaOptions(temperature=self.temperature, num_predict=self.max_tokens),
            stream=False,
        )
        return request.to_dict()

    def extract_content(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            msg = "Response body is not a JSON object"
            raise EmptyResultError(msg)

        response: OllamaChatResponse = OllamaChatResponse.from_dict(data, infer_missing=True)
        if response.message is None:
            msg = f"Response from {self.identity} contains no message"
            raise EmptyResultError(msg)
        return response.message.content
