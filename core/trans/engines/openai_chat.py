from __future__ import annotations

from typing import Any

from core.trans.engines.chat_backend import SYSTEM_PROMPT, ChatBackend
from core.trans.interface import EmptyResultError
from models.chat_models import ChatMessage, OpenAIChatRequest, OpenAIChatResponse

__all__: list[str] = ["OpenAIChatBackend"]


class OpenAIChatBackend(ChatBackend):
    """Backend for OpenAI-compatible ``/chat/completions`` endpoints.

    The prompt is sent as the user message after a fixed translator system message,
    and the translation is read from ``choices[0].message.content``.
    """

    @staticmethod
    def fetch_provider_type() -> str:
        return "openai"

    def build_payload(self, prompt: str) -> dict[str, Any]:
        request = OpenAIChatRequest(
            model=self.identity.model,
            messages=[
                ChatMessage(role="system", content=SYSTEM_PROMPT),
                ChatMessage(role="user", content=prompt),
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        return request.to_dict()

    def extract_content(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            msg = "Response body is not a JSON object"
            raise EmptyResultError(msg)

        response: OpenAIChatResponse = OpenAIChatResponse.from_dict(data, infer_missing=True)
        if not response.choices:
            msg = f"Response from {self.identity} contains no choices"
            raise EmptyResultError(msg)

        message: ChatMessage | None = response.choices[0].message
        return message.content if message is not None else None
