# Non-streaming generation: validates requests, builds chat prompts, and
# hands the work to a backend client.

from __future__ import annotations
from typing import Any, List, Mapping, Optional

from ..errors import ValidationError
from ..settings import RelayConfig
from .types import GenerationRequest, GenerationResult, Message, compose_chat_prompt


class TextGenerator:
    def __init__(self, model_client, config: RelayConfig):
        self.model_client = model_client
        self.config = config

    def build_request(
        self,
        prompt: Any,
        model: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> GenerationRequest:
        return GenerationRequest.create(
            prompt,
            model=model,
            options=options,
            defaults=self.config.default_options,
            default_model=self.config.default_model,
        )

    def generate(
        self,
        prompt: Any,
        model: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> GenerationResult:
        """Single-shot generation for one prompt."""
        return self.model_client.generate(self.build_request(prompt, model, options))

    def chat(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> GenerationResult:
        """Flatten the conversation into one prompt and generate the assistant turn."""
        if not messages:
            raise ValidationError("Messages array is required and must not be empty")
        return self.generate(compose_chat_prompt(messages), model, options)
