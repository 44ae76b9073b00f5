# Typed request/result structures shared by the generator, the backend
# client and the stream relay.

from __future__ import annotations
from dataclasses import dataclass, field
from numbers import Real
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ValidationError


@dataclass
class Message:
    """Single chat turn: system, user, or assistant."""
    role: str
    content: str


@dataclass(frozen=True)
class GenerationRequest:
    """One validated generation request. Immutable once created."""
    prompt: str
    model: str
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def create(
        cls,
        prompt: Any,
        model: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
        defaults: Optional[Mapping[str, Any]] = None,
        default_model: str = "",
    ) -> "GenerationRequest":
        if not isinstance(prompt, str) or not prompt:
            raise ValidationError("Prompt is required and must be a string")
        if options is None:
            options = {}
        if not isinstance(options, Mapping):
            raise ValidationError("Options must be an object")
        if model is not None and not isinstance(model, str):
            raise ValidationError("Model must be a string")

        merged: Dict[str, Any] = {**(defaults or {}), **options}
        temperature = merged.get("temperature")
        if temperature is not None and (isinstance(temperature, bool) or not isinstance(temperature, Real)):
            raise ValidationError("options.temperature must be a number")
        max_tokens = merged.get("maxTokens")
        if max_tokens is not None and (
            isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens <= 0
        ):
            raise ValidationError("options.maxTokens must be a positive integer")

        return cls(prompt=prompt, model=model or default_model, options=MappingProxyType(merged))

    def backend_options(self) -> Dict[str, Any]:
        opts = dict(self.options)
        max_tokens = opts.pop("maxTokens", None)
        if "temperature" in opts:
            opts["temperature"] = float(opts["temperature"])
        if max_tokens is not None:
            opts["num_predict"] = int(max_tokens)
        return opts

    def to_payload(self, stream: bool) -> Dict[str, Any]:
        return {
            "model": self.model,
            "prompt": self.prompt,
            "stream": stream,
            "options": self.backend_options(),
        }


@dataclass
class GenerationResult:
    """Final response of a non-streaming generation."""
    text: str
    model: Optional[str] = None
    done: bool = True


def compose_chat_prompt(messages: List[Message]) -> str:
    """Flatten a conversation into ``role: content`` lines."""
    return "\n".join(f"{m.role}: {m.content}" for m in messages)
