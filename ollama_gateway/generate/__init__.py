# Generator package

# Exposes the non-streaming generation interfaces.

from .generator import TextGenerator
from .types import GenerationRequest, GenerationResult, Message, compose_chat_prompt
from .clients.ollama_client import OllamaClient

__all__ = ["TextGenerator", "GenerationRequest", "GenerationResult", "Message", "compose_chat_prompt", "OllamaClient"]
