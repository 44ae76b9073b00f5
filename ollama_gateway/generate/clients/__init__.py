from .ollama_client import OllamaClient

__all__ = ["OllamaClient"]
