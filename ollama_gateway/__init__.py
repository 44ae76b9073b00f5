"""Ollama gateway: HTTP text generation with streamed relay."""

__version__ = "0.3.0"
