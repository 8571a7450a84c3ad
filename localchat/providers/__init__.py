"""Model server transports."""

from localchat.config.settings import Settings

from .base import BaseProvider, ByteStream
from .decoder import FrameDecoder
from .ollama import OllamaProvider


def create_provider(settings: Settings) -> BaseProvider:
    """Instantiate the configured provider implementation."""
    return OllamaProvider(settings)


__all__ = [
    "BaseProvider",
    "ByteStream",
    "FrameDecoder",
    "OllamaProvider",
    "create_provider",
]
