from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Dict


class ByteStream(ABC):
    """
    A response body being read chunk by chunk.
    """

    @abstractmethod
    async def read_chunk(self) -> bytes:
        """
        Next chunk in arrival order. Returns b"" once the body is exhausted.

        Raises:
            ModelConnectionError: If the transport breaks mid-read.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Stop reading and release the underlying connection."""
        pass


class BaseProvider(ABC):
    """
    The Abstract Base Class (Contract) for model servers.
    """

    @abstractmethod
    def open_chat_stream(self, payload: Dict[str, Any]) -> AsyncContextManager[ByteStream]:
        """
        Send a streaming chat request.

        Entering the context connects and checks the response status; the
        yielded stream carries the raw body.

        Raises:
            ModelConnectionError: If the server cannot be reached or rejects the request.
        """
        pass

    @abstractmethod
    async def generate(self, model: str, prompt: str) -> str:
        """
        One-shot, non-streaming completion. Returns the response text.
        """
        pass

    @abstractmethod
    async def validate_connection(self) -> bool:
        """
        Ping the server to ensure availability.
        """
        pass

    async def close(self) -> None:
        """Release pooled connections."""
        return None
