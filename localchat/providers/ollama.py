#!/usr/bin/env python3
"""
Ollama Provider
===============

aiohttp transport for the two Ollama endpoints the engine needs:
- /api/chat      streaming, raw chunked body handed to the frame decoder
- /api/generate  one-shot, used for follow-up suggestions
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import aiohttp

from localchat.config.settings import Settings
from localchat.exceptions import ModelConnectionError
from localchat.providers.base import BaseProvider, ByteStream

logger = logging.getLogger("OllamaProvider")


class AiohttpByteStream(ByteStream):
    """ByteStream over an aiohttp response body."""

    def __init__(self, response: aiohttp.ClientResponse):
        self._response = response

    async def read_chunk(self) -> bytes:
        try:
            return await self._response.content.readany()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ModelConnectionError(
                f"Failed to read response chunk: {e}", original_error=e
            ) from e

    async def close(self) -> None:
        # close() drops the connection instead of draining the rest of the body.
        self._response.close()


class OllamaProvider(BaseProvider):
    """
    Adapter for a local Ollama server.
    """

    def __init__(self, settings: Settings):
        self.chat_url = settings.chat_url
        self.generate_url = settings.generate_url
        self.tags_url = f"{settings.ollama_host}/api/tags"
        self.timeout = settings.request_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """
        Get or create the shared aiohttp session.

        One session per provider keeps the connection pool shared across
        concurrent chats.
        """
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    @asynccontextmanager
    async def open_chat_stream(
        self, payload: Dict[str, Any]
    ) -> AsyncIterator[ByteStream]:
        session = await self._get_session()
        logger.debug(
            "POST %s model=%s messages=%d",
            self.chat_url,
            payload.get("model"),
            len(payload.get("messages", [])),
        )

        try:
            response = await session.post(self.chat_url, json=payload)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ModelConnectionError(
                f"Failed to connect to Ollama at {self.chat_url}: {e}",
                original_error=e,
            ) from e

        try:
            await self._check_error_status(response, payload.get("model"))
            yield AiohttpByteStream(response)
        finally:
            response.release()

    async def generate(self, model: str, prompt: str) -> str:
        session = await self._get_session()
        payload = {"model": model, "prompt": prompt, "stream": False}

        try:
            async with session.post(self.generate_url, json=payload) as response:
                await self._check_error_status(response, model)
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            raise ModelConnectionError(
                f"Generate request failed: {e}", original_error=e
            ) from e

        if not isinstance(data, dict) or not isinstance(data.get("response"), str):
            raise ModelConnectionError(
                "Generate response is missing the 'response' field",
                details={"model": model},
            )
        return data["response"]

    async def validate_connection(self) -> bool:
        session = await self._get_session()
        try:
            async with session.get(self.tags_url) as response:
                return response.status < 400
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Ollama Connection Failed: {e}")
            return False

    async def _check_error_status(
        self, response: aiohttp.ClientResponse, model: Optional[str]
    ) -> None:
        """
        Raise ModelConnectionError for HTTP error statuses.
        """
        if response.status < 400:
            return

        error_text = await response.text()
        try:
            error_text = str(json.loads(error_text).get("error", error_text))
        except (ValueError, AttributeError):
            pass

        if response.status == 404:
            message = f"Model '{model}' not found on the Ollama server: {error_text}"
        elif response.status >= 500:
            message = f"Ollama server error ({response.status}): {error_text[:300]}"
        else:
            message = f"Ollama rejected the request ({response.status}): {error_text[:300]}"

        logger.warning(message)
        raise ModelConnectionError(
            message,
            status_code=response.status,
            details={"model": model, "status_code": response.status},
        )

    async def close(self) -> None:
        """
        Close the HTTP session.
        """
        if self._session and not self._session.closed:
            await self._session.close()
