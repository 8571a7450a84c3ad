#!/usr/bin/env python3
"""
Frame Decoder
=============

Incremental extraction of JSON frames from a chunked byte stream.

Ollama streams one JSON object per response unit, but the transport is free
to cut chunks anywhere: mid-object, mid-line, even mid-character. The decoder
appends every chunk to a buffer and pulls out only the frames that are
complete. Leftover bytes stay in the buffer verbatim until more data arrives.

Every decode attempt is a pure function of the buffer contents.
"""

import json
import logging
from typing import Any, Dict, List, Tuple

from localchat.exceptions import FrameDecodeError

logger = logging.getLogger("FrameDecoder")

_WHITESPACE = " \t\r\n"


class FrameDecoder:
    """
    Append-only buffer that yields complete JSON objects.

    - Never yields a partial frame.
    - Never drops bytes that could still become a valid frame.
    - A truncated multi-byte UTF-8 sequence at the tail defers decoding.
    - Malformed data that is already terminated by a line break is a
      FrameDecodeError: logged, the line is skipped, decoding continues.
    """

    def __init__(self):
        self._buffer = bytearray()
        self._json = json.JSONDecoder()
        self.skipped_frames = 0

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet part of a yielded frame."""
        return bytes(self._buffer)

    def feed(self, chunk: bytes) -> List[Dict[str, Any]]:
        """Append a chunk and return every frame it completed, in order."""
        if chunk:
            self._buffer.extend(chunk)
        frames, rest = self._extract(bytes(self._buffer))
        self._buffer = bytearray(rest)
        return frames

    def flush(self) -> List[Dict[str, Any]]:
        """
        End of stream. Decode what is left; anything undecodable is
        discarded with a log line because no more bytes will come.
        """
        frames, rest = self._extract(bytes(self._buffer), final=True)
        if rest.strip():
            self.skipped_frames += 1
            logger.warning(
                "Discarding %d undecodable trailing bytes: %r",
                len(rest),
                rest[:100],
            )
        self._buffer = bytearray()
        return frames

    # --- Internals ---

    def _extract(
        self, data: bytes, final: bool = False
    ) -> Tuple[List[Dict[str, Any]], bytes]:
        frames: List[Dict[str, Any]] = []

        while data:
            text, data, tail = self._decode_text(data, final)
            if text is None:
                # Truncated multi-byte character: wait for the next chunk.
                return frames, data

            index = 0
            length = len(text)
            while index < length:
                # 1. Skip inter-frame whitespace
                while index < length and text[index] in _WHITESPACE:
                    index += 1
                if index >= length:
                    break

                # 2. Try one frame at this position
                try:
                    obj, end = self._json.raw_decode(text, index)
                except json.JSONDecodeError as e:
                    line_end = text.find("\n", index)
                    if line_end != -1 and e.pos > line_end:
                        # Frames are single lines: the object at `index` never
                        # closed on its own line. Skip that line only.
                        self._report(
                            FrameDecodeError(
                                f"Malformed frame: {e.msg}",
                                raw_frame=text[index:line_end].encode("utf-8"),
                            )
                        )
                        index = line_end + 1
                        continue

                    newline = text.find("\n", e.pos)
                    if newline == -1:
                        # Incomplete: keep everything from here verbatim.
                        rest = text[index:].encode("utf-8") + tail
                        return frames, rest
                    self._report(
                        FrameDecodeError(
                            f"Malformed frame: {e.msg}",
                            raw_frame=text[index:newline].encode("utf-8"),
                        )
                    )
                    index = newline + 1
                    continue

                # 3. Frames are objects; anything else is garbage on the line.
                if not isinstance(obj, dict):
                    self._report(
                        FrameDecodeError(
                            f"Frame is not an object: {type(obj).__name__}",
                            raw_frame=text[index:end].encode("utf-8"),
                        )
                    )
                else:
                    frames.append(obj)
                index = end

            data = tail

        return frames, b""

    def _decode_text(self, data: bytes, final: bool):
        """
        Split `data` into (text, pending, tail).

        text is None when the buffer ends in a truncated character; pending
        then holds the untouched bytes. Invalid bytes in the middle of the
        buffer cut the decodable prefix short; the bytes after the next line
        break become `tail` and are decoded on the next pass.
        """
        try:
            return data.decode("utf-8"), b"", b""
        except UnicodeDecodeError as e:
            truncated_tail = e.end == len(data) and e.reason == "unexpected end of data"
            if truncated_tail and not final:
                if e.start == 0:
                    return None, data, b""
                # Decode the complete prefix now, keep the partial character.
                return data[: e.start].decode("utf-8"), b"", data[e.start :]

            # Invalid bytes: skip through the end of the line that holds them.
            newline = data.find(b"\n", e.start)
            bad_end = len(data) if newline == -1 else newline + 1
            line_start = data.rfind(b"\n", 0, e.start) + 1
            self._report(
                FrameDecodeError(
                    f"Invalid UTF-8 in frame: {e.reason}",
                    raw_frame=data[line_start:bad_end],
                )
            )
            prefix = data[:line_start].decode("utf-8", errors="strict")
            return prefix, b"", data[bad_end:]

    def _report(self, error: FrameDecodeError) -> None:
        self.skipped_frames += 1
        logger.warning("%s (raw=%r)", error.message, (error.raw_frame or b"")[:100])
