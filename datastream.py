"""
datastream.py — the line-prefixed framing used on the /analyze response.

Each frame is one line:  <type>:<json>\\n

  0:"text fragment"             text, concatenated in order by the client
  3:"error message"             upstream failed after streaming started
  d:{"finishReason":"stop"}     end of stream

Older producers sometimes send 0:{"textDelta": "..."} instead of a bare
string; the decoder accepts text / textDelta / content objects too.
"""
from __future__ import annotations

import codecs
import json
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

TEXT   = "0"
ERROR  = "3"
FINISH = "d"


def _frame(kind: str, value: Any) -> bytes:
    return f"{kind}:{json.dumps(value, ensure_ascii=False, separators=(',', ':'))}\n".encode("utf-8")


def encode_text(text: str) -> bytes:
    return _frame(TEXT, text)


def encode_error(message: str) -> bytes:
    return _frame(ERROR, message)


def encode_finish(reason: str = "stop") -> bytes:
    return _frame(FINISH, {"finishReason": reason})


def _text_of(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        text = value.get("textDelta") or value.get("text") or value.get("content") or ""
        return text if isinstance(text, str) else str(text)
    return ""


class DataStreamDecoder:
    """
    Incremental decoder. Feed raw bytes as they arrive; complete lines are
    decoded immediately and the trailing partial line is kept for the next
    read. Call finish() once the body is exhausted.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.text = ""
        self.errors: list[str] = []
        self.finish_reason: Optional[str] = None

    @property
    def complete(self) -> bool:
        """True only if the stream ended with a clean stop frame and no error."""
        return self.finish_reason == "stop" and not self.errors

    def feed(self, chunk: bytes) -> str:
        """Decode chunk; return the text it completed (may be "")."""
        self._buffer += self._utf8.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return self._consume(lines)

    def finish(self) -> str:
        """Flush whatever is left after the last read."""
        self._buffer += self._utf8.decode(b"", final=True)
        lines, self._buffer = self._buffer.split("\n"), ""
        return self._consume(lines)

    def _consume(self, lines: list[str]) -> str:
        added = []
        for line in lines:
            if not line.strip():
                continue
            kind, sep, payload = line.partition(":")
            if not sep or not payload.strip():
                continue
            try:
                value = json.loads(payload)
            except json.JSONDecodeError:
                logger.debug("Skipping undecodable frame: %.80s", line)
                continue

            if kind == TEXT:
                text = _text_of(value)
                if text:
                    added.append(text)
            elif kind == ERROR:
                self.errors.append(value if isinstance(value, str) else json.dumps(value))
            elif kind == FINISH and isinstance(value, dict):
                self.finish_reason = value.get("finishReason")

        new_text = "".join(added)
        self.text += new_text
        return new_text
