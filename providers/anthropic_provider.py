"""
Anthropic provider — streaming messages with base64 image blocks.

Only used when an "anthropic/<model>" entry is listed in MODEL_CANDIDATES.
"""
from __future__ import annotations

import base64
import logging
from typing import AsyncIterator

import anthropic

import config
from providers.base import AnalysisRequest, StreamingProvider

logger = logging.getLogger(__name__)

# Anthropic only accepts these; anything else is sent as jpeg
_MEDIA_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}


class AnthropicProvider(StreamingProvider):

    def __init__(self, api_key: str, model: str = "claude-3-5-haiku-latest"):
        self.name = "anthropic"
        self.model_id = model
        self._client = anthropic.AsyncAnthropic(api_key=api_key)

    async def stream(self, request: AnalysisRequest) -> AsyncIterator[str]:
        content: list[dict] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": img.mime_type if img.mime_type in _MEDIA_TYPES else "image/jpeg",
                    "data": base64.b64encode(img.data).decode(),
                },
            }
            for img in request.images
        ]
        content.append({"type": "text", "text": request.user_prompt})

        async with self._client.messages.stream(
            model=self.model_id,
            max_tokens=config.MAX_OUTPUT_TOKENS,
            temperature=config.TEMPERATURE,
            system=request.system_prompt,
            messages=[{"role": "user", "content": content}],
        ) as stream:
            async for text in stream.text_stream:
                if text:
                    yield text
