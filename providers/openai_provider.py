"""
OpenAI provider — streaming chat completions with image_url parts.

Only used when an "openai/<model>" entry is listed in MODEL_CANDIDATES,
e.g. MODEL_CANDIDATES=google/gemini-2.5-flash,openai/gpt-4o-mini
"""
from __future__ import annotations

import logging
from typing import AsyncIterator

from openai import AsyncOpenAI

import config
from providers.base import AnalysisRequest, StreamingProvider
from image_analyzer import to_data_uri

logger = logging.getLogger(__name__)


class OpenAIProvider(StreamingProvider):

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        self.name = "openai"
        self.model_id = model
        self._client = AsyncOpenAI(api_key=api_key)

    async def stream(self, request: AnalysisRequest) -> AsyncIterator[str]:
        content: list[dict] = [{"type": "text", "text": request.user_prompt}]
        for img in request.images:
            content.append({
                "type": "image_url",
                "image_url": {
                    "url": img.data_uri or to_data_uri(img.data, img.mime_type),
                    "detail": "high",
                },
            })

        response = await self._client.chat.completions.create(
            model=self.model_id,
            max_tokens=config.MAX_OUTPUT_TOKENS,
            temperature=config.TEMPERATURE,
            stream=True,
            messages=[
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": content},
            ],
        )
        async for chunk in response:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta
