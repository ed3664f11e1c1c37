"""
Google Gemini provider — streams via the google-genai SDK.

Candidate models (see config.DEFAULT_MODEL_CANDIDATES):
  gemini-2.5-flash      primary — fast, multimodal
  gemini-flash-latest   stable alias fallback
  gemini-pro-latest     slower, last resort
"""
from __future__ import annotations

import logging
from typing import AsyncIterator

from google import genai
from google.genai import types as genai_types

import config
from providers.base import AnalysisRequest, StreamingProvider

logger = logging.getLogger(__name__)


class GeminiProvider(StreamingProvider):

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash"):
        self.name     = "google"
        self.model_id = model
        self._client  = genai.Client(api_key=api_key)

    async def stream(self, request: AnalysisRequest) -> AsyncIterator[str]:
        gen_config = genai_types.GenerateContentConfig(
            system_instruction=request.system_prompt,
            temperature=config.TEMPERATURE,
            max_output_tokens=config.MAX_OUTPUT_TOKENS,
        )
        contents = [request.user_prompt] + [
            genai_types.Part.from_bytes(data=img.data, mime_type=img.mime_type)
            for img in request.images
        ]

        response = await self._client.aio.models.generate_content_stream(
            model=self.model_id,
            contents=contents,
            config=gen_config,
        )
        async for chunk in response:
            if chunk.text:
                yield chunk.text
