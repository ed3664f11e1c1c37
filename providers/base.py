"""
Shared types, prompts and base class for all streaming model providers.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator

from sections import SCHEMAS, SectionSpec

logger = logging.getLogger(__name__)

# ── Prompts (shared across all providers) ─────────────────────────────────────

_FORMAT_RULES = """
CRITICAL FORMATTING RULES:
- Do NOT use asterisks (**), bolding, or Markdown formatting.
- Do NOT use emojis.
- Start every section on its own line with the exact uppercase header shown below.
- Output clean, plain text only.
- Keep the whole answer under 180 words.
- If the image is blurry or contains no products, politely ask the user to try again.
"""

SINGLE_SYSTEM_PROMPT = """You are a concise shopping assistant. The user is standing in a store aisle and is in a rush.
Identify the product in the photo and judge it quickly and honestly. Avoid marketing jargon.
""" + _FORMAT_RULES + """
Format your response exactly as follows:
HEADLINE: [Product name and a five-word take]
HEALTH SCORE: [One letter A-E] - [Short reason]
WHO IS THIS FOR? [One sentence]
FLAVOR & TEXTURE:
[Two short lines]
PROS & CONS:
+ [Pro]
+ [Pro]
- [Con]
- [Con]
VERDICT: [One sentence recommendation]
"""

COMPARE_SYSTEM_PROMPT = """You are a concise shopping assistant. The user is standing in a store aisle and is in a rush.
The first photo is Product A, the second photo is Product B. Compare them directly. Avoid marketing jargon.
""" + _FORMAT_RULES + """
Format your response exactly as follows:
HEADLINE: [Both product names]
WINNER: [Product name] - [One sentence why]
HEALTH COMPARISON:
[Product A name]: [One letter A-E] - [Short reason]
[Product B name]: [One letter A-E] - [Short reason]
FLAVOR FACE-OFF:
[Two short lines]
PROS & CONS COMPARISON:
[Product A name]: + [Pro] / - [Con]
[Product B name]: + [Pro] / - [Con]
VERDICT: [One sentence recommendation]
"""

SINGLE_USER_PROMPT = "Analyze the product in this image and give me a quick verdict."
COMPARE_USER_PROMPT = "Compare the products in these two images and tell me which one to buy."


# ── Request types ─────────────────────────────────────────────────────────────

@dataclass
class ImagePart:
    """One decoded image ready to send upstream."""
    data: bytes
    mime_type: str = "image/jpeg"
    data_uri: str = ""          # original data: URI, kept for storage


@dataclass
class AnalysisRequest:
    """Everything a provider needs to run one analysis."""
    mode: str                   # "single" | "compare"
    system_prompt: str
    user_prompt: str
    images: list[ImagePart] = field(default_factory=list)

    @property
    def schema(self) -> tuple[SectionSpec, ...]:
        """Headers the answer is expected to use for this mode."""
        return SCHEMAS[self.mode]


# ── Abstract base ─────────────────────────────────────────────────────────────

class StreamingProvider(ABC):
    """Base class all model providers must implement."""

    name: str           # e.g. "google"
    model_id: str       # e.g. "gemini-2.5-flash"

    @abstractmethod
    def stream(self, request: AnalysisRequest) -> AsyncIterator[str]:
        """
        Yield text fragments for request as they arrive.
        Implementations are async generators; errors surface on iteration.
        """
        ...

    @property
    def full_name(self) -> str:
        return f"{self.name}/{self.model_id}"
