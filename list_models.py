"""
list_models.py — which Gemini models can this key use?

Lists every model that supports generateContent, flags the ones that are
likely vision-capable, and prints the exact names to paste into
MODEL_CANDIDATES.

Usage:  python list_models.py        (reads GOOGLE_GENERATIVE_AI_API_KEY from env/.env)
"""
from __future__ import annotations

import sys
from typing import Any

from google import genai

import config

_VISION_HINTS = ("multimodal", "vision", "image")


def _actions(model: Any) -> list[str]:
    return list(getattr(model, "supported_actions", None) or [])


def likely_vision(model: Any) -> bool:
    name = (getattr(model, "name", "") or "").lower()
    desc = (getattr(model, "description", "") or "").lower()
    limit = getattr(model, "input_token_limit", 0) or 0
    return (
        "flash" in name
        or "pro" in name
        or any(h in desc for h in _VISION_HINTS)
        or limit > 30000
    )


def short_name(model: Any) -> str:
    return (getattr(model, "name", "") or "").removeprefix("models/")


def main() -> int:
    if not config.GOOGLE_API_KEY:
        print("❌ ERROR: GOOGLE_GENERATIVE_AI_API_KEY not found in environment or .env", file=sys.stderr)
        return 1

    client = genai.Client(api_key=config.GOOGLE_API_KEY)
    print("🔍 Fetching available models from Google Generative AI...\n")
    models = list(client.models.list())
    generators = [m for m in models if "generateContent" in _actions(m)]
    print(f"📊 Found {len(models)} total models, {len(generators)} support generateContent\n")

    print("=" * 80)
    print("MODELS SUPPORTING generateContent:")
    print("=" * 80)
    for i, m in enumerate(generators, 1):
        vision = "  ✅ likely vision" if likely_vision(m) else ""
        print(f"{i:>3}. {short_name(m):<40} in={getattr(m, 'input_token_limit', '?')}"
              f" out={getattr(m, 'output_token_limit', '?')}{vision}")

    vision_models = [short_name(m) for m in generators if likely_vision(m)]
    print("\n" + "=" * 80)
    print("SUGGESTED MODEL_CANDIDATES:")
    print("=" * 80)
    print(",".join(f"google/{n}" for n in vision_models[:3]) or "(none found)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
