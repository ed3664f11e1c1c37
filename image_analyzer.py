"""
image_analyzer.py — turns uploaded image(s) into an AnalysisRequest.

One image  → single-product mode.
Two images → compare mode (first = Product A, second = Product B).

The actual model call is delegated to providers/manager.py.
"""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional, Union

from providers.base import (
    COMPARE_SYSTEM_PROMPT, COMPARE_USER_PROMPT,
    SINGLE_SYSTEM_PROMPT, SINGLE_USER_PROMPT,
    AnalysisRequest, ImagePart,
)

logger = logging.getLogger(__name__)

DEFAULT_MIME = "image/jpeg"

ImageInput = Union[str, bytes, ImagePart]


class InputError(ValueError):
    """The request did not carry a usable image."""


def normalize_mime(mime_type: Optional[str]) -> str:
    """Empty or non-image MIME types fall back to image/jpeg."""
    mime = (mime_type or "").split(";")[0].strip().lower()
    return mime if mime.startswith("image/") else DEFAULT_MIME


def to_data_uri(data: bytes, mime_type: Optional[str] = None) -> str:
    b64 = base64.b64encode(data).decode()
    return f"data:{normalize_mime(mime_type)};base64,{b64}"


def parse_data_uri(uri: str) -> tuple[str, bytes]:
    """
    "data:image/png;base64,iVBOR…" → ("image/png", b"\\x89PNG…").
    A bare base64 string (no data: prefix) is accepted as jpeg.
    Raises InputError if the payload cannot be decoded.
    """
    text = (uri or "").strip()
    mime = DEFAULT_MIME
    payload = text
    if text.startswith("data:"):
        header, sep, payload = text.partition(",")
        if not sep:
            raise InputError("Malformed data URI")
        if ";base64" not in header:
            raise InputError("Only base64 data URIs are supported")
        mime = normalize_mime(header[len("data:"):].split(";")[0])
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InputError(f"Image is not valid base64: {exc}") from exc
    if not data:
        raise InputError("No image provided")
    return mime, data


def to_image_part(value: ImageInput, mime_type: Optional[str] = None) -> ImagePart:
    if isinstance(value, ImagePart):
        return value
    if isinstance(value, (bytes, bytearray)):
        if not value:
            raise InputError("No image provided")
        mime = normalize_mime(mime_type)
        return ImagePart(data=bytes(value), mime_type=mime, data_uri=to_data_uri(bytes(value), mime))
    if not isinstance(value, str):
        raise InputError("Image must be a data URI string")
    mime, data = parse_data_uri(value)
    return ImagePart(data=data, mime_type=mime, data_uri=to_data_uri(data, mime))


def build_request(image: Optional[ImageInput], image2: Optional[ImageInput] = None) -> AnalysisRequest:
    """
    Build the multimodal request. The mode follows from whether a second
    image is present. Raises InputError before anything goes upstream.
    """
    if not image:
        raise InputError("No image provided")

    images = [to_image_part(image)]
    if image2:
        images.append(to_image_part(image2))

    if len(images) == 2:
        mode, system_prompt, user_prompt = "compare", COMPARE_SYSTEM_PROMPT, COMPARE_USER_PROMPT
    else:
        mode, system_prompt, user_prompt = "single", SINGLE_SYSTEM_PROMPT, SINGLE_USER_PROMPT

    logger.info(
        "Built %s request — %s",
        mode, ", ".join(f"{img.mime_type} {len(img.data)}B" for img in images),
    )
    return AnalysisRequest(
        mode=mode,
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        images=images,
    )
