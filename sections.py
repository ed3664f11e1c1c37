"""
sections.py — turns plain-text model output into named sections.

The model is asked to answer under fixed uppercase headers, e.g.

    HEADLINE: Crunchy Delight Bar
    HEALTH SCORE: D - High sodium
    PROS & CONS:
    + Great crunch
    - Very salty
    VERDICT: Buy it for the taste, not your heart.

parse_sections() is run repeatedly on the growing text while it streams
(live view) and once more on the complete text (final view). It is pure
and never raises: anything it cannot make sense of yields {} and the
caller shows the raw text.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


# ── Section schemas ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SectionSpec:
    label: str                  # e.g. "HEALTH SCORE"
    requires_colon: bool = True

    @property
    def header(self) -> str:
        """Text a line must start with (case-insensitive) to open this section."""
        return f"{self.label}:" if self.requires_colon else self.label


SINGLE_SCHEMA: tuple[SectionSpec, ...] = (
    SectionSpec("HEADLINE"),
    SectionSpec("HEALTH SCORE"),
    SectionSpec("WHO IS THIS FOR?", requires_colon=False),
    SectionSpec("FLAVOR & TEXTURE"),
    SectionSpec("PROS & CONS"),
    SectionSpec("VERDICT"),
)

COMPARE_SCHEMA: tuple[SectionSpec, ...] = (
    SectionSpec("HEADLINE"),
    SectionSpec("WINNER"),
    SectionSpec("HEALTH COMPARISON"),
    SectionSpec("FLAVOR FACE-OFF"),
    SectionSpec("PROS & CONS COMPARISON"),
    SectionSpec("VERDICT"),
)

SCHEMAS: dict[str, tuple[SectionSpec, ...]] = {
    "single":  SINGLE_SCHEMA,
    "compare": COMPARE_SCHEMA,
}

# Stored scans don't record their mode, so the detail view matches against both.
ALL_SECTIONS: tuple[SectionSpec, ...] = tuple(
    dict.fromkeys(SINGLE_SCHEMA + COMPARE_SCHEMA)
)


def _match_order(schema: Iterable[SectionSpec]) -> list[SectionSpec]:
    # Longest header first: "PROS & CONS COMPARISON:" must win over "PROS & CONS".
    return sorted(schema, key=lambda s: len(s.header), reverse=True)


def match_header(line: str, schema: Iterable[SectionSpec] = ALL_SECTIONS) -> Optional[SectionSpec]:
    """Return the section a trimmed line opens, or None."""
    upper = line.upper()
    for spec in _match_order(schema):
        if upper.startswith(spec.header.upper()):
            return spec
    return None


# ── Parser ────────────────────────────────────────────────────────────────────

def _parse(text: str, schema: Iterable[SectionSpec]) -> dict[str, str]:
    ordered = _match_order(schema)
    sections: dict[str, str] = {}
    current: Optional[SectionSpec] = None
    content: list[str] = []

    def flush() -> None:
        if current is not None and content:
            joined = "\n".join(content).strip()
            if joined:
                sections[current.label] = joined

    for raw_line in text.splitlines():
        line = raw_line.strip()
        found = match_header(line, ordered)

        if found is not None:
            flush()
            current = found
            content = []
            rest = line[len(found.header):].strip()
            if rest:
                content.append(rest)
        elif current is not None and line:
            content.append(line)

    flush()
    return sections


def parse_sections(text: Optional[str], schema: Optional[Iterable[SectionSpec]] = None) -> dict[str, str]:
    """
    Split analysis text into {label: content}.

    Returns {} when no recognised header appears anywhere — that means
    "show the raw text", not "complete but empty".
    """
    if not text:
        return {}
    try:
        return _parse(text, ALL_SECTIONS if schema is None else schema)
    except Exception as exc:
        logger.warning("Section parse failed, falling back to raw text: %s", exc)
        return {}


# ── Health grade ──────────────────────────────────────────────────────────────

GRADE_TIERS: dict[str, str] = {
    "A": "excellent",
    "B": "good",
    "C": "fair",
    "D": "poor",
    "E": "bad",
}

_GRADE_RE = re.compile(r"^([A-E])[ -]*(.*)$", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class HealthGrade:
    grade: str      # "A" … "E"
    reason: str

    @property
    def tier(self) -> str:
        return GRADE_TIERS[self.grade]

    def to_dict(self) -> dict:
        return {"grade": self.grade, "reason": self.reason, "tier": self.tier}


def parse_health_grade(value: Optional[str]) -> Optional[HealthGrade]:
    """
    "D - High sodium" → HealthGrade("D", "High sodium").
    Anything not starting with a single A–E letter → None.
    """
    if not value:
        return None
    match = _GRADE_RE.match(value.strip())
    if not match:
        return None
    return HealthGrade(grade=match.group(1).upper(), reason=match.group(2).strip())


def parse_health_comparison(value: Optional[str]) -> list[tuple[str, HealthGrade]]:
    """Per-product grades from a HEALTH COMPARISON section ("Oreo: D - sugar")."""
    results: list[tuple[str, HealthGrade]] = []
    for line in (value or "").splitlines():
        name, sep, rest = line.strip().lstrip("-•* ").partition(":")
        if not sep or not name.strip():
            continue
        grade = parse_health_grade(rest)
        if grade:
            results.append((name.strip(), grade))
    return results


# ── Product name / snippets ───────────────────────────────────────────────────

UNKNOWN_PRODUCT = "Unknown Product"
PRODUCT_NAME_MAX = 60

_NAME_STRIP_RE = re.compile(r"[^A-Za-z0-9 &\-]")
_HEADLINE = (SectionSpec("HEADLINE"),)


def extract_product_name(text: Optional[str]) -> str:
    """Short display name taken from the HEADLINE line."""
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        found = match_header(line, _HEADLINE)
        if found is None:
            continue
        rest = line[len(found.header):]
        name = " ".join(_NAME_STRIP_RE.sub("", rest).split())
        if name:
            return name[:PRODUCT_NAME_MAX].rstrip()
        break
    return UNKNOWN_PRODUCT


def snippet(text: Optional[str], max_length: int = 100) -> str:
    cleaned = (text or "").replace("\n", " ").strip()
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[:max_length] + "..."
