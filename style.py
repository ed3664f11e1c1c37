"""
style.py — terminal rendering for the QuickPick client.

Design language:
  • Unicode box-drawing dividers between blocks
  • Coloured letter badge for the health grade (A green … E red)
  • Sections rendered in a fixed display order, raw text as fallback

All text printed by client.py should be formatted through this module.
"""
from __future__ import annotations

from typing import Iterable, Optional

from sections import (
    ALL_SECTIONS, HealthGrade, SectionSpec,
    parse_health_comparison, parse_health_grade, parse_sections,
)

# ── Visual constants ──────────────────────────────────────────────────────────

DIV   = "━━━━━━━━━━━━━━━━━━━━━━━━━━"    # thick divider
SDIV  = "┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄"    # subtle divider
CURSOR = "▊"

_RESET = "\033[0m"
_BOLD  = "\033[1m"

# ANSI background per grade tier
TIER_COLOURS = {
    "excellent": "\033[42;97m",   # green
    "good":      "\033[102;30m",  # light green
    "fair":      "\033[43;30m",   # yellow
    "poor":      "\033[48;5;208;97m",  # orange
    "bad":       "\033[41;97m",   # red
}

# Display order. WINNER sits right under the headline in compare mode.
DISPLAY_ORDER = (
    "HEADLINE",
    "WINNER",
    "HEALTH SCORE",
    "HEALTH COMPARISON",
    "WHO IS THIS FOR?",
    "FLAVOR & TEXTURE",
    "FLAVOR FACE-OFF",
    "PROS & CONS",
    "PROS & CONS COMPARISON",
    "VERDICT",
)

LOADING = [
    "⠋ Scanning flavors…",
    "⠙ Reading the label…",
    "⠸ Weighing pros & cons…",
    "⠴ Almost done…",
]


def title(label: str) -> str:
    """ "FLAVOR FACE-OFF" → "Flavor Face-Off",  "WHO IS THIS FOR?" → "Who Is This For?" """
    return " ".join(
        "-".join(part[:1].upper() + part[1:].lower() for part in word.split("-"))
        for word in label.split()
    )


def badge(grade: HealthGrade, colour: bool = True) -> str:
    text = f" {grade.grade} "
    if not colour:
        return f"[{grade.grade}]"
    return f"{TIER_COLOURS.get(grade.tier, '')}{_BOLD}{text}{_RESET}"


def _heading(label: str, colour: bool) -> str:
    name = title(label)
    return f"{_BOLD}{name}{_RESET}" if colour else name


def _health_block(value: str, colour: bool) -> str:
    grade = parse_health_grade(value)
    if grade is None:
        return value
    return f"{badge(grade, colour)} {grade.reason}".rstrip()


def _comparison_block(value: str, colour: bool) -> str:
    graded = parse_health_comparison(value)
    if not graded:
        return value
    return "\n".join(f"{badge(g, colour)} {name}: {g.reason}".rstrip(": ") for name, g in graded)


# ══════════════════════════════════════════════════════════════════════════════
# ANALYSIS
# ══════════════════════════════════════════════════════════════════════════════

def render_sections(sections: dict[str, str], colour: bool = True) -> str:
    blocks = []
    for label in DISPLAY_ORDER:
        value = sections.get(label)
        if not value:
            continue
        if label == "HEALTH SCORE":
            value = _health_block(value, colour)
        elif label == "HEALTH COMPARISON":
            value = _comparison_block(value, colour)
        blocks.append(f"{_heading(label, colour)}\n{value}")
    return f"\n{SDIV}\n".join(blocks)


def render_analysis(
    text: str,
    live: bool = False,
    colour: bool = True,
    schema: Optional[Iterable[SectionSpec]] = None,
) -> str:
    """
    Structured view of text, or the raw text when no header is found.
    live=True appends a cursor to show the answer is still streaming.
    schema limits the headers recognised; stored scans use all of them.
    """
    sections = parse_sections(text, ALL_SECTIONS if schema is None else schema)
    body = render_sections(sections, colour) if sections else text.strip()
    if live:
        body += f" {CURSOR}"
    return f"{DIV}\n{body}\n{DIV}"


def incomplete_notice(errors: list[str]) -> str:
    reason = errors[-1] if errors else "stream interrupted"
    return f"⚠️  Analysis incomplete — {reason}"


# ══════════════════════════════════════════════════════════════════════════════
# HISTORY
# ══════════════════════════════════════════════════════════════════════════════

def scan_line(item: dict) -> str:
    created = (item.get("createdAt") or "")[:10]
    return f"{created}  {item.get('productName', '')}  [{item.get('id', '')}]\n   {item.get('snippet', '')}"


def scan_list(items: list[dict]) -> str:
    if not items:
        return "No scans yet! Run `client.py analyze photo.jpg` to start scanning."
    noun = "scan" if len(items) == 1 else "scans"
    lines = [f"🛍️  Your Scan History ({len(items)} {noun})", DIV]
    lines += [scan_line(i) for i in items]
    return "\n".join(lines)


def error_line(status: int, payload: Optional[dict]) -> str:
    payload = payload or {}
    message = payload.get("message") or payload.get("error") or "Request failed"
    details = payload.get("details")
    return f"❌ {status}: {message}" + (f": {details}" if details else "")
