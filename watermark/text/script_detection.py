"""
Script detection: maps text to its dominant Unicode writing system so the
watermark can be drawn with a font that actually has the glyphs.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

GENERIC_FAMILIES = frozenset(
    {"serif", "sans-serif", "monospace", "cursive", "fantasy", "system-ui"}
)


@dataclass(frozen=True)
class ScriptRange:
    """Inclusive Unicode code point interval."""

    low: int
    high: int

    def __contains__(self, code_point: int) -> bool:
        return self.low <= code_point <= self.high


@dataclass(frozen=True)
class ScriptEntry:
    script: str
    preferred_font: str
    fallback_stack: Tuple[str, ...]
    ranges: Tuple[ScriptRange, ...]

    def matches(self, code_point: int) -> bool:
        return any(code_point in r for r in self.ranges)


@dataclass(frozen=True)
class ScriptInfo:
    """Detection result: script tag, the font to install, and the family stack to draw with."""

    script: str
    preferred_font_family: str
    fallback_stack: Tuple[str, ...]

    @property
    def css_value(self) -> str:
        return format_family_stack(self.fallback_stack)


def _entry(script, preferred_font, fallback_stack, ranges) -> ScriptEntry:
    return ScriptEntry(
        script=script,
        preferred_font=preferred_font,
        fallback_stack=tuple(fallback_stack),
        ranges=tuple(ScriptRange(low, high) for low, high in ranges),
    )


# Declaration order is the tie-break order for equal tallies.
SCRIPT_TABLE: Tuple[ScriptEntry, ...] = (
    _entry(
        "cjk-sc",
        "Noto Sans SC",
        ("Noto Sans SC", "Microsoft YaHei", "PingFang SC", "SimHei", "sans-serif"),
        ((0x4E00, 0x9FFF), (0x3400, 0x4DBF), (0x3000, 0x303F), (0xF900, 0xFAFF)),
    ),
    _entry(
        "japanese",
        "Noto Sans JP",
        ("Noto Sans JP", "Yu Gothic", "Hiragino Sans", "Meiryo", "sans-serif"),
        ((0x3040, 0x309F), (0x30A0, 0x30FF), (0x31F0, 0x31FF)),
    ),
    _entry(
        "korean",
        "Noto Sans KR",
        ("Noto Sans KR", "Malgun Gothic", "Apple SD Gothic Neo", "sans-serif"),
        ((0xAC00, 0xD7AF), (0x1100, 0x11FF), (0x3130, 0x318F)),
    ),
    _entry(
        "arabic",
        "Noto Sans Arabic",
        ("Noto Sans Arabic", "Segoe UI", "Tahoma", "sans-serif"),
        ((0x0600, 0x06FF), (0x0750, 0x077F), (0xFB50, 0xFDFF), (0xFE70, 0xFEFF)),
    ),
    _entry(
        "devanagari",
        "Noto Sans Devanagari",
        ("Noto Sans Devanagari", "Mangal", "sans-serif"),
        ((0x0900, 0x097F), (0xA8E0, 0xA8FF)),
    ),
    _entry(
        "bengali",
        "Noto Sans Bengali",
        ("Noto Sans Bengali", "sans-serif"),
        ((0x0980, 0x09FF),),
    ),
    _entry(
        "thai",
        "Noto Sans Thai",
        ("Noto Sans Thai", "Leelawadee UI", "Tahoma", "sans-serif"),
        ((0x0E00, 0x0E7F),),
    ),
    # Latin Extended with Vietnamese diacritics
    _entry(
        "vietnamese",
        "Noto Sans",
        ("Noto Sans", "Segoe UI", "Arial", "sans-serif"),
        ((0x1EA0, 0x1EF9), (0x01A0, 0x01B4), (0x0300, 0x036F)),
    ),
    _entry(
        "cyrillic",
        "Noto Sans",
        ("Noto Sans", "Segoe UI", "Arial", "sans-serif"),
        ((0x0400, 0x04FF), (0x0500, 0x052F)),
    ),
    _entry(
        "hebrew",
        "Noto Sans Hebrew",
        ("Noto Sans Hebrew", "Segoe UI", "Arial Hebrew", "sans-serif"),
        ((0x0590, 0x05FF), (0xFB1D, 0xFB4F)),
    ),
    _entry(
        "tamil",
        "Noto Sans Tamil",
        ("Noto Sans Tamil", "sans-serif"),
        ((0x0B80, 0x0BFF),),
    ),
)

LATIN_DEFAULT = ScriptInfo(
    script="latin",
    preferred_font_family="Noto Sans",
    fallback_stack=("Noto Sans", "Arial", "Helvetica", "sans-serif"),
)


def format_family_stack(families: Iterable[str]) -> str:
    """Formats family names as a font-family value, quoting everything except generic families."""
    parts = []
    for family in families:
        name = family.strip().strip("\"'")
        if not name:
            continue
        parts.append(name if name.lower() in GENERIC_FAMILIES else f'"{name}"')
    return ", ".join(parts)


def parse_family_stack(value: str) -> Tuple[str, ...]:
    """Splits a font-family value into unquoted family names."""
    return tuple(
        name for name in (part.strip().strip("\"'").strip() for part in value.split(",")) if name
    )


def _script_for_code_point(code_point: int, table: Tuple[ScriptEntry, ...]) -> Optional[ScriptEntry]:
    for entry in table:
        if entry.matches(code_point):
            return entry
    return None


def count_scripts(text: str, table: Tuple[ScriptEntry, ...] = SCRIPT_TABLE) -> Dict[str, int]:
    """Tallies code points per script. Each code point counts for the first entry that matches it."""
    counts: Dict[str, int] = {}
    # str iteration is per code point, so supplementary-plane characters count once
    for char in text:
        entry = _script_for_code_point(ord(char), table)
        if entry is not None:
            counts[entry.script] = counts.get(entry.script, 0) + 1
    return counts


def detect_script(text: str, table: Tuple[ScriptEntry, ...] = SCRIPT_TABLE) -> ScriptInfo:
    """
    Detect the dominant script of a string.

    Args:
        text: Text to classify. Any string is accepted, including empty ones.
        table: Ordered script table; earlier entries win ties.

    Returns:
        ScriptInfo: The script with the highest tally, or the Latin default
                    when nothing in the text matches the table.
    """
    counts = count_scripts(text or "", table)

    best: Optional[ScriptEntry] = None
    best_count = 0
    for entry in table:
        count = counts.get(entry.script, 0)
        if count > best_count:
            best = entry
            best_count = count

    if best is None:
        return LATIN_DEFAULT

    return ScriptInfo(
        script=best.script,
        preferred_font_family=best.preferred_font,
        fallback_stack=best.fallback_stack,
    )
