import os
import threading
import unicodedata
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import skia
import uharfbuzz as hb

from watermark.text.script_detection import GENERIC_FAMILIES, parse_family_stack
from watermark.utils.exceptions import FontError
from watermark.utils.logging import log_message


# --- LRU Cache Implementation ---
class LRUCache:
    """Simple LRU cache implementation to prevent unbounded memory growth."""

    def __init__(self, max_size: int = 100):
        self.max_size = max_size
        self.cache = OrderedDict()

    def get(self, key):
        if key in self.cache:
            # Move to end (most recently used)
            value = self.cache.pop(key)
            self.cache[key] = value
            return value
        return None

    def put(self, key, value):
        if key in self.cache:
            self.cache.pop(key)
        elif len(self.cache) >= self.max_size:
            # Remove least recently used (first item)
            self.cache.popitem(last=False)
        self.cache[key] = value

    def __contains__(self, key):
        return key in self.cache

    def __delitem__(self, key):
        if key in self.cache:
            del self.cache[key]


_font_data_cache = LRUCache(max_size=50)
_system_typeface_cache = LRUCache(max_size=100)
_font_cache_lock = threading.RLock()

FONT_EXTENSIONS = (".ttf", ".otf")
BOLD_THRESHOLD = 600
OBLIQUE_SKEW = -0.25


def parse_weight(weight: Union[str, int, None]) -> int:
    """Converts a weight value ('700', 700, 'bold') to a numeric CSS weight."""
    if weight is None:
        return 400
    if isinstance(weight, int):
        return weight
    value = str(weight).strip().lower()
    if value.isdigit():
        return int(value)
    return {"bold": 700, "bolder": 800, "lighter": 300}.get(value, 400)


@dataclass
class FontRecord:
    """A font file registered in-process under a family name."""

    family: str
    weight: int
    data: bytes
    typeface: skia.Typeface
    hb_face: hb.Face


@dataclass
class FontRun:
    """The typeface chosen for a piece of text, at a concrete pixel size."""

    typeface: skia.Typeface
    size: float
    hb_face: Optional[hb.Face] = None
    family: str = ""
    embolden: bool = False
    skew_x: float = 0.0

    def make_font(self) -> skia.Font:
        font = skia.Font(self.typeface, float(self.size))
        font.setSubpixel(True)
        font.setHinting(skia.FontHinting.kNone)
        if self.embolden:
            font.setEmbolden(True)
        if self.skew_x:
            font.setSkewX(self.skew_x)
        return font


def load_font_data(font_path: Union[str, Path]) -> bytes:
    """
    Reads a font file, using LRU caching.

    Raises:
        FontError: If the file cannot be read
    """
    key = str(font_path)
    with _font_cache_lock:
        font_data = _font_data_cache.get(key)
    if font_data is not None:
        return font_data
    try:
        with open(font_path, "rb") as f:
            font_data = f.read()
    except OSError as e:
        raise FontError(f"Failed to read font file {font_path}: {e}") from e
    with _font_cache_lock:
        _font_data_cache.put(key, font_data)
    return font_data


def load_font_resources(font_data: bytes, label: str = "font") -> Tuple[skia.Typeface, hb.Face]:
    """
    Creates the Skia Typeface and HarfBuzz Face for raw font bytes.

    Raises:
        FontError: If Skia or HarfBuzz cannot load the data
    """
    typeface = skia.Typeface.MakeFromData(skia.Data.MakeWithCopy(font_data))
    if typeface is None:
        raise FontError(f"Failed to create Skia typeface from {label}")
    try:
        hb_face = hb.Face(font_data)
    except Exception as e:
        raise FontError(f"Failed to create HarfBuzz face from {label}") from e
    return typeface, hb_face


def read_font_names(font_path: Union[str, Path]) -> Tuple[Optional[str], int]:
    """
    Uses fontTools to read the family name and OS/2 weight class of a font file.

    Returns:
        Tuple of (family_name or None, weight_class)
    """
    from fontTools.ttLib import TTFont

    font = TTFont(str(font_path), fontNumber=0, lazy=True)
    try:
        family = None
        if "name" in font:
            # Typographic family (16) first, then legacy family (1)
            for name_id in (16, 1):
                record = font["name"].getDebugName(name_id)
                if record:
                    family = record
                    break
        weight = 400
        if "OS/2" in font:
            weight = int(getattr(font["OS/2"], "usWeightClass", 400) or 400)
        return family, weight
    finally:
        font.close()


class FontRegistry:
    """Fonts registered in this process, keyed by lower-cased family and numeric weight.

    Registering the same family and weight twice replaces the earlier record.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._fonts: Dict[str, Dict[int, FontRecord]] = {}

    def register(self, family: str, font_data: bytes, weight: Union[str, int] = 400) -> FontRecord:
        """
        Registers raw font bytes under a family name.

        Raises:
            FontError: If the data is not a usable font
        """
        family = family.strip().strip("\"'")
        typeface, hb_face = load_font_resources(font_data, label=f"'{family}'")
        record = FontRecord(
            family=family,
            weight=parse_weight(weight),
            data=font_data,
            typeface=typeface,
            hb_face=hb_face,
        )
        with self._lock:
            self._fonts.setdefault(family.lower(), {})[record.weight] = record
        return record

    def register_file(
        self, font_path: Union[str, Path], family: Optional[str] = None, weight: Union[str, int, None] = None
    ) -> FontRecord:
        """Registers a font file, reading its family and weight from the file when not given."""
        font_data = load_font_data(font_path)
        if family is None or weight is None:
            try:
                file_family, file_weight = read_font_names(font_path)
            except Exception as e:
                raise FontError(f"Could not inspect font file {font_path}: {e}") from e
            family = family or file_family or Path(font_path).stem
            weight = weight if weight is not None else file_weight
        return self.register(family, font_data, weight)

    def register_directory(self, font_dir: Union[str, Path], verbose: bool = False) -> List[FontRecord]:
        """
        Registers every .ttf/.otf file in a directory.

        Files that fail to load are logged and skipped.
        """
        dir_path = Path(font_dir).resolve()
        if not dir_path.is_dir():
            log_message(f"Font directory '{dir_path}' does not exist or is not a directory.", always_print=True)
            return []

        log_message(f"Scanning font directory: {dir_path}", verbose=verbose)
        records = []
        for font_file in sorted(dir_path.iterdir()):
            if font_file.suffix.lower() not in FONT_EXTENSIONS:
                continue
            try:
                record = self.register_file(font_file)
            except FontError as e:
                log_message(f"Warning: Skipping font {font_file.name}: {e}", always_print=True)
                continue
            records.append(record)
            log_message(f"Registered {record.family} ({record.weight}) from {font_file.name}", verbose=verbose)
        return records

    def lookup(self, family: str, weight: Union[str, int] = 400) -> Optional[FontRecord]:
        """Returns the record with the nearest weight for a family, or None."""
        target = parse_weight(weight)
        with self._lock:
            weights = self._fonts.get(family.strip().strip("\"'").lower())
            if not weights:
                return None
            nearest = min(weights, key=lambda w: (abs(w - target), -w))
            return weights[nearest]

    def families(self) -> List[str]:
        with self._lock:
            return sorted({r.family for weights in self._fonts.values() for r in weights.values()})

    def __contains__(self, family: str) -> bool:
        with self._lock:
            return family.strip().strip("\"'").lower() in self._fonts


def _system_font_style(weight: int, font_style: str) -> skia.FontStyle:
    italic = font_style in ("italic", "oblique")
    bold = weight >= BOLD_THRESHOLD
    if bold and italic:
        return skia.FontStyle.BoldItalic()
    if bold:
        return skia.FontStyle.Bold()
    if italic:
        return skia.FontStyle.Italic()
    return skia.FontStyle.Normal()


def find_system_typeface(family: str, weight: int = 400, font_style: str = "normal") -> Optional[skia.Typeface]:
    """
    Looks up an installed system typeface by family name.

    Skia substitutes a default face for unknown names, so a result is only
    accepted when its family name matches, or when a generic family was asked for.
    """
    key = (family.lower(), weight >= BOLD_THRESHOLD, font_style)
    with _font_cache_lock:
        if key in _system_typeface_cache:
            return _system_typeface_cache.get(key)

    typeface = skia.Typeface.MakeFromName(family, _system_font_style(weight, font_style))
    if typeface is not None and family.lower() not in GENERIC_FAMILIES:
        if typeface.getFamilyName().lower() != family.lower():
            typeface = None

    with _font_cache_lock:
        _system_typeface_cache.put(key, typeface)
    return typeface


def typeface_covers(typeface: skia.Typeface, text: str) -> bool:
    """True when the typeface has a glyph for every visible character of the text."""
    code_points = sorted(
        {ord(c) for c in text if not c.isspace() and unicodedata.category(c)[0] not in ("C", "Z")}
    )
    if not code_points:
        return True
    glyphs = typeface.unicharsToGlyphs(code_points)
    return all(glyph != 0 for glyph in glyphs)


def match_font(
    font_family_value: str,
    font_size: float,
    weight: Union[str, int] = 400,
    font_style: str = "normal",
    registry: Optional[FontRegistry] = None,
    sample_text: str = "",
    verbose: bool = False,
) -> FontRun:
    """
    Picks the typeface to draw with from a font-family value.

    Families are tried in order, registered fonts before system fonts. The
    first typeface that has glyphs for all of ``sample_text`` wins; if none
    covers the text, the first available typeface is used, and Skia's
    default typeface is the last resort.

    Args:
        font_family_value: Comma-separated font-family value (quotes allowed)
        font_size: Pixel size
        weight: Requested weight
        font_style: 'normal', 'italic' or 'oblique'
        registry: Registered fonts to search first
        sample_text: Text whose glyph coverage decides between candidates
        verbose: Whether to print detailed logs

    Returns:
        FontRun: Chosen typeface with synthetic bold/oblique flags where needed
    """
    numeric_weight = parse_weight(weight)
    wants_slant = font_style in ("italic", "oblique")
    first_available: Optional[FontRun] = None

    for family in parse_family_stack(font_family_value):
        run = None
        record = registry.lookup(family, numeric_weight) if registry is not None else None
        if record is not None:
            run = FontRun(
                typeface=record.typeface,
                size=font_size,
                hb_face=record.hb_face,
                family=record.family,
                embolden=numeric_weight >= BOLD_THRESHOLD > record.weight,
                skew_x=OBLIQUE_SKEW if wants_slant else 0.0,
            )
        else:
            typeface = find_system_typeface(family, numeric_weight, font_style)
            if typeface is not None:
                run = FontRun(typeface=typeface, size=font_size, family=family)

        if run is None:
            continue
        if first_available is None:
            first_available = run
        if typeface_covers(run.typeface, sample_text):
            log_message(f"Using font '{run.family}' at {font_size}px", verbose=verbose)
            return run
        log_message(f"Font '{run.family}' lacks glyphs for the text, trying next", verbose=verbose)

    if first_available is not None:
        log_message(
            f"No font in '{font_family_value}' covers the text; using '{first_available.family}'",
            verbose=verbose,
        )
        return first_available

    log_message(f"Warning: No font from '{font_family_value}' is available; using default typeface", always_print=True)
    return FontRun(typeface=skia.Typeface.MakeDefault(), size=font_size, family="default")


def register_font_dirs(registry: FontRegistry, font_dirs: List[str], verbose: bool = False) -> int:
    """Registers all fonts from a list of directories; returns the number registered."""
    total = 0
    for font_dir in font_dirs:
        total += len(registry.register_directory(os.path.expanduser(font_dir), verbose=verbose))
    return total


_global_registry: Optional[FontRegistry] = None


def get_font_registry() -> FontRegistry:
    """Get the process-wide font registry shared with the global font cache."""
    global _global_registry
    with _font_cache_lock:
        if _global_registry is None:
            _global_registry = FontRegistry()
        return _global_registry
