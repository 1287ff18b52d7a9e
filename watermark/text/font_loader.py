"""
Font loading: makes sure text watermarks render correctly in any language.

Skia only draws glyphs from the typefaces it is given. If the chosen font has
no glyphs for the text (Vietnamese diacritics, CJK, Arabic, Devanagari...)
the characters come out as empty boxes. The resolver detects the text's
script, installs the matching Noto font from Google Fonts into the process
font registry, and returns a font-family value whose first entries cover the
script. Install failures never block rendering: they are reported as a
``fell_back`` result and drawing continues with the fallback stack.
"""

import asyncio
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union
from urllib.parse import quote_plus

import requests

from watermark.caching import FontCache, get_font_cache
from watermark.config import FontConfig
from watermark.text.font_manager import FontRegistry, get_font_registry, register_font_dirs
from watermark.text.script_detection import ScriptInfo, detect_script, format_family_stack
from watermark.utils.exceptions import AssetLoadError, FontError
from watermark.utils.logging import log_message

FONT_INSTALLED = "installed"
FONT_CACHED = "cached"
FONT_FELL_BACK = "fell_back"

CSS_FONT_URL_PATTERN = re.compile(r"src:\s*url\(([^)]+)\)")

# (family, asset_locator, weight) -> True on success; may raise instead of returning False
FontInstaller = Callable[[str, str, str], bool]


@dataclass(frozen=True)
class FontInstallResult:
    """Outcome of one install attempt."""

    family: str
    weight: str
    status: str
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (FONT_INSTALLED, FONT_CACHED)


def build_google_fonts_url(family: str, weight: str = "400", base_url: str = "https://fonts.googleapis.com/css2") -> str:
    """Builds the Google Fonts CSS2 URL for one family and weight."""
    return f"{base_url}?family={quote_plus(family)}:wght@{weight}&display=swap"


def extract_font_url(css_text: str) -> str:
    """
    Extracts the first font file URL from a Google Fonts stylesheet.

    Raises:
        AssetLoadError: If the stylesheet has no ``src: url(...)`` entry
    """
    match = CSS_FONT_URL_PATTERN.search(css_text)
    if not match:
        raise AssetLoadError("Could not extract font URL from Google Fonts CSS")
    return match.group(1).strip().strip("\"'")


class HttpFontInstaller:
    """Fetches font assets and registers them in a FontRegistry.

    Locators may be an ``http(s)`` URL of a font file, a Google Fonts CSS URL
    (the first font it references is fetched), or a local file path.
    """

    def __init__(self, registry: FontRegistry, config: Optional[FontConfig] = None):
        self.registry = registry
        self.config = config or FontConfig()
        self._local = threading.local()

    def _session(self) -> requests.Session:
        # requests.Session is not thread-safe; keep one per worker thread
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = self.config.user_agent
            self._local.session = session
        return session

    def _get(self, url: str) -> requests.Response:
        try:
            response = self._session().get(url, timeout=self.config.install_timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise AssetLoadError(f"Request for {url} failed: {e}") from e
        return response

    def fetch(self, locator: str) -> bytes:
        """Returns the raw font bytes for a locator."""
        if locator.startswith(("http://", "https://")):
            response = self._get(locator)
            content_type = response.headers.get("Content-Type", "")
            if "text/css" in content_type or locator.startswith(self.config.google_fonts_css_url):
                font_url = extract_font_url(response.text)
                return self._get(font_url).content
            return response.content

        path = Path(locator).expanduser()
        try:
            return path.read_bytes()
        except OSError as e:
            raise AssetLoadError(f"Could not read font file {locator}: {e}") from e

    def __call__(self, family: str, locator: str, weight: str) -> bool:
        font_data = self.fetch(locator)
        try:
            self.registry.register(family, font_data, weight)
        except FontError as e:
            raise AssetLoadError(str(e)) from e
        return True


class FontResolver:
    """
    Resolves the font-family value for watermark text and installs fonts on demand.

    The cache, registry and installer are injected so each test (or each
    isolated caller) can use fresh ones. By default the process-wide font
    cache is shared.
    """

    def __init__(
        self,
        cache: Optional[FontCache] = None,
        registry: Optional[FontRegistry] = None,
        installer: Optional[FontInstaller] = None,
        config: Optional[FontConfig] = None,
        verbose: bool = False,
    ):
        self.config = config or FontConfig()
        if cache is None:
            # A private registry needs a private cache, or cache hits would skip registering into it
            cache = get_font_cache() if registry is None else FontCache()
        self.cache = cache
        self.registry = registry if registry is not None else get_font_registry()
        self.installer = installer or HttpFontInstaller(self.registry, self.config)
        self.verbose = verbose
        if self.config.font_dirs:
            register_font_dirs(self.registry, self.config.font_dirs, verbose=verbose)

    async def _install(self, family: str, locator: str, weight: str) -> FontInstallResult:
        weight = str(weight)
        if self.cache.has(family, weight):
            log_message(f"Font cache hit: {family} ({weight})", verbose=self.verbose)
            return FontInstallResult(family, weight, FONT_CACHED)

        if not self.config.auto_install:
            reason = "font installs are disabled"
            log_message(f"Font install skipped for '{family}': {reason}", verbose=self.verbose)
            return FontInstallResult(family, weight, FONT_FELL_BACK, reason)

        try:
            installed = await asyncio.wait_for(
                asyncio.to_thread(self.installer, family, locator, weight),
                timeout=self.config.install_timeout,
            )
        except asyncio.TimeoutError:
            reason = f"timed out after {self.config.install_timeout:g}s"
        except Exception as e:
            reason = str(e) or e.__class__.__name__
        else:
            if installed is False:
                reason = "installer reported failure"
            else:
                self.cache.add(family, weight, verbose=self.verbose)
                return FontInstallResult(family, weight, FONT_INSTALLED)

        log_message(
            f'Warning: Could not load font "{family}" from {locator}: {reason}. Falling back to system fonts.',
            always_print=True,
        )
        return FontInstallResult(family, weight, FONT_FELL_BACK, reason)

    async def install_google_font(self, family: str, weight: Union[str, int] = "400") -> FontInstallResult:
        """
        Installs a Google Fonts family at one weight.

        Args:
            family: Google Fonts family name (e.g. 'Noto Sans SC')
            weight: Font weight (e.g. '400', '700')

        Returns:
            FontInstallResult: installed, cached, or fell_back with a reason
        """
        weight = str(weight)
        locator = build_google_fonts_url(family, weight, self.config.google_fonts_css_url)
        return await self._install(family, locator, weight)

    async def install_font(self, family: str, locator: str, weight: Union[str, int] = "400") -> FontInstallResult:
        """
        Installs a font file (TTF/OTF) from a URL or local path under a chosen family name.

        Same cache and failure contract as install_google_font.
        """
        return await self._install(family, str(locator), str(weight))

    async def resolve(self, text: str, user_font_family: Optional[str] = None, weight: Union[str, int] = "700") -> str:
        """
        Returns the font-family value to draw ``text`` with.

        Detects the script, installs its preferred Noto font (non-fatal), and
        prepends the user's family when it differs from the script font.
        """
        info = detect_script(text)
        await self.install_google_font(info.preferred_font_family, str(weight))
        return self.family_value(info, user_font_family)

    @staticmethod
    def family_value(info: ScriptInfo, user_font_family: Optional[str] = None) -> str:
        if user_font_family and user_font_family.strip() and user_font_family.strip() != info.preferred_font_family:
            user_value = user_font_family.strip()
            if "," not in user_value and not user_value.startswith(("'", '"')):
                user_value = format_family_stack([user_value])
            return f"{user_value}, {info.css_value}"
        return info.css_value


_global_resolver: Optional[FontResolver] = None
_global_resolver_lock = threading.Lock()


def get_font_resolver() -> FontResolver:
    """Get the process-wide resolver, backed by the global font cache."""
    global _global_resolver
    with _global_resolver_lock:
        if _global_resolver is None:
            _global_resolver = FontResolver()
        return _global_resolver

