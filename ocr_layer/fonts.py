import re
import logging
from enum import Enum
from pathlib import Path
from typing import Optional
from dataclasses import dataclass

import fitz

from .errors import MissingFontResourceError

log = logging.getLogger(__name__)

# PyMuPDF's short names for the PDF base-14 fonts
BASE14_FONTS = {
    'helv', 'heit', 'hebo', 'hebi',
    'cour', 'coit', 'cobo', 'cobi',
    'tiro', 'tiit', 'tibo', 'tibi',
    'symb', 'zadb',
}

DEFAULT_FONT_FAMILY = 'helv'

# line height used when checking that a font size fits its box
LEADING = 1.2
# a line may take up to this much of its box before it counts as wrapped
FIT_SLACK = 1.5
SIZE_TOLERANCE = 0.1


class FontKind(Enum):
    """
    How a font maps characters to the codes written in the page.

    COMPOSITE fonts (embedded TrueType/OpenType, written as Type0) use glyph
    ids, where 0 is .notdef. SIMPLE fonts (base-14) use one byte per
    character, and a character outside their encoding has no code (-1).
    """
    COMPOSITE = 'composite'
    SIMPLE = 'simple'

    def is_not_def(self, code: int) -> bool:
        if self is FontKind.COMPOSITE:
            return code == 0
        return code == -1


@dataclass
class FontHandle:
    family: str
    alias: str
    kind: FontKind
    font: fitz.Font
    fontfile: Optional[Path] = None

    @property
    def descender(self) -> float:
        return self.font.descender

    def glyph_code(self, char: str) -> int:
        if self.kind is FontKind.COMPOSITE:
            return self.font.has_glyph(ord(char))
        try:
            return char.encode('cp1252')[0]
        except UnicodeEncodeError:
            return -1


@dataclass
class FontFit:
    size: float
    horizontal_scale: float


def _alias_for(family: str) -> str:
    return 'ocr-' + re.sub(r'[^A-Za-z0-9]', '', family)


class FontProvider:
    """
    Resolves font family names to fonts and measures text with them.

    A family is either one of PyMuPDF's base-14 short names (``helv``,
    ``tiro``, ...) or a name registered against a font file. Resolved handles
    are cached until ``reset`` is called.
    """

    def __init__(
        self,
        families: Optional[dict[str, str | Path]] = None,
        default_family: str = DEFAULT_FONT_FAMILY
    ):
        self.default_family = default_family
        self._families: dict[str, str | Path] = dict(families or {})
        self._cache: dict[str, FontHandle] = {}

    def register(self, family: str, source: str | Path):
        self._families[family] = source
        self._cache.pop(family, None)

    def reset(self):
        self._cache.clear()

    def resolve(self, family: Optional[str] = None) -> FontHandle:
        family = family or self.default_family
        if family in self._cache:
            return self._cache[family]

        source = self._families.get(family, family)
        if str(source) in BASE14_FONTS:
            handle = FontHandle(
                family=family,
                alias=str(source),
                kind=FontKind.SIMPLE,
                font=fitz.Font(fontname=str(source)),
            )
        elif isinstance(source, Path) or family in self._families:
            fontfile = Path(source)
            if not fontfile.is_file():
                raise MissingFontResourceError(f"Font file for '{family}' not found: {fontfile}")
            try:
                font = fitz.Font(fontfile=str(fontfile))
            except Exception as e:
                # MuPDF reports unreadable font data with its own exception types
                raise MissingFontResourceError(f"Cannot load font '{family}' from {fontfile}: {e}") from e
            handle = FontHandle(
                family=family,
                alias=_alias_for(family),
                kind=FontKind.COMPOSITE,
                font=font,
                fontfile=fontfile,
            )
        else:
            raise MissingFontResourceError(f"Unknown font family: '{family}'")

        log.debug(f"Resolved font family '{family}' to {handle.font.name} ({handle.kind.value})")
        self._cache[family] = handle
        return handle

    def measure_width(self, handle: FontHandle, text: str, size: float) -> Optional[float]:
        try:
            return handle.font.text_length(text, fontsize=size)
        except (RuntimeError, ValueError) as e:
            log.debug(f"Cannot measure '{text}' with {handle.family}: {e}")
            return None


def fit_font(
    provider: FontProvider,
    handle: FontHandle,
    text: str,
    width: float,
    height: float
) -> Optional[FontFit]:
    """
    Find a font size and horizontal scale so that text fills its box.

    The size is the largest one, up to the box height, whose single line
    still fits the box. The horizontal scale then stretches or squeezes the
    rendered text to the box width exactly.

    :param provider: font provider used to measure the text
    :param handle: resolved font
    :param text: text to place
    :param width: target width in points
    :param height: target height in points
    :returns: FontFit, or None when the text renders with zero width
    """
    if provider.measure_width(handle, text, height) is None:
        return FontFit(size=height, horizontal_scale=1.0)

    def fits(size: float) -> bool:
        if size * LEADING > height * FIT_SLACK:
            return False
        measured = provider.measure_width(handle, text, size)
        return measured is not None and measured <= width * FIT_SLACK

    low = min(1.0, height)
    high = height
    if fits(high):
        low = high
    while high - low > SIZE_TOLERANCE:
        mid = (low + high) / 2
        if fits(mid):
            low = mid
        else:
            high = mid

    measured = provider.measure_width(handle, text, low)
    if not measured:
        return None
    return FontFit(size=low, horizontal_scale=width / measured)
