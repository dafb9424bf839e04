import logging
from typing import Optional
from dataclasses import dataclass, field

from .errors import GlyphCoverageError
from .fonts import FontHandle

log = logging.getLogger(__name__)

# unicode reported for a glyph whose text now lives in its actual text entry
SENTINEL_UNICODE = -1


@dataclass
class Glyph:
    code: int
    char: str
    unicode: int


@dataclass
class GlyphRun:
    """
    Glyphs about to be shown for one fragment.

    A run belongs to a single draw call, which may rewrite its glyphs.
    ``actual_text`` maps a glyph index to the text a reader should extract for
    that glyph instead of relying on the font's mapping.
    """
    text: str
    glyphs: list[Glyph]
    actual_text: dict[int, str] = field(default_factory=dict)

    def set_actual_text(self, i: int, text: str):
        # an existing entry always wins
        if self.actual_text.get(i) is None:
            self.actual_text[i] = text

    def to_unicode(self) -> str:
        parts = []
        for i, glyph in enumerate(self.glyphs):
            if i in self.actual_text:
                parts.append(self.actual_text[i])
            elif glyph.unicode != SENTINEL_UNICODE:
                parts.append(chr(glyph.unicode))
        return ''.join(parts)


def shape_text(handle: FontHandle, text: str) -> GlyphRun:
    return GlyphRun(
        text=text,
        glyphs=[Glyph(code=handle.glyph_code(c), char=c, unicode=ord(c)) for c in text],
    )


class GlyphGuard:
    """
    Checks every glyph run against the font it will be drawn with.

    In strict mode the first glyph the font cannot map aborts the build with
    GlyphCoverageError. Otherwise the glyph gets an actual text entry, and a
    single warning naming the last missing character is logged by
    ``summarize`` at the end of the build.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self.missing_count = 0
        self.last_missing: Optional[int] = None
        self.last_font: Optional[str] = None

    def inspect(self, run: GlyphRun, font: FontHandle) -> GlyphRun:
        for i, glyph in enumerate(run.glyphs):
            if not font.kind.is_not_def(glyph.code):
                continue
            if self.strict:
                raise GlyphCoverageError(glyph.unicode, font.family)
            self.missing_count += 1
            self.last_missing = glyph.unicode
            self.last_font = font.family
            run.set_actual_text(i, glyph.char)
            glyph.unicode = SENTINEL_UNICODE
        return run

    def summarize(self):
        if self.last_missing is None:
            return
        log.warning(
            f"Could not find a glyph in font '{self.last_font}' for unicode "
            f"character U+{self.last_missing:04X} ({chr(self.last_missing)!r}); "
            f"{self.missing_count} glyphs were given actual text instead"
        )
