class OcrLayerError(Exception):
    """Base class for every error raised while building a searchable PDF."""


class ParseError(OcrLayerError):
    """hOCR markup is too malformed to find any page in it."""


class GlyphCoverageError(OcrLayerError):
    """The active font has no glyph for a character and strict mode is on."""

    def __init__(self, codepoint: int, font_name: str):
        self.codepoint = codepoint
        self.font_name = font_name
        super().__init__(
            f"Could not find a glyph in font '{font_name}' for unicode "
            f"character U+{codepoint:04X} ({chr(codepoint)!r})"
        )


class ImageDecodeError(OcrLayerError):
    """An input image could not be read."""


class MissingFontResourceError(OcrLayerError):
    """A font family could not be resolved to a usable font."""


class RecognitionError(OcrLayerError):
    """The recognition engine failed for an input image."""


class ConfigurationError(OcrLayerError):
    """Creator properties are inconsistent."""
