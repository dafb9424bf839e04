import os
import logging
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field

from .errors import ConfigurationError
from .fonts import FontProvider
from .geometry import ScaleMode
from .text_model import Granularity

log = logging.getLogger(__name__)

# common page sizes in points
PAGE_SIZES = {
    'a3': (842.0, 1191.0),
    'a4': (595.0, 842.0),
    'a5': (420.0, 595.0),
    'letter': (612.0, 792.0),
    'legal': (612.0, 1008.0),
}


@dataclass
class CreatorProperties:
    """
    Settings for building a searchable PDF.

    ``text_color`` of None draws invisible text. ``strict`` turns on the
    archival checks: every glyph drawn must exist in its font, and
    ``pdf_lang`` must be set.
    """
    scale_mode: ScaleMode = ScaleMode.SCALE_TO_FIT
    page_size: Optional[tuple[float, float]] = None
    image_layer_name: Optional[str] = None
    text_layer_name: Optional[str] = None
    text_color: Optional[tuple[float, float, float]] = None
    granularity: Granularity = Granularity.LINE
    strict: bool = False
    pdf_lang: Optional[str] = None
    title: Optional[str] = None
    font_family: Optional[str] = None
    font_provider: FontProvider = field(default_factory=FontProvider)
    debug_boxes: bool = False
    jobs: int = 1

    def validate(self):
        if self.strict and not self.pdf_lang:
            raise ConfigurationError("PDF language must be set when creating an archival PDF")
        if not isinstance(self.scale_mode, ScaleMode):
            try:
                self.scale_mode = ScaleMode(self.scale_mode)
            except ValueError as e:
                raise ConfigurationError(f"Unknown scale mode: {self.scale_mode!r}") from e
        if self.jobs < 1:
            raise ConfigurationError(f"jobs must be at least 1, got {self.jobs}")


def parse_page_size(value: str) -> tuple[float, float]:
    """Accept a known page size name (``a4``, ``letter``...) or ``WIDTHxHEIGHT`` in points."""
    key = value.strip().lower()
    if key in PAGE_SIZES:
        return PAGE_SIZES[key]
    width, sep, height = key.partition('x')
    try:
        size = (float(width), float(height))
    except ValueError:
        size = None
    if not sep or size is None or size[0] <= 0 or size[1] <= 0:
        raise ConfigurationError(f"Invalid page size: {value!r}")
    return size


def parse_color(value: str) -> tuple[float, float, float]:
    """``#rrggbb`` or ``r,g,b`` with components in 0..1."""
    value = value.strip()
    try:
        if value.startswith('#') and len(value) == 7:
            return tuple(int(value[i:i + 2], 16) / 255 for i in (1, 3, 5))
        parts = tuple(float(p) for p in value.split(','))
    except ValueError as e:
        raise ConfigurationError(f"Invalid color: {value!r}") from e
    if len(parts) != 3 or not all(0 <= p <= 1 for p in parts):
        raise ConfigurationError(f"Invalid color: {value!r}")
    return parts


GCV_KEY_ENV = 'GCV_API_KEY'
GCV_KEY_FILE = Path('gcv_api_key')


def get_gcv_api_key(key_file: Path = GCV_KEY_FILE) -> Optional[str]:
    """
    Look up the Google Cloud Vision API key.

    The ``GCV_API_KEY`` environment variable wins over ``key_file``, which is
    resolved against the working directory. Blank values count as missing.
    """
    api_key = os.environ.get(GCV_KEY_ENV, '').strip()
    if api_key:
        log.debug(f"Using GCV API key from ${GCV_KEY_ENV}")
        return api_key

    if key_file.is_file():
        api_key = key_file.read_text().strip()
        if api_key:
            log.debug(f"Using GCV API key from {key_file}")
            return api_key

    return None
