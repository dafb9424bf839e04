import logging
from enum import Enum
from typing import Optional
from dataclasses import dataclass

import fitz

from .text_model import TextFragment

log = logging.getLogger(__name__)

# Image pixels are taken to be at 72 DPI, so one pixel is one point.
DEFAULT_DPI = 72
POINTS_PER_INCH = 72


class ScaleMode(Enum):
    NATURAL = 'natural'
    SCALE_TO_FIT = 'scale-to-fit'
    SCALE_WIDTH = 'scale-width'
    SCALE_HEIGHT = 'scale-height'


@dataclass(frozen=True)
class PageGeometry:
    page_rect: fitz.Rect
    image_rect: fitz.Rect
    multiplier: float


def get_points(pixels: float) -> float:
    return pixels * POINTS_PER_INCH / DEFAULT_DPI


def _scaled_size(
    width_pt: float,
    height_pt: float,
    scale_mode: ScaleMode,
    page_width: float,
    page_height: float
) -> tuple[float, float]:
    if scale_mode is ScaleMode.NATURAL:
        return width_pt, height_pt
    if scale_mode is ScaleMode.SCALE_TO_FIT:
        # the tighter axis matches the page exactly
        if page_width / width_pt <= page_height / height_pt:
            return page_width, height_pt * page_width / width_pt
        return width_pt * page_height / height_pt, page_height
    if scale_mode is ScaleMode.SCALE_WIDTH:
        return page_width, height_pt * page_width / width_pt
    if scale_mode is ScaleMode.SCALE_HEIGHT:
        return width_pt * page_height / height_pt, page_height
    raise ValueError(f"Unknown scale mode: {scale_mode}")


def resolve_geometry(
    image_size: tuple[int, int],
    scale_mode: ScaleMode = ScaleMode.SCALE_TO_FIT,
    page_size: Optional[tuple[float, float]] = None
) -> PageGeometry:
    """
    Work out where an image goes on its page.

    Without a page size the page takes the image's natural size and the
    multiplier is 1. With a page size the image is scaled according to
    ``scale_mode`` and centered on the page.

    :param image_size: (width_px, height_px) of the image
    :param scale_mode: how to scale the image into a fixed page size
    :param page_size: (width_pt, height_pt) of the page, or None
    :returns: page rect, image rect and pixel -> point multiplier
    """
    width_px, height_px = image_size
    if width_px <= 0 or height_px <= 0:
        raise ValueError(f"Invalid image size: {width_px}x{height_px}")

    width_pt = get_points(width_px)
    height_pt = get_points(height_px)

    if page_size is None:
        rect = fitz.Rect(0, 0, width_pt, height_pt)
        return PageGeometry(page_rect=rect, image_rect=fitz.Rect(rect), multiplier=1.0)

    page_width, page_height = page_size
    if page_width <= 0 or page_height <= 0:
        raise ValueError(f"Invalid page size: {page_width}x{page_height}")

    image_width, image_height = _scaled_size(
        width_pt, height_pt, scale_mode, page_width, page_height)

    x0 = (page_width - image_width) / 2
    y0 = (page_height - image_height) / 2
    return PageGeometry(
        page_rect=fitz.Rect(0, 0, page_width, page_height),
        image_rect=fitz.Rect(x0, y0, x0 + image_width, y0 + image_height),
        multiplier=image_width / width_pt,
    )


def fragment_box(fragment: TextFragment, multiplier: float) -> fitz.Rect:
    """
    Destination box of a fragment, relative to the image's top-left corner.

    Raw bboxes include their right and bottom edge pixels, hence the +1.
    """
    if fragment.rect is None:
        left, top, right, bottom = fragment.bbox
        return fitz.Rect(
            get_points(left * multiplier),
            get_points(top * multiplier),
            get_points((right + 1) * multiplier),
            get_points((bottom + 1) * multiplier),
        )
    x0, y0, x1, y1 = fragment.rect
    return fitz.Rect(x0 * multiplier, y0 * multiplier, x1 * multiplier, y1 * multiplier)


def is_drawable(fragment: TextFragment, multiplier: float) -> bool:
    if not fragment.text:
        return False
    box = fragment_box(fragment, multiplier)
    return box.x1 - box.x0 > 0 and box.y1 - box.y0 > 0
