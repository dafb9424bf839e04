from __future__ import annotations

import fitz
import pytest

from ocr_layer.geometry import (
    PageGeometry, ScaleMode, fragment_box, get_points, is_drawable, resolve_geometry,
)
from ocr_layer.text_model import TextFragment


def test_natural_without_page_size_is_pass_through():
    geometry = resolve_geometry((1000, 2000), ScaleMode.NATURAL)

    assert geometry.multiplier == 1.0
    assert geometry.page_rect == fitz.Rect(0, 0, 1000, 2000)
    assert geometry.image_rect == fitz.Rect(0, 0, 1000, 2000)


@pytest.mark.parametrize('mode', list(ScaleMode))
def test_no_page_size_ignores_scale_mode(mode):
    geometry = resolve_geometry((300, 500), mode)
    assert geometry.multiplier == 1.0
    assert geometry.image_rect == fitz.Rect(0, 0, 300, 500)


def test_scale_to_fit_centers_vertically():
    geometry = resolve_geometry((2000, 1000), ScaleMode.SCALE_TO_FIT, (612, 792))

    assert geometry.page_rect == fitz.Rect(0, 0, 612, 792)
    assert geometry.image_rect.width == pytest.approx(612)
    assert geometry.image_rect.height == pytest.approx(306)
    assert geometry.image_rect.x0 == pytest.approx(0)
    assert geometry.image_rect.y0 == pytest.approx((792 - 306) / 2)
    assert geometry.multiplier == pytest.approx(612 / 2000)


def test_scale_to_fit_tall_image_centers_horizontally():
    geometry = resolve_geometry((1000, 4000), ScaleMode.SCALE_TO_FIT, (612, 792))

    assert geometry.image_rect.height == pytest.approx(792)
    assert geometry.image_rect.width == pytest.approx(198)
    assert geometry.image_rect.x0 == pytest.approx((612 - 198) / 2)
    assert geometry.image_rect.y0 == pytest.approx(0)


def test_scale_width_and_height():
    width = resolve_geometry((1000, 500), ScaleMode.SCALE_WIDTH, (600, 800))
    assert width.image_rect.width == pytest.approx(600)
    assert width.image_rect.height == pytest.approx(300)
    assert width.image_rect.y0 == pytest.approx(250)

    height = resolve_geometry((1000, 500), ScaleMode.SCALE_HEIGHT, (600, 800))
    assert height.image_rect.height == pytest.approx(800)
    assert height.image_rect.width == pytest.approx(1600)
    # wider than the page, so it hangs over both sides equally
    assert height.image_rect.x0 == pytest.approx(-500)
    assert height.multiplier == pytest.approx(1.6)


def test_natural_with_page_size_keeps_image_size_centered():
    geometry = resolve_geometry((200, 100), ScaleMode.NATURAL, (600, 800))

    assert geometry.multiplier == 1.0
    assert geometry.image_rect == fitz.Rect(200, 350, 400, 450)


def test_resolve_is_idempotent():
    args = ((1234, 987), ScaleMode.SCALE_TO_FIT, (595.0, 842.0))
    first = resolve_geometry(*args)
    second = resolve_geometry(*args)

    assert first == second
    assert tuple(first.image_rect) == tuple(second.image_rect)
    assert first.multiplier == second.multiplier


@pytest.mark.parametrize('size', [(0, 100), (100, -1)])
def test_invalid_image_size(size):
    with pytest.raises(ValueError):
        resolve_geometry(size)


def test_invalid_page_size():
    with pytest.raises(ValueError):
        resolve_geometry((100, 100), ScaleMode.SCALE_TO_FIT, (0, 100))


def test_get_points_is_identity_at_default_dpi():
    assert get_points(150) == 150


@pytest.mark.parametrize('bbox,multiplier', [
    ((100, 100, 300, 150), 1.0),
    ((0, 0, 0, 0), 1.0),
    ((10, 20, 30, 25), 0.306),
    ((5, 5, 500, 90), 2.5),
])
def test_raw_bbox_size_includes_edge_pixels(bbox, multiplier):
    left, top, right, bottom = bbox
    box = fragment_box(TextFragment(text='x', bbox=bbox), multiplier)

    assert box.width > 0 and box.height > 0
    assert box.width == pytest.approx((right - left + 1) * multiplier)
    assert box.height == pytest.approx((bottom - top + 1) * multiplier)
    assert box.x0 == pytest.approx(left * multiplier)


def test_explicit_rect_has_no_edge_correction():
    box = fragment_box(TextFragment(text='x', rect=(10.0, 20.0, 110.0, 40.0)), 0.5)
    assert box == fitz.Rect(5, 10, 55, 20)


def test_is_drawable():
    assert is_drawable(TextFragment(text='Hi', bbox=(0, 0, 10, 10)), 1.0)
    assert not is_drawable(TextFragment(text='', bbox=(0, 0, 10, 10)), 1.0)
    assert not is_drawable(TextFragment(text='Hi', bbox=(10, 0, 5, 10)), 1.0)
    assert not is_drawable(TextFragment(text='Hi', rect=(0, 0, 0, 10)), 1.0)
    assert not is_drawable(TextFragment(text='Hi', bbox=(0, 0, 10, 10)), 0.0)


def test_page_geometry_is_frozen():
    geometry = resolve_geometry((10, 10))
    assert isinstance(geometry, PageGeometry)
    with pytest.raises(AttributeError):
        geometry.multiplier = 2.0
