from enum import Enum
from typing import Optional
from dataclasses import dataclass

BBox = tuple[int, int, int, int]
RectTuple = tuple[float, float, float, float]


class Granularity(Enum):
    LINE = 'line'
    WORD = 'word'


@dataclass
class TextFragment:
    """
    One recognized span of text.

    Exactly one of ``bbox`` and ``rect`` is set:

    - ``bbox``: (left, top, right, bottom) in recognition pixel space. Edges
      are inclusive, so right/bottom get +1 before scaling.
    - ``rect``: (x0, y0, x1, y1) in point space at the image's natural size,
      top-left origin. Used as is.
    """
    text: str
    bbox: Optional[BBox] = None
    rect: Optional[RectTuple] = None

    def __post_init__(self):
        if (self.bbox is None) == (self.rect is None):
            raise ValueError('TextFragment needs exactly one of bbox or rect')


PageTextIndex = dict[int, list[TextFragment]]


def page_count(index: PageTextIndex) -> int:
    return max(index) if index else 0


def fragment_count(index: PageTextIndex) -> int:
    return sum(len(fragments) for fragments in index.values())


def union_bbox(bboxes: list[BBox]) -> BBox:
    """Return the union bounding box of a collection of bboxes."""
    return (
        min(b[0] for b in bboxes),
        min(b[1] for b in bboxes),
        max(b[2] for b in bboxes),
        max(b[3] for b in bboxes),
    )


def _same_line(a: BBox, b: BBox) -> bool:
    overlap = min(a[3], b[3]) - max(a[1], b[1])
    min_height = min(a[3] - a[1], b[3] - b[1])
    if min_height <= 0:
        return False
    return overlap >= min_height / 2 and b[0] >= a[0]


def group_words_into_lines(words: list[TextFragment]) -> list[TextFragment]:
    """
    Merge consecutive word fragments into line fragments.

    Two neighbouring words belong to the same line when their vertical extents
    overlap by at least half of the smaller height and the second one does not
    start left of the first. Fragments with an explicit rect are passed through
    untouched.

    :param words: word fragments in reading order
    :returns: line fragments in the same order
    """
    lines: list[TextFragment] = []
    current: list[TextFragment] = []

    def flush():
        if current:
            lines.append(TextFragment(
                text=' '.join(w.text for w in current),
                bbox=union_bbox([w.bbox for w in current]),
            ))
            current.clear()

    for word in words:
        if word.bbox is None:
            flush()
            lines.append(word)
            continue
        if current and not _same_line(current[-1].bbox, word.bbox):
            flush()
        current.append(word)
    flush()
    return lines
