import re
import logging
from pathlib import Path
from typing import Iterable, Optional
from html.parser import HTMLParser

from .errors import ParseError
from .text_model import BBox, Granularity, PageTextIndex, TextFragment

log = logging.getLogger(__name__)

LINE_CLASSES = {'ocr_line', 'ocr_caption', 'ocr_textfloat', 'ocr_header'}
WORD_CLASS = 'ocrx_word'
PAGE_CLASS = 'ocr_page'

PAGE_ID_RE = re.compile(r'^page_(\d+)$')

VOID_TAGS = {
    'area', 'base', 'br', 'col', 'embed', 'hr', 'img', 'input', 'link',
    'meta', 'param', 'source', 'track', 'wbr',
}

# bbox present but not four integers
_MALFORMED = object()


def parse_title(title: str) -> dict[str, str]:
    """
    Split an hOCR title attribute into its properties.

    ``'bbox 0 0 10 10; x_wconf 95'`` -> ``{'bbox': '0 0 10 10', 'x_wconf': '95'}``
    """
    props = {}
    for part in title.split(';'):
        part = part.strip()
        if not part:
            continue
        key, _, value = part.partition(' ')
        props[key] = value.strip()
    return props


def parse_bbox(title: str) -> Optional[BBox]:
    """
    Read the ``bbox`` property of an hOCR title.

    :returns: (left, top, right, bottom), or None when there is no bbox
    :raises ValueError: when the bbox is not four integers
    """
    props = parse_title(title)
    if 'bbox' not in props:
        return None
    values = props['bbox'].split()
    if len(values) != 4:
        raise ValueError(f"bbox needs 4 values, got {props['bbox']!r}")
    left, top, right, bottom = (int(v) for v in values)
    return left, top, right, bottom


class _Page:
    def __init__(self, relative_index: int):
        self.relative_index = relative_index
        self.fragments: list[TextFragment] = []


class _Span:
    def __init__(self, bbox):
        self.bbox = bbox
        self.words: list[str] = []
        self.text_parts: list[str] = []


class _HocrParser(HTMLParser):
    """Collect ocr_page / ocr_line / ocrx_word elements into pages of fragments."""

    def __init__(self, granularity: Granularity):
        super().__init__(convert_charrefs=True)
        self.granularity = granularity
        self.pages: list[_Page] = []
        self.skipped = 0
        self._stack: list[tuple[str, Optional[str]]] = []
        self._page: Optional[_Page] = None
        # caption, header and textfloat elements may wrap ocr_line elements
        self._lines: list[_Span] = []
        self._word: Optional[_Span] = None

    @property
    def _line(self) -> Optional[_Span]:
        return self._lines[-1] if self._lines else None

    @staticmethod
    def _read_bbox(title: str):
        try:
            return parse_bbox(title)
        except ValueError as e:
            log.debug(f"Malformed bbox in title {title!r}: {e}")
            return _MALFORMED

    def _page_index(self, attrs: dict) -> int:
        props = parse_title(attrs.get('title') or '')
        if 'ppageno' in props:
            try:
                return int(props['ppageno'])
            except ValueError:
                log.debug(f"Ignoring malformed ppageno {props['ppageno']!r}")
        m = PAGE_ID_RE.match(attrs.get('id') or '')
        if m:
            return int(m.group(1)) - 1
        return len(self.pages)

    def handle_starttag(self, tag, attrs):
        if tag in VOID_TAGS:
            return
        d = dict(attrs)
        classes = set((d.get('class') or '').split())
        title = d.get('title') or ''

        role = None
        if PAGE_CLASS in classes:
            role = 'page'
            self._page = _Page(self._page_index(d))
            self.pages.append(self._page)
        elif self._page is not None and classes & LINE_CLASSES:
            role = 'line'
            self._lines.append(_Span(self._read_bbox(title)))
        elif self._page is not None and WORD_CLASS in classes:
            role = 'word'
            self._word = _Span(self._read_bbox(title))
        self._stack.append((tag, role))

    def handle_startendtag(self, tag, attrs):
        # self-closing elements carry no text
        return

    def handle_endtag(self, tag):
        if tag in VOID_TAGS:
            return
        if not any(t == tag for t, _ in self._stack):
            return
        while self._stack:
            open_tag, role = self._stack.pop()
            self._close(role)
            if open_tag == tag:
                break

    def handle_data(self, data):
        if self._word is not None:
            self._word.text_parts.append(data)
        elif self._line is not None:
            self._line.text_parts.append(data)

    def close(self):
        super().close()
        while self._stack:
            _, role = self._stack.pop()
            self._close(role)

    def _close(self, role):
        if role == 'word':
            word, self._word = self._word, None
            text = ''.join(word.text_parts).strip()
            if not text:
                return
            if self._line is not None:
                self._line.words.append(text)
            if self.granularity is Granularity.WORD:
                self._add_fragment(text, word.bbox)
        elif role == 'line':
            line = self._lines.pop()
            if self.granularity is Granularity.LINE:
                text = ' '.join(line.words) or ''.join(line.text_parts).strip()
                if text:
                    self._add_fragment(text, line.bbox)
        elif role == 'page':
            self._page = None

    def _add_fragment(self, text: str, bbox):
        if bbox is None or bbox is _MALFORMED:
            log.debug(f"Skipping '{text}': missing or malformed bbox")
            self.skipped += 1
            return
        self._page.fragments.append(TextFragment(text=text, bbox=bbox))


def parse_hocr(
    markup: str | bytes,
    granularity: Granularity = Granularity.LINE,
    first_page: int = 1
) -> PageTextIndex:
    """
    Parse one hOCR document into a page text index.

    Pages are keyed by their identifier (``ppageno``, else a ``page_N`` id,
    else their position in the document), offset by ``first_page``. Fragments
    with a missing or malformed bbox are skipped.

    :param markup: hOCR document
    :param granularity: whether fragments are whole lines or single words
    :param first_page: page number given to the document's first page
    :returns: page number -> fragments in document order
    :raises ParseError: when the document contains no ocr_page at all
    """
    if isinstance(markup, bytes):
        markup = markup.decode('utf-8', errors='replace')

    parser = _HocrParser(granularity)
    parser.feed(markup)
    parser.close()

    if not parser.pages:
        raise ParseError("No ocr_page element found in hOCR document")

    index: PageTextIndex = {}
    for page in parser.pages:
        index.setdefault(first_page + page.relative_index, []).extend(page.fragments)

    if parser.skipped:
        log.info(f"Skipped {parser.skipped} fragments with missing or malformed bbox")
    return dict(sorted(index.items()))


def parse_hocr_documents(
    documents: Iterable[str | bytes],
    granularity: Granularity = Granularity.LINE
) -> PageTextIndex:
    """Parse several hOCR documents, numbering each one's pages after the previous ones."""
    index: PageTextIndex = {}
    first_page = 1
    for markup in documents:
        parsed = parse_hocr(markup, granularity, first_page)
        for page, fragments in parsed.items():
            index.setdefault(page, []).extend(fragments)
        first_page = max(parsed) + 1
    return dict(sorted(index.items()))


def parse_hocr_file(
    path: Path,
    granularity: Granularity = Granularity.LINE,
    first_page: int = 1
) -> PageTextIndex:
    try:
        return parse_hocr(Path(path).read_bytes(), granularity, first_page)
    except ParseError as e:
        raise ParseError(f"{path}: {e}") from e
