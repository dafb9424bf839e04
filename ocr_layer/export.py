import html
import logging
from pathlib import Path

from .text_model import PageTextIndex, TextFragment

log = logging.getLogger(__name__)

HOCR_HEADER = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Transitional//EN"
    "http://www.w3.org/TR/xhtml1/DTD/xhtml1-transitional.dtd">
<html xmlns="http://www.w3.org/1999/xhtml" xml:lang="en" lang="en">
 <head>
  <title></title>
  <meta http-equiv="Content-Type" content="text/html;charset=utf-8"/>
  <meta name="ocr-system" content="ocr_layer"/>
  <meta name="ocr-capabilities" content="ocr_page ocrx_word"/>
 </head>
 <body>
"""

HOCR_FOOTER = """ </body>
</html>
"""


def _bbox_of(fragment: TextFragment) -> tuple[int, int, int, int]:
    if fragment.bbox is not None:
        return fragment.bbox
    x0, y0, x1, y1 = fragment.rect
    return round(x0), round(y0), round(x1), round(y1)


def to_hocr(index: PageTextIndex) -> str:
    """
    Write a page text index as hOCR.

    Each fragment becomes one ``ocrx_word`` inside its own ``ocr_line``, so
    the document parses back to the same fragments with either granularity.
    """
    parts = [HOCR_HEADER]
    for page, fragments in index.items():
        parts.append(
            f"  <div class='ocr_page' id='page_{page}' title='ppageno {page - 1}'>\n")
        for i, fragment in enumerate(fragments, start=1):
            bbox = ' '.join(str(v) for v in _bbox_of(fragment))
            text = html.escape(fragment.text, quote=False)
            parts.append(
                f"   <span class='ocr_line' id='line_{page}_{i}' title='bbox {bbox}'>"
                f"<span class='ocrx_word' id='word_{page}_{i}' title='bbox {bbox}'>{text}</span>"
                f"</span>\n"
            )
        parts.append("  </div>\n")
    parts.append(HOCR_FOOTER)
    return ''.join(parts)


def to_text(index: PageTextIndex) -> str:
    """Plain text, one fragment per line, pages separated by a form feed."""
    return '\f'.join(
        ''.join(f"{fragment.text}\n" for fragment in fragments)
        for fragments in index.values()
    )


def write_output(index: PageTextIndex, path: Path):
    path = Path(path)
    content = to_hocr(index) if path.suffix.lower() in ('.hocr', '.html') else to_text(index)
    path.write_text(content, encoding='utf-8')
    log.info(f"Recognized text written to {path}")
