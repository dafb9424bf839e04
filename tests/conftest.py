from __future__ import annotations

import logging
from pathlib import Path

import fitz
import pytest
from PIL import Image

from ocr_layer.images import PageImage

FONT_DIR = Path(__file__).parent / 'fonts'
# SIL Open Font License; has Latin glyphs but no CJK ones
LATO_FONT = FONT_DIR / 'Lato-Regular.ttf'

SAMPLE_HOCR = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE html PUBLIC "-//W3C//DTD XHTML 1.0 Transitional//EN"
    "http://www.w3.org/TR/xhtml1/DTD/xhtml1-transitional.dtd">
<html xmlns="http://www.w3.org/1999/xhtml" xml:lang="en" lang="en">
 <head>
  <title></title>
  <meta http-equiv="Content-Type" content="text/html;charset=utf-8"/>
  <meta name='ocr-system' content='tesseract 5.3.0' />
 </head>
 <body>
  <div class='ocr_page' id='page_1' title='image "scan.png"; bbox 0 0 400 200; ppageno 0'>
   <div class='ocr_carea' id='block_1_1' title="bbox 20 20 380 130">
    <p class='ocr_par' id='par_1_1' lang='eng' title="bbox 20 20 380 130">
     <span class='ocr_line' id='line_1_1' title="bbox 20 20 300 60; baseline 0 -8; x_size 40">
      <span class='ocrx_word' id='word_1_1' title='bbox 20 20 140 60; x_wconf 96'>Hello</span>
      <span class='ocrx_word' id='word_1_2' title='bbox 160 22 300 60; x_wconf 95'>world</span>
     </span>
     <span class='ocr_line' id='line_1_2' title="bbox 20 90 380 130; baseline 0 -8; x_size 40">
      <span class='ocrx_word' id='word_1_3' title='bbox 20 90 160 130; x_wconf 91'>Second</span>
      <span class='ocrx_word' id='word_1_4' title='bbox 180 90 380 130; x_wconf 90'>line&amp;co</span>
     </span>
    </p>
   </div>
  </div>
 </body>
</html>
"""


class RecordingCanvas:
    """Canvas stand-in that records every call made to it."""

    def __init__(self):
        self.calls = []
        self.runs = []
        self.info = {}
        self.discarded = False
        self.finished = False

    def names(self):
        return [call[0] for call in self.calls]

    def add_page(self, rect):
        self.calls.append(('add_page', fitz.Rect(rect)))

    def begin_layer(self, name):
        self.calls.append(('begin_layer', name))

    def end_layer(self):
        self.calls.append(('end_layer',))

    def draw_image(self, image, rect):
        self.calls.append(('draw_image', fitz.Rect(rect)))

    def draw_text(self, run, position, font, size, horizontal_scale, color):
        self.runs.append(run)
        self.calls.append(('draw_text', run.text, position, size, horizontal_scale, color))

    def draw_box(self, rect):
        self.calls.append(('draw_box', fitz.Rect(rect)))

    def set_document_info(self, title=None, lang=None):
        self.info = {'title': title, 'lang': lang}

    def finish(self):
        self.finished = True
        return self

    def discard(self):
        self.discarded = True


@pytest.fixture
def recording_canvas():
    canvas = RecordingCanvas()
    return canvas


@pytest.fixture(autouse=True)
def reset_package_logger():
    # the CLI stops propagation on the package logger, which hides records from caplog
    yield
    logger = logging.getLogger('ocr_layer')
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def page_image(width: int, height: int) -> PageImage:
    return PageImage(data=b'', width=width, height=height, source=Path('scan.png'))


def write_image(path: Path, size=(400, 200), frames: int = 1) -> Path:
    images = [Image.new('RGB', size, (255, 255, 255)) for _ in range(frames)]
    if frames > 1:
        images[0].save(path, save_all=True, append_images=images[1:])
    else:
        images[0].save(path)
    return path
