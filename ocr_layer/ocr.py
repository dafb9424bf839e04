import base64
import logging
from pathlib import Path
from typing import Optional, Protocol

import requests
import pytesseract

from .errors import RecognitionError
from .hocr import parse_hocr
from .images import PageImage, frame_files, load_page_images
from .text_model import (
    Granularity, PageTextIndex, TextFragment, group_words_into_lines,
)

log = logging.getLogger(__name__)

GCV_URL = "https://vision.googleapis.com/v1/images:annotate"


class Recognizer(Protocol):
    def recognize(self, image_path: Path, granularity: Granularity) -> PageTextIndex:
        ...


def call_gcv_api(image_data: bytes, api_key: str, language_hints: list[str]) -> dict:
    """
    Call Google Cloud Vision TEXT_DETECTION API on an image.

    :param image_data: encoded image bytes
    :param api_key: Google Cloud Vision API key
    :param language_hints: languages passed to the API as hints
    :returns: Raw GCV API response dict
    :raises RecognitionError: when the request fails
    """
    request_body = {
        "requests": [{
            "image": {"content": base64.b64encode(image_data).decode('utf-8')},
            "features": {"type": "TEXT_DETECTION"},
            "imageContext": {"languageHints": language_hints}
        }]
    }

    try:
        response = requests.post(
            GCV_URL,
            params={"key": api_key},
            json=request_body,
            headers={"Content-Type": "application/json"},
            timeout=60
        )
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        log.warning(f"GCV API call failed: {e}")
        raise RecognitionError(f"GCV API call failed: {e}") from e


def gcv_words(gcv_response: dict) -> list[TextFragment]:
    """
    Turn the word annotations of a GCV response into word fragments.

    The first text annotation is the full text and is skipped. Each word's
    polygon becomes its axis-aligned bounding box.
    """
    responses = gcv_response.get('responses', [{}])
    if not responses:
        return []
    first = responses[0]
    if 'error' in first:
        raise RecognitionError(f"GCV error: {first['error'].get('message', first['error'])}")

    text_annotations = first.get('textAnnotations', [])
    words = text_annotations[1:] if len(text_annotations) > 1 else []

    fragments = []
    for word_data in words:
        text = word_data.get('description', '').strip()
        vertices = word_data.get('boundingPoly', {}).get('vertices', [])
        if len(vertices) < 4 or not text:
            continue
        xs = [v.get('x', 0) for v in vertices]
        ys = [v.get('y', 0) for v in vertices]
        # vertices are pixel corners, bbox edges are inclusive pixels
        bbox = (min(xs), min(ys), max(max(xs) - 1, min(xs)), max(max(ys) - 1, min(ys)))
        fragments.append(TextFragment(text=text, bbox=bbox))
    return fragments


class CloudVisionRecognizer:
    def __init__(self, api_key: str, language_hints: Optional[list[str]] = None):
        self.api_key = api_key
        self.language_hints = language_hints or ["en"]

    def recognize_page(self, page: PageImage, granularity: Granularity) -> list[TextFragment]:
        words = gcv_words(call_gcv_api(page.data, self.api_key, self.language_hints))
        if granularity is Granularity.LINE:
            return group_words_into_lines(words)
        return words

    def recognize(self, image_path: Path, granularity: Granularity) -> PageTextIndex:
        log.info(f"Sending OCR request for: {image_path}")
        index = {}
        for page in load_page_images(image_path):
            index[page.frame + 1] = self.recognize_page(page, granularity)
        return index


class TesseractRecognizer:
    """Runs tesseract on every frame of an image and parses its hOCR output."""

    def __init__(self, languages: str = "eng", config: str = ""):
        self.languages = languages
        self.config = config

    def recognize(self, image_path: Path, granularity: Granularity) -> PageTextIndex:
        log.info(f"Running tesseract ({self.languages}) on: {image_path}")
        index = {}
        with frame_files(image_path) as files:
            for i, frame_path in enumerate(files):
                try:
                    hocr = pytesseract.image_to_pdf_or_hocr(
                        str(frame_path),
                        lang=self.languages,
                        config=self.config,
                        extension='hocr',
                    )
                except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
                    raise RecognitionError(f"Tesseract failed on {image_path}: {e}") from e
                page_index = parse_hocr(hocr, granularity, first_page=i + 1)
                # one frame is one page, whatever page number tesseract gave it
                index[i + 1] = [f for fragments in page_index.values() for f in fragments]
        return index
