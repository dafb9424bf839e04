from __future__ import annotations

import io
from pathlib import Path

import pytest
import requests

from conftest import SAMPLE_HOCR, write_image
from ocr_layer import ocr
from ocr_layer.errors import ImageDecodeError, RecognitionError
from ocr_layer.images import frame_files, load_page_images
from ocr_layer.ocr import CloudVisionRecognizer, TesseractRecognizer, gcv_words
from ocr_layer.text_model import Granularity, TextFragment, group_words_into_lines


def _word(text, x0, y0, x1, y1):
    return {
        'description': text,
        'boundingPoly': {'vertices': [
            {'x': x0, 'y': y0}, {'x': x1, 'y': y0}, {'x': x1, 'y': y1}, {'x': x0, 'y': y1},
        ]},
    }


GCV_RESPONSE = {
    'responses': [{
        'textAnnotations': [
            {'description': 'Hello world\nNext\n'},
            _word('Hello', 10, 10, 60, 30),
            _word('world', 70, 12, 120, 30),
            _word('Next', 10, 50, 50, 70),
        ]
    }]
}


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


def test_gcv_words():
    words = gcv_words(GCV_RESPONSE)

    assert words[0] == TextFragment(text='Hello', bbox=(10, 10, 59, 29))
    assert [w.text for w in words] == ['Hello', 'world', 'Next']


def test_gcv_error_response():
    with pytest.raises(RecognitionError, match='quota'):
        gcv_words({'responses': [{'error': {'message': 'quota exceeded'}}]})


def test_cloud_vision_recognizer(monkeypatch, tmp_path):
    image = write_image(tmp_path / 'scan.png')
    sent = {}

    def fake_post(url, params, json, headers, timeout):
        sent['url'] = url
        sent['key'] = params['key']
        sent['hints'] = json['requests'][0]['imageContext']['languageHints']
        return FakeResponse(GCV_RESPONSE)

    monkeypatch.setattr("ocr_layer.ocr.requests.post", fake_post)

    recognizer = CloudVisionRecognizer('secret', language_hints=['de'])
    words = recognizer.recognize(image, Granularity.WORD)
    lines = recognizer.recognize(image, Granularity.LINE)

    assert sent == {'url': ocr.GCV_URL, 'key': 'secret', 'hints': ['de']}
    assert [w.text for w in words[1]] == ['Hello', 'world', 'Next']
    assert lines[1] == [
        TextFragment(text='Hello world', bbox=(10, 10, 119, 29)),
        TextFragment(text='Next', bbox=(10, 50, 49, 69)),
    ]


def test_cloud_vision_request_failure(monkeypatch, tmp_path):
    image = write_image(tmp_path / 'scan.png')

    def fake_post(*args, **kwargs):
        raise requests.ConnectionError('no network')

    monkeypatch.setattr("ocr_layer.ocr.requests.post", fake_post)

    with pytest.raises(RecognitionError):
        CloudVisionRecognizer('secret').recognize(image, Granularity.WORD)


def test_cloud_vision_http_error(monkeypatch, tmp_path):
    image = write_image(tmp_path / 'scan.png')
    monkeypatch.setattr("ocr_layer.ocr.requests.post", lambda *a, **k: FakeResponse({}, status=403))

    with pytest.raises(RecognitionError):
        CloudVisionRecognizer('secret').recognize(image, Granularity.WORD)


def test_tesseract_recognizer_one_page_per_frame(monkeypatch, tmp_path):
    image = write_image(tmp_path / 'scan.tiff', frames=2)
    seen = []

    def fake_hocr(path, lang, config, extension):
        seen.append(Path(path))
        assert Path(path).exists()
        assert extension == 'hocr'
        assert lang == 'deu+eng'
        return SAMPLE_HOCR.encode('utf-8')

    monkeypatch.setattr("ocr_layer.ocr.pytesseract.image_to_pdf_or_hocr", fake_hocr)

    index = TesseractRecognizer('deu+eng').recognize(image, Granularity.LINE)

    assert list(index) == [1, 2]
    assert [f.text for f in index[2]] == ['Hello world', 'Second line&co']
    # temporary frame files are gone afterwards
    assert len(seen) == 2
    assert not any(p.exists() for p in seen)


def test_tesseract_failure_cleans_up(monkeypatch, tmp_path):
    image = write_image(tmp_path / 'scan.png')
    seen = []

    def fake_hocr(path, **kwargs):
        seen.append(Path(path))
        raise ocr.pytesseract.TesseractError(1, 'bad things')

    monkeypatch.setattr("ocr_layer.ocr.pytesseract.image_to_pdf_or_hocr", fake_hocr)

    with pytest.raises(RecognitionError):
        TesseractRecognizer().recognize(image, Granularity.WORD)
    assert seen and not seen[0].exists()


def test_load_page_images_multi_frame(tmp_path):
    image = write_image(tmp_path / 'scan.tiff', size=(30, 20), frames=3)

    pages = load_page_images(image)

    assert [p.frame for p in pages] == [0, 1, 2]
    assert all(p.size == (30, 20) for p in pages)
    assert pages[0].data.startswith(b'\x89PNG')


def test_load_page_images_cmyk_is_converted(tmp_path):
    from PIL import Image
    path = tmp_path / 'cmyk.jpg'
    Image.new('CMYK', (10, 10)).save(path)

    pages = load_page_images(path)

    assert pages[0].data.startswith(b'\x89PNG')


def test_load_page_images_rejects_garbage(tmp_path):
    path = tmp_path / 'junk.png'
    path.write_bytes(b'nope')
    with pytest.raises(ImageDecodeError):
        load_page_images(path)


def test_frame_files_removed_on_error(tmp_path):
    image = write_image(tmp_path / 'scan.png')
    with pytest.raises(RuntimeError):
        with frame_files(image) as files:
            kept = list(files)
            raise RuntimeError('boom')
    assert kept and not any(p.exists() for p in kept)


def test_group_words_into_lines_keeps_rect_fragments():
    words = [
        TextFragment(text='a', bbox=(0, 0, 10, 10)),
        TextFragment(text='b', bbox=(12, 1, 20, 11)),
        TextFragment(text='r', rect=(0.0, 0.0, 5.0, 5.0)),
        TextFragment(text='c', bbox=(0, 30, 10, 40)),
        TextFragment(text='d', bbox=(0, 60, 10, 70)),
    ]

    lines = group_words_into_lines(words)

    assert [l.text for l in lines] == ['a b', 'r', 'c', 'd']
    assert lines[0].bbox == (0, 0, 20, 11)


def test_text_fragment_needs_exactly_one_box():
    with pytest.raises(ValueError):
        TextFragment(text='x')
    with pytest.raises(ValueError):
        TextFragment(text='x', bbox=(0, 0, 1, 1), rect=(0.0, 0.0, 1.0, 1.0))


def test_load_page_images_applies_exif_orientation(tmp_path):
    from PIL import Image
    path = tmp_path / 'phone.jpg'
    exif = Image.Exif()
    exif[0x0112] = 6  # rotated 90 degrees clockwise
    Image.new('RGB', (40, 20), (255, 255, 255)).save(path, exif=exif)

    pages = load_page_images(path)

    assert pages[0].size == (20, 40)
    with Image.open(io.BytesIO(pages[0].data)) as upright:
        assert upright.size == (20, 40)
