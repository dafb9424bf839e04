import io
import logging
import tempfile
from pathlib import Path
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from PIL import Image, ImageOps, ImageSequence, UnidentifiedImageError

from .errors import ImageDecodeError

log = logging.getLogger(__name__)

# modes PNG can store as is
PNG_MODES = {'1', 'L', 'LA', 'P', 'RGB', 'RGBA', 'I;16'}


@dataclass
class PageImage:
    data: bytes
    width: int
    height: int
    source: Path
    frame: int = 0

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height


def _encode_png(frame: Image.Image) -> bytes:
    if frame.mode not in PNG_MODES:
        frame = frame.convert('RGB')
    buf = io.BytesIO()
    frame.save(buf, format='PNG')
    return buf.getvalue()


@contextmanager
def open_image(path: Path) -> Iterator[Image.Image]:
    try:
        img = Image.open(path)
    except (UnidentifiedImageError, OSError) as e:
        raise ImageDecodeError(f"Cannot read input image {path}: {e}") from e
    try:
        yield img
    finally:
        img.close()


def load_page_images(path: Path) -> list[PageImage]:
    """
    Decode every frame of an image file.

    Multi-frame files (TIFF, GIF, ...) give one PageImage per frame, in
    order, so that frame i is page i + 1. Frames are turned upright
    according to their EXIF orientation, and width and height are those of
    the upright frame.

    :param path: image file
    :returns: list of decoded frames
    :raises ImageDecodeError: when the file is not a readable image
    """
    path = Path(path)
    pages = []
    with open_image(path) as img:
        try:
            for i, frame in enumerate(ImageSequence.Iterator(img)):
                # upright per EXIF orientation
                frame = ImageOps.exif_transpose(frame)
                width, height = frame.size
                if width <= 0 or height <= 0:
                    raise ImageDecodeError(f"Frame {i} of {path} has no pixels")
                pages.append(PageImage(
                    data=_encode_png(frame),
                    width=width,
                    height=height,
                    source=path,
                    frame=i,
                ))
        except (OSError, ValueError) as e:
            raise ImageDecodeError(f"Cannot decode {path}: {e}") from e
    log.info(f"Number of pages in image {path.name}: {len(pages)}")
    return pages


@contextmanager
def frame_files(path: Path) -> Iterator[list[Path]]:
    """
    Write every frame of an image to its own temporary PNG file.

    The files are deleted when the context exits, whether or not an error
    was raised.
    """
    with tempfile.TemporaryDirectory(prefix='ocr_layer_') as tmp_dir:
        files = []
        for page in load_page_images(path):
            frame_path = Path(tmp_dir) / f'{Path(path).stem}-{page.frame}.png'
            frame_path.write_bytes(page.data)
            files.append(frame_path)
        yield files
