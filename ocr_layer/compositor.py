import logging
from pathlib import Path
from typing import Callable, Optional
from concurrent.futures import ThreadPoolExecutor

import fitz

from .canvas import FitzCanvas
from .errors import ConfigurationError, ImageDecodeError, RecognitionError
from .fonts import FontHandle, fit_font
from .geometry import PageGeometry, fragment_box, is_drawable, resolve_geometry
from .glyphs import GlyphGuard, shape_text
from .hocr import parse_hocr_file
from .images import PageImage, load_page_images
from .ocr import Recognizer
from .settings import CreatorProperties
from .text_model import PageTextIndex, TextFragment

log = logging.getLogger(__name__)

Source = tuple[list[PageImage], PageTextIndex]


class SearchablePdfBuilder:
    """
    Builds a PDF where each page shows an input image with its recognized
    text laid over it.

    The builder owns the document while it is being built. Any fatal error
    discards the document, so callers get either a complete document or an
    exception.
    """

    def __init__(
        self,
        properties: Optional[CreatorProperties] = None,
        canvas_factory: Callable[[], FitzCanvas] = FitzCanvas
    ):
        self.properties = properties or CreatorProperties()
        self.canvas_factory = canvas_factory

    def create_pdf(
        self,
        image_paths: list[Path],
        recognizer: Recognizer,
        output: Optional[Path] = None
    ) -> fitz.Document:
        """
        Run recognition on every image and build the searchable PDF.

        Images that cannot be read or recognized are logged and left out.

        :param image_paths: input images, one or more pages each
        :param recognizer: recognition service
        :param output: where to save the PDF, if anywhere
        :returns: the built document
        """
        self.properties.validate()
        log.info(f"Starting ocr for {len(image_paths)} image(s)")
        results = self._recognize_all([Path(p) for p in image_paths], recognizer)
        sources = self._load_sources(results)
        return self._save(self.build(sources), output)

    def create_pdf_from_hocr(
        self,
        image_paths: list[Path],
        hocr_paths: list[Path],
        output: Optional[Path] = None
    ) -> fitz.Document:
        """Build the searchable PDF from images and their hOCR files, paired by position."""
        self.properties.validate()
        if len(image_paths) != len(hocr_paths):
            raise ConfigurationError(
                f"Got {len(image_paths)} images but {len(hocr_paths)} hOCR files")
        results = [
            (Path(image), parse_hocr_file(Path(hocr), self.properties.granularity))
            for image, hocr in zip(image_paths, hocr_paths)
        ]
        sources = self._load_sources(results)
        return self._save(self.build(sources), output)

    def build(self, sources: list[Source]) -> fitz.Document:
        """
        Composite images and text into a new document.

        :param sources: for each input file, its frames and their page text
        :returns: the finished document
        :raises ImageDecodeError: when there is no page to add at all
        """
        props = self.properties
        props.validate()
        props.font_provider.reset()
        guard = GlyphGuard(strict=props.strict)

        canvas = self.canvas_factory()
        try:
            canvas.set_document_info(title=props.title, lang=props.pdf_lang)
            pages_added = 0
            words_added = 0
            for images, index in sources:
                for page_number, image in enumerate(images, start=1):
                    words_added += self._add_page(canvas, guard, image, index.get(page_number, []))
                    pages_added += 1
            if pages_added == 0:
                raise ImageDecodeError("None of the input images could be added to the PDF document")
            document = canvas.finish()
        except Exception:
            canvas.discard()
            raise

        guard.summarize()
        log.info(f"Created PDF with {pages_added} pages ({words_added} text fragments)")
        return document

    def _add_page(
        self,
        canvas: FitzCanvas,
        guard: GlyphGuard,
        image: PageImage,
        fragments: list[TextFragment]
    ) -> int:
        props = self.properties
        geometry = resolve_geometry(image.size, props.scale_mode, props.page_size)
        canvas.add_page(geometry.page_rect)

        image_layer = props.image_layer_name
        text_layer = props.text_layer_name

        if image_layer is not None:
            canvas.begin_layer(image_layer)
        canvas.draw_image(image, geometry.image_rect)
        if image_layer is not None and image_layer != text_layer:
            canvas.end_layer()

        if text_layer is not None and text_layer != image_layer:
            canvas.begin_layer(text_layer)
        added = self._add_text(canvas, guard, geometry, fragments)
        if text_layer is not None:
            canvas.end_layer()
        return added

    def _add_text(
        self,
        canvas: FitzCanvas,
        guard: GlyphGuard,
        geometry: PageGeometry,
        fragments: list[TextFragment]
    ) -> int:
        if not fragments:
            return 0

        props = self.properties
        provider = props.font_provider
        font: FontHandle = provider.resolve(props.font_family)
        origin = geometry.image_rect.tl
        added = 0

        for fragment in fragments:
            if not is_drawable(fragment, geometry.multiplier):
                log.debug(f"Skipping empty fragment {fragment}")
                continue

            box = fragment_box(fragment, geometry.multiplier)
            fit = fit_font(provider, font, fragment.text, box.width, box.height)
            if fit is None:
                log.debug(f"Skipping '{fragment.text}': renders with zero width")
                continue

            run = guard.inspect(shape_text(font, fragment.text), font)

            # baseline sits above the box bottom by the font's descender
            x = origin.x + box.x0
            y = origin.y + box.y1 + font.descender * fit.size

            if props.debug_boxes:
                canvas.draw_box(fitz.Rect(
                    origin.x + box.x0, origin.y + box.y0,
                    origin.x + box.x1, origin.y + box.y1,
                ))
            canvas.draw_text(run, (x, y), font, fit.size, fit.horizontal_scale, props.text_color)
            added += 1

        return added

    def _recognize_all(
        self,
        image_paths: list[Path],
        recognizer: Recognizer
    ) -> list[tuple[Path, PageTextIndex]]:
        granularity = self.properties.granularity

        def recognize(path: Path) -> Optional[PageTextIndex]:
            try:
                return recognizer.recognize(path, granularity)
            except (ImageDecodeError, RecognitionError) as e:
                log.error(f"Cannot add data for {path} to PDF document: {e}")
                return None

        # recognition may run in parallel, the document is only built afterwards
        if self.properties.jobs > 1:
            with ThreadPoolExecutor(max_workers=self.properties.jobs) as executor:
                indexes = list(executor.map(recognize, image_paths))
        else:
            indexes = [recognize(path) for path in image_paths]

        return [(path, index) for path, index in zip(image_paths, indexes) if index is not None]

    def _load_sources(self, results: list[tuple[Path, PageTextIndex]]) -> list[Source]:
        sources = []
        for path, index in results:
            try:
                images = load_page_images(path)
            except ImageDecodeError as e:
                log.error(f"Cannot add data for {path} to PDF document: {e}")
                continue
            extra = [page for page in index if page > len(images)]
            if extra:
                log.warning(f"{path.name}: text for pages {extra} has no matching image frame")
            sources.append((images, index))
        return sources

    @staticmethod
    def _save(document: fitz.Document, output: Optional[Path]) -> fitz.Document:
        if output is not None:
            document.save(str(output), garbage=3, deflate=True)
            log.info(f"Searchable PDF written to {output}")
        return document
