import logging
from typing import Optional

import fitz

from .fonts import FontHandle, FontKind
from .glyphs import GlyphRun
from .images import PageImage

log = logging.getLogger(__name__)

Color = tuple[float, float, float]

RENDER_FILL = 0
RENDER_INVISIBLE = 3


class FitzCanvas:
    """
    Page canvas writing into a new PyMuPDF document.

    Layers are optional content groups, one per name per document. Drawing
    calls made between ``begin_layer`` and ``end_layer`` belong to the
    innermost open layer; calls outside any layer are always visible.
    """

    def __init__(self):
        self.document = fitz.open()
        self.page: Optional[fitz.Page] = None
        self._layers: dict[str, int] = {}
        self._open_layers: list[str] = []

    @property
    def _oc(self) -> int:
        return self._layers[self._open_layers[-1]] if self._open_layers else 0

    def add_page(self, rect: fitz.Rect):
        self.page = self.document.new_page(width=rect.width, height=rect.height)

    def begin_layer(self, name: str):
        if name not in self._layers:
            self._layers[name] = self.document.add_ocg(name, on=True)
        self._open_layers.append(name)

    def end_layer(self):
        if not self._open_layers:
            raise RuntimeError("end_layer() called without an open layer")
        self._open_layers.pop()

    def draw_image(self, image: PageImage, rect: fitz.Rect):
        self.page.insert_image(rect, stream=image.data, keep_proportion=False, oc=self._oc)

    def draw_text(
        self,
        run: GlyphRun,
        position: tuple[float, float],
        font: FontHandle,
        size: float,
        horizontal_scale: float,
        color: Optional[Color]
    ):
        """
        Show a glyph run starting at ``position`` on the baseline.

        When any glyph of the run carries actual text, the whole run goes into
        one ``/Span`` marked content sequence whose ``/ActualText`` is the
        run's full text, with actual text substituted for those glyphs. The
        run is a single text showing operation, so it cannot be split into
        per-glyph sequences without giving up its horizontal scaling.
        """
        point = fitz.Point(position)
        fontfile = str(font.fontfile) if font.kind is FontKind.COMPOSITE else None

        shape = self.page.new_shape()
        shape.insert_text(
            point,
            run.text,
            fontsize=size,
            fontname=font.alias,
            fontfile=fontfile,
            render_mode=RENDER_FILL if color else RENDER_INVISIBLE,
            color=color,
            morph=(point, fitz.Matrix(horizontal_scale, 0, 0, 1, 0, 0)),
            oc=self._oc,
        )
        if run.actual_text:
            # readers extract the actual text instead of the font's mapping
            shape.text_cont = (
                f"/Span <</ActualText {fitz.get_pdf_str(run.to_unicode())}>> BDC\n"
                f"{shape.text_cont}\nEMC\n"
            )
        shape.commit()

    def draw_box(self, rect: fitz.Rect):
        shape = self.page.new_shape()
        shape.draw_rect(rect)
        shape.finish(color=(1, 0, 0), width=0.5, oc=self._oc)  # Red outline
        shape.commit()

    def set_document_info(self, title: Optional[str] = None, lang: Optional[str] = None):
        catalog = self.document.pdf_catalog()
        if title is not None:
            self.document.set_metadata({'title': title})
            self.document.xref_set_key(catalog, "ViewerPreferences", "<</DisplayDocTitle true>>")
        if lang:
            self.document.xref_set_key(catalog, "Lang", fitz.get_pdf_str(lang))

    def finish(self) -> fitz.Document:
        if self._open_layers:
            raise RuntimeError(f"Layers left open: {self._open_layers}")
        return self.document

    def discard(self):
        self.document.close()
