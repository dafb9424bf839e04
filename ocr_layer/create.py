import logging
import argparse
from pathlib import Path

from .compositor import SearchablePdfBuilder
from .errors import ConfigurationError
from .fonts import FontProvider
from .geometry import ScaleMode
from .ocr import CloudVisionRecognizer, Recognizer, TesseractRecognizer
from .settings import CreatorProperties, get_gcv_api_key, parse_color, parse_page_size
from .text_model import Granularity
from .utils import validate_file, validate_output_file

log = logging.getLogger(__name__)


def add_recognition_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        '--engine', choices=('tesseract', 'gcv'), default='tesseract',
        help="Recognition engine (default: tesseract). gcv needs GCV_API_KEY "
            "or a ./gcv_api_key file"
    )
    parser.add_argument(
        '-l', '--lang', default='eng',
        help="Tesseract language(s), e.g. eng, deu+eng (default: eng)"
    )
    parser.add_argument(
        '--granularity', choices=[g.value for g in Granularity],
        default=Granularity.LINE.value,
        help="Place text line by line or word by word (default: line)"
    )


def build_create_parser(parser: argparse._SubParsersAction):
    create_parser = parser.add_parser(
        'create',
        help='Run "create" to turn images into a searchable PDF.'
    )
    create_parser.add_argument(
        'images', nargs='+', type=validate_file,
        help="Input images, in page order (multi-page TIFFs allowed)"
    )
    create_parser.add_argument(
        '-o', '--output', type=validate_output_file, required=True,
        help="Output PDF path"
    )
    add_recognition_arguments(create_parser)
    create_parser.add_argument(
        '--hocr', nargs='+', type=validate_file,
        help="Use these hOCR files (one per image) instead of running recognition"
    )
    create_parser.add_argument(
        '--scale-mode', choices=[m.value for m in ScaleMode],
        default=ScaleMode.SCALE_TO_FIT.value,
        help="How images are scaled into --page-size (default: scale-to-fit)"
    )
    create_parser.add_argument(
        '--page-size',
        help="Fixed page size: a4, letter, ... or WIDTHxHEIGHT in points. "
            "Default is the image size"
    )
    create_parser.add_argument('--image-layer', help="Put images on this layer")
    create_parser.add_argument('--text-layer', help="Put text on this layer")
    create_parser.add_argument(
        '--text-color',
        help="Draw visible text in this color (#rrggbb or r,g,b). Default: invisible"
    )
    create_parser.add_argument(
        '--font', action='append', default=[], metavar='FAMILY=PATH',
        help="Register a font file under a family name (repeatable)"
    )
    create_parser.add_argument(
        '--font-family',
        help="Font family used for the text layer (default: helv)"
    )
    create_parser.add_argument(
        '--strict', action='store_true',
        help="Archival mode: fail when the font lacks a glyph. Needs --pdf-lang"
    )
    create_parser.add_argument('--pdf-lang', help="Document language, e.g. en-US")
    create_parser.add_argument('--title', help="Document title")
    create_parser.add_argument(
        '--jobs', type=int, default=1,
        help="Number of images recognized in parallel (default: 1)"
    )
    create_parser.add_argument(
        '--ocr-debug', action='store_true',
        help="Make OCR text visible and outline its boxes for debugging alignment"
    )


def build_font_provider(fonts: list[str]) -> FontProvider:
    provider = FontProvider()
    for option in fonts:
        family, sep, path = option.partition('=')
        if not sep or not family or not path:
            raise ConfigurationError(f"Expected FAMILY=PATH, got {option!r}")
        provider.register(family, Path(path))
    return provider


def build_recognizer(args: argparse.Namespace) -> Recognizer:
    if args.engine == 'gcv':
        api_key = get_gcv_api_key()
        if not api_key:
            raise ConfigurationError("No GCV API key found (set GCV_API_KEY or ./gcv_api_key)")
        log.info("GCV API key found, using Google Cloud Vision")
        return CloudVisionRecognizer(api_key, language_hints=args.lang.split('+'))
    return TesseractRecognizer(languages=args.lang)


def properties_from_args(args: argparse.Namespace) -> CreatorProperties:
    text_color = parse_color(args.text_color) if args.text_color else None
    if args.ocr_debug:
        log.info("OCR debug mode enabled - text will be visible")
        text_color = text_color or (0, 0, 1)  # Blue for debug

    return CreatorProperties(
        scale_mode=ScaleMode(args.scale_mode),
        page_size=parse_page_size(args.page_size) if args.page_size else None,
        image_layer_name=args.image_layer,
        text_layer_name=args.text_layer,
        text_color=text_color,
        granularity=Granularity(args.granularity),
        strict=args.strict,
        pdf_lang=args.pdf_lang,
        title=args.title,
        font_family=args.font_family,
        font_provider=build_font_provider(args.font),
        debug_boxes=args.ocr_debug,
        jobs=args.jobs,
    )


def run_create(args: argparse.Namespace):
    properties = properties_from_args(args)
    builder = SearchablePdfBuilder(properties)
    images = [Path(p) for p in args.images]
    output = Path(args.output)

    if args.hocr:
        document = builder.create_pdf_from_hocr(images, [Path(p) for p in args.hocr], output)
    else:
        document = builder.create_pdf(images, build_recognizer(args), output)

    print(f"Done: searchable PDF with {document.page_count} pages written to {output}")
    document.close()
