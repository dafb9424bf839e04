import logging
import argparse
from pathlib import Path

from .create import add_recognition_arguments, build_recognizer
from .export import write_output
from .text_model import Granularity, fragment_count
from .utils import validate_file, validate_output_file

log = logging.getLogger(__name__)


def build_extract_parser(parser: argparse._SubParsersAction):
    extract_parser = parser.add_parser(
        'extract',
        help='Run "extract" to write recognized text as hOCR or plain text.'
    )
    extract_parser.add_argument('image', type=validate_file, help="Input image")
    extract_parser.add_argument(
        'output', type=validate_output_file,
        help="Output file; .hocr/.html gives hOCR, anything else plain text"
    )
    add_recognition_arguments(extract_parser)


def run_extract(args: argparse.Namespace):
    recognizer = build_recognizer(args)
    index = recognizer.recognize(Path(args.image), Granularity(args.granularity))
    write_output(index, Path(args.output))
    print(f"Done: {fragment_count(index)} text fragments on {len(index)} pages written to {args.output}")
