import sys
import logging
import argparse

log = logging.getLogger(__package__)

from .utils import setup_logger

from .errors import OcrLayerError
from .create import build_create_parser, run_create
from .extract import build_extract_parser, run_extract

def parse_args(argv=None) -> argparse.Namespace:
    """
    Parse command line arguments for ocr_layer

    :returns: parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog='ocr-layer',
        description='Overlay recognized text on images to make searchable PDFs'
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log per-fragment details')

    subparser = parser.add_subparsers(dest='action',
                                      help='Available actions',
                                      required=True)
    build_create_parser(subparser)
    build_extract_parser(subparser)
    args = parser.parse_args(argv)
    return args

def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logger(log, logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.action == 'create':
            run_create(args)
        elif args.action == 'extract':
            run_extract(args)
    except OcrLayerError as e:
        log.error(f"Cannot create PDF document: {e}")
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
