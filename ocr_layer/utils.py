import os
import sys
import logging
import argparse

BLUE = '\033[94m'
YELLOW = '\033[93m'
RED = '\033[91m'
MAGENTA = '\033[95m'
END = '\033[0m'


class LevelColorFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.INFO: BLUE,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: MAGENTA
    }

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno, '')
        return f"{color}{record.levelname} - {record.name} - {record.getMessage()}{END}"


def setup_logger(log, level=logging.INFO):
    """Send the package's records to stdout, colored by level. Safe to call more than once."""
    log.setLevel(level)
    log.propagate = False
    if any(getattr(h, '_ocr_layer', False) for h in log.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(LevelColorFormatter())
    handler._ocr_layer = True
    log.addHandler(handler)

def validate_file(path):
    if not os.path.isfile(path):
        raise argparse.ArgumentTypeError(f"{path} is not a valid file")
    return path

def validate_output_file(path):
    parent = os.path.dirname(os.path.abspath(path))
    if not os.path.exists(parent):
        os.makedirs(parent)
    return path
