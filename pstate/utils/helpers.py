import logging
import os
import sys
from typing import NoReturn


def fatal(message) -> NoReturn:
    logging.error(message)
    sys.exit(1)


def is_root() -> bool:
    # euid != uid. please keep it this way (set-uid)
    return os.geteuid() == 0
