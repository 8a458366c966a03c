import json
import logging
import pathlib
import time

DATEFMT = "%Y/%m/%dT%H:%M:%SZ"
TUNING_LOGGER = "tuning"

# attributes every LogRecord carries, anything else came from extra=
RECORD_ATTRIBUTES = set(vars(logging.LogRecord("", logging.NOTSET, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


def init_logging(tuning_logfile: pathlib.Path) -> logging.Handler:
    """Send every sysfs write to tuning_logfile, one json object per line."""
    logger = tuninglog()

    logger.setLevel(logging.DEBUG)
    out = logging.FileHandler(
        filename=tuning_logfile,
        encoding="utf-8",
    )
    out.setLevel(logging.DEBUG)
    out.setFormatter(SysfsJournalFormatter(datefmt=DATEFMT))

    logger.addHandler(out)
    return out


def tuninglog() -> logging.Logger:
    return logging.getLogger(TUNING_LOGGER)


class SysfsJournalFormatter(logging.Formatter):
    """One json object per record: timestamp, level, message, then the extra fields.

    A sysfs write carries value, previous, type and file as extra fields.
    """

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        output = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        output.update({k: v for k, v in vars(record).items() if k not in RECORD_ATTRIBUTES})
        if record.exc_info:
            output["exception"] = self.formatException(record.exc_info)
        return json.dumps(output, default=str)
