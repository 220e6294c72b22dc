"""
Logging utilities for internal use.
Usage:
    import hnytrace.internal.logger as logger
    log = logger.get_logger(__name__)

    # "product" is required for the structured syntax, "more_info" is optional
    log.warning("batch::dropped", extra={"product": "exporter", "more_info": " (401)"})

    # example result
    WARNING exporter::batch::dropped (401) [3 skipped]

    Legacy support:
    if extra is not used or product is absent, the log will be treated as legacy and will be logged as is,
    rate limited by filename and line number of the log call

"""

import collections
import logging
import os
import time
from typing import DefaultDict
from typing import Tuple
from typing import Union


SECOND = 1
MINUTE = 60 * SECOND


def get_logger(name: str) -> logging.Logger:
    """
    Retrieve or create a ``Logger`` instance with consistent behavior for internal use.

    Configure all loggers with a rate limiter filter to prevent excessive logging.

    """
    logger = logging.getLogger(name)
    # addFilter will only add the filter if it is not already present
    logger.addFilter(log_filter)
    logger.propagate = True
    return logger


# Class used for keeping track of a log lines current time bucket and the number of log lines skipped
class LoggingBucket:
    def __init__(self, bucket: float, skipped: int):
        self.bucket = bucket
        self.skipped = skipped

    def __repr__(self):
        return f"LoggingBucket({self.bucket}, {self.skipped})"

    def is_sampled(self, record: logging.LogRecord, rate: float) -> bool:
        """
        Determine if the log line should be sampled based on the rate limit.
        """
        current = time.monotonic()
        if current - self.bucket >= rate:
            self.bucket = current
            record.skipped = self.skipped
            self.skipped = 0
            return True
        self.skipped += 1
        return False


_MINF = float("-inf")

key_type = Union[Tuple[str, int], str]
_buckets: DefaultDict[key_type, LoggingBucket] = collections.defaultdict(lambda: LoggingBucket(_MINF, 0))

# Allow 1 log record per call site every 60 seconds by default
# DEV: `HONEYCOMB_LOGGING_RATE=0` means to disable all rate limiting
_rate_limit = int(os.getenv("HONEYCOMB_LOGGING_RATE", default=MINUTE))


def log_filter(record: logging.LogRecord) -> bool:
    """
    Function used to determine if a log record should be outputted or not (True = output, False = skip).

    Records are rate limited per pathname/lineno, or per message for structured (product) records.
    """
    logger = logging.getLogger(record.name)
    # If the logger is set to debug, then do not apply any limits to any log
    if not _rate_limit or logger.getEffectiveLevel() == logging.DEBUG:
        return True
    if hasattr(record, "product"):
        key: key_type = record.msg
    else:
        key = (record.pathname, record.lineno)
    return _buckets[key].is_sampled(record, _rate_limit)


class HNYFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        skipped = getattr(record, "skipped", 0)
        if skipped:
            skip_str = f" [{skipped} skipped]"
        else:
            skip_str = ""
        product = getattr(record, "product", None)
        if product:
            more_info = getattr(record, "more_info", "")
            return f"{record.levelname} {product}::{record.getMessage()}{more_info}{skip_str}"
        return f"{record.levelname} {super().format(record)}{skip_str}"


# setup the default formatter for all hnytrace loggers
root_logger = logging.getLogger("hnytrace")
if not root_logger.handlers:
    root_logger.addHandler(logging.StreamHandler())
    root_logger.handlers[0].setFormatter(HNYFormatter())
root_logger.propagate = True
