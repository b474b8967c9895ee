import logging
import re
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

_LAB_SUFFIX_RE = re.compile(r"(\.clab)?\.ya?ml$", re.IGNORECASE)
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(lab_name)s] %(message)s"


class LabLogFilter(logging.Filter):
    """Fill in `lab_name` for records logged outside a lab session."""

    def __init__(self, default: str = "-"):
        super().__init__()
        self.default = default

    def filter(self, record: logging.LogRecord) -> bool:
        lab_name = getattr(record, "lab_name", None)
        record.lab_name = self.default if lab_name is None else str(lab_name)
        return True


def init_sync_logging(level: int = logging.INFO, logger_name: str = "toposync") -> logging.Logger:
    """
    Attach a console handler to the package logger.

    Calling it again replaces the handler installed by an earlier call
    instead of stacking a second one.
    """
    package_logger = logging.getLogger(logger_name)
    for handler in package_logger.handlers[:]:
        if any(isinstance(f, LabLogFilter) for f in handler.filters):
            package_logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(LabLogFilter())
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False

    logger.debug(f"Logging for '{logger_name}' set to {logging.getLevelName(level)}")
    return package_logger


def lab_name_from_path(path: Union[str, Path]) -> str:
    """Derive a lab name from a topology file name (`lab.clab.yml` -> `lab`)."""
    return _LAB_SUFFIX_RE.sub("", Path(path).name)


def normalize_path(path: Union[str, Path]) -> str:
    """Normalize path separators so paths from different platforms compare equal."""
    return str(path).replace("\\", "/")
