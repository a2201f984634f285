import logging
import os
import sys


def _supports_color(stream) -> bool:
    if os.environ.get("NO_COLOR") is not None:
        return False
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


class LogFormatter(logging.Formatter):
    """Prefix each record with a padded, colored level tag."""

    LEVEL_COLORS: dict[int, str] = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "1;31",
    }

    def __init__(self, use_color: bool | None = None, stream=None) -> None:
        super().__init__("%(message)s")
        if use_color is None:
            use_color = _supports_color(stream or sys.stderr)
        self.use_color = use_color

    def _tag(self, record: logging.LogRecord) -> str:
        padded = f"[{record.levelname.lower():<7}]"
        color_code = self.LEVEL_COLORS.get(record.levelno)
        if not self.use_color or color_code is None:
            return padded
        return f"\x1b[{color_code}m{padded}\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        return f"{self._tag(record)} {message}"
