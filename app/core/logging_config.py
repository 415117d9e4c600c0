import logging
import sys
import os
from typing import Optional

LOG_FORMAT = (
    '%(asctime)s │ %(name)-28s │ %(levelname)-8s │ '
    '[%(filename)s:%(lineno)d] │ %(message)s'
)

# ANSI color codes per level
LEVEL_COLORS = {
    'DEBUG': '\033[36m',      # Cyan
    'INFO': '\033[32m',       # Green
    'WARNING': '\033[33m',    # Yellow
    'ERROR': '\033[1;91m',    # Bright Red Bold
    'CRITICAL': '\033[1;95m', # Bright Magenta Bold
}
NAME_COLOR = '\033[94m'
RESET = '\033[0m'


def colors_enabled() -> bool:
    """NO_COLOR wins over FORCE_COLOR; otherwise color only on a real terminal."""
    if os.environ.get('NO_COLOR', '').lower() in ('1', 'true', 'yes'):
        return False
    if os.environ.get('FORCE_COLOR', '').lower() in ('1', 'true', 'yes'):
        return True
    if os.environ.get('TERM') == 'dumb':
        return False
    return sys.stdout.isatty()


class ColoredFormatter(logging.Formatter):
    """Colors the level and logger name of LOG_FORMAT when the console supports it"""

    def __init__(self):
        super().__init__(LOG_FORMAT)
        self.use_colors = colors_enabled()
        self._by_level = {
            level: logging.Formatter(
                LOG_FORMAT
                .replace('%(levelname)s', f'{color}%(levelname)s{RESET}')
                .replace('%(name)s', f'{NAME_COLOR}%(name)s{RESET}')
            )
            for level, color in LEVEL_COLORS.items()
        }

    def format(self, record):
        if self.use_colors and record.levelname in self._by_level:
            return self._by_level[record.levelname].format(record)
        return super().format(record)


def setup_logging(log_level: Optional[str] = None, force_configure: bool = False) -> None:
    """
    Install a single colored console handler on the root logger.

    Runs once unless ``force_configure`` is set; ``log_level`` defaults to the
    LOG_LEVEL environment variable.
    """
    root_logger = logging.getLogger()
    if root_logger.handlers and not force_configure:
        return

    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, log_level, logging.INFO)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(numeric_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(ColoredFormatter())
    root_logger.addHandler(console_handler)
    root_logger.debug("Logging configured with level %s", log_level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.
    """
    logger = logging.getLogger(name)
    # Ensure it inherits from root logger and doesn't have its own handlers
    logger.handlers = []
    logger.propagate = True
    return logger
