# src/paradise/core/utils/configure_logging.py
import logging
import sys
from typing import Optional, Dict, Union

from tqdm import tqdm

Level = Union[str, int]


class LogWithTqdm(logging.Handler):
    """
    A logging handler that redirects output to `tqdm.write()`, so that log
    lines emitted during a batch run do not break the progress bar.
    """
    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


def _to_level(level: Level, fallback: int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), fallback)
    return level


def configure_logger(general_level: Level = 'INFO',
                     module_specific_levels: Optional[Dict[str, Level]] = None,
                     silenced_loggers: Optional[Dict[str, Level]] = None):
    """
    Configures the root logger with a TQDM-friendly handler and applies
    per-module levels.
    """
    tqdm_aware_handler = LogWithTqdm()
    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"
    )
    tqdm_aware_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(_to_level(general_level, logging.INFO))
    root_logger.handlers.clear()
    root_logger.addHandler(tqdm_aware_handler)

    for name, level in (module_specific_levels or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.INFO))

    # Muzzle noisy loggers by setting their level high.
    for name, level in (silenced_loggers or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.CRITICAL))


def configure_from_settings(settings: Optional[Dict] = None):
    """Applies the 'logging' section of settings.json."""
    if settings is None:
        from paradise.core.managers.config_manager import config_manager
        settings = config_manager.get_nested("logging", {})
    configure_logger(
        general_level=settings.get("level", "INFO"),
        module_specific_levels=settings.get("module_levels"),
        silenced_loggers=settings.get("silenced"),
    )
