import logging
import os
from typing import Optional, Union

ROOT = "pos"
FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"

_configured = False


def level_from(value: Union[str, int, None]) -> int:
    """Level number for a name like ``"debug"`` or ``"WARN"``; INFO when unknown."""
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value or "").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Union[str, int, None] = None, log_file: Optional[str] = None) -> logging.Logger:
    """(Re)build the handlers of the ``pos`` logger tree.

    Module loggers are ``pos.<name>`` children and propagate here. Called
    without arguments it reads LOG_LEVEL and LOG_FILE; the app calls it again
    with the loaded Settings. Handlers are replaced, never added on top, since
    Streamlit re-executes the page script on every interaction.
    """
    global _configured
    root = logging.getLogger(ROOT)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    resolved = level_from(level if level is not None else os.environ.get("LOG_LEVEL"))
    root.setLevel(resolved)
    root.propagate = False
    formatter = logging.Formatter(fmt=FORMAT, datefmt=DATEFMT)

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    root.addHandler(stream)

    path = log_file if log_file is not None else os.environ.get("LOG_FILE")
    if path:
        try:
            fh = logging.FileHandler(path, encoding="utf-8")
        except OSError as e:
            root.warning(f"Cannot write log file {path}: {e}")
        else:
            fh.setFormatter(formatter)
            root.addHandler(fh)

    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    if not _configured:
        configure_logging()
    return logging.getLogger(f"{ROOT}.{name}")
