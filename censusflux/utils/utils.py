import logging
import sys
import time
from contextlib import contextmanager
from functools import wraps

logger = logging.getLogger("censusflux")

if not logger.handlers:
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%H:%M:%S"))
    logger.addHandler(_handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

_INDENT = {"level": 0}


def _indented(msg: str) -> str:
    return "  " * _INDENT["level"] + msg


def log_info(msg: str) -> None:
    logger.info(_indented(msg))


def log_warning(msg: str) -> None:
    logger.warning(_indented(msg))


@contextmanager
def log_indent():
    """Indent every log line emitted inside the block by one step."""
    _INDENT["level"] += 1
    try:
        yield
    finally:
        _INDENT["level"] -= 1


def log_time(step_name: str):
    """Decorator logging the start and wall-clock duration of a step."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            log_info(f"{step_name}...")
            start = time.perf_counter()
            with log_indent():
                result = func(*args, **kwargs)
            elapsed = time.perf_counter() - start
            log_info(f"{step_name} done in {elapsed:.2f}s")
            return result
        return wrapper
    return decorator


def set_verbosity(verbose: bool = False, quiet: bool = False) -> None:
    if quiet:
        logger.setLevel(logging.WARNING)
    elif verbose:
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)
