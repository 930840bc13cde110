"""Logging setup and a pipeline step timer."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Generator

from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger("relsync")

DRY_RUN_PREFIX = "[DRY RUN]"


def configure_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Route the ``relsync`` logger through a rich handler on stderr."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="%H:%M:%S"))
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


@contextmanager
def step_timer(step_name: str) -> Generator[None, None, None]:
    """Log the start and duration of a pipeline step."""
    logger.info("%s: started", step_name)
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("%s: finished in %.0f ms", step_name, elapsed_ms)
