from __future__ import annotations

import sys

from loguru import logger


def setup_logging(level: str = "INFO") -> None:
    """
    Configures loguru for the ab_toolkit library.

    This function enables "ab_toolkit" logs and sets up a standard format
    that includes the bound `repository` and `commit`.
    """
    logger.remove()
    logger.configure(extra={"repository": "-", "commit": "-"})

    fmt = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[repository]}</cyan>@<cyan>{extra[commit]:.12}</cyan> - "
        "<level>{message}</level>"
    )

    logger.add(sys.stderr, format=fmt, level=level)
    logger.enable("ab_toolkit")
