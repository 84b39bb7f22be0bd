from __future__ import annotations
import logging
import sys
from loguru import logger

# ---- stdlib logging -> loguru ----
class InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())

def _hook_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for noisy in ("uvicorn", "uvicorn.error", "uvicorn.access", "aiohttp", "asyncio", "aiosqlite"):
        l = logging.getLogger(noisy)
        l.handlers = [InterceptHandler()]
        l.propagate = False

# extra is not shown in the console format; JSON mode serializes it
DEV_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level:<7}</level> | "
    "<cyan>{extra[name]}</cyan> | "
    "<cyan>{file}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

def setup_logging(log_level: str = "INFO", serialize: bool = False) -> None:
    """
    Configures loguru for the process.

    - console output, colourised, or JSON lines when ``serialize`` is set
    - absorbs stdlib logging (uvicorn, aiohttp, aiosqlite)
    """
    logger.remove()
    logger.configure(extra={"name": "weathersync"})
    if serialize:
        logger.add(sys.stdout, serialize=True, level=log_level.upper(), enqueue=True)
    else:
        logger.add(
            sys.stdout,
            format=DEV_FORMAT,
            colorize=True,
            backtrace=True,
            diagnose=False,
            level=log_level.upper(),
        )
    _hook_stdlib_logging()

def get_logger(name: str = "weathersync", **ctx):
    """Logger with ``name`` and any extra context bound."""
    return logger.bind(name=name, **ctx)

def with_context(**ctx):
    """Temporary context for every log call in the block."""
    return logger.contextualize(**ctx)
