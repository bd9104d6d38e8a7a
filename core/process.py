"""
core/process.py -- Last-resort handlers for errors that escape every request.

  Unhandled asyncio task exceptions (a background task raising with nobody
  awaiting it) are logged and the server keeps running.

  An uncaught synchronous exception in the main thread is logged and the
  process exits with status 1. A supervisor (systemd, Render, docker) is
  expected to restart it.
"""

import asyncio
import logging
import sys

logger = logging.getLogger("studyshala.process")


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exc = context.get("exception")
    message = context.get("message", "unhandled error in event loop")
    if exc is not None:
        logger.error("Unhandled async exception: %s", message, exc_info=exc)
    else:
        logger.error("Unhandled async exception: %s", message)


def install_loop_handler(loop: asyncio.AbstractEventLoop) -> None:
    """Route unhandled task exceptions on loop to the log instead of stderr."""
    loop.set_exception_handler(_log_loop_exception)


def _log_and_exit(exc_type, exc, tb) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    logger.critical("Uncaught exception: %s", exc, exc_info=(exc_type, exc, tb))
    sys.exit(1)


def install_excepthook() -> None:
    """Log uncaught synchronous exceptions before the process terminates."""
    sys.excepthook = _log_and_exit
