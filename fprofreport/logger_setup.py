# Copyright (c) Meta Platforms, Inc. and affiliates.

"""Logging configuration for the fprofreport command line tools."""

import logging

import click

# Package-wide logger; modules log through children of it.
logger = logging.getLogger("fprofreport")


class ClickEchoHandler(logging.Handler):
    """Emit log records on stderr through click.echo.

    The stream is looked up at emit time, so reports written to stdout stay
    clean and redirected streams (e.g. click's CliRunner) are honored.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the package logger.

    The setup is idempotent: calling it again replaces the level and
    format instead of adding another handler.

    Args:
        verbose: If True, log at DEBUG level with timestamps.

    Returns:
        The configured package logger.
    """
    level = logging.DEBUG if verbose else logging.INFO
    if verbose:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    else:
        formatter = logging.Formatter("%(message)s")

    handler = next((h for h in logger.handlers if isinstance(h, ClickEchoHandler)), None)
    if handler is None:
        handler = ClickEchoHandler()
        logger.addHandler(handler)

    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.setLevel(level)
    logger.propagate = False

    return logger
