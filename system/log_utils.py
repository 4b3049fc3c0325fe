# system/log_utils.py
# Thin helpers over stdlib logging so call sites read `info("[ENGINE] ...")`.

import logging
import os

VERBOSE = 5
logging.addLevelName(VERBOSE, "VERBOSE")

_LOGGER_NAME = "digester"
_configured = False


def _logger() -> logging.Logger:
    global _configured
    logger = logging.getLogger(_LOGGER_NAME)
    if not _configured:
        level_name = os.environ.get("DIGESTER_LOG_LEVEL", "INFO").upper()
        level = VERBOSE if level_name == "VERBOSE" else getattr(logging, level_name, logging.INFO)
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(message)s", "%H:%M:%S"))
            logger.addHandler(handler)
        logger.setLevel(level)
        _configured = True
    return logger


def _format(msg: str, ctx: dict) -> str:
    if not ctx:
        return msg
    extras = " ".join(f"{k}={v}" for k, v in ctx.items())
    return f"{msg} {extras}"


def verbose(msg: str, **ctx) -> None:
    _logger().log(VERBOSE, _format(msg, ctx))


def debug(msg: str, **ctx) -> None:
    _logger().debug(_format(msg, ctx))


def info(msg: str, **ctx) -> None:
    _logger().info(_format(msg, ctx))


def warn(msg: str, **ctx) -> None:
    _logger().warning(_format(msg, ctx))


def error(msg: str, **ctx) -> None:
    _logger().error(_format(msg, ctx))
