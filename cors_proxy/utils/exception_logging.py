"""
Helpers for turning upstream transport exceptions into log lines and response
bodies. None of these functions raise, even for exceptions whose ``__str__``
is broken.
"""

import logging


def _safe_str(obj) -> str:
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def _describe_single(exception) -> str:
    """Message for one exception, falling back to its class name when empty."""
    text = _safe_str(exception)
    if not text.strip():
        return type(exception).__name__
    return text


def format_exception_message(exception: BaseException) -> str:
    """
    Format an exception for a client-facing error body.

    The result is never empty: httpx raises some timeouts with no message, in
    which case the exception class name (e.g. ``ReadTimeout``) is used.
    Exception groups list their sub-exceptions after the main message.
    """
    if exception is None:
        return "None"

    try:
        sub_exceptions = (
            _safe_get_exceptions(exception) if hasattr(exception, "exceptions") else []
        )
        main = _describe_single(exception)
        if not sub_exceptions:
            return main

        parts = [
            f"{type(sub_exc).__name__}: {_describe_single(sub_exc)}"
            for sub_exc in sub_exceptions
        ]
        return f"{main} (Sub-exceptions: {'; '.join(parts)})"
    except Exception:
        return f"<{type(exception).__name__} (formatting failed)>"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log ``exception`` under ``prefix`` (e.g. "[Proxy]").

    Exception groups get one line per sub-exception so the underlying cause of
    a failed connect is visible in the log.
    """
    try:
        message = format_exception_message(exception)
        sub_exceptions = (
            _safe_get_exceptions(exception) if hasattr(exception, "exceptions") else []
        )
        if not sub_exceptions:
            logger.log(level, f"{prefix} Exception: {message}", exc_info=exception)
            return

        logger.log(
            level,
            f"{prefix} Exception with {len(sub_exceptions)} sub-exceptions: {message}",
        )
        for i, sub_exc in enumerate(sub_exceptions):
            logger.log(
                level,
                f"{prefix} Sub-exception {i + 1}: {type(sub_exc).__name__}: "
                f"{_describe_single(sub_exc)}",
                exc_info=sub_exc,
            )
    except Exception:
        try:
            logger.log(logging.ERROR, f"{prefix} Exception (logging failed)")
        except Exception:
            pass
