"""Rebuild raw log records into the enriched output schema."""

import time
import traceback
from collections.abc import Mapping
from typing import Callable, Optional

from log_enricher.truncate import truncate

LEVEL_LABELS = {
    10: "trace",
    20: "debug",
    30: "info",
    40: "warn",
    50: "error",
    60: "fatal",
}

GENERIC_ERROR_NAME = "Error"

# Keys consumed by normalize(); everything else passes through untouched.
_CONSUMED_KEYS = frozenset({"msg", "time", "level", "err", "priority"})


def now_ms() -> int:
    return int(time.time() * 1000)


def level_label(level):
    """Return the label for a numeric *level*, or *level* itself if unknown."""
    if isinstance(level, bool):
        return level
    try:
        return LEVEL_LABELS.get(level, level)
    except TypeError:
        # unhashable
        return level


def _declared_name(exc: BaseException):
    """Class-level ``name`` set by user code on *exc*'s type, if any.

    Built-in exceptions such as AttributeError and ImportError carry an
    instance ``name`` holding the missing attribute or module; it is not a
    class name and is ignored.
    """
    for cls in type(exc).__mro__:
        if cls.__module__ == "builtins":
            continue
        name = cls.__dict__.get("name")
        if isinstance(name, str):
            return name
    return None


def _bounded(value):
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    return truncate(value)


def annotate_error(err) -> dict:
    """Derive the ``error.*`` fields from an exception or a serialized error.

    Returns an empty dict when *err* has no usable shape.
    """
    if isinstance(err, BaseException):
        name = _declared_name(err)
        stack = "".join(
            traceback.format_exception(type(err), err, err.__traceback__)
        )
        message = str(err)
        if name is None or name == GENERIC_ERROR_NAME:
            name = type(err).__name__
    elif isinstance(err, Mapping):
        message = err.get("message")
        stack = err.get("stack")
        name = err.get("name")
        if not isinstance(name, str) or name == GENERIC_ERROR_NAME:
            name = err.get("type") or GENERIC_ERROR_NAME
    else:
        return {}

    return {
        "error.message": _bounded(message),
        "error.stack": _bounded(stack),
        "error.class": name,
    }


def normalize(raw: Mapping, now: Optional[Callable[[], int]] = None) -> dict:
    """Build a fresh output record from *raw*.

    ``msg`` becomes ``message``, ``time`` is replaced by a ``timestamp`` in
    epoch milliseconds, ``level`` is swapped for its label and ``err`` is
    expanded into ``error.message``/``error.stack``/``error.class``. The
    ``priority`` key is dropped; callers read it from *raw* beforehand.
    """
    clock = now or now_ms
    record = {k: v for k, v in raw.items() if k not in _CONSUMED_KEYS}

    if "msg" in raw and raw["msg"] is not None:
        msg = raw["msg"]
        record["message"] = msg if isinstance(msg, str) else str(msg)
    record["timestamp"] = clock()
    if "level" in raw:
        record["level"] = level_label(raw["level"])

    if raw.get("err") is not None:
        try:
            record.update(annotate_error(raw["err"]))
        except Exception:
            # Malformed error objects lose their annotation, not the record.
            pass

    return record
