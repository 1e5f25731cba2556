"""
fincalc_engines.tracer -- FINANCE_ENGINE_TRACE records for engine calls.

``@traced_engine`` wraps an engine entry point and logs one trace record per
call: engine name and version, a fingerprint of the chosen inputs, the
outcome and the wall time. Two calls with equal inputs produce the same
fingerprint, so a figure shown to a user can be matched to the call that
produced it.

The fingerprint is the first 16 hex characters of the SHA-256 of a JSON
document with sorted keys. Money and Decimal contribute their exact string
form, dataclasses their fields, enums their value.

Usage:
    @traced_engine("withholding_tax", "1.0", fingerprint_fields=("basic_salary",))
    def estimate(self, basic_salary, allowances, ptkp_code, has_npwp):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import json
import time
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from fincalc_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")

TRACE_EVENT = "FINANCE_ENGINE_TRACE"


def _plain(value: Any) -> Any:
    """Reduce a value to JSON-safe primitives with a stable shape."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, (Decimal, float)):
        return str(value)
    if isinstance(value, Enum):
        return _plain(value.value)
    if isinstance(value, date):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            "__type__": type(value).__name__,
            **{f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)},
        }
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((_plain(v) for v in value), key=repr)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-hex-char digest of the named arguments; absent ones count as null."""
    document = {name: _plain(arguments.get(name)) for name in fingerprint_fields}
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Decorate an engine method so every call emits a trace record.

    A call that raises is traced with ``outcome`` set to the exception class
    name and the exception is re-raised unchanged.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            outcome = "ok"
            started = time.monotonic()
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                outcome = type(exc).__name__
                raise
            finally:
                logger.info(TRACE_EVENT, extra={
                    "trace_type": TRACE_EVENT,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "function": func.__qualname__,
                    "input_fingerprint": fingerprint,
                    "outcome": outcome,
                    "duration_ms": round((time.monotonic() - started) * 1000, 2),
                })

        return wrapper

    return decorator
