"""Option-map validation helpers for lock backends.

The external configuration layer hands every backend a flat mapping of
string options. These helpers turn that mapping into typed values and
raise ConfigInvalidError naming the offending key.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from statelock.core.constants import BOOL_FALSE_VALUES, BOOL_TRUE_VALUES
from statelock.core.exceptions import ConfigInvalidError


def _normalize_option_value(value: object) -> str:
    if value is None:
        return ""
    s = str(value).strip()
    # Decoders sometimes keep quotes around scalar values
    if len(s) >= 2 and s[0] == s[-1] and s[0] in {'"', "'"}:
        s = s[1:-1]
    return s


def require_option(options: Mapping[str, object], name: str, *, backend: str) -> str:
    """Return a required, non-empty string option."""
    if name not in options:
        raise ConfigInvalidError(f"{name} must be set", field=name, backend=backend)
    value = _normalize_option_value(options[name])
    if not value:
        raise ConfigInvalidError(f"{name} cannot be empty", field=name, backend=backend)
    return value


def optional_option(options: Mapping[str, object], name: str, default: str, *, backend: str) -> str:
    """Return an optional string option, falling back to default when omitted.

    An explicitly empty value is treated as a mistake rather than an omission.
    """
    if name not in options:
        return default
    value = _normalize_option_value(options[name])
    if not value:
        raise ConfigInvalidError(f"{name} cannot be empty", field=name, backend=backend)
    return value


def parse_bool_option(options: Mapping[str, object], name: str, default: bool, *, backend: str) -> bool:
    if name not in options:
        return default
    raw = options[name]
    if isinstance(raw, bool):
        return raw
    value = _normalize_option_value(raw).lower()
    if value in BOOL_TRUE_VALUES:
        return True
    if value in BOOL_FALSE_VALUES:
        return False
    raise ConfigInvalidError(
        f"{name} must be a boolean",
        field=name,
        backend=backend,
        details=f"got {raw!r}",
    )


def parse_int_option(
    options: Mapping[str, object],
    name: str,
    default: int,
    *,
    backend: str,
    minimum: int | None = None,
) -> int:
    if name not in options:
        return default
    raw = options[name]
    if isinstance(raw, bool):
        raise ConfigInvalidError(f"{name} must be an integer", field=name, backend=backend, details=f"got {raw!r}")
    try:
        value = int(_normalize_option_value(raw))
    except (TypeError, ValueError):
        raise ConfigInvalidError(
            f"{name} must be an integer", field=name, backend=backend, details=f"got {raw!r}"
        ) from None
    if minimum is not None and value < minimum:
        raise ConfigInvalidError(f"{name} must be at least {minimum}", field=name, backend=backend, details=f"got {value}")
    return value


def parse_float_option(
    options: Mapping[str, object],
    name: str,
    default: float,
    *,
    backend: str,
    minimum: float | None = None,
) -> float:
    if name not in options:
        return default
    raw = options[name]
    if isinstance(raw, bool):
        raise ConfigInvalidError(f"{name} must be a number", field=name, backend=backend, details=f"got {raw!r}")
    try:
        value = float(_normalize_option_value(raw))
    except (TypeError, ValueError):
        raise ConfigInvalidError(
            f"{name} must be a number", field=name, backend=backend, details=f"got {raw!r}"
        ) from None
    if value != value or value in (float("inf"), float("-inf")):
        raise ConfigInvalidError(f"{name} must be finite", field=name, backend=backend, details=f"got {raw!r}")
    if minimum is not None and value < minimum:
        raise ConfigInvalidError(f"{name} must be at least {minimum}", field=name, backend=backend, details=f"got {value}")
    return value


def warn_unknown_options(
    options: Mapping[str, object],
    known: Iterable[str],
    *,
    backend: str,
    logger: logging.Logger | None = None,
) -> list[str]:
    """Log and return option keys the backend does not understand.

    Unknown keys are ignored rather than rejected so a config written for a
    newer release still resolves.
    """
    log = logger or logging.getLogger(__name__)
    unknown = sorted(set(options) - set(known))
    if unknown:
        log.warning("Ignoring unknown %s lock options: %s", backend, ", ".join(unknown))
    return unknown
