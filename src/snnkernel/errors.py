"""Exception hierarchy for the simulation kernel.

KernelError (base)
├── ConfigurationError - rejected status key or invalid parameter value
├── ConnectionValidationError - bad delay, unsupported event kind/port
└── FatalRunError - missing or late delivery detected during a run

Configuration and connection errors are raised before any state is mutated,
so callers may retry with corrected input. Fatal run errors terminate the run.
"""

from __future__ import annotations

from typing import Any


class KernelError(Exception):
    """Base exception for all kernel errors."""


class ConfigurationError(KernelError, ValueError):
    """A status key or parameter value was rejected.

    The offending key and value are kept on the instance for callers that want
    to report them without parsing the message.
    """

    def __init__(self, message: str, *, key: str | None = None, value: Any = None) -> None:
        super().__init__(message)
        self.key = key
        self.value = value


class ConnectionValidationError(KernelError, ValueError):
    """A connection could not be created at network-construction time."""


class FatalRunError(KernelError, RuntimeError):
    """Kernel-internal inconsistency detected while running.

    ``step`` is the index of the step at which the inconsistency was detected.
    """

    def __init__(self, message: str, *, step: int) -> None:
        super().__init__(f"{message} (step {step})")
        self.step = int(step)


def format_key_value(key: str, value: Any) -> str:
    return f"'{key}'={value!r}"


def require_number(key: str, value: Any, *, integer: bool = False) -> None:
    """Raise ConfigurationError unless ``value`` is a real (or integer) number."""

    allowed = int if integer else int | float
    if isinstance(value, bool) or not isinstance(value, allowed):
        kind = "an integer" if integer else "a number"
        raise ConfigurationError(
            f"{format_key_value(key, value)} must be {kind}", key=key, value=value
        )


__all__ = [
    "ConfigurationError",
    "ConnectionValidationError",
    "FatalRunError",
    "KernelError",
    "format_key_value",
    "require_number",
]
