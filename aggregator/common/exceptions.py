"""Structured exceptions shared by every layer of the aggregator."""

from __future__ import annotations

from typing import Any, Mapping


class AggregatorError(Exception):
    """Base class carrying a category, a component name and diagnostic details."""

    category = "ERROR"

    def __init__(
        self,
        component: str,
        message: str,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        self.component = component
        self.message = message
        self.details = dict(details or {})
        super().__init__(self._format())

    def _format(self) -> str:
        text = f"[{self.category}:{self.component}] {self.message}"
        if self.details:
            pairs = ", ".join(f"{key}={value}" for key, value in self.details.items())
            text = f"{text} ({pairs})"
        return text


class ConfigError(AggregatorError):
    """Missing, malformed or unresolved configuration. Fatal before the run starts."""

    category = "CONFIG"


class ComponentError(AggregatorError):
    """Failure scoped to a single item or step."""

    category = "COMPONENT"


class ProcessStartFailed(ComponentError):
    """The external executable could not be launched."""


class ProcessTimeout(ComponentError):
    """The external process ran past its wall-clock limit and was killed."""

    def __init__(self, component: str, command: list[str], timeout: float) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(
            component,
            "process timed out",
            {"timeout": f"{timeout:g}s", "command": " ".join(command)},
        )


class ProcessCancelled(ComponentError):
    """The wait was interrupted and the external process was killed."""

    def __init__(self, component: str, command: list[str]) -> None:
        self.command = command
        super().__init__(component, "process cancelled", {"command": " ".join(command)})


class ProcessFailed(ComponentError):
    """The external process exited with a non-zero status."""

    def __init__(
        self,
        component: str,
        command: list[str],
        exit_code: int,
        output: str | None = None,
    ) -> None:
        self.command = command
        self.exit_code = exit_code
        self.output = output
        details: dict[str, Any] = {"exit_code": exit_code, "command": " ".join(command)}
        if output:
            details["output"] = output[-500:].strip()
        super().__init__(component, "process failed", details)


class TransformInvariantViolation(ComponentError):
    """A transform step broke the output contract (in-place write or missing file)."""


__all__ = [
    "AggregatorError",
    "ConfigError",
    "ComponentError",
    "ProcessStartFailed",
    "ProcessTimeout",
    "ProcessCancelled",
    "ProcessFailed",
    "TransformInvariantViolation",
]
