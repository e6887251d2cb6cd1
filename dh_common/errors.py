"""Shared error taxonomy for docker-hosts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping

if TYPE_CHECKING:
    from dh_hosts.host import Host


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {key: _normalize_context_value(val) for key, val in context.items()}


class HostsError(Exception):
    """Base error type for typed failure handling."""

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def error_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.error_type, "message": str(self), "context": self.context}


class ConfigurationError(HostsError):
    """Missing credentials, conflicting options or unparseable settings."""


class RemoteAPIError(HostsError):
    """A provider API call failed.

    ``code`` and ``messages`` come from the provider's structured error
    envelope when one could be decoded.
    """

    def __init__(
        self,
        action: str,
        message: str | None = None,
        *,
        code: str | None = None,
        messages: Iterable[str] = (),
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.action = action
        self.code = code
        self.messages = list(messages)
        detail = message or "; ".join(self.messages) or "request failed"
        label = f"{action} failed"
        if code:
            label = f"{label} ({code})"
        merged = {"action": action, "code": code, "messages": self.messages}
        merged.update(context or {})
        super().__init__(f"{label}: {detail}", context=merged, cause=cause)

    def is_absorbable(self, *codes: str) -> bool:
        """Return True when the provider code is one the caller may ignore."""
        return self.code is not None and self.code in codes


class RetryExhaustedError(RemoteAPIError):
    """A bounded retry loop ran out of attempts without a confirmed success."""

    def __init__(
        self,
        action: str,
        attempts: int,
        *,
        last_error: Exception | None = None,
    ) -> None:
        self.attempts = attempts
        super().__init__(
            action,
            f"no success after {attempts} attempts (last error: {last_error})",
            code=getattr(last_error, "code", None),
            context={"attempts": attempts},
            cause=last_error,
        )


class ProvisioningTimeoutError(HostsError):
    """The readiness poll exhausted its attempt ceiling."""


class ProvisioningCancelledError(HostsError):
    """A polling loop was stopped by its stop token or deadline."""


class RemoteCommandError(HostsError):
    """A command executed over the remote shell failed."""

    def __init__(
        self,
        message: str,
        *,
        step: str | None = None,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.step = step
        merged = {"step": step}
        merged.update(context or {})
        super().__init__(message, context=merged, cause=cause)


class StoreError(HostsError):
    """Local host store failure."""


class HostExistsError(StoreError):
    """A host with the requested name already exists."""


class HostNotFoundError(StoreError):
    """No host with the requested name exists."""


class HostCreateError(StoreError):
    """Creation failed after the host directory was made.

    ``host`` is the partially built host so callers can inspect, retry or
    remove it.
    """

    def __init__(
        self,
        message: str,
        *,
        host: "Host",
        cause: Exception | None = None,
    ) -> None:
        self.host = host
        super().__init__(message, context={"host": host.name}, cause=cause)


class UnknownDriverError(HostsError):
    """The driver registry has no entry for the requested name."""


class DriverNotSupportedError(HostsError):
    """The driver does not implement the requested operation."""


class HostNotReadyError(HostsError):
    """The remote address of a host is not known yet."""


def error_to_payload(error: HostsError) -> dict[str, Any]:
    """Convert a HostsError to a CLI/JSON payload."""
    return {
        "error_type": error.error_type,
        "error": str(error),
        "error_context": error.context,
    }
