"""Shared error taxonomy for lab-deployer."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {key: _normalize_context_value(val) for key, val in context.items()}


class LabError(Exception):
    """Base error type for typed failure handling.

    ``hint`` is the remediation printed next to the message when the error
    ends a run.
    """

    default_hint: str | None = None

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.hint = hint or self.default_hint
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def error_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.error_type,
            "message": str(self),
            "hint": self.hint,
            "context": self.context,
        }


class PrerequisiteMissing(LabError):
    """No usable virtualization backend or orchestration tooling."""

    default_hint = (
        "Install VirtualBox or VMware Desktop (with the vagrant-vmware-desktop "
        "plugin) and re-run."
    )

    def __init__(self, message: str, *, backend: str = "none", **kwargs: Any) -> None:
        context = dict(kwargs.pop("context", None) or {})
        context.setdefault("backend", backend)
        super().__init__(message, context=context, **kwargs)
        self.backend = backend


class ValidationKind(str, Enum):
    """Preflight finding kinds."""

    TOOL_MISSING = "tool_missing"
    VERSION_INCOMPATIBLE = "version_incompatible"
    INSTANCES_ALREADY_EXIST = "instances_already_exist"
    LOW_DISK_SPACE = "low_disk_space"
    PLUGIN_MISSING = "plugin_missing"


class ValidationError(LabError):
    """A blocking preflight condition."""

    def __init__(self, message: str, *, kind: ValidationKind, **kwargs: Any) -> None:
        context = dict(kwargs.pop("context", None) or {})
        context.setdefault("kind", kind)
        super().__init__(message, context=context, **kwargs)
        self.kind = kind


class ArtifactFailure(str, Enum):
    """Reasons an artifact could not be made available."""

    BUILD_FAILED = "build_failed"
    MISSING_AFTER_BUILD = "missing_after_build"
    CHECKSUM_MISMATCH = "checksum_mismatch"
    DOWNLOAD_FAILED = "download_failed"
    UNKNOWN_ARTIFACT = "unknown_artifact"


class ArtifactError(LabError):
    """An image could not be built, downloaded or verified."""

    def __init__(
        self,
        message: str,
        *,
        name: str,
        reason: ArtifactFailure,
        **kwargs: Any,
    ) -> None:
        context = dict(kwargs.pop("context", None) or {})
        context.setdefault("artifact", name)
        context.setdefault("reason", reason)
        super().__init__(message, context=context, **kwargs)
        self.name = name
        self.reason = reason


class HostBringUpFailure(LabError):
    """A host failed both its start and its reprovision attempt."""

    default_hint = (
        "Inspect the host log, fix the cause, then destroy the lab "
        "(vagrant destroy -f) before running again."
    )

    def __init__(self, message: str, *, host: str, exit_signal: int, **kwargs: Any) -> None:
        context = dict(kwargs.pop("context", None) or {})
        context.setdefault("host", host)
        context.setdefault("exit_signal", exit_signal)
        super().__init__(message, context=context, **kwargs)
        self.host = host
        self.exit_signal = exit_signal


class ProbeFailure(LabError):
    """A post-deployment probe could not confirm its endpoint."""


class ConfigurationError(LabError):
    """Failure due to invalid configuration."""


class CommandError(LabError):
    """An external command could not be executed."""


class RemoteExecutionError(LabError):
    """A guest command failed over a remote-execution channel."""

