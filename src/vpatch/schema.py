"""Typed records shared by the patchers, pipelines and CLI."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

DEFAULT_NAMESPACE = "com.unity3d.player"
DEFAULT_THEME = "@android:style/Theme.Light.NoTitleBar"
DEFAULT_CONFIG_CHANGES: Tuple[str, ...] = (
    "mcc",
    "mnc",
    "locale",
    "touchscreen",
    "keyboard",
    "keyboardHidden",
    "navigation",
    "orientation",
    "screenLayout",
    "uiMode",
    "screenSize",
    "smallestScreenSize",
    "fontScale",
    "layoutDirection",
    "density",
)

_JAVA_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def is_java_identifier(value: str) -> bool:
    """Return True when ``value`` is usable as a Java class or method name."""
    return bool(_JAVA_IDENTIFIER.match(value or ""))


class RecordModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid", frozen=False)


class PackageMode(str, Enum):
    """Whether the secondary activity must be absent or present."""

    CLEAN = "clean"
    INJECT = "inject"


class PackageType(IntEnum):
    """Build variants offered by the profile presets."""

    CUSTOM = 0
    WHITE = 1
    BSIDE = 10001

    @property
    def mode(self) -> PackageMode:
        return PackageMode.CLEAN if self is PackageType.WHITE else PackageMode.INJECT

    @property
    def preset_version_code(self) -> Optional[int]:
        if self is PackageType.WHITE:
            return 1
        if self is PackageType.BSIDE:
            return 10001
        return None


class ActivityConfig(RecordModel):
    """Secondary activity registration threaded into every patch run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    namespace: str = DEFAULT_NAMESPACE
    class_name: str = ""
    config_changes: Tuple[str, ...] = DEFAULT_CONFIG_CHANGES
    exported: bool = False
    hardware_accelerated: bool = True
    theme: str = DEFAULT_THEME

    @field_validator("class_name")
    @classmethod
    def _strip_namespace(cls, value: str, info: ValidationInfo) -> str:
        cleaned = (value or "").strip()
        namespace = (info.data.get("namespace") or "").strip()
        if namespace and cleaned.startswith(namespace + "."):
            cleaned = cleaned[len(namespace) + 1 :]
        return cleaned

    @field_validator("config_changes", mode="before")
    @classmethod
    def _dedupe_tokens(cls, value):
        if isinstance(value, str):
            value = value.split("|")
        seen: list[str] = []
        for token in value or ():
            text = str(token).strip()
            if text and text not in seen:
                seen.append(text)
        return tuple(seen)

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}.{self.class_name}"

    def problems(self) -> List[str]:
        """List the reasons this config cannot be injected (empty when usable)."""
        issues: List[str] = []
        if not self.class_name:
            issues.append("class_name is empty")
        elif not is_java_identifier(self.class_name):
            issues.append(f"class_name {self.class_name!r} is not a Java identifier")
        if not self.namespace.strip():
            issues.append("namespace is empty")
        if not self.theme.strip():
            issues.append("theme is empty")
        elif '"' in self.theme:
            issues.append("theme must not contain quotes")
        if not self.config_changes:
            issues.append("config_changes is empty")
        for token in self.config_changes:
            if "|" in token or any(char.isspace() for char in token):
                issues.append(f"config_changes token {token!r} is malformed")
        return issues


class BuildProfile(RecordModel):
    """Player-facing build settings captured alongside the activity config."""

    package_name: str = ""
    app_name: str = ""
    version: str = "1.0"
    version_code: int = Field(default=1, ge=1)
    portrait: bool = True
    package_type: PackageType = PackageType.WHITE
    class_name: str = ""

    @field_validator("package_type", mode="before")
    @classmethod
    def _coerce_package_type(cls, value):
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return int(text)
            try:
                return PackageType[text.upper()]
            except KeyError as error:
                raise ValueError(f"unknown package type: {value}") from error
        return value

    @property
    def mode(self) -> PackageMode:
        return self.package_type.mode


class PatchStatus(str, Enum):
    """Outcome category of a single patch operation."""

    NOOP = "noop"
    APPLIED = "applied"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why an operation did not apply."""

    MISSING_TARGET_FILE = "missing_target_file"
    PATTERN_NOT_FOUND = "pattern_not_found"
    MALFORMED_CONFIG = "malformed_config"
    UNREADABLE_TARGET_FILE = "unreadable_target_file"


@dataclass(slots=True)
class PatchOutcome:
    """Result of running one patch operation against one document."""

    operation: str
    status: PatchStatus
    text: str
    reason: FailureReason | None = None
    message: str = ""
    path: Path | None = None

    @property
    def changed(self) -> bool:
        return self.status is PatchStatus.APPLIED

    @property
    def failed(self) -> bool:
        return self.status is PatchStatus.FAILED

    def describe(self) -> str:
        """Render a one-line summary suitable for CLI output."""
        target = self.path.as_posix() if self.path else "<text>"
        parts = [f"{self.operation}: {self.status.value}", target]
        if self.reason is not None:
            parts.append(self.reason.value)
        if self.message:
            parts.append(self.message)
        return " | ".join(parts)


def applied(operation: str, text: str, message: str = "") -> PatchOutcome:
    return PatchOutcome(operation=operation, status=PatchStatus.APPLIED, text=text, message=message)


def noop(
    operation: str,
    text: str,
    reason: FailureReason | None = None,
    message: str = "",
) -> PatchOutcome:
    return PatchOutcome(operation=operation, status=PatchStatus.NOOP, text=text, reason=reason, message=message)


def failed(operation: str, text: str, reason: FailureReason, message: str = "") -> PatchOutcome:
    return PatchOutcome(operation=operation, status=PatchStatus.FAILED, text=text, reason=reason, message=message)


def settle(operation: str, original: str, updated: str, message: str = "") -> PatchOutcome:
    """Return ``applied`` when the text changed, otherwise ``noop``."""
    if updated == original:
        return noop(operation, original, message=message)
    return applied(operation, updated, message=message)
