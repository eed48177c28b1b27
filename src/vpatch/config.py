"""YAML-backed configuration for patch runs and the profile row importer."""

from __future__ import annotations

import copy
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from pydantic import Field, ValidationError

from .patchers.gradle import INSTALL_REFERRER_DEPENDENCY, MINIFY_SUBSTITUTIONS
from .patchers.source import (
    DEFAULT_ENTRY_SIGNATURE,
    INSTALL_REFERRER_ANCHORS,
    INSTALL_REFERRER_BODY,
    INSTALL_REFERRER_HOOK,
    INSTALL_REFERRER_IMPORTS,
)
from .schema import (
    DEFAULT_CONFIG_CHANGES,
    DEFAULT_NAMESPACE,
    DEFAULT_THEME,
    ActivityConfig,
    BuildProfile,
    PackageMode,
    PackageType,
    RecordModel,
)

DEFAULT_CONFIG_NAME = "vpatch.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "profile": {
        "package_name": "",
        "app_name": "",
        "version": "1.0",
        "version_code": 1,
        "portrait": True,
        "package_type": "white",
        "class_name": "",
    },
    "activity": {
        "namespace": DEFAULT_NAMESPACE,
        "config_changes": list(DEFAULT_CONFIG_CHANGES),
        "exported": False,
        "hardware_accelerated": True,
        "theme": DEFAULT_THEME,
    },
    "paths": {
        "project_root": ".",
        "plugins_dir": "Assets/Plugins/Android",
        "manifest": "Assets/Plugins/Android/AndroidManifest.xml",
        "launcher_gradle": "Assets/Plugins/Android/launcherTemplate.gradle",
        "main_gradle": "Assets/Plugins/Android/mainTemplate.gradle",
        "sources_dir": "Assets/build",
    },
    "hook": {
        "name": INSTALL_REFERRER_HOOK,
        "anchors": list(INSTALL_REFERRER_ANCHORS),
        "entry_signature": DEFAULT_ENTRY_SIGNATURE,
        "imports": list(INSTALL_REFERRER_IMPORTS),
        "body": "",
    },
    "gradle": {
        "substitutions": [list(pair) for pair in MINIFY_SUBSTITUTIONS],
        "dependency": INSTALL_REFERRER_DEPENDENCY,
    },
    "export": {
        "manifest_candidates": [
            "unityLibrary/src/main/AndroidManifest.xml",
            "unityLibrary/src/main/manifests/AndroidManifest.xml",
        ],
        "activity_source": "unityLibrary/src/main/java/com/unity3d/player/UnityPlayerActivity.java",
        "java_dir": "unityLibrary/src/main/java/com/unity3d/player",
        "launch_mode_from": "singleTask",
        "launch_mode_to": "singleTop",
        "back_invoked_callback": False,
    },
}


class ConfigError(RuntimeError):
    """Raised when the configuration file is missing, unreadable or invalid."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class PathsSection(RecordModel):
    project_root: str = "."
    plugins_dir: str = "Assets/Plugins/Android"
    manifest: str = "Assets/Plugins/Android/AndroidManifest.xml"
    launcher_gradle: str = "Assets/Plugins/Android/launcherTemplate.gradle"
    main_gradle: str = "Assets/Plugins/Android/mainTemplate.gradle"
    sources_dir: str = "Assets/build"


class HookSection(RecordModel):
    name: str = INSTALL_REFERRER_HOOK
    anchors: List[str] = Field(default_factory=lambda: list(INSTALL_REFERRER_ANCHORS))
    entry_signature: str = DEFAULT_ENTRY_SIGNATURE
    imports: List[str] = Field(default_factory=lambda: list(INSTALL_REFERRER_IMPORTS))
    body: str = ""

    @property
    def resolved_body(self) -> str:
        return self.body if self.body.strip() else INSTALL_REFERRER_BODY


class GradleSection(RecordModel):
    substitutions: List[Tuple[str, str]] = Field(default_factory=lambda: list(MINIFY_SUBSTITUTIONS))
    dependency: str = INSTALL_REFERRER_DEPENDENCY


class ExportSection(RecordModel):
    manifest_candidates: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CONFIG_TEMPLATE["export"]["manifest_candidates"])
    )
    activity_source: str = "unityLibrary/src/main/java/com/unity3d/player/UnityPlayerActivity.java"
    java_dir: str = "unityLibrary/src/main/java/com/unity3d/player"
    launch_mode_from: str = "singleTask"
    launch_mode_to: str = "singleTop"
    back_invoked_callback: Optional[bool] = False


class PatcherConfig(RecordModel):
    """Validated configuration for a single patch invocation."""

    profile: BuildProfile = Field(default_factory=BuildProfile)
    activity: ActivityConfig = Field(default_factory=ActivityConfig)
    paths: PathsSection = Field(default_factory=PathsSection)
    hook: HookSection = Field(default_factory=HookSection)
    gradle: GradleSection = Field(default_factory=GradleSection)
    export: ExportSection = Field(default_factory=ExportSection)
    base_dir: Path = Field(default_factory=Path.cwd, exclude=True)

    @property
    def mode(self) -> PackageMode:
        return self.profile.mode

    @property
    def project_root(self) -> Path:
        root = Path(self.paths.project_root)
        if not root.is_absolute():
            root = (self.base_dir / root).resolve()
        return root

    def resolve(self, value: str) -> Path:
        """Resolve ``value`` against the project root unless it is absolute."""
        candidate = Path(value)
        if candidate.is_absolute():
            return candidate
        return self.project_root / candidate

    def activity_config(self, class_name: Optional[str] = None) -> ActivityConfig:
        """Build the :class:`ActivityConfig` for this run.

        The class name comes from ``class_name`` when given, otherwise from
        ``activity.class_name`` and finally from ``profile.class_name``.
        """
        fields = self.activity.model_dump()
        fields["class_name"] = class_name or self.activity.class_name or self.profile.class_name or ""
        return ActivityConfig(**fields)


def default_config() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def write_config(config_path: Path, config_data: Mapping[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dict(config_data), handle, sort_keys=False, allow_unicode=True)


def read_config_data(config_path: Path) -> Dict[str, Any]:
    """Load the raw YAML mapping stored at ``config_path``."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}", details={"path": config_path.as_posix()})
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config: {error}", details={"path": config_path.as_posix()}) from error
    except (OSError, UnicodeDecodeError) as error:
        raise ConfigError(f"Failed to read config: {error}", details={"path": config_path.as_posix()}) from error
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.", details={"path": config_path.as_posix()})
    return data


def build_config(data: Mapping[str, Any], *, base_dir: Path) -> PatcherConfig:
    """Validate a raw mapping into a :class:`PatcherConfig`."""
    try:
        return PatcherConfig.model_validate({**data, "base_dir": base_dir})
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration: {error}", details={"errors": error.errors()}) from error


def load_config(config_path: Path | str) -> PatcherConfig:
    """Load and validate the configuration stored at ``config_path``."""
    path = Path(config_path)
    data = read_config_data(path)
    return build_config(data, base_dir=path.resolve().parent)


_PACKAGE_TOKEN = re.compile(r"com\.[a-z0-9_]+\.[a-z0-9_]+")
_WHITE_MARKERS = ("原提白包",)
_BSIDE_MARKERS = ("B面", "B 面")


def _is_asset_cell(cell: str) -> bool:
    return "image.png" in cell or ".jks" in cell


def parse_import_row(raw: str) -> Dict[str, Any]:
    """Extract profile fields from a tab-separated spreadsheet row.

    Returns only the fields that were recognised so callers can merge them
    into an existing ``profile`` section.
    """
    if not raw or not raw.strip():
        raise ConfigError("Import row is empty.")
    cells = raw.split("\t")
    if len(cells) < 2:
        raise ConfigError("No tab separators found; copy a whole row from the spreadsheet.")

    result: Dict[str, Any] = {}
    package_name = ""
    for cell in cells:
        match = _PACKAGE_TOKEN.search(cell.strip())
        if match:
            package_name = match.group(0)
            result["package_name"] = package_name
            break

    if package_name:
        for index, cell in enumerate(cells[:-1]):
            if package_name not in cell:
                continue
            candidate = cells[index + 1].strip()
            if candidate and not _is_asset_cell(candidate):
                result["app_name"] = candidate
                break
            if index + 2 < len(cells):
                candidate = cells[index + 2].strip()
                if candidate and not _is_asset_cell(candidate):
                    result["app_name"] = candidate
                    break

    package_type: Optional[PackageType] = None
    if any(marker in raw for marker in _WHITE_MARKERS):
        package_type = PackageType.WHITE
    elif any(marker in raw for marker in _BSIDE_MARKERS):
        package_type = PackageType.BSIDE
    if package_type is not None:
        result["package_type"] = package_type.name.lower()
        result["version_code"] = package_type.preset_version_code
    return result
