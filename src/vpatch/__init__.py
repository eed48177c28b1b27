"""Idempotent text patching for white and B-side Android builds."""

from .config import ConfigError, PatcherConfig, load_config
from .documents import PatchError
from .pipeline import PipelineReport, run_postbuild, run_prebuild
from .schema import ActivityConfig, FailureReason, PackageMode, PackageType, PatchOutcome, PatchStatus

__version__ = "0.1.0"

__all__ = [
    "ActivityConfig",
    "ConfigError",
    "FailureReason",
    "PackageMode",
    "PackageType",
    "PatchError",
    "PatchOutcome",
    "PatchStatus",
    "PatcherConfig",
    "PipelineReport",
    "load_config",
    "run_postbuild",
    "run_prebuild",
]
