"""Pre-build and post-build patch sequences driven by a :class:`PatcherConfig`."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from .config import PatcherConfig
from .documents import record_outcome, rewrite_document
from .patchers.gradle import patch_gradle_dependency_file, patch_gradle_flags_file
from .patchers.manifest import (
    BACK_CALLBACK_OPERATION,
    LAUNCH_MODE_OPERATION,
    apply_back_callback_patch,
    apply_launch_mode_patch,
    patch_manifest_file,
)
from .patchers.source import (
    detect_activity_class,
    export_activity_sources,
    inject_hook_file,
    sync_activity_sources,
)
from .schema import (
    ActivityConfig,
    FailureReason,
    PackageMode,
    PatchOutcome,
    PatchStatus,
    failed,
    noop,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineReport:
    """Ordered outcomes of one pipeline run."""

    stage: str
    mode: PackageMode
    outcomes: List[PatchOutcome] = field(default_factory=list)
    aborted: bool = False

    def extend(self, outcomes: Iterable[PatchOutcome]) -> None:
        for outcome in outcomes:
            self.add(outcome)

    def add(self, outcome: PatchOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def ok(self) -> bool:
        return not any(outcome.failed for outcome in self.outcomes)

    @property
    def changed(self) -> bool:
        return any(outcome.changed for outcome in self.outcomes)

    @property
    def failures(self) -> List[PatchOutcome]:
        return [outcome for outcome in self.outcomes if outcome.failed]

    def count(self, status: PatchStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    def summary(self) -> str:
        return (
            f"{self.stage} ({self.mode.value}): "
            f"{self.count(PatchStatus.APPLIED)} applied, "
            f"{self.count(PatchStatus.NOOP)} unchanged, "
            f"{self.count(PatchStatus.FAILED)} failed"
            + (" [aborted]" if self.aborted else "")
        )


def resolve_activity(config: PatcherConfig) -> ActivityConfig:
    """Build the activity config, falling back to the class found in ``sources_dir``."""
    class_name = config.profile.class_name or config.activity.class_name
    if not class_name and config.mode is PackageMode.INJECT:
        class_name = detect_activity_class(config.resolve(config.paths.sources_dir))
        if class_name:
            LOGGER.info("Detected activity class %s", class_name)
    return config.activity_config(class_name)


def _validate(report: PipelineReport, activity: ActivityConfig) -> bool:
    if report.mode is not PackageMode.INJECT:
        return True
    problems = activity.problems()
    if not problems:
        return True
    report.add(
        record_outcome(failed("validate", "", FailureReason.MALFORMED_CONFIG, "; ".join(problems)))
    )
    report.aborted = True
    return False


def run_prebuild(config: PatcherConfig, *, dry_run: bool = False) -> PipelineReport:
    """Reconcile plugin sources, manifest and Gradle templates with the profile."""
    mode = config.mode
    report = PipelineReport(stage="prebuild", mode=mode)
    activity = resolve_activity(config)
    if not _validate(report, activity):
        return report

    report.extend(
        record_outcome(outcome)
        for outcome in sync_activity_sources(config.resolve(config.paths.plugins_dir), mode, activity, dry_run=dry_run)
    )
    report.add(patch_manifest_file(config.resolve(config.paths.manifest), mode, activity, dry_run=dry_run))
    report.add(
        patch_gradle_flags_file(
            config.resolve(config.paths.launcher_gradle),
            config.gradle.substitutions,
            dry_run=dry_run,
        )
    )
    if mode is PackageMode.INJECT and config.gradle.dependency.strip():
        report.add(
            patch_gradle_dependency_file(
                config.resolve(config.paths.main_gradle),
                config.gradle.dependency,
                dry_run=dry_run,
            )
        )
    LOGGER.info("%s", report.summary())
    return report


def find_exported_manifest(config: PatcherConfig, export_root: Path) -> Optional[Path]:
    for candidate in config.export.manifest_candidates:
        path = export_root / candidate
        if path.is_file():
            return path
    return None


def run_postbuild(
    config: PatcherConfig,
    export_root: Path | str,
    *,
    dry_run: bool = False,
) -> PipelineReport:
    """Patch an exported Gradle project; does nothing for clean builds."""
    mode = config.mode
    root = Path(export_root)
    report = PipelineReport(stage="postbuild", mode=mode)
    if mode is PackageMode.CLEAN:
        report.add(record_outcome(noop("postbuild", "", message="clean build, post-processing skipped")))
        return report

    activity = resolve_activity(config)
    if not _validate(report, activity):
        return report

    report.extend(
        record_outcome(outcome)
        for outcome in export_activity_sources(
            config.resolve(config.paths.sources_dir),
            root / config.export.java_dir,
            dry_run=dry_run,
        )
    )

    manifest = find_exported_manifest(config, root)
    if manifest is None:
        missing = noop(
            "exported-manifest",
            "",
            FailureReason.MISSING_TARGET_FILE,
            f"none of {', '.join(config.export.manifest_candidates)} exist",
        )
        missing.path = root
        report.add(record_outcome(missing))
    else:
        report.add(
            rewrite_document(
                manifest,
                LAUNCH_MODE_OPERATION,
                lambda text: apply_launch_mode_patch(
                    text, config.export.launch_mode_from, config.export.launch_mode_to
                ),
                missing_ok=True,
                dry_run=dry_run,
            )
        )
        report.add(
            rewrite_document(
                manifest,
                BACK_CALLBACK_OPERATION,
                lambda text: apply_back_callback_patch(text, config.export.back_invoked_callback),
                missing_ok=True,
                dry_run=dry_run,
            )
        )

    hook = config.hook
    report.add(
        inject_hook_file(
            root / config.export.activity_source,
            hook.name,
            hook.resolved_body,
            hook.anchors,
            imports=hook.imports,
            entry_signature=hook.entry_signature,
            dry_run=dry_run,
        )
    )
    LOGGER.info("%s", report.summary())
    return report
