"""Token substitutions and dependency insertion for Gradle templates."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Sequence, Tuple

from ..documents import rewrite_document
from ..schema import FailureReason, PatchOutcome, noop, settle

FLAG_OPERATION = "gradle-flags"
DEPENDENCY_OPERATION = "gradle-dependency"
DEPENDENCIES_ANCHOR = "dependencies {"

MINIFY_SUBSTITUTIONS: Tuple[Tuple[str, str], ...] = (
    ("minifyEnabled **MINIFY_DEBUG**", "minifyEnabled true"),
    ("minifyEnabled **MINIFY_RELEASE**", "minifyEnabled true"),
)
INSTALL_REFERRER_DEPENDENCY = "implementation 'com.android.installreferrer:installreferrer:2.2'"


def apply_flag_patch(document: str, substitutions: Sequence[Tuple[str, str]]) -> PatchOutcome:
    """Apply ordered literal replacements; tokens that are absent are skipped."""
    updated = document
    hits: list[str] = []
    for token, replacement in substitutions:
        if not token or token not in updated:
            continue
        updated = updated.replace(token, replacement)
        hits.append(token)
    if not hits:
        return noop(FLAG_OPERATION, document, FailureReason.PATTERN_NOT_FOUND)
    return settle(FLAG_OPERATION, document, updated, f"replaced {len(hits)} token(s)")


def apply_dependency_patch(
    document: str,
    dependency_line: str,
    anchor: str = DEPENDENCIES_ANCHOR,
) -> PatchOutcome:
    """Insert ``dependency_line`` after the first ``anchor`` unless already present."""
    line = dependency_line.strip()
    if not line or line in document:
        return noop(DEPENDENCY_OPERATION, document)
    position = document.find(anchor)
    if position == -1:
        return noop(DEPENDENCY_OPERATION, document, FailureReason.PATTERN_NOT_FOUND, f"no {anchor!r} block")
    line_start = document.rfind("\n", 0, position) + 1
    indent = re.match(r"[ \t]*", document[line_start:position])
    insert_at = position + len(anchor)
    prefix = (indent.group(0) if indent else "") + "    "
    updated = f"{document[:insert_at]}\n{prefix}{line}{document[insert_at:]}"
    return settle(DEPENDENCY_OPERATION, document, updated, f"added {line}")


def patch_gradle_flags_file(
    path: Path | str,
    substitutions: Sequence[Tuple[str, str]] = MINIFY_SUBSTITUTIONS,
    *,
    dry_run: bool = False,
) -> PatchOutcome:
    return rewrite_document(
        path,
        FLAG_OPERATION,
        lambda text: apply_flag_patch(text, substitutions),
        missing_ok=True,
        dry_run=dry_run,
    )


def patch_gradle_dependency_file(
    path: Path | str,
    dependency_line: str = INSTALL_REFERRER_DEPENDENCY,
    *,
    dry_run: bool = False,
) -> PatchOutcome:
    return rewrite_document(
        path,
        DEPENDENCY_OPERATION,
        lambda text: apply_dependency_patch(text, dependency_line),
        missing_ok=True,
        dry_run=dry_run,
    )
