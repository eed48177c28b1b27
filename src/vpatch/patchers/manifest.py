"""Reconcile the secondary activity registration inside an Android manifest."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Pattern

from ..documents import rewrite_document
from ..schema import (
    ActivityConfig,
    FailureReason,
    PackageMode,
    PatchOutcome,
    failed,
    noop,
    settle,
)

MANIFEST_OPERATION = "manifest"
LAUNCH_MODE_OPERATION = "launch-mode"
BACK_CALLBACK_OPERATION = "back-callback"

_APPLICATION_CLOSE = re.compile(r"</application\s*>")
_APPLICATION_OPEN = re.compile(r"<application\b")
_BACK_CALLBACK_ATTR = re.compile(r"\s*android:enableOnBackInvokedCallback=\"(?:true|false)\"")
_CHILD_INDENT = "  "


def fragment_pattern(config: ActivityConfig) -> Pattern[str]:
    """Compile the signature of the secondary activity element for ``config``."""
    namespace = re.escape(config.namespace)
    theme = re.escape(config.theme)
    return re.compile(
        rf"<activity\s+android:name=\"{namespace}\.[^\"]+\""
        rf"[^>]*?\"{theme}\""
        r"[^>]*?(?:/>|>.*?</activity\s*>)",
        re.DOTALL,
    )


def render_fragment(config: ActivityConfig) -> str:
    """Serialise ``config`` into the canonical single-line activity element."""
    changes = "|".join(config.config_changes)
    return (
        f'<activity android:name="{config.qualified_name}"'
        f' android:configChanges="{changes}"'
        f' android:exported="{str(config.exported).lower()}"'
        f' android:hardwareAccelerated="{str(config.hardware_accelerated).lower()}"'
        f' android:theme="{config.theme}" />'
    )


def find_activity_fragments(document: str, config: ActivityConfig) -> List[re.Match[str]]:
    return list(fragment_pattern(config).finditer(document))


def _line_bounds(document: str, start: int, end: int) -> tuple[int, int]:
    """Widen ``start:end`` to whole lines when nothing else shares them."""
    line_start = document.rfind("\n", 0, start) + 1
    line_end = document.find("\n", end)
    line_stop = len(document) if line_end == -1 else line_end
    if document[line_start:start].strip() or document[end:line_stop].strip():
        return start, end
    if line_end == -1:
        # Last line: swallow the newline that precedes it instead.
        return max(line_start - 1, 0), line_stop
    return line_start, line_end + 1


def _remove_spans(document: str, spans: List[tuple[int, int]]) -> str:
    pieces: List[str] = []
    cursor = 0
    for span_start, span_end in spans:
        start, end = _line_bounds(document, span_start, span_end)
        start = max(start, cursor)
        pieces.append(document[cursor:start])
        cursor = end
    pieces.append(document[cursor:])
    return "".join(pieces)


def _insert_before_application_close(document: str, fragment: str) -> Optional[str]:
    closing = None
    for closing in _APPLICATION_CLOSE.finditer(document):
        pass
    if closing is None:
        return None
    position = closing.start()
    line_start = document.rfind("\n", 0, position) + 1
    indent = document[line_start:position]
    if indent.strip():
        return document[:position] + fragment + document[position:]
    return f"{document[:line_start]}{indent}{_CHILD_INDENT}{fragment}\n{document[line_start:]}"


def apply_manifest_patch(document: str, mode: PackageMode, config: ActivityConfig) -> PatchOutcome:
    """Make ``document`` carry zero (clean) or one (inject) secondary activity."""
    mode = PackageMode(mode)
    spans = [match.span() for match in find_activity_fragments(document, config)]

    if mode is PackageMode.CLEAN:
        if not spans:
            return noop(MANIFEST_OPERATION, document, FailureReason.PATTERN_NOT_FOUND, "no secondary activity registered")
        updated = _remove_spans(document, spans)
        return settle(MANIFEST_OPERATION, document, updated, f"removed {len(spans)} secondary activity fragment(s)")

    problems = config.problems()
    if problems:
        return failed(MANIFEST_OPERATION, document, FailureReason.MALFORMED_CONFIG, "; ".join(problems))

    fragment = render_fragment(config)
    if spans:
        # Duplicates sit after the first fragment, so its offsets stay valid.
        start, end = spans[0]
        updated = _remove_spans(document, spans[1:])
        updated = updated[:start] + fragment + updated[end:]
        return settle(MANIFEST_OPERATION, document, updated, f"registered {config.qualified_name}")

    inserted = _insert_before_application_close(document, fragment)
    if inserted is None:
        return noop(MANIFEST_OPERATION, document, FailureReason.PATTERN_NOT_FOUND, "no </application> tag")
    return settle(MANIFEST_OPERATION, document, inserted, f"registered {config.qualified_name}")


def apply_launch_mode_patch(document: str, old: str = "singleTask", new: str = "singleTop") -> PatchOutcome:
    """Swap the activity launch mode attribute value."""
    updated = document.replace(f'android:launchMode="{old}"', f'android:launchMode="{new}"')
    if updated == document:
        return noop(LAUNCH_MODE_OPERATION, document, FailureReason.PATTERN_NOT_FOUND)
    return settle(LAUNCH_MODE_OPERATION, document, updated, f"{old} -> {new}")


def apply_back_callback_patch(document: str, value: Optional[bool] = False) -> PatchOutcome:
    """Strip ``enableOnBackInvokedCallback`` and optionally pin it on ``<application>``."""
    updated = _BACK_CALLBACK_ATTR.sub("", document)
    if value is not None:
        attribute = f' android:enableOnBackInvokedCallback="{str(value).lower()}"'
        opening = _APPLICATION_OPEN.search(updated)
        if opening is None:
            return noop(BACK_CALLBACK_OPERATION, document, FailureReason.PATTERN_NOT_FOUND, "no <application> tag")
        updated = updated[: opening.end()] + attribute + updated[opening.end() :]
    return settle(BACK_CALLBACK_OPERATION, document, updated)


def patch_manifest_file(
    path: Path | str,
    mode: PackageMode,
    config: ActivityConfig,
    *,
    dry_run: bool = False,
) -> PatchOutcome:
    """Apply :func:`apply_manifest_patch` to a manifest on disk; absence is a no-op."""
    return rewrite_document(
        path,
        MANIFEST_OPERATION,
        lambda text: apply_manifest_patch(text, mode, config),
        missing_ok=True,
        dry_run=dry_run,
    )
