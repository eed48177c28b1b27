"""Scoped read-transform-write helpers with telemetry for patched documents."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping

from .schema import FailureReason, PatchOutcome, PatchStatus, failed, noop

LOGGER = logging.getLogger(__name__)
TELEMETRY_LOGGER = logging.getLogger("vpatch.telemetry")

Transform = Callable[[str], PatchOutcome]


class PatchError(RuntimeError):
    """Raised when a patched document cannot be read or written."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


def record_outcome(outcome: PatchOutcome) -> PatchOutcome:
    """Log ``outcome`` as one compact JSON event and hand it back unchanged."""
    payload = {
        "event": "patch_outcome",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "operation": outcome.operation,
        "status": outcome.status.value,
        "reason": outcome.reason.value if outcome.reason is not None else None,
        "path": outcome.path.as_posix() if outcome.path is not None else None,
        "message": outcome.message,
    }
    TELEMETRY_LOGGER.info(json.dumps(payload, separators=(",", ":"), ensure_ascii=True))
    if outcome.failed:
        LOGGER.warning("%s", outcome.describe())
    else:
        LOGGER.debug("%s", outcome.describe())
    return outcome


def _detect_newline(raw: str) -> str:
    """Return ``"\\r\\n"`` only when every line ending in ``raw`` is CRLF."""
    crlf = raw.count("\r\n")
    return "\r\n" if crlf and crlf == raw.count("\n") else "\n"


def read_document(path: Path) -> tuple[str, str]:
    """Return the text of ``path`` and its newline style.

    Uniform CRLF documents are normalised to LF and restored on write. Mixed
    documents are handed over untouched so unrelated lines keep their bytes.
    """
    try:
        with path.open("r", encoding="utf-8", newline="") as handle:
            raw = handle.read()
    except UnicodeDecodeError as error:
        raise PatchError(
            f"Failed to decode {path} as UTF-8: {error.reason} at byte {error.start}",
            details={"path": path.as_posix(), "encoding": "utf-8", "position": error.start},
        ) from error
    except OSError as error:
        raise PatchError(f"Failed to read {path}: {error}", details={"path": path.as_posix()}) from error
    newline = _detect_newline(raw)
    if newline == "\r\n":
        return raw.replace("\r\n", "\n"), newline
    return raw, newline


def write_document(path: Path, text: str, *, newline: str = "\n") -> None:
    """Replace ``path`` with ``text`` through a temporary sibling file."""
    payload = text.replace("\n", newline) if newline != "\n" else text
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        newline="",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(handle.name)
    try:
        with handle:
            handle.write(payload)
        if path.exists():
            os.chmod(temp_path, path.stat().st_mode & 0o777)
        os.replace(temp_path, path)
    except OSError as error:
        temp_path.unlink(missing_ok=True)
        raise PatchError(f"Failed to write {path}: {error}", details={"path": path.as_posix()}) from error


def rewrite_document(
    path: Path | str,
    operation: str,
    transform: Transform,
    *,
    missing_ok: bool,
    dry_run: bool = False,
) -> PatchOutcome:
    """Read ``path``, run ``transform`` over its text and write back any change.

    A missing file yields a ``noop`` when ``missing_ok`` is set and a
    ``failed`` outcome otherwise; both carry ``missing_target_file``. A file
    that cannot be read or decoded fails with ``unreadable_target_file``.
    """
    target = Path(path)
    if not target.is_file():
        message = f"{target.as_posix()} does not exist"
        if missing_ok:
            outcome = noop(operation, "", FailureReason.MISSING_TARGET_FILE, message)
        else:
            outcome = failed(operation, "", FailureReason.MISSING_TARGET_FILE, message)
        outcome.path = target
        return record_outcome(outcome)

    try:
        text, newline = read_document(target)
    except PatchError as error:
        outcome = failed(operation, "", FailureReason.UNREADABLE_TARGET_FILE, str(error))
        outcome.path = target
        return record_outcome(outcome)
    outcome = transform(text)
    outcome.path = target
    if outcome.status is PatchStatus.APPLIED and not dry_run:
        write_document(target, outcome.text, newline=newline)
    return record_outcome(outcome)
