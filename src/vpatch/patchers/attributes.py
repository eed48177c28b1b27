"""Prefix C# type declarations with an attribute such as ``[Obfuz.ObfuzIgnore]``."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List

from ..documents import rewrite_document
from ..schema import FailureReason, PatchOutcome, failed, noop, settle

ATTRIBUTE_OPERATION = "attribute"
DEFAULT_ATTRIBUTE = "[Obfuz.ObfuzIgnore]"

_TYPE_DECLARATION = re.compile(r"\b(?:class|struct)\b\s+\w+")
_LEADING_WHITESPACE = re.compile(r"^[ \t]*")


def _already_attributed(lines: List[str], index: int, attribute: str) -> bool:
    """Walk up the attribute stack above ``lines[index]`` looking for ``attribute``."""
    if attribute in lines[index]:
        return True
    cursor = index - 1
    while cursor >= 0:
        previous = lines[cursor].strip()
        if not previous:
            cursor -= 1
            continue
        if attribute in previous:
            return True
        if previous.startswith("[") and previous.endswith("]"):
            cursor -= 1
            continue
        return False
    return False


def apply_attribute_injection(document: str, attribute: str = DEFAULT_ATTRIBUTE) -> PatchOutcome:
    """Insert ``attribute`` above every class or struct declaration missing it."""
    attribute = attribute.strip()
    if not (attribute.startswith("[") and attribute.endswith("]")):
        return failed(ATTRIBUTE_OPERATION, document, FailureReason.MALFORMED_CONFIG, f"not an attribute: {attribute!r}")

    lines = document.split("\n")
    output: List[str] = []
    inserted = 0
    for index, line in enumerate(lines):
        stripped = line.strip()
        if (
            not stripped.startswith("//")
            and _TYPE_DECLARATION.search(line)
            and not _already_attributed(lines, index, attribute)
        ):
            indent = _LEADING_WHITESPACE.match(line).group(0)
            output.append(f"{indent}{attribute}")
            inserted += 1
        output.append(line)

    if not inserted:
        return noop(ATTRIBUTE_OPERATION, document)
    return settle(ATTRIBUTE_OPERATION, document, "\n".join(output), f"annotated {inserted} declaration(s)")


def collect_source_files(paths: Iterable[Path | str], suffix: str = ".cs") -> List[Path]:
    """Expand files and directories into a sorted, de-duplicated file list."""
    found: set[Path] = set()
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            found.update(candidate for candidate in path.rglob(f"*{suffix}") if candidate.is_file())
        elif path.is_file() and path.suffix.lower() == suffix.lower():
            found.add(path)
    return sorted(found)


def annotate_file(path: Path | str, attribute: str = DEFAULT_ATTRIBUTE, *, dry_run: bool = False) -> PatchOutcome:
    return rewrite_document(
        path,
        ATTRIBUTE_OPERATION,
        lambda text: apply_attribute_injection(text, attribute),
        missing_ok=False,
        dry_run=dry_run,
    )
