"""Inject lifecycle hooks into Java sources and manage generated activity stubs."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..documents import rewrite_document, write_document
from ..schema import (
    ActivityConfig,
    FailureReason,
    PackageMode,
    PatchOutcome,
    applied,
    failed,
    is_java_identifier,
    noop,
    settle,
)

LOGGER = logging.getLogger(__name__)

HOOK_OPERATION = "hook"
DEFAULT_ENTRY_SIGNATURE = "protected void onCreate(Bundle savedInstanceState)"
GENERATED_MARKER = "// Generated by vpatch: secondary activity stub."
_INDENT_STEP = "    "

_PACKAGE_LINE = re.compile(r"^[ \t]*package\s+[\w.]+\s*;[^\n]*$", re.MULTILINE)

INSTALL_REFERRER_HOOK = "getInstallReferrer"
INSTALL_REFERRER_ANCHORS: tuple[str, ...] = (
    "mUnityPlayer.getFrameLayout().requestFocus();",
    "mUnityPlayer.requestFocus();",
)
INSTALL_REFERRER_IMPORTS: tuple[str, ...] = (
    "import com.android.installreferrer.api.ReferrerDetails;",
    "import com.android.installreferrer.api.InstallReferrerStateListener;",
    "import com.android.installreferrer.api.InstallReferrerClient;",
    "import android.content.SharedPreferences;",
    "import android.content.Context;",
)
INSTALL_REFERRER_BODY = """\
    private void getInstallReferrer() {
        final SharedPreferences sp = this.getSharedPreferences(getPackageName() + ".v2.playerprefs", Context.MODE_PRIVATE);
        final InstallReferrerClient referrerClient = InstallReferrerClient.newBuilder(this).build();
        referrerClient.startConnection(new InstallReferrerStateListener() {
            @Override
            public void onInstallReferrerSetupFinished(int responseCode) {
                if (responseCode == InstallReferrerClient.InstallReferrerResponse.OK) {
                    try {
                        ReferrerDetails response = referrerClient.getInstallReferrer();
                        sp.edit().putString("referrerUrl", response.getInstallReferrer()).apply();
                        referrerClient.endConnection();
                    } catch (Exception e) {
                        e.printStackTrace();
                    }
                }
            }
            @Override
            public void onInstallReferrerServiceDisconnected() {
            }
        });
    }
"""


def invocation_pattern(hook_name: str) -> re.Pattern[str]:
    """Match a bare ``hook_name();`` call, ignoring qualified calls like ``x.hook();``."""
    return re.compile(rf"(?<![\w$.]){re.escape(hook_name)}\(\);")


def declaration_pattern(hook_name: str) -> re.Pattern[str]:
    return re.compile(
        rf"[\w<>\[\],?]+\s+{re.escape(hook_name)}\s*\([^)]*\)\s*(?:throws\s+[\w.,\s]+)?\{{"
    )


def count_invocations(document: str, hook_name: str) -> int:
    return len(invocation_pattern(hook_name).findall(document))


def _line_indent(document: str, position: int) -> str:
    line_start = document.rfind("\n", 0, position) + 1
    match = re.match(r"[ \t]*", document[line_start:])
    return match.group(0) if match else ""


def select_anchor(document: str, anchors: Sequence[str]) -> Optional[str]:
    """Return the first anchor statement present in ``document``."""
    for anchor in anchors:
        if anchor and anchor in document:
            return anchor
    return None


def inject_imports(document: str, imports: Iterable[str]) -> str:
    """Insert each missing import after the package declaration, keeping order."""
    missing = [line for line in imports if line and line not in document]
    if not missing:
        return document
    package = _PACKAGE_LINE.search(document)
    if package is None:
        LOGGER.debug("No package declaration; skipping %d import(s)", len(missing))
        return document
    block = "".join(f"\n{line}" for line in missing)
    return document[: package.end()] + block + document[package.end() :]


def _inject_call(document: str, hook_name: str, anchor: str, entry_signature: str) -> Optional[str]:
    call = f"{hook_name}();"
    position = document.find(anchor) if anchor else -1
    if position != -1:
        indent = _line_indent(document, position)
        insert_at = position + len(anchor)
        return f"{document[:insert_at]}\n{indent}{call}{document[insert_at:]}"

    signature_at = document.find(entry_signature) if entry_signature else -1
    if signature_at == -1:
        return None
    brace = document.find("{", signature_at + len(entry_signature))
    if brace == -1:
        return None
    indent = _line_indent(document, signature_at) + _INDENT_STEP
    return f"{document[: brace + 1]}\n{indent}{call}{document[brace + 1 :]}"


def _inject_body(document: str, hook_body: str) -> str:
    closing = document.rfind("}")
    if closing == -1:
        return document
    body = hook_body.strip("\n")
    return f"{document[:closing]}\n{body}\n{document[closing:]}"


def apply_hook_injection(
    document: str,
    hook_name: str,
    hook_body: str,
    anchor_statement: str,
    *,
    imports: Sequence[str] = (),
    entry_signature: str = DEFAULT_ENTRY_SIGNATURE,
) -> PatchOutcome:
    """Declare ``hook_name`` once and invoke it once right after ``anchor_statement``."""
    if not is_java_identifier(hook_name):
        return failed(HOOK_OPERATION, document, FailureReason.MALFORMED_CONFIG, f"invalid hook name {hook_name!r}")
    if not hook_body.strip():
        return failed(HOOK_OPERATION, document, FailureReason.MALFORMED_CONFIG, "hook body is empty")

    updated = inject_imports(document, imports)

    if invocation_pattern(hook_name).search(updated):
        return settle(HOOK_OPERATION, document, updated, f"{hook_name} already invoked")

    with_call = _inject_call(updated, hook_name, anchor_statement, entry_signature)
    if with_call is None:
        outcome = settle(HOOK_OPERATION, document, updated, "no anchor statement or entry signature")
        outcome.reason = FailureReason.PATTERN_NOT_FOUND
        return outcome

    if not declaration_pattern(hook_name).search(with_call):
        with_call = _inject_body(with_call, hook_body)
    return settle(HOOK_OPERATION, document, with_call, f"invoked {hook_name}")


def inject_hook_file(
    path: Path | str,
    hook_name: str = INSTALL_REFERRER_HOOK,
    hook_body: str = INSTALL_REFERRER_BODY,
    anchors: Sequence[str] = INSTALL_REFERRER_ANCHORS,
    *,
    imports: Sequence[str] = INSTALL_REFERRER_IMPORTS,
    entry_signature: str = DEFAULT_ENTRY_SIGNATURE,
    dry_run: bool = False,
) -> PatchOutcome:
    """Run :func:`apply_hook_injection` on a source file that must exist."""

    def transform(text: str) -> PatchOutcome:
        anchor = select_anchor(text, anchors) or ""
        return apply_hook_injection(
            text,
            hook_name,
            hook_body,
            anchor,
            imports=imports,
            entry_signature=entry_signature,
        )

    return rewrite_document(path, HOOK_OPERATION, transform, missing_ok=False, dry_run=dry_run)


def render_activity_stub(config: ActivityConfig) -> str:
    return (
        f"package {config.namespace};\n"
        "\n"
        f"{GENERATED_MARKER}\n"
        "import android.app.Activity;\n"
        "\n"
        f"public class {config.class_name} extends Activity {{\n"
        "}\n"
    )


def _is_generated_stub(path: Path) -> bool:
    try:
        return GENERATED_MARKER in path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False


def sync_activity_sources(
    plugins_dir: Path | str,
    mode: PackageMode,
    config: ActivityConfig,
    *,
    dry_run: bool = False,
) -> List[PatchOutcome]:
    """Keep generated activity stubs in ``plugins_dir`` consistent with ``mode``.

    Only files carrying :data:`GENERATED_MARKER` are ever removed; hand-written
    sources are left alone. In inject mode the stub for ``config`` is written
    when no file of that name exists yet.
    """
    mode = PackageMode(mode)
    root = Path(plugins_dir)
    outcomes: List[PatchOutcome] = []
    if mode is PackageMode.INJECT:
        problems = config.problems()
        if problems:
            return [failed("activity-source", "", FailureReason.MALFORMED_CONFIG, "; ".join(problems))]
    keep = f"{config.class_name}.java" if mode is PackageMode.INJECT else None

    if root.is_dir():
        for candidate in sorted(root.glob("*.java")):
            if candidate.name == keep or not _is_generated_stub(candidate):
                continue
            if not dry_run:
                candidate.unlink()
                Path(f"{candidate}.meta").unlink(missing_ok=True)
            LOGGER.info("Removed stale activity stub %s", candidate.name)
            outcome = applied("activity-source", "", f"removed {candidate.name}")
            outcome.path = candidate
            outcomes.append(outcome)

    if mode is PackageMode.INJECT:
        target = root / f"{config.class_name}.java"
        if target.exists():
            outcome = noop("activity-source", "", message=f"{target.name} already present")
        else:
            stub = render_activity_stub(config)
            if not dry_run:
                write_document(target, stub)
            LOGGER.info("Generated activity stub %s", target.name)
            outcome = applied("activity-source", stub, f"generated {target.name}")
        outcome.path = target
        outcomes.append(outcome)
    return outcomes


def detect_activity_class(sources_dir: Path | str) -> Optional[str]:
    """Return the stem of the first ``*.java`` file under ``sources_dir``."""
    root = Path(sources_dir)
    if not root.is_dir():
        LOGGER.warning("Activity source directory not found: %s", root)
        return None
    for candidate in sorted(root.glob("*.java")):
        return candidate.stem
    LOGGER.warning("No .java files found in %s", root)
    return None


def export_activity_sources(
    sources_dir: Path | str,
    java_dir: Path | str,
    *,
    dry_run: bool = False,
) -> List[PatchOutcome]:
    """Copy every ``*.java`` file from ``sources_dir`` verbatim into ``java_dir``."""
    source_root = Path(sources_dir)
    target_root = Path(java_dir)
    outcomes: List[PatchOutcome] = []
    if not source_root.is_dir():
        return outcomes
    for source in sorted(source_root.glob("*.java")):
        destination = target_root / source.name
        payload = source.read_bytes()
        current = destination.read_bytes() if destination.is_file() else None
        if current == payload:
            outcome = noop("export-source", "", message=f"{source.name} up to date")
        else:
            if not dry_run:
                target_root.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)
            outcome = applied("export-source", "", f"copied {source.name}")
        outcome.path = destination
        outcomes.append(outcome)
    return outcomes
