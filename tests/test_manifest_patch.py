from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from vpatch.patchers.manifest import (
    apply_back_callback_patch,
    apply_launch_mode_patch,
    apply_manifest_patch,
    find_activity_fragments,
    patch_manifest_file,
    render_fragment,
)
from vpatch.schema import ActivityConfig, FailureReason, PackageMode, PatchStatus

FOO = ActivityConfig(
    class_name="FooActivity",
    config_changes=("orientation", "screenSize"),
    exported=False,
    hardware_accelerated=True,
    theme="@android:style/Theme.Light.NoTitleBar",
)
FOO_TAG = (
    '<activity android:name="com.unity3d.player.FooActivity"'
    ' android:configChanges="orientation|screenSize"'
    ' android:exported="false"'
    ' android:hardwareAccelerated="true"'
    ' android:theme="@android:style/Theme.Light.NoTitleBar" />'
)


def test_render_fragment_uses_fixed_field_order() -> None:
    assert render_fragment(FOO) == FOO_TAG


def test_inject_inserts_fragment_before_closing_application(manifest_text: str) -> None:
    outcome = apply_manifest_patch(manifest_text, PackageMode.INJECT, FOO)

    assert outcome.status is PatchStatus.APPLIED
    expected = manifest_text.replace(
        "  </application>",
        f"    {FOO_TAG}\n  </application>",
    )
    assert outcome.text == expected
    assert len(find_activity_fragments(outcome.text, FOO)) == 1


def test_clean_removes_fragment_without_leaving_blank_line(manifest_text: str) -> None:
    injected = apply_manifest_patch(manifest_text, PackageMode.INJECT, FOO).text

    outcome = apply_manifest_patch(injected, PackageMode.CLEAN, FOO)

    assert outcome.status is PatchStatus.APPLIED
    assert outcome.text == manifest_text
    assert "\n\n" not in outcome.text
    assert find_activity_fragments(outcome.text, FOO) == []


def test_clean_without_fragment_is_noop(manifest_text: str) -> None:
    outcome = apply_manifest_patch(manifest_text, PackageMode.CLEAN, FOO)

    assert outcome.status is PatchStatus.NOOP
    assert outcome.reason is FailureReason.PATTERN_NOT_FOUND
    assert outcome.text == manifest_text


@pytest.mark.parametrize("mode", [PackageMode.CLEAN, PackageMode.INJECT])
def test_manifest_patch_is_idempotent(manifest_text: str, mode: PackageMode) -> None:
    seeded = apply_manifest_patch(manifest_text, PackageMode.INJECT, FOO.model_copy(update={"class_name": "Old"})).text

    once = apply_manifest_patch(seeded, mode, FOO)
    twice = apply_manifest_patch(once.text, mode, FOO)

    assert twice.text == once.text
    assert twice.status is not PatchStatus.APPLIED


def test_inject_replaces_existing_fragment_in_place(manifest_text: str) -> None:
    legacy = (
        '<activity android:name="com.unity3d.player.Legacy" android:exported="true"\n'
        '              android:theme="@android:style/Theme.Light.NoTitleBar" />'
    )
    document = manifest_text.replace("  </application>", f"    {legacy}\n  </application>")

    outcome = apply_manifest_patch(document, PackageMode.INJECT, FOO)

    assert "Legacy" not in outcome.text
    assert f"    {FOO_TAG}\n  </application>" in outcome.text
    assert outcome.text.count("<activity") == 2


def test_inject_collapses_duplicate_fragments(manifest_text: str) -> None:
    first = render_fragment(FOO.model_copy(update={"class_name": "One"}))
    second = render_fragment(FOO.model_copy(update={"class_name": "Two"}))
    document = manifest_text.replace(
        "  </application>",
        f"    {first}\n    {second}\n  </application>",
    )

    outcome = apply_manifest_patch(document, PackageMode.INJECT, FOO)

    fragments = find_activity_fragments(outcome.text, FOO)
    assert len(fragments) == 1
    assert fragments[0].group(0) == FOO_TAG
    assert "Two" not in outcome.text


def test_paired_activity_element_is_matched_and_removed(manifest_text: str) -> None:
    paired = textwrap.indent(
        textwrap.dedent(
            """\
            <activity android:name="com.unity3d.player.Paired" android:theme="@android:style/Theme.Light.NoTitleBar">
              <meta-data android:name="unityplayer.UnityActivity" android:value="true" />
            </activity>
            """
        ),
        "    ",
    )
    document = manifest_text.replace("  </application>", f"{paired}  </application>")

    outcome = apply_manifest_patch(document, PackageMode.CLEAN, FOO)

    assert outcome.text == manifest_text


def test_main_activity_is_never_treated_as_fragment(manifest_text: str) -> None:
    assert find_activity_fragments(manifest_text, FOO) == []


def test_fragment_sharing_a_line_keeps_neighbours(manifest_text: str) -> None:
    document = manifest_text.replace("  </application>", f"    <!-- keep -->{FOO_TAG}\n  </application>")

    outcome = apply_manifest_patch(document, PackageMode.CLEAN, FOO)

    assert "    <!-- keep -->\n  </application>" in outcome.text


def test_inject_rejects_malformed_config(manifest_text: str) -> None:
    outcome = apply_manifest_patch(manifest_text, PackageMode.INJECT, ActivityConfig(class_name=""))

    assert outcome.status is PatchStatus.FAILED
    assert outcome.reason is FailureReason.MALFORMED_CONFIG
    assert outcome.text == manifest_text


def test_clean_accepts_config_without_class_name(manifest_text: str) -> None:
    injected = apply_manifest_patch(manifest_text, PackageMode.INJECT, FOO).text

    outcome = apply_manifest_patch(injected, PackageMode.CLEAN, ActivityConfig())

    assert outcome.text == manifest_text


def test_inject_without_application_close_is_noop() -> None:
    outcome = apply_manifest_patch("<manifest />\n", PackageMode.INJECT, FOO)

    assert outcome.status is PatchStatus.NOOP
    assert outcome.reason is FailureReason.PATTERN_NOT_FOUND


def test_patch_manifest_file_tolerates_missing_file(tmp_path: Path) -> None:
    outcome = patch_manifest_file(tmp_path / "AndroidManifest.xml", PackageMode.INJECT, FOO)

    assert outcome.status is PatchStatus.NOOP
    assert outcome.reason is FailureReason.MISSING_TARGET_FILE
    assert not (tmp_path / "AndroidManifest.xml").exists()


def test_patch_manifest_file_preserves_crlf(tmp_path: Path, manifest_text: str) -> None:
    target = tmp_path / "AndroidManifest.xml"
    target.write_bytes(manifest_text.replace("\n", "\r\n").encode("utf-8"))

    outcome = patch_manifest_file(target, PackageMode.INJECT, FOO)

    raw = target.read_bytes()
    assert outcome.status is PatchStatus.APPLIED
    assert raw.count(b"\n") == raw.count(b"\r\n")
    assert FOO_TAG.encode("utf-8") in raw


def test_patch_manifest_file_dry_run_leaves_file(tmp_path: Path, manifest_text: str) -> None:
    target = tmp_path / "AndroidManifest.xml"
    target.write_text(manifest_text, encoding="utf-8")

    outcome = patch_manifest_file(target, PackageMode.INJECT, FOO, dry_run=True)

    assert outcome.status is PatchStatus.APPLIED
    assert target.read_text(encoding="utf-8") == manifest_text


def test_launch_mode_patch_swaps_value() -> None:
    document = '<activity android:launchMode="singleTask" />'

    outcome = apply_launch_mode_patch(document)

    assert outcome.text == '<activity android:launchMode="singleTop" />'
    assert apply_launch_mode_patch(outcome.text).status is PatchStatus.NOOP


def test_back_callback_patch_pins_single_attribute() -> None:
    document = '<application android:enableOnBackInvokedCallback="true" android:label="x">\n</application>'

    once = apply_back_callback_patch(document, False)
    twice = apply_back_callback_patch(once.text, False)

    assert once.text == '<application android:enableOnBackInvokedCallback="false" android:label="x">\n</application>'
    assert twice.status is PatchStatus.NOOP


def test_back_callback_patch_can_only_strip() -> None:
    document = '<application android:enableOnBackInvokedCallback="true">'

    outcome = apply_back_callback_patch(document, None)

    assert outcome.text == "<application>"


def test_patch_manifest_file_keeps_mixed_line_endings(tmp_path: Path) -> None:
    target = tmp_path / "AndroidManifest.xml"
    raw = b"<manifest>\r\n  <application>\n  </application>\r\n</manifest>\n"
    target.write_bytes(raw)

    injected = patch_manifest_file(target, PackageMode.INJECT, FOO)
    after_inject = target.read_bytes()
    cleaned = patch_manifest_file(target, PackageMode.CLEAN, FOO)

    assert injected.status is PatchStatus.APPLIED
    assert after_inject == (
        b"<manifest>\r\n  <application>\n    " + FOO_TAG.encode("utf-8") + b"\n  </application>\r\n</manifest>\n"
    )
    assert cleaned.status is PatchStatus.APPLIED
    assert target.read_bytes() == raw


def test_patch_manifest_file_reports_undecodable_manifest(tmp_path: Path, manifest_text: str) -> None:
    target = tmp_path / "AndroidManifest.xml"
    raw = manifest_text.replace("@string/app_name", "Café").encode("latin-1")
    target.write_bytes(raw)

    outcome = patch_manifest_file(target, PackageMode.INJECT, FOO)

    assert outcome.status is PatchStatus.FAILED
    assert outcome.reason is FailureReason.UNREADABLE_TARGET_FILE
    assert "AndroidManifest.xml" in outcome.describe()
    assert target.read_bytes() == raw
