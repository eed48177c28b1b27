"""Text patchers for manifests, Java sources, Gradle templates and C# sources."""

from .attributes import DEFAULT_ATTRIBUTE, annotate_file, apply_attribute_injection, collect_source_files
from .gradle import (
    INSTALL_REFERRER_DEPENDENCY,
    MINIFY_SUBSTITUTIONS,
    apply_dependency_patch,
    apply_flag_patch,
    patch_gradle_dependency_file,
    patch_gradle_flags_file,
)
from .manifest import (
    apply_back_callback_patch,
    apply_launch_mode_patch,
    apply_manifest_patch,
    find_activity_fragments,
    patch_manifest_file,
    render_fragment,
)
from .source import (
    INSTALL_REFERRER_ANCHORS,
    INSTALL_REFERRER_BODY,
    INSTALL_REFERRER_HOOK,
    INSTALL_REFERRER_IMPORTS,
    apply_hook_injection,
    detect_activity_class,
    export_activity_sources,
    inject_hook_file,
    select_anchor,
    sync_activity_sources,
)

__all__ = [
    "DEFAULT_ATTRIBUTE",
    "INSTALL_REFERRER_ANCHORS",
    "INSTALL_REFERRER_BODY",
    "INSTALL_REFERRER_DEPENDENCY",
    "INSTALL_REFERRER_HOOK",
    "INSTALL_REFERRER_IMPORTS",
    "MINIFY_SUBSTITUTIONS",
    "annotate_file",
    "apply_attribute_injection",
    "apply_back_callback_patch",
    "apply_dependency_patch",
    "apply_flag_patch",
    "apply_hook_injection",
    "apply_launch_mode_patch",
    "apply_manifest_patch",
    "collect_source_files",
    "detect_activity_class",
    "export_activity_sources",
    "find_activity_fragments",
    "inject_hook_file",
    "patch_gradle_dependency_file",
    "patch_gradle_flags_file",
    "patch_manifest_file",
    "render_fragment",
    "select_anchor",
    "sync_activity_sources",
]
