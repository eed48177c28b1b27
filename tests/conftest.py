from __future__ import annotations

import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path

import pytest
import yaml

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


MANIFEST = textwrap.dedent(
    """\
    <?xml version="1.0" encoding="utf-8"?>
    <manifest xmlns:android="http://schemas.android.com/apk/res/android" package="com.unity3d.player">
      <application android:icon="@mipmap/app_icon" android:label="@string/app_name">
        <activity android:name="com.unity3d.player.UnityPlayerActivity" android:theme="@style/UnityThemeSelector">
          <intent-filter>
            <action android:name="android.intent.action.MAIN" />
          </intent-filter>
        </activity>
      </application>
    </manifest>
    """
)

ACTIVITY_SOURCE = textwrap.dedent(
    """\
    package com.unity3d.player;

    import android.app.Activity;
    import android.os.Bundle;

    public class UnityPlayerActivity extends Activity {
        protected UnityPlayer mUnityPlayer;

        @Override protected void onCreate(Bundle savedInstanceState) {
            super.onCreate(savedInstanceState);
            mUnityPlayer = new UnityPlayer(this, this);
            setContentView(mUnityPlayer);
            mUnityPlayer.requestFocus();
        }
    }
    """
)

LAUNCHER_GRADLE = textwrap.dedent(
    """\
    android {
        buildTypes {
            debug {
                minifyEnabled **MINIFY_DEBUG**
            }
            release {
                minifyEnabled **MINIFY_RELEASE**
            }
        }
    }
    """
)

MAIN_GRADLE = textwrap.dedent(
    """\
    apply plugin: 'com.android.library'

    dependencies {
        implementation fileTree(dir: 'libs', include: ['*.jar'])
    }
    """
)

EXPORTED_MANIFEST = textwrap.dedent(
    """\
    <?xml version="1.0" encoding="utf-8"?>
    <manifest xmlns:android="http://schemas.android.com/apk/res/android">
      <application android:enableOnBackInvokedCallback="true" android:extractNativeLibs="true">
        <activity android:name="com.unity3d.player.UnityPlayerActivity" android:launchMode="singleTask" />
      </application>
    </manifest>
    """
)


@pytest.fixture()
def manifest_text() -> str:
    return MANIFEST


@pytest.fixture()
def activity_source() -> str:
    return ACTIVITY_SOURCE


@pytest.fixture()
def launcher_gradle() -> str:
    return LAUNCHER_GRADLE


@pytest.fixture()
def main_gradle() -> str:
    return MAIN_GRADLE


@dataclass(slots=True)
class UnityProject:
    """Synthetic Unity project laid out the way the default config expects."""

    root: Path
    config_path: Path

    @property
    def plugins(self) -> Path:
        return self.root / "Assets" / "Plugins" / "Android"

    @property
    def manifest(self) -> Path:
        return self.plugins / "AndroidManifest.xml"

    def write_config(self, **profile: object) -> Path:
        data = yaml.safe_load(self.config_path.read_text(encoding="utf-8"))
        data["profile"].update(profile)
        self.config_path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return self.config_path


@pytest.fixture()
def unity_project(tmp_path: Path) -> UnityProject:
    from vpatch.config import default_config, write_config

    root = tmp_path / "game"
    plugins = root / "Assets" / "Plugins" / "Android"
    plugins.mkdir(parents=True)
    (plugins / "AndroidManifest.xml").write_text(MANIFEST, encoding="utf-8")
    (plugins / "launcherTemplate.gradle").write_text(LAUNCHER_GRADLE, encoding="utf-8")
    (plugins / "mainTemplate.gradle").write_text(MAIN_GRADLE, encoding="utf-8")

    config_path = root / "vpatch.yaml"
    write_config(config_path, default_config())
    return UnityProject(root=root, config_path=config_path)


@pytest.fixture()
def exported_project(tmp_path: Path) -> Path:
    root = tmp_path / "export"
    main = root / "unityLibrary" / "src" / "main"
    java_dir = main / "java" / "com" / "unity3d" / "player"
    java_dir.mkdir(parents=True)
    (main / "AndroidManifest.xml").write_text(EXPORTED_MANIFEST, encoding="utf-8")
    (java_dir / "UnityPlayerActivity.java").write_text(ACTIVITY_SOURCE, encoding="utf-8")
    return root
