"""Tests for the React Native / Expo pipeline."""

import json
from pathlib import Path

import pytest

from apkbuilder.core.types import BuildOptions
from apkbuilder.pipelines.crossjs import CrossJsPipeline, apply_android_overrides

APP_GRADLE = """android {
    defaultConfig {
        applicationId "com.template"
        versionCode 1
        versionName "1.0"
    }
}
"""

STRINGS_XML = """<resources>
    <string name="app_name">template</string>
</resources>
"""


def _write(path: Path, content: str = "") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _android_dir(root: Path) -> None:
    _write(root / "android" / "app" / "build.gradle", APP_GRADLE)
    _write(root / "android" / "app" / "src" / "main" / "res" / "values" / "strings.xml", STRINGS_XML)


@pytest.fixture
def rn_project(tmp_path: Path) -> Path:
    root = tmp_path / "rn"
    _write(root / "package.json", json.dumps({"dependencies": {"react-native": "0.73.0"}}))
    _android_dir(root)
    return root


@pytest.fixture
def expo_project(tmp_path: Path) -> Path:
    root = tmp_path / "expo"
    _write(root / "package.json", json.dumps({"dependencies": {"expo": "~50.0.0", "react-native": "0.73.0"}}))
    _write(root / "app.json", "{}")
    return root


@pytest.fixture
def pipeline(offline_env, settings, fake_runner, offline_probe) -> CrossJsPipeline:
    return CrossJsPipeline(offline_env, settings=settings, runner=fake_runner, connectivity_probe=offline_probe)


def _options(**overrides) -> BuildOptions:
    values = {"app_name": "Rock & Roll", "package_name": "com.demo.rn", "version": "4.2.0", "version_code": 42}
    values.update(overrides)
    return BuildOptions(**values)


class TestApplyAndroidOverrides:
    def test_rewrites_identifiers_and_label(self, tmp_path: Path) -> None:
        _android_dir(tmp_path)

        changed = apply_android_overrides(tmp_path / "android", _options())

        gradle = (tmp_path / "android/app/build.gradle").read_text(encoding="utf-8")
        strings = (tmp_path / "android/app/src/main/res/values/strings.xml").read_text(encoding="utf-8")
        assert len(changed) == 2
        assert 'applicationId "com.demo.rn"' in gradle
        assert "versionCode 42" in gradle
        assert 'versionName "4.2.0"' in gradle
        assert '<string name="app_name">Rock &amp; Roll</string>' in strings

    def test_second_application_changes_nothing(self, tmp_path: Path) -> None:
        _android_dir(tmp_path)
        apply_android_overrides(tmp_path / "android", _options())
        assert apply_android_overrides(tmp_path / "android", _options()) == []

    def test_missing_files_are_skipped(self, tmp_path: Path) -> None:
        assert apply_android_overrides(tmp_path / "android", _options()) == []


class TestCrossJsPipeline:
    @pytest.mark.asyncio
    async def test_existing_android_project(self, pipeline, rn_project, offline_env, fake_runner) -> None:
        await pipeline.prepare(rn_project)
        await pipeline.configure(_options())

        result = await pipeline.build(offline_env)

        assert result.success
        assert fake_runner.names == ["npm", "gradle"]
        assert fake_runner.calls_to("gradle")[0].cwd == pipeline.build_dir / "android"
        assert (pipeline.build_dir / "android" / "local.properties").exists()
        original = (rn_project / "android/app/build.gradle").read_text(encoding="utf-8")
        assert "com.template" in original

    @pytest.mark.asyncio
    async def test_expo_without_android_runs_prebuild_first(
        self, pipeline, expo_project, offline_env, fake_runner
    ) -> None:
        def prebuild(args: list[str], cwd: Path):
            if args[:2] == ["expo", "prebuild"]:
                _android_dir(cwd)
            return None

        fake_runner.hooks["npx"] = prebuild
        await pipeline.prepare(expo_project)
        await pipeline.configure(_options())

        result = await pipeline.build(offline_env)

        assert result.success
        assert fake_runner.names == ["npx", "npm", "gradle"]
        gradle = (pipeline.build_dir / "android/app/build.gradle").read_text(encoding="utf-8")
        assert 'applicationId "com.demo.rn"' in gradle

    @pytest.mark.asyncio
    async def test_prebuild_failure(self, pipeline, expo_project, offline_env, fake_runner) -> None:
        fake_runner.exit_codes["npx"] = [1]
        await pipeline.prepare(expo_project)
        await pipeline.configure(_options())

        result = await pipeline.build(offline_env)

        assert not result.success
        assert result.errors[0] == "Expo prebuild failed"
        assert "gradle" not in fake_runner.names

    @pytest.mark.asyncio
    async def test_plain_rn_without_android_dir(self, pipeline, tmp_path, offline_env, fake_runner) -> None:
        root = tmp_path / "bare"
        _write(root / "package.json", json.dumps({"dependencies": {"react-native": "0.73.0"}}))
        await pipeline.prepare(root)
        await pipeline.configure(_options())

        result = await pipeline.build(offline_env)

        assert not result.success
        assert "android/ directory not found" in result.errors[0]
        assert fake_runner.calls == []

    @pytest.mark.asyncio
    async def test_npm_failure_is_a_warning(self, pipeline, rn_project, offline_env, fake_runner) -> None:
        fake_runner.exit_codes["npm"] = [1]
        await pipeline.prepare(rn_project)
        await pipeline.configure(_options())

        result = await pipeline.build(offline_env)

        assert result.success
        assert any("npm install" in w for w in result.warnings)
