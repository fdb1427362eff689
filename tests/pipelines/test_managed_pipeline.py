"""Tests for the managed (.NET MAUI) pipeline."""

from pathlib import Path

import pytest

from apkbuilder.core.errors import ConfigurationError
from apkbuilder.core.types import BuildOptions
from apkbuilder.pipelines.managed import (
    ManagedPipeline,
    NUGET_CACHE_DIR,
    find_built_package,
    find_project_file,
)


def _write(path: Path, content: str = "") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def maui_project(tmp_path: Path) -> Path:
    root = tmp_path / "MauiApp"
    _write(root / "Shared" / "Shared.csproj", "<Project Sdk=\"Microsoft.NET.Sdk\" />")
    _write(root / "App" / "App.csproj", "<Project><PropertyGroup><UseMaui>true</UseMaui></PropertyGroup></Project>")
    _write(root / "App" / "bin" / "Debug" / "stale.apk", "")
    _write(root / "App" / "MauiProgram.cs", "")
    return root


@pytest.fixture
def pipeline(offline_env, settings, fake_runner, offline_probe) -> ManagedPipeline:
    return ManagedPipeline(offline_env, settings=settings, runner=fake_runner, connectivity_probe=offline_probe)


def _produce_apk(configuration: str):
    def hook(args: list[str], cwd: Path):
        if args[0] == "build":
            project = Path(args[1])
            _write(project.parent / "bin" / configuration / "net8.0-android" / "com.demo.maui-Signed.apk")
            _write(project.parent / "bin" / configuration / "net8.0-android" / "com.demo.maui.apk")
        return None

    return hook


def _options(**overrides) -> BuildOptions:
    values = {"app_name": "Maui Demo", "package_name": "com.demo.maui", "version": "2.0", "version_code": 5}
    values.update(overrides)
    return BuildOptions(**values)


class TestFindProjectFile:
    def test_prefers_maui_project(self, maui_project: Path) -> None:
        assert find_project_file(maui_project).name == "App.csproj"

    def test_falls_back_to_first(self, tmp_path: Path) -> None:
        _write(tmp_path / "Lib.csproj", "<Project />")
        assert find_project_file(tmp_path).name == "Lib.csproj"

    def test_no_project_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match=".csproj"):
            find_project_file(tmp_path)


class TestFindBuiltPackage:
    def test_skips_signed_outputs(self, tmp_path: Path) -> None:
        out = tmp_path / "bin" / "Release" / "net8.0-android"
        _write(out / "a-Signed.apk")
        _write(out / "b.apk")
        assert find_built_package(tmp_path, "Release") == out / "b.apk"

    def test_nothing_built(self, tmp_path: Path) -> None:
        assert find_built_package(tmp_path, "Debug") is None


class TestManagedPipeline:
    @pytest.mark.asyncio
    async def test_prepare_copies_without_build_outputs(self, pipeline, maui_project) -> None:
        await pipeline.prepare(maui_project)

        assert pipeline.project_file == pipeline.build_dir / "App" / "App.csproj"
        assert not (pipeline.build_dir / "App" / "bin").exists()

    @pytest.mark.asyncio
    async def test_build_passes_msbuild_properties(
        self, pipeline, maui_project, offline_env, fake_runner
    ) -> None:
        fake_runner.hooks["dotnet"] = _produce_apk("Debug")
        await pipeline.prepare(maui_project)
        await pipeline.configure(_options())

        result = await pipeline.build(offline_env)

        assert result.success
        assert result.artifact_path.endswith("com.demo.maui.apk")
        restore, build = fake_runner.calls_to("dotnet")
        assert restore.args[0] == "restore"
        assert "--source" not in restore.args
        assert build.args[build.args.index("-c") + 1] == "Debug"
        assert build.args[build.args.index("-f") + 1] == "net8.0-android"
        assert "-p:ApplicationId=com.demo.maui" in build.args
        assert "-p:ApplicationTitle=Maui Demo" in build.args
        assert "-p:ApplicationDisplayVersion=2.0" in build.args
        assert "-p:ApplicationVersion=5" in build.args

    @pytest.mark.asyncio
    async def test_restore_uses_bundled_nuget_cache(
        self, pipeline, maui_project, offline_env, fake_runner
    ) -> None:
        (offline_env.dotnet_root / NUGET_CACHE_DIR).mkdir()
        await pipeline.prepare(maui_project)
        await pipeline.configure(_options())

        await pipeline.build(offline_env)

        restore = fake_runner.calls_to("dotnet")[0]
        assert restore.args[restore.args.index("--source") + 1] == str(offline_env.dotnet_root / NUGET_CACHE_DIR)

    @pytest.mark.asyncio
    async def test_restore_failure_is_a_warning(self, pipeline, maui_project, offline_env, fake_runner) -> None:
        fake_runner.exit_codes["dotnet"] = [1, 0]
        await pipeline.prepare(maui_project)
        await pipeline.configure(_options())

        result = await pipeline.build(offline_env)

        assert any("restore" in w for w in pipeline.warnings)
        assert not result.success
        assert "not found after build" in result.errors[0]
        assert any("restore" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_dotnet_build_failure(self, pipeline, maui_project, offline_env, fake_runner) -> None:
        fake_runner.exit_codes["dotnet"] = [0, 1]
        await pipeline.prepare(maui_project)
        await pipeline.configure(_options(sign_mode="release"))

        result = await pipeline.build(offline_env)

        assert not result.success
        assert result.errors[0] == "dotnet build failed"
        build_args = fake_runner.calls_to("dotnet")[1].args
        assert build_args[build_args.index("-c") + 1] == "Release"
