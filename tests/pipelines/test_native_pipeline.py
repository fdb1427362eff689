"""Tests for the native (C/C++) pipeline."""

from pathlib import Path

import pytest

from apkbuilder.core.types import BuildOptions
from apkbuilder.pipelines.native import (
    JNI_STUB,
    NativePipeline,
    copy_native_sources,
    jni_package_segment,
    jni_symbol,
    render_cmake,
)


def _write(path: Path, content: str = "") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def pipeline(offline_env, settings, fake_runner, offline_probe) -> NativePipeline:
    return NativePipeline(offline_env, settings=settings, runner=fake_runner, connectivity_probe=offline_probe)


@pytest.fixture
def loose_sources(tmp_path: Path) -> Path:
    root = tmp_path / "engine"
    _write(root / "main.cpp", "int main() { return 0; }")
    _write(root / "src" / "physics.cc", "")
    _write(root / "include" / "physics.h", "")
    _write(root / "build" / "generated.cpp", "")
    return root


def _options(**overrides) -> BuildOptions:
    values = {"app_name": "Physics", "package_name": "com.my_corp.physics"}
    values.update(overrides)
    return BuildOptions(**values)


class TestJniNaming:
    def test_segment_escapes_underscores(self) -> None:
        assert jni_package_segment("com.my_corp.physics") == "com_my_1corp_physics"

    def test_symbol(self) -> None:
        assert jni_symbol("com.demo.app") == "Java_com_demo_app_MainActivity_stringFromJNI"


class TestCopyNativeSources:
    def test_copies_sources_and_headers_skipping_build_dirs(self, loose_sources: Path, tmp_path: Path) -> None:
        copied = copy_native_sources(loose_sources, tmp_path / "cpp")

        assert [p.as_posix() for p in copied] == ["include/physics.h", "main.cpp", "src/physics.cc"]
        assert not (tmp_path / "cpp" / "build").exists()


class TestRenderCmake:
    def test_lists_stub_and_compiled_sources_only(self) -> None:
        content = render_cmake([Path("include/physics.h"), Path("main.cpp"), Path("src/physics.cc")])

        assert JNI_STUB in content
        assert "main.cpp" in content
        assert "src/physics.cc" in content
        assert "physics.h" not in content
        assert "add_library(${CMAKE_PROJECT_NAME} SHARED" in content


class TestNativePipeline:
    @pytest.mark.asyncio
    async def test_synthesises_cmake_and_stub(self, pipeline, loose_sources) -> None:
        await pipeline.prepare(loose_sources)

        cpp = pipeline.build_dir / "app/src/main/cpp"
        assert (cpp / "CMakeLists.txt").exists()
        assert (cpp / JNI_STUB).exists()
        assert (cpp / "src" / "physics.cc").exists()

    @pytest.mark.asyncio
    async def test_keeps_project_cmake(self, pipeline, tmp_path) -> None:
        root = tmp_path / "lib"
        _write(root / "CMakeLists.txt", "project(custom)\n")
        _write(root / "lib.cpp", "")

        await pipeline.prepare(root)

        cpp = pipeline.build_dir / "app/src/main/cpp"
        assert (cpp / "CMakeLists.txt").read_text(encoding="utf-8") == "project(custom)\n"
        assert not (cpp / JNI_STUB).exists()

    @pytest.mark.asyncio
    async def test_configure_relocates_and_rewrites_jni_symbol(self, pipeline, loose_sources) -> None:
        await pipeline.prepare(loose_sources)
        await pipeline.configure(_options())

        build_dir = pipeline.build_dir
        activity = build_dir / "app/src/main/java/com/my_corp/physics/MainActivity.kt"
        assert activity.read_text(encoding="utf-8").startswith("package com.my_corp.physics")
        stub = (build_dir / "app/src/main/cpp" / JNI_STUB).read_text(encoding="utf-8")
        assert jni_symbol("com.my_corp.physics") in stub
        assert "Java_com_ndk_app_" not in stub

    @pytest.mark.asyncio
    async def test_gradle_hooks_up_cmake(self, pipeline, loose_sources) -> None:
        await pipeline.prepare(loose_sources)
        await pipeline.configure(_options())

        app_gradle = (pipeline.build_dir / "app/build.gradle").read_text(encoding="utf-8")
        assert 'path "src/main/cpp/CMakeLists.txt"' in app_gradle

    @pytest.mark.asyncio
    async def test_configure_twice_is_byte_identical(self, pipeline, loose_sources) -> None:
        await pipeline.prepare(loose_sources)
        names = ("app/src/main/AndroidManifest.xml", "app/build.gradle", "app/src/main/cpp/native-lib.cpp")

        await pipeline.configure(_options())
        first = [(pipeline.build_dir / n).read_bytes() for n in names]
        await pipeline.configure(_options())
        second = [(pipeline.build_dir / n).read_bytes() for n in names]

        assert first == second

    @pytest.mark.asyncio
    async def test_build(self, pipeline, loose_sources, offline_env, fake_runner) -> None:
        await pipeline.prepare(loose_sources)
        await pipeline.configure(_options())

        result = await pipeline.build(offline_env)

        assert result.success
        local = (pipeline.build_dir / "local.properties").read_text(encoding="utf-8")
        assert f"ndk.dir={offline_env.ndk_home}" in local
