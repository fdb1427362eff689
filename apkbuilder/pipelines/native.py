"""Native pipeline: builds C/C++ sources as a JNI library inside a minimal app."""

import logging
import re
import shutil
from pathlib import Path

from apkbuilder.core.types import BuildOptions, ProjectType
from apkbuilder.pipelines.android import GradleProjectPipeline, write_file
from apkbuilder.pipelines.base import relocate_package

logger = logging.getLogger(__name__)

NATIVE_SUFFIXES = (".c", ".cpp", ".cc", ".cxx", ".h", ".hpp", ".hxx")
COMPILED_SUFFIXES = (".c", ".cpp", ".cc", ".cxx")
SKIP_DIRS = frozenset({"build", "bin", "obj", ".git", "node_modules"})

LIBRARY_NAME = "nativeapp"
JNI_STUB = "native-lib.cpp"
JNI_METHOD = "MainActivity_stringFromJNI"
_JNI_SYMBOL = re.compile(rf"Java_\w+_{JNI_METHOD}\b")

NATIVE_LIB_CPP = """#include <jni.h>
#include <string>

extern "C" JNIEXPORT jstring JNICALL
Java_com_ndk_app_MainActivity_stringFromJNI(
        JNIEnv* env,
        jobject /* this */) {
    std::string hello = "Hello from C++";
    return env->NewStringUTF(hello.c_str());
}
"""

MAIN_ACTIVITY_KT = f"""package com.ndk.app

import android.os.Bundle
import android.widget.TextView
import androidx.appcompat.app.AppCompatActivity

class MainActivity : AppCompatActivity() {{

    override fun onCreate(savedInstanceState: Bundle?) {{
        super.onCreate(savedInstanceState)
        setContentView(R.layout.activity_main)

        val textView: TextView = findViewById(R.id.textView)
        textView.text = stringFromJNI()
    }}

    external fun stringFromJNI(): String

    companion object {{
        init {{
            System.loadLibrary("{LIBRARY_NAME}")
        }}
    }}
}}
"""

ACTIVITY_LAYOUT_XML = """<?xml version="1.0" encoding="utf-8"?>
<androidx.constraintlayout.widget.ConstraintLayout xmlns:android="http://schemas.android.com/apk/res/android"
    xmlns:app="http://schemas.android.com/apk/res-auto"
    android:layout_width="match_parent"
    android:layout_height="match_parent">

    <TextView
        android:id="@+id/textView"
        android:layout_width="wrap_content"
        android:layout_height="wrap_content"
        android:text="Loading..."
        android:textSize="24sp"
        app:layout_constraintBottom_toBottomOf="parent"
        app:layout_constraintEnd_toEndOf="parent"
        app:layout_constraintStart_toStartOf="parent"
        app:layout_constraintTop_toTopOf="parent" />

</androidx.constraintlayout.widget.ConstraintLayout>
"""

THEMES_XML = """<?xml version="1.0" encoding="utf-8"?>
<resources>
    <style name="Theme.App" parent="Theme.MaterialComponents.DayNight.DarkActionBar">
        <item name="colorPrimary">@color/purple_500</item>
        <item name="colorPrimaryVariant">@color/purple_700</item>
        <item name="colorOnPrimary">@android:color/white</item>
    </style>
</resources>
"""

COLORS_XML = """<?xml version="1.0" encoding="utf-8"?>
<resources>
    <color name="purple_500">#FF6200EE</color>
    <color name="purple_700">#FF3700B3</color>
</resources>
"""


def jni_package_segment(package_name: str) -> str:
    """Mangle a package name the way JNI symbol lookup expects.

    Underscores become `_1` before dots become underscores.
    """
    return package_name.replace("_", "_1").replace(".", "_")


def jni_symbol(package_name: str) -> str:
    return f"Java_{jni_package_segment(package_name)}_{JNI_METHOD}"


def copy_native_sources(source: Path, destination: Path) -> list[Path]:
    """Copy C/C++ sources and headers, preserving layout. Returns relative paths."""
    copied: list[Path] = []

    def _copy(src_dir: Path) -> None:
        for entry in sorted(src_dir.iterdir()):
            if entry.is_dir():
                if entry.name not in SKIP_DIRS:
                    _copy(entry)
            elif entry.is_file() and entry.name.lower().endswith(NATIVE_SUFFIXES):
                relative = entry.relative_to(source)
                target = destination / relative
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(entry, target)
                copied.append(relative)

    _copy(source)
    return copied


def render_cmake(sources: list[Path]) -> str:
    entries = [JNI_STUB] + [
        p.as_posix() for p in sources
        if p.name.lower().endswith(COMPILED_SUFFIXES) and p.as_posix() != JNI_STUB
    ]
    listing = "\n        ".join(entries)
    return f"""cmake_minimum_required(VERSION 3.22.1)
project("{LIBRARY_NAME}")

add_library(${{CMAKE_PROJECT_NAME}} SHARED
        {listing})

find_library(log-lib log)

target_link_libraries(${{CMAKE_PROJECT_NAME}}
        android
        ${{log-lib}})
"""


class NativePipeline(GradleProjectPipeline):
    project_type = ProjectType.NATIVE
    placeholder_package = "com.ndk.app"
    native_build = True

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.source_files: list[Path] = []

    @property
    def cpp_dir(self) -> Path:
        return self.main_dir / "cpp"

    async def prepare(self, source_path: Path) -> None:
        self.source_path = Path(source_path)
        self.create_build_dir()
        logger.info("Preparing native project: %s", self.source_path)

        self.cpp_dir.mkdir(parents=True, exist_ok=True)
        self.source_files = copy_native_sources(self.source_path, self.cpp_dir)
        logger.info("Copied %d C/C++ file(s)", len(self.source_files))

        existing = self.source_path / "CMakeLists.txt"
        if existing.exists():
            shutil.copy2(existing, self.cpp_dir / "CMakeLists.txt")
            logger.info("Using the project's CMakeLists.txt")
        else:
            write_file(self.cpp_dir / "CMakeLists.txt", render_cmake(self.source_files))
            if not (self.cpp_dir / JNI_STUB).exists():
                write_file(self.cpp_dir / JNI_STUB, NATIVE_LIB_CPP)
            logger.info("Synthesised CMakeLists.txt for %d file(s)", len(self.source_files))

        java_dir = self.placeholder_dir()
        write_file(java_dir / "MainActivity.kt", MAIN_ACTIVITY_KT)
        write_file(self.res_dir / "layout" / "activity_main.xml", ACTIVITY_LAYOUT_XML)
        write_file(self.res_dir / "values" / "themes.xml", THEMES_XML)
        write_file(self.res_dir / "values" / "colors.xml", COLORS_XML)

    async def configure(self, options: BuildOptions) -> None:
        self.require_build_dir()
        self.options = options

        relocate_package(self.java_dir, self.placeholder_package, options.package_name)
        self._rewrite_jni_symbols(options.package_name)
        await self.write_android_project(options)
        logger.info("Native project configured for %s", options.package_name)

    def _rewrite_jni_symbols(self, package_name: str) -> None:
        """Point every stringFromJNI implementation at the relocated activity."""
        symbol = jni_symbol(package_name)
        for path in sorted(self.cpp_dir.rglob("*")):
            if not path.is_file() or not path.name.lower().endswith(COMPILED_SUFFIXES):
                continue
            content = path.read_text(encoding="utf-8", errors="replace")
            updated = _JNI_SYMBOL.sub(symbol, content)
            if updated != content:
                path.write_text(updated, encoding="utf-8", newline="\n")
                logger.debug("Rewrote JNI symbol in %s", path.name)
