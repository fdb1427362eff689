"""Gradle descriptor generation.

Each generator renders a string from BuildOptions (or a couple of paths)
and writes it to the given output path, creating parent directories.
"""

import logging
from pathlib import Path

from apkbuilder.core.types import BuildOptions

logger = logging.getLogger(__name__)

ANDROID_GRADLE_PLUGIN_VERSION = "8.2.0"
KOTLIN_PLUGIN_VERSION = "1.9.20"
CMAKE_VERSION = "3.22.1"

WEBVIEW_DEPENDENCIES = (
    "androidx.core:core-ktx:1.12.0",
    "androidx.appcompat:appcompat:1.6.1",
    "com.google.android.material:material:1.11.0",
    "androidx.webkit:webkit:1.9.0",
    "androidx.constraintlayout:constraintlayout:2.1.4",
)

NATIVE_DEPENDENCIES = (
    "androidx.core:core-ktx:1.12.0",
    "androidx.appcompat:appcompat:1.6.1",
    "com.google.android.material:material:1.11.0",
    "androidx.constraintlayout:constraintlayout:2.1.4",
)


def _write(output_path: Path, content: str) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8", newline="\n")
    logger.info("Wrote %s", output_path)
    return output_path


def _abi_filters(options: BuildOptions) -> str:
    return ", ".join(f'"{abi}"' for abi in options.abis)


def _release_block(options: BuildOptions) -> str:
    if options.shrink_enabled:
        return (
            "\n            minifyEnabled true"
            "\n            shrinkResources true"
            "\n            proguardFiles getDefaultProguardFile('proguard-android-optimize.txt'), 'proguard-rules.pro'"
        )
    return "\n            minifyEnabled false"


def _dependencies(coords: tuple[str, ...]) -> str:
    return "\n".join(f"    implementation '{c}'" for c in coords)


def render_app_build_gradle(options: BuildOptions, native_build: bool = False) -> str:
    """Module-level build.gradle. `native_build` adds the CMake hookup."""
    external_native = ""
    cmake_args = ""
    if native_build:
        cmake_args = """

        externalNativeBuild {
            cmake {
                cppFlags "-std=c++17"
            }
        }"""
        external_native = f"""

    externalNativeBuild {{
        cmake {{
            path "src/main/cpp/CMakeLists.txt"
            version "{CMAKE_VERSION}"
        }}
    }}"""

    view_binding = "" if native_build else """

    buildFeatures {
        viewBinding true
    }"""

    deps = NATIVE_DEPENDENCIES if native_build else WEBVIEW_DEPENDENCIES

    return f"""plugins {{
    id 'com.android.application'
    id 'org.jetbrains.kotlin.android'
}}

android {{
    namespace '{options.package_name}'
    compileSdk {options.compile_sdk}

    defaultConfig {{
        applicationId "{options.package_name}"
        minSdk {options.min_sdk}
        targetSdk {options.target_sdk}
        versionCode {options.version_code}
        versionName "{options.version}"

        ndk {{
            abiFilters {_abi_filters(options)}
        }}{cmake_args}
    }}

    buildTypes {{
        release {{{_release_block(options)}
        }}
        debug {{
            debuggable true
        }}
    }}{external_native}

    compileOptions {{
        sourceCompatibility JavaVersion.VERSION_17
        targetCompatibility JavaVersion.VERSION_17
    }}

    kotlinOptions {{
        jvmTarget = '17'
    }}{view_binding}

    packagingOptions {{
        resources {{
            excludes += '/META-INF/{{AL2.0,LGPL2.1}}'
        }}
    }}
}}

dependencies {{
{_dependencies(deps)}
}}
"""


def generate_app_build_gradle(options: BuildOptions, output_path: Path) -> Path:
    return _write(output_path, render_app_build_gradle(options))


def generate_native_app_build_gradle(options: BuildOptions, output_path: Path) -> Path:
    return _write(output_path, render_app_build_gradle(options, native_build=True))


def generate_root_build_gradle(output_path: Path) -> Path:
    content = f"""// Top-level build file
plugins {{
    id 'com.android.application' version '{ANDROID_GRADLE_PLUGIN_VERSION}' apply false
    id 'org.jetbrains.kotlin.android' version '{KOTLIN_PLUGIN_VERSION}' apply false
}}

task clean(type: Delete) {{
    delete rootProject.buildDir
}}
"""
    return _write(output_path, content)


def generate_settings_gradle(app_name: str, output_path: Path) -> Path:
    project_name = app_name.replace('"', "").replace("\\", "")
    content = f"""pluginManagement {{
    repositories {{
        google()
        mavenCentral()
        gradlePluginPortal()
    }}
}}

dependencyResolutionManagement {{
    repositoriesMode.set(RepositoriesMode.FAIL_ON_PROJECT_REPOS)
    repositories {{
        google()
        mavenCentral()
    }}
}}

rootProject.name = "{project_name}"
include ':app'
"""
    return _write(output_path, content)


def generate_gradle_properties(output_path: Path) -> Path:
    # Offline mode is chosen per invocation, never pinned here.
    content = """# Project-wide Gradle settings
org.gradle.jvmargs=-Xmx4096m -Dfile.encoding=UTF-8
org.gradle.parallel=true
org.gradle.caching=true

# Android settings
android.useAndroidX=true
android.nonTransitiveRClass=true

# Kotlin settings
kotlin.code.style=official
"""
    return _write(output_path, content)


def generate_local_properties(sdk_path: Path, ndk_path: Path, output_path: Path) -> Path:
    """local.properties pointing gradle at the bundled SDK and NDK."""
    sdk = str(sdk_path).replace("\\", "\\\\")
    ndk = str(ndk_path).replace("\\", "\\\\")
    return _write(output_path, f"sdk.dir={sdk}\nndk.dir={ndk}\n")


def generate_proguard_rules(output_path: Path) -> Path:
    content = """# Keep WebView JavaScript interface
-keepclassmembers class * {
    @android.webkit.JavascriptInterface <methods>;
}

# Keep native methods
-keepclasseswithmembernames class * {
    native <methods>;
}

# Keep Parcelables
-keepclassmembers class * implements android.os.Parcelable {
    public static final android.os.Parcelable$Creator *;
}

# Keep R classes
-keepclassmembers class **.R$* {
    public static <fields>;
}

-keepattributes SourceFile,LineNumberTable
-renamesourcefileattribute SourceFile
"""
    return _write(output_path, content)
