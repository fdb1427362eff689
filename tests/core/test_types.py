"""Tests for the shared records."""

import pytest

from apkbuilder.core.errors import ConfigurationError
from apkbuilder.core.process import CommandResult
from apkbuilder.core.types import (
    INTERNET_PERMISSION,
    BuildOptions,
    BuildResult,
    ProjectInfo,
    ProjectType,
    SignMode,
    clamp_confidence,
    default_package_name,
    suggest_name,
)


class TestClampConfidence:
    @pytest.mark.parametrize("raw,expected", [(-5, 0), (0, 0), (55, 55), (100, 100), (480, 100)])
    def test_clamps_into_range(self, raw, expected) -> None:
        assert clamp_confidence(raw) == expected


class TestDefaultPackageName:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Snake", "com.snake.app"),
            ("3dgame", "com.app3dgame.app"),
            ("", "com.myapp.app"),
        ],
    )
    def test_segment_is_a_valid_identifier(self, name, expected) -> None:
        assert default_package_name(name) == expected


class TestSuggestName:
    def test_uses_final_segment_alphanumerics(self) -> None:
        assert suggest_name("/home/me/my-cool_app!") == "mycoolapp"

    def test_windows_separators(self) -> None:
        assert suggest_name("C:\\Projects\\Space Game\\") == "SpaceGame"

    def test_falls_back_when_nothing_is_left(self) -> None:
        assert suggest_name("/tmp/---") == "MyApp"
        assert suggest_name("") == "MyApp"


class TestProjectInfo:
    def test_zero_confidence_forces_unknown(self) -> None:
        info = ProjectInfo(path="/p", type=ProjectType.WEB, confidence=0)
        assert info.type == ProjectType.UNKNOWN
        assert not info.is_known

    def test_unknown_forces_zero_confidence(self) -> None:
        info = ProjectInfo(path="/p", type=ProjectType.UNKNOWN, confidence=40)
        assert info.confidence == 0

    def test_confidence_is_clamped(self) -> None:
        info = ProjectInfo(path="/p", type=ProjectType.NATIVE, confidence=250)
        assert info.confidence == 100

    def test_unknown_factory_keeps_suggested_name(self) -> None:
        info = ProjectInfo.unknown("/work/hello-world")
        assert info.to_dict() == {
            "path": "/work/hello-world",
            "type": "unknown",
            "confidence": 0,
            "evidence": [],
            "suggested_name": "helloworld",
            "alternatives": [],
        }


class TestBuildOptions:
    def test_defaults(self) -> None:
        options = BuildOptions(app_name="Demo", package_name="com.demo.app")

        assert options.min_sdk == 21
        assert options.target_sdk == 34
        assert options.compile_sdk == 34
        assert options.abis == ("arm64-v8a", "armeabi-v7a")
        assert options.sign_mode == SignMode.DEBUG
        assert options.permissions == (INTERNET_PERMISSION,)
        assert options.shrink_enabled is False

    def test_sequences_are_deduplicated_in_order(self) -> None:
        options = BuildOptions(
            app_name="Demo",
            package_name="com.demo.app",
            abis=("x86_64", "arm64-v8a", "x86_64"),
            permissions=("android.permission.CAMERA", "android.permission.CAMERA"),
        )
        assert options.abis == ("x86_64", "arm64-v8a")
        assert options.permissions == ("android.permission.CAMERA",)

    def test_sign_mode_accepts_string(self) -> None:
        options = BuildOptions(app_name="Demo", package_name="com.demo.app", sign_mode="release")
        assert options.is_release
        assert options.build_type == "release"

    def test_for_project_derives_front_end_defaults(self) -> None:
        info = ProjectInfo(path="/w/Snake", type=ProjectType.WEB, confidence=50, suggested_name="Snake")

        options = BuildOptions.for_project(info, version_code=7, icon_path=None)

        assert options.app_name == "Snake"
        assert options.package_name == "com.snake.app"
        assert options.version == "1.0.0"
        assert options.version_code == 7
        assert options.icon_path is None

    def test_for_project_defaults_pass_validation_for_numeric_names(self) -> None:
        info = ProjectInfo(path="/w/2048", type=ProjectType.WEB, confidence=50, suggested_name="2048")

        options = BuildOptions.for_project(info)

        assert options.app_name == "2048"
        assert options.package_name == "com.app2048.app"
        options.validate()

    def test_with_permissions_returns_copy(self) -> None:
        options = BuildOptions(app_name="Demo", package_name="com.demo.app")

        extended = options.with_permissions("android.permission.CAMERA", INTERNET_PERMISSION)

        assert extended.permissions == (INTERNET_PERMISSION, "android.permission.CAMERA")
        assert options.permissions == (INTERNET_PERMISSION,)

    def test_package_path(self) -> None:
        options = BuildOptions(app_name="Demo", package_name="com.example.demo")
        assert options.package_path == "com/example/demo"

    def test_release_credentials_require_all_four(self) -> None:
        partial = BuildOptions(
            app_name="Demo",
            package_name="com.demo.app",
            sign_mode=SignMode.RELEASE,
            keystore_path="/k.jks",
            keystore_password="pw",
            key_alias="alias",
        )
        assert not partial.has_release_credentials

    @pytest.mark.parametrize(
        "overrides,fragment",
        [
            ({"app_name": "  "}, "App name"),
            ({"package_name": "demo"}, "Invalid package name"),
            ({"package_name": "com.1demo.app"}, "Invalid package name"),
            ({"version_code": 0}, "Version code"),
            ({"min_sdk": 35}, "Minimum API level"),
            ({"abis": ()}, "ABI"),
        ],
    )
    def test_validate_rejects(self, overrides, fragment) -> None:
        values = {"app_name": "Demo", "package_name": "com.demo.app", **overrides}
        with pytest.raises(ConfigurationError, match=fragment):
            BuildOptions(**values).validate()

    def test_to_dict_omits_passwords(self) -> None:
        options = BuildOptions(
            app_name="Demo",
            package_name="com.demo.app",
            keystore_password="secret",
            key_password="secret",
        )
        assert "secret" not in str(options.to_dict())


class TestBuildResult:
    def test_failure_always_has_an_error(self) -> None:
        result = BuildResult.failure()
        assert not result.success
        assert result.errors == ["Build failed"]

    def test_from_command_failure_appends_output(self) -> None:
        command = CommandResult(
            name="gradle", command="gradle", exit_code=1, duration_seconds=0.1, stderr="FAILURE"
        )
        result = BuildResult.from_command_failure("Gradle build failed", command)
        assert result.errors == ["Gradle build failed", "FAILURE"]
        assert result.artifact_path is None
