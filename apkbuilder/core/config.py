import tempfile
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Builder settings loaded from environment variables.

    Every variable is prefixed with ``APKBUILDER_``, e.g.
    ``APKBUILDER_BUNDLED_DIR=/opt/apk-builder/bundled``.

    Toolchain layout
    ────────────────
    ``bundled_dir`` holds one subdirectory per toolchain role (jdk,
    android-sdk, ndk/<version>, gradle/<version>, gradle-cache, dotnet,
    node, npm-cache, unity). How it gets populated is up to the operator.
    """

    model_config = SettingsConfigDict(
        env_prefix="APKBUILDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Offline toolchains
    bundled_dir: Path = Path("bundled")
    ndk_version: str = "r26"
    gradle_version: str = "8.5"
    build_tools_version: str = "34.0.0"

    # Per-build scratch copies live under <scratch_root>/<variant>/.
    scratch_root: Path = Path(tempfile.gettempdir()) / "apk-builder"

    # Shared debug signing key, created once and reused by every build.
    debug_keystore_dir: Path = Path("~/.android")

    # Host resolved to decide between online and --offline gradle runs.
    connectivity_probe_host: str = "google.com"

    # Logging
    debug: bool = True
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    @field_validator("bundled_dir", "scratch_root", "debug_keystore_dir", mode="after")
    @classmethod
    def expand_path(cls, v: Path) -> Path:
        return v.expanduser().resolve()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalise_level(cls, v: str) -> str:
        return str(v).strip().upper()


def get_settings() -> Settings:
    return Settings()
