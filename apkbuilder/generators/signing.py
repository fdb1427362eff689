"""Keystore management and package signing.

The debug keystore lives in a user-level directory and is created lazily
with keytool the first time a debug build needs it, then reused by every
later build. Two builds creating it at the same moment race: both run
keytool, and the loser fails because the alias already exists. The loser's
build fails with keytool's output; a retry succeeds.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from apkbuilder.core.environment import OfflineEnvironment
from apkbuilder.core.errors import ConfigurationError, ToolchainError
from apkbuilder.core.process import CommandRunner, OutputListener, run_command

logger = logging.getLogger(__name__)

DEBUG_KEYSTORE_NAME = "debug.keystore"
DEBUG_PASSWORD = "android"
DEBUG_ALIAS = "androiddebugkey"
DEBUG_DNAME = "CN=Android Debug,O=Android,C=US"

KEY_ALGORITHM = "RSA"
KEY_SIZE = "2048"
VALIDITY_DAYS = "10000"

SIGNED_SUFFIX = "-signed"
ALIGNED_SUFFIX = "-aligned"


@dataclass(frozen=True)
class KeystoreInfo:
    path: Path
    password: str
    alias: str
    key_password: str

    def to_dict(self) -> dict:
        # Passwords are never reported.
        return {"path": str(self.path), "alias": self.alias}


def signed_output_path(artifact: Path) -> Path:
    """`app-debug.apk` -> `app-debug-signed.apk` in the same directory."""
    artifact = Path(artifact)
    return artifact.with_name(f"{artifact.stem}{SIGNED_SUFFIX}{artifact.suffix or '.apk'}")


def _keytool_args(keystore: Path, password: str, alias: str, key_password: str, dname: str) -> list[str]:
    return [
        "-genkeypair",
        "-v",
        "-keystore", str(keystore),
        "-storepass", password,
        "-alias", alias,
        "-keypass", key_password,
        "-keyalg", KEY_ALGORITHM,
        "-keysize", KEY_SIZE,
        "-validity", VALIDITY_DAYS,
        "-dname", dname,
    ]


async def get_debug_keystore(
    env: OfflineEnvironment,
    keystore_dir: Path,
    runner: CommandRunner = run_command,
    on_output: Optional[OutputListener] = None,
) -> KeystoreInfo:
    """Return the shared debug keystore, creating it on first use.

    Raises:
        ToolchainError: if keytool fails to create the keystore.
    """
    keystore_dir = Path(keystore_dir).expanduser()
    keystore_dir.mkdir(parents=True, exist_ok=True)
    keystore = keystore_dir / DEBUG_KEYSTORE_NAME

    if not keystore.exists():
        logger.info("Creating debug keystore at %s", keystore)
        result = await runner(
            str(env.keytool),
            _keytool_args(keystore, DEBUG_PASSWORD, DEBUG_ALIAS, DEBUG_PASSWORD, DEBUG_DNAME),
            keystore_dir,
            env_overlay=env.overlay(),
            on_output=on_output,
        )
        if not result.is_success:
            raise ToolchainError(result, "Failed to create debug keystore")

    return KeystoreInfo(
        path=keystore,
        password=DEBUG_PASSWORD,
        alias=DEBUG_ALIAS,
        key_password=DEBUG_PASSWORD,
    )


async def create_release_keystore(
    output_path: Path,
    password: str,
    alias: str,
    key_password: str,
    dname: str,
    env: OfflineEnvironment,
    runner: CommandRunner = run_command,
    on_output: Optional[OutputListener] = None,
) -> KeystoreInfo:
    """Generate a new release keystore with keytool.

    Raises:
        ConfigurationError: if the target already exists or a field is empty.
        ToolchainError: if keytool fails.
    """
    output_path = Path(output_path).expanduser()
    if not all((password, alias, key_password, dname)):
        raise ConfigurationError("Keystore password, alias, key password and DN are all required")
    if output_path.exists():
        raise ConfigurationError(f"Keystore already exists: {output_path}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    result = await runner(
        str(env.keytool),
        _keytool_args(output_path, password, alias, key_password, dname),
        output_path.parent,
        env_overlay=env.overlay(),
        on_output=on_output,
    )
    if not result.is_success:
        raise ToolchainError(result, f"keytool failed with exit code {result.exit_code}")

    logger.info("Release keystore created: %s", output_path)
    return KeystoreInfo(path=output_path, password=password, alias=alias, key_password=key_password)


async def sign_artifact(
    artifact: Path,
    keystore: KeystoreInfo,
    output_path: Path,
    env: OfflineEnvironment,
    runner: CommandRunner = run_command,
    on_output: Optional[OutputListener] = None,
    warnings: Optional[list[str]] = None,
) -> Path:
    """Align (best effort) and sign `artifact`, writing `output_path`.

    Alignment failures are logged and appended to `warnings`; signing then
    proceeds on the unaligned input.

    Raises:
        ToolchainError: if apksigner fails.
    """
    artifact = Path(artifact)
    output_path = Path(output_path)
    overlay = env.overlay()
    aligned = artifact.with_name(f"{artifact.stem}{ALIGNED_SUFFIX}{artifact.suffix}")

    align = await runner(
        str(env.build_tool("zipalign")),
        ["-f", "-p", "4", str(artifact), str(aligned)],
        artifact.parent,
        env_overlay=overlay,
        on_output=on_output,
    )
    if align.is_success and aligned.exists():
        source = aligned
        logger.info("Aligned %s", artifact.name)
    else:
        source = artifact
        message = f"zipalign failed for {artifact.name}; signing unaligned package"
        logger.warning(message)
        if warnings is not None:
            warnings.append(message)

    result = await runner(
        str(env.build_tool("apksigner")),
        [
            "sign",
            "--ks", str(keystore.path),
            "--ks-pass", f"pass:{keystore.password}",
            "--ks-key-alias", keystore.alias,
            "--key-pass", f"pass:{keystore.key_password}",
            "--v2-signing-enabled", "true",
            "--v3-signing-enabled", "true",
            "--out", str(output_path),
            str(source),
        ],
        artifact.parent,
        env_overlay=overlay,
        on_output=on_output,
    )
    if not result.is_success:
        raise ToolchainError(result, "apksigner failed")

    logger.info("Signed package: %s", output_path)
    return output_path


async def verify_signature(
    artifact: Path,
    env: OfflineEnvironment,
    runner: CommandRunner = run_command,
    on_output: Optional[OutputListener] = None,
) -> bool:
    """Run `apksigner verify`. Returns False instead of raising."""
    artifact = Path(artifact)
    result = await runner(
        str(env.build_tool("apksigner")),
        ["verify", "--verbose", str(artifact)],
        artifact.parent,
        env_overlay=env.overlay(),
        on_output=on_output,
    )
    if result.is_success:
        logger.info("Signature verified: %s", artifact.name)
    else:
        logger.warning("Signature verification failed for %s", artifact.name)
    return result.is_success
