"""Shared fixtures: isolated settings, a provisioned offline environment
and a scripted command runner standing in for the real toolchains.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import pytest

from apkbuilder.core.config import Settings
from apkbuilder.core.environment import REQUIRED_ROLES, OfflineEnvironment, get_offline_environment
from apkbuilder.core.process import CommandResult

_ASSEMBLE = re.compile(r"^assemble(Debug|Release)$")


@dataclass
class RecordedCall:
    name: str
    args: list[str]
    cwd: Path
    env_overlay: Optional[dict[str, str]]


class FakeRunner:
    """Records every invocation and simulates the files each tool writes.

    `exit_codes[name]` is a list of exit codes consumed one per call to
    that tool; once exhausted the tool succeeds. `hooks[name]` runs before
    the default side effect and may return a CommandResult to short-circuit.
    """

    def __init__(self) -> None:
        self.calls: list[RecordedCall] = []
        self.exit_codes: dict[str, list[int]] = {}
        self.hooks: dict[str, Callable[[list[str], Path], Optional[CommandResult]]] = {}
        self.produce_artifacts = True

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.calls]

    def calls_to(self, name: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.name == name]

    async def __call__(
        self,
        command: str,
        args: list[str],
        cwd: Path,
        env_overlay: Optional[dict[str, str]] = None,
        on_output: Optional[Callable[[str], None]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        name = Path(command).name
        cwd = Path(cwd)
        self.calls.append(RecordedCall(name, list(args), cwd, env_overlay))

        hook = self.hooks.get(name)
        if hook is not None:
            hooked = hook(list(args), cwd)
            if hooked is not None:
                return hooked

        queued = self.exit_codes.get(name)
        exit_code = queued.pop(0) if queued else 0
        if exit_code == 0:
            self._side_effect(name, list(args), cwd)
        output = f"{name} {'ok' if exit_code == 0 else 'FAILED'}\n"
        if on_output is not None:
            on_output(output)
        return CommandResult(
            name=name,
            command=" ".join([command, *args]),
            exit_code=exit_code,
            duration_seconds=0.01,
            stdout=output if exit_code == 0 else "",
            stderr="" if exit_code == 0 else output,
        )

    def _side_effect(self, name: str, args: list[str], cwd: Path) -> None:
        if name.startswith("keytool"):
            _touch(Path(args[args.index("-keystore") + 1]))
        elif name.startswith("zipalign"):
            _touch(Path(args[-1]))
        elif name.startswith("apksigner") and args[0] == "sign":
            _touch(Path(args[args.index("--out") + 1]), b"signed-apk")
        elif name.startswith("gradle") and self.produce_artifacts:
            match = _ASSEMBLE.match(args[0])
            if match:
                build_type = match.group(1).lower()
                _touch(cwd / "app" / "build" / "outputs" / "apk" / build_type / f"app-{build_type}.apk")


def _touch(path: Path, content: bytes = b"apk") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        bundled_dir=tmp_path / "bundled",
        scratch_root=tmp_path / "scratch",
        debug_keystore_dir=tmp_path / "keystores",
        connectivity_probe_host="localhost",
    )


@pytest.fixture
def offline_env(settings: Settings) -> OfflineEnvironment:
    env = get_offline_environment(settings)
    for role in REQUIRED_ROLES:
        env.path(role).mkdir(parents=True, exist_ok=True)
    return env


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def online_probe():
    async def probe() -> bool:
        return True

    return probe


@pytest.fixture
def offline_probe():
    async def probe() -> bool:
        return False

    return probe
