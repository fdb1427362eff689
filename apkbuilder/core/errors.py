"""Exception types raised inside the builder.

None of these escape the orchestrator: every stage failure is converted
into a BuildResult at the stage boundary.
"""

from typing import Optional

from apkbuilder.core.process import CommandResult


class BuilderError(Exception):
    """Base class for all builder errors."""


class ConfigurationError(BuilderError):
    """Raised for invalid options, missing credentials or malformed projects."""


class EnvironmentNotReadyError(BuilderError):
    """Raised when required offline toolchains are missing."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing toolchains: {', '.join(self.missing)}")


class ToolchainError(BuilderError):
    """Raised when an external tool exits non-zero.

    Carries the command result for detailed error reporting.
    """

    def __init__(self, command_result: CommandResult, message: str = ""):
        self.command_result = command_result
        super().__init__(
            message
            or f"'{command_result.name}' failed with exit code {command_result.exit_code}"
        )

    @property
    def output(self) -> Optional[str]:
        return self.command_result.output or None
