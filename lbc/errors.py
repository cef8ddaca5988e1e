from __future__ import annotations


class ConvergeError(Exception):
    """Base class for failures of one convergence invocation."""


class TemplateError(ConvergeError):
    """The configuration template could not be parsed."""


class RenderError(ConvergeError):
    """The configuration template failed while executing."""


class InvalidConfigError(ConvergeError):
    """HAProxy rejected the rendered candidate configuration."""

    def __init__(self, message: str, config: str, diagnostics: str):
        super().__init__(message)
        self.config = config
        self.diagnostics = diagnostics


class MaterializeError(ConvergeError):
    """A certificate or static file could not be written."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class CommitIOError(ConvergeError):
    """Backing up or writing the active configuration failed."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class ReloadLaunchError(ConvergeError):
    """The reload command could not be started at all.

    The controller treats this as unrecoverable: the scheduling loop stops.
    """


class ReloadExitError(ConvergeError):
    """The reload command ran but failed (non-zero exit or timeout)."""

    def __init__(self, message: str, command: str, returncode: int | None):
        super().__init__(message)
        self.command = command
        self.returncode = returncode


class SocketUnavailable(ConvergeError):
    """No control socket found, or a control socket could not be used."""


class BackendUpdateError(ConvergeError):
    """Sending enable/disable commands failed on one or more sockets."""

    def __init__(self, message: str, failures: dict[str, str]):
        super().__init__(message)
        self.failures = failures


class ConvergeBusy(ConvergeError):
    """Another convergence is already running on the same state."""


class SourceError(ConvergeError):
    """The desired state could not be loaded or validated."""
