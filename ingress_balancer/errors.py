"""Exceptions raised by the nginx controller."""
from typing import Optional


class ControllerError(Exception):
    """Base class for every synchronous controller failure."""


class SpawnError(ControllerError):
    """nginx could not be started, or died right after starting."""


class RenderError(ControllerError):
    """The nginx template is missing or could not be expanded."""


class PersistError(ControllerError):
    """The rendered configuration could not be read back or written."""


class ValidationError(ControllerError):
    """`nginx -t` rejected a candidate configuration."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class SignalError(ControllerError):
    """A control signal could not be delivered to nginx."""


class ProcessStateError(ControllerError):
    """The requested operation is not valid in the current process state."""


class ProcessExitError(ControllerError):
    """nginx exited with a non-zero status."""

    def __init__(self, returncode: Optional[int]):
        if returncode is not None and returncode < 0:
            message = f"nginx was terminated by signal {-returncode}"
        else:
            message = f"nginx exited with status {returncode}"
        super().__init__(message)
        self.returncode = returncode


class ProxyUnhealthyError(ControllerError):
    """Raised by health checks when nginx is not serving correctly."""
