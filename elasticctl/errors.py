"""Exceptions raised by the elasticctl deployment tooling."""
from typing import Iterable, Optional


class DeployError(Exception):
    """Base class for every error that aborts a command."""

    exit_code = 1

    def __init__(self, message: str, phase: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.phase = phase

    def __str__(self) -> str:
        if self.phase:
            return f"[{self.phase}] {self.message}"
        return self.message


class ConfigMissing(DeployError):
    """Raised when the configuration file does not exist."""
    pass


class ConfigInvalid(DeployError):
    """Raised when configuration is present but incomplete or malformed."""

    def __init__(self, message: str, fields: Iterable[str] = ()):
        super().__init__(message)
        self.fields = list(fields)


class PreconditionFailed(DeployError):
    """Raised when a command cannot run because of the host or cluster state."""
    pass


class RuntimeUnavailable(PreconditionFailed):
    """Raised when docker or docker compose cannot be found."""
    pass


class BundleNotFound(PreconditionFailed):
    """Raised when the certificate bundle volume does not exist."""

    def __init__(self, bundle_id: str):
        super().__init__(f"Certificate bundle '{bundle_id}' not found")
        self.bundle_id = bundle_id


class CertsSourceNotFound(PreconditionFailed):
    """Raised when the directory to import certificates from does not exist."""

    def __init__(self, path):
        super().__init__(f"Certificates directory not found: {path}")
        self.path = path


class PhaseFailed(DeployError):
    """Wraps a collaborator failure with the name of the phase it happened in."""

    def __init__(self, phase: str, cause: BaseException):
        super().__init__(str(cause), phase=phase)
        self.cause = cause


class PollTimeout(DeployError):
    """Raised when a health check exhausts its attempts."""

    def __init__(self, target: str, attempts: int, elapsed: float):
        super().__init__(
            f"{target} not ready after {attempts} attempt(s) ({elapsed:.0f}s)"
        )
        self.target = target
        self.attempts = attempts
        self.elapsed = elapsed


class UserCancelled(DeployError):
    """Raised when the operator declines a confirmation."""
    pass


class UnknownService(DeployError):
    """Raised when logs are requested for a service that is not managed here."""
    pass


class CommandError(RuntimeError):
    """A docker / compose / curl invocation exited non-zero."""

    def __init__(self, args, returncode: int, stderr: str = ""):
        self.cmd = list(args)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(
            f"Command '{' '.join(self.cmd[:3])}' exited with {returncode}{detail}"
        )


class ProbeError(RuntimeError):
    """An HTTP probe against a stack service could not complete."""
    pass
