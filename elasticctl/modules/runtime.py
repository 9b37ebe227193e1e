"""
Container runtime access through the docker and docker compose CLIs.
"""
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from ..errors import CommandError, RuntimeUnavailable

logger = logging.getLogger("elasticctl.runtime")

Runner = Callable[..., subprocess.CompletedProcess]
Mount = Union[str, Path]


def run_command(
    args: Sequence[str],
    cwd: Optional[str] = None,
    timeout: Optional[float] = None,
    capture: bool = True,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """Run a command and return the completed process.

    Args:
        args: Command and arguments
        cwd: Working directory
        timeout: Seconds before the command is killed
        capture: Capture stdout/stderr instead of inheriting the terminal
        check: Raise CommandError on a non-zero exit code

    Raises:
        CommandError: If the command cannot be started, times out or fails
    """
    args = list(args)
    # Only the head of the command is logged; curl arguments carry credentials
    logger.debug("Running: %s", " ".join(args[:4]))
    try:
        result = subprocess.run(
            args, cwd=cwd, timeout=timeout, capture_output=capture, text=True
        )
    except FileNotFoundError as e:
        raise CommandError(args, 127, str(e)) from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(args, -1, f"timed out after {timeout}s") from e

    if check and result.returncode != 0:
        raise CommandError(args, result.returncode, result.stderr if capture else "")
    return result


class DockerRuntime:
    """Starts, stops and inspects containers of the stack."""

    def __init__(
        self,
        project_dir: Path,
        helper_image: str = "alpine",
        timeout: Optional[float] = None,
        runner: Runner = run_command,
    ):
        """Initialize the runtime.

        Args:
            project_dir: Directory holding the compose files and data directories
            helper_image: Image used for throwaway copy containers
            timeout: Default timeout for non-streaming commands
            runner: Function used to execute commands
        """
        self.project_dir = Path(project_dir)
        self.helper_image = helper_image
        self.timeout = timeout
        self.runner = runner
        self._compose: Optional[List[str]] = None

    def _run(self, args: Sequence[str], **kwargs) -> subprocess.CompletedProcess:
        kwargs.setdefault("timeout", self.timeout)
        return self.runner(list(args), cwd=str(self.project_dir), **kwargs)

    def compose_command(self) -> List[str]:
        """Return the compose invocation, preferring the docker CLI plugin."""
        if self._compose is None:
            try:
                self._run(["docker", "compose", "version"])
                self._compose = ["docker", "compose"]
            except CommandError:
                if shutil.which("docker-compose") is None:
                    raise RuntimeUnavailable(
                        "Docker Compose is not installed. Please install Docker Compose first."
                    )
                self._compose = ["docker-compose"]
        return self._compose

    def check_available(self) -> None:
        """Ensure docker and docker compose can be used."""
        if shutil.which("docker") is None:
            raise RuntimeUnavailable("Docker is not installed. Please install Docker first.")
        compose = self.compose_command()
        logger.info("✅ Docker and %s are installed", " ".join(compose))

    # Compose

    def compose(self, compose_file: str, *args: str, **kwargs) -> subprocess.CompletedProcess:
        return self._run([*self.compose_command(), "-f", compose_file, *args], **kwargs)

    def compose_up(self, compose_file: str) -> None:
        self.compose(compose_file, "up", "-d")

    def compose_stop(self, compose_file: str) -> None:
        self.compose(compose_file, "stop")

    def compose_down(self, compose_file: str) -> None:
        self.compose(compose_file, "down")

    def compose_logs(self, compose_file: str, service: Optional[str] = None, follow: bool = True) -> None:
        args = ["logs"]
        if follow:
            args.append("-f")
        if service:
            args.append(service)
        # Streams to the terminal until interrupted
        self.compose(compose_file, *args, capture=False, timeout=None)

    # Containers

    def container_states(self) -> Dict[str, str]:
        """Map every container name to its state (running, exited, ...)."""
        result = self._run(["docker", "ps", "-a", "--format", "{{.Names}}\t{{.State}}"])
        states: Dict[str, str] = {}
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            name, _, state = line.partition("\t")
            states[name.strip()] = state.strip() or "unknown"
        return states

    def is_running(self, container: str) -> bool:
        return self.container_states().get(container) == "running"

    def exec_in(self, container: str, args: Sequence[str], timeout: Optional[float] = None) -> str:
        """Run a command inside a running container and return its stdout."""
        result = self._run(["docker", "exec", container, *args], timeout=timeout or self.timeout)
        return result.stdout

    # Volumes

    def volume_exists(self, name: str) -> bool:
        result = self._run(["docker", "volume", "inspect", name], check=False)
        return result.returncode == 0

    def create_volume(self, name: str) -> None:
        # `docker volume create` is a no-op for an existing volume
        self._run(["docker", "volume", "create", name])

    def remove_volume(self, name: str) -> bool:
        """Remove a volume; returns False when it did not exist."""
        if not self.volume_exists(name):
            return False
        self._run(["docker", "volume", "rm", name])
        return True

    def copy_tree(self, source: Mount, dest: Mount) -> None:
        """Copy the contents of one mount into another.

        A ``Path`` is bind-mounted from the host, a ``str`` is a named volume.
        Existing files in the destination are overwritten.
        """
        self._run([
            "docker", "run", "--rm",
            "-v", f"{self._mount(source)}:/from",
            "-v", f"{self._mount(dest)}:/to",
            self.helper_image,
            "sh", "-c", "cd /from && cp -a . /to",
        ])

    def _mount(self, mount: Mount) -> str:
        if isinstance(mount, Path):
            return str((self.project_dir / mount).resolve())
        return mount

    # Host

    def set_owner(self, path: Path, owner: str) -> None:
        """Recursively chown a host directory, through sudo when not root."""
        cmd = ["chown", "-R", owner, str(path)]
        if hasattr(os, "geteuid") and os.geteuid() != 0:
            cmd = ["sudo", *cmd]
        self._run(cmd)
