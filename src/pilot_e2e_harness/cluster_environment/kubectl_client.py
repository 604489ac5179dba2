"""Thin kubectl wrapper used by the environment and the probe cases."""

from __future__ import annotations

import shlex
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

CommandRunner = Callable[[tuple[str, ...]], str]

DEFAULT_COMMAND_TIMEOUT_SECONDS = 600


class CommandError(Exception):
    """Raised when a kubectl invocation fails."""


def run_checked_command(command: tuple[str, ...]) -> str:
    """Run one command and return its stdout, wrapping failures in CommandError."""
    try:
        completed = subprocess.run(
            list(command),
            capture_output=True,
            text=True,
            check=True,
            timeout=DEFAULT_COMMAND_TIMEOUT_SECONDS,
        )
    except FileNotFoundError as exc:
        raise CommandError(f"Command not found: {shlex.join(command)}") from exc
    except subprocess.TimeoutExpired as exc:
        raise CommandError(f"Command timed out: {shlex.join(command)}") from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise CommandError(
            f"Command failed with exit code {exc.returncode}: {shlex.join(command)}"
            + (f": {stderr}" if stderr else "")
        ) from exc
    return completed.stdout


class Kubectl:
    """Builds kubectl command lines against one kube config."""

    def __init__(self, kube_config: str, *, run_command: CommandRunner | None = None) -> None:
        self._kube_config = kube_config
        self._run_command = run_command or run_checked_command

    def __call__(self, *args: str, namespace: str | None = None) -> str:
        command: list[str] = ["kubectl"]
        if self._kube_config:
            command.extend(["--kubeconfig", self._kube_config])
        if namespace:
            command.extend(["-n", namespace])
        command.extend(args)
        return self._run_command(tuple(command))

    def create_namespace(self, name: str) -> None:
        self("create", "namespace", name)

    def delete_namespace(self, name: str) -> None:
        self("delete", "namespace", name, "--ignore-not-found")

    def label_namespace(self, name: str, label: str) -> None:
        self("label", "namespace", name, label, "--overwrite")

    def apply(self, manifest: Path, *, namespace: str) -> None:
        self("apply", "-f", str(manifest), namespace=namespace)

    def delete(self, manifest: Path, *, namespace: str) -> None:
        self("delete", "-f", str(manifest), "--ignore-not-found", namespace=namespace)

    def wait_for_rollout(self, deployment: str, *, namespace: str, timeout: str = "300s") -> None:
        self(
            "rollout",
            "status",
            f"deployment/{deployment}",
            f"--timeout={timeout}",
            namespace=namespace,
        )

    def pod_names(self, *, namespace: str) -> list[str]:
        output = self("get", "pods", "-o", "name", namespace=namespace)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def logs(self, target: str, *, namespace: str, container: str | None = None) -> str:
        args = ["logs", target]
        args.extend(["-c", container] if container else ["--all-containers"])
        return self(*args, namespace=namespace)

    def exec_in(
        self, target: str, command: Sequence[str], *, namespace: str, container: str
    ) -> str:
        return self("exec", target, "-c", container, "--", *command, namespace=namespace)
