"""Container status via the docker CLI."""

from __future__ import annotations

import asyncio

import structlog

from downloadarr.domain.entities.health import ContainerHealth

log = structlog.get_logger(__name__)

_INSPECT_FORMAT = (
    "{{.Name}},{{.State.Status}},{{.State.Running}},"
    "{{.State.Health.Status}},{{.State.ExitCode}}"
)
_NO_VALUE = "<no value>"


def parse_inspect_output(name: str, output: str) -> ContainerHealth:
    """Parse one line of ``docker inspect --format`` output.

    Unparsable output yields an "unknown" status rather than an error.
    """
    parts = output.strip().split(",")
    if len(parts) != 5:
        return ContainerHealth(name=name, exists=False)

    raw_name, status, running, health, exit_code = (p.strip() for p in parts)
    try:
        code = int(exit_code) if exit_code and exit_code != _NO_VALUE else None
    except ValueError:
        code = None

    return ContainerHealth(
        name=raw_name.lstrip("/") or name,
        exists=True,
        running=running == "true",
        status=status or None,
        health=health if health and health != _NO_VALUE else None,
        exit_code=code,
    )


class DockerContainerInspector:
    """Implements ContainerRuntimePort by shelling out to ``docker``.

    Every failure (missing binary, non-zero exit, timeout) is reported as
    "status unknown", never raised.
    """

    def __init__(
        self,
        binary: str = "docker",
        inspect_timeout: float = 5.0,
        version_timeout: float = 3.0,
    ) -> None:
        self._binary = binary
        self._inspect_timeout = inspect_timeout
        self._version_timeout = version_timeout

    async def inspect(self, name: str) -> ContainerHealth:
        output = await self._run(
            ["inspect", name, "--format", _INSPECT_FORMAT], self._inspect_timeout
        )
        if output is None:
            return ContainerHealth(name=name, exists=False)
        return parse_inspect_output(name, output)

    async def is_available(self) -> bool:
        output = await self._run(
            ["version", "--format", "{{.Server.Version}}"], self._version_timeout
        )
        return output is not None

    async def _run(self, args: list[str], timeout: float) -> str | None:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            log.debug("docker_exec_failed", args=args, error=str(exc))
            return None

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            log.debug("docker_exec_timeout", args=args, timeout=timeout)
            return None

        if proc.returncode != 0:
            log.debug("docker_exec_nonzero", args=args, code=proc.returncode)
            return None
        text = stdout.decode("utf-8", errors="replace").strip()
        return text or None
