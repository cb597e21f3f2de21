"""Async runner for the git CLI."""

from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .utils import sanitize_environment


class GitRunnerError(RuntimeError):
    """Base class for git runner errors."""


class GitNotFoundError(GitRunnerError):
    """Raised when the git executable cannot be located."""


@dataclass(slots=True)
class GitCommandResult:
    """Holds the outcome of a git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stripped."""

        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)

    def describe_failure(self) -> str:
        if self.timed_out:
            return "timed out"
        detail = self.output
        if detail:
            return f"exit code {self.returncode}: {detail}"
        return f"exit code {self.returncode}"


class GitRunner:
    """Execute git commands asynchronously with a per-call timeout."""

    def __init__(self, executable: Path | None = None) -> None:
        self._executable_path = self._resolve_executable(executable)

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise GitNotFoundError(f"git executable not found at {candidate}")

        binary = shutil.which("git")
        if binary is None:
            raise GitNotFoundError("git executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    async def version(self) -> GitCommandResult:
        return await self.run("--version", timeout=10.0)

    async def run(self, *args: str, cwd: Path | None = None, timeout: float) -> GitCommandResult:
        return await self._invoke(args, cwd, timeout)

    async def _invoke(self, args: tuple[str, ...], cwd: Path | None, timeout: float) -> GitCommandResult:
        cmd = [str(self._executable_path), *args]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd is not None else None,
            env=sanitize_environment(),
        )
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return GitCommandResult(args=tuple(args), returncode=-1, stdout="", stderr="", timed_out=True)
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return GitCommandResult(args=tuple(args), returncode=process.returncode, stdout=stdout, stderr=stderr)


GitHandler = Callable[[tuple[str, ...], Path | None], GitCommandResult | None]


class FakeGitRunner(GitRunner):
    """Test double that simulates git responses.

    ``handler`` is consulted first and may return ``None`` to fall through to
    the queued ``responses``; with neither, every command succeeds silently.
    """

    def __init__(  # type: ignore[override]
        self,
        responses: Iterable[GitCommandResult] | None = None,
        *,
        handler: GitHandler | None = None,
        delay: float = 0.0,
    ) -> None:
        self._responses = list(responses or [])
        self._handler = handler
        self._delay = delay
        self._invocations: list[tuple[str, ...]] = []
        self._cwds: list[Path | None] = []
        self._in_flight = 0
        self.max_in_flight = 0
        self._executable_path = Path("/tmp/fake-git")

    async def _invoke(  # type: ignore[override]
        self, args: tuple[str, ...], cwd: Path | None, timeout: float
    ) -> GitCommandResult:
        self._invocations.append(tuple(args))
        self._cwds.append(cwd)
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            if self._handler is not None:
                result = self._handler(tuple(args), cwd)
                if result is not None:
                    return result
            if self._responses:
                return self._responses.pop(0)
            return GitCommandResult(args=tuple(args), returncode=0, stdout="", stderr="")
        finally:
            self._in_flight -= 1

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations

    @property
    def cwds(self) -> list[Path | None]:
        return self._cwds

    def commands(self) -> list[str]:
        """Return the git subcommand of every invocation in order."""

        return [args[0] for args in self._invocations if args]


__all__ = [
    "FakeGitRunner",
    "GitCommandResult",
    "GitNotFoundError",
    "GitRunner",
    "GitRunnerError",
]
