"""Sandboxed external command execution."""

import asyncio
import contextlib
import os
import signal
import sys
import time
from dataclasses import dataclass, field
from typing import FrozenSet, List, Mapping, Optional, Sequence, Tuple

from ..config import Settings, get_settings
from ..logging import get_logger, log_process_call
from ..models.process import ProcessOutcome, ProcessResult

logger = get_logger(__name__)

_CHUNK_SIZE = 64 * 1024
_POSIX = sys.platform != "win32"
# How long to wait for a killed process to release its pipes
_KILL_GRACE_SECONDS = 5.0


class ProcessError(Exception):
    """Base class for external command failures."""

    def __init__(
        self,
        message: str,
        argv: Sequence[str],
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.argv: List[str] = list(argv)
        self.stdout = stdout
        self.stderr = stderr


class ProcessTimeoutError(ProcessError):
    """The command ran past its timeout and was killed."""

    def __init__(self, argv: Sequence[str], timeout: float):
        super().__init__(f"Command timed out after {timeout:g}s", argv)
        self.timeout = timeout


class ProcessBufferExceededError(ProcessError):
    """The command wrote more than the allowed bytes to one stream and was killed."""

    def __init__(self, argv: Sequence[str], stream: str, limit: int):
        super().__init__(f"Output on {stream} exceeded maxBuffer ({limit} bytes)", argv)
        self.stream = stream
        self.limit = limit


class ProcessExitError(ProcessError):
    """The command exited with a code its caller does not accept."""

    def __init__(self, argv: Sequence[str], exit_code: int, stdout: str, stderr: str):
        super().__init__(f"Command failed with exit code {exit_code}", argv, stdout, stderr)
        self.exit_code = exit_code


class _StreamLimitExceeded(Exception):
    def __init__(self, stream: str):
        super().__init__(stream)
        self.stream = stream


@dataclass(frozen=True)
class ExitPolicy:
    """Maps exit codes to outcomes; unlisted codes are errors."""

    success_codes: FrozenSet[int] = field(default_factory=lambda: frozenset({0}))
    finding_codes: FrozenSet[int] = field(default_factory=frozenset)

    def classify(self, exit_code: int) -> Optional[ProcessOutcome]:
        if exit_code in self.success_codes:
            return 'success'
        if exit_code in self.finding_codes:
            return 'finding'
        return None


DEFAULT_POLICY = ExitPolicy()
# npm audit / npm ls exit 1 when they have something to report
FINDINGS_ON_ONE = ExitPolicy(finding_codes=frozenset({1}))


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


async def _read_stream(stream: Optional[asyncio.StreamReader], limit: int, label: str) -> bytes:
    """Read a stream to EOF, giving up as soon as it passes ``limit`` bytes."""
    if stream is None:
        return b""
    buffer = bytearray()
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            return bytes(buffer)
        if len(buffer) + len(chunk) > limit:
            raise _StreamLimitExceeded(label)
        buffer.extend(chunk)


class ProcessRunner:
    """Runs argument-vector commands with a timeout and per-stream output caps."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize the process runner."""
        self.settings = settings or get_settings()

    async def run(
        self,
        argv: Sequence[str],
        *,
        timeout: Optional[float] = None,
        max_buffer: Optional[int] = None,
        policy: Optional[ExitPolicy] = None,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> ProcessResult:
        """Run a command and return its captured output.

        Raises ProcessTimeoutError, ProcessBufferExceededError or
        ProcessExitError; a missing binary raises the OSError from spawning.
        """
        if isinstance(argv, (str, bytes)):
            raise TypeError("argv must be a sequence of arguments, not a shell string")
        argv = [str(arg) for arg in argv]
        if not argv:
            raise ValueError("argv cannot be empty")

        timeout = self.settings.process_timeout if timeout is None else timeout
        max_buffer = self.settings.process_max_buffer if max_buffer is None else max_buffer
        policy = policy or DEFAULT_POLICY

        log_process_call(logger, argv, timeout=timeout, max_buffer=max_buffer)
        started = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=dict(env) if env is not None else None,
                # Own process group, so a kill also reaches anything the command spawned
                start_new_session=_POSIX,
            )
        except OSError as e:
            logger.error("Failed to spawn process", program=argv[0], error=str(e))
            raise

        try:
            stdout, stderr, exit_code = await asyncio.wait_for(
                self._communicate(process, max_buffer),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            await self._terminate(process)
            logger.warning("Process timed out", program=argv[0], timeout=timeout)
            raise ProcessTimeoutError(argv, timeout) from None
        except _StreamLimitExceeded as e:
            await self._terminate(process)
            logger.warning(
                "Process output exceeded buffer",
                program=argv[0],
                stream=e.stream,
                max_buffer=max_buffer,
            )
            raise ProcessBufferExceededError(argv, e.stream, max_buffer) from None

        duration_ms = int((time.monotonic() - started) * 1000)
        out_text, err_text = _decode(stdout), _decode(stderr)
        outcome = policy.classify(exit_code)

        if outcome is None:
            logger.warning(
                "Process exited with unexpected code",
                program=argv[0],
                exit_code=exit_code,
                duration_ms=duration_ms,
            )
            raise ProcessExitError(argv, exit_code, out_text, err_text)

        logger.debug(
            "Process completed",
            program=argv[0],
            exit_code=exit_code,
            outcome=outcome,
            duration_ms=duration_ms,
        )
        return ProcessResult(stdout=out_text, stderr=err_text, exit_code=exit_code, outcome=outcome)

    async def _communicate(
        self,
        process: asyncio.subprocess.Process,
        max_buffer: int,
    ) -> Tuple[bytes, bytes, int]:
        """Drain stdout and stderr concurrently, then reap the process."""
        readers = [
            asyncio.ensure_future(_read_stream(process.stdout, max_buffer, "stdout")),
            asyncio.ensure_future(_read_stream(process.stderr, max_buffer, "stderr")),
        ]
        try:
            stdout, stderr = await asyncio.gather(*readers)
        finally:
            for reader in readers:
                reader.cancel()
            await asyncio.gather(*readers, return_exceptions=True)

        exit_code = await process.wait()
        return stdout, stderr, exit_code

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Kill the process group and wait for it without buffering its output."""
        if _POSIX:
            # The group outlives its leader while children still hold the pipes
            with contextlib.suppress(ProcessLookupError, PermissionError):
                os.killpg(process.pid, signal.SIGKILL)
        elif process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()

        async def discard_and_wait() -> None:
            # Reading to EOF lets the pipe transports close, which wait() needs
            for stream in (process.stdout, process.stderr):
                if stream is not None:
                    while await stream.read(_CHUNK_SIZE):
                        pass
            await process.wait()

        try:
            await asyncio.wait_for(discard_and_wait(), timeout=_KILL_GRACE_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Killed process did not release its pipes", pid=process.pid)
