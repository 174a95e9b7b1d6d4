"""Uploaders: run altool once, or replay scripted responses."""

import subprocess
from collections.abc import Callable, Iterable
from typing import Protocol

from altool_deploy.command_builder import uses_json_output
from altool_deploy.errors import AltoolDeployError, UploadFailedError
from altool_deploy.models import AttemptOutput, UploadContext, UploadResult
from altool_deploy.output_parser import parse_altool_output


class Uploader(Protocol):
    """Performs a single upload attempt."""

    def upload(self) -> AttemptOutput:
        """Upload the archive once.

        Returns:
            Captured output and parsed result of a successful attempt

        Raises:
            UploadFailedError: If the attempt failed
        """
        ...


class AltoolUploader:
    """Runs `xcrun altool` with prebuilt arguments."""

    def __init__(
        self,
        ctx: UploadContext,
        args: list[str],
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        """Initialize altool uploader.

        Args:
            ctx: Upload context providing the logger
            args: altool arguments, starting with `altool`
            runner: Function with the signature of `subprocess.run`
        """
        self.ctx = ctx
        self.args = list(args)
        self.runner = runner

    def upload(self) -> AttemptOutput:
        try:
            completed = self.runner(
                ["xcrun", *self.args], capture_output=True, text=True, check=False
            )
        except OSError as e:
            raise UploadFailedError(f"Failed to run altool: {e}") from e

        stdout = completed.stdout or ""
        stderr = completed.stderr or ""
        result = parse_altool_output(
            self.ctx, stdout, stderr, uses_json_output(self.args)
        )

        error = result.get_error()
        if error is None and completed.returncode != 0:
            error = AltoolDeployError(f"altool exited with status {completed.returncode}")
        if error is not None:
            raise UploadFailedError(
                str(error), stdout=stdout, stderr=stderr, result=result
            ) from error

        return AttemptOutput(stdout=stdout, stderr=stderr, result=result)


class FakeUploader:
    """Replays scripted attempt outcomes instead of calling altool.

    Each call consumes the next response; the last one is repeated once the
    script runs out.
    """

    def __init__(
        self,
        responses: Iterable[AttemptOutput | UploadFailedError],
        ctx: UploadContext | None = None,
    ) -> None:
        self.ctx = ctx or UploadContext()
        self.responses = list(responses)
        if not self.responses:
            raise ValueError("FakeUploader needs at least one response")
        self.calls = 0

    @classmethod
    def dry_run(cls, file_name: str, ctx: UploadContext | None = None) -> "FakeUploader":
        """Create an uploader that always reports success."""
        message = f"[DRY RUN] No errors uploading archive at '{file_name}'."
        result = UploadResult.succeeded(message)
        return cls([AttemptOutput(stdout=message, stderr="", result=result)], ctx)

    def upload(self) -> AttemptOutput:
        response = self.responses[min(self.calls, len(self.responses) - 1)]
        self.calls += 1
        self.ctx.logger.debug(f"Fake upload attempt {self.calls}")

        if isinstance(response, UploadFailedError):
            raise response
        return response
