"""Retry upload attempts that fail with a known transient altool error."""

import re
from collections.abc import Callable

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
)

from altool_deploy.errors import AltoolDeployError, UploadFailedError
from altool_deploy.models import AttemptOutput, UploadContext, UploadOutcome

# Error signatures of upstream conditions that go away on a later attempt.
# Do not remove a pattern without confirming altool no longer emits it.
RETRYABLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # App Store Connect sometimes cannot resolve the app from its bundle ID
    # right after an app record was created or changed.
    re.compile(r"Unable to determine the application using bundleId"),
    # Race in altool's app lookup: the app's software type is not known yet.
    re.compile(r"Unable to determine app platform for 'Undefined' software type"),
    # Transporter starts reading the bundle before the package is fully staged.
    re.compile(r"(?i)(?:failed|unable) to (?:read|open) (?:the )?bundle"),
    # Intermittent failures of Apple's authentication service (-19209).
    re.compile(r"Unable to authenticate"),
    # Upload service returns a malformed response under load.
    re.compile(r"(?i)invalid response from (?:the )?server"),
    # Network level timeout while talking to the upload service.
    re.compile(r"(?i)the request timed out"),
)


def matching_pattern(text: str) -> re.Pattern[str] | None:
    """Return the first retryable pattern found in the text, if any."""
    for pattern in RETRYABLE_PATTERNS:
        if pattern.search(text):
            return pattern
    return None


def is_retryable_failure(exc: BaseException) -> bool:
    """Check if a failed attempt is worth retrying.

    Only attempt failures whose error output (or message) matches one of the
    known transient patterns are retried; everything else is fatal.
    """
    if not isinstance(exc, UploadFailedError):
        return False
    return matching_pattern(_failure_text(exc)) is not None


def run_with_retry(
    ctx: UploadContext, upload_fn: Callable[[], AttemptOutput]
) -> UploadOutcome:
    """Run upload attempts until success, a fatal error or the attempt budget.

    Standard output of every attempt is kept in the returned outcome; error
    output and the parsed result come from the last attempt only.

    Args:
        ctx: Upload context providing the attempt budget, wait strategy and logger
        upload_fn: Performs a single attempt, raising UploadFailedError on failure

    Returns:
        The terminal outcome; `error` is None on success
    """
    outcome = UploadOutcome()
    stdout_parts: list[str] = []

    def attempt() -> AttemptOutput:
        outcome.attempts += 1
        ctx.logger.debug(f"Upload attempt {outcome.attempts}/{ctx.retry_times}")
        try:
            output = upload_fn()
        except UploadFailedError as e:
            stdout_parts.append(e.stdout)
            outcome.error_output = e.stderr
            outcome.result = e.result
            raise
        stdout_parts.append(output.stdout)
        outcome.error_output = output.stderr
        outcome.result = output.result
        return output

    def log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception()
        pattern = matching_pattern(_failure_text(exc))
        sleep = retry_state.next_action.sleep if retry_state.next_action else 0
        ctx.logger.warning(
            f"Upload attempt {retry_state.attempt_number} failed with a transient "
            f"error matching '{pattern.pattern if pattern else ''}', "
            f"retrying in {sleep:g}s"
        )

    retrying = Retrying(
        stop=stop_after_attempt(ctx.retry_times),
        wait=ctx.wait,
        retry=retry_if_exception(is_retryable_failure),
        before_sleep=log_retry,
        reraise=True,
    )

    try:
        retrying(attempt)
    except AltoolDeployError as e:
        outcome.error = e
        if is_retryable_failure(e):
            ctx.logger.error(f"Upload failed after {outcome.attempts} attempt(s)")
    finally:
        outcome.output = "\n".join(part for part in stdout_parts if part)

    return outcome


def _failure_text(exc: BaseException | None) -> str:
    if isinstance(exc, UploadFailedError):
        return "\n".join(part for part in (exc.stderr, str(exc)) if part)
    return str(exc or "")
