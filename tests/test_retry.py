"""White-box tests for the upload retry engine."""

import logging
from unittest.mock import MagicMock

import pytest

from altool_deploy.errors import ConfigurationError, UploadFailedError
from altool_deploy.models import AttemptOutput, UploadContext, UploadResult
from altool_deploy.retry import (
    RETRYABLE_PATTERNS,
    is_retryable_failure,
    matching_pattern,
    run_with_retry,
)
from altool_deploy.uploader import FakeUploader

TRANSIENT_STDERR = (
    "2025-09-16 15:37:03.041 ERROR: [altool.14AF0D200] "
    "Unable to determine the application using bundleId: com.example.app"
)
FATAL_STDERR = (
    "2025-09-16 17:21:44.353 ERROR: [ContentDelivery.Uploader.14C70D4C0] "
    "The bundle version must be higher than the previously uploaded version."
)


def success(stdout: str = "uploaded") -> AttemptOutput:
    return AttemptOutput(
        stdout=stdout, stderr="", result=UploadResult.succeeded("No errors uploading")
    )


def failure(stderr: str, stdout: str = "") -> UploadFailedError:
    return UploadFailedError(
        "Failed to upload package.",
        stdout=stdout,
        stderr=stderr,
        result=UploadResult(failure_message=stderr),
    )


class TestRetryablePatterns:
    """Test classification of failed attempts."""

    @pytest.mark.parametrize(
        "stderr",
        [
            "Unable to determine the application using bundleId: com.example.app",
            "Unable to determine app platform for 'Undefined' software type. (1015)",
            "ERROR: Failed to read bundle at path '/tmp/App.itmsp'",
            "ERROR: Unable to authenticate. (-19209)",
            "ERROR: Invalid response from server.",
            "ERROR: The request timed out.",
        ],
    )
    def test_transient_errors_are_retryable(self, stderr: str) -> None:
        """Test that each known transient signature is retried."""
        assert is_retryable_failure(failure(stderr))

    def test_every_pattern_has_a_sample(self) -> None:
        """Test that the patterns are distinct conditions."""
        assert len(RETRYABLE_PATTERNS) == 6
        assert len({p.pattern for p in RETRYABLE_PATTERNS}) == 6

    def test_fatal_error_is_not_retryable(self) -> None:
        """Test that unknown failures are fatal."""
        assert not is_retryable_failure(failure(FATAL_STDERR))

    def test_message_is_matched_without_error_output(self) -> None:
        """Test that the error message is checked when stderr is empty."""
        exc = UploadFailedError("Unable to authenticate. (-19209)")

        assert is_retryable_failure(exc)

    def test_other_exceptions_are_not_retryable(self) -> None:
        """Test that configuration errors are never retried."""
        assert not is_retryable_failure(ConfigurationError("The request timed out"))

    def test_matching_pattern_order(self) -> None:
        """Test that the first matching pattern is reported."""
        pattern = matching_pattern(
            "Unable to authenticate. The request timed out."
        )

        assert pattern is RETRYABLE_PATTERNS[3]


class TestRunWithRetry:
    """Test the retry loop."""

    def test_success_first_attempt(self, ctx: UploadContext) -> None:
        """Test a single successful attempt."""
        uploader = FakeUploader([success()])

        outcome = run_with_retry(ctx, uploader.upload)

        assert outcome.succeeded
        assert outcome.attempts == 1
        assert uploader.calls == 1
        assert outcome.output == "uploaded"

    @pytest.mark.parametrize("k", [2, 3, 10])
    def test_succeeds_after_transient_failures(self, ctx: UploadContext, k: int) -> None:
        """Test that K-1 transient failures followed by success take K calls."""
        uploader = FakeUploader([failure(TRANSIENT_STDERR)] * (k - 1) + [success()])

        outcome = run_with_retry(ctx, uploader.upload)

        assert outcome.succeeded
        assert uploader.calls == k
        assert outcome.attempts == k

    def test_fatal_error_stops_immediately(self, ctx: UploadContext) -> None:
        """Test that no retries are burned on fatal errors."""
        uploader = FakeUploader([failure(FATAL_STDERR), success()])

        outcome = run_with_retry(ctx, uploader.upload)

        assert not outcome.succeeded
        assert uploader.calls == 1
        assert outcome.error_output == FATAL_STDERR
        assert isinstance(outcome.error, UploadFailedError)

    def test_budget_exhausted(self, ctx: UploadContext) -> None:
        """Test that retryable failures stop at the attempt budget."""
        ctx.retry_times = 4
        errors = [failure(TRANSIENT_STDERR + f" #{i}") for i in range(4)]
        uploader = FakeUploader(errors + [success()])

        outcome = run_with_retry(ctx, uploader.upload)

        assert uploader.calls == 4
        assert outcome.error is errors[-1]
        assert outcome.error_output.endswith("#3")

    def test_stdout_aggregated_stderr_last(self, ctx: UploadContext) -> None:
        """Test that stdout of every attempt is kept and stderr of the last one."""
        uploader = FakeUploader(
            [
                failure(TRANSIENT_STDERR, stdout="attempt 1"),
                failure(TRANSIENT_STDERR + " again", stdout="attempt 2"),
                success("attempt 3"),
            ]
        )

        outcome = run_with_retry(ctx, uploader.upload)

        assert outcome.output == "attempt 1\nattempt 2\nattempt 3"
        assert outcome.error_output == ""
        assert outcome.result.success_message == "No errors uploading"

    def test_only_last_result_surfaced(self, ctx: UploadContext) -> None:
        """Test that warnings of earlier attempts are dropped."""
        early = UploadFailedError(
            "failed",
            stderr=TRANSIENT_STDERR,
            result=UploadResult.from_dict(
                {
                    "warnings": [
                        {"code": 1, "user-info": {"NSLocalizedDescription": "early"}}
                    ]
                }
            ),
        )
        uploader = FakeUploader([early, success()])

        outcome = run_with_retry(ctx, uploader.upload)

        assert outcome.succeeded
        assert outcome.warnings == []

    def test_retry_is_logged(
        self, ctx: UploadContext, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that each retry is logged with the attempt number."""
        uploader = FakeUploader([failure(TRANSIENT_STDERR), success()])

        with caplog.at_level(logging.WARNING):
            run_with_retry(ctx, uploader.upload)

        assert "Upload attempt 1 failed with a transient error" in caplog.text

    def test_wait_strategy_is_used(self, ctx: UploadContext) -> None:
        """Test that the configured wait strategy decides the delay."""
        wait = MagicMock(return_value=0)
        ctx.wait = wait
        uploader = FakeUploader([failure(TRANSIENT_STDERR)] * 2 + [success()])

        run_with_retry(ctx, uploader.upload)

        assert wait.call_count == 2

    def test_unexpected_exception_propagates(self, ctx: UploadContext) -> None:
        """Test that programming errors are not turned into outcomes."""
        upload_fn = MagicMock(side_effect=KeyError("boom"))

        with pytest.raises(KeyError):
            run_with_retry(ctx, upload_fn)

        assert upload_fn.call_count == 1
