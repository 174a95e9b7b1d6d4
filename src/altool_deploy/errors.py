"""Exceptions raised while preparing, running and classifying altool uploads."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from altool_deploy.models import ProductError, UploadResult


class AltoolDeployError(Exception):
    """Base exception for altool deploy errors."""

    pass


class ConfigurationError(AltoolDeployError):
    """Exception raised for missing or contradictory step inputs."""

    pass


class ParseError(AltoolDeployError):
    """Exception raised when a package or tool output cannot be parsed."""

    pass


class PackageReadError(ParseError):
    """Exception raised when archive metadata cannot be read."""

    pass


class OutputParseError(ParseError):
    """Exception raised when altool JSON output cannot be found or decoded."""

    pass


class UploadError(AltoolDeployError):
    """A single altool product error, flattened for display.

    Only the top node of the error chain is surfaced; underlying errors are
    not folded into the message.
    """

    def __init__(
        self,
        description: str = "",
        reason: str = "",
        error_code: int = 0,
        error_id: str = "",
    ) -> None:
        self.description = description
        self.reason = reason
        self.error_code = error_code
        self.error_id = error_id
        super().__init__(self.render())

    @classmethod
    def from_product_error(cls, product_error: "ProductError") -> "UploadError":
        """Build an upload error from the top node of a product error."""
        return cls(
            description=product_error.user_info.description,
            reason=product_error.user_info.failure_reason,
            error_code=product_error.code,
            error_id=product_error.user_info.iris_code,
        )

    def render(self) -> str:
        """Render the error the way downstream log scrapers expect it."""
        msg = self.description
        if self.error_code != 0:
            msg += f" ({self.error_code})"
        if self.reason:
            msg += f"  {self.reason}"
        if self.error_id:
            msg += f"  (code: {self.error_id})"
        return msg

    def __str__(self) -> str:
        return self.render()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UploadError):
            return NotImplemented
        return (
            self.description,
            self.reason,
            self.error_code,
            self.error_id,
        ) == (other.description, other.reason, other.error_code, other.error_id)

    def __hash__(self) -> int:
        return hash((self.description, self.reason, self.error_code, self.error_id))

    def __repr__(self) -> str:
        return (
            f"UploadError(description={self.description!r}, reason={self.reason!r}, "
            f"error_code={self.error_code!r}, error_id={self.error_id!r})"
        )


class MultipleUploadErrors(AltoolDeployError):
    """Exception raised when altool reports more than one product error."""

    def __init__(self, count: int, first: UploadError) -> None:
        self.count = count
        self.first = first
        super().__init__(f"{count} errors, first: {first}")


class AltoolOutputError(AltoolDeployError):
    """Exception raised when text output reports an error.

    The message is the raw error output of the tool.
    """

    pass


class UploadFailedError(AltoolDeployError):
    """Exception raised when a single upload attempt fails.

    Carries the captured output of the attempt so the retry engine can
    classify it and the caller can show it.
    """

    def __init__(
        self,
        message: str,
        stdout: str = "",
        stderr: str = "",
        result: "UploadResult | None" = None,
    ) -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.result = result
