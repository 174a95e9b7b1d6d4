"""Data models for the altool deploy step."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tenacity import wait_fixed
from tenacity.wait import wait_base

from altool_deploy.errors import (
    AltoolDeployError,
    AltoolOutputError,
    MultipleUploadErrors,
    UploadError,
)

# Attempt budget used when no valid retry count is configured
DEFAULT_RETRY_TIMES = 10
# Seconds to wait between upload attempts
DEFAULT_RETRY_WAIT = 10


class PlatformType(str, Enum):
    """Platform values accepted by `altool --type`."""

    IOS = "ios"
    TVOS = "appletvos"
    MACOS = "macos"


@dataclass(frozen=True)
class PackageDetails:
    """Bundle identity of the archive being uploaded."""

    bundle_id: str = ""
    bundle_version: str = ""
    bundle_short_version_string: str = ""

    def has_missing_fields(self) -> bool:
        """Check if any identity field is still empty."""
        return not (
            self.bundle_id and self.bundle_version and self.bundle_short_version_string
        )

    def merged_with(self, parsed: "PackageDetails") -> "PackageDetails":
        """Fill empty fields from parsed details, keeping explicit values.

        Args:
            parsed: Details read from the archive

        Returns:
            New details where every non-empty field of self is preserved
        """
        return PackageDetails(
            bundle_id=self.bundle_id or parsed.bundle_id,
            bundle_version=self.bundle_version or parsed.bundle_version,
            bundle_short_version_string=(
                self.bundle_short_version_string or parsed.bundle_short_version_string
            ),
        )


@dataclass(frozen=True)
class UserInfo:
    """The `user-info` dictionary of an altool product error.

    Lower level nodes carry the App Store Connect API fields (code, detail,
    id, ...), top level nodes carry `NSUnderlyingError` and `iris-code`.
    """

    description: str = ""
    failure_reason: str = ""
    inner_code: str = ""
    detail: str = ""
    id: str = ""
    meta: str = ""
    source: str = ""
    status: str = ""
    title: str = ""
    underlying_error_text: str = ""
    iris_code: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserInfo":
        return cls(
            description=_string(data, "NSLocalizedDescription"),
            failure_reason=_string(data, "NSLocalizedFailureReason"),
            inner_code=_string(data, "code"),
            detail=_string(data, "detail"),
            id=_string(data, "id"),
            meta=_string(data, "meta"),
            source=_string(data, "source"),
            status=_string(data, "status"),
            title=_string(data, "title"),
            underlying_error_text=_string(data, "NSUnderlyingError"),
            iris_code=_string(data, "iris-code"),
        )


@dataclass(frozen=True)
class ProductError:
    """One node of an altool error chain."""

    code: int = 0
    message: str = ""
    user_info: UserInfo = field(default_factory=UserInfo)
    underlying_errors: tuple["ProductError", ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProductError":
        return cls(
            code=int(data.get("code") or 0),
            message=_string(data, "message"),
            user_info=UserInfo.from_dict(data.get("user-info") or {}),
            underlying_errors=tuple(
                cls.from_dict(item) for item in data.get("underlying-errors") or []
            ),
        )


@dataclass(frozen=True)
class SuccessDetails:
    """The `details` object altool prints after a successful upload."""

    delivery_id: str = ""
    transfer_summary: str = ""


@dataclass(frozen=True)
class UploadResult:
    """Normalized result of a single altool invocation."""

    success_message: str = ""
    failure_message: str = ""
    success_details: SuccessDetails = field(default_factory=SuccessDetails)
    product_errors: tuple[ProductError, ...] = ()
    warnings: tuple[ProductError, ...] = ()
    os_version: str = ""
    tool_version: str = ""
    tool_path: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UploadResult":
        """Build a result from altool's `--output-format json` object.

        Args:
            data: Decoded JSON object

        Returns:
            The parsed upload result

        Raises:
            ValueError: If a field has an unexpected shape
            TypeError: If a field has an unexpected type
        """
        details = data.get("details") or {}
        return cls(
            success_message=_string(data, "success-message"),
            success_details=SuccessDetails(
                delivery_id=_string(details, "delivery-uuid"),
                transfer_summary=_string(details, "transferred"),
            ),
            product_errors=tuple(
                ProductError.from_dict(item) for item in data.get("product-errors") or []
            ),
            warnings=tuple(
                ProductError.from_dict(item) for item in data.get("warnings") or []
            ),
            os_version=_string(data, "os-version"),
            tool_version=_string(data, "tool-version"),
            tool_path=_string(data, "tool-path"),
        )

    @classmethod
    def succeeded(cls, message: str) -> "UploadResult":
        """Build a result for output that only signals success."""
        return cls(success_message=message)

    def get_error(self) -> AltoolDeployError | None:
        """Derive the upload error from the parsed result.

        Returns:
            None if altool reported success, otherwise the error to surface
        """
        if self.success_message:
            return None

        if self.failure_message:
            return AltoolOutputError(self.failure_message)

        if not self.product_errors:
            return AltoolDeployError("upload failed, but no error message found")

        first = UploadError.from_product_error(self.product_errors[0])
        if len(self.product_errors) == 1:
            return first
        return MultipleUploadErrors(len(self.product_errors), first)

    def get_warnings(self) -> list[UploadError]:
        """Project every top-level warning, whether or not the upload succeeded."""
        return [UploadError.from_product_error(warning) for warning in self.warnings]


@dataclass
class UploadContext:
    """Settings and logger shared by the components of a single run."""

    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("altool_deploy")
    )
    xcode_major_version: int = 0
    retry_times: int = DEFAULT_RETRY_TIMES
    wait: wait_base = field(default_factory=lambda: wait_fixed(DEFAULT_RETRY_WAIT))


@dataclass(frozen=True)
class AttemptOutput:
    """Captured output of one successful uploader call."""

    stdout: str
    stderr: str
    result: UploadResult


@dataclass
class UploadOutcome:
    """Terminal state of an upload run, including the last attempt's data."""

    output: str = ""
    error_output: str = ""
    result: UploadResult | None = None
    error: Exception | None = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def warnings(self) -> list[UploadError]:
        if self.result is None:
            return []
        return self.result.get_warnings()


def _string(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    return str(value)
