"""Utility functions for the altool deploy step."""

import re
import shlex
import subprocess
from collections.abc import Callable, Iterable
from pathlib import PurePosixPath
from urllib.parse import urlparse

from altool_deploy.errors import ConfigurationError
from altool_deploy.models import DEFAULT_RETRY_TIMES, UploadContext

REDACTED = "[REDACTED]"

JWT_PATTERN = re.compile(r"(?i)Generated JWT: (.*)")
API_KEY_NAME_PATTERN = re.compile(r"AuthKey_(.+)\.p8")
XCODE_VERSION_PATTERN = re.compile(r"^Xcode (\d+)(?:\.\d+)*", re.MULTILINE)

# Used when the key file name does not follow the AuthKey_<ID>.p8 convention
DEFAULT_API_KEY_ID = "Bitrise"


def redact(text: str, secrets: Iterable[str]) -> str:
    """Replace every occurrence of the given secrets with a redaction token.

    Args:
        text: Text that may contain secrets
        secrets: Secret values; empty values are ignored

    Returns:
        The text with all secrets replaced
    """
    # Longest first, so a secret containing another one is fully replaced
    for secret in sorted({s for s in secrets if s}, key=len, reverse=True):
        text = text.replace(secret, REDACTED)
    return text


def redact_jwt(text: str) -> str:
    """Hide the bearer token altool prints in verbose mode."""
    for match in JWT_PATTERN.finditer(text):
        token = match.group(1).strip()
        if token:
            text = text.replace(token, REDACTED)
    return text


def parse_retry_times(ctx: UploadContext, value: str | int | None) -> int:
    """Parse the configured attempt budget.

    Args:
        ctx: Upload context providing the logger
        value: Raw configuration value

    Returns:
        A positive attempt count, or the default if the value is unusable
    """
    if value is None or value == "":
        return DEFAULT_RETRY_TIMES
    try:
        retry_times = int(value)
    except (TypeError, ValueError):
        ctx.logger.warning(
            f"Invalid retry count '{value}', using default: {DEFAULT_RETRY_TIMES}"
        )
        return DEFAULT_RETRY_TIMES
    if retry_times < 1:
        ctx.logger.warning(
            f"Retry count must be at least 1, got {retry_times}, "
            f"using default: {DEFAULT_RETRY_TIMES}"
        )
        return DEFAULT_RETRY_TIMES
    return retry_times


def api_key_id(api_key_path: str) -> str:
    """Get the API key ID from an `AuthKey_<ID>.p8` file path or URL."""
    name = PurePosixPath(urlparse(api_key_path).path).name
    match = API_KEY_NAME_PATTERN.search(name)
    if match:
        return match.group(1)
    return DEFAULT_API_KEY_ID


def split_additional_params(value: str) -> list[str]:
    """Split user supplied altool options the way a shell would.

    Raises:
        ConfigurationError: If the options have unbalanced quotes
    """
    try:
        return shlex.split(value or "")
    except ValueError as e:
        raise ConfigurationError(f"Failed to parse additional parameters: {e}") from e


def xcode_major_version(
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> int:
    """Detect the major version of the selected Xcode.

    Args:
        runner: Function with the signature of `subprocess.run`

    Returns:
        The Xcode major version, e.g. 26

    Raises:
        ConfigurationError: If xcodebuild fails or prints an unexpected version
    """
    try:
        completed = runner(
            ["xcodebuild", "-version"], capture_output=True, text=True, check=True
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise ConfigurationError(f"Failed to determine Xcode version: {e}") from e

    match = XCODE_VERSION_PATTERN.search(completed.stdout)
    if match is None:
        raise ConfigurationError(
            f"Failed to determine Xcode version from: {completed.stdout.strip()}"
        )
    return int(match.group(1))
