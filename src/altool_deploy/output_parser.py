"""Parse altool output into an UploadResult."""

import json
import re

from altool_deploy.errors import OutputParseError
from altool_deploy.models import UploadContext, UploadResult

# From the first line opening an object to the last line closing one, so log
# lines printed around the JSON document are ignored.
JSON_OBJECT_PATTERN = re.compile(r"^\s*\{.*\}\s*$", re.MULTILINE | re.DOTALL)

ERROR_PATTERN = re.compile(r"ERROR:")
SUCCESS_PATTERN = re.compile(r"UPLOAD SUCCEEDED")


def parse_json_output(stdout: str) -> UploadResult:
    """Decode the JSON document printed by `altool --output-format json`.

    Args:
        stdout: Standard output of altool

    Returns:
        The parsed upload result

    Raises:
        OutputParseError: If no JSON object is found or it cannot be decoded
    """
    match = JSON_OBJECT_PATTERN.search(stdout)
    if match is None:
        raise OutputParseError("failed to find JSON output in altool output")

    try:
        data = json.loads(match.group(0))
        if not isinstance(data, dict):
            raise ValueError("top level value is not an object")
        return UploadResult.from_dict(data)
    except (ValueError, TypeError, AttributeError) as e:
        raise OutputParseError(f"failed to parse altool JSON output: {e}") from e


def parse_altool_output(
    ctx: UploadContext, stdout: str, stderr: str, json_mode: bool
) -> UploadResult:
    """Parse altool output, falling back to text matching.

    A JSON result is returned as is; call `get_error()` on it to see whether
    the upload failed. In text mode, an `ERROR:` line in the error output
    without an `UPLOAD SUCCEEDED` marker in either stream is a failure.

    Args:
        ctx: Upload context providing the logger
        stdout: Standard output of altool
        stderr: Error output of altool
        json_mode: Whether altool was asked for JSON output

    Returns:
        The parsed upload result
    """
    if json_mode:
        try:
            return parse_json_output(stdout)
        except OutputParseError as e:
            ctx.logger.warning(f"Could not parse altool output as JSON: {e}")

    if (
        ERROR_PATTERN.search(stderr)
        and not SUCCESS_PATTERN.search(stdout)
        and not SUCCESS_PATTERN.search(stderr)
    ):
        return UploadResult(failure_message=stderr)

    return UploadResult.succeeded("Upload succeeded")
