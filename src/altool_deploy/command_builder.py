"""Build the altool argument list for an upload."""

from pathlib import Path

from altool_deploy.models import PackageDetails, UploadContext
from altool_deploy.package_reader import get_platform_type

TYPE_KEY = "--type"
VERBOSE_KEY = "--verbose"
OUTPUT_FORMAT_KEY = "--output-format"

# From Xcode 26 altool supports --upload-package, where app ID, bundle ID,
# version and short version are optional (they are required in Xcode 16).
UPLOAD_PACKAGE_MIN_XCODE = 26


def build_altool_command(
    ctx: UploadContext,
    file_path: Path,
    package_details: PackageDetails,
    platform: str,
    additional_params: list[str],
    auth_params: list[str],
    app_id: str = "",
    verbose: bool = False,
) -> list[str]:
    """Assemble the arguments passed to `xcrun` for one upload.

    Args:
        ctx: Upload context providing the Xcode version and logger
        file_path: Archive to upload
        package_details: Bundle identity, used when an app ID is given
        platform: Platform selector (auto, ios, macos, tvos)
        additional_params: Extra altool flags supplied by the user
        auth_params: Authentication flag/value pairs
        app_id: App Store Connect Apple ID of the app
        verbose: Ask altool for verbose output

    Returns:
        Ordered argument list starting with `altool`
    """
    additional_params = list(additional_params)

    if ctx.xcode_major_version >= UPLOAD_PACKAGE_MIN_XCODE:
        upload_params = ["--upload-package", str(file_path)]
    else:
        upload_params = ["--upload-app", "-f", str(file_path)]

    # Platform type parameter was introduced in Xcode 13
    if TYPE_KEY not in additional_params:
        platform_type = get_platform_type(ctx, file_path, platform)
        upload_params += [TYPE_KEY, platform_type.value]

    if app_id:
        if ctx.xcode_major_version < UPLOAD_PACKAGE_MIN_XCODE:
            ctx.logger.warning(
                f"App ID is not supported with Xcode versions below "
                f"{UPLOAD_PACKAGE_MIN_XCODE}, ignoring it."
            )
        else:
            upload_params += [
                "--apple-id",
                app_id,
                "--bundle-id",
                package_details.bundle_id,
                "--bundle-version",
                package_details.bundle_version,
                "--bundle-short-version-string",
                package_details.bundle_short_version_string,
            ]

    if OUTPUT_FORMAT_KEY not in additional_params:
        additional_params += [OUTPUT_FORMAT_KEY, "json"]
    else:
        ctx.logger.warning(
            f"Custom {OUTPUT_FORMAT_KEY} set, altool output parsing might fail!"
        )

    if verbose and VERBOSE_KEY not in additional_params:
        additional_params.append(VERBOSE_KEY)

    return ["altool", *upload_params, *auth_params, *additional_params]


def uses_json_output(args: list[str]) -> bool:
    """Check if the altool arguments request JSON output."""
    for index, arg in enumerate(args[:-1]):
        if arg == OUTPUT_FORMAT_KEY and args[index + 1] == "json":
            return True
    return False
