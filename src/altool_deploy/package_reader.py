"""Read bundle identity and platform from an archive's embedded Info.plist."""

import plistlib
import re
import zipfile
import zlib
from pathlib import Path
from typing import Any
from xml.parsers.expat import ExpatError

from altool_deploy.errors import PackageReadError
from altool_deploy.models import PackageDetails, PlatformType, UploadContext

# Main app Info.plist inside an .ipa; nested bundles (extensions, watch apps) are skipped
INFO_PLIST_PATTERN = re.compile(r"^Payload/[^/]+\.app/Info\.plist$")

PLATFORM_NAMES = {
    "appletvos": PlatformType.TVOS,
    "appletvsimulator": PlatformType.TVOS,
    "macosx": PlatformType.MACOS,
    "iphoneos": PlatformType.IOS,
    "iphonesimulator": PlatformType.IOS,
    "watchos": PlatformType.IOS,
    "watchsimulator": PlatformType.IOS,
}

PLATFORM_SELECTORS = {
    "ios": PlatformType.IOS,
    "macos": PlatformType.MACOS,
    "tvos": PlatformType.TVOS,
}


def read_info_plist(package_path: Path) -> dict[str, Any]:
    """Load the main application's Info.plist from an .ipa archive.

    Args:
        package_path: Path to the .ipa file

    Returns:
        The decoded property list

    Raises:
        PackageReadError: If the archive or its Info.plist cannot be read
    """
    try:
        with zipfile.ZipFile(package_path) as archive:
            plist_name = next(
                (name for name in archive.namelist() if INFO_PLIST_PATTERN.match(name)),
                None,
            )
            if plist_name is None:
                raise PackageReadError(f"no Info.plist found in {package_path}")
            content = archive.read(plist_name)
    # RuntimeError covers encrypted members and unsupported compression
    except (OSError, zipfile.BadZipFile, zlib.error, EOFError, RuntimeError) as e:
        raise PackageReadError(f"failed to open archive {package_path}: {e}") from e

    try:
        plist = plistlib.loads(content)
    except (plistlib.InvalidFileException, ValueError, ExpatError) as e:
        raise PackageReadError(f"failed to read Info.plist: {e}") from e

    if not isinstance(plist, dict):
        raise PackageReadError("Info.plist is not a dictionary")
    return plist


def read_package_details(
    package_path: Path, overrides: PackageDetails | None = None
) -> PackageDetails:
    """Read bundle identity from the archive, keeping explicit overrides.

    Args:
        package_path: Path to the .ipa file
        overrides: Details supplied by the caller; non-empty fields win

    Returns:
        Package details with empty fields filled from Info.plist

    Raises:
        PackageReadError: If the archive cannot be read or a needed key is absent
    """
    overrides = overrides or PackageDetails()
    plist = read_info_plist(package_path)

    parsed = {}
    for key, attr in (
        ("CFBundleIdentifier", "bundle_id"),
        ("CFBundleVersion", "bundle_version"),
        ("CFBundleShortVersionString", "bundle_short_version_string"),
    ):
        if getattr(overrides, attr):
            continue
        value = plist.get(key)
        if not isinstance(value, str) or not value:
            raise PackageReadError(f"failed to find {key} in Info.plist")
        parsed[attr] = value

    return overrides.merged_with(PackageDetails(**parsed))


def get_platform_type(ctx: UploadContext, file_path: Path, platform: str) -> PlatformType:
    """Map the platform selector to an altool `--type` value.

    With `auto`, .pkg files are macOS and anything else is looked up from
    `DTPlatformName` in the embedded Info.plist. Lookup failures fall back
    to iOS.

    Args:
        ctx: Upload context providing the logger
        file_path: Archive being uploaded
        platform: One of auto, ios, macos, tvos

    Returns:
        The platform type to pass to altool
    """
    if platform in PLATFORM_SELECTORS:
        return PLATFORM_SELECTORS[platform]

    if platform != "auto":
        return _fallback(ctx, f"inconsistent platform: {platform}")

    if file_path.suffix == ".pkg":
        return PlatformType.MACOS

    try:
        plist = read_info_plist(file_path)
    except PackageReadError as e:
        return _fallback(ctx, str(e))

    platform_name = plist.get("DTPlatformName")
    if not platform_name:
        return _fallback(ctx, "no DTPlatformName found in Info.plist")
    if not isinstance(platform_name, str):
        return _fallback(ctx, f"DTPlatformName is not a string: {platform_name!r}")

    platform_type = PLATFORM_NAMES.get(platform_name)
    if platform_type is None:
        return _fallback(ctx, f"unknown platform: {platform_name}")
    return platform_type


def _fallback(ctx: UploadContext, reason: str) -> PlatformType:
    ctx.logger.warning(f"Automatic platform type lookup failed: {reason}")
    ctx.logger.warning("Falling back to using `ios` as platform type")
    return PlatformType.IOS
