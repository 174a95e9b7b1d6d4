"""Wire package inspection, command building and retrying into one upload."""

import shlex
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from altool_deploy.command_builder import UPLOAD_PACKAGE_MIN_XCODE, build_altool_command
from altool_deploy.errors import ConfigurationError, PackageReadError
from altool_deploy.models import PackageDetails, UploadContext, UploadOutcome
from altool_deploy.package_reader import read_package_details
from altool_deploy.retry import run_with_retry
from altool_deploy.uploader import AltoolUploader, Uploader
from altool_deploy.utils import api_key_id, redact, redact_jwt


@dataclass(frozen=True)
class DeployConfig:
    """Step inputs describing what to upload and how to authenticate."""

    ipa_path: str = ""
    pkg_path: str = ""
    apple_id: str = ""
    password: str = field(default="", repr=False)
    app_password: str = field(default="", repr=False)
    api_key_path: str = field(default="", repr=False)
    api_issuer: str = ""

    @property
    def file_path(self) -> Path:
        """The archive to upload; a macOS package wins over an ipa."""
        return Path(self.pkg_path or self.ipa_path)

    @property
    def effective_password(self) -> str:
        """The app-specific password if given, the account password otherwise."""
        return self.app_password or self.password

    @property
    def secrets(self) -> tuple[str, ...]:
        return tuple(s for s in (self.password, self.app_password) if s)

    def validate(self) -> None:
        """Check that an archive and exactly one kind of credential is given.

        Raises:
            ConfigurationError: If inputs are missing or contradictory
        """
        if not self.ipa_path and not self.pkg_path:
            raise ConfigurationError("neither ipa_path nor pkg_path is provided")

        is_api_key_auth = bool(self.api_key_path or self.api_issuer)
        is_apple_id_auth = bool(self.app_password or self.password or self.apple_id)

        if is_api_key_auth == is_apple_id_auth:
            raise ConfigurationError(
                "one type of authentication required, either provide itunescon_user "
                "with password/app_password or api_key_path with api_issuer"
            )

        if is_apple_id_auth:
            if not self.apple_id:
                raise ConfigurationError("no itunescon_user provided")
            if not self.effective_password:
                raise ConfigurationError("neither password nor app_password is provided")
        else:
            if not self.api_issuer:
                raise ConfigurationError("no api_issuer provided")
            if not self.api_key_path:
                raise ConfigurationError("no api_key_path provided")

    def auth_params(self) -> list[str]:
        """altool flags for the configured authentication method."""
        if self.api_key_path:
            return ["--apiKey", api_key_id(self.api_key_path), "--apiIssuer", self.api_issuer]
        return ["-u", self.apple_id, "-p", self.effective_password]


def perform_upload(
    ctx: UploadContext,
    file_path: Path,
    package_details: PackageDetails,
    platform: str,
    additional_params: list[str],
    auth_params: list[str],
    app_id: str = "",
    verbose: bool = False,
    secrets: tuple[str, ...] = (),
    uploader_factory: Callable[[list[str]], Uploader] | None = None,
) -> UploadOutcome:
    """Upload an archive with altool, retrying transient failures.

    Args:
        ctx: Upload context (logger, Xcode version, attempt budget, wait)
        file_path: Archive to upload
        package_details: Explicit bundle identity overrides
        platform: Platform selector (auto, ios, macos, tvos)
        additional_params: Extra altool flags
        auth_params: Authentication flag/value pairs
        app_id: App Store Connect Apple ID of the app
        verbose: Ask altool for verbose output
        secrets: Values to redact from logged command and output
        uploader_factory: Creates the uploader for the built arguments;
            defaults to running altool

    Returns:
        The terminal outcome with redacted output; `error` is None on success
    """
    if (
        app_id
        and ctx.xcode_major_version >= UPLOAD_PACKAGE_MIN_XCODE
        and package_details.has_missing_fields()
    ):
        try:
            package_details = read_package_details(file_path, package_details)
        except PackageReadError as e:
            return UploadOutcome(
                error=ConfigurationError(
                    f"App ID is set, but bundle ID, version and short version "
                    f"could not be determined: {e}"
                )
            )

    args = build_altool_command(
        ctx,
        file_path,
        package_details,
        platform,
        additional_params,
        auth_params,
        app_id=app_id,
        verbose=verbose,
    )

    ctx.logger.info(f"Uploading - {file_path.name} ...")
    ctx.logger.info(f"$ {redact(shlex.join(['xcrun', *args]), secrets)}")

    if uploader_factory is None:
        uploader: Uploader = AltoolUploader(ctx, args)
    else:
        uploader = uploader_factory(args)

    outcome = run_with_retry(ctx, uploader.upload)
    outcome.output = redact_jwt(redact(outcome.output, secrets))
    outcome.error_output = redact_jwt(redact(outcome.error_output, secrets))

    ctx.logger.debug(f"altool output:\n{outcome.output}")
    return outcome
