"""Command-line interface for the altool deploy step."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from altool_deploy.command_builder import UPLOAD_PACKAGE_MIN_XCODE
from altool_deploy.deployer import DeployConfig, perform_upload
from altool_deploy.errors import ConfigurationError
from altool_deploy.models import PackageDetails, UploadContext, UploadOutcome
from altool_deploy.uploader import FakeUploader
from altool_deploy.utils import (
    parse_retry_times,
    redact,
    redact_jwt,
    split_additional_params,
    xcode_major_version,
)

app = typer.Typer(
    name="altool-deploy",
    help="Upload an iOS, tvOS or macOS archive to App Store Connect with altool",
    add_completion=False,
)
console = Console()


def setup_logging(verbose: bool) -> None:
    """Configure logging with Rich handler.

    Args:
        verbose: Enable verbose (DEBUG) logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def run_upload(
    config: DeployConfig,
    package_details: PackageDetails,
    platform: str,
    app_id: str,
    altool_options: str,
    retry_times: str | None,
    xcode_version: int | None,
    dry_run: bool,
    verbose: bool,
) -> int:
    """Validate inputs, upload the archive and report the outcome.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    logger = logging.getLogger("altool_deploy")

    try:
        config.validate()
        additional_params = split_additional_params(altool_options)
        if xcode_version is None:
            if dry_run:
                xcode_version = UPLOAD_PACKAGE_MIN_XCODE
                logger.info(f"[DRY RUN] Assuming Xcode {xcode_version}")
            else:
                xcode_version = xcode_major_version()
    except ConfigurationError as e:
        console.print(f"[red]Input error: {escape(str(e))}[/red]")
        return 1

    logger.info(f"Xcode major version: {xcode_version}")

    ctx = UploadContext(logger=logger, xcode_major_version=xcode_version)
    ctx.retry_times = parse_retry_times(ctx, retry_times)

    file_path = config.file_path

    def dry_run_uploader(args: list[str]) -> FakeUploader:
        logger.info(f"[DRY RUN] Would upload {file_path.name}")
        return FakeUploader.dry_run(file_path.name, ctx)

    outcome = perform_upload(
        ctx,
        file_path,
        package_details,
        platform,
        additional_params,
        config.auth_params(),
        app_id=app_id,
        verbose=verbose,
        secrets=config.secrets,
        uploader_factory=dry_run_uploader if dry_run else None,
    )
    return report(outcome, config.secrets)


def report(outcome: UploadOutcome, secrets: tuple[str, ...]) -> int:
    """Print warnings and the terminal result of an upload.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    for warning in outcome.warnings:
        text = redact_jwt(redact(str(warning), secrets))
        console.print(f"[yellow]Warning: {escape(text)}[/yellow]")

    if outcome.error is not None:
        message = redact_jwt(redact(str(outcome.error), secrets))
        # Text mode failures carry the error output as their message
        if outcome.error_output and outcome.error_output.strip() != message.strip():
            console.print(outcome.error_output, markup=False, highlight=False)
        console.print(f"[bold red]Uploading IPA failed:[/bold red] {escape(message)}")
        return 1

    result = outcome.result
    console.print("\n[bold]Upload Summary:[/bold]")
    console.print(f"  Attempts: {outcome.attempts}")
    if result is not None:
        console.print(f"  {escape(result.success_message)}", highlight=False)
        if result.success_details.delivery_id:
            console.print(f"  Delivery UUID: {result.success_details.delivery_id}")
        if result.success_details.transfer_summary:
            console.print(f"  Transferred: {escape(result.success_details.transfer_summary)}")
    console.print("[green]IPA uploaded[/green]")
    return 0


@app.command()
def upload(
    ipa_path: str = typer.Option(
        "", "--ipa-path", envvar="ipa_path", help="Path of the .ipa to upload"
    ),
    pkg_path: str = typer.Option(
        "",
        "--pkg-path",
        envvar="pkg_path",
        help="Path of the macOS .pkg to upload (takes precedence over --ipa-path)",
    ),
    apple_id: str = typer.Option(
        "", "--itunescon-user", envvar="itunescon_user", help="Apple ID email"
    ),
    password: str = typer.Option(
        "", "--password", envvar="password", help="Apple ID password"
    ),
    app_password: str = typer.Option(
        "",
        "--app-password",
        envvar="app_password",
        help="App-specific password (takes precedence over --password)",
    ),
    api_key_path: str = typer.Option(
        "",
        "--api-key-path",
        envvar="api_key_path",
        help="Path or URL of the App Store Connect API key (AuthKey_<ID>.p8)",
    ),
    api_issuer: str = typer.Option(
        "", "--api-issuer", envvar="api_issuer", help="App Store Connect API issuer ID"
    ),
    platform: str = typer.Option(
        "auto",
        "--platform",
        envvar="platform",
        help="Platform of the archive: auto, ios, macos or tvos",
    ),
    app_id: str = typer.Option(
        "",
        "--app-id",
        envvar="app_id",
        help="App Store Connect Apple ID of the app (Xcode 26 and later)",
    ),
    bundle_id: str = typer.Option(
        "", "--bundle-id", envvar="bundle_id", help="Override CFBundleIdentifier"
    ),
    bundle_version: str = typer.Option(
        "", "--bundle-version", envvar="bundle_version", help="Override CFBundleVersion"
    ),
    bundle_short_version_string: str = typer.Option(
        "",
        "--bundle-short-version-string",
        envvar="bundle_short_version_string",
        help="Override CFBundleShortVersionString",
    ),
    altool_options: str = typer.Option(
        "",
        "--altool-options",
        envvar="altool_options",
        help="Additional altool flags, split like a shell command line",
    ),
    retry_times: str = typer.Option(
        None,
        "--retry-times",
        envvar="retry_times",
        help="Maximum number of upload attempts (default: 10)",
    ),
    xcode_version: int = typer.Option(
        None,
        "--xcode-major-version",
        envvar="xcode_major_version",
        help="Xcode major version (detected with xcodebuild if not set)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Simulate the upload without running altool",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        envvar="verbose_log",
        help="Enable verbose logging",
    ),
) -> None:
    """Upload an archive to App Store Connect.

    Builds the altool command for the selected Xcode, runs it and retries
    attempts that fail with a known transient error.
    """
    setup_logging(verbose)

    config = DeployConfig(
        ipa_path=ipa_path,
        pkg_path=pkg_path,
        apple_id=apple_id,
        password=password,
        app_password=app_password,
        api_key_path=api_key_path,
        api_issuer=api_issuer,
    )
    package_details = PackageDetails(
        bundle_id=bundle_id,
        bundle_version=bundle_version,
        bundle_short_version_string=bundle_short_version_string,
    )

    exit_code = run_upload(
        config,
        package_details,
        platform,
        app_id,
        altool_options,
        retry_times,
        xcode_version,
        dry_run,
        verbose,
    )
    raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
