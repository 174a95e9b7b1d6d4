"""altool deploy - Upload app archives to App Store Connect with retries."""

__version__ = "0.1.0"

from altool_deploy.command_builder import build_altool_command
from altool_deploy.deployer import DeployConfig, perform_upload
from altool_deploy.errors import UploadError
from altool_deploy.models import PackageDetails, PlatformType, UploadContext, UploadResult
from altool_deploy.output_parser import parse_altool_output
from altool_deploy.retry import run_with_retry
from altool_deploy.uploader import AltoolUploader, FakeUploader

__all__ = [
    "build_altool_command",
    "DeployConfig",
    "perform_upload",
    "UploadError",
    "PackageDetails",
    "PlatformType",
    "UploadContext",
    "UploadResult",
    "parse_altool_output",
    "run_with_retry",
    "AltoolUploader",
    "FakeUploader",
]
