"""Pytest configuration and shared fixtures."""

import logging
import plistlib
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from tenacity import wait_none

from altool_deploy.models import UploadContext

AUTH_ERROR_JSON = """
{
  "os-version" : "Version 15.6.1 (Build 24G90)",
  "product-errors" : [
    {
      "code" : -19209,
      "message" : "Unable to authenticate.",
      "underlying-errors" : [

      ],
      "user-info" : {
        "NSLocalizedDescription" : "Unable to authenticate."
      }
    }
  ],
  "tool-path" : "/Applications/Xcode26RC.app/Contents/SharedFrameworks/ContentDelivery.framework/Resources",
  "tool-version" : "26.0.18 (170018)"
}
"""

SUCCESS_JSON = """
{
  "details" : {
    "delivery-uuid" : "2d29ae8f-a628-4fee-bb75-d0fa4331d23c",
    "transferred" : "19555969 bytes in 1.831 seconds (10.7MB/s, 85.437Mbps)"
  },
  "os-version" : "Version 15.6.1 (Build 24G90)",
  "success-message" : "No errors uploading archive at '/tmp/deploy/Application Loader Test.ipa'.",
  "tool-path" : "/Applications/Xcode26RC.app/Contents/SharedFrameworks/ContentDelivery.framework/Resources",
  "tool-version" : "26.0.18 (170018)"
}"""

UNDERLYING_ERROR_JSON = r"""
{
	"os-version" : "Version 15.6.1 (Build 24G90)",
	"product-errors" : [
		{
			"code" : 409,
			"message" : "Validation failed",
			"underlying-errors" : [
				{
					"code" : -19241,
					"message" : "Validation failed",
					"underlying-errors" : [

					],
					"user-info" : {
						"NSLocalizedDescription" : "Validation failed",
						"NSLocalizedFailureReason" : "Upload limit reached. Please wait 1 day and try again.",
						"code" : "STATE_ERROR.VALIDATION_ERROR",
						"detail" : "Upload limit reached. Please wait 1 day and try again.",
						"id" : "b753c995-ba50-4213-a173-fe74e14f0b48",
						"status" : "409",
						"title" : "Validation failed"
					}
				}
			],
			"user-info" : {
				"NSLocalizedDescription" : "Validation failed",
				"NSLocalizedFailureReason" : "Upload limit reached. Please wait 1 day and try again. (ID: b753c995-ba50-4213-a173-fe74e14f0b48)",
				"NSUnderlyingError" : "Error Domain=IrisAPI Code=-19241 \"Validation failed\"",
				"iris-code" : "STATE_ERROR.VALIDATION_ERROR"
			}
		}
	],
	"tool-path" : "/Applications/Xcode26RC.app/Contents/SharedFrameworks/ContentDelivery.framework/Resources",
	"tool-version" : "26.0.18 (170018)"
}
"""

WARNINGS_JSON = r"""
{
  "details" : {
    "delivery-uuid" : "6eb04796-467f-4e58-87c1-97afae95ce8e",
    "transferred" : "19555997 bytes in 1.532 seconds (12.8MB/s, 102.106Mbps)"
  },
  "os-version" : "Version 15.6.1 (Build 24G90)",
  "success-message" : "No errors, 2 warnings, uploading archive at '/tmp/deploy/Application Loader Test.ipa'.",
  "tool-version" : "26.0.18 (170018)",
  "warnings" : [
    {
      "code" : -19237,
      "message" : "A non-validation error occurred during validation.",
      "underlying-errors" : [
        {
          "code" : -19237,
          "message" : "The server returned unexpected content.",
          "underlying-errors" : [

          ],
          "user-info" : {
            "NSLocalizedDescription" : "The server returned unexpected content.",
            "NSLocalizedFailureReason" : "Internal Server Error\n\nRequest ID: NWCBL6W4YYM6MOFQFOQTQANWOU.0.0\n"
          }
        }
      ],
      "user-info" : {
        "NSLocalizedDescription" : "A non-validation error occurred during validation.",
        "NSLocalizedFailureReason" : "Skipping validation."
      }
    },
    {
      "code" : -19237,
      "message" : "The server returned unexpected content.",
      "underlying-errors" : [

      ],
      "user-info" : {
        "NSLocalizedDescription" : "The server returned unexpected content.",
        "NSLocalizedFailureReason" : "Internal Server Error\n\nRequest ID: NWCBL6W4YYM6MOFQFOQTQANWOU.0.0\n"
      }
    }
  ]
}"""

MULTIPLE_ERRORS_JSON = """
{
  "product-errors" : [
    {
      "code" : -19232,
      "message" : "The provided entity includes an attribute with a value that has already been used",
      "user-info" : {
        "NSLocalizedDescription" : "The provided entity includes an attribute with a value that has already been used",
        "NSLocalizedFailureReason" : "The bundle version must be higher than the previously uploaded version.",
        "iris-code" : "ENTITY_ERROR.ATTRIBUTE.INVALID.DUPLICATE"
      }
    },
    {
      "code" : -19209,
      "message" : "Unable to authenticate.",
      "user-info" : {
        "NSLocalizedDescription" : "Unable to authenticate."
      }
    },
    {
      "code" : 0,
      "message" : "Failed to upload package.",
      "user-info" : {
        "NSLocalizedDescription" : "Failed to upload package."
      }
    }
  ],
  "tool-version" : "26.0.18 (170018)"
}
"""


@pytest.fixture
def ctx() -> UploadContext:
    """Return an upload context for Xcode 26 that retries without waiting."""
    return UploadContext(
        logger=logging.getLogger("altool_deploy.tests"),
        xcode_major_version=26,
        retry_times=10,
        wait=wait_none(),
    )


@pytest.fixture
def make_ipa(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory that writes a minimal .ipa with the given Info.plist."""

    def factory(info: dict[str, Any] | None, name: str = "App.ipa") -> Path:
        ipa_path = tmp_path / name
        with zipfile.ZipFile(ipa_path, "w") as archive:
            if info is not None:
                archive.writestr("Payload/App.app/Info.plist", plistlib.dumps(info))
            archive.writestr("Payload/App.app/App", b"binary")
        return ipa_path

    return factory


@pytest.fixture
def ios_info() -> dict[str, str]:
    """Return Info.plist values of an iOS app."""
    return {
        "CFBundleIdentifier": "com.example.app",
        "CFBundleVersion": "42",
        "CFBundleShortVersionString": "1.2.0",
        "DTPlatformName": "iphoneos",
    }
