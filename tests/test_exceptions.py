"""Tests for the exception hierarchy."""

import pytest

from appcrypt.exceptions import (
    AppcryptError,
    AppNotFoundError,
    ContainerError,
    ContainerReadError,
    DeviceError,
    FridaNotInstalledError,
    JailbreakRequiredError,
    ProcessNotFoundError,
    ScanCancelledError,
    ScanError,
    SSHConnectionError,
    TransferError,
    TruncatedContainerError,
)


def test_message_and_details():
    """Should join message and details."""
    assert str(AppcryptError("Something failed", "why")) == "Something failed: why"
    assert str(AppcryptError("Something failed")) == "Something failed"


@pytest.mark.parametrize(
    "error, base",
    [
        (ScanError("/tmp/x"), AppcryptError),
        (ScanCancelledError("/tmp/x"), ScanError),
        (ContainerReadError("/tmp/x"), ContainerError),
        (TruncatedContainerError("/tmp/x", 8), ContainerError),
        (AppNotFoundError("com.example.App"), DeviceError),
        (ProcessNotFoundError("chronod"), DeviceError),
        (SSHConnectionError("localhost:2222"), TransferError),
    ],
)
def test_hierarchy(error, base):
    """Every error should derive from its category."""
    assert isinstance(error, base)
    assert isinstance(error, AppcryptError)


def test_scan_error_details():
    assert str(ScanError("/tmp/x", "not a directory")) == (
        "Bundle scan failed: Root: /tmp/x, Reason: not a directory"
    )


def test_container_errors_keep_path():
    """Container errors should expose the offending path."""
    error = TruncatedContainerError("App", 40)

    assert error.path == "App"
    assert error.message == "Container truncated at offset 40"
    assert ContainerReadError("App", "Permission denied").message == (
        "Failed to read file (Permission denied)"
    )


def test_hints():
    """Errors should carry actionable details."""
    assert "pip install frida" in str(FridaNotInstalledError())
    assert "Found: access=limited" in str(JailbreakRequiredError("access=limited"))
    assert "start it manually" in str(
        ProcessNotFoundError("chronod", "Please start it manually.")
    )
