"""
Custom exceptions for the appcrypt package.

All appcrypt-specific exceptions inherit from AppcryptError to allow
catching all package exceptions with a single except clause.
"""

from typing import Optional


class AppcryptError(Exception):
    """Base exception for all appcrypt errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


# Scan errors
class ScanError(AppcryptError):
    """The bundle root could not be traversed."""

    def __init__(self, root: str, reason: Optional[str] = None):
        self.root = root
        details = f"Root: {root}"
        if reason:
            details += f", Reason: {reason}"
        super().__init__("Bundle scan failed", details)


class ScanCancelledError(ScanError):
    """The scan was cancelled by the caller between file visits."""

    def __init__(self, root: str):
        super().__init__(root, "cancelled")


# Container errors
class ContainerError(AppcryptError):
    """Base class for errors reading a single Mach-O container."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message, f"Path: {path}" if path else None)


class ContainerReadError(ContainerError):
    """The file could not be opened or read."""

    def __init__(self, path: str, reason: str = ""):
        self.reason = reason
        message = "Failed to read file"
        if reason:
            message += f" ({reason})"
        super().__init__(message, path)


class TruncatedContainerError(ContainerError):
    """A Mach-O container ended before its load commands did."""

    def __init__(self, path: Optional[str] = None, offset: int = 0):
        self.offset = offset
        super().__init__(f"Container truncated at offset {offset}", path)


# Device errors
class DeviceError(AppcryptError):
    """Base class for device and instrumentation errors."""

    pass


class FridaConnectionError(DeviceError):
    """Failed to connect to Frida on device."""

    def __init__(
        self,
        message: str = "Failed to connect to Frida on device",
        details: Optional[str] = None,
    ):
        super().__init__(message, details)


class FridaNotInstalledError(DeviceError):
    """Frida is not installed or available."""

    def __init__(self):
        super().__init__(
            "Frida not installed",
            "Install with: pip install frida",
        )


class JailbreakRequiredError(DeviceError):
    """Device must be a jailbroken 64-bit iOS device."""

    def __init__(self, reason: str = ""):
        details = "A jailbroken 64-bit iOS device with full Frida access is required."
        if reason:
            details += f" Found: {reason}"
        super().__init__("Jailbreak required", details)


class AppNotFoundError(DeviceError):
    """Target app not found on device."""

    def __init__(self, bundle_id: str):
        self.bundle_id = bundle_id
        super().__init__(
            "App not found on device",
            f"Bundle ID: {bundle_id}",
        )


class ProcessNotFoundError(DeviceError):
    """A required process is not running on the device."""

    def __init__(self, name: str, hint: str = ""):
        self.name = name
        details = f"Process: {name}"
        if hint:
            details += f". {hint}"
        super().__init__("Process not running", details)


class ScriptError(DeviceError):
    """An instrumentation script failed to load or returned bad data."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message, details)


# Transfer errors
class TransferError(AppcryptError):
    """Base class for bundle transfer errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message, details)


class SSHConnectionError(TransferError):
    """Failed to establish SSH connection to device."""

    def __init__(self, host: str, reason: str = ""):
        self.host = host
        details = f"Host: {host}"
        if reason:
            details += f", Reason: {reason}"
        super().__init__("SSH connection failed", details)
