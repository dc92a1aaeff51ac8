"""
Frida client for querying jailbroken iOS devices.

This module manages the Frida connection lifecycle, device discovery,
application and process enumeration, and loading RPC scripts into
system processes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from appcrypt.constants import (
    DEFAULT_USB_TIMEOUT,
    QUERY_PROCESS,
    REQUIRED_ACCESS,
    REQUIRED_ARCH,
    REQUIRED_OS,
    REQUIRED_PLATFORM,
)
from appcrypt.core.models import Application
from appcrypt.exceptions import (
    AppNotFoundError,
    FridaConnectionError,
    FridaNotInstalledError,
    JailbreakRequiredError,
    ProcessNotFoundError,
    ScriptError,
)

logger = logging.getLogger(__name__)

SCRIPTS_DIR = Path(__file__).parent / "scripts"
QUERY_SCRIPT = SCRIPTS_DIR / "runningboardd.js"

# Lazy import Frida to provide better error messages
_frida = None


def _get_frida():
    """Lazy import frida module."""
    global _frida
    if _frida is None:
        try:
            import frida

            _frida = frida
        except ImportError as e:
            raise FridaNotInstalledError() from e
    return _frida


@dataclass
class FridaDeviceInfo:
    """System parameters of a Frida device."""

    id: str
    name: str
    type: str  # 'usb', 'remote', 'local'
    access: str = ""  # 'full' or 'limited'
    platform: str = ""  # 'darwin', 'linux', ...
    arch: str = ""  # 'arm64', 'x86_64', ...
    os: str = ""  # 'ios', 'android', ...

    @classmethod
    def from_frida_device(
        cls, device: Any, params: Optional[dict[str, Any]] = None
    ) -> FridaDeviceInfo:
        """Create from a Frida device object and its system parameters."""
        params = params or {}
        os_info = params.get("os") or {}
        return cls(
            id=device.id,
            name=device.name,
            type=device.type,
            access=params.get("access", ""),
            platform=params.get("platform", ""),
            arch=params.get("arch", ""),
            os=os_info.get("id", "") if isinstance(os_info, dict) else str(os_info),
        )

    @property
    def is_jailbroken_ios(self) -> bool:
        """Check if this is a jailbroken 64-bit iOS device."""
        return (
            self.access == REQUIRED_ACCESS
            and self.platform == REQUIRED_PLATFORM
            and self.os == REQUIRED_OS
            and self.arch == REQUIRED_ARCH
        )


class ScriptSession:
    """
    A Frida script loaded into a process.

    Example:
        with client.load_script(source, "runningboardd") as script:
            main = script.call("main", "com.example.App")
    """

    def __init__(self, session: Any, script: Any, process_name: str):
        self._session = session
        self._script = script
        self.process_name = process_name

    def call(self, fn: str, *args: Any) -> Any:
        """
        Invoke an RPC export of the script.

        Raises:
            ScriptError: If the export fails or does not exist.
        """
        try:
            return getattr(self._script.exports_sync, fn)(*args)
        except Exception as e:
            raise ScriptError(
                f"Script call '{fn}' failed", f"Process: {self.process_name}, {e}"
            ) from e

    def close(self) -> None:
        """Unload the script and detach from the process."""
        try:
            self._script.unload()
        except Exception as e:
            logger.debug(f"Error unloading script: {e}")
        try:
            self._session.detach()
        except Exception as e:
            logger.debug(f"Error detaching session: {e}")

    def __enter__(self) -> ScriptSession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class FridaClient:
    """
    Manages the Frida connection to a jailbroken iOS device.

    Example:
        with FridaClient() as client:
            client.require_jailbroken()
            for app in client.list_applications():
                print(app.identifier, app.path)

    Attributes:
        device_id: Target device ID (for USB connection)
        host: Remote Frida host (e.g., "localhost:27042")
    """

    def __init__(
        self,
        device_id: Optional[str] = None,
        host: Optional[str] = None,
    ):
        """
        Initialize Frida client.

        Args:
            device_id: Target device ID. If None, uses the first USB device.
            host: Remote Frida host. Takes precedence over device_id.
        """
        self.device_id = device_id
        self.host = host
        self._device: Optional[Any] = None

    @property
    def device(self) -> Any:
        """Get connected Frida device."""
        if self._device is None:
            raise FridaConnectionError("Not connected to device. Call connect() first.")
        return self._device

    @property
    def is_connected(self) -> bool:
        """Check if connected to a device."""
        return self._device is not None

    def connect(self) -> FridaClient:
        """
        Connect to the target device.

        Returns:
            Self for method chaining.

        Raises:
            FridaConnectionError: If connection fails.
            FridaNotInstalledError: If Frida is not installed.
        """
        frida = _get_frida()

        try:
            if self.host:
                logger.debug(f"Connecting to remote Frida at {self.host}")
                self._device = frida.get_device_manager().add_remote_device(self.host)
            elif self.device_id:
                logger.debug(f"Connecting to device {self.device_id}")
                self._device = frida.get_device(self.device_id)
            else:
                logger.debug("Looking for a USB device")
                self._device = frida.get_usb_device(timeout=DEFAULT_USB_TIMEOUT)

            logger.info(f"Connected to device: {self._device.name}")
            return self

        except frida.ServerNotRunningError as e:
            raise FridaConnectionError(
                "Frida server not running on device",
                "Install frida-server on the device and make sure it is running.",
            ) from e
        except frida.TimedOutError as e:
            raise FridaConnectionError(
                "Connection timed out",
                "No USB device found. Ensure the device is connected.",
            ) from e
        except frida.InvalidArgumentError as e:
            raise FridaConnectionError("Invalid device", str(e)) from e
        except Exception as e:
            raise FridaConnectionError("Failed to connect", str(e)) from e

    def device_info(self) -> FridaDeviceInfo:
        """
        Read the device's system parameters.

        Raises:
            FridaConnectionError: If the parameters cannot be queried.
        """
        try:
            params = self.device.query_system_parameters()
        except FridaConnectionError:
            raise
        except Exception as e:
            raise FridaConnectionError("Failed to get device parameters", str(e)) from e
        return FridaDeviceInfo.from_frida_device(self.device, params)

    def require_jailbroken(self) -> FridaDeviceInfo:
        """
        Ensure the device is a jailbroken 64-bit iOS device.

        Raises:
            JailbreakRequiredError: If it is not.
        """
        info = self.device_info()
        if not info.is_jailbroken_ios:
            raise JailbreakRequiredError(
                f"access={info.access}, platform={info.platform}, "
                f"os={info.os}, arch={info.arch}"
            )
        return info

    def list_applications(self) -> list[Application]:
        """
        List installed applications with their bundle paths.

        Raises:
            FridaConnectionError: If enumeration fails.
        """
        try:
            apps = self.device.enumerate_applications(scope="full")
        except FridaConnectionError:
            raise
        except Exception as e:
            raise FridaConnectionError("Failed to enumerate apps", str(e)) from e
        return [Application.from_frida_app(app) for app in apps]

    def get_application(self, bundle_id: str) -> Application:
        """
        Find an installed application by bundle identifier.

        Raises:
            AppNotFoundError: If the app is not installed.
        """
        for app in self.list_applications():
            if app.identifier == bundle_id:
                return app
        raise AppNotFoundError(bundle_id)

    def get_process_id(self, name: str) -> int:
        """
        Find the PID of a running process by name.

        Raises:
            ProcessNotFoundError: If no process has that name.
        """
        try:
            processes = self.device.enumerate_processes(scope="metadata")
        except FridaConnectionError:
            raise
        except Exception as e:
            raise FridaConnectionError("Failed to enumerate processes", str(e)) from e

        for process in processes:
            if process.name == name:
                return process.pid
        raise ProcessNotFoundError(name)

    def load_script(self, source: str, process_name: str) -> ScriptSession:
        """
        Attach to a process and load a script into it.

        Args:
            source: JavaScript source code.
            process_name: Name of the process to attach to.

        Raises:
            ScriptError: If attaching or loading fails.
        """
        try:
            session = self.device.attach(process_name)
        except FridaConnectionError:
            raise
        except Exception as e:
            raise ScriptError(f"Failed to attach to {process_name}", str(e)) from e

        try:
            script = session.create_script(source)
            script.load()
        except Exception as e:
            try:
                session.detach()
            except Exception as detach_error:
                logger.debug(f"Error detaching session: {detach_error}")
            raise ScriptError("Failed to load script", str(e)) from e

        logger.debug(f"Loaded script into {process_name}")
        return ScriptSession(session, script, process_name)

    def close(self) -> None:
        """Forget the connected device."""
        self._device = None
        logger.debug("Frida client closed")

    def __enter__(self) -> FridaClient:
        """Context manager entry - connect to device."""
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close connection."""
        self.close()


def load_query_script(client: FridaClient) -> ScriptSession:
    """Load the bundle query script into runningboardd."""
    return client.load_script(QUERY_SCRIPT.read_text(), QUERY_PROCESS)
