"""
Device access for appcrypt.

This package talks to a jailbroken iOS device: Frida for enumerating
apps and querying the running system, SSH/SFTP for copying an app
bundle to local storage.

Example:
    from appcrypt.device import FridaClient, BundleTransfer

    with FridaClient() as client:
        app = client.get_application("com.example.App")

    with BundleTransfer("localhost", 2222) as transfer:
        transfer.pull_dir(app.path, Path("./work/com.example.App"))
"""

from appcrypt.device.frida_client import (
    FridaClient,
    FridaDeviceInfo,
    ScriptSession,
    load_query_script,
)
from appcrypt.device.transfer import BundleTransfer

__all__ = [
    "BundleTransfer",
    "FridaClient",
    "FridaDeviceInfo",
    "ScriptSession",
    "load_query_script",
]
