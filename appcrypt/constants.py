"""
Constants used throughout the appcrypt package.

This module contains the Mach-O format numbers, default values, and
constant strings used by various components. Import from here rather
than hardcoding values elsewhere.
"""

from pathlib import Path

# Default paths
DEFAULT_CONFIG_DIR = Path.home() / ".appcrypt"
DEFAULT_WORK_DIR = DEFAULT_CONFIG_DIR / "work"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"

# SSH settings (iproxy 2222 -> 22 on the device)
DEFAULT_SSH_HOST = "localhost"
DEFAULT_SSH_PORT = 2222
DEFAULT_SSH_USER = "mobile"
DEFAULT_SSH_PASSWORD = "alpine"
DEFAULT_SSH_TIMEOUT = 30  # seconds

# Frida settings
DEFAULT_USB_TIMEOUT = 5  # seconds
QUERY_PROCESS = "runningboardd"
HELPER_PROCESS = "chronod"

# Mach-O format (all fields little-endian)
BYTE_ORDER = "<"

# Bundle cleanup allow-lists
REMOVE_BUNDLE_FILES = frozenset(
    {
        "iTunesMetadata.plist",  # iTunes purchase metadata
        "embedded.mobileprovision",  # Embedded provisioning profile
    }
)
REMOVE_BUNDLE_DIRS = frozenset(
    {
        "SC_Info",  # FairPlay keys and provisioning information
        "_CodeSignature",  # Code signature information
    }
)

# Scanning
DEFAULT_SCAN_WORKERS = 1

# Device requirements
REQUIRED_ACCESS = "full"
REQUIRED_PLATFORM = "darwin"
REQUIRED_OS = "ios"
REQUIRED_ARCH = "arm64"
