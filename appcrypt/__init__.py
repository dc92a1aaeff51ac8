"""
appcrypt - Find the binaries of an installed iOS app that are still encrypted.

This package pulls an application bundle from a jailbroken device, strips
non-essential metadata, and inspects every Mach-O file for an
LC_ENCRYPTION_INFO_64 command to report which executables remain under
FairPlay encryption, grouped by main app and app extension.
"""

__version__ = "0.1.0"
__author__ = "appcrypt Contributors"

from appcrypt.core import (
    BinaryRecord,
    ClassificationResult,
    MachOReader,
    ScanResult,
    SubBundleDescriptor,
    classify,
    scan_bundle,
)

__all__ = [
    "BinaryRecord",
    "ClassificationResult",
    "MachOReader",
    "ScanResult",
    "SubBundleDescriptor",
    "classify",
    "scan_bundle",
    "__version__",
]
