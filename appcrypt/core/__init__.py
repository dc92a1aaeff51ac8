"""
Core bundle inspection.

This package contains the Mach-O reader, the bundle scanner, the
ownership classifier, and the bundle cleanup used before scanning.

Example:
    from appcrypt.core import scan_bundle, classify, SubBundleDescriptor

    scan = scan_bundle("./work/com.example.App")
    result = classify(
        scan.records,
        "App",
        [SubBundleDescriptor(id="com.example.App.widget", bundle_path="PlugIns/Widget.appex")],
    )
"""

from appcrypt.core.classifier import classify
from appcrypt.core.cleanup import cleanup_bundle
from appcrypt.core.macho import LoadCommand, MachOMagic, MachOReader
from appcrypt.core.models import (
    Application,
    BinaryRecord,
    ClassificationResult,
    Diagnostic,
    DiagnosticKind,
    MachOFileType,
    ScanResult,
    SubBundleDescriptor,
)
from appcrypt.core.scanner import scan_bundle

__all__ = [
    "Application",
    "BinaryRecord",
    "ClassificationResult",
    "Diagnostic",
    "DiagnosticKind",
    "LoadCommand",
    "MachOFileType",
    "MachOMagic",
    "MachOReader",
    "ScanResult",
    "SubBundleDescriptor",
    "classify",
    "cleanup_bundle",
    "scan_bundle",
]
