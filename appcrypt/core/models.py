"""
Data models for bundle scanning and binary classification.

This module defines the records produced by the Mach-O reader, the
sub-bundle descriptors supplied by the device session, and the results
returned by the scanner and the classifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any, Optional


class MachOFileType(IntEnum):
    """Mach-O header file types."""

    MH_OBJECT = 0x1
    MH_EXECUTE = 0x2
    MH_FVMLIB = 0x3
    MH_CORE = 0x4
    MH_PRELOAD = 0x5
    MH_DYLIB = 0x6
    MH_DYLINKER = 0x7
    MH_BUNDLE = 0x8
    MH_DYLIB_STUB = 0x9
    MH_DSYM = 0xA
    MH_KEXT_BUNDLE = 0xB
    MH_FILESET = 0xC


@dataclass(frozen=True)
class BinaryRecord:
    """
    One parsed Mach-O file.

    Attributes:
        path: Location of the file; relative to the bundle root once scanned.
        file_type: Header file type, verbatim (see MachOFileType).
        crypt_info_offset: File offset of the LC_ENCRYPTION_INFO_64 command,
            0 if the file has none.
        crypt_offset: Start of the encrypted range.
        crypt_size: Size of the encrypted range in bytes.
        crypt_id: Encryption system ID (0 = not encrypted).
    """

    path: str
    file_type: int
    crypt_info_offset: int = 0
    crypt_offset: int = 0
    crypt_size: int = 0
    crypt_id: int = 0

    @property
    def is_encrypted(self) -> bool:
        """Check if the binary is still encrypted."""
        return self.crypt_id != 0

    @property
    def is_executable(self) -> bool:
        """Check if the binary is a standalone executable."""
        return self.file_type == MachOFileType.MH_EXECUTE

    @property
    def file_type_name(self) -> str:
        """Human-readable file type."""
        try:
            return MachOFileType(self.file_type).name
        except ValueError:
            return f"0x{self.file_type:x}"

    def with_path(self, path: str) -> BinaryRecord:
        """Return a copy of this record at another path."""
        return replace(self, path=path)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and JSON output."""
        return {
            "path": self.path,
            "file_type": self.file_type_name,
            "crypt_info_offset": self.crypt_info_offset,
            "crypt_offset": self.crypt_offset,
            "crypt_size": self.crypt_size,
            "crypt_id": self.crypt_id,
        }

    def __str__(self) -> str:
        return (
            f"{self.path} ({self.file_type_name}, cryptid={self.crypt_id}, "
            f"cryptoff=0x{self.crypt_offset:x}, cryptsize={self.crypt_size})"
        )


def _strip_private(path: str) -> str:
    """/private/var/... and /var/... name the same location on iOS."""
    if path.startswith("/private/"):
        return path[len("/private"):]
    return path


@dataclass(frozen=True)
class SubBundleDescriptor:
    """
    A nested bundle (app extension) that owns every binary under its path.

    Only bundle_path takes part in classification; executable_name and
    absolute_path are informational.
    """

    id: str
    bundle_path: str
    executable_name: str = ""
    absolute_path: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SubBundleDescriptor:
        """Create from an `extensions` payload of the query script."""
        return cls(
            id=str(data["id"]),
            bundle_path=str(data["path"]),
            executable_name=str(data.get("executable", "")),
            absolute_path=str(data.get("absolutePath", "")),
        )

    def relative_to(self, app_path: str) -> SubBundleDescriptor:
        """
        Rebase an absolute device path onto the app bundle root.

        "/var/.../App.app/PlugIns/Foo.appex" relative to "/var/.../App.app"
        becomes "PlugIns/Foo.appex". Paths outside app_path are unchanged.
        """
        root = _strip_private(app_path).rstrip("/") + "/"
        bundle_path = _strip_private(self.bundle_path)
        if bundle_path.startswith(root):
            return replace(self, bundle_path=bundle_path[len(root):])
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "id": self.id,
            "bundle_path": self.bundle_path,
            "executable_name": self.executable_name,
            "absolute_path": self.absolute_path,
        }


class DiagnosticKind(Enum):
    """Kinds of non-fatal problems reported alongside results."""

    UNREADABLE_FILE = "unreadable_file"
    CORRUPT_CONTAINER = "corrupt_container"
    UNREADABLE_DIRECTORY = "unreadable_directory"
    STRAY_EXECUTABLE = "stray_executable"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal problem found while scanning or classifying."""

    kind: DiagnosticKind
    path: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {"kind": self.kind.value, "path": self.path, "message": self.message}

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.path}: {self.message}"


@dataclass
class ScanResult:
    """Encrypted binaries found under a bundle root."""

    root: str
    records: list[BinaryRecord] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    files_scanned: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "root": self.root,
            "files_scanned": self.files_scanned,
            "records": [r.to_dict() for r in self.records],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


@dataclass
class ClassificationResult:
    """
    Encrypted binaries partitioned between the main app and its extensions.

    Every classified record appears exactly once, either in main_binaries
    or in one of the sub_bundle_binaries groups.
    """

    main_binaries: dict[str, BinaryRecord] = field(default_factory=dict)
    sub_bundle_binaries: dict[str, dict[str, BinaryRecord]] = field(
        default_factory=dict
    )
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of records across all groups."""
        return len(self.main_binaries) + sum(
            len(group) for group in self.sub_bundle_binaries.values()
        )

    def paths(self) -> list[str]:
        """All classified paths, main group first."""
        paths = list(self.main_binaries)
        for group in self.sub_bundle_binaries.values():
            paths.extend(group)
        return paths

    def owner_of(self, path: str) -> Optional[str]:
        """
        Sub-bundle ID owning path, None for the main app.

        Raises:
            KeyError: If path was not classified.
        """
        if path in self.main_binaries:
            return None
        for sub_id, group in self.sub_bundle_binaries.items():
            if path in group:
                return sub_id
        raise KeyError(path)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "main": [r.to_dict() for r in self.main_binaries.values()],
            "extensions": {
                sub_id: [r.to_dict() for r in group.values()]
                for sub_id, group in self.sub_bundle_binaries.items()
            },
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


@dataclass
class Application:
    """An application installed on the device."""

    identifier: str
    name: str
    version: str = ""
    build: str = ""
    path: str = ""  # Bundle path on the device
    pid: int = 0  # 0 if not running

    @classmethod
    def from_frida_app(cls, app: Any) -> Application:
        """Create from a Frida application object."""
        params = getattr(app, "parameters", None) or {}
        return cls(
            identifier=app.identifier,
            name=app.name,
            version=str(params.get("version", "")),
            build=str(params.get("build", "")),
            path=str(params.get("path", "")),
            pid=getattr(app, "pid", 0) or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "identifier": self.identifier,
            "name": self.name,
            "version": self.version,
            "build": self.build,
            "path": self.path,
            "pid": self.pid,
        }
