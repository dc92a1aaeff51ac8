"""
Pytest configuration and fixtures for appcrypt tests.

This module provides builders for synthetic Mach-O files and a sample
app bundle used across the test suite.
"""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Callable, Optional
from unittest.mock import MagicMock

import pytest

from appcrypt.config import Config, SSHConfig


MH_MAGIC_64 = 0xFEEDFACF
MH_EXECUTE = 0x2
MH_DYLIB = 0x6
LC_SEGMENT_64 = 0x19
LC_ENCRYPTION_INFO_64 = 0x2C

TEST_BUNDLE_ID = "com.example.MainApp"
TEST_APP_PATH = "/private/var/containers/Bundle/Application/0A1B2C3D/MainApp.app"


def load_command(cmd: int, payload: bytes = b"", cmdsize: Optional[int] = None) -> bytes:
    """Build a load command; cmdsize defaults to the real size."""
    size = 8 + len(payload) if cmdsize is None else cmdsize
    return struct.pack("<II", cmd, size) + payload


def encryption_command(
    cryptoff: int = 0x4000,
    cryptsize: int = 0x8000,
    cryptid: int = 1,
) -> bytes:
    """Build an LC_ENCRYPTION_INFO_64 command."""
    return load_command(
        LC_ENCRYPTION_INFO_64,
        struct.pack("<IIII", cryptoff, cryptsize, cryptid, 0),
    )


def macho(
    commands: list[bytes] = (),
    filetype: int = MH_EXECUTE,
    magic: int = MH_MAGIC_64,
    ncmds: Optional[int] = None,
    trailer: bytes = b"\x00" * 64,
) -> bytes:
    """Build a 64-bit Mach-O image from load commands."""
    body = b"".join(commands)
    header = struct.pack(
        "<IIIIIIII",
        magic,
        0x0100000C,  # CPU_TYPE_ARM64
        0,
        filetype,
        len(commands) if ncmds is None else ncmds,
        len(body),
        0,
        0,
    )
    return header + body + trailer


@pytest.fixture
def build_macho() -> Callable[..., bytes]:
    """Builder for synthetic Mach-O images."""
    return macho


@pytest.fixture
def build_encryption_command() -> Callable[..., bytes]:
    """Builder for LC_ENCRYPTION_INFO_64 commands."""
    return encryption_command


@pytest.fixture
def build_load_command() -> Callable[..., bytes]:
    """Builder for arbitrary load commands."""
    return load_command


@pytest.fixture
def sample_bundle(tmp_path: Path) -> Path:
    """
    Create a small app bundle.

    MainApp                              executable, cryptid 1
    Plugins/Foo.appex/Foo                executable, cryptid 1
    Frameworks/Lib.framework/Lib         library, cryptid 0
    Info.plist, Assets.car               not Mach-O
    """
    root = tmp_path / "MainApp.app"
    (root / "Plugins" / "Foo.appex").mkdir(parents=True)
    (root / "Frameworks" / "Lib.framework").mkdir(parents=True)

    (root / "MainApp").write_bytes(macho([encryption_command(cryptid=1)]))
    (root / "Plugins" / "Foo.appex" / "Foo").write_bytes(
        macho([encryption_command(cryptoff=0x8000, cryptid=1)])
    )
    (root / "Frameworks" / "Lib.framework" / "Lib").write_bytes(
        macho([encryption_command(cryptid=0)], filetype=MH_DYLIB)
    )
    (root / "Info.plist").write_bytes(b"<?xml version=\"1.0\"?><plist></plist>")
    (root / "Assets.car").write_bytes(b"BOMStore" + b"\x00" * 32)

    return root


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Create a test configuration with temporary directories."""
    return Config(
        config_dir=tmp_path / "config",
        work_dir=tmp_path / "work",
        ssh=SSHConfig(host="device.local", port=2222),
    )


@pytest.fixture
def mock_frida_app() -> MagicMock:
    """Create a mock Frida application object."""
    app = MagicMock()
    app.identifier = TEST_BUNDLE_ID
    app.name = "MainApp"
    app.pid = 0
    app.parameters = {"version": "1.2.3", "build": "45", "path": TEST_APP_PATH}
    return app
