"""
Mach-O header and load command reading.

This module reads just enough of a 64-bit Mach-O file to tell whether it
is still FairPlay encrypted: the mach_header_64, the stream of load
commands, and the payload of the last LC_ENCRYPTION_INFO_64 command.

Every field is decoded explicitly from a byte cursor in little-endian
order. Load commands are self-describing: the cursor always moves to
the start of a command plus its declared cmdsize.

References:
    - <mach-o/loader.h>
    - Apple Mach-O Reference
"""

from __future__ import annotations

import io
import logging
import os
import struct
from enum import IntEnum
from typing import BinaryIO, Optional

from appcrypt.constants import BYTE_ORDER
from appcrypt.core.models import BinaryRecord
from appcrypt.exceptions import ContainerReadError, TruncatedContainerError

logger = logging.getLogger(__name__)


class MachOMagic(IntEnum):
    """Mach-O file magic numbers, as read in little-endian order."""

    MH_MAGIC = 0xFEEDFACE
    MH_CIGAM = 0xCEFAEDFE
    MH_MAGIC_64 = 0xFEEDFACF
    MH_CIGAM_64 = 0xCFFAEDFE
    FAT_MAGIC = 0xCAFEBABE
    FAT_CIGAM = 0xBEBAFECA


class LoadCommand(IntEnum):
    """Mach-O load command types."""

    LC_SEGMENT = 0x1
    LC_SYMTAB = 0x2
    LC_LOAD_DYLIB = 0xC
    LC_SEGMENT_64 = 0x19
    LC_UUID = 0x1B
    LC_CODE_SIGNATURE = 0x1D
    LC_ENCRYPTION_INFO = 0x21
    LC_ENCRYPTION_INFO_64 = 0x2C


# magic, cputype, cpusubtype, filetype, ncmds, sizeofcmds, flags, reserved
_HEADER = struct.Struct(f"{BYTE_ORDER}IIIIIIII")
# cmd, cmdsize
_LOAD_COMMAND = struct.Struct(f"{BYTE_ORDER}II")
# cryptoff, cryptsize, cryptid, pad
_ENCRYPTION_INFO = struct.Struct(f"{BYTE_ORDER}IIII")
_MAGIC = struct.Struct(f"{BYTE_ORDER}I")


class _Cursor:
    """Bounds-checked reads and seeks over a seekable binary stream."""

    def __init__(self, stream: BinaryIO, path: Optional[str]):
        self.stream = stream
        self.path = path
        self.size = stream.seek(0, io.SEEK_END)
        stream.seek(0)

    @property
    def position(self) -> int:
        return self.stream.tell()

    @property
    def remaining(self) -> int:
        return self.size - self.position

    def read(self, layout: struct.Struct) -> tuple[int, ...]:
        if layout.size > self.remaining:
            raise TruncatedContainerError(self.path, self.position)
        return layout.unpack(self.stream.read(layout.size))

    def seek(self, offset: int) -> None:
        # Seeking past the end is allowed; the next read fails instead
        self.stream.seek(offset)


class MachOReader:
    """
    Reader for the encryption state of 64-bit Mach-O files.

    Example:
        record = MachOReader.read("Payload/App.app/App")
        if record is not None and record.is_encrypted:
            print(f"Encrypted: {record.crypt_size} bytes at {record.crypt_offset}")
    """

    @staticmethod
    def read(path: str | os.PathLike[str]) -> Optional[BinaryRecord]:
        """
        Read a file from disk.

        Args:
            path: File to read.

        Returns:
            BinaryRecord for a 64-bit Mach-O file, None for anything else,
            including truncated or corrupt containers.

        Raises:
            ContainerReadError: If the file cannot be opened or read.
        """
        path = os.fspath(path)
        try:
            with open(path, "rb") as f:
                return MachOReader.parse(f, path)
        except TruncatedContainerError as e:
            logger.warning(f"Skipping corrupt Mach-O file: {e}")
            return None
        except OSError as e:
            raise ContainerReadError(path, e.strerror or str(e)) from e

    @staticmethod
    def parse_bytes(data: bytes, path: Optional[str] = None) -> Optional[BinaryRecord]:
        """
        Parse an in-memory Mach-O image.

        Raises:
            TruncatedContainerError: If the data ends inside a load command.
        """
        return MachOReader.parse(io.BytesIO(data), path)

    @staticmethod
    def parse(stream: BinaryIO, path: Optional[str] = None) -> Optional[BinaryRecord]:
        """
        Parse a seekable binary stream positioned anywhere.

        Args:
            stream: Stream to parse; it is read from offset 0.
            path: Path stored in the returned record.

        Returns:
            BinaryRecord if the stream starts with MH_MAGIC_64, None otherwise.
            The record's crypt fields stay 0 if there is no
            LC_ENCRYPTION_INFO_64 command.

        Raises:
            TruncatedContainerError: If the magic matched but the header or a
                load command runs past the end of the stream, or a load
                command is smaller than its own header.
        """
        cursor = _Cursor(stream, path)

        if cursor.size < _MAGIC.size:
            return None

        (magic,) = _MAGIC.unpack(stream.read(_MAGIC.size))
        if magic != MachOMagic.MH_MAGIC_64:
            return None

        cursor.seek(0)
        _, _, _, filetype, ncmds, _, _, _ = cursor.read(_HEADER)

        crypt_info_offset = 0
        cryptoff = cryptsize = cryptid = 0

        for index in range(ncmds):
            start = cursor.position
            cmd, cmdsize = cursor.read(_LOAD_COMMAND)

            if cmdsize < _LOAD_COMMAND.size:
                logger.debug(f"Load command {index} in {path} has cmdsize {cmdsize}")
                raise TruncatedContainerError(path, start)

            if cmd == LoadCommand.LC_ENCRYPTION_INFO_64:
                if cmdsize < _LOAD_COMMAND.size + _ENCRYPTION_INFO.size:
                    raise TruncatedContainerError(path, start)

                # Later commands overwrite earlier ones
                cryptoff, cryptsize, cryptid, _ = cursor.read(_ENCRYPTION_INFO)
                crypt_info_offset = start

                logger.debug(
                    f"Found encryption info in {path}: cryptoff={cryptoff}, "
                    f"cryptsize={cryptsize}, cryptid={cryptid}"
                )

            cursor.seek(start + cmdsize)

        return BinaryRecord(
            path=path or "",
            file_type=filetype,
            crypt_info_offset=crypt_info_offset,
            crypt_offset=cryptoff,
            crypt_size=cryptsize,
            crypt_id=cryptid,
        )

    @staticmethod
    def is_encrypted(path: str | os.PathLike[str]) -> bool:
        """Check if a file is a Mach-O binary with a nonzero cryptid."""
        record = MachOReader.read(path)
        return record is not None and record.is_encrypted
