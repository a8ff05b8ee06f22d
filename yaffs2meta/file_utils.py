import enum
import io
import mmap
import os
from pathlib import Path
from typing import Union

from dissect.cstruct import Instance, cstruct

ERASED_BYTE = b"\xff"


class SeekError(ValueError):
    """Specific ValueError for File.seek."""


class File(mmap.mmap):
    access: int

    @classmethod
    def from_bytes(cls, content: bytes):
        if not content:
            raise ValueError("Can't create File from empty bytes.")
        m = cls(-1, len(content))
        m.write(content)
        m.seek(0)
        m.access = mmap.ACCESS_WRITE
        return m

    @classmethod
    def from_path(cls, path: Path, access=mmap.ACCESS_READ):
        """Create File.

        Needs a valid non-empty file,
        raises ValueError on empty files.
        """
        mode = "r+b" if access == mmap.ACCESS_WRITE else "rb"
        with path.open(mode) as base_file:
            m = cls(base_file.fileno(), 0, access=access)
            m.access = access
            return m

    def seek(self, pos: int, whence: int = os.SEEK_SET) -> int:
        try:
            super().seek(pos, whence)
        except ValueError as e:
            raise SeekError from e
        return self.tell()

    def size(self) -> int:
        size = 0
        try:
            size = super().size()
        except OSError:
            # the file was built with from_bytes() so it's not on disk,
            # triggering an OSError on fstat() call
            current_offset = self.tell()
            self.seek(0, io.SEEK_END)
            size = self.tell()
            self.seek(current_offset, io.SEEK_SET)

        return size

    def __enter__(self):
        return self

    def __exit__(self, _exc_type, _exc_val, _exc_tb):
        self.close()


class Endian(enum.Enum):
    LITTLE = "<"
    BIG = ">"


def get_size(file) -> int:
    """Size of a seekable byte source, keeping its current position."""
    if isinstance(file, File):
        return file.size()
    current_offset = file.tell()
    size = file.seek(0, io.SEEK_END)
    file.seek(current_offset, io.SEEK_SET)
    return size


def cstr(content: bytes) -> bytes:
    """Cut a fixed width field at its first null byte."""
    end = content.find(b"\x00")
    if end == -1:
        return content
    return content[:end]


def is_blank(content: bytes) -> bool:
    """Erased NAND flash reads back as 0xFF."""
    return content.count(ERASED_BYTE) == len(content)


class StructParser:
    """Wrapper for dissect.cstruct to handle different endianness parsing dynamically."""

    def __init__(self, definitions: str):
        self._definitions = definitions
        self.__cparser_le = None
        self.__cparser_be = None

    @property
    def cparser_le(self):
        if self.__cparser_le is None:
            # Default endianness is little
            self.__cparser_le = cstruct()
            self.__cparser_le.load(self._definitions)
        return self.__cparser_le

    @property
    def cparser_be(self):
        if self.__cparser_be is None:
            self.__cparser_be = cstruct(endian=">")
            self.__cparser_be.load(self._definitions)
        return self.__cparser_be

    def parse(
        self,
        struct_name: str,
        file: Union[File, bytes],
        endian: Endian,
    ) -> Instance:
        cparser = self.cparser_le if endian is Endian.LITTLE else self.cparser_be
        struct_parser = getattr(cparser, struct_name)
        return struct_parser(file)
