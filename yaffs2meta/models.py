from enum import IntEnum
from typing import Optional

import attr

from .file_utils import Endian

# The decoding pipeline is:
#
# image ──► GeometryDetector ──► Geometry ──► ScanDriver ──► ObjectHeader*
#                                                 │
#                                  spare ──► SpareTag | ExtendedSpareTag | InvalidTag
#


class Yaffs2Error(Exception):
    """Base class of every error raised while decoding an image."""


class GeometryNotDetectedError(Yaffs2Error):
    """No candidate geometry made the first two records parse."""


class MalformedRecordError(Yaffs2Error):
    """The raw bytes are too short for the fixed record layout."""


class ChecksumMismatchError(Yaffs2Error):
    """The object header sentinel is wrong, the image is read with a wrong geometry."""

    def __init__(self, checksum: int, offset: Optional[int] = None):
        self.checksum = checksum
        self.offset = offset
        where = "" if offset is None else f" at 0x{offset:x}"
        super().__init__(
            f"Invalid object header{where}: checksum 0x{checksum:04x} != 0xffff, "
            "most likely invalid page / spare sizes or corrupt data"
        )


class ObjectType(IntEnum):
    UNKNOWN = 0
    FILE = 1
    SYMLINK = 2
    DIRECTORY = 3
    HARDLINK = 4
    SPECIAL = 5

    def __str__(self):
        return self.name.lower()


@attr.define(frozen=True)
class Geometry:
    page_size: int
    spare_size: int
    spare_skip: int = 0
    endianness: Endian = Endian.LITTLE

    @property
    def pair_size(self) -> int:
        return self.page_size + self.spare_size

    def __str__(self):
        return (
            f"page size {self.page_size}, spare size {self.spare_size}, "
            f"spare skip {self.spare_skip}, {self.endianness.name.lower()} endian"
        )


@attr.define(frozen=True, kw_only=True)
class SpareTag:
    """Tag pointing to a data chunk of an object."""

    seq_number: int
    object_id: int
    chunk_id: int
    byte_count: int

    @property
    def extra_valid(self) -> bool:
        return False


@attr.define(frozen=True, kw_only=True)
class ExtendedSpareTag(SpareTag):
    """Tag of a header chunk, carrying header info packed into the chunk id field.

    The chunk id and byte count are not stored in this shape, they are always 0.
    """

    chunk_id: int = attr.field(default=0, init=False)
    byte_count: int = attr.field(default=0, init=False)
    parent_obj_id: int
    is_shrink: bool
    is_shadowing: bool
    object_type: int

    @property
    def extra_valid(self) -> bool:
        return True


@attr.define(frozen=True, kw_only=True)
class InvalidTag:
    reason: str
    seq_number: int
    object_id: int
    chunk_id: int


@attr.define(frozen=True, kw_only=True)
class ObjectHeader:
    object_type: ObjectType
    parent_obj_id: int
    name: str = ""
    st_mode: int = 0
    st_uid: int = 0
    st_gid: int = 0
    st_atime: int = 0
    st_mtime: int = 0
    st_ctime: int = 0
    file_size: int = 0
    equiv_id: int = 0
    alias: str = ""
    st_rdev: int = 0
    shadows_obj: int = 0
    is_shrink: bool = False
    checksum: int = 0xFFFF
    # filled in by the scan from the paired spare tag
    object_id: Optional[int] = None
    offset: Optional[int] = None

    def __str__(self):
        return f"{self.object_type!s}: {self.name}"
