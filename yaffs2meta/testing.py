"""Helpers to build synthetic NAND images in tests."""
import struct
from typing import Iterable, Optional, Tuple

import pytest

from .file_utils import Endian
from .header import OBJECT_HEADER_SIZE
from .logging import configure_logger
from .models import Geometry, ObjectType
from .tags import (
    EXTRA_HEADER_INFO_FLAG,
    EXTRA_OBJECT_TYPE_SHIFT,
    EXTRA_SHADOWS_FLAG,
    EXTRA_SHRINK_FLAG,
)

ERASED = b"\xff"

OBJECT_HEADER_FORMAT = "IIH256sH6IIi160sI6IIIIIiI"
PACKED_TAGS_FORMAT = "IIII"


@pytest.fixture(scope="session", autouse=True)
def configure_logging(tmp_path_factory):
    log_path = tmp_path_factory.mktemp("logs") / "yaffs2meta.log"
    configure_logger(verbosity_level=3, log_path=log_path)


def encode_spare_tag(  # noqa: PLR0913
    seq_number: int,
    object_id: int,
    chunk_id: int,
    byte_count: int,
    spare_size: int = 64,
    skip: int = 0,
    endian: Endian = Endian.LITTLE,
) -> bytes:
    packed = struct.pack(
        endian.value + PACKED_TAGS_FORMAT, seq_number, object_id, chunk_id, byte_count
    )
    return (ERASED * skip + packed).ljust(spare_size, ERASED)


def encode_extended_spare_tag(  # noqa: PLR0913
    seq_number: int,
    object_id: int,
    parent_obj_id: int,
    object_type: int,
    is_shrink: bool = False,  # noqa: FBT001,FBT002
    is_shadowing: bool = False,  # noqa: FBT001,FBT002
    byte_count: int = 0,
    spare_size: int = 64,
    skip: int = 0,
    endian: Endian = Endian.LITTLE,
) -> bytes:
    chunk_id = EXTRA_HEADER_INFO_FLAG | parent_obj_id
    if is_shrink:
        chunk_id |= EXTRA_SHRINK_FLAG
    if is_shadowing:
        chunk_id |= EXTRA_SHADOWS_FLAG
    return encode_spare_tag(
        seq_number,
        object_id | (object_type << EXTRA_OBJECT_TYPE_SHIFT),
        chunk_id,
        byte_count,
        spare_size=spare_size,
        skip=skip,
        endian=endian,
    )


def encode_object_header(  # noqa: PLR0913
    name: bytes,
    object_type: ObjectType,
    parent_obj_id: int = 1,
    checksum: int = 0xFFFF,
    page_size: int = 2048,
    alias: bytes = b"",
    file_size: int = 0,
    st_mode: int = 0,
    st_uid: int = 0,
    st_gid: int = 0,
    mtime: int = 0,
    equiv_id: int = -1,
    st_rdev: int = 0,
    shadows_obj: int = 0,
    is_shrink: int = 0,
    endian: Endian = Endian.LITTLE,
) -> bytes:
    header = struct.pack(
        endian.value + OBJECT_HEADER_FORMAT,
        object_type,
        parent_obj_id,
        checksum,
        name,
        0xFFFF,
        st_mode,
        st_uid,
        st_gid,
        mtime,
        mtime,
        mtime,
        file_size & 0xFFFFFFFF,
        equiv_id,
        alias,
        st_rdev,
        0,
        0,
        0,
        0,
        0,
        0,
        0,
        0,
        file_size >> 32,
        0,
        shadows_obj,
        is_shrink,
    )
    assert len(header) == OBJECT_HEADER_SIZE
    return header.ljust(page_size, ERASED)


def encode_data_page(content: bytes, page_size: int = 2048) -> bytes:
    return content.ljust(page_size, b"\x00")


def build_image(
    pairs: Iterable[Tuple[bytes, bytes]],
    blank_pairs: int = 2,
    geometry: Optional[Geometry] = None,
) -> bytes:
    """Concatenate page / spare pairs, followed by erased pairs."""
    geometry = geometry or Geometry(page_size=2048, spare_size=64)
    image = b"".join(page + spare for page, spare in pairs)
    return image + ERASED * (geometry.pair_size * blank_pairs)
