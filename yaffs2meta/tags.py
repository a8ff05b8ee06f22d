from typing import Union

from structlog import get_logger

from .file_utils import Endian, StructParser
from .models import (
    ExtendedSpareTag,
    InvalidTag,
    MalformedRecordError,
    SpareTag,
)

logger = get_logger()

C_DEFINITIONS = """
    typedef struct yaffs2_packed_tags {
        uint32 seq_number;
        uint32 object_id;
        uint32 chunk_id;
        uint32 byte_count;
    }  yaffs2_packed_tags_t;
"""

PACKED_TAGS_SIZE = 16

# Special object ids for pseudo objects
YAFFS_OBJECTID_ROOT = 1
YAFFS_OBJECTID_LOSTNFOUND = 2
YAFFS_OBJECTID_UNLINKED = 3
YAFFS_OBJECTID_DELETED = 4
YAFFS_OBJECTID_SUMMARY = 0x10
SPECIAL_OBJECT_IDS = frozenset(
    (
        YAFFS_OBJECTID_ROOT,
        YAFFS_OBJECTID_LOSTNFOUND,
        YAFFS_OBJECTID_UNLINKED,
        YAFFS_OBJECTID_DELETED,
        YAFFS_OBJECTID_SUMMARY,
    )
)

YAFFS_NOBJECT_BUCKETS = 256
YAFFS_OBJECT_SPACE = 0x40000
YAFFS_MAX_OBJECT_ID = YAFFS_OBJECT_SPACE - 1

YAFFS_LOWEST_SEQUENCE_NUMBER = 0x00001000
YAFFS_HIGHEST_SEQUENCE_NUMBER = 0xEFFFFF00
# bad block that failed to be marked bad
YAFFS_SEQUENCE_BAD_BLOCK = 0xFFFF0000

YAFFS_TNODES_LEVEL0_BITS = 4
YAFFS_TNODES_INTERNAL_BITS = YAFFS_TNODES_LEVEL0_BITS - 1
YAFFS_TNODES_MAX_LEVEL = 8
YAFFS_TNODES_MAX_BITS = (
    YAFFS_TNODES_LEVEL0_BITS + YAFFS_TNODES_INTERNAL_BITS * YAFFS_TNODES_MAX_LEVEL
)
YAFFS_MAX_CHUNK_ID = (1 << YAFFS_TNODES_MAX_BITS) - 1

EXTRA_HEADER_INFO_FLAG = 0x80000000
EXTRA_SHRINK_FLAG = 0x40000000
EXTRA_SHADOWS_FLAG = 0x20000000
EXTRA_SPARE_FLAGS = 0x10000000
ALL_EXTRA_FLAGS = 0xF0000000

# the top 4 bits of the object id hold the object type in extended tags
EXTRA_OBJECT_TYPE_SHIFT = 28
EXTRA_OBJECT_TYPE_MASK = 0x0F << EXTRA_OBJECT_TYPE_SHIFT

_struct_parser = StructParser(C_DEFINITIONS)


def is_valid_seq_number(seq_number: int) -> bool:
    if seq_number == YAFFS_SEQUENCE_BAD_BLOCK:
        return False
    return YAFFS_LOWEST_SEQUENCE_NUMBER <= seq_number < YAFFS_HIGHEST_SEQUENCE_NUMBER


def is_valid_object_id(object_id: int) -> bool:
    if object_id in SPECIAL_OBJECT_IDS:
        return True
    return YAFFS_NOBJECT_BUCKETS <= object_id <= YAFFS_MAX_OBJECT_ID


def is_valid_chunk_id(chunk_id: int) -> bool:
    return 0 <= chunk_id <= YAFFS_MAX_CHUNK_ID


def decode_spare_tag(
    spare: bytes, skip: int, endian: Endian
) -> Union[SpareTag, InvalidTag]:
    """Decode the packed tags stored ``skip`` bytes into a spare area.

    Returns an ``InvalidTag`` when the fields fail the YAFFS2 sanity
    checks, raises ``MalformedRecordError`` when the buffer is too short
    to hold the tags at all.
    """
    try:
        raw = _struct_parser.parse("yaffs2_packed_tags_t", spare[skip:], endian)
    except EOFError as exc:
        raise MalformedRecordError(
            f"Spare area too short for packed tags at skip {skip}: {len(spare)} bytes"
        ) from exc

    logger.debug("yaffs2_packed_tags_t", yaffs2_packed_tags=raw, _verbosity=3)

    if not is_valid_seq_number(raw.seq_number):
        return InvalidTag(
            reason="sequence number out of range",
            seq_number=raw.seq_number,
            object_id=raw.object_id,
            chunk_id=raw.chunk_id,
        )

    tag: SpareTag
    # the same four words hold a different record when the header info flag is set
    if raw.chunk_id & EXTRA_HEADER_INFO_FLAG:
        tag = ExtendedSpareTag(
            seq_number=raw.seq_number,
            object_id=raw.object_id & ~EXTRA_OBJECT_TYPE_MASK,
            parent_obj_id=raw.chunk_id & ~ALL_EXTRA_FLAGS,
            is_shrink=bool(raw.chunk_id & EXTRA_SHRINK_FLAG),
            is_shadowing=bool(raw.chunk_id & EXTRA_SHADOWS_FLAG),
            object_type=raw.object_id >> EXTRA_OBJECT_TYPE_SHIFT,
        )
    else:
        tag = SpareTag(
            seq_number=raw.seq_number,
            object_id=raw.object_id,
            chunk_id=raw.chunk_id,
            byte_count=raw.byte_count,
        )

    if not is_valid_object_id(tag.object_id):
        return InvalidTag(
            reason="object id out of range",
            seq_number=raw.seq_number,
            object_id=raw.object_id,
            chunk_id=raw.chunk_id,
        )
    if not is_valid_chunk_id(tag.chunk_id):
        return InvalidTag(
            reason="chunk id out of range",
            seq_number=raw.seq_number,
            object_id=raw.object_id,
            chunk_id=raw.chunk_id,
        )
    return tag
