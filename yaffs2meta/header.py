from typing import Optional

from structlog import get_logger

from .file_utils import Endian, StructParser, cstr
from .models import (
    ChecksumMismatchError,
    MalformedRecordError,
    ObjectHeader,
    ObjectType,
)

logger = get_logger()

YAFFS_MAX_NAME_LENGTH = 255
YAFFS_MAX_ALIAS_LENGTH = 159
HEADER_SENTINEL = 0xFFFF

C_DEFINITIONS = """
    typedef struct yaffs2_obj_hdr {
        uint32 type;                   /* enum yaffs_obj_type  */
        /* Apply to everything  */
        uint32 parent_obj_id;
        uint16 sum_no_longer_used;	    /* checksum of name. No longer used */
        char name[256];
        uint16 chksum;
        /* The following apply to all object types except for hard links */
        uint32 st_mode;		        /* protection */
        uint32 st_uid;
        uint32 st_gid;
        uint32 st_atime;
        uint32 st_mtime;
        uint32 st_ctime;
        uint32 file_size_low;          /* File size  applies to files only */
        int equiv_id;               /* Equivalent object id applies to hard links only. */
        char alias[160];    /* Alias is for symlinks only. */
        uint32 st_rdev;	            /* stuff for block and char devices (major/min) */
        uint32 win_ctime[2];
        uint32 win_atime[2];
        uint32 win_mtime[2];
        uint32 inband_shadowed_obj_id;
        uint32 inband_is_shrink;
        uint32 file_size_high;
        uint32 reserved[1];
        int shadows_obj;	    /* This object header shadows the specified object if > 0 */
        /* is_shrink applies to object headers written when we make a hole. */
        uint32 is_shrink;
    } yaffs2_obj_hdr_t;
"""

OBJECT_HEADER_SIZE = 512

_struct_parser = StructParser(C_DEFINITIONS)


def decode_file_size(high: int, low: int) -> int:
    """File size can be encoded as 64 bits or 32 bits values.

    If upper 32 bits are set, it's a 64 bits integer value.
    Otherwise it's a 32 bits value. 0xFFFFFFFF means zero.
    """
    if high != 0xFFFFFFFF:
        return (high << 32) | (low & 0xFFFFFFFF)
    if low != 0xFFFFFFFF:
        return low
    return 0


def decode_string(field: bytes, max_length: int) -> str:
    return cstr(field)[:max_length].decode("utf-8", errors="surrogateescape")


def decode_object_type(value: int) -> ObjectType:
    try:
        return ObjectType(value)
    except ValueError:
        logger.warning("Unknown object type in header", object_type=value)
        return ObjectType.UNKNOWN


def verify_object_header(header: ObjectHeader):
    if header.checksum != HEADER_SENTINEL:
        raise ChecksumMismatchError(header.checksum, header.offset)


def decode_object_header(
    page: bytes,
    endian: Endian,
    verify: bool = True,  # noqa: FBT001,FBT002
    offset: Optional[int] = None,
) -> ObjectHeader:
    try:
        header = _struct_parser.parse("yaffs2_obj_hdr_t", page, endian)
    except EOFError as exc:
        raise MalformedRecordError(
            f"Page too short for an object header: {len(page)} bytes"
        ) from exc

    logger.debug("yaffs2_obj_hdr_t", yaffs_obj_hdr=header, _verbosity=3)

    object_header = ObjectHeader(
        object_type=decode_object_type(header.type),
        parent_obj_id=header.parent_obj_id,
        name=decode_string(header.name, YAFFS_MAX_NAME_LENGTH),
        st_mode=header.st_mode,
        st_uid=header.st_uid,
        st_gid=header.st_gid,
        st_atime=header.st_atime,
        st_mtime=header.st_mtime,
        st_ctime=header.st_ctime,
        file_size=decode_file_size(header.file_size_high, header.file_size_low),
        equiv_id=header.equiv_id,
        alias=decode_string(header.alias, YAFFS_MAX_ALIAS_LENGTH),
        st_rdev=header.st_rdev,
        shadows_obj=header.shadows_obj,
        is_shrink=bool(header.is_shrink),
        checksum=header.sum_no_longer_used,
        offset=offset,
    )

    if verify:
        verify_object_header(object_header)
    return object_header
