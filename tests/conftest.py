import pytest

from yaffs2meta.file_utils import File
from yaffs2meta.models import ObjectType
from yaffs2meta.testing import (  # noqa: F401 (module imported but unused)
    build_image,
    configure_logging,
    encode_data_page,
    encode_extended_spare_tag,
    encode_object_header,
    encode_spare_tag,
)

SEQ = 0x1000


@pytest.fixture
def root_image() -> bytes:
    """A single directory header followed by two erased pairs."""
    return build_image(
        [
            (
                encode_object_header(b"root", ObjectType.DIRECTORY),
                encode_extended_spare_tag(SEQ, 257, 1, ObjectType.DIRECTORY),
            )
        ]
    )


@pytest.fixture
def multi_object_image() -> bytes:
    """Directory, a two chunk file, a symlink and an unreadable spare in between."""
    return build_image(
        [
            (
                encode_object_header(b"etc", ObjectType.DIRECTORY, st_mode=0o40755),
                encode_extended_spare_tag(SEQ, 257, 1, ObjectType.DIRECTORY),
            ),
            (
                encode_data_page(b"A" * 2048),
                encode_spare_tag(SEQ, 258, 1, 2048),
            ),
            (
                encode_data_page(b"B" * 952),
                encode_spare_tag(SEQ, 258, 2, 952),
            ),
            (
                encode_object_header(
                    b"passwd",
                    ObjectType.FILE,
                    parent_obj_id=257,
                    file_size=3000,
                    st_mode=0o100644,
                ),
                encode_extended_spare_tag(
                    SEQ, 258, 257, ObjectType.FILE, byte_count=3000
                ),
            ),
            (
                encode_data_page(b"garbage"),
                encode_spare_tag(0, 0, 0, 0),
            ),
            (
                encode_object_header(
                    b"shadow",
                    ObjectType.SYMLINK,
                    parent_obj_id=257,
                    alias=b"/etc/passwd",
                ),
                encode_extended_spare_tag(SEQ + 1, 259, 257, ObjectType.SYMLINK),
            ),
        ]
    )


@pytest.fixture
def root_file(root_image) -> File:
    return File.from_bytes(root_image)
