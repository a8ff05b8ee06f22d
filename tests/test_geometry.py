import io
import random

import pytest

from yaffs2meta.file_utils import Endian, File
from yaffs2meta.geometry import (
    DEFAULT_GEOMETRY,
    GeometryDetector,
    detect_geometry,
    detect_geometry_or_default,
)
from yaffs2meta.models import Geometry, GeometryNotDetectedError, ObjectType
from yaffs2meta.testing import (
    build_image,
    encode_data_page,
    encode_extended_spare_tag,
    encode_object_header,
    encode_spare_tag,
)


def make_image(page_size: int, spare_size: int, spare_skip: int) -> bytes:
    geometry = Geometry(
        page_size=page_size, spare_size=spare_size, spare_skip=spare_skip
    )
    return build_image(
        [
            (
                encode_object_header(b"bin", ObjectType.DIRECTORY, page_size=page_size),
                encode_extended_spare_tag(
                    0x1000,
                    257,
                    1,
                    ObjectType.DIRECTORY,
                    spare_size=spare_size,
                    skip=spare_skip,
                ),
            ),
            (
                encode_object_header(
                    b"busybox", ObjectType.FILE, parent_obj_id=257, page_size=page_size
                ),
                encode_extended_spare_tag(
                    0x1000,
                    258,
                    257,
                    ObjectType.FILE,
                    spare_size=spare_size,
                    skip=spare_skip,
                ),
            ),
            (
                encode_data_page(b"\x7fELF", page_size=page_size),
                encode_spare_tag(
                    0x1000, 258, 1, 4, spare_size=spare_size, skip=spare_skip
                ),
            ),
        ],
        geometry=geometry,
    )


def test_detect_root_image(root_file: File):
    assert detect_geometry(root_file) == Geometry(
        page_size=2048, spare_size=64, spare_skip=0, endianness=Endian.LITTLE
    )
    assert root_file.tell() == 0


def test_detect_rewinds(root_image: bytes):
    file = io.BytesIO(root_image)
    file.seek(100)
    detect_geometry(file)
    assert file.tell() == 0


@pytest.mark.parametrize(
    "page_size, spare_size, spare_skip",
    [
        (1024, 32, 0),
        (2048, 64, 0),
        (2048, 64, 2),
        (4096, 128, 0),
        (4096, 128, 2),
        (8192, 256, 0),
        (16384, 512, 2),
    ],
)
def test_detect_geometries(page_size: int, spare_size: int, spare_skip: int):
    file = File.from_bytes(make_image(page_size, spare_size, spare_skip))
    assert detect_geometry(file) == Geometry(
        page_size=page_size, spare_size=spare_size, spare_skip=spare_skip
    )


def test_detect_multi_object_image(multi_object_image: bytes):
    assert detect_geometry(io.BytesIO(multi_object_image)) == DEFAULT_GEOMETRY


def test_first_candidate_wins():
    image = make_image(2048, 64, 0)
    detector = GeometryDetector(
        page_sizes=[2048], spare_sizes=[64], spare_skips=[0, 2]
    )
    assert detector.detect(io.BytesIO(image)).spare_skip == 0


def test_injected_candidates_limit_search():
    image = make_image(2048, 64, 0)
    with pytest.raises(GeometryNotDetectedError):
        detect_geometry(io.BytesIO(image), page_sizes=[4096, 8192])


@pytest.mark.parametrize(
    "content",
    [
        pytest.param(b"\xff" * 0x10000, id="erased"),
        pytest.param(b"\x00" * 0x10000, id="zeroes"),
        pytest.param(b"\x01" * 100, id="too-short"),
        pytest.param(
            random.Random(0x5AFF).randbytes(0x20000),  # noqa: S311
            id="random",
        ),
    ],
)
def test_not_detected(content: bytes):
    file = File.from_bytes(content)
    with pytest.raises(GeometryNotDetectedError):
        detect_geometry(file)

    geometry, detected = detect_geometry_or_default(file)
    assert detected is False
    assert geometry == DEFAULT_GEOMETRY
    assert geometry == Geometry(
        page_size=2048, spare_size=64, spare_skip=0, endianness=Endian.LITTLE
    )


def test_first_record_must_be_a_header():
    image = build_image(
        [
            (encode_data_page(b"data"), encode_spare_tag(0x1000, 258, 1, 4)),
            (encode_data_page(b"data"), encode_spare_tag(0x1000, 258, 2, 4)),
        ]
    )
    with pytest.raises(GeometryNotDetectedError):
        detect_geometry(io.BytesIO(image))


def test_second_record_must_be_valid():
    image = build_image(
        [
            (
                encode_object_header(b"root", ObjectType.DIRECTORY),
                encode_extended_spare_tag(0x1000, 257, 1, ObjectType.DIRECTORY),
            ),
            (encode_data_page(b"data"), encode_spare_tag(0x10, 258, 1, 4)),
        ]
    )
    with pytest.raises(GeometryNotDetectedError):
        detect_geometry(io.BytesIO(image))


def test_single_header_needs_whole_pairs(root_image: bytes):
    with pytest.raises(GeometryNotDetectedError):
        detect_geometry(io.BytesIO(root_image + b"\xff" * 10))
