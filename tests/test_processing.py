import json
from pathlib import Path

import pytest

from yaffs2meta.geometry import DEFAULT_GEOMETRY
from yaffs2meta.models import Geometry, ObjectType
from yaffs2meta.processing import ScanConfig, process_image
from yaffs2meta.report import ScanStats
from yaffs2meta.testing import (
    build_image,
    encode_extended_spare_tag,
    encode_object_header,
)


@pytest.fixture
def image_path(tmp_path: Path, multi_object_image: bytes) -> Path:
    path = tmp_path / "nand.bin"
    path.write_bytes(multi_object_image)
    return path


def test_process_image(image_path: Path):
    report = process_image(ScanConfig(), image_path)

    assert report.geometry == DEFAULT_GEOMETRY
    assert report.geometry_detected is True
    assert report.is_complete
    assert [h.name for h in report.headers] == ["etc", "passwd", "shadow"]
    assert report.stats == ScanStats(pairs=6, headers=3, data_chunks=2, invalid_tags=1)
    assert (image_path.parent / "nand.bin-yaffs2.config").exists()


def test_process_image_without_tsk_config(image_path: Path):
    process_image(ScanConfig(write_tsk_config=False), image_path)
    assert not (image_path.parent / "nand.bin-yaffs2.config").exists()


def test_process_image_manual_geometry(image_path: Path):
    geometry = Geometry(page_size=1024, spare_size=32)
    report = process_image(
        ScanConfig(geometry=geometry, write_tsk_config=False), image_path
    )

    assert report.geometry == geometry
    assert report.geometry_detected is False


def test_process_image_falls_back_to_default(tmp_path: Path):
    path = tmp_path / "zeroes.bin"
    path.write_bytes(b"\x00" * 0x8000)

    report = process_image(ScanConfig(write_tsk_config=False), path)

    assert report.geometry == DEFAULT_GEOMETRY
    assert report.geometry_detected is False
    assert report.headers == []
    assert report.stats.invalid_tags == report.stats.pairs


def test_process_image_checksum_mismatch(tmp_path: Path):
    path = tmp_path / "corrupt.bin"
    path.write_bytes(
        build_image(
            [
                (
                    encode_object_header(
                        b"root", ObjectType.DIRECTORY, checksum=0x1234
                    ),
                    encode_extended_spare_tag(0x1000, 257, 1, ObjectType.DIRECTORY),
                )
            ]
        )
    )

    report = process_image(ScanConfig(write_tsk_config=False), path)

    assert not report.is_complete
    assert "0x1234" in report.error
    assert report.headers == []


def test_process_image_json_report(image_path: Path, tmp_path: Path):
    report_file = tmp_path / "report.json"
    process_image(
        ScanConfig(write_tsk_config=False, report_file=report_file), image_path
    )

    report = json.loads(report_file.read_text())
    assert report["__typename__"] == "ScanReport"
    assert report["geometry"]["page_size"] == 2048
    assert report["geometry"]["endianness"] == "LITTLE"
    assert report["geometry_detected"] is True
    assert report["error"] is None
    assert report["stats"]["headers"] == 3
    assert [h["name"] for h in report["headers"]] == ["etc", "passwd", "shadow"]
    assert report["headers"][0]["object_type"] == "DIRECTORY"


def test_process_image_callback(image_path: Path):
    seen = []
    process_image(ScanConfig(write_tsk_config=False), image_path, on_header=seen.append)
    assert [h.name for h in seen] == ["etc", "passwd", "shadow"]


@pytest.mark.parametrize(
    "geometry",
    [
        Geometry(page_size=0, spare_size=64),
        Geometry(page_size=2048, spare_size=16, spare_skip=2),
        Geometry(page_size=2048, spare_size=64, spare_skip=-1),
    ],
)
def test_scan_config_rejects_bad_geometry(geometry: Geometry):
    with pytest.raises(ValueError):  # noqa: PT011
        ScanConfig(geometry=geometry)


def test_process_image_not_a_file(tmp_path: Path):
    with pytest.raises(ValueError):  # noqa: PT011
        process_image(ScanConfig(), tmp_path)
