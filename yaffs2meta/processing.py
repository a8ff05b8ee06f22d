from pathlib import Path
from typing import Callable, Optional

import attr
from structlog import get_logger

from .file_utils import File
from .geometry import GeometryDetector, detect_geometry_or_default
from .models import Geometry, ObjectHeader, Yaffs2Error
from .report import ScanReport, write_json_report
from .scan import ScanDriver
from .tags import PACKED_TAGS_SIZE
from .tsk import write_tsk_config

logger = get_logger()


def _validate_geometry(_instance, _attribute, geometry: Optional[Geometry]):
    if geometry is None:
        return
    if geometry.page_size <= 0 or geometry.spare_size <= 0:
        raise ValueError(f"Page and spare sizes must be positive: {geometry}")
    if geometry.spare_skip < 0 or (
        geometry.spare_size - geometry.spare_skip < PACKED_TAGS_SIZE
    ):
        raise ValueError(f"Spare area can not hold the packed tags: {geometry}")


@attr.define(kw_only=True)
class ScanConfig:
    # None means auto-detect
    geometry: Optional[Geometry] = attr.field(
        default=None, validator=_validate_geometry
    )
    detector: GeometryDetector = attr.field(factory=GeometryDetector)
    write_tsk_config: bool = True
    report_file: Optional[Path] = None


def process_image(
    config: ScanConfig,
    image_path: Path,
    on_header: Optional[Callable[[ObjectHeader], None]] = None,
) -> ScanReport:
    """Detect the geometry of ``image_path`` and decode all of its object headers.

    Fatal decoding errors are recorded in the returned report instead of
    being raised, the headers found before the failure are kept.
    """
    if not image_path.is_file():
        raise ValueError("image_path is not a file", image_path)

    with File.from_path(image_path) as file:
        if config.geometry is None:
            geometry, detected = detect_geometry_or_default(file, config.detector)
        else:
            geometry, detected = config.geometry, False
            logger.info("Using manual geometry", geometry=str(geometry))

        report = ScanReport(
            path=image_path, geometry=geometry, geometry_detected=detected
        )

        if config.write_tsk_config:
            write_tsk_config(image_path, geometry)

        driver = ScanDriver(file, geometry)
        try:
            for header in driver.scan():
                logger.debug("Object header", header=str(header), offset=header.offset)
                report.headers.append(header)
                if on_header is not None:
                    on_header(header)
        except Yaffs2Error as exc:
            logger.error("Scan aborted", reason=str(exc))
            report.error = str(exc)
        finally:
            report.stats = driver.stats

    if config.report_file:
        write_json_report(config.report_file, report)

    return report
