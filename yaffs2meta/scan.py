import io
from typing import BinaryIO, Iterator, Tuple

import attr
from structlog import get_logger

from .file_utils import is_blank
from .header import decode_object_header
from .models import Geometry, InvalidTag, ObjectHeader
from .report import ScanStats
from .tags import decode_spare_tag

logger = get_logger()


def iterate_pairs(
    file: BinaryIO, geometry: Geometry
) -> Iterator[Tuple[int, bytes, bytes]]:
    """Yield ``(offset, page, spare)`` from the start of the image.

    Stops at the first short read, or at the first pair where both the
    page and the spare are erased.
    """
    file.seek(0, io.SEEK_SET)
    offset = 0
    while True:
        page = file.read(geometry.page_size)
        spare = file.read(geometry.spare_size)
        if len(page) != geometry.page_size or len(spare) != geometry.spare_size:
            logger.debug("Short read, end of image", offset=offset)
            return
        if is_blank(page) and is_blank(spare):
            logger.debug("Erased page and spare, end of data", offset=offset)
            return
        yield offset, page, spare
        offset += geometry.pair_size


class ScanDriver:
    """Single forward pass over the image, yielding the object headers.

    Every ``scan()`` restarts from the beginning of the image and resets
    ``stats``.
    """

    def __init__(self, file: BinaryIO, geometry: Geometry):
        self.file = file
        self.geometry = geometry
        self.stats = ScanStats()

    def scan(self) -> Iterator[ObjectHeader]:
        self.stats = ScanStats()
        for offset, page, spare in iterate_pairs(self.file, self.geometry):
            self.stats.pairs += 1
            tag = decode_spare_tag(
                spare, self.geometry.spare_skip, self.geometry.endianness
            )

            if isinstance(tag, InvalidTag):
                logger.debug("Invalid spare, skipping page", offset=offset, tag=tag)
                self.stats.invalid_tags += 1
                continue

            if tag.chunk_id != 0:
                self.stats.data_chunks += 1
                continue

            header = decode_object_header(
                page, self.geometry.endianness, verify=True, offset=offset
            )
            self.stats.headers += 1
            yield attr.evolve(header, object_id=tag.object_id)

        logger.info(
            "Scan finished",
            pairs=self.stats.pairs,
            headers=self.stats.headers,
            data_chunks=self.stats.data_chunks,
            invalid_tags=self.stats.invalid_tags,
        )


def scan_headers(file: BinaryIO, geometry: Geometry) -> Iterator[ObjectHeader]:
    return ScanDriver(file, geometry).scan()
