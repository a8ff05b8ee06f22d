import io
import itertools
from typing import BinaryIO, List, Optional, Sequence, Tuple

import attr
from structlog import get_logger

from .file_utils import Endian, get_size, is_blank
from .models import Geometry, GeometryNotDetectedError, SpareTag
from .tags import decode_spare_tag

logger = get_logger()

# YAFFS2 requires at least 1024 byte pages with 32 byte spare areas
VALID_PAGE_SIZES = [1024, 2048, 4096, 8192, 16384]
VALID_SPARE_SIZES = [32, 64, 128, 256, 512]
# images built without ECC have two superfluous bytes before the tags
VALID_SPARE_SKIPS = [0, 2]

DEFAULT_GEOMETRY = Geometry(
    page_size=2048, spare_size=64, spare_skip=0, endianness=Endian.LITTLE
)


def read_pairs(
    file: BinaryIO, page_size: int, spare_size: int, count: int
) -> List[Tuple[bytes, bytes]]:
    """Read up to ``count`` complete page / spare pairs from the start of ``file``."""
    file.seek(0, io.SEEK_SET)
    pairs = []
    for _ in range(count):
        page = file.read(page_size)
        spare = file.read(spare_size)
        if len(page) != page_size or len(spare) != spare_size:
            break
        pairs.append((page, spare))
    return pairs


@attr.define
class GeometryDetector:
    """Guess the NAND geometry from the first two page / spare pairs.

    Candidates are tried in order and the first one under which the first
    spare holds a valid header tag (chunk id 0) followed by another valid
    tag wins. Ties between candidates are not resolved any further.
    """

    page_sizes: Sequence[int] = attr.field(factory=lambda: list(VALID_PAGE_SIZES))
    spare_sizes: Sequence[int] = attr.field(factory=lambda: list(VALID_SPARE_SIZES))
    spare_skips: Sequence[int] = attr.field(factory=lambda: list(VALID_SPARE_SKIPS))
    endianness: Endian = Endian.LITTLE

    def candidates(self):
        for page_size, spare_size, spare_skip in itertools.product(
            self.page_sizes, self.spare_sizes, self.spare_skips
        ):
            yield Geometry(
                page_size=page_size,
                spare_size=spare_size,
                spare_skip=spare_skip,
                endianness=self.endianness,
            )

    def detect(self, file: BinaryIO) -> Geometry:
        image_size = get_size(file)
        try:
            for geometry in self.candidates():
                if self._matches(file, geometry, image_size):
                    logger.info("Found possible geometry", geometry=str(geometry))
                    return geometry
        finally:
            file.seek(0, io.SEEK_SET)
        raise GeometryNotDetectedError("No suitable geometry detected.")

    def _matches(self, file: BinaryIO, geometry: Geometry, image_size: int) -> bool:
        logger.debug("Testing geometry", geometry=str(geometry), _verbosity=2)
        pairs = read_pairs(file, geometry.page_size, geometry.spare_size, 2)
        if len(pairs) < 2:
            return False

        (first_page, first_spare), (second_page, second_spare) = pairs
        first_blank = is_blank(first_page) and is_blank(first_spare)
        second_blank = is_blank(second_page) and is_blank(second_spare)
        if first_blank:
            return False

        # a header always occupies chunk 0, so the first record must point to one
        first_tag = decode_spare_tag(
            first_spare, geometry.spare_skip, geometry.endianness
        )
        if not isinstance(first_tag, SpareTag) or first_tag.chunk_id != 0:
            return False

        if second_blank:
            # A single header record followed by erased flash. Shorter spare
            # sizes also see a valid first tag and an erased second pair here,
            # so the image has to be made of whole pairs.
            return image_size % geometry.pair_size == 0

        second_tag = decode_spare_tag(
            second_spare, geometry.spare_skip, geometry.endianness
        )
        return isinstance(second_tag, SpareTag)


def detect_geometry(
    file: BinaryIO,
    page_sizes: Optional[Sequence[int]] = None,
    spare_sizes: Optional[Sequence[int]] = None,
    spare_skips: Optional[Sequence[int]] = None,
) -> Geometry:
    detector = GeometryDetector(
        page_sizes=VALID_PAGE_SIZES if page_sizes is None else page_sizes,
        spare_sizes=VALID_SPARE_SIZES if spare_sizes is None else spare_sizes,
        spare_skips=VALID_SPARE_SKIPS if spare_skips is None else spare_skips,
    )
    return detector.detect(file)


def detect_geometry_or_default(
    file: BinaryIO, detector: Optional[GeometryDetector] = None
) -> Tuple[Geometry, bool]:
    """Detect the geometry, falling back to ``DEFAULT_GEOMETRY``.

    Returns the geometry and whether it was detected.
    """
    detector = detector or GeometryDetector()
    try:
        return detector.detect(file), True
    except GeometryNotDetectedError as exc:
        logger.warning(
            "Using default geometry, auto-detection failed",
            reason=str(exc),
            geometry=str(DEFAULT_GEOMETRY),
        )
        return DEFAULT_GEOMETRY, False
