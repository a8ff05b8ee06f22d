import json
from enum import Enum
from pathlib import Path
from typing import List, Optional

import attr
from structlog import get_logger

from .models import Geometry, ObjectHeader

logger = get_logger()


@attr.define
class ScanStats:
    """Counters of a single pass over the image."""

    pairs: int = 0
    headers: int = 0
    data_chunks: int = 0
    invalid_tags: int = 0


@attr.define(kw_only=True)
class ScanReport:
    """Everything learned from one image."""

    path: Optional[Path] = None
    geometry: Geometry
    geometry_detected: bool
    stats: ScanStats = attr.field(factory=ScanStats)
    headers: List[ObjectHeader] = attr.field(factory=list)
    error: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.error is None

    def to_json(self, indent="  "):
        return to_json(self, indent=indent)


class _JSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if attr.has(type(obj)):
            attr_output = attr.asdict(obj, recurse=False)
            # IntEnum values are ints and would never reach default()
            for key, value in attr_output.items():
                if isinstance(value, Enum):
                    attr_output[key] = value.name
            attr_output["__typename__"] = obj.__class__.__name__
            return attr_output

        if isinstance(obj, Enum):
            return obj.name

        if isinstance(obj, Path):
            return str(obj)

        if isinstance(obj, bytes):
            try:
                return obj.decode()
            except UnicodeDecodeError:
                return str(obj)

        logger.error("JSONEncoder met a non-JSON encodable value", obj=obj)
        # instead of failing, just return something usable
        return f"Non-JSON encodable value: {obj}"


def to_json(obj, indent="  ") -> str:
    return json.dumps(obj, cls=_JSONEncoder, indent=indent)


def write_json_report(report_file: Path, report: ScanReport):
    try:
        report_file.write_text(report.to_json())
    except OSError as e:
        logger.error("Can not write JSON report", path=report_file, msg=str(e))
    else:
        logger.info("JSON report written", path=report_file)
