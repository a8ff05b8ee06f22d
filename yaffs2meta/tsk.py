"""Companion configuration for The Sleuth Kit's YAFFS2 support.

TSK cannot guess the NAND geometry on its own, it reads it from a
``<image>-yaffs2.config`` file placed next to the image.
"""
from pathlib import Path
from typing import Optional

from structlog import get_logger

from .file_utils import Endian
from .models import Geometry

logger = get_logger()

TSK_CONFIG_SUFFIX = "-yaffs2.config"

TSK_CONFIG_TEMPLATE = """\
#YAFFS2 config file
flash_page_size = {page_size}
flash_spare_size = {spare_size}

spare_seq_num_offset = {seq_num_offset}
spare_obj_id_offset = {obj_id_offset}
spare_chunk_id_offset = {chunk_id_offset}"""


def get_tsk_config_path(image_path: Path) -> Path:
    return image_path.with_name(image_path.name + TSK_CONFIG_SUFFIX)


def format_tsk_config(geometry: Geometry) -> str:
    return TSK_CONFIG_TEMPLATE.format(
        page_size=geometry.page_size,
        spare_size=geometry.spare_size,
        seq_num_offset=geometry.spare_skip,
        obj_id_offset=geometry.spare_skip + 4,
        chunk_id_offset=geometry.spare_skip + 8,
    )


def write_tsk_config(image_path: Path, geometry: Geometry) -> Optional[Path]:
    """Write the config file, returns its path or None when nothing was written."""
    if geometry.endianness is not Endian.LITTLE:
        logger.warning("TSK config is only written for little endian images")
        return None

    config_path = get_tsk_config_path(image_path)
    try:
        config_path.write_text(format_tsk_config(geometry))
    except OSError as e:
        logger.error("Can not write TSK config", path=config_path, msg=str(e))
        return None

    logger.info("TSK config written", path=config_path)
    return config_path
