#!/usr/bin/env python3
import functools
import stat
import sys
from importlib.metadata import version
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from structlog import get_logger

from .logging import configure_logger
from .models import Geometry, ObjectHeader
from .processing import ScanConfig, process_image
from .report import ScanReport

logger = get_logger()


def get_version():
    return version("yaffs2meta")


def show_version(
    ctx: click.Context, _param: click.Option, value: bool  # noqa: FBT001
) -> None:
    if not value or ctx.resilient_parsing:
        return
    click.echo(get_version())
    ctx.exit(code=0)


def verbosity_option(func):
    @click.option(
        "-v",
        "--verbose",
        count=True,
        help="Verbosity level, counting, maximum level: 3 (use: -v, -vv, -vvv)",
    )
    @functools.wraps(func)
    def decorator(*args, **kwargs):
        return func(*args, **kwargs)

    return decorator


def build_geometry(
    page_size: Optional[int], spare_size: Optional[int], spare_skip: Optional[int]
) -> Optional[Geometry]:
    given = [value is not None for value in (page_size, spare_size, spare_skip)]
    if not any(given):
        return None
    if not all(given):
        raise click.UsageError(
            "--page-size, --spare-size and --spare-skip must be given together."
        )
    return Geometry(page_size=page_size, spare_size=spare_size, spare_skip=spare_skip)


@click.command(
    help="Recover YAFFS2 object headers from a raw NAND flash dump.",
    context_settings=dict(help_option_names=["--help", "-h"]),
)
@click.argument(
    "image",
    type=click.Path(path_type=Path, dir_okay=False, exists=True, resolve_path=True),
    required=True,
)
@click.option(
    "--page-size",
    type=click.IntRange(1),
    default=None,
    help="NAND page size in bytes. Skips auto-detection.",
)
@click.option(
    "--spare-size",
    type=click.IntRange(1),
    default=None,
    help="NAND spare (OOB) size in bytes. Skips auto-detection.",
)
@click.option(
    "--spare-skip",
    type=click.IntRange(0),
    default=None,
    help="Offset of the packed tags inside the spare area. Skips auto-detection.",
)
@click.option(
    "--tsk-config/--no-tsk-config",
    "tsk_config",
    default=True,
    show_default=True,
    help="Write a <image>-yaffs2.config file for The Sleuth Kit next to the image.",
)
@click.option(
    "--report",
    "report_file",
    type=click.Path(path_type=Path),
    help="File to store the decoded metadata (in JSON format).",
)
@click.option(
    "--log",
    "log_path",
    default=Path("yaffs2meta.log"),
    type=click.Path(path_type=Path),
    help="File to save logs (in text format). Defaults to yaffs2meta.log.",
)
@verbosity_option
@click.option(
    "--version",
    help="Shows yaffs2meta version",
    is_flag=True,
    callback=show_version,
    expose_value=False,
)
def cli(
    image: Path,
    page_size: Optional[int],
    spare_size: Optional[int],
    spare_skip: Optional[int],
    tsk_config: bool,  # noqa: FBT001
    report_file: Optional[Path],
    log_path: Path,
    verbose: int,
) -> ScanReport:
    geometry = build_geometry(page_size, spare_size, spare_skip)
    configure_logger(verbose, log_path)

    try:
        config = ScanConfig(
            geometry=geometry, write_tsk_config=tsk_config, report_file=report_file
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    logger.info("Start processing image", path=image)
    try:
        report = process_image(config, image)
    except ValueError as exc:
        # mmap refuses empty files
        raise click.ClickException(f"Can not read image: {exc}") from exc

    print_report(report)
    exit_code = get_exit_code_from_report(report)
    if exit_code:
        sys.exit(exit_code)
    return report


def format_mode(header: ObjectHeader) -> str:
    return stat.filemode(header.st_mode) if header.st_mode else "-"


def print_report(report: ScanReport):
    console = Console(stderr=False)

    source = "detected" if report.geometry_detected else "default / manual"
    console.print(
        Panel(
            f"{report.geometry} ({source})\n"
            f"pairs: {report.stats.pairs}, headers: {report.stats.headers}, "
            f"data chunks: {report.stats.data_chunks}, "
            f"invalid tags: {report.stats.invalid_tags}",
            title="YAFFS2 geometry",
        )
    )

    table = Table(title="Object headers")
    table.add_column("Offset", justify="right")
    table.add_column("Object ID", justify="right")
    table.add_column("Parent", justify="right")
    table.add_column("Type")
    table.add_column("Mode")
    table.add_column("Size", justify="right")
    table.add_column("Name")

    for header in report.headers:
        name = header.name
        if header.alias:
            name = f"{name} -> {header.alias}"
        table.add_row(
            f"0x{header.offset:x}" if header.offset is not None else "",
            str(header.object_id),
            str(header.parent_obj_id),
            str(header.object_type),
            format_mode(header),
            str(header.file_size),
            Text(name.encode("utf-8", errors="backslashreplace").decode("utf-8")),
        )
    console.print(table)

    if report.error:
        console.print(f"[bold red]Scan aborted:[/] {escape(report.error)}")


def get_exit_code_from_report(report: ScanReport) -> int:
    return 0 if report.is_complete else 1


def main():
    try:
        # Click argument parsing
        ctx = cli.make_context("yaffs2meta", sys.argv[1:])
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.exceptions.Exit as e:
        sys.exit(e.exit_code)

    try:
        with ctx:
            cli.invoke(ctx)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except Exception:
        logger.exception("Unhandled exception during yaffs2meta")
        sys.exit(1)


if __name__ == "__main__":
    main()
