"""Spreadsheet import tool for the accounting API.

Usage:
    ledgerimport sheets FILE [--sheet NAME] [--rows N]
    ledgerimport upload-master PROGRAM FILE [--sheet NAME] [--no-wait]
    ledgerimport upload-chart PROGRAM FILE [--sheet NAME] [--no-wait]
    ledgerimport status JOB
    ledgerimport errors JOB
    ledgerimport import-ledger FILE --program ID --shop ID --period YYYY-MM --format TYPE
                               [--sheet NAME] [--map TARGET=COLUMN ...] [--auto-map] [--no-wait]
    ledgerimport template OUT
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

from ledgerimport.client import AccountingClient
from ledgerimport.config import get_settings
from ledgerimport.errors import LedgerImportError
from ledgerimport.logging_setup import configure_logging
from ledgerimport.models import ImportJob, ImportRowError, SpreadsheetFile
from ledgerimport.services.notifications import Notifier, get_notifier
from ledgerimport.services.poller import JobStatusPoller
from ledgerimport.services.session import ImportSessionController
from ledgerimport.services.sheets import analyze_workbook, preview_sheet
from ledgerimport.services.uploader import UploadSubmitter, UploadTarget


def parse_period(value: str) -> date:
    """Parse ``YYYY-MM`` into the first day of that month."""
    try:
        year, month = value.split("-")
        return date(int(year), int(month), 1)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid period '{value}', expected YYYY-MM")


def parse_mapping(value: str) -> tuple[str, str]:
    """Parse ``TARGET=COLUMN``."""
    target, sep, column = value.partition("=")
    if not sep or not target.strip() or not column.strip():
        raise argparse.ArgumentTypeError(f"invalid mapping '{value}', expected TARGET=COLUMN")
    return target.strip(), column.strip()


def print_job(job: ImportJob) -> None:
    """Print a one-line job summary."""
    line = (
        f"Job {job.job_id}: {job.status.value} {job.percentage_complete:.0f}% "
        f"({job.processed_records}/{job.total_records} processed, "
        f"{job.successful_records} successful, {job.failed_records} failed)"
    )
    if job.error_message:
        line += f" - {job.error_message}"
    print(line)


def print_row_errors(errors: list[ImportRowError]) -> None:
    if not errors:
        print("No row errors.")
        return
    print(f"{len(errors)} row error(s):")
    for error in errors:
        print(f"  {error}")


def show_sheets(path: Path, sheet_name: str | None, rows: int) -> None:
    """List the sheets of a workbook, or preview one of them."""
    source = SpreadsheetFile.from_path(path)
    if sheet_name is None:
        analysis = analyze_workbook(source)
        print(f"{analysis.file_name}: {len(analysis.sheets)} sheet(s)")
        for sheet in analysis.sheets:
            print(f"  {sheet.sheet_name} ({sheet.row_count} rows, {sheet.column_count} columns)")
        return

    preview = preview_sheet(source, sheet_name, max_rows=rows)
    print(f"{preview.sheet_name}: {preview.total_rows} rows")
    print(" | ".join(preview.headers))
    for row in preview.rows:
        print(" | ".join(str(value) for value in row))


async def wait_for_job(client: AccountingClient, notifier: Notifier, job_id: int) -> int:
    """Poll a job until it terminates and return the exit code."""
    poller = JobStatusPoller(client, notifier, on_update=print_job)
    poller.start(job_id)
    job = await poller.wait()

    if poller.errors:
        print_row_errors(poller.errors)
    if job is None or poller.timed_out or job.is_failure:
        return 1
    return 0


async def upload_chart(
    target: UploadTarget,
    program_id: int,
    path: Path,
    sheet_name: str | None,
    wait: bool,
) -> int:
    """Upload a chart of accounts and optionally follow the import job."""
    settings = get_settings()
    notifier = get_notifier(settings)
    source = SpreadsheetFile.from_path(path)

    async with AccountingClient.from_settings(settings) as client:
        receipt = await UploadSubmitter(client).submit(target, program_id, source, sheet_name)
        print(f"Upload accepted as import job {receipt.job_id}.")
        if not wait:
            return 0
        return await wait_for_job(client, notifier, receipt.job_id)


async def show_status(job_id: int) -> int:
    async with AccountingClient.from_settings() as client:
        print_job(await client.get_job_status(job_id))
    return 0


async def show_errors(job_id: int) -> int:
    async with AccountingClient.from_settings() as client:
        print_row_errors(await client.get_job_errors(job_id))
    return 0


async def download_template(out: Path) -> int:
    async with AccountingClient.from_settings() as client:
        content = await client.download_template()
    out.write_bytes(content)
    print(f"Template saved to {out} ({len(content)} bytes).")
    return 0


async def import_ledger(
    path: Path,
    program_id: int,
    shop_ids: list[int],
    period: date,
    format_type: str,
    sheet_name: str | None,
    mappings: list[tuple[str, str]],
    auto_map: bool,
    wait: bool,
) -> int:
    """Run the three-step general ledger import without prompts."""
    settings = get_settings()
    notifier = get_notifier(settings)
    source = SpreadsheetFile.from_path(path)

    async with AccountingClient.from_settings(settings) as client:
        controller = ImportSessionController(client, notifier, settings=settings)

        # Step 1: program, shops and period
        controller.select_program(program_id)
        controller.select_shops(shop_ids)
        controller.select_period(period)
        await controller.check_prerequisites()
        if not controller.next():
            print(f"Error: {controller.blocking_reason()}", file=sys.stderr)
            return 1

        # Step 2: upload and stage
        if controller.open_file(source) is None:
            return 1
        if await controller.stage(sheet_name) is None:
            return 1

        # Step 3: map and import
        if not await controller.select_format(format_type):
            return 1
        for target, column in mappings:
            controller.set_mapping(target, column)
        if auto_map:
            for target, column in controller.suggest_mappings().items():
                print(f"Mapped {target} <- {column}")

        job = await controller.commit()
        if job is None:
            return 1
        if not wait:
            print(f"Import job {job.job_id} queued.")
            return 0

        job = await controller.wait()
        poller = controller.poller
        if poller is not None and poller.errors:
            print_row_errors(poller.errors)
        if job is None or (poller is not None and poller.timed_out) or job.is_failure:
            return 1
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledgerimport",
        description="Spreadsheet imports for the accounting API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Sheets command
    sheets_parser = subparsers.add_parser("sheets", help="List or preview the sheets of a workbook")
    sheets_parser.add_argument("file", type=Path, help="Excel workbook")
    sheets_parser.add_argument("--sheet", "-s", help="Preview this sheet")
    sheets_parser.add_argument("--rows", "-n", type=int, default=10, help="Rows to preview")

    # Chart upload commands
    for name, help_text in (
        ("upload-master", "Upload a master chart of accounts"),
        ("upload-chart", "Upload a program chart of accounts"),
    ):
        upload_parser = subparsers.add_parser(name, help=help_text)
        upload_parser.add_argument("program", type=int, help="Program id")
        upload_parser.add_argument("file", type=Path, help="Excel workbook")
        upload_parser.add_argument("--sheet", "-s", help="Sheet to import")
        upload_parser.add_argument(
            "--no-wait", action="store_true", help="Do not wait for the import job"
        )

    # Job commands
    status_parser = subparsers.add_parser("status", help="Show the status of an import job")
    status_parser.add_argument("job", type=int, help="Import job id")

    errors_parser = subparsers.add_parser("errors", help="List the row errors of an import job")
    errors_parser.add_argument("job", type=int, help="Import job id")

    # General ledger import
    ledger_parser = subparsers.add_parser("import-ledger", help="Import a general ledger")
    ledger_parser.add_argument("file", type=Path, help="Excel workbook")
    ledger_parser.add_argument("--program", "-p", type=int, required=True, help="Program id")
    ledger_parser.add_argument(
        "--shop", type=int, action="append", required=True, dest="shops", help="Shop id"
    )
    ledger_parser.add_argument(
        "--period", type=parse_period, required=True, help="Accounting period (YYYY-MM)"
    )
    ledger_parser.add_argument("--format", "-f", required=True, dest="format_type", help="Import format")
    ledger_parser.add_argument("--sheet", "-s", help="Sheet to import")
    ledger_parser.add_argument(
        "--map",
        "-m",
        type=parse_mapping,
        action="append",
        default=[],
        dest="mappings",
        metavar="TARGET=COLUMN",
        help="Map a spreadsheet column onto a target field",
    )
    ledger_parser.add_argument(
        "--auto-map", action="store_true", help="Map remaining fields from the column headers"
    )
    ledger_parser.add_argument("--no-wait", action="store_true", help="Do not wait for the import job")

    # Template command
    template_parser = subparsers.add_parser("template", help="Download the chart of accounts template")
    template_parser.add_argument("out", type=Path, help="Output file")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = get_settings()
        configure_logging("DEBUG" if args.verbose else settings.log_level, settings.log_format)

        if args.command == "sheets":
            show_sheets(args.file, args.sheet, args.rows)
            return 0

        elif args.command in ("upload-master", "upload-chart"):
            target = UploadTarget.MASTER_CHART if args.command == "upload-master" else UploadTarget.PROGRAM_CHART
            return asyncio.run(upload_chart(target, args.program, args.file, args.sheet, not args.no_wait))

        elif args.command == "status":
            return asyncio.run(show_status(args.job))

        elif args.command == "errors":
            return asyncio.run(show_errors(args.job))

        elif args.command == "import-ledger":
            return asyncio.run(
                import_ledger(
                    args.file,
                    args.program,
                    args.shops,
                    args.period,
                    args.format_type,
                    args.sheet,
                    args.mappings,
                    args.auto_map,
                    not args.no_wait,
                )
            )

        elif args.command == "template":
            return asyncio.run(download_template(args.out))

    except LedgerImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nAborted.")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
