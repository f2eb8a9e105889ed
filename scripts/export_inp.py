"""
Export a network (project JSON or Excel workbook) to a WHAMO .inp file.

    python scripts/export_inp.py network.json -o network.inp
    python scripts/export_inp.py network.xlsx --unit SI --tables tables.xlsx
"""
import argparse
import logging
import sys
from pathlib import Path

from whamo.adapters.excel.read_excel import load_network_from_excel
from whamo.adapters.project.project_io import load_project
from whamo.core.build.validate import NetworkValidationError, raise_on_errors, validate_network
from whamo.core.export.inp_writer import write_inp
from whamo.core.export.tables import export_network_excel, export_requests_csv

logger = logging.getLogger("whamo.scripts.export_inp")


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s | %(name)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Write a WHAMO .inp file from an editor network.")
    parser.add_argument("input", help="Project file (.json) or workbook (.xlsx)")
    parser.add_argument("-o", "--output", help="Output .inp path (default: input with .inp suffix)")
    parser.add_argument("--unit", choices=["SI", "FPS"], help="Switch the global unit before export")
    parser.add_argument("--tables", help="Also write the network tables to this .xlsx")
    parser.add_argument("--requests-csv", help="Also write the output requests to this .csv")
    parser.add_argument("--no-validate", action="store_true", help="Skip the consistency check")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    src = Path(args.input)
    if src.suffix.lower() in (".xlsx", ".xlsm"):
        store = load_network_from_excel(str(src))
    else:
        store = load_project(src)

    if args.unit:
        store.set_global_unit(args.unit)

    snap = store.snapshot()
    if not args.no_validate:
        issues = validate_network(snap)
        for it in issues:
            if it.level == "warning":
                logger.warning(it.message + (f" | hint: {it.hint}" if it.hint else ""))
        try:
            raise_on_errors(issues)
        except NetworkValidationError as e:
            logger.error(str(e))
            return 1

    out = Path(args.output) if args.output else src.with_suffix(".inp")
    write_inp(snap, out, project_name=store.project_name)

    if args.tables:
        export_network_excel(snap, args.tables, project_name=store.project_name)
        logger.info("Wrote %s", args.tables)
    if args.requests_csv:
        export_requests_csv(snap, args.requests_csv)
        logger.info("Wrote %s", args.requests_csv)
    return 0


if __name__ == "__main__":
    sys.exit(main())
