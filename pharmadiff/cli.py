"""Command-line entrypoint for registry snapshot diffs and report merging."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any

from pharmadiff.adapters import CsvAdapter, ExcelAdapter, FhirBundleAdapter, entries_from_bundles, snapshot_as_of
from pharmadiff.config import Settings, load_settings
from pharmadiff.dates import date_label_from_filename, file_mod_date_label, format_label, label_to_date
from pharmadiff.diff import ChangeSet, count_by_flag, diff_price_lists, diff_registrations, merge, project_changes
from pharmadiff.errors import PharmaDiffError
from pharmadiff.parser import RegistrationParser
from pharmadiff.report import render_html
from pharmadiff.schema import FLAG_LEGEND, SOURCE_PRICE_LIST, SOURCE_REGISTRATION

logger = logging.getLogger("pharmadiff")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pharmadiff",
        description="Diff registration and price-list snapshots and merge the change-sets",
    )
    parser.add_argument("--output-dir", type=str, help="Directory for JSON/HTML output")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, help="Logging level")
    commands = parser.add_subparsers(dest="command", required=True)

    registration = commands.add_parser("registration-diff", help="Compare two registration sheets (xlsx/csv)")
    registration.add_argument("old", type=str, help="Older registration sheet")
    registration.add_argument("new", type=str, help="Newer registration sheet")

    price = commands.add_parser("price-diff", help="Compare two price-list FHIR NDJSON exports")
    price.add_argument("old", type=str, help="Older NDJSON export")
    price.add_argument("new", type=str, help="Newer NDJSON export")
    price.add_argument("--category", type=str, help="Print only this category (e.g. new, del, retail_up)")
    price.add_argument("--terse", action="store_true", help="With --category, print bare identifiers")
    price.add_argument("--partitions", type=int, help="Number of identifier partitions")
    price.add_argument("--workers", type=int, help="Worker threads")

    merge_cmd = commands.add_parser("merge", help="Merge a price and a registration change-set")
    merge_cmd.add_argument("price", type=str, help="Price-list change-set JSON")
    merge_cmd.add_argument("registration", type=str, help="Registration change-set JSON")
    merge_cmd.add_argument("--html", action="store_true", help="Also write an HTML report")

    return parser.parse_args(argv)


def write_json(path: Path, data: Any) -> None:
    """Write pretty-printed JSON; the target only appears once fully written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    _write_atomic(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


def _write_atomic(path: Path, text: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def snapshot_label(path: str) -> str:
    return date_label_from_filename(path) or file_mod_date_label(path)


def print_summary(title: str, counts: dict[int, int]) -> None:
    print(f"\n{title}")
    print(f"{'Flag':<5} {'Category':<21}: Changes")
    print("-" * 40)
    for flag, count in counts.items():
        print(f"{flag:>4}  {FLAG_LEGEND[flag]:<21}: {count}")


def run_registration_diff(args: argparse.Namespace, settings: Settings) -> int:
    parser = RegistrationParser()
    parser.register_adapter(ExcelAdapter())
    parser.register_adapter(CsvAdapter())

    old_label = snapshot_label(args.old)
    new_label = snapshot_label(args.new)
    print(f"Old date: {old_label}, New date: {new_label}")

    change_set = diff_registrations(
        parser.parse(args.old),
        parser.parse(args.new),
        old_label=old_label,
        new_label=new_label,
    )

    output_path = Path(settings.output_dir) / f"registration_diff_{old_label}-{new_label}.json"
    write_json(output_path, change_set.to_dict())

    print_summary("Registration changes", change_set.counts_by_flag())
    print(f"\nJSON output written to: {output_path}")
    return 0


def run_price_diff(args: argparse.Namespace, settings: Settings) -> int:
    adapter = FhirBundleAdapter()

    old_label = snapshot_label(args.old)
    new_label = snapshot_label(args.new)
    if not args.terse:
        print(f"Old date: {old_label}")
        print(f"New date: {new_label}")

    with ThreadPoolExecutor(max_workers=2) as executor:
        old_future = executor.submit(adapter.read_bundles, args.old)
        new_future = executor.submit(adapter.read_bundles, args.new)
        old_bundles = old_future.result()
        new_bundles = new_future.result()

    as_of_old = snapshot_as_of(old_bundles, label_to_date(old_label) or date.today())
    as_of_new = snapshot_as_of(new_bundles, label_to_date(new_label) or date.today())

    workers = args.workers or settings.workers
    change_set = diff_price_lists(
        entries_from_bundles(old_bundles),
        entries_from_bundles(new_bundles),
        as_of_old,
        as_of_new,
        partitions=args.partitions or settings.partitions,
        max_workers=workers,
        old_label=old_label,
        new_label=new_label,
    )

    if args.category:
        selected = project_changes(change_set.changes, args.category, terse=args.terse)
        if args.terse:
            for identifier in selected:
                print(identifier)
        else:
            print(json.dumps([c.to_dict() for c in selected], indent=2, ensure_ascii=False))
        return 0

    output_path = Path(settings.output_dir) / f"price_diff_{old_label}-{new_label}.json"
    write_json(output_path, change_set.to_dict())

    print_summary("Price-list changes", change_set.counts_by_flag())
    print(f"\nDiff written to {output_path}")
    return 0


def run_merge(args: argparse.Namespace, settings: Settings) -> int:
    with open(args.price, encoding="utf-8") as f:
        price_set = ChangeSet.from_dict(json.load(f))
    with open(args.registration, encoding="utf-8") as f:
        registration_set = ChangeSet.from_dict(json.load(f))

    report = merge(price_set, registration_set)
    report.metadata["price_source_file"] = args.price
    report.metadata["registration_source_file"] = args.registration

    output_path = Path(settings.output_dir) / f"med-drugs-update_{format_label(date.today())}.json"
    html_text = render_html(report) if args.html else None

    write_json(output_path, report.to_dict())
    print(f"Merge completed -> {output_path}")

    changes = report.all_changes()
    per_source = ((SOURCE_PRICE_LIST, "Price-list changes"), (SOURCE_REGISTRATION, "Registration changes"))
    for source, title in per_source:
        print_summary(title, count_by_flag(c for c in changes if source in c.sources))
    print_summary("Merged changes", report.counts_by_flag())

    if html_text is not None:
        html_path = output_path.with_suffix(".html")
        _write_atomic(html_path, html_text)
        print(f"HTML output  -> {html_path}")
    return 0


COMMANDS = {
    "registration-diff": run_registration_diff,
    "price-diff": run_price_diff,
    "merge": run_merge,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.output_dir:
        settings = replace(settings, output_dir=args.output_dir)
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return COMMANDS[args.command](args, settings)
    except (PharmaDiffError, OSError, KeyError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
