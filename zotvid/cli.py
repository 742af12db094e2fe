from __future__ import annotations

import argparse
import sys
from typing import Optional

from zotvid import __version__
from zotvid.config import DEFAULTS, ESOVDB, ZOTERO
from zotvid.esovdb import EsovdbConfig, parse_date_filter
from zotvid.errors import ZotvidError
from zotvid.output import Reporter
from zotvid.sync import SyncOptions, SyncRun
from zotvid.zotero import ZoteroConfig

EXAMPLES = """\
Examples:

  $ zotvid
  Syncs all records in the ESOVDB with Zotero.

  $ zotvid -m 9 -p 3
  Gets the latest 9 records in 3 separate Airtable API calls and syncs them with
  a Zotero library.

  $ zotvid -M "2020-12-31 00:00 am"
  Syncs all records modified since Dec 31, 2020 at midnight and syncs them with
  a Zotero library.

  $ zotvid -j
  Gets all records in the ESOVDB and downloads them to a json file.
"""


def _bounded_int(ceiling: int):
    def parse(value: str) -> int:
        try:
            n = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"expected a number, got '{value}'")
        return min(n, ceiling)
    return parse


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        prog="zotvid",
        description=(
            "Gets a specified number of records from the ESOVDB (Earth Science Online Video Database), "
            "adds them as items in a Zotero library, and then re-syncs the new Zotero version number or "
            "newly assigned Zotero keys with the ESOVDB."
        ),
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}",
                    help="Display the current version of zotvid")
    ap.add_argument("-m", "--max-records", type=int, default=None,
                    help="Total number of items to add to Zotero (default: all items)")
    ap.add_argument("-p", "--page-size", type=_bounded_int(DEFAULTS["MAX_PAGE_SIZE"]), default=None,
                    help="Maximum number of items (<=100) to retrieve from ESOVDB per page request (default: 100)")
    ap.add_argument("-c", "--chunk-size", type=_bounded_int(DEFAULTS["MAX_CHUNK_SIZE"]), default=DEFAULTS["CHUNK_SIZE"],
                    help="Maximum number of items (<=50) to add to Zotero in a single request (default: 50)")
    ap.add_argument("-w", "--wait-secs", type=float, default=DEFAULTS["WAIT_SECS"],
                    help="Seconds to wait between Zotero requests (default: 10)")
    ap.add_argument("-C", "--created-after", metavar="DATE",
                    help="Include only records created after DATE (if -M is also given, -M wins)")
    ap.add_argument("-M", "--modified-after", metavar="DATE",
                    help="Include only records modified after DATE")
    ap.add_argument("-j", "--json", dest="raw_json", action="store_true",
                    help="Retrieve raw json without syncing with Zotero")
    ap.add_argument("-s", "--silent", action="store_true", help="Run without any logging")
    ap.add_argument("--dump-path", default=DEFAULTS["DUMP_PATH"], help="File written by --json (default: videos.json)")
    ap.add_argument("--failed-path", default=DEFAULTS["FAILED_PATH"],
                    help="File receiving items Zotero rejected (default: failed.json)")
    args = ap.parse_args(argv)
    if args.chunk_size < 1:
        ap.error("--chunk-size must be at least 1")
    if args.wait_secs < 0:
        ap.error("--wait-secs cannot be negative")
    return args


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    reporter = Reporter(silent=args.silent)

    if not ESOVDB["BASE_URL"]:
        reporter.error("ESOVDB_PROXY_URL is not set.")
        return 2
    zotero_cfg = None
    if not args.raw_json:
        if not ZOTERO["API_KEY"]:
            reporter.error("ZOTERO_API_KEY is not set.")
            return 2
        if not ZOTERO["USER"]:
            reporter.error("ZOTERO_USER is not set.")
            return 2
        zotero_cfg = ZoteroConfig.from_env()

    options = SyncOptions(
        max_records=args.max_records,
        page_size=args.page_size,
        chunk_size=args.chunk_size,
        wait_secs=args.wait_secs,
        created_after=parse_date_filter(args.created_after) if args.created_after else None,
        modified_after=parse_date_filter(args.modified_after) if args.modified_after else None,
        raw_json=args.raw_json,
        dump_path=args.dump_path,
        failed_path=args.failed_path or None,
    )

    run = SyncRun(options, EsovdbConfig.from_env(), zotero_cfg, reporter=reporter)
    try:
        run.run()
    except ZotvidError as e:
        reporter.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
