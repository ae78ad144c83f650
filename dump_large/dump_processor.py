#!/usr/bin/env python3
"""Download and filter Wikidata dumps with constant RAM.

The jq filter is applied to EACH ENTITY, not to the dump as a whole.
"""

import argparse, logging, pathlib, sys
from typing import List, Optional

from dump_large.downloader import download_dump
from dump_large.json_worker.streaming_extractor import RunCounters, extract
from shared.config import RunConfig, debug_enabled, default_chunk_size
from shared.errors import DumpError

logger = logging.getLogger(__name__)


def process(config: RunConfig) -> RunCounters:
    logger.debug("%s", config)
    counters = extract(config)
    logger.info("Done %s records, %s outputted in %.2fs",
                counters.records_seen, counters.records_emitted, counters.elapsed)
    return counters


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="dump-lite", description="Download and filter wikidata dumps")
    ap.add_argument("-c", "--continue-on-error", action="store_true",
                    help="Don't bail on error while filtering")
    ap.add_argument("-d", "--download", action="store_true",
                    help="Download wikidata dump json file (default is to '.')")
    ap.add_argument("-i", "--input", type=pathlib.Path, dest="input_file_path",
                    help="Source wikidata dump")
    ap.add_argument("-o", "--output", type=pathlib.Path, dest="output_file_path",
                    help="Filename to output filtered entities (default is stdout)")
    ap.add_argument("-f", "--force", action="store_true", dest="force_overwrite",
                    help="Force overwriting files")
    ap.add_argument("-j", "--jq-filter", default="",
                    help="jq filter, see https://jqlang.github.io/jq/ for usage. "
                         "NOTE: The filter is applied to EACH ENTITY!")
    ap.add_argument("--chunk-size", type=int, default=None,
                    help="bytes read per chunk; must exceed the largest entity for best throughput")
    ap.add_argument("--sentinel", default="null",
                    help="value written in place of an entity that failed with --continue-on-error")
    ap.add_argument("--skip-failed", action="store_true",
                    help="write nothing for failed entities instead of the sentinel")
    ap.add_argument("--validate", action="store_true",
                    help="check that each entity is a single well-formed JSON object")
    ap.add_argument("--version-tag", default="latest", help="dump version to download")
    ap.add_argument("--download-dir", type=pathlib.Path, default=pathlib.Path("."),
                    help="where to put downloaded dumps")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return ap


def cli(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    if args.chunk_size is not None and args.chunk_size < 1:
        ap.error("--chunk-size must be a positive integer")
    logging.basicConfig(
        level=logging.DEBUG if args.verbose or debug_enabled() else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger.debug("Starting...")

    try:
        input_path = args.input_file_path
        if args.download:
            downloaded = download_dump(args.version_tag, args.download_dir, force=args.force_overwrite)
            if input_path is None:
                input_path = downloaded

        if not args.jq_filter:
            logger.info("No filter provided")
            return 0
        if input_path is None:
            logger.error("No input provided, use --input or --download")
            return 2

        config = RunConfig(
            input_source=input_path,
            filter_expression=args.jq_filter,
            output_destination=args.output_file_path,
            continue_on_error=args.continue_on_error,
            overwrite_existing_output=args.force_overwrite,
            chunk_size=args.chunk_size or default_chunk_size(),
            sentinel=None if args.skip_failed else args.sentinel + "\n",
            validate_records=args.validate,
        )
        process(config)
    except DumpError as e:
        logger.error("%s", e.describe())
        return 1
    return 0


def main():
    sys.exit(cli())


if __name__ == "__main__":
    main()
