# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Command-line interface for imgmeta

Extracts metadata from image files into JSON. Accepts any number of paths
(typically a shell glob), prints the records and optionally writes an
<image>.json file next to each image.

Copyright 2025 DNAi inc.
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from imgmeta import __version__
from imgmeta.core import FileOutcome, extract_many
from imgmeta.exceptions import UnsupportedOptionError
from imgmeta.metadata_record import display_path
from imgmeta.value_formatter import format_exif_value

logger = logging.getLogger(__name__)


def configure_logging(verbose: int = 0, quiet: bool = False) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format='%(levelname)s %(name)s: %(message)s',
    )


def parse_api_options(api_args: Optional[List[str]]) -> Dict[str, Any]:
    """
    Parse -api OPT=VAL arguments.

    A bare OPT sets a boolean option to True.
    """
    options: Dict[str, Any] = {}
    for api_opt in api_args or []:
        if '=' in api_opt:
            opt_name, opt_val = api_opt.split('=', 1)
            options[opt_name.strip()] = opt_val.strip()
        else:
            options[api_opt.strip()] = True
    return options


def format_error(path: str, error: Exception) -> str:
    errno = getattr(error, 'errno', None)
    strerror = getattr(error, 'strerror', None)
    if errno is not None and strerror:
        message = f"{strerror} (os error {errno})"
    else:
        message = str(error)
    return f"While processing {display_path(path)}, we hit an error:\n  {message}"


def format_text(outcome: FileOutcome) -> str:
    record = outcome.record
    lines = [f"======== {display_path(record.file_path)}"]
    summary = record.to_dict()
    summary.pop('metadata')
    for key, value in summary.items():
        if isinstance(value, list):
            value = '; '.join(str(v) for v in value)
        lines.append(f"{key}: {value}")
    for tag, value in sorted(record.metadata.items()):
        lines.append(f"{tag}: {format_exif_value(tag, value, record.byte_order)}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='imgmeta',
        description="Extracts metadata from image files into json",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print metadata of every JPEG in a directory as JSON
  imgmeta photos/*.jpg

  # Write photo.json next to photo.jpg
  imgmeta -w photo.jpg

  # Human-readable output, 4 worker threads
  imgmeta -t --workers 4 photos/*.jpg
        """
    )
    parser.add_argument('files', nargs='+', help='Image file(s) to process')
    output = parser.add_mutually_exclusive_group()
    output.add_argument('-j', '--json', action='store_true', help='Print records as a JSON array (default)')
    output.add_argument('-t', '--text', action='store_true', help='Print records as "Tag: value" lines')
    output.add_argument('-n', '--no-print', action='store_true', help='Do not print records (use with -w)')
    parser.add_argument('-w', '--write', action='store_true', help='Write <image>.json next to each image')
    parser.add_argument('-u', '--unknown', action='store_true', help='Extract unknown tags')
    parser.add_argument('--workers', type=int, default=1, help='Number of files processed in parallel')
    parser.add_argument('-api', type=str, action='append', help='Set extraction option (format: OPT=VAL)')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='Verbose logging (-vv for debug)')
    parser.add_argument('-q', '--quiet', action='store_true', help='Only log errors')
    parser.add_argument('-V', '--version', action='version', version=f'imgmeta {__version__}')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    options = parse_api_options(args.api)
    if args.unknown:
        options['IncludeUnknown'] = True

    logger.debug("Processing %d file(s) with %d worker(s)", len(args.files), args.workers)
    try:
        outcomes = extract_many(args.files, workers=args.workers, options=options, write_json=args.write)
    except UnsupportedOptionError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2

    exit_code = 0
    records = []
    for outcome in outcomes:
        if outcome.error is not None:
            print(format_error(str(outcome.path), outcome.error), file=sys.stderr)
            exit_code = 1
            continue
        records.append(outcome)

    if args.no_print or not records:
        return exit_code

    if args.text:
        print("\n\n".join(format_text(outcome) for outcome in records))
    else:
        records_json = [outcome.record.to_dict() for outcome in records]
        print(json.dumps(records_json, indent=2, ensure_ascii=False, allow_nan=False))

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
