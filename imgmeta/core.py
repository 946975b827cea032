# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Core imgmeta API

Reads files from disk, hands their bytes to the record builder and offers
batch extraction across many files.

Copyright 2025 DNAi inc.
"""

import json
import logging
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Union

from imgmeta.exceptions import NotAJpegError, UnsupportedOptionError
from imgmeta.exif_parser import ExifParser
from imgmeta.metadata_record import FileInfo, MetadataRecord, build_record
from imgmeta.value_formatter import to_json_value

logger = logging.getLogger(__name__)

AVAILABLE_OPTIONS: Dict[str, Dict[str, Any]] = {
    'MaxIFDDepth': {
        'type': 'int',
        'default': ExifParser.DEFAULT_MAX_DEPTH,
        'description': 'Maximum directory depth below IFD0 (Exif, GPS and IFD1 are 1, Interop is 2)',
    },
    'MaxEntries': {
        'type': 'int',
        'default': ExifParser.DEFAULT_MAX_ENTRIES,
        'description': 'Maximum number of entries read from one directory',
    },
    'IncludeUnknown': {
        'type': 'bool',
        'default': False,
        'description': 'Include tags that are not in the tag table (as Unknown_XXXX)',
    },
    'IncludeThumbnailIFD': {
        'type': 'bool',
        'default': True,
        'description': 'Decode IFD1 (thumbnail directory) tags',
    },
    'Length': {
        'type': 'int',
        'default': None,
        'description': 'Read at most this many bytes of each file (None reads everything)',
    },
}


def validate_option(option_name: str, value: Any) -> Any:
    """
    Check an option name and coerce its value to the declared type.

    Raises:
        UnsupportedOptionError: If the option is unknown or the value does not convert
    """
    if option_name not in AVAILABLE_OPTIONS:
        raise UnsupportedOptionError(
            f"Unknown option: {option_name}. Available options: {', '.join(sorted(AVAILABLE_OPTIONS))}"
        )
    expected_type = AVAILABLE_OPTIONS[option_name]['type']
    if value is None:
        return None
    if expected_type == 'bool' and not isinstance(value, bool):
        if isinstance(value, str):
            return value.lower() in ('true', '1', 'yes', 'on')
        return bool(value)
    if expected_type == 'int' and (not isinstance(value, int) or isinstance(value, bool)):
        try:
            return int(value)
        except (ValueError, TypeError):
            raise UnsupportedOptionError(
                f"Option {option_name} requires int value, got {type(value).__name__}"
            )
    return value


def resolve_options(options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Defaults overlaid with the validated given options."""
    resolved = {name: info['default'] for name, info in AVAILABLE_OPTIONS.items()}
    for name, value in (options or {}).items():
        resolved[name] = validate_option(name, value)
    return resolved


def read_file(file_path: Union[str, Path], length: Optional[int] = None) -> bytes:
    """
    Read a file's contents once.

    Args:
        file_path: Path to the file
        length: Optional maximum number of bytes to read

    Raises:
        OSError: If the file cannot be read
    """
    with open(file_path, 'rb') as f:
        if length is not None:
            return f.read(length)
        return f.read()


def stat_file(file_path: Union[str, Path]) -> FileInfo:
    """
    Collect file-system attributes.

    Raises:
        OSError: If the file cannot be stat'ed
    """
    path = Path(file_path)
    return FileInfo.from_stat(path, path.stat())


def extract_file(file_path: Union[str, Path], options: Optional[Dict[str, Any]] = None) -> MetadataRecord:
    """
    Build the metadata record for one file.

    Parse problems are reported inside the record; only I/O errors raise.

    Raises:
        OSError: If the file cannot be read
    """
    resolved = resolve_options(options)
    file_info = stat_file(file_path)
    file_data = read_file(file_path, resolved['Length'])
    logger.debug("Read %d bytes from %s", len(file_data), file_path)
    return build_record(
        file_info,
        file_data,
        include_unknown=resolved['IncludeUnknown'],
        max_depth=resolved['MaxIFDDepth'],
        max_entries=resolved['MaxEntries'],
        include_thumbnail=resolved['IncludeThumbnailIFD'],
    )


def sidecar_path(file_path: Union[str, Path]) -> Path:
    """image.jpg -> image.json"""
    return Path(file_path).with_suffix('.json')


def record_to_json(record: MetadataRecord) -> str:
    """Serialize one record as strict, pretty-printed JSON."""
    return json.dumps(record.to_dict(), indent=2, ensure_ascii=False, allow_nan=False)


def write_metadata_to_file(output_path: Union[str, Path], record: MetadataRecord) -> None:
    """
    Write the record as pretty-printed JSON.

    The JSON goes to a temporary file next to output_path that is renamed
    over it, so a failed write never leaves a partial file behind.

    Raises:
        OSError: If the file cannot be written
        ValueError: If the record cannot be serialized
    """
    output_path = Path(output_path)
    content = record_to_json(record) + '\n'
    temp_output = tempfile.NamedTemporaryFile(
        'w', encoding='utf-8', dir=output_path.parent, prefix=f".{output_path.stem}.",
        suffix='.tmp', delete=False
    )
    temp_path = Path(temp_output.name)
    try:
        with temp_output:
            temp_output.write(content)
        os.replace(temp_path, output_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()


def process_file(
    file_path: Union[str, Path],
    write_json: bool = True,
    options: Optional[Dict[str, Any]] = None
) -> MetadataRecord:
    """
    Extract the metadata of an image and write it to a JSON file beside it.

    Args:
        file_path: Path to the image
        write_json: Write <image>.json next to the image (skipped for non-JPEG
            input and when that path is the input file itself)
        options: Extraction options (see AVAILABLE_OPTIONS)

    Returns:
        The record that was written

    Raises:
        OSError: If the image cannot be read or the JSON file cannot be written
        ValueError: If the record cannot be serialized
    """
    record = extract_file(file_path, options)
    if write_json:
        output_path = sidecar_path(file_path)
        if record.error_type == NotAJpegError.__name__:
            logger.info("Not writing %s: %s is not a JPEG file", output_path, file_path)
        elif output_path.resolve() == Path(file_path).resolve():
            logger.warning("Not writing %s: it would overwrite the input file", output_path)
        else:
            write_metadata_to_file(output_path, record)
            logger.info("Wrote %s", output_path)
    return record


class FileOutcome(NamedTuple):
    """Result of one file in a batch: a record, or the error that prevented it."""
    path: Path
    record: Optional[MetadataRecord]
    error: Optional[Exception]


def _extract_outcome(path: Path, options: Optional[Dict[str, Any]], write_json: bool) -> FileOutcome:
    try:
        return FileOutcome(path, process_file(path, write_json=write_json, options=options), None)
    except (OSError, ValueError) as e:
        # serialization failures (UnicodeEncodeError, non-finite floats) are ValueErrors
        logger.warning("Could not process %s: %s", path, e)
        return FileOutcome(path, None, e)


def extract_many(
    file_paths: Iterable[Union[str, Path]],
    workers: int = 1,
    options: Optional[Dict[str, Any]] = None,
    write_json: bool = False
) -> List[FileOutcome]:
    """
    Extract metadata from many files.

    Files are independent; with workers > 1 they are processed on a thread
    pool. Outcomes are returned in input order and one failing file never
    stops the others.

    Args:
        file_paths: Paths to process
        workers: Number of worker threads (1 processes sequentially)
        options: Extraction options (see AVAILABLE_OPTIONS)
        write_json: Also write a JSON sidecar file for each image

    Raises:
        UnsupportedOptionError: If options contain an unknown name
    """
    paths = [Path(p) for p in file_paths]
    options = resolve_options(options)

    if workers <= 1 or len(paths) <= 1:
        return [_extract_outcome(path, options, write_json) for path in paths]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(lambda path: _extract_outcome(path, options, write_json), paths))


class MetadataReader:
    """
    Main class for reading metadata from a JPEG file.

    Example:
        >>> with MetadataReader('image.jpg') as reader:
        ...     metadata = reader.get_all_metadata()
        ...     camera = reader.get_tag('Make')
    """

    def __init__(self, file_path: Union[str, Path], options: Optional[Dict[str, Any]] = None):
        """
        Initialize the reader and load the file's metadata.

        Args:
            file_path: Path to the image file
            options: Extraction options (see AVAILABLE_OPTIONS)

        Raises:
            FileNotFoundError: If the file does not exist
            UnsupportedOptionError: If an option is unknown
        """
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")
        self.options = resolve_options(options)
        self._record: Optional[MetadataRecord] = None
        self._load_metadata()

    @staticmethod
    def available_options() -> Dict[str, Dict[str, Any]]:
        return AVAILABLE_OPTIONS

    def set_option(self, option_name: str, value: Any) -> None:
        """
        Set an option value. Call reload() to apply it.

        Raises:
            UnsupportedOptionError: If the option name is not recognized
        """
        self.options[option_name] = validate_option(option_name, value)

    def get_option(self, option_name: str, default: Any = None) -> Any:
        return self.options.get(option_name, default)

    def _load_metadata(self) -> None:
        self._record = extract_file(self.file_path, self.options)

    def reload(self) -> None:
        """Re-read the file with the current options."""
        self._load_metadata()

    @property
    def record(self) -> MetadataRecord:
        return self._record

    def get_all_metadata(self, json_values: bool = False) -> Dict[str, Any]:
        """
        Get all decoded tags.

        Args:
            json_values: Convert values with to_json_value()
        """
        metadata = dict(self._record.metadata)
        if json_values:
            byte_order = self._record.byte_order
            return {name: to_json_value(name, value, byte_order) for name, value in metadata.items()}
        return metadata

    def get_tag(self, tag_name: str, default: Any = None) -> Any:
        return self._record.metadata.get(tag_name, default)

    def __enter__(self) -> 'MetadataReader':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._record = None
