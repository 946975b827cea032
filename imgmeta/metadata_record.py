# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Metadata record builder

Combines file-level attributes with the decoded EXIF tags into one
MetadataRecord per file. Parse failures never raise from here: they end up
in the record's error fields so that a batch keeps going.

Copyright 2025 DNAi inc.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Union

from imgmeta.exceptions import MetadataReadError
from imgmeta.exif_parser import ExifData, ExifParser
from imgmeta.jpeg_segments import EXIF_SIGNATURE, JpegSegmentWalker, Segment
from imgmeta.value_formatter import metadata_to_json

logger = logging.getLogger(__name__)

CAPTURE_TIME_FORMAT = '%Y:%m:%d %H:%M:%S'


@dataclass(frozen=True)
class FileInfo:
    """
    File-system attributes of one input file.

    created_time is None on platforms/filesystems that do not record it.
    """
    path: str
    filename: str
    size: int
    created_time: Optional[datetime] = None
    modified_time: Optional[datetime] = None

    @classmethod
    def from_stat(cls, file_path: Union[str, Path], stat_result: os.stat_result) -> 'FileInfo':
        path = Path(file_path)
        birth_time = getattr(stat_result, 'st_birthtime', None)
        return cls(
            path=str(path),
            filename=path.name,
            size=stat_result.st_size,
            created_time=_utc(birth_time),
            modified_time=_utc(stat_result.st_mtime),
        )


def _utc(timestamp: Optional[float]) -> Optional[datetime]:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _format_utc(value: datetime) -> str:
    return value.isoformat().replace('+00:00', 'Z')


def display_path(value: str) -> str:
    """
    Return a file name that always encodes as UTF-8.

    Names that are not valid UTF-8 arrive with surrogate escapes; their
    undecodable bytes become U+FFFD.
    """
    return os.fsencode(value).decode('utf-8', errors='replace')


class MetadataResult(NamedTuple):
    """Output of extract_metadata(): decoded Exif (or None) and frame size."""
    exif: Optional[ExifData]
    width: Optional[int]
    height: Optional[int]


@dataclass(frozen=True)
class MetadataRecord:
    """
    Everything known about one file.

    metadata maps tag names to decoded values and is empty when the file has
    no Exif block or it could not be decoded; byte_order is the TIFF byte
    order of that block. error/error_type describe a file-level parse failure.
    """
    file_path: str
    filename: str
    file_size: int
    created_time: Optional[datetime] = None
    modified_time: Optional[datetime] = None
    width: Optional[int] = None
    height: Optional[int] = None
    orientation: Optional[int] = None
    capture_time: Optional[datetime] = None
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    camera_serial: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    byte_order: Optional[str] = None
    skipped_tags: List[str] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """
        JSON-ready mapping. Fields that are None (and empty skipped_tags) are left out.
        """
        result: Dict[str, Any] = {
            'filename': display_path(self.filename),
            'path': display_path(self.file_path),
            'size': self.file_size,
        }
        optional = {
            'created_time': self.created_time and _format_utc(self.created_time),
            'modified_time': self.modified_time and _format_utc(self.modified_time),
            'width': self.width,
            'height': self.height,
            'orientation': self.orientation,
            'capture_time': self.capture_time and self.capture_time.isoformat(),
            'camera_make': self.camera_make,
            'camera_model': self.camera_model,
            'camera_serial': self.camera_serial,
        }
        result.update((key, value) for key, value in optional.items() if value is not None)
        result['metadata'] = metadata_to_json(self.metadata, self.byte_order)
        if self.skipped_tags:
            result['skipped_tags'] = list(self.skipped_tags)
        if self.error is not None:
            result['error'] = self.error
            result['error_type'] = self.error_type
        return result


def decode_exif_segment(
    file_data: Union[bytes, memoryview],
    segment: Segment,
    **parser_options
) -> ExifData:
    """
    Decode the TIFF structure of an APP1/Exif segment.

    Raises:
        InvalidTiffHeaderError: If the TIFF header is invalid
    """
    tiff_start = segment.offset + len(EXIF_SIGNATURE)
    payload = memoryview(file_data)[tiff_start:segment.end]
    return ExifParser(payload, base_offset=tiff_start, **parser_options).parse()


def extract_metadata(file_data: Union[bytes, memoryview], **parser_options) -> MetadataResult:
    """
    Run the segment walker and the EXIF decoder over one file's bytes.

    Returns:
        MetadataResult; exif is None when the JPEG has no Exif segment

    Raises:
        NotAJpegError, MalformedSegmentError, InvalidTiffHeaderError
    """
    scan = JpegSegmentWalker(file_data).scan()
    exif = None
    if scan.exif_segment is not None:
        exif = decode_exif_segment(file_data, scan.exif_segment, **parser_options)
    return MetadataResult(exif, scan.width, scan.height)


def _parse_capture_time(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value.strip(), CAPTURE_TIME_FORMAT)
    except ValueError:
        return None


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _str_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def build_record(
    file_info: FileInfo,
    file_data: Union[bytes, memoryview],
    include_unknown: bool = False,
    **parser_options
) -> MetadataRecord:
    """
    Build the record for one file.

    Args:
        file_info: File-system attributes
        file_data: File contents
        include_unknown: Keep tags missing from the tag table
        **parser_options: Passed to ExifParser (max_depth, max_entries, include_thumbnail)

    Returns:
        MetadataRecord; never raises for parse errors
    """
    width = height = None
    exif: Optional[ExifData] = None
    error = error_type = None

    try:
        walker = JpegSegmentWalker(file_data)
        scan = walker.scan()
        width, height = scan.width, scan.height
        if scan.exif_segment is None:
            logger.debug("%s: no Exif segment", file_info.path)
        else:
            exif = decode_exif_segment(file_data, scan.exif_segment, **parser_options)
    except MetadataReadError as e:
        error = e.message or str(e)
        error_type = type(e).__name__
        logger.warning("%s: %s: %s", file_info.path, error_type, error)

    metadata: Dict[str, Any] = {}
    skipped: List[str] = []
    if exif is not None:
        metadata = exif.tags(include_unknown=include_unknown)
        skipped = [s.describe() for s in exif.skipped]
        if skipped:
            logger.info("%s: %d tag(s) skipped", file_info.path, len(skipped))

    if width is None:
        width = _int_or_none(metadata.get('Exif:PixelXDimension'))
        height = _int_or_none(metadata.get('Exif:PixelYDimension'))

    return MetadataRecord(
        file_path=file_info.path,
        filename=file_info.filename,
        file_size=file_info.size,
        created_time=file_info.created_time,
        modified_time=file_info.modified_time,
        width=width,
        height=height,
        orientation=_int_or_none(metadata.get('Orientation')),
        capture_time=_parse_capture_time(metadata.get('Exif:DateTimeOriginal')),
        camera_make=_str_or_none(metadata.get('Make')),
        camera_model=_str_or_none(metadata.get('Model')),
        camera_serial=_str_or_none(metadata.get('Exif:BodySerialNumber')),
        metadata=metadata,
        byte_order=exif.header.byte_order if exif is not None else None,
        skipped_tags=skipped,
        error=error,
        error_type=error_type,
    )
