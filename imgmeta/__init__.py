# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
imgmeta - JPEG/EXIF metadata extraction

Walks the marker segments of JPEG files, decodes the embedded EXIF/TIFF
directories and produces one metadata record per file.
All metadata parsing is done by directly reading binary file structures.

Copyright 2025 DNAi inc.
"""

__version__ = "0.1.0"
__author__ = "DNAi inc."

from imgmeta.core import (
    MetadataReader,
    FileOutcome,
    extract_file,
    extract_many,
    process_file,
)
from imgmeta.exceptions import (
    ImgMetaError,
    MetadataReadError,
    NotAJpegError,
    MalformedSegmentError,
    InvalidTiffHeaderError,
    OutOfBoundsError,
    TagDecodeSkipped,
    UnsupportedOptionError,
)
from imgmeta.exif_parser import ExifData, ExifParser, Rational, parse_exif
from imgmeta.jpeg_segments import JpegSegmentWalker, Segment
from imgmeta.metadata_record import (
    FileInfo,
    MetadataRecord,
    build_record,
    extract_metadata,
)

__all__ = [
    "MetadataReader",
    "FileOutcome",
    "extract_file",
    "extract_many",
    "process_file",
    "ImgMetaError",
    "MetadataReadError",
    "NotAJpegError",
    "MalformedSegmentError",
    "InvalidTiffHeaderError",
    "OutOfBoundsError",
    "TagDecodeSkipped",
    "UnsupportedOptionError",
    "ExifData",
    "ExifParser",
    "Rational",
    "parse_exif",
    "JpegSegmentWalker",
    "Segment",
    "FileInfo",
    "MetadataRecord",
    "build_record",
    "extract_metadata",
]
