# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
JPEG marker segment walker

Walks the marker structure of a JPEG file (ITU T.81 Annex B) from the SOI
marker up to the first Start-Of-Scan, yielding the byte range of each
segment without interpreting its payload. Also locates the APP1/Exif
segment and the frame header (SOF) that carries the image dimensions.

Copyright 2025 DNAi inc.
"""

import logging
from typing import Iterator, NamedTuple, Optional, Tuple, Union

from imgmeta.byte_cursor import ByteCursor
from imgmeta.exceptions import MalformedSegmentError, NotAJpegError, OutOfBoundsError

logger = logging.getLogger(__name__)

SOI = 0xFFD8
EOI = 0xFFD9
SOS = 0xFFDA
APP1 = 0xFFE1
TEM = 0xFF01

EXIF_SIGNATURE = b'Exif\x00\x00'

# Markers without a length field
STANDALONE_MARKERS = {SOI, TEM} | set(range(0xFFD0, 0xFFD8))

# SOF0-SOF15, excluding DHT (C4), JPG (C8) and DAC (CC)
SOF_MARKERS = {0xFFC0, 0xFFC1, 0xFFC2, 0xFFC3,
               0xFFC5, 0xFFC6, 0xFFC7,
               0xFFC9, 0xFFCA, 0xFFCB,
               0xFFCD, 0xFFCE, 0xFFCF}


class Segment(NamedTuple):
    """A marker segment: marker code, absolute payload offset and payload length."""
    marker: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length


class JpegScan(NamedTuple):
    """Result of a single pass over the marker segments."""
    exif_segment: Optional[Segment]
    width: Optional[int]
    height: Optional[int]


def is_jpeg(data: Union[bytes, memoryview]) -> bool:
    """Check the SOI marker; only the first two bytes are looked at."""
    return bytes(data[:2]) == b'\xff\xd8'


class JpegSegmentWalker:
    """
    Iterator over the marker segments of a JPEG file.

    Example:
        >>> walker = JpegSegmentWalker(file_data)
        >>> segment = walker.find_exif_segment()
        >>> if segment is not None:
        ...     payload = file_data[segment.offset + 6:segment.end]
    """

    def __init__(self, file_data: Union[bytes, bytearray, memoryview]):
        """
        Initialize the walker.

        Args:
            file_data: Complete file contents

        Raises:
            NotAJpegError: If the data does not start with FF D8
        """
        if not is_jpeg(file_data):
            raise NotAJpegError("Not a JPEG file: missing SOI marker")
        self.file_data = file_data
        self._cursor = ByteCursor(file_data)

    def segments(self) -> Iterator[Segment]:
        """
        Yield every segment that carries a payload, up to SOS/EOI or end of data.

        Raises:
            MalformedSegmentError: If a marker or length is inconsistent
        """
        cursor = self._cursor
        cursor.seek(2)

        while cursor.remaining > 0:
            marker_start = cursor.tell()
            try:
                prefix = cursor.read_u8()
                if prefix != 0xFF:
                    raise MalformedSegmentError(
                        f"Expected marker at offset {marker_start}, found 0x{prefix:02X}"
                    )
                code = cursor.read_u8()
                # Fill bytes: any number of FF may precede the marker code
                while code == 0xFF:
                    code = cursor.read_u8()
            except OutOfBoundsError:
                logger.debug("Truncated marker at offset %d, stopping", marker_start)
                return

            marker = 0xFF00 | code
            if marker in STANDALONE_MARKERS:
                continue
            if marker in (SOS, EOI):
                return

            try:
                length = cursor.read_u16('>')
            except OutOfBoundsError:
                raise MalformedSegmentError(
                    f"Segment 0x{marker:04X} at offset {marker_start} has no length field"
                )
            if length < 2:
                raise MalformedSegmentError(
                    f"Segment 0x{marker:04X} at offset {marker_start} has invalid length {length}"
                )

            payload_offset = cursor.tell()
            payload_length = length - 2
            if payload_offset + payload_length > len(cursor):
                raise MalformedSegmentError(
                    f"Segment 0x{marker:04X} at offset {marker_start} extends past end of file "
                    f"({payload_offset + payload_length} > {len(cursor)})"
                )

            yield Segment(marker, payload_offset, payload_length)
            cursor.seek(payload_offset + payload_length)

    def _is_exif(self, segment: Segment) -> bool:
        if segment.marker != APP1 or segment.length < len(EXIF_SIGNATURE):
            return False
        signature = bytes(self.file_data[segment.offset:segment.offset + len(EXIF_SIGNATURE)])
        return signature == EXIF_SIGNATURE

    def find_exif_segment(self) -> Optional[Segment]:
        """
        Return the first APP1 segment carrying the Exif signature.

        Returns:
            The segment, or None when the file has no Exif metadata
        """
        for segment in self.segments():
            if self._is_exif(segment):
                return segment
        return None

    def _read_frame_size(self, segment: Segment) -> Tuple[Optional[int], Optional[int]]:
        # SOF payload: precision (1), height (2), width (2), ...
        if segment.length < 5:
            return (None, None)
        frame = self._cursor.slice(segment.offset, segment.length)
        frame.skip(1)
        height = frame.read_u16('>')
        width = frame.read_u16('>')
        return (width, height)

    def frame_size(self) -> Tuple[Optional[int], Optional[int]]:
        """Return (width, height) from the first SOF segment, or (None, None)."""
        for segment in self.segments():
            if segment.marker in SOF_MARKERS:
                return self._read_frame_size(segment)
        return (None, None)

    def scan(self) -> JpegScan:
        """
        Locate the Exif segment and the frame size in one pass.

        A malformed segment found after the Exif segment does not discard it.

        Raises:
            MalformedSegmentError: If the marker sequence breaks before the
                Exif segment is found
        """
        exif_segment = None
        width = height = None
        try:
            for segment in self.segments():
                if exif_segment is None and self._is_exif(segment):
                    exif_segment = segment
                elif width is None and segment.marker in SOF_MARKERS:
                    width, height = self._read_frame_size(segment)
                if exif_segment is not None and width is not None:
                    break
        except MalformedSegmentError:
            if exif_segment is None:
                raise
            logger.debug("Ignoring malformed segment after Exif segment", exc_info=True)
        return JpegScan(exif_segment, width, height)
