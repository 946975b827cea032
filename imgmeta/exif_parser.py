# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
EXIF metadata parser

This module decodes the TIFF structure embedded in a JPEG APP1/Exif segment:
the TIFF header, IFD0, the Exif/GPS/Interoperability sub-IFDs and the
chained IFD1 (thumbnail) directory.

Every offset stored inside the TIFF structure is relative to the start of the
TIFF header. TiffHeader.resolve() is the only place that turns such an offset
into a position in the buffer.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional, Set, Union

import chardet

from imgmeta.byte_cursor import ByteCursor
from imgmeta.exceptions import InvalidTiffHeaderError, OutOfBoundsError, TagDecodeSkipped
from imgmeta.exif_tags import (
    EXIF,
    GPS,
    IFD0,
    IFD1,
    INTEROP,
    TAG_SIZES,
    ExifTagType,
    is_pointer_tag,
    lookup_tag,
    sub_ifd_for,
    tag_name,
)

logger = logging.getLogger(__name__)

TIFF_MAGIC = 42
IFD_ENTRY_SIZE = 12

# Order in which directories appear in the flattened tag mapping
NAMESPACE_ORDER = (IFD0, EXIF, GPS, INTEROP, IFD1)

# struct format characters for the integer and float field types
_STRUCT_CODES = {
    ExifTagType.BYTE: 'B',
    ExifTagType.SBYTE: 'b',
    ExifTagType.SHORT: 'H',
    ExifTagType.SSHORT: 'h',
    ExifTagType.LONG: 'I',
    ExifTagType.SLONG: 'i',
    ExifTagType.FLOAT: 'f',
    ExifTagType.DOUBLE: 'd',
    ExifTagType.IFD: 'I',
}


class Rational(NamedTuple):
    """
    A RATIONAL or SRATIONAL value.

    A zero denominator is kept as-is and flagged as indeterminate.
    """
    numerator: int
    denominator: int

    @property
    def indeterminate(self) -> bool:
        return self.denominator == 0

    def to_float(self) -> Optional[float]:
        if self.indeterminate:
            return None
        return self.numerator / self.denominator

    def __str__(self) -> str:
        return f"{self.numerator}/{self.denominator}"


class InlineValue(NamedTuple):
    """Entry data stored directly in the 4-byte value slot."""
    data: bytes


class OffsetValue(NamedTuple):
    """Entry data stored elsewhere; offset is relative to the TIFF header."""
    offset: int


ValueRef = Union[InlineValue, OffsetValue]


class SkippedTag(NamedTuple):
    """A tag (tag_id set) or directory remainder (tag_id None) that was not decoded."""
    ifd: str
    tag_id: Optional[int]
    reason: str

    def describe(self) -> str:
        if self.tag_id is None:
            return f"{self.ifd}: {self.reason}"
        return f"{self.ifd}:0x{self.tag_id:04X}: {self.reason}"


@dataclass
class TiffHeader:
    """
    Decoded TIFF header.

    Attributes:
        byte_order: struct prefix, '<' for "II" or '>' for "MM"
        ifd0_offset: Offset of IFD0, relative to the header
        base_offset: Absolute file offset of the header
        origin: Position of the header inside the parsed buffer
    """
    byte_order: str
    ifd0_offset: int
    base_offset: int = 0
    origin: int = 0

    @property
    def byte_order_name(self) -> str:
        return 'Little-endian (Intel, II)' if self.byte_order == '<' else 'Big-endian (Motorola, MM)'

    def resolve(self, offset: int) -> int:
        """Convert a header-relative offset into a buffer position."""
        return self.origin + offset

    def absolute(self, offset: int) -> int:
        """Convert a header-relative offset into an absolute file offset."""
        return self.base_offset + offset


@dataclass
class TagEntry:
    tag_id: int
    value_type: Union[ExifTagType, int]
    count: int
    value: Any
    ifd: str = IFD0

    @property
    def name(self) -> str:
        return tag_name(self.ifd, self.tag_id)

    @property
    def is_known(self) -> bool:
        return lookup_tag(self.ifd, self.tag_id) is not None

    @property
    def key(self) -> str:
        """Namespaced name used in the flattened mapping."""
        if self.ifd == IFD0:
            return self.name
        return f"{self.ifd}:{self.name}"


@dataclass
class Ifd:
    name: str
    offset: int
    entries: List[TagEntry] = field(default_factory=list)
    next_ifd: int = 0

    def get(self, tag_id: int) -> Optional[TagEntry]:
        for entry in self.entries:
            if entry.tag_id == tag_id:
                return entry
        return None


@dataclass
class ExifData:
    """Everything decoded from one Exif block."""
    header: TiffHeader
    ifds: Dict[str, Ifd] = field(default_factory=dict)
    skipped: List[SkippedTag] = field(default_factory=list)

    def tags(self, include_unknown: bool = False) -> Dict[str, Any]:
        """
        Flatten all directories into one mapping.

        IFD0 tags keep their bare name; other directories are prefixed with
        their namespace (e.g. "Exif:FNumber", "GPS:GPSLatitude").

        Args:
            include_unknown: Also emit tags missing from the tag table
                (as "Unknown_XXXX")

        Returns:
            Dictionary of tag names to decoded values
        """
        result: Dict[str, Any] = {}
        for namespace in NAMESPACE_ORDER:
            ifd = self.ifds.get(namespace)
            if ifd is None:
                continue
            for entry in ifd.entries:
                if not include_unknown and not entry.is_known:
                    continue
                result.setdefault(entry.key, entry.value)
        return result

    def get(self, key: str, default: Any = None) -> Any:
        """Return a value by namespaced key ("Make", "Exif:FNumber")."""
        namespace, _, name = key.rpartition(':')
        ifd = self.ifds.get(namespace or IFD0)
        if ifd is None:
            return default
        for entry in ifd.entries:
            if entry.name == name:
                return entry.value
        return default


class ExifParser:
    """
    Parser for the TIFF structure of an Exif block.

    Example:
        >>> parser = ExifParser(payload, base_offset=segment.offset + 6)
        >>> exif = parser.parse()
        >>> exif.tags()['Make']
        'Canon'
    """

    DEFAULT_MAX_DEPTH = 4
    DEFAULT_MAX_ENTRIES = 512

    def __init__(
        self,
        tiff_data: Union[bytes, bytearray, memoryview],
        base_offset: int = 0,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        include_thumbnail: bool = True
    ):
        """
        Initialize the EXIF parser.

        Args:
            tiff_data: Exif payload starting at the byte order marker
                (i.e. right after "Exif\\0\\0")
            base_offset: Absolute file offset of tiff_data[0]
            max_depth: Maximum sub-IFD nesting followed from IFD0
            max_entries: Entries read per directory at most
            include_thumbnail: Decode IFD1 when IFD0 links to it
        """
        self.cursor = ByteCursor(tiff_data)
        self.base_offset = base_offset
        self.max_depth = max_depth
        self.max_entries = max_entries
        self.include_thumbnail = include_thumbnail
        self.header: Optional[TiffHeader] = None
        self._visited: Set[int] = set()
        self._ifds: Dict[str, Ifd] = {}
        self._skipped: List[SkippedTag] = []

    def parse(self) -> ExifData:
        """
        Decode the header and every reachable directory.

        Returns:
            ExifData with the decoded directories and skipped tags

        Raises:
            InvalidTiffHeaderError: If the byte order or magic number is wrong
        """
        self.header = self.parse_header()
        self._visited.clear()
        self._ifds = {}
        self._skipped = []

        ifd0 = self._parse_ifd(IFD0, self.header.ifd0_offset, depth=0)
        if ifd0 is not None and ifd0.next_ifd and self.include_thumbnail:
            if self.max_depth < 1:
                self._skip(IFD1, None, f"{IFD1} directory exceeds maximum depth {self.max_depth}")
            else:
                self._parse_ifd(IFD1, ifd0.next_ifd, depth=1)

        return ExifData(header=self.header, ifds=self._ifds, skipped=self._skipped)

    def parse_header(self) -> TiffHeader:
        """
        Read byte order, magic number and IFD0 offset.

        Raises:
            InvalidTiffHeaderError: If the header is missing or invalid
        """
        cursor = self.cursor
        try:
            cursor.seek(0)
            marker = cursor.read_bytes(2)
            if marker == b'II':
                byte_order = '<'
            elif marker == b'MM':
                byte_order = '>'
            else:
                raise InvalidTiffHeaderError(f"Invalid TIFF byte order marker: {marker!r}")

            magic = cursor.read_u16(byte_order)
            if magic != TIFF_MAGIC:
                raise InvalidTiffHeaderError(f"Invalid TIFF magic number: {magic}")

            ifd0_offset = cursor.read_u32(byte_order)
        except OutOfBoundsError as e:
            raise InvalidTiffHeaderError(f"TIFF header truncated: {e.message}")

        return TiffHeader(byte_order=byte_order, ifd0_offset=ifd0_offset, base_offset=self.base_offset)

    def _skip(self, ifd: str, tag_id: Optional[int], reason: str) -> None:
        skipped = SkippedTag(ifd, tag_id, reason)
        logger.debug("Skipped %s", skipped.describe())
        self._skipped.append(skipped)

    def _parse_ifd(self, name: str, offset: int, depth: int) -> Optional[Ifd]:
        """
        Decode one directory and the sub-directories it points to.

        Args:
            name: Namespace of the directory
            offset: Header-relative offset of the directory
            depth: Nesting level (IFD0 is 0)

        Returns:
            The decoded Ifd, or None when the directory could not be read
        """
        position = self.header.resolve(offset)
        if position in self._visited:
            self._skip(name, None, f"directory at offset {offset} already visited")
            return None
        if name in self._ifds:
            self._skip(name, None, f"duplicate {name} directory at offset {offset}")
            return None
        self._visited.add(position)

        cursor = self.cursor
        byte_order = self.header.byte_order
        try:
            cursor.seek(position)
            num_entries = cursor.read_u16(byte_order)
        except OutOfBoundsError:
            self._skip(name, None, f"directory offset {offset} is outside the Exif block")
            return None

        ifd = Ifd(name=name, offset=offset)
        self._ifds[name] = ifd

        capped = num_entries > self.max_entries
        if capped:
            self._skip(name, None, f"entry count {num_entries} capped at {self.max_entries}")
            num_entries = self.max_entries

        entries_start = position + 2
        for index in range(num_entries):
            entry_position = entries_start + index * IFD_ENTRY_SIZE
            try:
                cursor.seek(entry_position)
                tag_id = cursor.read_u16(byte_order)
                type_code = cursor.read_u16(byte_order)
                count = cursor.read_u32(byte_order)
                slot = cursor.read_bytes(4)
            except OutOfBoundsError:
                self._skip(name, None, f"directory truncated after {index} of {num_entries} entries")
                break

            try:
                entry = self._decode_entry(name, tag_id, type_code, count, slot)
            except TagDecodeSkipped as e:
                self._skip(name, tag_id, e.message)
                continue

            sub_ifd = sub_ifd_for(name, tag_id)
            if sub_ifd is not None:
                self._follow_pointer(name, sub_ifd, entry, depth)
                continue
            if is_pointer_tag(tag_id):
                self._skip(name, tag_id, f"pointer tag {entry.name} not followed from {name} directory")
                continue

            ifd.entries.append(entry)
        else:
            if capped:
                return ifd
            try:
                cursor.seek(entries_start + num_entries * IFD_ENTRY_SIZE)
                ifd.next_ifd = cursor.read_u32(byte_order)
            except OutOfBoundsError:
                # Some writers drop the trailing next-IFD field
                ifd.next_ifd = 0

        return ifd

    def _follow_pointer(self, name: str, sub_ifd: str, entry: TagEntry, depth: int) -> None:
        value = entry.value
        if isinstance(value, list) and value:
            value = value[0]
        if not isinstance(value, int) or isinstance(value, bool):
            self._skip(name, entry.tag_id, f"pointer to {sub_ifd} has non-integer value")
            return
        if depth + 1 > self.max_depth:
            self._skip(name, entry.tag_id, f"{sub_ifd} directory exceeds maximum depth {self.max_depth}")
            return
        self._parse_ifd(sub_ifd, value, depth + 1)

    def _decode_entry(self, ifd: str, tag_id: int, type_code: int, count: int, slot: bytes) -> TagEntry:
        """
        Decode one 12-byte directory entry.

        Raises:
            TagDecodeSkipped: If the value cannot be located or decoded
        """
        try:
            value_type = ExifTagType(type_code)
        except ValueError:
            # Unknown field type: keep the raw value slot
            logger.debug("%s:0x%04X has unknown type %d, keeping raw bytes", ifd, tag_id, type_code)
            return TagEntry(tag_id, type_code, count, slot, ifd)

        size = TAG_SIZES[value_type] * count
        value = self.resolve_value(value_type, count, self._value_ref(size, slot), tag_id)

        definition = lookup_tag(ifd, tag_id)
        if definition is not None and definition.expected_type != value_type:
            logger.debug(
                "%s:%s stored as %s, expected %s",
                ifd, definition.name, value_type.name, definition.expected_type.name
            )
        return TagEntry(tag_id, value_type, count, value, ifd)

    def resolve_value(self, value_type: ExifTagType, count: int, ref: ValueRef, tag_id: int = -1) -> Any:
        """
        Load and decode the data an entry refers to.

        Inline and offset references to the same bytes decode to the same value.

        Raises:
            TagDecodeSkipped: If the referenced bytes are outside the Exif block
        """
        size = TAG_SIZES[value_type] * count
        data = self._load(ref, size, tag_id)
        return self._decode_value(value_type, count, data, tag_id)

    def _value_ref(self, size: int, slot: bytes) -> ValueRef:
        if size <= 4:
            return InlineValue(slot[:size])
        return OffsetValue(struct.unpack(f'{self.header.byte_order}I', slot)[0])

    def _load(self, ref: ValueRef, size: int, tag_id: int) -> bytes:
        """Return the bytes an entry refers to, whichever way they are stored."""
        if isinstance(ref, InlineValue):
            if len(ref.data) < size:
                raise TagDecodeSkipped(f"inline value shorter than {size} bytes", tag_id)
            return bytes(ref.data[:size])
        if size > len(self.cursor):
            raise TagDecodeSkipped(f"value of {size} bytes is larger than the Exif block", tag_id)
        try:
            return self.cursor.slice(self.header.resolve(ref.offset), size).read_bytes(size)
        except OutOfBoundsError:
            raise TagDecodeSkipped(
                f"value at offset {ref.offset} ({size} bytes) is outside the Exif block", tag_id
            )

    def _decode_value(self, value_type: ExifTagType, count: int, data: bytes, tag_id: int) -> Any:
        """
        Convert raw entry bytes to Python values.

        Returns a scalar when count is 1, otherwise a list (ASCII and
        UNDEFINED always give a str / bytes).
        """
        byte_order = self.header.byte_order

        if value_type == ExifTagType.ASCII:
            return decode_ascii(data)

        if value_type == ExifTagType.UNDEFINED:
            return bytes(data)

        if value_type in (ExifTagType.RATIONAL, ExifTagType.SRATIONAL):
            code = 'I' if value_type == ExifTagType.RATIONAL else 'i'
            pairs = struct.unpack(f'{byte_order}{count * 2}{code}', data)
            values = [Rational(pairs[i], pairs[i + 1]) for i in range(0, len(pairs), 2)]
            return values[0] if count == 1 else values

        code = _STRUCT_CODES.get(value_type)
        if code is None:
            raise TagDecodeSkipped(f"no decoder for type {value_type.name}", tag_id)
        values = list(struct.unpack(f'{byte_order}{count}{code}', data))
        return values[0] if count == 1 else values


def decode_ascii(data: bytes) -> str:
    """
    Decode an ASCII field.

    The value ends at the first NUL; a missing terminator is accepted.
    Non-ASCII bytes are tried as UTF-8 and then with detected encoding.
    """
    null_pos = data.find(b'\x00')
    if null_pos >= 0:
        data = data[:null_pos]
    data = data.rstrip(b' ')

    try:
        return data.decode('ascii')
    except UnicodeDecodeError:
        pass
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        pass

    encoding = chardet.detect(data).get('encoding') or 'latin-1'
    try:
        return data.decode(encoding, errors='replace')
    except LookupError:
        return data.decode('latin-1', errors='replace')


def parse_exif(tiff_data: Union[bytes, memoryview], base_offset: int = 0, **kwargs) -> ExifData:
    """
    Decode an Exif payload.

    Args:
        tiff_data: Payload after the "Exif\\0\\0" signature
        base_offset: Absolute file offset of the payload
        **kwargs: Passed to ExifParser (max_depth, max_entries, include_thumbnail)

    Raises:
        InvalidTiffHeaderError: If the TIFF header is invalid
    """
    return ExifParser(tiff_data, base_offset=base_offset, **kwargs).parse()
