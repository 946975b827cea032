# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Bounds-checked reader over an in-memory byte buffer

All binary parsing in imgmeta goes through ByteCursor so that no read can
touch bytes outside the view it was given.

Copyright 2025 DNAi inc.
"""

import struct
from typing import Union

from imgmeta.exceptions import OutOfBoundsError

BIG_ENDIAN = '>'
LITTLE_ENDIAN = '<'


class ByteCursor:
    """
    Sequential/random-access reader over a byte view.

    Byte order is given per read using the struct prefix characters
    ('<' little-endian, '>' big-endian). Seeking past the end is allowed;
    the next read raises OutOfBoundsError.

    Example:
        >>> cursor = ByteCursor(b'\\x00\\x2a')
        >>> cursor.read_u16('>')
        42
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview]):
        self._view = data if isinstance(data, memoryview) else memoryview(data)
        self._pos = 0

    def __len__(self) -> int:
        return len(self._view)

    @property
    def remaining(self) -> int:
        """Number of bytes left from the current position (0 when past the end)."""
        return max(0, len(self._view) - self._pos)

    def tell(self) -> int:
        return self._pos

    def seek(self, offset: int) -> None:
        """
        Move to an absolute position inside the view.

        Args:
            offset: Position relative to the start of the view

        Raises:
            OutOfBoundsError: If offset is negative
        """
        if offset < 0:
            raise OutOfBoundsError(f"Negative seek to {offset}", offset=offset)
        self._pos = offset

    def skip(self, count: int) -> None:
        self.seek(self._pos + count)

    def _check(self, offset: int, size: int) -> None:
        if offset < 0 or offset + size > len(self._view):
            raise OutOfBoundsError(
                f"Read of {size} byte(s) at offset {offset} exceeds buffer of {len(self._view)} bytes",
                offset=offset,
                size=size,
            )

    def _unpack(self, fmt: str, size: int):
        self._check(self._pos, size)
        value = struct.unpack_from(fmt, self._view, self._pos)[0]
        self._pos += size
        return value

    def read_u8(self) -> int:
        return self._unpack('B', 1)

    def read_u16(self, byte_order: str = BIG_ENDIAN) -> int:
        return self._unpack(f'{byte_order}H', 2)

    def read_u32(self, byte_order: str = BIG_ENDIAN) -> int:
        return self._unpack(f'{byte_order}I', 4)

    def read_i32(self, byte_order: str = BIG_ENDIAN) -> int:
        return self._unpack(f'{byte_order}i', 4)

    def read_bytes(self, count: int) -> bytes:
        """Read count raw bytes and advance."""
        if count < 0:
            raise OutOfBoundsError(f"Negative read length {count}", offset=self._pos, size=count)
        self._check(self._pos, count)
        data = self._view[self._pos:self._pos + count].tobytes()
        self._pos += count
        return data

    def peek_bytes(self, count: int) -> bytes:
        """Return up to count bytes from the current position without advancing."""
        if self._pos >= len(self._view):
            return b''
        return self._view[self._pos:self._pos + count].tobytes()

    def slice(self, offset: int, length: int) -> 'ByteCursor':
        """
        Create a new cursor over a sub-range of this view.

        Args:
            offset: Start of the sub-range, relative to this view
            length: Number of bytes in the sub-range

        Returns:
            A cursor positioned at 0 of the sub-range

        Raises:
            OutOfBoundsError: If the range does not fit inside this view
        """
        if length < 0:
            raise OutOfBoundsError(f"Negative slice length {length}", offset=offset, size=length)
        self._check(offset, length)
        return ByteCursor(self._view[offset:offset + length])
