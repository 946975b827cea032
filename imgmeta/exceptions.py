# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Exception classes for imgmeta

File-level parse errors (NotAJpegError, MalformedSegmentError,
InvalidTiffHeaderError) are caught by the record builder and attached to the
output record. TagDecodeSkipped never leaves the EXIF decoder.

Copyright 2025 DNAi inc.
"""


class ImgMetaError(Exception):
    """
    Base exception for all imgmeta errors.

    All imgmeta exceptions inherit from this class, allowing
    catch-all error handling for any imgmeta-related errors.
    """
    def __init__(self, message: str = ""):
        """
        Initialize the exception with an optional error message.

        Args:
            message: Descriptive error message explaining what went wrong
        """
        self.message = message
        super().__init__(message)


class MetadataReadError(ImgMetaError):
    """
    Raised when metadata cannot be read from a file.

    Parent of every parse error, so callers that only care whether the
    metadata was readable can catch this one class.
    """
    pass


class NotAJpegError(MetadataReadError):
    """Raised when the data does not start with the SOI marker (FF D8)."""
    pass


class MalformedSegmentError(MetadataReadError):
    """
    Raised when the JPEG marker sequence is inconsistent.

    This exception is raised when:
    - A segment length runs past the end of the file
    - A segment length is smaller than the length field itself
    - A non-marker byte is found where a marker is expected
    """
    pass


class InvalidTiffHeaderError(MetadataReadError):
    """
    Raised when the TIFF header inside an Exif segment is unusable.

    This exception is raised when:
    - The byte order marker is neither "II" nor "MM"
    - The magic number is not 42
    - The payload is too short to hold a header
    """
    pass


class OutOfBoundsError(MetadataReadError):
    """Raised by ByteCursor when a read would pass the end of its view."""

    def __init__(self, message: str = "", offset: int = 0, size: int = 0):
        self.offset = offset
        self.size = size
        super().__init__(message)


class TagDecodeSkipped(MetadataReadError):
    """
    Raised for a single directory entry that cannot be decoded.

    The decoder converts it into a SkippedTag record and keeps going.
    """

    def __init__(self, message: str = "", tag_id: int = -1):
        self.tag_id = tag_id
        super().__init__(message)


class UnsupportedOptionError(ImgMetaError, ValueError):
    """Raised when an unknown option name or an invalid option value is given."""
    pass
