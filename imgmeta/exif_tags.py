# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
EXIF tag definitions

Curated tag table for the directories found in a JPEG Exif block: IFD0
(primary image), the Exif sub-IFD, the GPS sub-IFD, the Interoperability
sub-IFD and IFD1 (thumbnail, shares the IFD0 table).
Based on the EXIF 2.32 specification and TIFF 6.0.

Everything here is constant data built at import time.

Copyright 2025 DNAi inc.
"""

from enum import IntEnum
from typing import Dict, NamedTuple, Optional


class ExifTagType(IntEnum):
    """TIFF 6.0 field types"""
    BYTE = 1
    ASCII = 2
    SHORT = 3
    LONG = 4
    RATIONAL = 5
    SBYTE = 6
    UNDEFINED = 7
    SSHORT = 8
    SLONG = 9
    SRATIONAL = 10
    FLOAT = 11
    DOUBLE = 12
    IFD = 13


# Field type sizes in bytes
TAG_SIZES = {
    ExifTagType.BYTE: 1,
    ExifTagType.ASCII: 1,
    ExifTagType.SHORT: 2,
    ExifTagType.LONG: 4,
    ExifTagType.RATIONAL: 8,
    ExifTagType.SBYTE: 1,
    ExifTagType.UNDEFINED: 1,
    ExifTagType.SSHORT: 2,
    ExifTagType.SLONG: 4,
    ExifTagType.SRATIONAL: 8,
    ExifTagType.FLOAT: 4,
    ExifTagType.DOUBLE: 8,
    ExifTagType.IFD: 4,
}

# Directory namespaces
IFD0 = 'IFD0'
EXIF = 'Exif'
GPS = 'GPS'
INTEROP = 'Interop'
IFD1 = 'IFD1'


class TagDefinition(NamedTuple):
    name: str
    expected_type: ExifTagType


_T = ExifTagType

IMAGE_TAGS: Dict[int, TagDefinition] = {
    # ============================================================
    # IFD0 / IFD1 (Image) Tags
    # ============================================================
    0x00FE: TagDefinition("SubfileType", _T.LONG),
    0x0100: TagDefinition("ImageWidth", _T.LONG),
    0x0101: TagDefinition("ImageLength", _T.LONG),
    0x0102: TagDefinition("BitsPerSample", _T.SHORT),
    0x0103: TagDefinition("Compression", _T.SHORT),
    0x0106: TagDefinition("PhotometricInterpretation", _T.SHORT),
    0x010E: TagDefinition("ImageDescription", _T.ASCII),
    0x010F: TagDefinition("Make", _T.ASCII),
    0x0110: TagDefinition("Model", _T.ASCII),
    0x0111: TagDefinition("StripOffsets", _T.LONG),
    0x0112: TagDefinition("Orientation", _T.SHORT),
    0x0115: TagDefinition("SamplesPerPixel", _T.SHORT),
    0x0116: TagDefinition("RowsPerStrip", _T.LONG),
    0x0117: TagDefinition("StripByteCounts", _T.LONG),
    0x011A: TagDefinition("XResolution", _T.RATIONAL),
    0x011B: TagDefinition("YResolution", _T.RATIONAL),
    0x011C: TagDefinition("PlanarConfiguration", _T.SHORT),
    0x0128: TagDefinition("ResolutionUnit", _T.SHORT),
    0x012D: TagDefinition("TransferFunction", _T.SHORT),
    0x0131: TagDefinition("Software", _T.ASCII),
    0x0132: TagDefinition("DateTime", _T.ASCII),
    0x013B: TagDefinition("Artist", _T.ASCII),
    0x013C: TagDefinition("HostComputer", _T.ASCII),
    0x013E: TagDefinition("WhitePoint", _T.RATIONAL),
    0x013F: TagDefinition("PrimaryChromaticities", _T.RATIONAL),
    0x0201: TagDefinition("JPEGInterchangeFormat", _T.LONG),
    0x0202: TagDefinition("JPEGInterchangeFormatLength", _T.LONG),
    0x0211: TagDefinition("YCbCrCoefficients", _T.RATIONAL),
    0x0212: TagDefinition("YCbCrSubSampling", _T.SHORT),
    0x0213: TagDefinition("YCbCrPositioning", _T.SHORT),
    0x0214: TagDefinition("ReferenceBlackWhite", _T.RATIONAL),
    0x02BC: TagDefinition("XMLPacket", _T.BYTE),
    0x4746: TagDefinition("Rating", _T.SHORT),
    0x4749: TagDefinition("RatingPercent", _T.SHORT),
    0x8298: TagDefinition("Copyright", _T.ASCII),
    0x8769: TagDefinition("ExifIFDPointer", _T.LONG),
    0x8825: TagDefinition("GPSInfoIFDPointer", _T.LONG),
    0xC4A5: TagDefinition("PrintIM", _T.UNDEFINED),
}

EXIF_TAGS: Dict[int, TagDefinition] = {
    # ============================================================
    # Exif sub-IFD Tags
    # ============================================================
    0x829A: TagDefinition("ExposureTime", _T.RATIONAL),
    0x829D: TagDefinition("FNumber", _T.RATIONAL),
    0x8822: TagDefinition("ExposureProgram", _T.SHORT),
    0x8824: TagDefinition("SpectralSensitivity", _T.ASCII),
    0x8827: TagDefinition("ISOSpeedRatings", _T.SHORT),
    0x8828: TagDefinition("OECF", _T.UNDEFINED),
    0x8830: TagDefinition("SensitivityType", _T.SHORT),
    0x8832: TagDefinition("RecommendedExposureIndex", _T.LONG),
    0x9000: TagDefinition("ExifVersion", _T.UNDEFINED),
    0x9003: TagDefinition("DateTimeOriginal", _T.ASCII),
    0x9004: TagDefinition("DateTimeDigitized", _T.ASCII),
    0x9010: TagDefinition("OffsetTime", _T.ASCII),
    0x9011: TagDefinition("OffsetTimeOriginal", _T.ASCII),
    0x9012: TagDefinition("OffsetTimeDigitized", _T.ASCII),
    0x9101: TagDefinition("ComponentsConfiguration", _T.UNDEFINED),
    0x9102: TagDefinition("CompressedBitsPerPixel", _T.RATIONAL),
    0x9201: TagDefinition("ShutterSpeedValue", _T.SRATIONAL),
    0x9202: TagDefinition("ApertureValue", _T.RATIONAL),
    0x9203: TagDefinition("BrightnessValue", _T.SRATIONAL),
    0x9204: TagDefinition("ExposureBiasValue", _T.SRATIONAL),
    0x9205: TagDefinition("MaxApertureValue", _T.RATIONAL),
    0x9206: TagDefinition("SubjectDistance", _T.RATIONAL),
    0x9207: TagDefinition("MeteringMode", _T.SHORT),
    0x9208: TagDefinition("LightSource", _T.SHORT),
    0x9209: TagDefinition("Flash", _T.SHORT),
    0x920A: TagDefinition("FocalLength", _T.RATIONAL),
    0x9214: TagDefinition("SubjectArea", _T.SHORT),
    0x927C: TagDefinition("MakerNote", _T.UNDEFINED),
    0x9286: TagDefinition("UserComment", _T.UNDEFINED),
    0x9290: TagDefinition("SubSecTime", _T.ASCII),
    0x9291: TagDefinition("SubSecTimeOriginal", _T.ASCII),
    0x9292: TagDefinition("SubSecTimeDigitized", _T.ASCII),
    0xA000: TagDefinition("FlashpixVersion", _T.UNDEFINED),
    0xA001: TagDefinition("ColorSpace", _T.SHORT),
    0xA002: TagDefinition("PixelXDimension", _T.LONG),
    0xA003: TagDefinition("PixelYDimension", _T.LONG),
    0xA004: TagDefinition("RelatedSoundFile", _T.ASCII),
    0xA005: TagDefinition("InteroperabilityIFDPointer", _T.LONG),
    0xA20B: TagDefinition("FlashEnergy", _T.RATIONAL),
    0xA20E: TagDefinition("FocalPlaneXResolution", _T.RATIONAL),
    0xA20F: TagDefinition("FocalPlaneYResolution", _T.RATIONAL),
    0xA210: TagDefinition("FocalPlaneResolutionUnit", _T.SHORT),
    0xA214: TagDefinition("SubjectLocation", _T.SHORT),
    0xA215: TagDefinition("ExposureIndex", _T.RATIONAL),
    0xA217: TagDefinition("SensingMethod", _T.SHORT),
    0xA300: TagDefinition("FileSource", _T.UNDEFINED),
    0xA301: TagDefinition("SceneType", _T.UNDEFINED),
    0xA302: TagDefinition("CFAPattern", _T.UNDEFINED),
    0xA401: TagDefinition("CustomRendered", _T.SHORT),
    0xA402: TagDefinition("ExposureMode", _T.SHORT),
    0xA403: TagDefinition("WhiteBalance", _T.SHORT),
    0xA404: TagDefinition("DigitalZoomRatio", _T.RATIONAL),
    0xA405: TagDefinition("FocalLengthIn35mmFilm", _T.SHORT),
    0xA406: TagDefinition("SceneCaptureType", _T.SHORT),
    0xA407: TagDefinition("GainControl", _T.SHORT),
    0xA408: TagDefinition("Contrast", _T.SHORT),
    0xA409: TagDefinition("Saturation", _T.SHORT),
    0xA40A: TagDefinition("Sharpness", _T.SHORT),
    0xA40C: TagDefinition("SubjectDistanceRange", _T.SHORT),
    0xA420: TagDefinition("ImageUniqueID", _T.ASCII),
    0xA430: TagDefinition("CameraOwnerName", _T.ASCII),
    0xA431: TagDefinition("BodySerialNumber", _T.ASCII),
    0xA432: TagDefinition("LensSpecification", _T.RATIONAL),
    0xA433: TagDefinition("LensMake", _T.ASCII),
    0xA434: TagDefinition("LensModel", _T.ASCII),
    0xA435: TagDefinition("LensSerialNumber", _T.ASCII),
    0xA500: TagDefinition("Gamma", _T.RATIONAL),
}

GPS_TAGS: Dict[int, TagDefinition] = {
    # ============================================================
    # GPS IFD Tags (0x0000 - 0x001F)
    # ============================================================
    0x0000: TagDefinition("GPSVersionID", _T.BYTE),
    0x0001: TagDefinition("GPSLatitudeRef", _T.ASCII),
    0x0002: TagDefinition("GPSLatitude", _T.RATIONAL),
    0x0003: TagDefinition("GPSLongitudeRef", _T.ASCII),
    0x0004: TagDefinition("GPSLongitude", _T.RATIONAL),
    0x0005: TagDefinition("GPSAltitudeRef", _T.BYTE),
    0x0006: TagDefinition("GPSAltitude", _T.RATIONAL),
    0x0007: TagDefinition("GPSTimeStamp", _T.RATIONAL),
    0x0008: TagDefinition("GPSSatellites", _T.ASCII),
    0x0009: TagDefinition("GPSStatus", _T.ASCII),
    0x000A: TagDefinition("GPSMeasureMode", _T.ASCII),
    0x000B: TagDefinition("GPSDOP", _T.RATIONAL),
    0x000C: TagDefinition("GPSSpeedRef", _T.ASCII),
    0x000D: TagDefinition("GPSSpeed", _T.RATIONAL),
    0x000E: TagDefinition("GPSTrackRef", _T.ASCII),
    0x000F: TagDefinition("GPSTrack", _T.RATIONAL),
    0x0010: TagDefinition("GPSImgDirectionRef", _T.ASCII),
    0x0011: TagDefinition("GPSImgDirection", _T.RATIONAL),
    0x0012: TagDefinition("GPSMapDatum", _T.ASCII),
    0x0013: TagDefinition("GPSDestLatitudeRef", _T.ASCII),
    0x0014: TagDefinition("GPSDestLatitude", _T.RATIONAL),
    0x0015: TagDefinition("GPSDestLongitudeRef", _T.ASCII),
    0x0016: TagDefinition("GPSDestLongitude", _T.RATIONAL),
    0x0017: TagDefinition("GPSDestBearingRef", _T.ASCII),
    0x0018: TagDefinition("GPSDestBearing", _T.RATIONAL),
    0x0019: TagDefinition("GPSDestDistanceRef", _T.ASCII),
    0x001A: TagDefinition("GPSDestDistance", _T.RATIONAL),
    0x001B: TagDefinition("GPSProcessingMethod", _T.UNDEFINED),
    0x001C: TagDefinition("GPSAreaInformation", _T.UNDEFINED),
    0x001D: TagDefinition("GPSDateStamp", _T.ASCII),
    0x001E: TagDefinition("GPSDifferential", _T.SHORT),
    0x001F: TagDefinition("GPSHPositioningError", _T.RATIONAL),
}

INTEROP_TAGS: Dict[int, TagDefinition] = {
    0x0001: TagDefinition("InteroperabilityIndex", _T.ASCII),
    0x0002: TagDefinition("InteroperabilityVersion", _T.UNDEFINED),
    0x1000: TagDefinition("RelatedImageFileFormat", _T.ASCII),
    0x1001: TagDefinition("RelatedImageWidth", _T.LONG),
    0x1002: TagDefinition("RelatedImageLength", _T.LONG),
}

TAG_TABLES: Dict[str, Dict[int, TagDefinition]] = {
    IFD0: IMAGE_TAGS,
    IFD1: IMAGE_TAGS,
    EXIF: EXIF_TAGS,
    GPS: GPS_TAGS,
    INTEROP: INTEROP_TAGS,
}

# (directory, pointer tag) -> namespace of the directory it points to
SUB_IFD_POINTERS: Dict[tuple, str] = {
    (IFD0, 0x8769): EXIF,
    (IFD0, 0x8825): GPS,
    (EXIF, 0xA005): INTEROP,
}

# Pointer tags are structural in every directory, not only the one that owns them
POINTER_TAGS = frozenset(tag_id for _, tag_id in SUB_IFD_POINTERS)


def lookup_tag(ifd: str, tag_id: int) -> Optional[TagDefinition]:
    """
    Look up a tag definition.

    Args:
        ifd: Directory namespace (IFD0, Exif, GPS, Interop, IFD1)
        tag_id: Numeric tag id

    Returns:
        TagDefinition or None when the tag is not in the table
    """
    table = TAG_TABLES.get(ifd)
    if table is None:
        return None
    return table.get(tag_id)


def tag_name(ifd: str, tag_id: int) -> str:
    """Return the tag name, or Unknown_XXXX for tags missing from the table."""
    definition = lookup_tag(ifd, tag_id)
    if definition is None:
        return f"Unknown_{tag_id:04X}"
    return definition.name


def sub_ifd_for(ifd: str, tag_id: int) -> Optional[str]:
    """Return the namespace a pointer tag leads to, or None for plain tags."""
    return SUB_IFD_POINTERS.get((ifd, tag_id))


def is_pointer_tag(tag_id: int) -> bool:
    return tag_id in POINTER_TAGS


def find_tag_id(ifd: str, name: str) -> Optional[int]:
    """Reverse lookup by tag name within one directory."""
    for tag_id, definition in TAG_TABLES.get(ifd, {}).items():
        if definition.name == name:
            return tag_id
    return None
