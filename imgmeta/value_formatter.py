# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Value formatter for decoded EXIF values.

to_json_value() keeps numbers as numbers and turns the remaining Python types
(Rational, bytes) into JSON-friendly values. format_exif_value() produces the
human-readable strings used by the text output.

Copyright 2025 DNAi inc.
"""

import math
from typing import Any, Dict, List, Optional

from imgmeta.exif_parser import Rational, decode_ascii

MAX_INLINE_BINARY = 20

# 8-byte character code prefix of UserComment / GPSProcessingMethod / GPSAreaInformation
CHARACTER_CODES = {
    b'ASCII\x00\x00\x00': 'ascii',
    b'UNICODE\x00': 'utf-16',
    b'JIS\x00\x00\x00\x00\x00': 'shift_jis',
    b'\x00' * 8: None,
}

ENCODED_TEXT_TAGS = {'UserComment', 'GPSProcessingMethod', 'GPSAreaInformation'}
VERSION_TAGS = {'ExifVersion', 'FlashpixVersion', 'InteroperabilityVersion'}

ORIENTATION_NAMES = {
    1: 'Horizontal (normal)',
    2: 'Mirror horizontal',
    3: 'Rotate 180',
    4: 'Mirror vertical',
    5: 'Mirror horizontal and rotate 270 CW',
    6: 'Rotate 90 CW',
    7: 'Mirror horizontal and rotate 90 CW',
    8: 'Rotate 270 CW',
}

RESOLUTION_UNIT_NAMES = {
    1: 'None',
    2: 'inches',
    3: 'cm',
}

COLOR_SPACE_NAMES = {
    1: 'sRGB',
    65535: 'Uncalibrated',
}

EXPOSURE_PROGRAM_NAMES = {
    0: 'Not Defined',
    1: 'Manual',
    2: 'Program AE',
    3: 'Aperture-priority AE',
    4: 'Shutter speed priority AE',
    5: 'Creative (Slow speed)',
    6: 'Action (High speed)',
    7: 'Portrait',
    8: 'Landscape',
}

METERING_MODE_NAMES = {
    0: 'Unknown',
    1: 'Average',
    2: 'Center-weighted average',
    3: 'Spot',
    4: 'Multi-spot',
    5: 'Multi-segment',
    6: 'Partial',
    255: 'Other',
}

YCBCR_POSITIONING_NAMES = {
    1: 'Centered',
    2: 'Co-sited',
}

ENUM_NAMES: Dict[str, Dict[int, str]] = {
    'Orientation': ORIENTATION_NAMES,
    'ResolutionUnit': RESOLUTION_UNIT_NAMES,
    'FocalPlaneResolutionUnit': RESOLUTION_UNIT_NAMES,
    'ColorSpace': COLOR_SPACE_NAMES,
    'ExposureProgram': EXPOSURE_PROGRAM_NAMES,
    'MeteringMode': METERING_MODE_NAMES,
    'YCbCrPositioning': YCBCR_POSITIONING_NAMES,
}


def _tag_key(tag_name: str) -> str:
    # "Exif:FNumber" -> "FNumber"
    return tag_name.rsplit(':', 1)[-1]


def decode_encoded_text(value: bytes, byte_order: Optional[str] = None) -> str:
    """
    Decode a value that starts with an 8-byte character code (UserComment etc.).

    UNICODE text is UTF-16 in the byte order of the TIFF header unless it
    starts with a BOM. Unknown codes fall back to treating the whole value
    as ASCII.
    """
    if len(value) < 8:
        return decode_ascii(value)
    prefix, text = value[:8], value[8:]
    if prefix not in CHARACTER_CODES:
        return decode_ascii(value)
    encoding = CHARACTER_CODES[prefix]
    if encoding is None or encoding == 'ascii':
        return decode_ascii(text)
    if encoding == 'utf-16':
        encoding = _utf16_codec(text, byte_order)
    return text.decode(encoding, errors='replace').rstrip('\x00').rstrip()


def _utf16_codec(text: bytes, byte_order: Optional[str]) -> str:
    if text[:2] in (b'\xff\xfe', b'\xfe\xff') or byte_order is None:
        return 'utf-16'
    return 'utf-16-le' if byte_order == '<' else 'utf-16-be'


def _format_binary(tag_key: str, value: bytes, byte_order: Optional[str] = None) -> str:
    if tag_key in VERSION_TAGS:
        return value.decode('ascii', errors='replace').strip('\x00')
    if tag_key in ENCODED_TEXT_TAGS:
        return decode_encoded_text(value, byte_order)
    if len(value) <= MAX_INLINE_BINARY:
        return value.hex().upper()
    return f"(Binary data {len(value)} bytes)"


def to_json_value(tag_name: str, value: Any, byte_order: Optional[str] = None) -> Any:
    """
    Convert a decoded value into something json.dumps accepts.

    Args:
        tag_name: Tag name, with or without namespace prefix
        value: Decoded value
        byte_order: TIFF byte order, used for UTF-16 text

    Returns:
        int/float/str, [numerator, denominator] for rationals, or a list of those.
        NaN and infinities become the strings "nan", "inf" and "-inf".
    """
    tag_key = _tag_key(tag_name)
    if isinstance(value, Rational):
        return [value.numerator, value.denominator]
    if isinstance(value, (bytes, bytearray)):
        return _format_binary(tag_key, bytes(value), byte_order)
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, list):
        return [to_json_value(tag_name, v, byte_order) for v in value]
    return value


def metadata_to_json(metadata: Dict[str, Any], byte_order: Optional[str] = None) -> Dict[str, Any]:
    return {tag_name: to_json_value(tag_name, value, byte_order) for tag_name, value in metadata.items()}


def format_rational(value: Rational) -> str:
    if value.indeterminate:
        return f"{value.numerator}/0 (indeterminate)"
    if value.numerator % value.denominator == 0:
        return str(value.numerator // value.denominator)
    as_float = value.numerator / value.denominator
    if abs(as_float) < 1 and value.numerator != 0:
        return str(value)
    return f"{as_float:.4g}"


def format_gps_coordinate(values: List[Rational]) -> str:
    """Format [degrees, minutes, seconds] as: 51 deg 30' 26.46\""""
    parts = [v.to_float() for v in values]
    if len(parts) != 3 or any(p is None for p in parts):
        return ' '.join(format_rational(v) for v in values)
    degrees, minutes, seconds = parts
    return f"{int(degrees)} deg {int(minutes)}' {seconds:.2f}\""


def format_exif_value(tag_name: str, value: Any, byte_order: Optional[str] = None) -> str:
    """
    Format EXIF tag value to a human-readable string.

    Args:
        tag_name: Tag name (e.g., "Orientation", "Exif:FNumber")
        value: Decoded tag value
        byte_order: TIFF byte order, used for UTF-16 text

    Returns:
        Formatted string value
    """
    if value is None:
        return ""

    tag_key = _tag_key(tag_name)

    names = ENUM_NAMES.get(tag_key)
    if names is not None and isinstance(value, int):
        return names.get(value, f"Unknown ({value})")

    if tag_key in ('GPSLatitude', 'GPSLongitude', 'GPSDestLatitude', 'GPSDestLongitude'):
        if isinstance(value, list) and all(isinstance(v, Rational) for v in value):
            return format_gps_coordinate(value)

    if tag_key == 'FNumber' and isinstance(value, Rational) and not value.indeterminate:
        return f"{value.to_float():.1f}"

    if tag_key == 'ExposureTime' and isinstance(value, Rational):
        return str(value)

    if tag_key == 'FocalLength' and isinstance(value, Rational) and not value.indeterminate:
        return f"{value.to_float():.1f} mm"

    if isinstance(value, Rational):
        return format_rational(value)

    if isinstance(value, (bytes, bytearray)):
        return _format_binary(tag_key, bytes(value), byte_order)

    if isinstance(value, list):
        return ' '.join(format_exif_value(tag_name, v, byte_order) for v in value)

    return str(value)
