import struct

import pytest

from imgmeta.exceptions import InvalidTiffHeaderError, MetadataReadError
from imgmeta.exif_parser import (
    ExifParser,
    InlineValue,
    OffsetValue,
    Rational,
    decode_ascii,
    parse_exif,
)
from imgmeta.exif_tags import ExifTagType

from jpeg_builder import (
    ASCII, BYTE, DOUBLE, FLOAT, LONG, RATIONAL, SBYTE, SHORT, SLONG, SRATIONAL, SSHORT, UNDEFINED,
    build_tiff, sample_tiff,
)

BYTE_ORDERS = ['<', '>']


@pytest.mark.parametrize("byte_order", BYTE_ORDERS)
def test_header(byte_order):
    exif = parse_exif(sample_tiff(byte_order), base_offset=30)
    assert exif.header.byte_order == byte_order
    assert exif.header.ifd0_offset == 8
    assert exif.header.base_offset == 30
    assert exif.header.absolute(8) == 38


@pytest.mark.parametrize("payload", [
    b'XX*\x00\x08\x00\x00\x00',
    b'II\x2b\x00\x08\x00\x00\x00',
    b'MM\x00\x2b\x00\x00\x00\x08',
    b'II*\x00\x08',
    b'',
])
def test_invalid_header(payload):
    with pytest.raises(InvalidTiffHeaderError):
        parse_exif(payload)


@pytest.mark.parametrize("byte_order", BYTE_ORDERS)
def test_values_decode_in_both_byte_orders(byte_order):
    tiff = build_tiff(
        ifd0=[
            (0x010F, ASCII, 'TestCam'),
            (0x0112, SHORT, [6]),
            (0x0102, SHORT, [8, 8, 8]),
            (0x0100, LONG, [4000]),
            (0x011A, RATIONAL, [(300, 1)]),
            (0x013E, RATIONAL, [(313, 1000), (329, 1000)]),
            (0x02BC, BYTE, [60, 63, 120]),
            (0xC4A5, UNDEFINED, b'PrintIM\x000300'),
        ],
        exif=[
            (0x9204, SRATIONAL, [(-2, 3)]),
            (0x9201, SRATIONAL, [(-7, 1), (5, -2)]),
        ],
        byte_order=byte_order,
    )
    tags = parse_exif(tiff).tags()
    assert tags['Make'] == 'TestCam'
    assert tags['Orientation'] == 6
    assert tags['BitsPerSample'] == [8, 8, 8]
    assert tags['ImageWidth'] == 4000
    assert tags['XResolution'] == Rational(300, 1)
    assert tags['WhitePoint'] == [Rational(313, 1000), Rational(329, 1000)]
    assert tags['XMLPacket'] == [60, 63, 120]
    assert tags['PrintIM'] == b'PrintIM\x000300'
    assert tags['Exif:ExposureBiasValue'] == Rational(-2, 3)
    assert tags['Exif:ShutterSpeedValue'] == [Rational(-7, 1), Rational(5, -2)]


@pytest.mark.parametrize("byte_order", BYTE_ORDERS)
def test_signed_and_float_types(byte_order):
    tiff = build_tiff(
        ifd0=[
            (0x0001, SBYTE, [0xFE]),
            (0x0002, SSHORT, [-5, 7]),
            (0x0003, SLONG, [-100000]),
            (0x0004, FLOAT, [1.5]),
            (0x0005, DOUBLE, [2.25, -0.5]),
        ],
        byte_order=byte_order,
    )
    tags = parse_exif(tiff).tags(include_unknown=True)
    assert tags['Unknown_0001'] == -2
    assert tags['Unknown_0002'] == [-5, 7]
    assert tags['Unknown_0003'] == -100000
    assert tags['Unknown_0004'] == 1.5
    assert tags['Unknown_0005'] == [2.25, -0.5]


def test_unknown_tags_hidden_by_default():
    tiff = build_tiff(ifd0=[(0x010F, ASCII, 'X'), (0x9999, SHORT, [1])])
    exif = parse_exif(tiff)
    assert 'Unknown_9999' not in exif.tags()
    assert exif.tags(include_unknown=True)['Unknown_9999'] == 1
    assert exif.ifds['IFD0'].get(0x9999).name == 'Unknown_9999'


@pytest.mark.parametrize("byte_order", BYTE_ORDERS)
def test_inline_and_offset_paths_agree(byte_order):
    tiff = build_tiff(ifd0=[(0x0102, SHORT, [3, 7, 9])], byte_order=byte_order)
    parser = ExifParser(tiff)
    exif = parser.parse()
    assert exif.tags()['BitsPerSample'] == [3, 7, 9]

    # single entry: data area follows header (8) + count (2) + entry (12) + next offset (4)
    data_offset = 8 + 2 + 12 + 4
    inline = InlineValue(struct.pack(f'{byte_order}2H', 3, 7))
    via_offset = OffsetValue(data_offset)
    assert parser.resolve_value(ExifTagType.SHORT, 2, inline) == [3, 7]
    assert parser.resolve_value(ExifTagType.SHORT, 2, via_offset) == [3, 7]


def test_rational_zero_denominator_is_indeterminate():
    tiff = build_tiff(ifd0=[(0x011A, RATIONAL, [(72, 0)])])
    value = parse_exif(tiff).tags()['XResolution']
    assert value == Rational(72, 0)
    assert value.indeterminate
    assert value.to_float() is None
    assert Rational(1, 4).to_float() == 0.25
    assert str(Rational(1, 250)) == '1/250'


def test_sub_ifds_are_namespaced():
    tiff = build_tiff(
        ifd0=[(0x010F, ASCII, 'IFD0 Make'), (0x0001, ASCII, 'ifd0')],
        exif=[(0x010F, ASCII, 'Exif Make')],
        gps=[(0x0001, ASCII, 'N')],
        interop=[(0x0001, ASCII, 'R98')],
    )
    exif = parse_exif(tiff)
    tags = exif.tags(include_unknown=True)
    assert tags['Make'] == 'IFD0 Make'
    assert tags['Exif:Unknown_010F'] == 'Exif Make'
    assert tags['GPS:GPSLatitudeRef'] == 'N'
    assert tags['Interop:InteroperabilityIndex'] == 'R98'
    assert tags['Unknown_0001'] == 'ifd0'
    assert set(exif.ifds) == {'IFD0', 'Exif', 'GPS', 'Interop'}


def test_pointer_tags_are_not_values():
    tags = parse_exif(sample_tiff()).tags(include_unknown=True)
    assert 'ExifIFDPointer' not in tags
    assert 'GPSInfoIFDPointer' not in tags
    assert tags['Exif:DateTimeOriginal'] == '2019:07:26 13:25:33'
    assert tags['GPS:GPSLatitude'] == [Rational(51, 1), Rational(30, 1), Rational(2646, 100)]


def test_ifd1_is_decoded_and_optional():
    tiff = build_tiff(
        ifd0=[(0x010F, ASCII, 'TestCam')],
        ifd1=[(0x0103, SHORT, [6]), (0x0201, LONG, [1234])],
    )
    tags = parse_exif(tiff).tags()
    assert tags['IFD1:Compression'] == 6
    assert tags['IFD1:JPEGInterchangeFormat'] == 1234
    assert 'IFD1:Compression' not in parse_exif(tiff, include_thumbnail=False).tags()


def test_unknown_type_keeps_raw_bytes():
    tiff = build_tiff(ifd0=[(0x0131, 99, b'\x01\x02\x03\x04'), (0x010F, ASCII, 'Cam')])
    exif = parse_exif(tiff)
    assert exif.tags()['Software'] == b'\x01\x02\x03\x04'
    assert exif.tags()['Make'] == 'Cam'
    assert exif.ifds['IFD0'].get(0x0131).value_type == 99
    assert exif.skipped == []


def _raw_ifd(entries, bo='<', next_offset=0):
    out = b'II' if bo == '<' else b'MM'
    out += struct.pack(f'{bo}HI', 42, 8)
    out += struct.pack(f'{bo}H', len(entries))
    for tag, type_, count, slot in entries:
        out += struct.pack(f'{bo}HHI', tag, type_, count) + slot
    out += struct.pack(f'{bo}I', next_offset)
    return out


def test_out_of_range_value_offset_skips_only_that_tag():
    tiff = _raw_ifd([
        (0x010F, ASCII, 10, struct.pack('<I', 5000)),
        (0x0112, SHORT, 1, b'\x01\x00\x00\x00'),
    ])
    exif = parse_exif(tiff)
    assert exif.tags() == {'Orientation': 1}
    assert len(exif.skipped) == 1
    assert exif.skipped[0].tag_id == 0x010F
    assert 'outside the Exif block' in exif.skipped[0].reason


def test_huge_count_is_skipped():
    tiff = _raw_ifd([
        (0x0111, LONG, 0xFFFFFFFF, struct.pack('<I', 8)),
        (0x0112, SHORT, 1, b'\x03\x00\x00\x00'),
    ])
    exif = parse_exif(tiff)
    assert exif.tags() == {'Orientation': 3}
    assert exif.skipped[0].tag_id == 0x0111


def test_entry_count_past_buffer_keeps_decoded_entries():
    tiff = _raw_ifd([
        (0x0112, SHORT, 1, b'\x01\x00\x00\x00'),
        (0x0128, SHORT, 1, b'\x02\x00\x00\x00'),
    ])
    # claim 40 entries, only 2 are present
    tiff = tiff[:8] + struct.pack('<H', 40) + tiff[10:]
    exif = parse_exif(tiff)
    assert exif.tags()['Orientation'] == 1
    assert exif.tags()['ResolutionUnit'] == 2
    assert exif.skipped[-1].tag_id is None
    assert 'truncated' in exif.skipped[-1].reason


def test_ifd0_outside_block_gives_empty_result():
    tiff = b'II*\x00' + struct.pack('<I', 4096)
    exif = parse_exif(tiff)
    assert exif.tags() == {}
    assert exif.skipped[0].ifd == 'IFD0'


def test_max_entries_caps_directory():
    tiff = build_tiff(ifd0=[(0x0100 + i, SHORT, [i]) for i in range(10)])
    exif = parse_exif(tiff, max_entries=3)
    assert len(exif.ifds['IFD0'].entries) == 3
    assert 'capped' in exif.skipped[0].reason


def test_cycle_back_to_ifd0_terminates():
    # Exif IFD's Interop pointer leads back to IFD0
    tiff = build_tiff(
        ifd0=[(0x010F, ASCII, 'Loop')],
        exif=[(0x9003, ASCII, '2020:01:01 00:00:00'), (0xA005, LONG, [8])],
    )
    exif = parse_exif(tiff)
    assert exif.tags()['Make'] == 'Loop'
    assert exif.tags()['Exif:DateTimeOriginal'] == '2020:01:01 00:00:00'
    assert any('already visited' in s.reason for s in exif.skipped)


def test_self_referencing_exif_pointer_terminates():
    tiff = _raw_ifd([(0x8769, LONG, 1, struct.pack('<I', 8))])
    exif = parse_exif(tiff)
    assert set(exif.ifds) == {'IFD0'}
    assert 'already visited' in exif.skipped[0].reason


def test_next_ifd_loop_terminates():
    tiff = _raw_ifd([(0x0112, SHORT, 1, b'\x01\x00\x00\x00')], next_offset=8)
    exif = parse_exif(tiff)
    assert exif.tags() == {'Orientation': 1}
    assert 'IFD1' not in exif.ifds


def test_depth_limit():
    tiff = build_tiff(
        ifd0=[(0x010F, ASCII, 'Deep')],
        exif=[(0x9003, ASCII, '2020:01:01 00:00:00')],
        interop=[(0x0001, ASCII, 'R98')],
    )
    exif = parse_exif(tiff, max_depth=1)
    assert 'Interop' not in exif.ifds
    assert 'Exif' in exif.ifds
    assert any('maximum depth' in s.reason for s in exif.skipped)


def test_non_integer_pointer_is_skipped():
    tiff = _raw_ifd([(0x8769, ASCII, 4, b'abc\x00')])
    exif = parse_exif(tiff)
    assert 'Exif' not in exif.ifds
    assert exif.skipped[0].tag_id == 0x8769


@pytest.mark.parametrize("byte_order", BYTE_ORDERS)
def test_truncation_never_reads_out_of_bounds(byte_order):
    tiff = sample_tiff(byte_order)
    full = parse_exif(tiff).tags()
    for cut in range(len(tiff)):
        try:
            partial = parse_exif(tiff[:cut]).tags()
        except MetadataReadError as e:
            assert isinstance(e, InvalidTiffHeaderError)
            assert cut < 8
            continue
        for key, value in partial.items():
            assert full[key] == value


def test_exif_data_get():
    exif = parse_exif(sample_tiff())
    assert exif.get('Make') == 'TestCam'
    assert exif.get('Exif:ISOSpeedRatings') == 400
    assert exif.get('GPS:Missing', 'none') == 'none'
    assert exif.get('Interop:InteroperabilityIndex') is None


def test_ascii_decoding():
    assert decode_ascii(b'Canon\x00\x00\x00') == 'Canon'
    assert decode_ascii(b'NoTerminator') == 'NoTerminator'
    assert decode_ascii(b'Padded   \x00') == 'Padded'
    assert decode_ascii(b'first\x00second\x00') == 'first'
    assert decode_ascii('Café'.encode('utf-8') + b'\x00') == 'Café'
    latin = decode_ascii(b'Caf\xe9 cr\xe8me br\xfbl\xe9e\x00')
    assert isinstance(latin, str)
    assert latin.startswith('Caf')


def test_pointer_tags_outside_their_directory_are_dropped():
    tiff = build_tiff(
        ifd0=[(0x010F, ASCII, 'TestCam')],
        gps=[(0x0001, ASCII, 'N'), (0xA005, LONG, [8])],
        ifd1=[(0x0103, SHORT, [6]), (0x8769, LONG, [8]), (0x8825, LONG, [8])],
    )
    exif = parse_exif(tiff)
    tags = exif.tags(include_unknown=True)
    assert tags['IFD1:Compression'] == 6
    assert not any('Pointer' in key or key.endswith('A005') for key in tags)
    assert {(s.ifd, s.tag_id) for s in exif.skipped} == {('IFD1', 0x8769), ('IFD1', 0x8825), ('GPS', 0xA005)}
    assert all('not followed' in s.reason for s in exif.skipped)


def test_depth_limit_applies_to_thumbnail_directory():
    tiff = build_tiff(ifd0=[(0x010F, ASCII, 'TestCam')], ifd1=[(0x0103, SHORT, [6])])
    exif = parse_exif(tiff, max_depth=0)
    assert set(exif.ifds) == {'IFD0'}
    assert exif.skipped[0].ifd == 'IFD1'
    assert 'maximum depth' in exif.skipped[0].reason
    assert 'IFD1' in parse_exif(tiff, max_depth=1).ifds
