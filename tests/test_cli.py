import json

import pytest

from imgmeta import __version__
from imgmeta.cli import main, parse_api_options


def test_json_output(capsys, sample_jpeg_path, plain_jpeg_path):
    assert main([str(sample_jpeg_path), str(plain_jpeg_path)]) == 0
    records = json.loads(capsys.readouterr().out)
    assert [r['filename'] for r in records] == ['JAM19896.jpg', 'plain.jpg']
    assert records[0]['metadata']['Orientation'] == 1
    assert records[0]['metadata']['Make'] == 'TestCam'
    assert records[1]['metadata'] == {}


def test_missing_file_is_reported(capsys, tmp_path, sample_jpeg_path):
    missing = tmp_path / 'missing.jpg'
    assert main([str(missing), str(sample_jpeg_path)]) == 1
    captured = capsys.readouterr()
    assert (
        f"While processing {missing}, we hit an error:\n"
        "  No such file or directory (os error 2)"
    ) in captured.err
    assert len(json.loads(captured.out)) == 1


def test_only_errors_prints_no_json(capsys, tmp_path):
    assert main([str(tmp_path / 'a.jpg')]) == 1
    assert capsys.readouterr().out == ''


def test_write_sidecar(capsys, sample_jpeg_path):
    assert main(['-w', '-n', str(sample_jpeg_path)]) == 0
    assert capsys.readouterr().out == ''
    written = json.loads(sample_jpeg_path.with_suffix('.json').read_text(encoding='utf-8'))
    assert written['camera_make'] == 'TestCam'


def test_text_output(capsys, sample_jpeg_path):
    assert main(['-t', str(sample_jpeg_path)]) == 0
    out = capsys.readouterr().out
    assert out.startswith(f"======== {sample_jpeg_path}")
    assert "Orientation: Horizontal (normal)" in out
    assert "Exif:ExposureTime: 1/250" in out
    assert "GPS:GPSLatitude: 51 deg 30' 26.46\"" in out


def test_unknown_flag(capsys, tmp_path):
    from jpeg_builder import SHORT, build_jpeg, build_tiff
    path = tmp_path / 'unknown.jpg'
    path.write_bytes(build_jpeg(build_tiff(ifd0=[(0x9999, SHORT, [5])])))
    main([str(path)])
    assert json.loads(capsys.readouterr().out)[0]['metadata'] == {}
    main(['-u', str(path)])
    assert json.loads(capsys.readouterr().out)[0]['metadata'] == {'Unknown_9999': 5}


def test_api_options(capsys, sample_jpeg_path):
    assert main(['-api', 'MaxIFDDepth=0', '-api', 'IncludeThumbnailIFD=false', str(sample_jpeg_path)]) == 0
    metadata = json.loads(capsys.readouterr().out)[0]['metadata']
    assert 'Exif:FNumber' not in metadata


def test_bad_api_option(capsys, sample_jpeg_path):
    assert main(['-api', 'Bogus=1', str(sample_jpeg_path)]) == 2
    assert 'Unknown option: Bogus' in capsys.readouterr().err


def test_parse_api_options():
    assert parse_api_options(['MaxEntries = 8', 'IncludeUnknown']) == {
        'MaxEntries': '8',
        'IncludeUnknown': True,
    }
    assert parse_api_options(None) == {}


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(['-V'])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_output_modes_are_exclusive(capsys, sample_jpeg_path):
    with pytest.raises(SystemExit) as excinfo:
        main(['-j', '-t', str(sample_jpeg_path)])
    assert excinfo.value.code == 2


def _strict_json(text):
    def reject(constant):
        raise ValueError(f"non-standard JSON constant {constant}")
    return json.loads(text, parse_constant=reject)


def test_non_finite_floats_give_strict_json(capsys, tmp_path):
    from jpeg_builder import ASCII, DOUBLE, build_jpeg, build_tiff
    path = tmp_path / 'nan.jpg'
    path.write_bytes(build_jpeg(build_tiff(
        ifd0=[(0x010F, ASCII, 'TestCam')],
        exif=[(0x9201, DOUBLE, [float('nan')]), (0x9202, DOUBLE, [float('inf')])],
    )))

    assert main(['-u', '-w', str(path)]) == 0

    metadata = _strict_json(capsys.readouterr().out)[0]['metadata']
    assert metadata['Exif:ShutterSpeedValue'] == 'nan'
    assert metadata['Exif:ApertureValue'] == 'inf'
    written = _strict_json(path.with_suffix('.json').read_text(encoding='utf-8'))
    assert written['metadata'] == metadata


def test_json_input_is_left_alone(capsys, tmp_path, sample_jpeg_path):
    notes = tmp_path / 'notes.json'
    notes.write_text('{"keep": "me"}', encoding='utf-8')

    assert main(['-w', str(notes), str(sample_jpeg_path)]) == 0

    assert notes.read_text(encoding='utf-8') == '{"keep": "me"}'
    records = json.loads(capsys.readouterr().out)
    assert records[0]['error_type'] == 'NotAJpegError'
    assert sample_jpeg_path.with_suffix('.json').exists()
