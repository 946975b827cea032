import pytest

from jpeg_builder import build_jpeg, sample_tiff


@pytest.fixture
def sample_jpeg():
    return build_jpeg(sample_tiff(), width=640, height=480)


@pytest.fixture
def sample_jpeg_path(tmp_path, sample_jpeg):
    path = tmp_path / "JAM19896.jpg"
    path.write_bytes(sample_jpeg)
    return path


@pytest.fixture
def plain_jpeg_path(tmp_path):
    path = tmp_path / "plain.jpg"
    path.write_bytes(build_jpeg(None, width=32, height=16))
    return path
