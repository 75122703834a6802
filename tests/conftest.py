from __future__ import annotations

import pytest

from course_extract.config import ExtractConfig

from helpers import BodyDecoder


@pytest.fixture
def out_dir(tmp_path):
    d = tmp_path / "output"
    d.mkdir()
    return d


@pytest.fixture
def cfg(out_dir):
    return ExtractConfig(output_dir=out_dir, zstd_level=3)


@pytest.fixture
def decoder():
    return BodyDecoder()
