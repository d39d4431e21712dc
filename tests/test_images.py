from __future__ import annotations

import asyncio
import base64
import io

import pytest
from PIL import Image

from sondagem.adapters.images import ImageLoader, ImageLoaderConfig, ImageLoadError


def _png_bytes(mode: str = 'RGBA') -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (20, 10), (0, 0, 255, 0) if mode == 'RGBA' else (0, 0, 255)).save(buffer, format='PNG')
    return buffer.getvalue()


def _loader() -> ImageLoader:
    return ImageLoader(ImageLoaderConfig(timeout_seconds=5))


def test_data_uri_and_local_file_are_normalized(tmp_path):
    local = tmp_path / 'desenho.png'
    local.write_bytes(_png_bytes('RGB'))
    data_uri = 'data:image/png;base64,' + base64.b64encode(_png_bytes()).decode('ascii')

    loaded = asyncio.run(_loader().load_all([data_uri, str(local), data_uri], tmp_path / 'out'))

    assert set(loaded) == {data_uri, str(local)}
    first = loaded[data_uri]
    assert (first.width, first.height) == (20, 10)
    with Image.open(first.path) as img:
        assert img.mode == 'RGB'
        # transparent pixels are flattened onto white
        assert img.getpixel((0, 0)) == (255, 255, 255)


def test_missing_file_raises(tmp_path):
    with pytest.raises(ImageLoadError):
        asyncio.run(_loader().load_all([str(tmp_path / 'nada.png')], tmp_path / 'out'))


def test_undecodable_payload_raises(tmp_path):
    bogus = 'data:image/png;base64,' + base64.b64encode(b'not an image').decode('ascii')

    with pytest.raises(ImageLoadError):
        asyncio.run(_loader().load_all([bogus], tmp_path / 'out'))


def test_nothing_to_load(tmp_path):
    assert asyncio.run(_loader().load_all(['', None], tmp_path)) == {}
