from __future__ import annotations

import asyncio
import base64
import binascii
import io
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote_to_bytes

import httpx
from PIL import Image, UnidentifiedImageError


class ImageLoadError(RuntimeError):
    pass


@dataclass
class ImageLoaderConfig:
    timeout_seconds: int
    user_agent: str = 'sondagem-report-export'


@dataclass(frozen=True)
class LoadedImage:
    source: str
    path: Path
    width: int
    height: int


def _decode_data_uri(source: str) -> bytes:
    header, sep, data = source.partition(',')
    if not sep:
        raise ImageLoadError('malformed data URI')
    if header.endswith(';base64'):
        try:
            return base64.b64decode(data, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise ImageLoadError(f'invalid base64 payload: {exc}') from exc
    return unquote_to_bytes(data)


def _normalize_image(raw: bytes, target: Path) -> tuple[int, int]:
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            if img.mode in {'RGBA', 'LA', 'P'}:
                rgba = img.convert('RGBA')
                flat = Image.new('RGB', rgba.size, (255, 255, 255))
                flat.paste(rgba, mask=rgba.getchannel('A'))
            else:
                flat = img.convert('RGB')
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageLoadError(f'cannot decode image: {exc}') from exc
    target.parent.mkdir(parents=True, exist_ok=True)
    flat.save(target, format='PNG')
    return flat.width, flat.height


class ImageLoader:
    """Fetch embedded images into a local directory as decoded PNG files.

    Remote images are downloaded as plain bytes so that they can be drawn
    like any local file regardless of where they are hosted.
    """

    def __init__(self, cfg: ImageLoaderConfig):
        self.cfg = cfg

    async def _read_source(self, client: httpx.AsyncClient, source: str) -> bytes:
        if source.startswith('data:'):
            return _decode_data_uri(source)
        if source.startswith(('http://', 'https://')):
            try:
                response = await client.get(source)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise ImageLoadError(f'failed to fetch {source}: {exc}') from exc
            return response.content
        path = Path(source.removeprefix('file://')).expanduser()
        if not path.is_file():
            raise ImageLoadError(f'image not found: {path}')
        return await asyncio.to_thread(path.read_bytes)

    async def load_all(self, sources: list[str], target_dir: Path) -> dict[str, LoadedImage]:
        unique = list(dict.fromkeys(s for s in sources if s))
        if not unique:
            return {}

        async with httpx.AsyncClient(
            timeout=self.cfg.timeout_seconds,
            follow_redirects=True,
            headers={'User-Agent': self.cfg.user_agent},
        ) as client:
            payloads = await asyncio.gather(*(self._read_source(client, s) for s in unique))

        loaded: dict[str, LoadedImage] = {}
        for index, (source, raw) in enumerate(zip(unique, payloads)):
            target = target_dir / f'image_{index:03d}.png'
            width, height = await asyncio.to_thread(_normalize_image, raw, target)
            loaded[source] = LoadedImage(source=source, path=target, width=width, height=height)
        return loaded
