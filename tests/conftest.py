import io
import struct
import sys
import zlib
from pathlib import Path

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Ensure project root is on sys.path so 'pixelchain' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))



class RecordingSink:
    """Keeps every LogEvent in memory."""

    def __init__(self):
        self.events = []

    async def log(self, event):
        self.events.append(event)

    def errors(self):
        return [e for e in self.events if e.level == "error"]


def png_bytes(w=10, h=10, color=(128, 64, 32), fmt="PNG") -> bytes:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, :] = color
    img = Image.fromarray(arr)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def to_array(data: bytes) -> np.ndarray:
    return np.asarray(Image.open(io.BytesIO(data)).convert("RGB"))


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def settings(tmp_path):
    from pixelchain.infrastructure.config import Settings

    return Settings(log_dir=str(tmp_path / "logs"), pipeline_timeout_seconds=10.0)


@pytest.fixture()
def client(settings, sink) -> TestClient:
    # lazy import so the sys.path tweak above applies
    from pixelchain.main import create_app

    app = create_app(settings=settings, sink=sink)
    return TestClient(app)


@pytest.fixture()
def auth_header() -> dict[str, str]:
    # any token is accepted without a Supabase project
    return {"Authorization": "Bearer test-token"}


@pytest.fixture()
def make_png():
    return png_bytes


@pytest.fixture()
def decode_array():
    return to_array


def header_only_png(w: int, h: int) -> bytes:
    """A PNG that declares ``w`` x ``h`` pixels but carries no image data."""

    def chunk(tag: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(tag + data) & 0xFFFFFFFF
        return struct.pack(">I", len(data)) + tag + data + struct.pack(">I", crc)

    ihdr = struct.pack(">IIBBBBB", w, h, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IEND", b"")


@pytest.fixture()
def oversized_png() -> bytes:
    return header_only_png(100_000, 100_000)
