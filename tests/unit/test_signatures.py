"""
Unit Tests for decode_data_url.

Test Aspects Covered:
    ✅ Business Logic: PNG/JPEG data URLs accepted
    ✅ Edge Cases: missing value, bad prefix, bad base64, non-image bytes
    ✅ Security: oversized image headers (decompression bomb)
"""

from __future__ import annotations

import base64
import struct
import zlib

import pytest

from cautela.signatures import InvalidImage, decode_data_url


def _chunk(kind: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))


def _png_header_only(width: int, height: int) -> str:
    """PNG válido no cabeçalho que declara WxH, sem pixels de verdade."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 0, 0, 0, 0)
    raw = b"\x89PNG\r\n\x1a\n" + _chunk(b"IHDR", ihdr) + _chunk(b"IDAT", b"") + _chunk(b"IEND", b"")
    return "data:image/png;base64," + base64.b64encode(raw).decode()


class TestDecodeDataUrl:
    def test_accepts_png(self, png_data_url: str) -> None:
        mime, raw = decode_data_url(png_data_url)
        assert mime == "image/png"
        assert raw.startswith(b"\x89PNG")

    def test_accepts_jpeg(self, jpeg_data_url: str) -> None:
        mime, _ = decode_data_url(jpeg_data_url)
        assert mime == "image/jpeg"

    @pytest.mark.parametrize("value", [None, "", 123])
    def test_missing(self, value) -> None:
        with pytest.raises(InvalidImage, match="obrigatória"):
            decode_data_url(value, field="Foto")

    def test_not_a_data_url(self) -> None:
        with pytest.raises(InvalidImage, match="data URL"):
            decode_data_url("https://exemplo.com/foto.png")

    def test_rejects_other_mime(self) -> None:
        payload = base64.b64encode(b"%PDF-1.4").decode()
        with pytest.raises(InvalidImage, match="PNG"):
            decode_data_url(f"data:application/pdf;base64,{payload}")

    def test_rejects_corrupted_base64(self) -> None:
        with pytest.raises(InvalidImage, match="base64"):
            decode_data_url("data:image/png;base64,@@@not-base64@@@")

    def test_rejects_bytes_that_are_not_an_image(self) -> None:
        payload = base64.b64encode(b"isto nao e uma imagem").decode()
        with pytest.raises(InvalidImage, match="não é uma imagem"):
            decode_data_url(f"data:image/png;base64,{payload}")

    @pytest.mark.parametrize(
        "size",
        [
            (20000, 20000),  # acima do dobro do limite do Pillow: DecompressionBombError
            (10000, 10000),  # acima do limite: DecompressionBombWarning
        ],
    )
    def test_rejects_decompression_bomb(self, size) -> None:
        with pytest.raises(InvalidImage, match="grandes demais"):
            decode_data_url(_png_header_only(*size), field="Foto")
