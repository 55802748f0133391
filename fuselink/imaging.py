"""PNG renderers for links: QR codes and visual hashes.

Both are pure functions of their string input. They never read or change a
link's lifecycle state.

Visual Hash Layout
==================
::
    digest = SHA-256(id)                      32 bytes
    pixel(x, y), 0 <= x, y < 256:
        b = digest[(x + y) % 32]
        R = (b + x) mod 256
        G = (b - y) mod 256
        B = b XOR ((x + y) mod 256)
        A = 255
"""

import hashlib
import io

import qrcode
from PIL import Image
from qrcode.image.pil import PilImage

__all__ = ["VISUAL_HASH_SIZE", "render_qr_png", "render_visual_hash_png", "visual_hash_image"]

VISUAL_HASH_SIZE = 256


def render_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(border=0)
    qr.add_data(data)
    qr.make(fit=True)
    image = qr.make_image(image_factory=PilImage)

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def visual_hash_image(value: str) -> Image.Image:
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    pixels = bytearray()
    for y in range(VISUAL_HASH_SIZE):
        for x in range(VISUAL_HASH_SIZE):
            b = digest[(x + y) % len(digest)]
            pixels += bytes(((b + x) & 0xFF, (b - y) & 0xFF, b ^ ((x + y) & 0xFF), 255))
    return Image.frombytes("RGBA", (VISUAL_HASH_SIZE, VISUAL_HASH_SIZE), bytes(pixels))


def render_visual_hash_png(value: str) -> bytes:
    buffer = io.BytesIO()
    visual_hash_image(value).save(buffer, format="PNG")
    return buffer.getvalue()
