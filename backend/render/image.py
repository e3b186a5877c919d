"""
Raster helpers for snapshot compositing.

Pixels are held as (height, width, 4) uint8 RGBA numpy arrays. Compositing
works on premultiplied alpha; encoding always writes straight alpha.
"""
from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image


@dataclass(frozen=True)
class EncoderProfile:
    format: str  # "png" | "jpeg"
    palette: bool = False
    colors: int = 256
    compress_level: int = 6
    quality: int = 90

    @classmethod
    def parse(cls, text: str, *, quality: int = 90) -> "EncoderProfile":
        """
        Parse a mapnik-style format string such as `png8:m=h:z=9` or `jpeg`.

        `png8` selects a 256-colour palette, `c=N` the palette size, `z=N` the
        zlib level. Quantizer choices (`m=`) all map to Pillow's fast octree,
        the only built-in quantizer that keeps alpha.
        """
        head, *opts = text.split(":")
        head = head.strip().lower()
        if head.startswith("png"):
            fmt = "png"
            palette = head in {"png8", "png256"}
        elif head in {"jpeg", "jpg"}:
            fmt = "jpeg"
            palette = False
        else:
            raise ValueError(f"Unsupported image format: {text}")

        colors = 256
        compress_level = 6
        for opt in opts:
            key, _, value = opt.partition("=")
            if key == "z":
                compress_level = max(0, min(9, int(value)))
            elif key == "c":
                colors = max(2, min(256, int(value)))
            elif key == "m":
                continue
            else:
                raise ValueError(f"Unsupported encoder option '{opt}' in {text}")
        return cls(
            format=fmt,
            palette=palette,
            colors=colors,
            compress_level=compress_level,
            quality=quality,
        )


PNG8_PROFILE = EncoderProfile.parse("png8:m=h:z=9")


@dataclass(frozen=True)
class RenderedImage:
    pixels: np.ndarray
    premultiplied: bool = False

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


def decode(data: bytes) -> RenderedImage:
    with Image.open(io.BytesIO(data)) as im:
        rgba = im.convert("RGBA")
    return RenderedImage(pixels=np.array(rgba, dtype=np.uint8), premultiplied=False)


def premultiply(img: RenderedImage) -> RenderedImage:
    if img.premultiplied:
        return img
    px = img.pixels.astype(np.uint16)
    alpha = px[..., 3:4]
    rgb = (px[..., :3] * alpha + 127) // 255
    out = np.concatenate([rgb, alpha], axis=-1).astype(np.uint8)
    return RenderedImage(pixels=out, premultiplied=True)


def demultiply(img: RenderedImage) -> RenderedImage:
    if not img.premultiplied:
        return img
    px = img.pixels.astype(np.uint32)
    alpha = px[..., 3:4]
    safe = np.where(alpha == 0, 1, alpha)
    rgb = np.where(alpha == 0, 0, (px[..., :3] * 255 + safe // 2) // safe)
    out = np.concatenate([np.minimum(rgb, 255), alpha], axis=-1).astype(np.uint8)
    return RenderedImage(pixels=out, premultiplied=False)


def composite(base: RenderedImage, overlay: RenderedImage) -> RenderedImage:
    """
    Porter-Duff "over": `overlay` drawn on top of `base`.

    Both images must be premultiplied and of equal size.
    """
    if not (base.premultiplied and overlay.premultiplied):
        raise ValueError("composite() requires premultiplied images")
    if base.pixels.shape != overlay.pixels.shape:
        raise ValueError(
            f"Image size mismatch: {base.width}x{base.height} vs {overlay.width}x{overlay.height}"
        )
    src = overlay.pixels.astype(np.uint16)
    dst = base.pixels.astype(np.uint16)
    inv_alpha = 255 - src[..., 3:4]
    out = src + (dst * inv_alpha + 127) // 255
    return RenderedImage(pixels=np.minimum(out, 255).astype(np.uint8), premultiplied=True)


def to_pil(img: RenderedImage) -> Image.Image:
    return Image.fromarray(demultiply(img).pixels)


def encode_pil(im: Image.Image, profile: EncoderProfile) -> bytes:
    buf = io.BytesIO()
    if profile.format == "jpeg":
        im.convert("RGB").save(buf, format="JPEG", quality=profile.quality)
        return buf.getvalue()

    if profile.palette:
        im = im.convert("RGBA").quantize(
            colors=profile.colors, method=Image.Quantize.FASTOCTREE
        )
    im.save(buf, format="PNG", compress_level=profile.compress_level)
    return buf.getvalue()


def encode(img: RenderedImage, profile: EncoderProfile) -> bytes:
    return encode_pil(to_pil(img), profile)
