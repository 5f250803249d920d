"""Image decode/resize/encode on top of Pillow."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Protocol

from PIL import Image, ImageOps

from .errors import ProcessingError

DEFAULT_QUALITY = 80

OUTPUT_FORMATS = {
    "WEBP": "image/webp",
    "PNG": "image/png",
    "JPEG": "image/jpeg",
}


@dataclass(frozen=True)
class ImageInfo:
    width: int
    height: int
    format: str | None


class Transcoder(Protocol):
    content_type: str

    def inspect(self, data: bytes) -> ImageInfo: ...

    def transcode(self, data: bytes, width: int, quality: int) -> bytes: ...


def _open(data: bytes, failure: str) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ProcessingError(failure) from e
    return img


class PillowTranscoder:
    def __init__(self, output_format: str = "WEBP") -> None:
        output_format = output_format.upper()
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"unsupported output format: {output_format}")
        self.output_format = output_format
        self.content_type = OUTPUT_FORMATS[output_format]

    def inspect(self, data: bytes) -> ImageInfo:
        img = _open(data, "cannot get metadata")
        fmt = img.format
        # report the size as displayed, after EXIF rotation
        img = ImageOps.exif_transpose(img)
        return ImageInfo(width=img.width, height=img.height, format=fmt)

    def transcode(self, data: bytes, width: int, quality: int) -> bytes:
        """Re-encode ``data``; ``width=0`` keeps the native size and
        ``quality=0`` uses the encoder default."""
        img = _open(data, "cannot resize image")
        try:
            img = self._convert_mode(ImageOps.exif_transpose(img))
            if width > 0 and width != img.width:
                height = max(1, round(img.height * width / img.width))
                img = img.resize((width, height), Image.Resampling.LANCZOS)

            q = DEFAULT_QUALITY if quality <= 0 else min(quality, 100)
            buf = io.BytesIO()
            img.save(buf, format=self.output_format, quality=q)
        except (OSError, ValueError) as e:
            raise ProcessingError("cannot resize image") from e
        return buf.getvalue()

    def _convert_mode(self, img: Image.Image) -> Image.Image:
        has_alpha = img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)
        if self.output_format == "JPEG":
            return img if img.mode == "RGB" else img.convert("RGB")
        if img.mode in ("RGB", "RGBA"):
            return img
        return img.convert("RGBA" if has_alpha else "RGB")
