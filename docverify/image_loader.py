import io
import os
import logging
from pathlib import Path
from typing import BinaryIO, Union

import numpy as np
from PIL import Image, UnidentifiedImageError
import pillow_heif

from .exceptions import DecodeError
from .models import PixelBuffer

pillow_heif.register_heif_opener()

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, bytearray, str, os.PathLike, BinaryIO]

# Modes that map directly onto a 1/3/4 channel uint8 buffer
NATIVE_MODES = {"L", "RGB", "RGBA"}


def read_image_bytes(source: ImageSource, name: str = "image") -> bytes:
    """
    Read raw bytes from an image source.
    Accepts bytes, a filesystem path or a binary file object.
    """
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
    elif isinstance(source, (str, os.PathLike)):
        try:
            data = Path(source).read_bytes()
        except OSError as e:
            raise DecodeError(f"Could not read {name}: {e}", source=name) from e
    elif hasattr(source, "read"):
        data = source.read()
    else:
        raise DecodeError(f"Unsupported image source type: {type(source).__name__}", source=name)

    if not data:
        raise DecodeError(f"{name} is empty", source=name)
    return data


def load_image(source: ImageSource, name: str = "image") -> PixelBuffer:
    """
    Decode an image source into a PixelBuffer.
    No resizing or color conversion happens here beyond giving exotic
    modes (palette, CMYK, 16-bit) a defined channel layout.
    """
    data = read_image_bytes(source, name)

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode not in NATIVE_MODES:
                has_alpha = "A" in img.mode or "transparency" in img.info
                img = img.convert("RGBA" if has_alpha else "RGB")
            pixels = np.asarray(img, dtype=np.uint8)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Could not decode {name}: {e}", source=name) from e

    buffer = PixelBuffer(pixels)
    if buffer.width == 0 or buffer.height == 0:
        raise DecodeError(f"{name} has zero area", source=name)

    logger.debug(f"Decoded {name}: {buffer.width}x{buffer.height}x{buffer.channels}")
    return buffer
