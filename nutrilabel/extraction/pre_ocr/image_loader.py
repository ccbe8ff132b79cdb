"""
Image loading: accepts any supported input and returns a BGR (or grayscale) uint8 array.

Supported inputs:
  - numpy.ndarray (H, W) or (H, W, 1|3|4), uint8
  - encoded bytes (JPEG, PNG, WebP, ...)
  - filesystem path (str or Path)
  - PIL.Image.Image
"""

from pathlib import Path
from typing import Union

import cv2
import numpy as np
from loguru import logger
from PIL import Image

from ...domain.exceptions import InvalidImageFormatError

ImageInput = Union[np.ndarray, bytes, bytearray, str, Path, Image.Image]


def load_image(source: ImageInput) -> np.ndarray:
    """
    Decodes the input into an array the pipeline can work with.

    Raises:
        InvalidImageFormatError: if the input is empty, of an unsupported type or undecodable
    """
    if isinstance(source, np.ndarray):
        return _validate_array(source)

    if isinstance(source, Image.Image):
        return _from_pil(source)

    if isinstance(source, (bytes, bytearray)):
        return _decode_bytes(bytes(source), "bytes")

    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.is_file():
            raise InvalidImageFormatError(f"Image file not found: {path}", component="ImageLoader")
        # np.fromfile handles non-ASCII paths that cv2.imread does not
        return _decode_bytes(np.fromfile(str(path), np.uint8).tobytes(), str(path))

    raise InvalidImageFormatError(
        f"Unsupported image input type: {type(source).__name__}",
        component="ImageLoader",
    )


def _validate_array(image: np.ndarray) -> np.ndarray:
    if image.size == 0:
        raise InvalidImageFormatError("Image array is empty", component="ImageLoader")
    if image.dtype != np.uint8:
        raise InvalidImageFormatError(
            f"Image array must be uint8, got {image.dtype}", component="ImageLoader"
        )
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] in (1, 3, 4):
        return image
    raise InvalidImageFormatError(
        f"Unsupported image shape: {image.shape}", component="ImageLoader"
    )


def _decode_bytes(data: bytes, source_name: str) -> np.ndarray:
    if not data:
        raise InvalidImageFormatError(f"Empty image data: {source_name}", component="ImageLoader")

    image = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        logger.error(f"[ImageLoader] Failed to decode image: {source_name}")
        raise InvalidImageFormatError(f"Failed to decode image: {source_name}", component="ImageLoader")

    h, w = image.shape[:2]
    logger.debug(f"[ImageLoader] Decoded {source_name}: {w}x{h}")
    return image


def _from_pil(image: Image.Image) -> np.ndarray:
    if image.width == 0 or image.height == 0:
        raise InvalidImageFormatError("PIL image is empty", component="ImageLoader")
    if image.mode == "L":
        return np.array(image, dtype=np.uint8)
    rgb = np.array(image.convert("RGB"), dtype=np.uint8)
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def encode_png(image: np.ndarray) -> bytes:
    """Encodes an array for engines that take file bytes."""
    ok, buffer = cv2.imencode(".png", image)
    if not ok:
        raise InvalidImageFormatError("Failed to encode image as PNG", component="ImageLoader")
    return buffer.tobytes()
