"""
Pre-OCR infrastructure: image measurements and filters.

Low-level OpenCV helpers shared by the quality assessor and the OCR preprocessor.
"""

import cv2
import numpy as np
import numpy.typing as npt


def to_grayscale(image: npt.NDArray[np.uint8]) -> npt.NDArray[np.uint8]:
    """Converts BGR / BGRA / grayscale input to a single luma channel."""
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)  # type: ignore[return-value]
    if image.shape[2] == 1:
        return image[:, :, 0]
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)  # type: ignore[return-value]


def apply_clahe(image: npt.NDArray[np.uint8], clip_limit: float = 2.0, tile_grid: tuple = (8, 8)) -> npt.NDArray[np.uint8]:
    """
    CLAHE (Contrast Limited Adaptive Histogram Equalization).

    Args:
        image: Any supported image, converted to grayscale first
        clip_limit: Contrast threshold (default 2.0)
        tile_grid: Local region grid (default 8x8)
    """
    gray = to_grayscale(image)
    clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=tile_grid)
    return clahe.apply(gray)  # type: ignore[return-value]


def apply_unsharp_mask(image: npt.NDArray[np.uint8], amount: float = 0.5, sigma: float = 1.0) -> npt.NDArray[np.uint8]:
    """
    Sharpens text edges: image + amount * (image - blurred).

    Args:
        image: Grayscale image
        amount: Sharpening strength (0 disables)
        sigma: Gaussian blur sigma
    """
    if amount <= 0:
        return image
    blurred = cv2.GaussianBlur(image, (0, 0), sigma)
    return cv2.addWeighted(image, 1.0 + amount, blurred, -amount, 0)  # type: ignore[return-value]


def calculate_brightness(image: npt.NDArray[np.uint8]) -> float:
    """Mean luma (0-255)."""
    return float(to_grayscale(image).mean())


def calculate_contrast(image: npt.NDArray[np.uint8]) -> float:
    """Luma standard deviation."""
    return float(to_grayscale(image).std())


def calculate_sharpness(image: npt.NDArray[np.uint8]) -> float:
    """Laplacian variance; higher means crisper edges."""
    laplacian = cv2.Laplacian(to_grayscale(image), cv2.CV_64F)
    return float(laplacian.var())
