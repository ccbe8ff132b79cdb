"""
OCR preprocessing: grayscale -> CLAHE -> unsharp mask.

Applied to the image handed to the recognition engine, never to the one the
quality gate measured.
"""

import numpy as np
from loguru import logger

from config import settings
from .filters import apply_clahe, apply_unsharp_mask


class OCRPreprocessor:
    """Improves text contrast on glossy or unevenly lit labels."""

    def __init__(
        self,
        clip_limit: float = settings.CLAHE_CLIP_LIMIT,
        tile_grid: tuple = settings.CLAHE_TILE_GRID,
        sharpen_amount: float = settings.SHARPEN_AMOUNT,
    ):
        self.clip_limit = clip_limit
        self.tile_grid = tile_grid
        self.sharpen_amount = sharpen_amount

    def process(self, image: np.ndarray) -> np.ndarray:
        enhanced = apply_clahe(image, clip_limit=self.clip_limit, tile_grid=self.tile_grid)
        sharpened = apply_unsharp_mask(enhanced, amount=self.sharpen_amount)
        logger.debug(
            f"[Preprocessor] CLAHE(clip={self.clip_limit}) + unsharp(amount={self.sharpen_amount}) "
            f"on {image.shape[1]}x{image.shape[0]}"
        )
        return sharpened
