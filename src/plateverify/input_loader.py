from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
from PIL import Image, ImageOps

SUPPORTED_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".bmp", ".webp"}


def _check_size(path: Path, max_file_size_mb: int) -> None:
    size_mb = path.stat().st_size / (1024 * 1024)
    if size_mb > max_file_size_mb:
        raise ValueError(f"File is too large ({size_mb:.2f} MB). Max allowed: {max_file_size_mb} MB.")


def load_photo(file_path: str | Path, max_file_size_mb: int) -> np.ndarray:
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    _check_size(path, max_file_size_mb=max_file_size_mb)
    ext = path.suffix.lower()
    if ext not in SUPPORTED_IMAGE_EXTS:
        raise ValueError(f"Unsupported file extension: {ext}")

    with Image.open(path) as im:
        # Phone uploads carry EXIF orientation; the detector needs upright pixels.
        im = ImageOps.exif_transpose(im).convert("RGB")
        arr = np.array(im)
    return cv2.cvtColor(arr, cv2.COLOR_RGB2BGR)
