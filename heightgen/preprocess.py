import io
import logging

import cv2
import numpy as np
from PIL import Image

from heightgen.errors import InvalidInput
from heightgen.grid import Grid
from heightgen.normals import normalize_vectors, normals_from_xy

logger = logging.getLogger(__name__)


def decode_normal_image(image, use_blue=False):
    """
    Decode an 8-bit RGB(A) normal map into a grid of unit normals.

    Args:
        image: (H, W, 3) or (H, W, 4) uint8 array in RGB order.
        use_blue: Read z from the blue channel. By default z is recomputed
            from red/green, since many game normal maps store other data
            (gloss, masks) in blue.

    Returns:
        3-channel Grid of unit normals.
    """
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] < 3:
        raise InvalidInput(f"Expected an RGB image, got shape {image.shape}")

    # [0, 255] -> [-1, 1]
    channels = image[..., :3].astype(np.float64) / 127.5 - 1.0
    if use_blue:
        normals = normalize_vectors(channels)
    else:
        normals = normals_from_xy(channels[..., 0], channels[..., 1])

    return Grid.from_array(normals)


def _prepare(img, denoise):
    if img.ndim == 2:
        raise InvalidInput("Normal maps need at least two color channels, got a greyscale image")
    # Denoise using median blur (conditional)
    if denoise:
        img = cv2.medianBlur(img, 5)  # Kernel size 5x5
        logger.info("Pre-processing: Median Blur (Denoising) Applied.")

    code = cv2.COLOR_BGRA2RGBA if img.shape[2] == 4 else cv2.COLOR_BGR2RGB
    return cv2.cvtColor(img, code)


def load_normal_map(input_path, use_blue=False, denoise=False):
    # Load image with all channels; cv2 hands back BGR(A)
    img = cv2.imread(str(input_path), cv2.IMREAD_UNCHANGED)
    if img is None:
        raise FileNotFoundError(f"Image not found at {input_path}")
    if img.dtype != np.uint8:
        raise InvalidInput(f"Expected an 8-bit normal map, got {img.dtype} in {input_path}")

    normals = decode_normal_image(_prepare(img, denoise), use_blue=use_blue)
    logger.info(f"Normal map loaded from {input_path}: {normals.width}x{normals.height}")
    return normals


def read_normal_map(buffer, use_blue=False, denoise=False):
    """Decode an encoded image (PNG, JPEG, ...) held in memory into normals."""
    raw = np.frombuffer(buffer, dtype=np.uint8)
    img = cv2.imdecode(raw, cv2.IMREAD_UNCHANGED) if raw.size else None
    if img is None:
        raise InvalidInput("Uploaded file is not a readable image")
    if img.dtype != np.uint8:
        raise InvalidInput(f"Expected an 8-bit normal map, got {img.dtype}")

    return decode_normal_image(_prepare(img, denoise), use_blue=use_blue)


def height_to_image(heights):
    # Clamp to [0, 1] and truncate to 8-bit greyscale
    if heights.channels is not None:
        raise InvalidInput("Height maps must be scalar grids")
    values = np.clip(heights.to_array(), 0.0, 1.0) * 255.0
    return values.astype(np.uint8)


def save_height_png(heights, output_path):
    Image.fromarray(height_to_image(heights)).save(output_path)
    logger.info(f"Height map saved to: {output_path}")


def encode_height_png(heights):
    buffer = io.BytesIO()
    Image.fromarray(height_to_image(heights)).save(buffer, format="PNG")
    return buffer.getvalue()
