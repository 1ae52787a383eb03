"""
Image Utilities
===============

Helpers for turning image references into something a remote API accepts.
"""

import base64
import io
import logging
from pathlib import Path
from typing import Tuple, Union
from urllib.parse import urlparse, unquote

from PIL import Image

from ..core.exceptions import ImageLoadError

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def is_remote_ref(ref: str) -> bool:
    """Whether a reference is an http(s) URL."""
    return ref.startswith(("http://", "https://"))


def is_data_uri(ref: str) -> bool:
    return ref.startswith("data:")


def local_path(ref: str) -> Path:
    """Resolve a plain path or ``file://`` URI to a local path."""
    if ref.startswith("file://"):
        return Path(unquote(urlparse(ref).path))
    return Path(ref).expanduser()


def get_mime_type(image_path: Union[str, Path]) -> str:
    """Get MIME type from file extension."""
    return MIME_TYPES.get(Path(image_path).suffix.lower(), "image/jpeg")


def encode_image(image_path: Union[str, Path]) -> Tuple[str, str]:
    """
    Encode an image file to base64.

    Args:
        image_path: Path to the image file

    Returns:
        Tuple of (base64_data, mime_type)

    Raises:
        ImageLoadError: If the file cannot be read
    """
    path = Path(image_path)

    try:
        data = base64.b64encode(path.read_bytes()).decode("utf-8")
    except OSError as e:
        raise ImageLoadError(
            f"Image could not be read: {path.name}",
            details={"path": str(path), "reason": str(e)},
        ) from e

    return data, get_mime_type(path)


def to_data_uri(image_path: Union[str, Path]) -> str:
    """
    Convert an image to a data URI.

    Args:
        image_path: Path to the image file

    Returns:
        Data URI string (data:image/jpeg;base64,...)
    """
    data, mime_type = encode_image(image_path)
    return f"data:{mime_type};base64,{data}"


def prepare_image_ref(ref: str) -> str:
    """
    Make an image reference embeddable in a JSON request.

    URLs and data URIs pass through; local files are inlined as data URIs.
    """
    if not ref:
        raise ImageLoadError("Image reference is empty")
    if is_remote_ref(ref) or is_data_uri(ref):
        return ref
    return to_data_uri(local_path(ref))


def jpeg_data_uri(
    image_path: Union[str, Path],
    max_dimension: int = 1280,
    quality: int = 80,
) -> str:
    """
    Re-encode an image as a bounded-size JPEG data URI.

    Args:
        image_path: Path to input image
        max_dimension: Maximum width or height
        quality: JPEG quality (1-100)

    Returns:
        Data URI string

    Raises:
        ImageLoadError: If the image cannot be decoded
    """
    try:
        with Image.open(image_path) as img:
            img = img.convert("RGB")
            width, height = img.size
            longest = max(width, height)
            if longest > max_dimension:
                scale = max_dimension / longest
                img = img.resize(
                    (max(1, int(width * scale)), max(1, int(height * scale))),
                    Image.Resampling.LANCZOS,
                )

            buffer = io.BytesIO()
            img.save(buffer, "JPEG", quality=quality)
    except OSError as e:
        raise ImageLoadError(
            f"Frame could not be decoded: {Path(image_path).name}",
            details={"reason": str(e)},
        ) from e

    data = base64.b64encode(buffer.getvalue()).decode("utf-8")
    return f"data:image/jpeg;base64,{data}"
