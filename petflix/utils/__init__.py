"""
Utilities
=========

Helper functions shared by the story producer's services.
"""

from .image_utils import (
    to_data_uri,
    prepare_image_ref,
    is_remote_ref,
    local_path,
    jpeg_data_uri,
)
from .network import ConnectivityChecker
from .storage import read_json, write_json

__all__ = [
    "to_data_uri",
    "prepare_image_ref",
    "is_remote_ref",
    "local_path",
    "jpeg_data_uri",
    "ConnectivityChecker",
    "read_json",
    "write_json",
]
