"""
Reference Library
=================

Resolves the reference image ids used by themes to image files on disk.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, Dict, Sequence, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceImage:
    """A reusable reference image."""

    image_id: str
    name: str
    filename: str
    description: str = ""


DEFAULT_REFERENCES: Dict[str, ReferenceImage] = {
    "FROG_DRAGON": ReferenceImage(
        image_id="FROG_DRAGON",
        name="Frog Dragon",
        filename="frog-dragon.png",
        description="A friendly frog dragon",
    ),
    "LEAF": ReferenceImage(
        image_id="LEAF",
        name="Leaf",
        filename="leaf.png",
        description="An iridescent leaf",
    ),
}


class ReferenceLibrary:
    """
    Maps reference image ids to files under a base directory.

    Unknown ids and missing files are skipped with a warning rather than
    failing the clip.
    """

    def __init__(
        self,
        base_path: Union[str, Path] = "./assets/reference-images",
        images: Optional[Dict[str, ReferenceImage]] = None,
    ):
        self.base_path = Path(base_path).expanduser()
        self.images = dict(DEFAULT_REFERENCES if images is None else images)

    def get(self, image_id: str) -> Optional[ReferenceImage]:
        return self.images.get(image_id)

    def path_for(self, image_id: str) -> Optional[Path]:
        image = self.images.get(image_id)
        if image is None:
            return None
        return self.base_path / image.filename

    def resolve(self, image_ids: Sequence[str]) -> List[str]:
        """
        Resolve ids to existing file paths, in order.

        Args:
            image_ids: Reference ids from a scene

        Returns:
            Paths of the images that exist
        """
        resolved = []
        for image_id in image_ids:
            path = self.path_for(image_id)
            if path is None:
                logger.warning(f"Unknown reference image id: {image_id}")
                continue
            if not path.is_file():
                logger.warning(f"Reference image {image_id} not found at {path}")
                continue
            resolved.append(str(path))
        return resolved
