"""Haar/LBP cascade backend using OpenCV's CascadeClassifier."""
import logging
import os
from typing import List, Dict, Any, Optional

import cv2
import numpy as np

from .base_backend import BaseBackend
from ..core.entities import DetectionParameters, Region
from ..core.exceptions import DetectionError, ModelLoadError
from ..utils.geometry import clip_region, frame_size

logger = logging.getLogger(__name__)


def resolve_model_path(model_path_or_name: str, models_dir: Optional[str] = None) -> Optional[str]:
    """Find a cascade file: as given, under models_dir, then OpenCV's bundled cascades."""
    candidates = [model_path_or_name]
    name = os.path.basename(model_path_or_name)
    if models_dir:
        candidates.append(os.path.join(models_dir, name))
    bundled_dir = getattr(getattr(cv2, "data", None), "haarcascades", None)
    if bundled_dir:
        candidates.append(os.path.join(bundled_dir, name))

    for candidate in candidates:
        if os.path.isfile(candidate):
            return candidate
    return None


class CascadeBackend(BaseBackend):
    """Cascade classifier backend. The model is loaded on construction.

    Not safe for concurrent predict() calls on the same instance.
    """

    def __init__(self,
                 model_path_or_name: str,
                 parameters: Optional[DetectionParameters] = None,
                 models_dir: Optional[str] = None,
                 config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.parameters = parameters or DetectionParameters()
        self.models_dir = models_dir
        self.classifier: Optional[cv2.CascadeClassifier] = None
        self.model_path: Optional[str] = None
        self.model_name = os.path.basename(model_path_or_name)
        self.load_model(model_path_or_name)

    def load_model(self, model_path_or_name: str) -> bool:
        """Load a cascade XML file.

        Raises:
            ModelLoadError: If the file is missing or not a valid cascade
        """
        path = resolve_model_path(model_path_or_name, self.models_dir)
        if path is None:
            raise ModelLoadError(f"Cascade model not found: {model_path_or_name}")

        try:
            classifier = cv2.CascadeClassifier(path)
        except cv2.error as e:
            raise ModelLoadError(f"Failed to load cascade {path}: {e}") from e

        if classifier.empty():
            raise ModelLoadError(f"Cascade model is empty or malformed: {path}")

        self.classifier = classifier
        self.model_path = path
        self.model_name = os.path.basename(path)
        self.is_loaded = True
        self.model_info = {
            'backend': 'opencv',
            'model_type': 'cascade',
            'model_path': path,
            'scale_factor': self.parameters.scale_factor,
            'min_neighbors': self.parameters.min_neighbors,
            'min_size': self.parameters.min_size,
        }
        logger.info(f"Loaded cascade model {path}")
        return True

    def predict(self, image: np.ndarray, search_region: Optional[Region] = None) -> List[Region]:
        """Run detectMultiScale over the image or a sub-area of it."""
        if not self.is_loaded or self.classifier is None:
            raise DetectionError("No cascade model loaded")

        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image

        if search_region is not None:
            width, height = frame_size(gray)
            area = clip_region(search_region, width, height)
            if area is None:
                return []
            gray = gray[area.y:area.bottom, area.x:area.right]

        try:
            found = self.classifier.detectMultiScale(
                gray,
                scaleFactor=self.parameters.scale_factor,
                minNeighbors=self.parameters.min_neighbors,
                flags=cv2.CASCADE_SCALE_IMAGE,
                minSize=self.parameters.min_size
            )
        except cv2.error as e:
            raise DetectionError(f"Cascade detection failed: {e}") from e

        return [Region.from_xywh(row) for row in found]

    def get_model_info(self) -> Dict[str, Any]:
        if not self.is_loaded:
            return {'status': 'not_loaded'}
        return self.model_info.copy()

    def unload_model(self) -> None:
        """Drop the classifier. Safe to call more than once."""
        if self.classifier is not None:
            logger.debug(f"Releasing cascade model {self.model_name}")
        self.classifier = None
        super().unload_model()
