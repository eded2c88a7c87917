"""Base backend interface for detector implementations."""
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
import numpy as np
from ..core.entities import Region

class BaseBackend(ABC):
    """Abstract base class for detector backends.

    A backend instance is meant to be driven from a single thread at a time.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.is_loaded = False
        self.model_info = {}
        self.model_name = ""

    @abstractmethod
    def load_model(self, model_path_or_name: str) -> bool:
        """Load a model from path or model name."""
        pass

    @abstractmethod
    def predict(self, image: np.ndarray, search_region: Optional[Region] = None) -> List[Region]:
        """Find regions in the image, or inside search_region only.

        Regions come back in the coordinate space of the searched area.
        An empty list means nothing was found.
        """
        pass

    @abstractmethod
    def get_model_info(self) -> Dict[str, Any]:
        """Get information about the loaded model."""
        pass

    def is_model_loaded(self) -> bool:
        """Check if a model is currently loaded."""
        return self.is_loaded

    def unload_model(self) -> None:
        """Unload the current model to free memory."""
        self.is_loaded = False
        self.model_info = {}
