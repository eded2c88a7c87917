"""Backend implementations for different detector types."""

from .base_backend import BaseBackend
from .cascade_backend import CascadeBackend, resolve_model_path

__all__ = ["BaseBackend", "CascadeBackend", "resolve_model_path"]
