"""Rename images with names suggested by a local vision model."""

from .cli import app
from .models import ImageTask, ModelDescriptor, RenameOutcome
from .renamer_service import BatchRunner, RenameOrchestrator
from .vision_client import VisionClient

__version__ = "0.1.0"

__all__ = [
    "app",
    "BatchRunner",
    "ImageTask",
    "ModelDescriptor",
    "RenameOrchestrator",
    "RenameOutcome",
    "VisionClient",
]
