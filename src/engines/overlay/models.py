from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from PIL import Image

from src.engines.overlay.schemas import BlendMode, Placement, PipelineConfig


@dataclass(frozen=True)
class Layer:
    """
    An RGBA bitmap ready to be blended onto the canvas.

    Transparent pixels (alpha 0) never touch the canvas, whatever the blend
    mode.
    """
    name: str
    bitmap: Image.Image
    blend_mode: BlendMode = BlendMode.SCREEN
    opacity: float = 1.0
    placement: Placement = field(default_factory=Placement)

    @property
    def size(self):
        return self.bitmap.size


@dataclass
class CompositeRequest:
    """Everything one overlay run needs. Lives for a single request."""
    screenshot: Image.Image
    background: Image.Image
    config: PipelineConfig
    route: Optional[Layer] = None
    stats: Optional[Layer] = None
