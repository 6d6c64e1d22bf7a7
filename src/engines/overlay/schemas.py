from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Dict, Optional, Any
from enum import Enum


class FitPolicy(str, Enum):
    """How a bitmap is reframed into a target box."""
    COVER = "cover"      # scale to fill, center crop the overflow
    CONTAIN = "contain"  # scale to fit, pad with transparent pixels
    FILL = "fill"        # stretch, aspect ratio not preserved


class CanvasPolicy(str, Enum):
    FIXED = "fixed"
    BACKGROUND = "background"


class BlendMode(str, Enum):
    SCREEN = "screen"
    OVER = "over"


class Anchor(str, Enum):
    CENTER = "center"
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"
    NORTHWEST = "northwest"
    NORTHEAST = "northeast"
    SOUTHWEST = "southwest"
    SOUTHEAST = "southeast"


# =============================================================================
# Pipeline Tuning Schemas
# =============================================================================

class ToneAdjustment(BaseModel):
    """Brightness/saturation/contrast factors plus a hue rotation in degrees."""
    brightness: float = Field(1.0, ge=0.0, le=10.0)
    saturation: float = Field(1.0, ge=0.0, le=10.0)
    contrast: float = Field(1.0, ge=0.0, le=10.0)
    hue: float = Field(0.0, ge=-360.0, le=360.0)


class CropRegion(BaseModel):
    """Sub-region expressed as fractions of the source width/height."""
    left: float = Field(0.0, ge=0.0, le=1.0)
    top: float = Field(0.0, ge=0.0, le=1.0)
    right: float = Field(1.0, ge=0.0, le=1.0)
    bottom: float = Field(1.0, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def check_ordering(self) -> "CropRegion":
        if self.right <= self.left or self.bottom <= self.top:
            raise ValueError("crop region must have right > left and bottom > top")
        return self


class Placement(BaseModel):
    """
    Where a layer lands on the canvas.

    Either a named anchor, or a top-left offset given as fractions of the
    canvas width/height (0.1 == 10% from the left edge).
    """
    anchor: Optional[Anchor] = None
    left: float = Field(0.0, ge=-1.0, le=1.0)
    top: float = Field(0.0, ge=-1.0, le=1.0)


def _check_matrix(v: List[List[float]]) -> List[List[float]]:
    if len(v) != 3 or any(len(row) != 3 for row in v):
        raise ValueError("color matrix must be 3x3")
    return v


class RouteExtractionConfig(BaseModel):
    """
    Route recipe: (hue pre-rotation) -> color matrix -> tone -> threshold.

    `tone.saturation` and `tone.hue` act on the recombined bitmap, so they only
    matter when the matrix keeps chroma (rows differ, as in the classic
    preset). A matrix with identical rows yields gray; to steer a route hue
    onto the projected channel use `hue_prerotation` instead.
    """
    hue_prerotation: float = Field(
        0.0, ge=-360.0, le=360.0, description="Hue rotation in degrees before the color matrix"
    )
    color_matrix: List[List[float]] = Field(
        default_factory=lambda: [
            [1.0, -0.5, -0.5],
            [1.0, -0.5, -0.5],
            [1.0, -0.5, -0.5],
        ]
    )
    tone: ToneAdjustment = Field(
        default_factory=lambda: ToneAdjustment(brightness=1.8)
    )
    threshold: int = Field(200, ge=0, le=255)
    negate: bool = False
    contrast_gain: Optional[float] = Field(2.0, ge=0.0, le=10.0)
    resize_fit: FitPolicy = FitPolicy.CONTAIN
    blend_mode: BlendMode = BlendMode.SCREEN
    opacity: float = Field(0.9, ge=0.0, le=1.0)
    placement: Placement = Field(default_factory=lambda: Placement(anchor=Anchor.CENTER))

    @field_validator("color_matrix")
    @classmethod
    def validate_matrix_shape(cls, v: List[List[float]]) -> List[List[float]]:
        return _check_matrix(v)


class StatsExtractionConfig(BaseModel):
    crop_region: Optional[CropRegion] = None
    tone: ToneAdjustment = Field(
        default_factory=lambda: ToneAdjustment(brightness=2.5, contrast=5.0)
    )
    threshold: int = Field(225, ge=0, le=255)
    negate: bool = False
    contrast_gain: Optional[float] = Field(2.0, ge=0.0, le=10.0)
    resize_fit: FitPolicy = FitPolicy.CONTAIN
    region_width: float = Field(0.8, gt=0.0, le=1.0, description="Fraction of canvas width")
    region_height: float = Field(0.1, gt=0.0, le=1.0, description="Fraction of canvas height")
    blend_mode: BlendMode = BlendMode.SCREEN
    opacity: float = Field(0.95, ge=0.0, le=1.0)
    placement: Placement = Field(default_factory=lambda: Placement(left=0.1, top=0.85))


class BackgroundConfig(BaseModel):
    fit_policy: FitPolicy = FitPolicy.COVER
    encode_quality: Optional[int] = Field(80, ge=1, le=100)


class CanvasConfig(BaseModel):
    width: int = Field(1080, gt=0, le=8192)
    height: int = Field(1920, gt=0, le=8192)
    policy: CanvasPolicy = CanvasPolicy.FIXED


class PipelineConfig(BaseModel):
    """Complete tuning for one overlay run."""
    canvas: CanvasConfig = Field(default_factory=CanvasConfig)
    background: BackgroundConfig = Field(default_factory=BackgroundConfig)
    route: RouteExtractionConfig = Field(default_factory=RouteExtractionConfig)
    stats: StatsExtractionConfig = Field(default_factory=StatsExtractionConfig)


# =============================================================================
# Request / Response Schemas
# =============================================================================

class OverlayRequestDTO(BaseModel):
    """Screenshot + background pair, both embedded as data URIs or raw base64."""
    model_config = ConfigDict(populate_by_name=True)

    strava_image: str = Field(..., alias="stravaImage", description="Activity screenshot")
    base_image: str = Field(..., alias="baseImage", description="Background photo")
    preset: Optional[str] = Field(None, max_length=64, description="Named tuning preset")


class OverlayResponseDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    result_image: str = Field(..., alias="resultImage", description="PNG data URI")


class ErrorResponseDTO(BaseModel):
    error: str
    details: str


class OverlayConfigResponseDTO(BaseModel):
    """Effective configuration exposed for calibration."""
    config: PipelineConfig
    presets: List[str] = Field(default_factory=list)
    input_size_limit_bytes: int
    processing_timeout_seconds: float
    metadata: Dict[str, Any] = Field(default_factory=dict)
