"""
Named Tuning Presets

The extraction constants are empirically tuned per screenshot style and
have changed with every app theme. Presets capture known-good variants as
partial overrides on top of the configured pipeline, so a request can pick
one without redeploying.
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from src.core.exceptions import ConfigurationError
from src.engines.overlay.schemas import PipelineConfig

PRESETS: Dict[str, Dict[str, Any]] = {
    # The configured defaults, unchanged.
    "default": {},
    # First published revision: red-channel recombination, inverted masks,
    # hard-coded story canvas.
    "classic": {
        "canvas": {"width": 1080, "height": 1920, "policy": "fixed"},
        "background": {"fit_policy": "cover", "encode_quality": 80},
        "route": {
            "color_matrix": [
                [1.5, -0.5, -0.5],
                [-0.5, 0.5, -0.5],
                [-0.5, -0.5, 0.5],
            ],
            "tone": {"brightness": 1.8, "saturation": 1.5},
            "threshold": 200,
            "negate": True,
            "contrast_gain": 2.0,
            "resize_fit": "contain",
            "opacity": 0.9,
            "placement": {"anchor": "center"},
        },
        "stats": {
            "tone": {"brightness": 2.5, "contrast": 5.0},
            "threshold": 225,
            "negate": True,
            "contrast_gain": 2.0,
            "region_width": 0.8,
            "region_height": 0.1,
            "opacity": 0.95,
            "placement": {"anchor": None, "left": 0.1, "top": 0.85},
        },
    },
    # Blue route lines (dark map themes). The hue pre-rotation pushes cyan-ish
    # blues toward pure blue before the blue-channel projection; the projection
    # yields gray, so tone only adjusts brightness.
    "blue_route": {
        "route": {
            "hue_prerotation": 15.0,
            "color_matrix": [
                [-0.5, -0.5, 1.0],
                [-0.5, -0.5, 1.0],
                [-0.5, -0.5, 1.0],
            ],
            "tone": {"brightness": 2.0},
            "threshold": 210,
            "contrast_gain": 2.5,
        },
    },
    # Faint route, stats cropped from the bottom strip of the screenshot.
    "subtle": {
        "background": {"fit_policy": "contain"},
        "route": {"opacity": 0.35, "threshold": 215, "contrast_gain": 2.8},
        "stats": {
            "crop_region": {"left": 0.0, "top": 0.85, "right": 1.0, "bottom": 1.0},
            "tone": {"brightness": 1.4, "contrast": 7.0},
            "threshold": 240,
            "region_width": 0.85,
            "region_height": 0.08,
            "opacity": 0.6,
            "placement": {"anchor": "south"},
        },
    },
}


def list_presets() -> List[str]:
    return sorted(PRESETS)


def deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay `overrides` onto a copy of `base`. Lists are replaced."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_preset(config: PipelineConfig, name: Optional[str]) -> PipelineConfig:
    """Return `config` with the named preset overlaid. None means no preset."""
    if name is None:
        return config
    if name not in PRESETS:
        raise ConfigurationError(
            f"Unknown preset '{name}'. Known presets: {', '.join(list_presets())}"
        )
    try:
        return PipelineConfig.model_validate(
            deep_merge(config.model_dump(mode="json"), PRESETS[name])
        )
    except ValidationError as e:
        raise ConfigurationError(f"Preset '{name}' produced an invalid config: {e}")
