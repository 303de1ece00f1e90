"""Configuration management for Annotation Overlay."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

# Default configuration file path
DEFAULT_CONFIG_PATH = Path("overlay_config.yaml")


@dataclass
class OverlayConfig:
    """
    Overlay configuration settings.

    Stores drawing styles, interaction thresholds and key bindings.
    """

    stroke_color: str = "#FF0000"
    stroke_width: float = 2.0
    selected_color: str = "#FFFF00"
    selected_stroke_width: float = 4.0
    preview_color: str = "#FF0000"
    preview_stroke_width: float = 2.0
    preview_dash: List[float] = field(default_factory=lambda: [6.0, 6.0])
    hit_tolerance: float = 5.0  # Outline hit distance in viewport pixels
    double_click_interval_ms: int = 300  # Max gap between clicks that close a polygon
    frame_interval_ms: int = 16  # Coalescing window for drag repaints
    annotation_modifier_key: str = "Shift"  # Key held to enable annotation mode
    finish_drawing_key: str = "Escape"  # Key to finish polygon drawing (empty to disable)
    delete_shape_key: str = "Delete"  # Key to delete selected shape (empty to disable)
    default_tool: str = "line"
    min_zoom: float = 0.01
    max_zoom: float = 40.0
    zoom_factor: float = 1.2

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "strokeColor": self.stroke_color,
            "strokeWidth": self.stroke_width,
            "selectedColor": self.selected_color,
            "selectedStrokeWidth": self.selected_stroke_width,
            "previewColor": self.preview_color,
            "previewStrokeWidth": self.preview_stroke_width,
            "previewDash": list(self.preview_dash),
            "hitTolerance": self.hit_tolerance,
            "doubleClickIntervalMs": self.double_click_interval_ms,
            "frameIntervalMs": self.frame_interval_ms,
            "annotationModifierKey": self.annotation_modifier_key,
            "finishDrawingKey": self.finish_drawing_key,
            "deleteShapeKey": self.delete_shape_key,
            "defaultTool": self.default_tool,
            "minZoom": self.min_zoom,
            "maxZoom": self.max_zoom,
            "zoomFactor": self.zoom_factor,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> OverlayConfig:
        """Create config from dictionary."""
        return cls(
            stroke_color=data.get("strokeColor", "#FF0000"),
            stroke_width=data.get("strokeWidth", 2.0),
            selected_color=data.get("selectedColor", "#FFFF00"),
            selected_stroke_width=data.get("selectedStrokeWidth", 4.0),
            preview_color=data.get("previewColor", "#FF0000"),
            preview_stroke_width=data.get("previewStrokeWidth", 2.0),
            preview_dash=list(data.get("previewDash", [6.0, 6.0])),
            hit_tolerance=data.get("hitTolerance", 5.0),
            double_click_interval_ms=data.get("doubleClickIntervalMs", 300),
            frame_interval_ms=data.get("frameIntervalMs", 16),
            annotation_modifier_key=data.get("annotationModifierKey", "Shift"),
            finish_drawing_key=data.get("finishDrawingKey", "Escape"),
            delete_shape_key=data.get("deleteShapeKey", "Delete"),
            default_tool=data.get("defaultTool", "line"),
            min_zoom=data.get("minZoom", 0.01),
            max_zoom=data.get("maxZoom", 40.0),
            zoom_factor=data.get("zoomFactor", 1.2),
        )


class ConfigManager:
    """
    Loads the overlay configuration from YAML and writes changes back.

    Loading never raises: a missing, unreadable or malformed file yields
    the defaults. Only settings changed through update() trigger a write.
    """

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: YAML file holding the overlay settings
        """
        self.config_path = Path(config_path)
        self._config: Optional[OverlayConfig] = None

    @property
    def config(self) -> OverlayConfig:
        """Current configuration, loaded on first access."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> OverlayConfig:
        """
        Read the configuration file.

        Returns:
            OverlayConfig from the file, or the defaults when it is missing
            or cannot be used
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            return OverlayConfig()

        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file: {e}")
            return OverlayConfig()
        except OSError as e:
            logger.error(f"Error reading config file {self.config_path}: {e}")
            return OverlayConfig()

        if not isinstance(data, dict):
            logger.error(f"Config file {self.config_path} does not hold a mapping, using defaults")
            return OverlayConfig()

        logger.info(f"Loaded configuration from {self.config_path}")
        return OverlayConfig.from_dict(data)

    def save(self, config: Optional[OverlayConfig] = None) -> bool:
        """
        Write the configuration file.

        Args:
            config: Configuration to store and write, or the current one

        Returns:
            True if the file was written
        """
        if config is not None:
            self._config = config

        if self._config is None:
            logger.warning("No configuration to save")
            return False

        try:
            with open(self.config_path, "w") as f:
                yaml.dump(self._config.to_dict(), f, default_flow_style=False)
        except OSError as e:
            logger.error(f"Error saving config to {self.config_path}: {e}")
            return False

        logger.info(f"Saved configuration to {self.config_path}")
        return True

    def update(self, **kwargs: Any) -> List[str]:
        """
        Change settings and save them if any value differs.

        Args:
            **kwargs: Setting names and new values

        Returns:
            Names of the settings that changed
        """
        config = self.config
        changed = []
        for key, value in kwargs.items():
            if not hasattr(config, key):
                logger.warning(f"Unknown config key: {key}")
                continue
            if getattr(config, key) != value:
                setattr(config, key, value)
                changed.append(key)

        if changed:
            self.save()
        return changed
