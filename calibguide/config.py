"""
calibguide Configuration Management

Handles loading/saving of guidance settings and calibration results.
Uses Pydantic for validation and YAML for human-readable config files.
"""

from pathlib import Path
from typing import Optional, List, Literal
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings
import yaml
import json


# Default paths
CONFIG_DIR = Path.home() / ".calibguide"
CALIBRATION_DIR = CONFIG_DIR / "calibration"


class PatternConfig(BaseModel):
    """Chessboard pattern: inner-corner counts and square edge length."""
    columns: int = Field(default=6, ge=2)
    rows: int = Field(default=6, ge=2)
    square_size: float = Field(default=1.0, gt=0)  # object-point units

    def to_pattern(self):
        from .calibration.pattern import PatternSpec
        return PatternSpec(self.columns, self.rows, self.square_size)


class GuidanceConfig(BaseModel):
    """Capture-loop and acceptance settings."""
    fps: float = Field(default=10.0, gt=0)  # capture pipeline rate, not display rate
    novelty_threshold: float = Field(default=10.0, gt=0)  # degrees, per axis
    min_samples: int = Field(default=15, ge=1)
    trigger_policy: Literal["once", "every_sample"] = "once"
    background_calibration: bool = False

    # Optical-flow tracking between ticks
    use_tracking: bool = False
    max_tracking_error: float = Field(default=8.0, gt=0)

    # Sub-pixel corner refinement
    subpix_window: int = Field(default=11, ge=1)
    subpix_iterations: int = Field(default=30, ge=1)
    subpix_epsilon: float = Field(default=0.001, gt=0)

    # Bound on poses remembered before the first acceptance
    bootstrap_trail_length: int = Field(default=300, ge=1)


class CameraConfig(BaseModel):
    """Configuration for the capture camera."""
    id: int = 0  # OpenCV camera index
    name: str = ""
    resolution: tuple[int, int] = (1280, 720)
    fps: int = 30


class CalibGuideConfig(BaseSettings):
    """Main configuration container."""
    camera: CameraConfig = Field(default_factory=CameraConfig)
    pattern: PatternConfig = Field(default_factory=PatternConfig)
    guidance: GuidanceConfig = Field(default_factory=GuidanceConfig)
    log_level: Literal["DEBUG", "INFO", "WARN", "ERROR"] = "INFO"

    # Paths
    config_dir: Path = CONFIG_DIR
    calibration_dir: Path = CALIBRATION_DIR

    class Config:
        env_prefix = "CALIBGUIDE_"

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "CalibGuideConfig":
        """Load configuration from YAML file."""
        if path is None:
            path = CONFIG_DIR / "config.yaml"

        if path.exists():
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        return cls()

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to YAML file."""
        if path is None:
            path = CONFIG_DIR / "config.yaml"

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            yaml.dump(self.model_dump(mode='json'), f, default_flow_style=False)

    def ensure_dirs(self) -> None:
        """Create necessary directories if they don't exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.calibration_dir.mkdir(parents=True, exist_ok=True)


class CameraIntrinsics(BaseModel):
    """Intrinsic calibration result for a camera."""
    camera_id: int
    camera_name: str
    resolution: tuple[int, int]

    # Camera matrix (3x3)
    camera_matrix: List[List[float]]

    # Distortion coefficients (typically 5 values)
    distortion_coeffs: List[float]

    # Calibration quality metrics
    reprojection_error: float
    per_view_errors: List[float] = Field(default_factory=list)
    sample_count: int = 0
    calibration_date: str

    def save(self, path: Path) -> None:
        """Save intrinsics to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.model_dump(), f, indent=2)

    @classmethod
    def load(cls, path: Path) -> "CameraIntrinsics":
        """Load intrinsics from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls(**data)
