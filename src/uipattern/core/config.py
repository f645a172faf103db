"""Configuration management for the UI pattern training engine."""

from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Config(BaseSettings):
    """Configuration class for the pattern matching and training engine."""

    # Matching thresholds
    match_threshold: float = Field(default=0.75, description="Minimum score for an automatic match")
    ambiguity_margin: float = Field(default=0.10, description="Required lead of the best candidate over the runner-up")

    # Similarity weights (must sum to 1, text dominant)
    text_weight: float = Field(default=0.5)
    spatial_weight: float = Field(default=0.3)
    visual_weight: float = Field(default=0.2)
    visual_tolerance: float = Field(default=0.15, description="Relative tolerance for numeric visual descriptors")

    # Detection gate
    min_detection_confidence: float = Field(default=0.3, description="Detections below this are never auto-matched")

    # Screenshot geometry
    default_screen_width: int = Field(default=1920)
    default_screen_height: int = Field(default=1080)
    row_tolerance_px: int = Field(default=12, description="Vertical tolerance for reading-order rows")

    # Training
    answer_similarity_threshold: float = Field(default=0.6)
    ambiguous_priority_penalty: int = Field(default=2)
    domain_terms: list[str] = Field(default_factory=list)

    # Resource Management
    match_workers: int = Field(default=4)  # Thread pool size for per-element matching
    pattern_store_path: Optional[str] = Field(default=None, description="JSON file backing the pattern store")

    # Framework Configuration
    log_level: str = Field(default="INFO")
    log_dir: str = Field(default="logs")
    log_to_file: bool = Field(default=False)

    # API Configuration
    api_host: str = Field(default="localhost")
    api_port: int = Field(default=8000)
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    class Config:
        """Pydantic configuration for environment loading."""

        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore unexpected env vars rather than raising errors

    def validate_config(self) -> bool:
        """Validate configuration values."""
        for name in ("match_threshold", "ambiguity_margin", "min_detection_confidence",
                     "answer_similarity_threshold", "visual_tolerance"):
            value = getattr(self, name)
            if value < 0 or value > 1:
                raise ValueError(f"{name} must be between 0 and 1")

        weights = (self.text_weight, self.spatial_weight, self.visual_weight)
        if any(w < 0 for w in weights):
            raise ValueError("Similarity weights cannot be negative")
        if abs(sum(weights) - 1.0) > 1e-6:
            raise ValueError("Similarity weights must sum to 1")
        if self.text_weight <= max(self.spatial_weight, self.visual_weight):
            raise ValueError("Text weight must be the dominant similarity weight")

        if self.default_screen_width <= 0 or self.default_screen_height <= 0:
            raise ValueError("Default screen dimensions must be positive")

        if self.match_workers <= 0:
            raise ValueError("match_workers must be positive")

        return True

    def screen_diagonal(self) -> float:
        """Diagonal of the default screenshot size in pixels."""
        return float((self.default_screen_width ** 2 + self.default_screen_height ** 2) ** 0.5)


# Global configuration instance
config = Config()
