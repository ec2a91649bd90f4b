"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Competency Scoring Engine"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./scoring.db"

    # Profile pattern thresholds (percent scale, 0-100)
    SCORING_STRENGTH_THRESHOLD: float = 75.0
    SCORING_DEVELOPMENT_THRESHOLD: float = 40.0
    SCORING_CRITICAL_GAP_THRESHOLD: float = 30.0
    # A strength this far above the personal overall becomes a signature strength
    SCORING_SIGNATURE_BAND_WIDTH: float = 10.0

    # Evidence sufficiency
    SCORING_MIN_QUESTIONS_PER_COMPETENCY: int = Field(
        default=3,
        ge=1,
        description="Competencies backed by fewer answered questions are flagged",
    )
    SCORING_LOW_EVIDENCE_WEIGHT_FACTOR: float = Field(
        default=0.5,
        description="Multiplier applied to a flagged competency's overall weight",
    )

    # Job fit (fractions, 0-1)
    SCORING_JOB_FIT_BASE_THRESHOLD: float = 0.5
    SCORING_JOB_FIT_STRICTNESS_MAX_ADJUSTMENT: float = 0.3
    SCORING_JOB_FIT_DEFAULT_STRICTNESS: int = Field(default=50, ge=0, le=100)

    # Team fit (fractions, 0-1)
    SCORING_TEAM_FIT_SATURATION_THRESHOLD: float = 0.75
    SCORING_TEAM_FIT_DIVERSITY_THRESHOLD: float = 0.5
    SCORING_TEAM_FIT_DIVERSITY_BONUS_THRESHOLD: float = 0.4
    SCORING_TEAM_FIT_SATURATION_PENALTY_THRESHOLD: float = 0.8
    SCORING_TEAM_FIT_DIVERSITY_BONUS: float = 1.1
    SCORING_TEAM_FIT_SATURATION_PENALTY: float = 0.9
    SCORING_TEAM_FIT_PASS_THRESHOLD: float = 0.6
    SCORING_TEAM_FIT_MIN_DIVERSITY_RATIO: float = 0.3

    # Standard-framework weighting boosts
    SCORING_ONET_BOOST: float = 1.2
    SCORING_ESCO_BOOST: float = 1.15
    SCORING_BIG_FIVE_BOOST: float = 1.1

    # Psychometrics
    PSYCHOMETRICS_MIN_RESPONSES: int = Field(
        default=50,
        ge=2,
        description="Responses required before an item leaves probation",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_profile_thresholds(self) -> Self:
        """Validate that critical gap <= development <= strength."""
        if not (
            self.SCORING_CRITICAL_GAP_THRESHOLD
            <= self.SCORING_DEVELOPMENT_THRESHOLD
            <= self.SCORING_STRENGTH_THRESHOLD
        ):
            raise ValueError(
                "Profile thresholds must satisfy CRITICAL_GAP <= DEVELOPMENT <= STRENGTH, "
                f"got {self.SCORING_CRITICAL_GAP_THRESHOLD}, "
                f"{self.SCORING_DEVELOPMENT_THRESHOLD}, "
                f"{self.SCORING_STRENGTH_THRESHOLD}"
            )
        if self.SCORING_SIGNATURE_BAND_WIDTH < 0:
            raise ValueError(
                "SCORING_SIGNATURE_BAND_WIDTH must be non-negative, "
                f"got {self.SCORING_SIGNATURE_BAND_WIDTH}"
            )
        return self

    @model_validator(mode="after")
    def validate_low_evidence_factor(self) -> Self:
        """Validate the low-evidence weight factor lies in (0, 1]."""
        factor = self.SCORING_LOW_EVIDENCE_WEIGHT_FACTOR
        if factor <= 0 or factor > 1:
            raise ValueError(
                f"SCORING_LOW_EVIDENCE_WEIGHT_FACTOR must be in (0, 1], got {factor}"
            )
        return self


settings = Settings()
