"""
Core module for configuration, logging, errors and the scoring/psychometrics engines.

Scoring and psychometrics are not imported at package level to avoid circular
imports with scoring_engine.models. Import them directly:
from scoring_engine.core.scoring import ... or from scoring_engine.core.psychometrics import ...
"""
from .config import settings

__all__ = ["settings"]
