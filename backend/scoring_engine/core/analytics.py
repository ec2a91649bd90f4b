"""
Event tracking for scoring and psychometric lifecycle events.

Events are emitted as structured log records so that any log aggregator can
alert on them (e.g. a rise in ``scoring.failed``).
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from scoring_engine.core.config import settings

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Observability event types."""

    # Scoring events
    SCORING_STARTED = "scoring.started"
    SCORING_COMPLETED = "scoring.completed"
    SCORING_FAILED = "scoring.failed"

    # Item lifecycle events
    ITEM_STATUS_CHANGED = "psychometrics.item_status_changed"
    ITEM_RETIRED = "psychometrics.item_retired"
    ITEM_ACTIVATED = "psychometrics.item_activated"


class AnalyticsTracker:
    """
    Event tracker for scoring runs and item lifecycle changes.
    """

    @staticmethod
    def track_event(
        event_type: EventType,
        session_id: Optional[int] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Track an observability event.

        Args:
            event_type: Type of event being tracked
            session_id: Optional test session ID associated with the event
            properties: Optional dictionary of event properties

        Example:
            AnalyticsTracker.track_event(
                EventType.SCORING_COMPLETED,
                session_id=123,
                properties={"overall_score": 0.72, "passed": True}
            )
        """
        event_data = {
            "event": event_type.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": session_id,
            "properties": properties or {},
            "environment": settings.ENV,
        }

        level = (
            logging.ERROR if event_type == EventType.SCORING_FAILED else logging.INFO
        )
        logger.log(
            level,
            f"Event: {event_type.value}",
            extra={
                "event_data": event_data,
                "session_id": session_id,
            },
        )

    @staticmethod
    def track_scoring_started(session_id: int, goal: str, answer_count: int) -> None:
        """Track the start of a scoring run."""
        AnalyticsTracker.track_event(
            EventType.SCORING_STARTED,
            session_id=session_id,
            properties={"goal": goal, "answer_count": answer_count},
        )

    @staticmethod
    def track_scoring_completed(
        session_id: int,
        result_id: Optional[int],
        goal: str,
        overall_score: Optional[float],
        passed: bool,
        duration_ms: float,
    ) -> None:
        """Track a successfully persisted COMPLETED result."""
        AnalyticsTracker.track_event(
            EventType.SCORING_COMPLETED,
            session_id=session_id,
            properties={
                "result_id": result_id,
                "goal": goal,
                "overall_score": overall_score,
                "passed": passed,
                "duration_ms": duration_ms,
            },
        )

    @staticmethod
    def track_scoring_failed(
        session_id: int,
        goal: str,
        error_type: str,
        error_message: str,
        duration_ms: float,
    ) -> None:
        """Track a scoring run that degraded to a PENDING result."""
        AnalyticsTracker.track_event(
            EventType.SCORING_FAILED,
            session_id=session_id,
            properties={
                "goal": goal,
                "error_type": error_type,
                "error_message": error_message,
                "duration_ms": duration_ms,
            },
        )

    @staticmethod
    def track_item_status_changed(
        question_id: int,
        old_status: Optional[str],
        new_status: str,
        reason: str,
    ) -> None:
        """Track an item validity status transition."""
        event_type = EventType.ITEM_STATUS_CHANGED
        if new_status == "retired":
            event_type = EventType.ITEM_RETIRED
        elif new_status == "active":
            event_type = EventType.ITEM_ACTIVATED

        AnalyticsTracker.track_event(
            event_type,
            properties={
                "question_id": question_id,
                "old_status": old_status,
                "new_status": new_status,
                "reason": reason,
            },
        )
