"""
Scoring orchestration.

Result lifecycle for a session:

    none -> COMPLETED
    none -> PENDING -> COMPLETED

- A COMPLETED result is returned unchanged (idempotent, no answers are read).
- A PENDING result from an earlier failed attempt is deleted before rescoring.
- Any failure while reading answers or scoring degrades to a new PENDING
  result carrying only descriptive statistics; it is never raised to the
  caller.
- A missing session is raised as ResourceNotFoundError.

Scoring of the same session is serialized inside the process; the unique
constraint on ``test_results.session_id`` covers concurrent processes.
"""
import logging
import threading
import time
import weakref
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from scoring_engine.core.analytics import AnalyticsTracker
from scoring_engine.core.exceptions import DuplicateResultError, ResourceNotFoundError
from scoring_engine.core.graceful_failure import graceful_failure
from scoring_engine.core.precision import is_at_least
from scoring_engine.models.models import AssessmentGoal, ResultStatus
from scoring_engine.schemas.scoring import ScoringResult, TestResultDto

from ._constants import DEFAULT_CONFIDENCE_LEVEL
from ._types import AnswerRecord, ScoringLookups, ScoringThresholds, SessionInfo
from .confidence import enrich_with_confidence_intervals
from .consistency import analyze_response_consistency
from .percentile import calculate_percentile_rank, enrich_with_competency_percentiles
from .repository import BenchmarkProvider, ScoringRepository, SqlAlchemyScoringRepository
from .strategies import ScoringStrategy, resolve_strategy

logger = logging.getLogger(__name__)

LEGACY_GOAL_LABEL = "legacy"


def _goal_label(goal: Optional[AssessmentGoal]) -> str:
    return goal.value if goal is not None else LEGACY_GOAL_LABEL


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def summarize_answers(answers: Sequence[AnswerRecord]) -> dict:
    """Descriptive statistics that do not depend on scoring."""
    return {
        "questions_answered": sum(1 for a in answers if a.is_valid),
        "questions_skipped": sum(1 for a in answers if a.skipped),
        "total_time_seconds": sum(a.time_spent_seconds or 0 for a in answers),
    }


class ScoringOrchestrator:
    """
    Runs the scoring pipeline for a session and persists the outcome.

    Args:
        repository: Persistence boundary
        thresholds: Scoring configuration (from settings when omitted)
        registry: Goal -> strategy table (the default table when omitted)
        confidence_level: Confidence level for competency intervals
    """

    _session_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = (
        weakref.WeakValueDictionary()
    )
    _registry_lock = threading.Lock()

    def __init__(
        self,
        repository: ScoringRepository,
        thresholds: Optional[ScoringThresholds] = None,
        registry: Optional[Mapping[AssessmentGoal, ScoringStrategy]] = None,
        confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    ):
        self.repository = repository
        self.thresholds = thresholds or ScoringThresholds.from_settings()
        self.registry = registry
        self.confidence_level = confidence_level

    @classmethod
    def _lock_for(cls, session_id: int) -> threading.Lock:
        with cls._registry_lock:
            lock = cls._session_locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                cls._session_locks[session_id] = lock
            return lock

    def calculate_and_save_result(self, session_id: int) -> TestResultDto:
        """
        Score a session and persist the result.

        Returns:
            The COMPLETED result, or a PENDING result when scoring failed

        Raises:
            ResourceNotFoundError: If the session does not exist
        """
        lock = self._lock_for(session_id)
        with lock:
            return self._calculate_locked(session_id)

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _calculate_locked(self, session_id: int) -> TestResultDto:
        start = time.perf_counter()

        session = self.repository.get_session(session_id)
        if session is None:
            raise ResourceNotFoundError("Session", session_id)

        existing = self.repository.find_result(session_id)
        if existing is not None:
            if existing.status == ResultStatus.COMPLETED:
                logger.info(
                    f"Session {session_id} already has COMPLETED result {existing.id}, "
                    "returning it unchanged",
                    extra={"session_id": session_id},
                )
                return existing

        goal = _goal_label(session.goal)
        answers: Optional[List[AnswerRecord]] = None
        try:
            if existing is not None:
                self.repository.delete_pending_result(session_id)
            answers = self.repository.get_answers(session_id)
            logger.info(
                f"Scoring session {session_id} (goal={goal}, answers={len(answers)})",
                extra={"session_id": session_id, "goal": goal},
            )
            with graceful_failure("publish scoring started event", logger):
                AnalyticsTracker.track_scoring_started(session_id, goal, len(answers))

            result = self._build_completed_result(session, answers)
            saved = self.repository.save_result(result)
        except DuplicateResultError:
            winner = self.repository.find_result(session_id)
            if winner is None:
                raise
            logger.info(
                f"Concurrent scoring already stored result {winner.id} "
                f"for session {session_id}",
                extra={"session_id": session_id},
            )
            return winner
        except ResourceNotFoundError:
            raise
        except Exception as e:
            return self._save_pending_result(session, answers, e, start)

        duration_ms = _elapsed_ms(start)
        logger.info(
            f"Scoring completed for session {session_id}: result {saved.id}, "
            f"{saved.overall_percentage}%",
            extra={"session_id": session_id, "duration_ms": duration_ms},
        )
        with graceful_failure("publish scoring completed event", logger):
            AnalyticsTracker.track_scoring_completed(
                session_id=session_id,
                result_id=saved.id,
                goal=goal,
                overall_score=saved.overall_score,
                passed=bool(saved.passed),
                duration_ms=duration_ms,
            )
        return saved

    def _build_completed_result(
        self, session: SessionInfo, answers: List[AnswerRecord]
    ) -> TestResultDto:
        lookups = self.repository.load_lookups(answers, session)
        strategy = resolve_strategy(session.goal, self.registry)
        scoring = strategy(answers, session, lookups, self.thresholds)

        self._enrich_competency_scores(session, scoring)
        self._add_consistency_metrics(session, answers, lookups, scoring)
        percentile = self._percentile(session, scoring.overall_percentage)

        return TestResultDto(
            session_id=session.session_id,
            template_id=session.template_id,
            goal=session.goal,
            status=ResultStatus.COMPLETED,
            overall_score=scoring.overall_score,
            overall_percentage=scoring.overall_percentage,
            percentile=percentile,
            passed=is_at_least(scoring.overall_percentage, session.passing_score),
            competency_scores=scoring.competency_scores,
            big_five_profile=scoring.big_five_profile,
            extended_metrics=scoring.extended_metrics or None,
            completed_at=datetime.now(timezone.utc),
            **summarize_answers(answers),
        )

    def _enrich_competency_scores(self, session: SessionInfo, scoring: ScoringResult) -> None:
        """Competency percentiles and confidence intervals from stored history."""
        if not scoring.competency_scores:
            return
        competency_ids = [s.competency_id for s in scoring.competency_scores]
        context = {"session_id": session.session_id}

        samples: Optional[Dict[int, List[float]]] = None
        with graceful_failure("load competency score history", logger, context=context):
            samples = self.repository.competency_score_samples(
                session.template_id, competency_ids
            )
        if samples is None:
            return

        with graceful_failure("calculate competency percentiles", logger, context=context):
            enrich_with_competency_percentiles(scoring.competency_scores, samples)

        with graceful_failure(
            "calculate competency confidence intervals", logger, context=context
        ):
            alphas = self.repository.load_reliability_alphas(competency_ids)
            enrich_with_confidence_intervals(
                scoring.competency_scores, alphas, samples, self.confidence_level
            )

    def _add_consistency_metrics(
        self,
        session: SessionInfo,
        answers: Sequence[AnswerRecord],
        lookups: ScoringLookups,
        scoring: ScoringResult,
    ) -> None:
        with graceful_failure(
            "analyze response consistency",
            logger,
            context={"session_id": session.session_id},
        ):
            consistency = analyze_response_consistency(answers, lookups)
            scoring.extended_metrics.update(consistency.as_metrics())

    def _percentile(self, session: SessionInfo, overall_percentage: float) -> Optional[int]:
        percentile: Optional[int] = None
        with graceful_failure(
            "calculate percentile rank",
            logger,
            context={"session_id": session.session_id},
        ):
            # The new result is not stored yet; count it explicitly
            total = self.repository.count_completed_results(session.template_id) + 1
            below = self.repository.count_results_below(
                session.template_id, overall_percentage
            )
            percentile = calculate_percentile_rank(below, total)
        return percentile

    # -------------------------------------------------------------------------
    # Fallback
    # -------------------------------------------------------------------------

    def _save_pending_result(
        self,
        session: SessionInfo,
        answers: Optional[List[AnswerRecord]],
        error: Exception,
        start: float,
    ) -> TestResultDto:
        """
        Persist a PENDING result after a scoring failure.

        ``answers`` is None when reading them was what failed; they are read
        once more for the descriptive statistics, which are zero if that
        fails too.
        """
        session_id = session.session_id
        goal = _goal_label(session.goal)
        duration_ms = _elapsed_ms(start)

        logger.error(
            f"Scoring failed for session {session_id}, storing PENDING result: "
            f"{type(error).__name__}: {error}",
            exc_info=True,
            extra={"session_id": session_id, "goal": goal, "duration_ms": duration_ms},
        )
        with graceful_failure("publish scoring failed event", logger):
            AnalyticsTracker.track_scoring_failed(
                session_id=session_id,
                goal=goal,
                error_type=type(error).__name__,
                error_message=str(error),
                duration_ms=duration_ms,
            )

        if answers is None:
            with graceful_failure(
                "reload answers for PENDING result", logger, context={"session_id": session_id}
            ):
                answers = self.repository.get_answers(session_id)

        pending = TestResultDto(
            session_id=session_id,
            template_id=session.template_id,
            goal=session.goal,
            status=ResultStatus.PENDING,
            completed_at=datetime.now(timezone.utc),
            **summarize_answers(answers or []),
        )
        # A failed save may have rolled back the earlier PENDING deletion
        self.repository.delete_pending_result(session_id)
        saved = self.repository.save_result(pending)
        logger.info(
            f"Stored PENDING result {saved.id} for session {session_id}",
            extra={"session_id": session_id},
        )
        return saved


def calculate_and_save_result(
    db: Session,
    session_id: int,
    benchmark_provider: Optional[BenchmarkProvider] = None,
) -> TestResultDto:
    """Score a session using the SQLAlchemy repository and default settings."""
    repository = SqlAlchemyScoringRepository(db, benchmark_provider=benchmark_provider)
    return ScoringOrchestrator(repository).calculate_and_save_result(session_id)
