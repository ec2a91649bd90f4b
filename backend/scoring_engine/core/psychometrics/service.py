"""
Psychometric analysis service.

Maintains item statistics and competency reliability from historical answers,
drives the item validity lifecycle and produces the health report.

Item lifecycle:

    PROBATION -> ACTIVE | FLAGGED_FOR_REVIEW | RETIRED

Every status change is appended to the item's status history and published
as an analytics event. Manual retirement deactivates the question; manual
activation is refused unless the item meets the ACTIVE criteria.

Usage:
    service = PsychometricAnalysisService(db)
    stats = service.calculate_item_statistics(question_id=42)
    report = service.generate_health_report()
"""
import logging
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scoring_engine.core.analytics import AnalyticsTracker
from scoring_engine.core.config import settings
from scoring_engine.core.exceptions import ItemActivationError, ResourceNotFoundError
from scoring_engine.core.graceful_failure import graceful_failure, graceful_failure_decorator
from scoring_engine.core.precision import is_below, round4
from scoring_engine.core.scoring.normalizer import normalize_answer
from scoring_engine.core.scoring.repository import answer_record_from_model
from scoring_engine.models.models import (
    AssessmentQuestion,
    BehavioralIndicator,
    Competency,
    CompetencyReliability,
    DiscriminationFlag,
    ItemStatistics,
    ItemValidityStatus,
    ReliabilityStatus,
    ResultStatus,
    TestAnswer,
    TestResult,
)
from scoring_engine.schemas.psychometrics import (
    FlaggedItemSummary,
    PsychometricHealthReport,
    StatusChangeRecord,
    truncate_question_text,
)

from ._constants import (
    DIFFICULTY_TOO_EASY,
    DIFFICULTY_TOO_HARD,
    DISCRIMINATION_NEGATIVE,
    MIN_ACTIVE_DISCRIMINATION,
    TOP_FLAGGED_ITEMS_LIMIT,
    UNKNOWN_LABEL,
)
from .item_analysis import (
    calculate_difficulty_index,
    calculate_discrimination_index,
    calculate_distractor_efficiency,
    determine_difficulty_flag,
    determine_discrimination_flag,
    determine_validity_status,
    generate_status_reason,
    is_difficulty_in_range,
)
from .reliability import calculate_competency_alpha

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@graceful_failure_decorator("publish item status event")
def _publish_status_change(
    question_id: int, old_status: Optional[str], new_status: str, reason: str
) -> None:
    AnalyticsTracker.track_item_status_changed(
        question_id=question_id,
        old_status=old_status,
        new_status=new_status,
        reason=reason,
    )


class PsychometricAnalysisService:
    """
    Item and competency quality tracking over historical answers.

    Args:
        db: SQLAlchemy session
        min_responses: Responses required before metrics drive status
            (PSYCHOMETRICS_MIN_RESPONSES by default)
    """

    def __init__(self, db: Session, min_responses: Optional[int] = None):
        self.db = db
        self.min_responses = (
            min_responses if min_responses is not None else settings.PSYCHOMETRICS_MIN_RESPONSES
        )

    # =========================================================================
    # Persistence helpers
    # =========================================================================

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    @contextmanager
    def _rollback_on_error(self) -> Iterator[None]:
        """Discard uncommitted changes of a failed unit of work."""
        try:
            yield
        except Exception:
            self.db.rollback()
            raise

    def _get_question(self, question_id: int) -> AssessmentQuestion:
        question = self.db.get(AssessmentQuestion, question_id)
        if question is None:
            raise ResourceNotFoundError("Question", question_id)
        return question

    def _get_statistics(self, question_id: int) -> ItemStatistics:
        stats = self.db.scalars(
            select(ItemStatistics).where(ItemStatistics.question_id == question_id)
        ).first()
        if stats is None:
            raise ResourceNotFoundError("Item statistics", question_id)
        return stats

    def _get_or_create_statistics(self, question: AssessmentQuestion) -> ItemStatistics:
        stats = self.db.scalars(
            select(ItemStatistics).where(ItemStatistics.question_id == question.id)
        ).first()
        if stats is None:
            stats = ItemStatistics(
                question_id=question.id,
                response_count=0,
                validity_status=ItemValidityStatus.PROBATION,
                status_change_history=[],
            )
            self.db.add(stats)
        return stats

    def _update_status_with_history(
        self, stats: ItemStatistics, new_status: ItemValidityStatus, reason: str
    ) -> bool:
        """Apply ``new_status``; records history only when the status changes."""
        old_status = stats.validity_status
        if old_status == new_status:
            return False

        record = StatusChangeRecord(
            from_status=old_status,
            to_status=new_status,
            timestamp=_utc_now(),
            reason=reason,
        )
        # Reassign so the JSON column is marked dirty
        stats.status_change_history = list(stats.status_change_history or []) + [
            record.model_dump(mode="json")
        ]
        stats.validity_status = new_status

        logger.info(
            f"Item {stats.question_id} status {old_status.value if old_status else None} "
            f"-> {new_status.value}: {reason}",
            extra={"question_id": stats.question_id},
        )
        _publish_status_change(
            stats.question_id, old_status.value if old_status else None, new_status.value, reason
        )
        return True

    # =========================================================================
    # Item-level analysis
    # =========================================================================

    def _item_responses(
        self, question: AssessmentQuestion
    ) -> List[Tuple[TestAnswer, Optional[float]]]:
        """Non-skipped answers to a question with the session's overall percentage."""
        rows = self.db.execute(
            select(TestAnswer, TestResult.overall_percentage)
            .outerjoin(
                TestResult,
                (TestResult.session_id == TestAnswer.session_id)
                & (TestResult.status == ResultStatus.COMPLETED),
            )
            .where(
                TestAnswer.question_id == question.id,
                TestAnswer.is_skipped.is_(False),
                TestAnswer.answered_at.is_not(None),
            )
            .order_by(TestAnswer.id)
        ).all()
        return [(answer, overall) for answer, overall in rows]

    def calculate_difficulty(self, question_id: int) -> Optional[float]:
        """Mean normalized score over all answers to a question."""
        question = self._get_question(question_id)
        scores = [
            normalize_answer(answer_record_from_model(answer), question.question_type)
            for answer, _ in self._item_responses(question)
        ]
        return calculate_difficulty_index(scores)

    def calculate_discrimination(self, question_id: int) -> Optional[float]:
        """Item-total correlation, None below the minimum response count."""
        question = self._get_question(question_id)
        return self._discrimination(question, self._item_responses(question))

    def _discrimination(
        self,
        question: AssessmentQuestion,
        responses: List[Tuple[TestAnswer, Optional[float]]],
    ) -> Optional[float]:
        item_scores: List[float] = []
        total_scores: List[float] = []
        for answer, overall_percentage in responses:
            if overall_percentage is None:
                continue
            item_scores.append(
                normalize_answer(answer_record_from_model(answer), question.question_type)
            )
            total_scores.append(overall_percentage / 100.0)
        return calculate_discrimination_index(item_scores, total_scores, self.min_responses)

    def analyze_distractors(self, question_id: int) -> Dict[str, float]:
        """Share of selections per answer option."""
        question = self._get_question(question_id)
        return calculate_distractor_efficiency(
            answer.selected_option_ids for answer, _ in self._item_responses(question)
        )

    def calculate_item_statistics(self, question_id: int) -> ItemStatistics:
        """
        Recalculate and store the statistics of one question.

        Below the minimum response count the item stays on PROBATION and only
        the response count and difficulty are refreshed.

        Nothing is stored when the calculation fails part way.

        Raises:
            ResourceNotFoundError: If the question does not exist
        """
        with self._rollback_on_error():
            return self._store_item_statistics(question_id)

    def _store_item_statistics(self, question_id: int) -> ItemStatistics:
        question = self._get_question(question_id)
        stats = self._get_or_create_statistics(question)
        responses = self._item_responses(question)
        scores = [
            normalize_answer(answer_record_from_model(answer), question.question_type)
            for answer, _ in responses
        ]

        response_count = len(responses)
        stats.response_count = response_count
        stats.difficulty_index = calculate_difficulty_index(scores)
        stats.last_calculated_at = _utc_now()

        if response_count < self.min_responses:
            logger.info(
                f"Insufficient responses ({response_count}) for question {question_id}, "
                "keeping PROBATION",
                extra={"question_id": question_id},
            )
            self._update_status_with_history(
                stats,
                ItemValidityStatus.PROBATION,
                f"Insufficient responses: {response_count} < {self.min_responses}",
            )
            self._commit()
            self.db.refresh(stats)
            return stats

        if stats.discrimination_index is not None:
            stats.previous_discrimination_index = stats.discrimination_index

        discrimination = self._discrimination(question, responses)
        stats.discrimination_index = discrimination
        stats.distractor_efficiency = calculate_distractor_efficiency(
            answer.selected_option_ids for answer, _ in responses
        )
        stats.difficulty_flag = determine_difficulty_flag(stats.difficulty_index)
        stats.discrimination_flag = determine_discrimination_flag(discrimination)

        new_status = determine_validity_status(
            response_count, stats.difficulty_index, discrimination, self.min_responses
        )
        self._update_status_with_history(
            stats, new_status, generate_status_reason(stats.difficulty_index, discrimination)
        )
        if new_status == ItemValidityStatus.RETIRED:
            question.is_active = False

        logger.info(
            f"Item statistics for question {question_id}: p={stats.difficulty_index}, "
            f"rpb={discrimination}, status={new_status.value}",
            extra={"question_id": question_id},
        )
        self._commit()
        self.db.refresh(stats)
        return stats

    def recalculate_all_items(self) -> List[ItemStatistics]:
        """
        Recalculate every question with at least the minimum response count.

        A failure for one item is logged and the batch continues.
        """
        question_ids = self.db.scalars(
            select(TestAnswer.question_id)
            .where(TestAnswer.is_skipped.is_(False), TestAnswer.answered_at.is_not(None))
            .group_by(TestAnswer.question_id)
            .having(func.count(TestAnswer.id) >= self.min_responses)
            .order_by(TestAnswer.question_id)
        ).all()

        updated: List[ItemStatistics] = []
        for question_id in question_ids:
            with graceful_failure(
                "recalculate item statistics",
                logger,
                log_level=logging.ERROR,
                exc_info=True,
                context={"question_id": question_id},
            ):
                updated.append(self.calculate_item_statistics(question_id))

        logger.info(f"Recalculated statistics for {len(updated)}/{len(question_ids)} items")
        return updated

    def update_item_validity_status(self, question_id: int) -> ItemStatistics:
        """Re-derive the validity status from stored metrics."""
        stats = self._get_statistics(question_id)
        new_status = determine_validity_status(
            stats.response_count,
            stats.difficulty_index,
            stats.discrimination_index,
            self.min_responses,
        )
        self._update_status_with_history(
            stats,
            new_status,
            generate_status_reason(stats.difficulty_index, stats.discrimination_index),
        )
        self._commit()
        return stats

    def get_items_requiring_review(self) -> List[ItemStatistics]:
        return list(
            self.db.scalars(
                select(ItemStatistics)
                .where(ItemStatistics.validity_status == ItemValidityStatus.FLAGGED_FOR_REVIEW)
                .order_by(ItemStatistics.question_id)
            ).all()
        )

    def retire_item(self, question_id: int, reason: str) -> ItemStatistics:
        """Force an item to RETIRED and deactivate its question."""
        if not reason or not reason.strip():
            raise ValueError("A reason is required to retire an item")

        stats = self._get_statistics(question_id)
        question = self._get_question(question_id)

        self._update_status_with_history(
            stats, ItemValidityStatus.RETIRED, f"Manual retirement: {reason}"
        )
        question.is_active = False
        self._commit()

        logger.info(
            f"Item {question_id} retired. Reason: {reason}", extra={"question_id": question_id}
        )
        return stats

    def activate_item(self, question_id: int) -> ItemStatistics:
        """
        Move an item to ACTIVE and activate its question.

        Raises:
            ItemActivationError: If responses or metrics do not meet the
                ACTIVE criteria
        """
        stats = self._get_statistics(question_id)

        if stats.response_count < self.min_responses:
            raise ItemActivationError(
                f"Cannot activate item with insufficient responses: {stats.response_count}"
            )
        discrimination = stats.discrimination_index
        if discrimination is not None and is_below(discrimination, DISCRIMINATION_NEGATIVE):
            raise ItemActivationError("Cannot activate item with negative discrimination index")
        if discrimination is None or is_below(discrimination, MIN_ACTIVE_DISCRIMINATION):
            raise ItemActivationError(
                f"Cannot activate item with discrimination index below {MIN_ACTIVE_DISCRIMINATION}"
            )
        if not is_difficulty_in_range(stats.difficulty_index):
            raise ItemActivationError(
                "Cannot activate item with difficulty index outside "
                f"{DIFFICULTY_TOO_HARD}-{DIFFICULTY_TOO_EASY}: {stats.difficulty_index}"
            )

        question = self._get_question(question_id)
        self._update_status_with_history(stats, ItemValidityStatus.ACTIVE, "Manual activation")
        question.is_active = True
        self._commit()

        logger.info(f"Item {question_id} activated", extra={"question_id": question_id})
        return stats

    # =========================================================================
    # Competency-level analysis
    # =========================================================================

    def _competency_session_scores(
        self, competency_id: int
    ) -> Tuple[List[int], Dict[int, Dict[int, float]]]:
        questions = self.db.scalars(
            select(AssessmentQuestion)
            .join(BehavioralIndicator, AssessmentQuestion.indicator_id == BehavioralIndicator.id)
            .where(BehavioralIndicator.competency_id == competency_id)
            .order_by(AssessmentQuestion.id)
        ).all()
        question_types = {q.id: q.question_type for q in questions}
        if not question_types:
            return [], {}

        answers = self.db.scalars(
            select(TestAnswer)
            .join(TestResult, TestResult.session_id == TestAnswer.session_id)
            .where(
                TestResult.status == ResultStatus.COMPLETED,
                TestAnswer.question_id.in_(question_types.keys()),
                TestAnswer.is_skipped.is_(False),
                TestAnswer.answered_at.is_not(None),
            )
        ).all()

        session_scores: Dict[int, Dict[int, float]] = defaultdict(dict)
        for answer in answers:
            session_scores[answer.session_id][answer.question_id] = normalize_answer(
                answer_record_from_model(answer), question_types[answer.question_id]
            )
        return list(question_types.keys()), dict(session_scores)

    def calculate_competency_reliability(self, competency_id: int) -> CompetencyReliability:
        """
        Recalculate and store Cronbach's alpha for a competency.

        Raises:
            ResourceNotFoundError: If the competency does not exist
        """
        competency = self.db.get(Competency, competency_id)
        if competency is None:
            raise ResourceNotFoundError("Competency", competency_id)

        item_ids, session_scores = self._competency_session_scores(competency_id)
        analysis = calculate_competency_alpha(
            session_scores, item_ids, min_sample_size=self.min_responses
        )

        reliability = self.db.scalars(
            select(CompetencyReliability).where(
                CompetencyReliability.competency_id == competency_id
            )
        ).first()
        if reliability is None:
            reliability = CompetencyReliability(competency_id=competency_id)
            self.db.add(reliability)

        reliability.cronbach_alpha = analysis["cronbach_alpha"]
        reliability.alpha_if_deleted = analysis["alpha_if_deleted"]
        reliability.sample_size = analysis["sample_size"]
        reliability.item_count = analysis["item_count"]
        reliability.reliability_status = analysis["reliability_status"]
        reliability.last_calculated_at = _utc_now()

        logger.info(
            f"Reliability for competency {competency.name}: alpha={reliability.cronbach_alpha}, "
            f"n={reliability.sample_size}, k={reliability.item_count}, "
            f"status={reliability.reliability_status.value}",
            extra={"competency_id": competency_id},
        )
        self._commit()
        self.db.refresh(reliability)
        return reliability

    def recalculate_all_competencies(self) -> List[CompetencyReliability]:
        competency_ids = self.db.scalars(
            select(Competency.id).where(Competency.is_active.is_(True)).order_by(Competency.id)
        ).all()

        updated: List[CompetencyReliability] = []
        for competency_id in competency_ids:
            with graceful_failure(
                "recalculate competency reliability",
                logger,
                log_level=logging.ERROR,
                exc_info=True,
                context={"competency_id": competency_id},
            ), self._rollback_on_error():
                updated.append(self.calculate_competency_reliability(competency_id))
        return updated

    # =========================================================================
    # Health reporting
    # =========================================================================

    def _to_flagged_summary(self, stats: ItemStatistics) -> FlaggedItemSummary:
        question = stats.question
        indicator = question.indicator if question is not None else None
        competency = indicator.competency if indicator is not None else None
        return FlaggedItemSummary(
            question_id=stats.question_id,
            question_text=truncate_question_text(question.question_text if question else None),
            competency_name=competency.name if competency else UNKNOWN_LABEL,
            indicator_title=indicator.title if indicator else UNKNOWN_LABEL,
            difficulty_index=stats.difficulty_index,
            discrimination_index=stats.discrimination_index,
            response_count=stats.response_count,
            validity_status=stats.validity_status,
            difficulty_flag=stats.difficulty_flag,
            discrimination_flag=stats.discrimination_flag,
            last_calculated_at=stats.last_calculated_at,
        )

    def _top_flagged_items(self, limit: int = TOP_FLAGGED_ITEMS_LIMIT) -> List[FlaggedItemSummary]:
        candidates = self.db.scalars(
            select(ItemStatistics)
            .where(
                or_(
                    ItemStatistics.validity_status == ItemValidityStatus.FLAGGED_FOR_REVIEW,
                    ItemStatistics.discrimination_flag.in_(
                        [DiscriminationFlag.CRITICAL, DiscriminationFlag.NEGATIVE]
                    ),
                )
            )
            .order_by(ItemStatistics.question_id)
        ).all()

        summaries = [self._to_flagged_summary(stats) for stats in candidates]
        # Stable sort keeps question order within a severity level
        summaries.sort(key=lambda s: s.severity_level, reverse=True)
        return summaries[:limit]

    def generate_health_report(self) -> PsychometricHealthReport:
        """Aggregate item and competency quality across the bank."""
        item_counts = dict(
            self.db.execute(
                select(ItemStatistics.validity_status, func.count(ItemStatistics.id)).group_by(
                    ItemStatistics.validity_status
                )
            ).all()
        )
        reliability_counts = dict(
            self.db.execute(
                select(
                    CompetencyReliability.reliability_status,
                    func.count(CompetencyReliability.id),
                ).group_by(CompetencyReliability.reliability_status)
            ).all()
        )
        average_alpha = self.db.scalar(
            select(func.avg(CompetencyReliability.cronbach_alpha)).where(
                CompetencyReliability.cronbach_alpha.is_not(None)
            )
        )
        average_discrimination = self.db.scalar(
            select(func.avg(ItemStatistics.discrimination_index)).where(
                ItemStatistics.discrimination_index.is_not(None)
            )
        )

        return PsychometricHealthReport(
            total_items=sum(item_counts.values()),
            active_items=item_counts.get(ItemValidityStatus.ACTIVE, 0),
            probation_items=item_counts.get(ItemValidityStatus.PROBATION, 0),
            flagged_items=item_counts.get(ItemValidityStatus.FLAGGED_FOR_REVIEW, 0),
            retired_items=item_counts.get(ItemValidityStatus.RETIRED, 0),
            total_competencies=sum(reliability_counts.values()),
            reliable_competencies=reliability_counts.get(ReliabilityStatus.RELIABLE, 0),
            acceptable_competencies=reliability_counts.get(ReliabilityStatus.ACCEPTABLE, 0),
            unreliable_competencies=reliability_counts.get(ReliabilityStatus.UNRELIABLE, 0),
            insufficient_data_competencies=reliability_counts.get(
                ReliabilityStatus.INSUFFICIENT_DATA, 0
            ),
            average_reliability=round4(average_alpha) if average_alpha is not None else None,
            average_discrimination=(
                round4(average_discrimination) if average_discrimination is not None else None
            ),
            top_flagged_items=self._top_flagged_items(),
            generated_at=_utc_now(),
        )
