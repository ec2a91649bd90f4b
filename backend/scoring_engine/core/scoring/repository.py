"""
Persistence boundary for the scoring orchestrator.

``ScoringRepository`` lists everything the orchestrator reads or writes.
``SqlAlchemyScoringRepository`` implements it on top of the ORM models; tests
may inject any other implementation.
"""
import logging
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from scoring_engine.core.exceptions import DuplicateResultError, ResourceNotFoundError
from scoring_engine.models.models import (
    AssessmentQuestion,
    BehavioralIndicator,
    Competency,
    CompetencyReliability,
    ResultStatus,
    TestAnswer,
    TestResult,
    TestSession,
)
from scoring_engine.schemas.scoring import TestResultDto

from ._types import (
    AnswerRecord,
    CompetencyInfo,
    IndicatorInfo,
    QuestionInfo,
    ScoringLookups,
    SessionInfo,
)

logger = logging.getLogger(__name__)

# Most recent completed results sampled for per-competency score spread
SCORE_SAMPLE_LIMIT = 1000

# O*NET SOC code -> {competency name: importance 1-5}
BenchmarkProvider = Callable[[str], Mapping[str, float]]


class ScoringRepository(Protocol):
    """Everything the scoring orchestrator needs from storage."""

    def get_session(self, session_id: int) -> Optional[SessionInfo]:
        ...

    def find_result(self, session_id: int) -> Optional[TestResultDto]:
        ...

    def delete_pending_result(self, session_id: int) -> None:
        ...

    def get_answers(self, session_id: int) -> List[AnswerRecord]:
        ...

    def load_lookups(
        self, answers: Sequence[AnswerRecord], session: SessionInfo
    ) -> ScoringLookups:
        ...

    def save_result(self, result: TestResultDto) -> TestResultDto:
        ...

    def count_completed_results(self, template_id: Optional[int]) -> int:
        ...

    def count_results_below(self, template_id: Optional[int], percentage: float) -> int:
        ...

    def load_reliability_alphas(
        self, competency_ids: Iterable[int]
    ) -> Dict[int, Optional[float]]:
        ...

    def competency_score_samples(
        self, template_id: Optional[int], competency_ids: Iterable[int]
    ) -> Dict[int, List[float]]:
        ...


def answer_record_from_model(answer: TestAnswer) -> AnswerRecord:
    return AnswerRecord(
        question_id=answer.question_id,
        likert_value=answer.likert_value,
        score=answer.score,
        max_score=answer.max_score,
        skipped=bool(answer.is_skipped),
        answered_at=answer.answered_at,
        time_spent_seconds=answer.time_spent_seconds,
        answer_id=answer.id,
    )


class SqlAlchemyScoringRepository:
    """
    ``ScoringRepository`` backed by a SQLAlchemy session.

    Deleting a PENDING result only flushes; the deletion commits together with
    the replacement result in ``save_result``.
    """

    def __init__(self, db: Session, benchmark_provider: Optional[BenchmarkProvider] = None):
        self.db = db
        self.benchmark_provider = benchmark_provider

    # -------------------------------------------------------------------------
    # Sessions and answers
    # -------------------------------------------------------------------------

    def get_session(self, session_id: int) -> Optional[SessionInfo]:
        session = self.db.get(TestSession, session_id)
        if session is None:
            return None

        template = session.template
        if template is None:
            raise ResourceNotFoundError("Template", session.template_id)

        return SessionInfo(
            session_id=session.id,
            template_id=template.id,
            goal=template.goal,
            passing_score=template.passing_score,
            blueprint=dict(template.blueprint or {}),
        )

    def get_answers(self, session_id: int) -> List[AnswerRecord]:
        answers = self.db.scalars(
            select(TestAnswer)
            .where(TestAnswer.session_id == session_id)
            .order_by(TestAnswer.id)
        ).all()
        return [answer_record_from_model(a) for a in answers]

    def load_lookups(
        self, answers: Sequence[AnswerRecord], session: SessionInfo
    ) -> ScoringLookups:
        """Batch-load question, indicator and competency metadata for one run."""
        question_ids = {a.question_id for a in answers}
        questions = (
            self.db.scalars(
                select(AssessmentQuestion).where(AssessmentQuestion.id.in_(question_ids))
            ).all()
            if question_ids
            else []
        )

        indicator_ids = {q.indicator_id for q in questions if q.indicator_id is not None}
        indicators = (
            self.db.scalars(
                select(BehavioralIndicator).where(BehavioralIndicator.id.in_(indicator_ids))
            ).all()
            if indicator_ids
            else []
        )

        competency_ids = {i.competency_id for i in indicators if i.competency_id is not None}
        competencies = (
            self.db.scalars(select(Competency).where(Competency.id.in_(competency_ids))).all()
            if competency_ids
            else []
        )

        benchmarks: Mapping[str, float] = {}
        onet_soc_code = (session.blueprint or {}).get("onetSocCode")
        if self.benchmark_provider is not None and onet_soc_code:
            benchmarks = self.benchmark_provider(onet_soc_code)

        return ScoringLookups.build(
            questions=(
                QuestionInfo(q.id, q.question_type, q.indicator_id) for q in questions
            ),
            indicators=(
                IndicatorInfo(i.id, i.competency_id, i.title, i.weight) for i in indicators
            ),
            competencies=(
                CompetencyInfo(
                    c.id, c.name, c.onet_code, c.esco_uri, c.big_five_category
                )
                for c in competencies
            ),
            onet_benchmarks=benchmarks,
        )

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    def _result_row(self, session_id: int) -> Optional[TestResult]:
        return self.db.scalars(
            select(TestResult).where(TestResult.session_id == session_id)
        ).first()

    def find_result(self, session_id: int) -> Optional[TestResultDto]:
        row = self._result_row(session_id)
        return TestResultDto.model_validate(row) if row is not None else None

    def delete_pending_result(self, session_id: int) -> None:
        row = self._result_row(session_id)
        if row is None or row.status != ResultStatus.PENDING:
            return
        logger.info(
            f"Deleting PENDING result {row.id} for session {session_id} before rescoring",
            extra={"session_id": session_id},
        )
        self.db.delete(row)
        self.db.flush()

    def save_result(self, result: TestResultDto) -> TestResultDto:
        competency_scores = (
            [score.model_dump(mode="json") for score in result.competency_scores]
            if result.competency_scores is not None
            else None
        )
        row = TestResult(
            session_id=result.session_id,
            template_id=result.template_id,
            goal=result.goal,
            status=result.status,
            overall_score=result.overall_score,
            overall_percentage=result.overall_percentage,
            percentile=result.percentile,
            passed=result.passed,
            competency_scores=competency_scores,
            big_five_profile=result.big_five_profile,
            extended_metrics=result.extended_metrics,
            questions_answered=result.questions_answered,
            questions_skipped=result.questions_skipped,
            total_time_seconds=result.total_time_seconds,
        )
        if result.completed_at is not None:
            row.completed_at = result.completed_at

        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateResultError(result.session_id, original_error=e) from e
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(row)
        return TestResultDto.model_validate(row)

    # -------------------------------------------------------------------------
    # Historical data
    # -------------------------------------------------------------------------

    def _completed_for_template(self, template_id: Optional[int]):
        stmt = select(func.count(TestResult.id)).where(
            TestResult.status == ResultStatus.COMPLETED
        )
        if template_id is not None:
            stmt = stmt.where(TestResult.template_id == template_id)
        return stmt

    def count_completed_results(self, template_id: Optional[int]) -> int:
        return int(self.db.scalar(self._completed_for_template(template_id)) or 0)

    def count_results_below(self, template_id: Optional[int], percentage: float) -> int:
        stmt = self._completed_for_template(template_id).where(
            TestResult.overall_percentage < percentage
        )
        return int(self.db.scalar(stmt) or 0)

    def load_reliability_alphas(
        self, competency_ids: Iterable[int]
    ) -> Dict[int, Optional[float]]:
        ids = set(competency_ids)
        if not ids:
            return {}
        rows = self.db.scalars(
            select(CompetencyReliability).where(CompetencyReliability.competency_id.in_(ids))
        ).all()
        return {row.competency_id: row.cronbach_alpha for row in rows}

    def competency_score_samples(
        self, template_id: Optional[int], competency_ids: Iterable[int]
    ) -> Dict[int, List[float]]:
        """Past competency percentages from recent completed results."""
        ids = set(competency_ids)
        samples: Dict[int, List[float]] = {cid: [] for cid in ids}
        if not ids:
            return samples

        stmt = select(TestResult.competency_scores).where(
            TestResult.status == ResultStatus.COMPLETED
        )
        if template_id is not None:
            stmt = stmt.where(TestResult.template_id == template_id)
        stmt = stmt.order_by(TestResult.id.desc()).limit(SCORE_SAMPLE_LIMIT)

        for competency_scores in self.db.scalars(stmt):
            for entry in competency_scores or []:
                cid = entry.get("competency_id")
                percentage = entry.get("percentage")
                if cid in samples and percentage is not None:
                    samples[cid].append(float(percentage))
        return samples
