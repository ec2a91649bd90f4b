"""
Pytest configuration and shared fixtures for testing.
"""
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from scoring_engine.core.exceptions import DuplicateResultError
from scoring_engine.core.scoring._types import (
    AnswerRecord,
    ScoringLookups,
    SessionInfo,
)
from scoring_engine.models import Base
from scoring_engine.models.models import (
    AssessmentGoal,
    AssessmentQuestion,
    AssessmentTemplate,
    BehavioralIndicator,
    Competency,
    ItemStatistics,
    ItemValidityStatus,
    QuestionType,
    ResultStatus,
    SessionStatus,
    TestAnswer,
    TestResult,
    TestSession,
)
from scoring_engine.schemas.scoring import TestResultDto

# Use SQLite for tests; path is relative to this file so the .db lands
# inside tests/ regardless of the working directory.
_TEST_DB = Path(__file__).parent / "test.db"
SQLALCHEMY_DATABASE_URL = f"sqlite:///{_TEST_DB}"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ANSWERED_AT = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


class ScoringDataBuilder:
    """
    Helper to create competency metadata, sessions, answers and results.

    Every method commits and returns the refreshed row.
    """

    def __init__(self, db):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def competency(
        self,
        name: str = "Communication",
        onet_code: Optional[str] = None,
        esco_uri: Optional[str] = None,
        big_five_category: Optional[str] = None,
    ) -> Competency:
        return self._save(
            Competency(
                name=name,
                onet_code=onet_code,
                esco_uri=esco_uri,
                big_five_category=big_five_category,
            )
        )

    def indicator(
        self,
        competency: Optional[Competency],
        title: str = "Listens actively",
        weight: float = 1.0,
    ) -> BehavioralIndicator:
        return self._save(
            BehavioralIndicator(
                competency_id=competency.id if competency is not None else None,
                title=title,
                weight=weight,
            )
        )

    def question(
        self,
        indicator: Optional[BehavioralIndicator],
        question_type: QuestionType = QuestionType.LIKERT,
        text: str = "How often do you summarize what others said?",
    ) -> AssessmentQuestion:
        return self._save(
            AssessmentQuestion(
                indicator_id=indicator.id if indicator is not None else None,
                question_type=question_type,
                question_text=text,
                answer_options=None,
            )
        )

    def template(
        self,
        goal: Optional[AssessmentGoal] = AssessmentGoal.OVERVIEW,
        passing_score: float = 70.0,
        blueprint: Optional[Dict[str, Any]] = None,
    ) -> AssessmentTemplate:
        return self._save(
            AssessmentTemplate(
                name=f"Template {goal.value if goal else 'legacy'}",
                goal=goal,
                passing_score=passing_score,
                blueprint=blueprint,
            )
        )

    def session(self, template: AssessmentTemplate) -> TestSession:
        return self._save(
            TestSession(template_id=template.id, status=SessionStatus.COMPLETED)
        )

    def answer(
        self,
        session: TestSession,
        question: AssessmentQuestion,
        likert_value: Optional[int] = None,
        score: Optional[float] = None,
        max_score: Optional[float] = None,
        skipped: bool = False,
        answered: bool = True,
        time_spent_seconds: Optional[int] = 30,
        selected_option_ids: Optional[List[str]] = None,
    ) -> TestAnswer:
        return self._save(
            TestAnswer(
                session_id=session.id,
                question_id=question.id,
                likert_value=likert_value,
                score=score,
                max_score=max_score,
                selected_option_ids=selected_option_ids,
                is_skipped=skipped,
                answered_at=ANSWERED_AT if answered else None,
                time_spent_seconds=time_spent_seconds,
            )
        )

    def result(
        self,
        session: TestSession,
        overall_percentage: Optional[float] = 50.0,
        status: ResultStatus = ResultStatus.COMPLETED,
        competency_scores: Optional[List[Dict[str, Any]]] = None,
    ) -> TestResult:
        return self._save(
            TestResult(
                session_id=session.id,
                template_id=session.template_id,
                status=status,
                overall_percentage=overall_percentage,
                overall_score=(
                    overall_percentage / 100.0 if overall_percentage is not None else None
                ),
                competency_scores=competency_scores,
            )
        )

    def item_statistics(
        self,
        question: AssessmentQuestion,
        response_count: int = 100,
        difficulty_index: Optional[float] = 0.65,
        discrimination_index: Optional[float] = 0.35,
        validity_status: ItemValidityStatus = ItemValidityStatus.PROBATION,
        **kwargs: Any,
    ) -> ItemStatistics:
        return self._save(
            ItemStatistics(
                question_id=question.id,
                response_count=response_count,
                difficulty_index=difficulty_index,
                discrimination_index=discrimination_index,
                validity_status=validity_status,
                status_change_history=[],
                **kwargs,
            )
        )


@pytest.fixture
def builder(db_session):
    """Builder bound to the per-test database session."""
    return ScoringDataBuilder(db_session)


class FakeScoringRepository:
    """
    In-memory ``ScoringRepository`` that records every call.

    Results are kept per session; saving a second result for the same
    session raises DuplicateResultError like the unique constraint does.
    """

    def __init__(
        self,
        sessions: Iterable[SessionInfo] = (),
        answers: Optional[Dict[int, List[AnswerRecord]]] = None,
        lookups: Optional[ScoringLookups] = None,
    ):
        self.sessions = {s.session_id: s for s in sessions}
        self.answers = answers or {}
        self.lookups = lookups or ScoringLookups.build()
        self.results: Dict[int, TestResultDto] = {}
        self.alphas: Dict[int, Optional[float]] = {}
        self.samples: Dict[int, List[float]] = {}
        self.completed_count = 0
        self.below_count = 0
        self.calls: List[str] = []
        self._next_id = 1

    def get_session(self, session_id: int) -> Optional[SessionInfo]:
        self.calls.append("get_session")
        return self.sessions.get(session_id)

    def find_result(self, session_id: int) -> Optional[TestResultDto]:
        self.calls.append("find_result")
        return self.results.get(session_id)

    def delete_pending_result(self, session_id: int) -> None:
        self.calls.append("delete_pending_result")
        existing = self.results.get(session_id)
        if existing is not None and existing.status == ResultStatus.PENDING:
            del self.results[session_id]

    def get_answers(self, session_id: int) -> List[AnswerRecord]:
        self.calls.append("get_answers")
        return list(self.answers.get(session_id, []))

    def load_lookups(
        self, answers: Sequence[AnswerRecord], session: SessionInfo
    ) -> ScoringLookups:
        self.calls.append("load_lookups")
        return self.lookups

    def save_result(self, result: TestResultDto) -> TestResultDto:
        self.calls.append("save_result")
        if result.session_id in self.results:
            raise DuplicateResultError(result.session_id)
        saved = result.model_copy(update={"id": self._next_id})
        self._next_id += 1
        self.results[result.session_id] = saved
        return saved

    def count_completed_results(self, template_id: Optional[int]) -> int:
        return self.completed_count

    def count_results_below(self, template_id: Optional[int], percentage: float) -> int:
        return self.below_count

    def load_reliability_alphas(self, competency_ids: Iterable[int]) -> Dict[int, Optional[float]]:
        return {cid: self.alphas.get(cid) for cid in competency_ids}

    def competency_score_samples(
        self, template_id: Optional[int], competency_ids: Iterable[int]
    ) -> Dict[int, List[float]]:
        return {cid: list(self.samples.get(cid, [])) for cid in competency_ids}


@pytest.fixture
def answered_at():
    return ANSWERED_AT
