"""
Session reports - summary of a finished session, built from its event log.

This is the body of the report-generation job the state machine fires when a
session ends naturally.
"""
import logging
from collections import Counter
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from agents.scoring import round_half_up
from jobs import ReportJob, RoadmapJob
from session_store import SessionStore
from state import EvaluationEvent, SessionState

logger = logging.getLogger(__name__)

STRENGTH_THRESHOLD = 7.0
WEAKNESS_THRESHOLD = 5.0
PASSING_SCORE = 6.0
MAX_RECOMMENDATIONS = 8

# Skill profile (mastery is on a 0-100 scale)
WEAK_MASTERY = 50.0
STRONG_MASTERY = 70.0
TREND_MARGIN = 1.0
MAX_MISTAKES = 10


class TopicSummary(BaseModel):
    questions: int
    passed: int  # answers scoring at least PASSING_SCORE
    average: float


class AnswerAnalysis(BaseModel):
    number: int
    question_id: str
    topic: str
    difficulty: str
    follow_up_depth: int
    score: float
    covered: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    feedback: str


class SessionReport(BaseModel):
    session_id: str
    user_id: Optional[str] = None
    domain: str
    status: str
    end_reason: Optional[str] = None
    answers: int
    overall_score: float
    topic_breakdown: Dict[str, TopicSummary] = Field(default_factory=dict)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    difficulty_progression: List[str] = Field(default_factory=list)
    analysis: List[AnswerAnalysis] = Field(default_factory=list)


def _average(scores: List[float]) -> float:
    if not scores:
        return 0.0
    return round_half_up(sum(scores) / len(scores), 1)


def build_topic_breakdown(events: List[EvaluationEvent]) -> Dict[str, TopicSummary]:
    scores_by_topic: Dict[str, List[float]] = {}
    for event in events:
        scores_by_topic.setdefault(event.topic, []).append(event.evaluation.score)

    return {
        topic: TopicSummary(
            questions=len(scores),
            passed=sum(1 for s in scores if s >= PASSING_SCORE),
            average=_average(scores),
        )
        for topic, scores in scores_by_topic.items()
    }


def build_recommendations(weaknesses: List[str], events: List[EvaluationEvent]) -> List[str]:
    recommendations = []
    for topic in weaknesses:
        recommendations.append(f"Review fundamentals of {topic}")
        recommendations.append(f"Practice more problems on {topic}")

    # Points missed in more than one answer
    missed = Counter(point for event in events for point in event.evaluation.missing)
    repeated = [point for point, count in missed.most_common() if count >= 2]
    for point in repeated[:3]:
        recommendations.append(f"Focus on understanding: {point}")

    if not recommendations:
        recommendations.append("Great job! Keep practicing to maintain your skills.")

    unique = list(dict.fromkeys(recommendations))
    return unique[:MAX_RECOMMENDATIONS]


def build_session_report(state: SessionState, events: List[EvaluationEvent]) -> SessionReport:
    """Summarize a session from its state and event log."""
    ordered = sorted(events, key=lambda e: e.sequence)
    breakdown = build_topic_breakdown(ordered)

    strengths = [t for t, s in breakdown.items() if s.average >= STRENGTH_THRESHOLD]
    weaknesses = [t for t, s in breakdown.items() if s.average < WEAKNESS_THRESHOLD]

    progression: List[str] = [state.initial_difficulty.value]
    for event in ordered:
        if event.difficulty.value != progression[-1]:
            progression.append(event.difficulty.value)
    if state.difficulty.value != progression[-1]:
        progression.append(state.difficulty.value)

    return SessionReport(
        session_id=state.session_id,
        user_id=state.user_id,
        domain=state.domain,
        status=state.status.value,
        end_reason=state.end_reason,
        answers=len(ordered),
        overall_score=_average([e.evaluation.score for e in ordered]),
        topic_breakdown=breakdown,
        strengths=strengths,
        weaknesses=weaknesses,
        recommendations=build_recommendations(weaknesses, ordered),
        difficulty_progression=progression,
        analysis=[
            AnswerAnalysis(
                number=i,
                question_id=e.question_id,
                topic=e.topic,
                difficulty=e.difficulty.value,
                follow_up_depth=e.follow_up_depth,
                score=e.evaluation.score,
                covered=e.evaluation.covered,
                missing=e.evaluation.missing,
                feedback=e.evaluation.feedback,
            )
            for i, e in enumerate(ordered, 1)
        ],
    )


def process_report_job(job: ReportJob, store: SessionStore) -> SessionReport:
    """Worker body for a report-generation job."""
    state, _ = store.load(job.session_id)
    report = build_session_report(state, store.get_events(job.session_id))
    logger.info(
        "Built report for session %s: %d answer(s), overall %.1f",
        job.session_id, report.answers, report.overall_score,
    )
    return report


# =============================================================================
# SKILL PROFILE
# =============================================================================

class TopicSkill(BaseModel):
    domain: str
    topic: str
    questions_seen: int = 0
    correct_answers: int = 0  # answers scoring at least PASSING_SCORE
    average_score: float = 0.0
    mastery: float = 0.0
    trend: str = "stable"  # improving | stable | declining
    last_practiced: Optional[str] = None


class MistakePattern(BaseModel):
    kind: str  # "wrong_claim" or "missed_point"
    text: str
    frequency: int
    topics: List[str] = Field(default_factory=list)


class SkillProfile(BaseModel):
    user_id: str
    sessions: int
    answers: int
    skills: List[TopicSkill] = Field(default_factory=list)
    weak_topics: List[str] = Field(default_factory=list)
    strong_topics: List[str] = Field(default_factory=list)
    mistakes: List[MistakePattern] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


def _trend(last_score: float, average: float) -> str:
    if last_score > average + TREND_MARGIN:
        return "improving"
    if last_score < average - TREND_MARGIN:
        return "declining"
    return "stable"


def build_skill_profile(
    user_id: str,
    history: List[Tuple[SessionState, List[EvaluationEvent]]],
) -> SkillProfile:
    """
    Fold a user's scored answers, oldest session first, into per-topic skills.

    Each answer moves the topic's running average; the trend compares the
    latest score with the average before it was counted.
    """
    ordered = sorted(history, key=lambda item: item[0].started_at)

    skills: Dict[Tuple[str, str], TopicSkill] = {}
    totals: Dict[Tuple[str, str], float] = {}
    wrong_claims: Counter = Counter()
    missed_points: Counter = Counter()
    mistake_topics: Dict[Tuple[str, str], List[str]] = {}
    answers: List[EvaluationEvent] = []

    for state, events in ordered:
        for event in sorted(events, key=lambda e: e.sequence):
            answers.append(event)
            key = (state.domain, event.topic)
            skill = skills.setdefault(key, TopicSkill(domain=state.domain, topic=event.topic))
            score = event.evaluation.score

            previous_average = totals.get(key, 0.0) / skill.questions_seen if skill.questions_seen else score
            totals[key] = totals.get(key, 0.0) + score
            skill.questions_seen += 1
            if score >= PASSING_SCORE:
                skill.correct_answers += 1
            average = totals[key] / skill.questions_seen
            skill.average_score = round_half_up(average, 1)
            skill.mastery = round_half_up(min(100.0, average * 10), 1)
            skill.trend = _trend(score, previous_average)
            skill.last_practiced = event.created_at

            for claim in event.evaluation.wrong_claims:
                wrong_claims[claim] += 1
                _note_topic(mistake_topics, ("wrong_claim", claim), event.topic)
            for point in event.evaluation.missing:
                missed_points[point] += 1
                _note_topic(mistake_topics, ("missed_point", point), event.topic)

    mistakes = [
        MistakePattern(kind=kind, text=text, frequency=count, topics=mistake_topics[(kind, text)])
        for kind, counter in (("wrong_claim", wrong_claims), ("missed_point", missed_points))
        for text, count in counter.items()
        if count >= 2
    ]
    mistakes.sort(key=lambda m: (-m.frequency, m.kind != "wrong_claim"))

    ranked = sorted(skills.values(), key=lambda s: s.mastery)
    weak_topics = [s.topic for s in ranked if s.mastery < WEAK_MASTERY]
    strong_topics = [s.topic for s in reversed(ranked) if s.mastery >= STRONG_MASTERY]

    return SkillProfile(
        user_id=user_id,
        sessions=len(ordered),
        answers=len(answers),
        skills=ranked,
        weak_topics=list(dict.fromkeys(weak_topics)),
        strong_topics=list(dict.fromkeys(strong_topics)),
        mistakes=mistakes[:MAX_MISTAKES],
        recommendations=build_recommendations(list(dict.fromkeys(weak_topics)), answers),
    )


def _note_topic(topics: Dict[Tuple[str, str], List[str]], key: Tuple[str, str], topic: str):
    seen = topics.setdefault(key, [])
    if topic not in seen:
        seen.append(topic)


def process_roadmap_job(job: RoadmapJob, store: SessionStore) -> SkillProfile:
    """Worker body for a roadmap-generation job: profile every session the user has played."""
    history = []
    for session_id in store.list_session_ids():
        state, _ = store.load(session_id)
        if state.user_id == job.user_id:
            history.append((state, store.get_events(session_id)))

    profile = build_skill_profile(job.user_id, history)
    logger.info(
        "Built skill profile for user %s: %d session(s), %d weak topic(s)",
        job.user_id, profile.sessions, len(profile.weak_topics),
    )
    return profile
