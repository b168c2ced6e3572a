"""
Result Aggregator

Turns interview records into transcripts, quality statistics, per-expert
summaries and (optionally) an LLM synthesis.

Missing scores are excluded from every mean, never counted as zero: scores
[8, None, 6] average to 7.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..common.schemas import InterviewRecord
from .synthesizer import Synthesizer

logger = logging.getLogger("insights.retriever.aggregator")

TOP_EXPERTS = 10
TOP_THEMES = 10
THEME_WORDS = 3
KEY_TOPIC_WORDS = 5
NO_SYNTHESIS_NOTE = "AI synthesis unavailable, showing raw expert insights"


def mean_score(values: Iterable[Optional[float]]) -> Optional[float]:
    """Mean of the non-None values, or None when there are none."""
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def _round(value: Optional[float], digits: int = 2) -> Optional[float]:
    return None if value is None else round(value, digits)


def group_by_session(records: Iterable[InterviewRecord]) -> "OrderedDict[Optional[str], List[InterviewRecord]]":
    """
    Group records by meeting id, sessions in first-seen order, records within
    a session ascending by created_at. Records without a meeting id share the
    None key.
    """
    groups: "OrderedDict[Optional[str], List[InterviewRecord]]" = OrderedDict()
    for record in records:
        groups.setdefault(record.session_id, []).append(record)
    for session_records in groups.values():
        session_records.sort(key=lambda r: r.created_at or "")
    return groups


@dataclass
class ExpertStats:
    expert_name: str
    interview_count: int
    avg_consensus: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expert_name": self.expert_name,
            "interview_count": self.interview_count,
            "avg_consensus": _round(self.avg_consensus),
        }


@dataclass
class QualityStats:
    """Aggregate quality of a filtered record set"""
    total: int = 0
    unique_experts: int = 0
    unique_sessions: int = 0
    avg_credibility: Optional[float] = None
    avg_consensus: Optional[float] = None
    avg_completion: Optional[float] = None
    top_experts: List[ExpertStats] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_interviews": self.total,
            "unique_experts": self.unique_experts,
            "unique_sessions": self.unique_sessions,
            "average_credibility_score": _round(self.avg_credibility),
            "average_consensus_score": _round(self.avg_consensus),
            "average_completion_score": _round(self.avg_completion),
            "top_experts": [e.to_dict() for e in self.top_experts],
        }


def compute_stats(records: List[InterviewRecord]) -> QualityStats:
    if not records:
        return QualityStats()

    by_expert: "OrderedDict[str, List[InterviewRecord]]" = OrderedDict()
    for record in records:
        if record.expert_name:
            by_expert.setdefault(record.expert_name, []).append(record)

    top = []
    for name, expert_records in by_expert.items():
        avg = mean_score(r.consensus_score for r in expert_records)
        if avg is not None:
            top.append(ExpertStats(name, len(expert_records), avg))
    top.sort(key=lambda e: e.avg_consensus, reverse=True)

    return QualityStats(
        total=len(records),
        unique_experts=len(by_expert),
        unique_sessions=len({r.session_id for r in records if r.session_id}),
        avg_credibility=mean_score(r.credibility_score for r in records),
        avg_consensus=mean_score(r.consensus_score for r in records),
        avg_completion=mean_score(r.completion_score for r in records),
        top_experts=top[:TOP_EXPERTS],
    )


def _assess(value: Optional[float], high: float, mid: float, labels: List[str]) -> str:
    if value is None:
        return labels[3]
    if value >= high:
        return labels[0]
    if value >= mid:
        return labels[1]
    return labels[2]


def interpret(stats: QualityStats) -> Dict[str, str]:
    """Plain-language reading of the aggregate scores."""
    return {
        "quality_assessment": _assess(stats.avg_consensus, 7, 5, [
            "High quality responses with strong consensus",
            "Moderate quality responses",
            "Lower consensus - may need follow-up interviews",
            "No consensus scores available",
        ]),
        "credibility_assessment": _assess(stats.avg_credibility, 7, 5, [
            "Highly credible expert responses",
            "Moderately credible responses",
            "Lower credibility - verify expert qualifications",
            "No credibility scores available",
        ]),
        "completion_assessment": _assess(stats.avg_completion, 0.8, 0.6, [
            "Comprehensive interview coverage",
            "Good interview coverage",
            "Incomplete interviews - consider follow-up sessions",
            "No completion scores available",
        ]),
    }


@dataclass
class InterviewTranscript:
    """All records of one interview session, in conversation order"""
    meeting_id: str
    records: List[InterviewRecord]

    @property
    def expert_name(self) -> Optional[str]:
        return self.records[0].expert_name if self.records else None

    @property
    def stats(self) -> QualityStats:
        return compute_stats(self.records)

    def to_dict(self) -> Dict[str, Any]:
        first = self.records[0] if self.records else None
        stats = self.stats
        return {
            "meeting_id": self.meeting_id,
            "expert_name": first.expert_name if first else None,
            "expert_profile": first.expert_profile if first else None,
            "project_id": first.project_id if first else None,
            "interview_date": first.created_at if first else None,
            "total_questions": len(self.records),
            "questions_and_answers": [
                {
                    "question": r.question_text,
                    "answer": r.answer_summary,
                    "consensus_score": r.consensus_score,
                    "credibility_score": r.credibility_score,
                    "completion_score": r.completion_score,
                }
                for r in self.records
            ],
            "overall_quality": {
                "avg_consensus_score": _round(stats.avg_consensus),
                "avg_credibility_score": _round(stats.avg_credibility),
                "avg_completion_score": _round(stats.avg_completion),
            },
        }


def build_transcript(meeting_id: str, records: List[InterviewRecord]) -> InterviewTranscript:
    session = [r for r in records if r.session_id == meeting_id]
    session.sort(key=lambda r: r.created_at or "")
    return InterviewTranscript(meeting_id=meeting_id, records=session)


def _leading_words(text: str, count: int) -> str:
    return " ".join(text.split()[:count])


def summarize(records: List[InterviewRecord], focus_area: Optional[str] = None) -> Dict[str, Any]:
    """Per-expert insights, recurring question themes and quality metrics."""
    stats = compute_stats(records)
    dates = sorted(r.created_at for r in records if r.created_at)

    experts: "OrderedDict[str, List[InterviewRecord]]" = OrderedDict()
    themes: "OrderedDict[str, List[InterviewRecord]]" = OrderedDict()
    for record in records:
        if record.expert_name:
            experts.setdefault(record.expert_name, []).append(record)
        if record.question_text:
            themes.setdefault(_leading_words(record.question_text, THEME_WORDS), []).append(record)

    expert_insights = []
    for name, expert_records in experts.items():
        topics = dict.fromkeys(
            _leading_words(r.question_text, KEY_TOPIC_WORDS)
            for r in expert_records if r.question_text
        )
        expert_insights.append({
            "expert_name": name,
            "interview_count": len(expert_records),
            "avg_consensus_score": _round(mean_score(r.consensus_score for r in expert_records)),
            "avg_credibility_score": _round(mean_score(r.credibility_score for r in expert_records)),
            "key_topics": list(topics),
        })

    key_themes = sorted(
        (
            {
                "topic": topic,
                "frequency": len(theme_records),
                "avg_consensus": _round(mean_score(r.consensus_score for r in theme_records)),
            }
            for topic, theme_records in themes.items()
        ),
        key=lambda t: t["frequency"],
        reverse=True,
    )[:TOP_THEMES]

    return {
        "overview": {
            "total_interviews": stats.total,
            "unique_experts": stats.unique_experts,
            "date_range": {
                "from": dates[0] if dates else None,
                "to": dates[-1] if dates else None,
            },
            "focus_area": focus_area or "General analysis",
        },
        "expert_insights": expert_insights,
        "key_themes": key_themes,
        "quality_metrics": {
            "avg_consensus_score": _round(stats.avg_consensus),
            "avg_credibility_score": _round(stats.avg_credibility),
            "avg_completion_score": _round(stats.avg_completion),
        },
    }


@dataclass
class SynthesisReport:
    """Synthesis text (when produced) plus the records it was built from"""
    topic: str
    records: List[InterviewRecord]
    stats: QualityStats
    synthesis: Optional[str] = None
    note: Optional[str] = None

    @property
    def has_synthesis(self) -> bool:
        return self.synthesis is not None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "topic": self.topic,
            "interviews_analyzed": self.stats.total,
            "experts_consulted": self.stats.unique_experts,
            "avg_credibility": _round(self.stats.avg_credibility, 1),
            "synthesis": self.synthesis,
            "source_interviews": [r.to_source() for r in self.records],
        }
        if self.note:
            result["note"] = self.note
        return result


class ResultAggregator:
    """
    Owns the optional Synthesizer and the record cap for synthesis.

    Usage:
        aggregator = ResultAggregator(LLMSynthesizer(llm_client))
        report = aggregator.synthesize("vendor consolidation", records)
    """

    def __init__(self, synthesizer: Optional[Synthesizer] = None, max_records: int = 20):
        self._synthesizer = synthesizer
        self.max_records = max_records

    @property
    def has_synthesizer(self) -> bool:
        return self._synthesizer is not None and self._synthesizer.is_available

    def synthesize(self, topic: str, records: List[InterviewRecord]) -> SynthesisReport:
        """
        Never raises on synthesizer failure: the report then carries the
        records and a note instead of synthesis text.
        """
        capped = list(records[: self.max_records])
        stats = compute_stats(capped)

        if not capped:
            return SynthesisReport(
                topic=topic,
                records=[],
                stats=stats,
                note="No expert interviews found on this topic. Try broader search terms or lower the credibility threshold.",
            )

        if self.has_synthesizer:
            try:
                text = self._synthesizer.synthesize(topic, capped, stats)
                return SynthesisReport(topic=topic, records=capped, stats=stats, synthesis=text)
            except Exception as e:
                logger.warning("Interview synthesis failed: %s", e)

        return SynthesisReport(topic=topic, records=capped, stats=stats, note=NO_SYNTHESIS_NOTE)
