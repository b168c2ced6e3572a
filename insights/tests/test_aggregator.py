"""Tests for transcript assembly, quality statistics and synthesis reports."""

import logging
from typing import List

import pytest

from insights.retriever.aggregator import (
    NO_SYNTHESIS_NOTE,
    QualityStats,
    ResultAggregator,
    build_transcript,
    compute_stats,
    group_by_session,
    interpret,
    mean_score,
    summarize,
)
from insights.retriever.synthesizer import Synthesizer


class RecordingSynthesizer(Synthesizer):
    def __init__(self, text: str = "## Key Findings\n- consolidation", error: Exception = None):
        self.text = text
        self.error = error
        self.seen: List = []

    @property
    def is_available(self) -> bool:
        return True

    def synthesize(self, topic, records, stats):
        self.seen.append((topic, list(records), stats))
        if self.error:
            raise self.error
        return self.text


class TestMeans:
    def test_missing_scores_are_excluded(self):
        assert mean_score([8, None, 6]) == 7

    def test_all_missing_is_none(self):
        assert mean_score([None, None]) is None
        assert mean_score([]) is None

    def test_zero_is_a_real_score(self):
        assert mean_score([0, 10]) == 5

    def test_record_means_skip_nulls(self, make_record):
        records = [
            make_record(credibility_score=9, consensus_score=3),
            make_record(credibility_score=7, consensus_score=None),
            make_record(credibility_score=None, consensus_score=None),
        ]
        stats = compute_stats(records)
        assert stats.avg_credibility == 8
        assert stats.avg_consensus == 3


class TestComputeStats:
    def test_top_experts_by_consensus(self, make_record):
        records = [
            make_record(expert_name="A", consensus_score=9, credibility_score=8),
            make_record(expert_name="A", consensus_score=7),
            make_record(expert_name="A", consensus_score=None),
            make_record(expert_name="B", consensus_score=3, meeting_id="m-2"),
            make_record(expert_name="B", consensus_score=None, meeting_id="m-2"),
            make_record(expert_name="C", consensus_score=None, meeting_id="m-3"),
        ]

        stats = compute_stats(records)

        assert stats.total == 6
        assert stats.unique_experts == 3
        assert stats.unique_sessions == 3
        assert [(e.expert_name, e.avg_consensus) for e in stats.top_experts] == [("A", 8), ("B", 3)]
        assert stats.top_experts[0].interview_count == 3
        assert stats.avg_credibility == 8
        assert stats.avg_completion is None

    def test_empty(self):
        stats = compute_stats([])
        assert stats.total == 0
        assert stats.to_dict()["average_consensus_score"] is None

    def test_top_experts_capped_at_ten(self, make_record):
        records = [make_record(expert_name=f"E{i}", consensus_score=i % 10) for i in range(14)]
        assert len(compute_stats(records).top_experts) == 10


class TestGrouping:
    def test_sessions_in_first_seen_order_and_sorted_within(self, make_record):
        late = make_record(meeting_id="m-2", created_at="2024-02-02T00:00:00Z")
        early = make_record(meeting_id="m-2", created_at="2024-02-01T00:00:00Z")
        other = make_record(meeting_id="m-1")

        groups = group_by_session([late, other, early])

        assert list(groups) == ["m-2", "m-1"]
        assert groups["m-2"] == [early, late]

    def test_transcript_filters_and_orders(self, make_record):
        second = make_record(meeting_id="m-5", created_at="2024-03-02T00:00:00Z",
                             consensus_score=6, credibility_score=None)
        first = make_record(meeting_id="m-5", created_at="2024-03-01T00:00:00Z",
                            consensus_score=8, credibility_score=9, project_id=4)
        foreign = make_record(meeting_id="m-6")

        transcript = build_transcript("m-5", [second, foreign, first])
        data = transcript.to_dict()

        assert transcript.records == [first, second]
        assert data["total_questions"] == 2
        assert data["interview_date"] == "2024-03-01T00:00:00Z"
        assert data["project_id"] == 4
        assert data["overall_quality"]["avg_consensus_score"] == 7
        assert data["overall_quality"]["avg_credibility_score"] == 9

    def test_empty_transcript(self):
        data = build_transcript("m-404", []).to_dict()
        assert data["total_questions"] == 0
        assert data["expert_name"] is None


class TestInterpret:
    @pytest.mark.parametrize("consensus,expected", [
        (8.0, "High quality responses with strong consensus"),
        (7.0, "High quality responses with strong consensus"),
        (5.5, "Moderate quality responses"),
        (2.0, "Lower consensus - may need follow-up interviews"),
        (None, "No consensus scores available"),
    ])
    def test_quality_thresholds(self, consensus, expected):
        assert interpret(QualityStats(avg_consensus=consensus))["quality_assessment"] == expected

    def test_completion_thresholds(self):
        assert interpret(QualityStats(avg_completion=0.85))["completion_assessment"] == "Comprehensive interview coverage"
        assert interpret(QualityStats(avg_completion=0.65))["completion_assessment"] == "Good interview coverage"
        assert interpret(QualityStats(avg_credibility=4))["credibility_assessment"].startswith("Lower credibility")


class TestSummarize:
    def test_summary_sections(self, make_record):
        records = [
            make_record(expert_name="A", question_text="How do you price enterprise renewals today?",
                        consensus_score=8, created_at="2024-01-05T00:00:00Z"),
            make_record(expert_name="A", question_text="How do you price new logos?",
                        consensus_score=6, created_at="2024-03-05T00:00:00Z"),
            make_record(expert_name="B", question_text="What drives churn?",
                        created_at="2024-02-05T00:00:00Z"),
        ]

        summary = summarize(records, focus_area="pricing")

        assert summary["overview"]["total_interviews"] == 3
        assert summary["overview"]["date_range"] == {
            "from": "2024-01-05T00:00:00Z",
            "to": "2024-03-05T00:00:00Z",
        }
        assert summary["overview"]["focus_area"] == "pricing"
        expert_a = summary["expert_insights"][0]
        assert expert_a["expert_name"] == "A"
        assert expert_a["avg_consensus_score"] == 7
        assert expert_a["key_topics"] == ["How do you price enterprise", "How do you price new"]
        assert summary["key_themes"][0] == {"topic": "How do you", "frequency": 2, "avg_consensus": 7}

    def test_default_focus_area(self, make_record):
        assert summarize([make_record()])["overview"]["focus_area"] == "General analysis"


class TestResultAggregator:
    def test_synthesis_success(self, make_record):
        synthesizer = RecordingSynthesizer()
        report = ResultAggregator(synthesizer).synthesize("vendor consolidation", [make_record(credibility_score=8)])

        assert report.has_synthesis
        data = report.to_dict()
        assert data["synthesis"].startswith("## Key Findings")
        assert data["avg_credibility"] == 8.0
        assert "note" not in data

    def test_synthesizer_failure_keeps_records(self, make_record, caplog):
        aggregator = ResultAggregator(RecordingSynthesizer(error=RuntimeError("rate limited")))
        records = [make_record(), make_record()]

        with caplog.at_level(logging.WARNING, logger="insights.retriever.aggregator"):
            report = aggregator.synthesize("vendor consolidation", records)

        assert not report.has_synthesis
        assert report.note == NO_SYNTHESIS_NOTE
        assert len(report.to_dict()["source_interviews"]) == 2
        assert "Interview synthesis failed" in caplog.text

    def test_no_synthesizer(self, make_record):
        report = ResultAggregator().synthesize("churn", [make_record()])
        assert report.synthesis is None
        assert report.note == NO_SYNTHESIS_NOTE

    def test_no_records(self):
        synthesizer = RecordingSynthesizer()
        report = ResultAggregator(synthesizer).synthesize("churn", [])
        assert synthesizer.seen == []
        assert report.note.startswith("No expert interviews found")
        assert report.to_dict()["interviews_analyzed"] == 0

    def test_records_are_capped(self, make_record):
        synthesizer = RecordingSynthesizer()
        records = [make_record() for _ in range(5)]

        report = ResultAggregator(synthesizer, max_records=3).synthesize("churn", records)

        assert len(synthesizer.seen[0][1]) == 3
        assert report.stats.total == 3
