"""
Insights Engine

Library entry point for every query operation. Validates input, runs the
criteria extractor or topic normalizer, queries the stores and aggregates.

Blocking LLM calls run in worker threads (asyncio.to_thread) so a slow model
never stalls other requests served by the same event loop.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..common.config import InsightsConfig
from ..common.llm_client import create_llm_client
from ..common.schemas import (
    ExpertSearchParams,
    InterviewRecord,
    InterviewSearchParams,
    ProfileRecord,
)
from ..common.store_client import StoreError, SupabaseRestClient, create_store_client
from .aggregator import (
    InterviewTranscript,
    ResultAggregator,
    SynthesisReport,
    build_transcript,
    compute_stats,
    group_by_session,
    interpret,
    summarize,
)
from .criteria_extractor import CriteriaExtractor, LLMCriteriaGenerator
from .expert_pool import EXPERT_STATES, POOL_SAMPLE_SIZE, analyze_pool, availability_entry
from .searcher import ExpertSearcher, ExpertSearchOutcome, InterviewSearcher
from .synthesizer import LLMSynthesizer
from .topic_normalizer import (
    LLMTopicExpander,
    TopicNormalizer,
    sanitize_search_text,
    split_alternatives,
)

logger = logging.getLogger("insights.retriever.engine")

SYNTHESIS_MIN_CREDIBILITY = 7.0

EXPERT_SUGGESTIONS = [
    "Name fewer or more widely known companies",
    "Use broader role terms such as VP, Director or Manager",
    "Drop the former/current qualifier",
]
INTERVIEW_SUGGESTIONS = [
    "Use a shorter topic with one or two key terms",
    "Remove the expert name or date range filters",
    "Lower the minimum credibility or consensus score",
]


@dataclass
class InterviewSearchResult:
    """Interview search outcome; an empty result is valid, not an error"""
    records: List[InterviewRecord]
    search_terms: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "search_terms": self.search_terms,
            "total": len(self.records),
            "interviews": [r.model_dump() for r in self.records],
            "sessions": [
                {
                    "meeting_id": meeting_id,
                    "expert_name": records[0].expert_name,
                    "record_ids": [r.id for r in records],
                }
                for meeting_id, records in group_by_session(self.records).items()
            ],
            "suggestions": self.suggestions,
        }


class InsightsEngine:
    """
    Wires extractor, normalizer, searchers and aggregator.

    Usage:
        engine = InsightsEngine.from_config(load_config())
        outcome = await engine.search_experts(ExpertSearchParams(query="Big 5 search firms"))
        await engine.close()
    """

    def __init__(
        self,
        extractor: CriteriaExtractor,
        normalizer: TopicNormalizer,
        aggregator: ResultAggregator,
        expert_searcher: Optional[ExpertSearcher] = None,
        interview_searcher: Optional[InterviewSearcher] = None,
        stores: Optional[List[SupabaseRestClient]] = None,
        expert_limit: int = 10,
        interview_limit: int = 20,
    ):
        self.extractor = extractor
        self.normalizer = normalizer
        self.aggregator = aggregator
        self.expert_searcher = expert_searcher
        self.interview_searcher = interview_searcher
        self._stores = stores or []
        self.expert_limit = expert_limit
        self.interview_limit = interview_limit

    @classmethod
    def from_config(cls, config: InsightsConfig) -> "InsightsEngine":
        llm = create_llm_client(config.llm)
        retriever = config.retriever

        interviews_store = create_store_client(
            config.stores.interviews_url, config.stores.interviews_key, config.stores.timeout
        )
        experts_store = create_store_client(
            config.stores.experts_url, config.stores.experts_key, config.stores.timeout
        )

        expert_searcher = None
        if experts_store is not None:
            expert_searcher = ExpertSearcher(
                experts_store,
                variant_policy=retriever.variant_policy,
                company_variant_policy=retriever.company_variant_policy,
            )
        interview_searcher = None
        if interviews_store is not None:
            interview_searcher = InterviewSearcher(
                interviews_store, include_profile_text=retriever.include_profile_text
            )

        expander = LLMTopicExpander(llm) if retriever.ai_topic_expansion else None
        return cls(
            extractor=CriteriaExtractor(LLMCriteriaGenerator(llm)),
            normalizer=TopicNormalizer(expander),
            aggregator=ResultAggregator(LLMSynthesizer(llm), max_records=retriever.synthesis_max_records),
            expert_searcher=expert_searcher,
            interview_searcher=interview_searcher,
            stores=[s for s in (interviews_store, experts_store) if s is not None],
            expert_limit=retriever.expert_limit,
            interview_limit=retriever.interview_limit,
        )

    async def close(self) -> None:
        for store in self._stores:
            await store.close()

    def _experts(self, operation: str) -> ExpertSearcher:
        if self.expert_searcher is None:
            raise StoreError(operation, "experts store is not configured")
        return self.expert_searcher

    def _interviews(self, operation: str) -> InterviewSearcher:
        if self.interview_searcher is None:
            raise StoreError(operation, "interviews store is not configured")
        return self.interview_searcher

    # ------------------------------------------------------------------
    # People
    # ------------------------------------------------------------------

    async def search_experts(self, params: ExpertSearchParams) -> ExpertSearchOutcome:
        searcher = self._experts("search_experts")
        batch = await asyncio.to_thread(
            self.extractor.extract, params.query, params.current_company, params.current_title
        )
        logger.info(
            "Expert search %r: %s criteria, primary companies=%s roles=%s status=%s",
            params.query, batch.source, list(batch.primary.companies),
            list(batch.primary.role_keywords), batch.primary.employment_status.value,
        )
        return await searcher.search_batch(batch, limit=params.limit or self.expert_limit)

    async def get_expert_profile(self, expert_id: str) -> Optional[ProfileRecord]:
        return await self._experts("get_expert_profile").get_expert_profile(expert_id)

    async def get_expert_availability(
        self,
        expert_ids: Optional[List[str]] = None,
        state: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Scheduling status for the given experts, or for experts in one
        pipeline state when no ids are given. With both, ids are filtered by
        state.
        """
        ids = list(dict.fromkeys(str(i).strip() for i in (expert_ids or []) if str(i).strip()))
        state = (state or "").strip().lower() or None
        if not ids and state is None:
            raise ValueError("expert_ids or state is required")
        if state is not None and state not in EXPERT_STATES:
            raise ValueError(f"state must be one of {', '.join(EXPERT_STATES)}")

        searcher = self._experts("get_expert_availability")
        if ids:
            found = await asyncio.gather(*(searcher.get_expert_profile(i) for i in ids))
            profiles = [p for p in found if p is not None]
            if state is not None:
                profiles = [p for p in profiles if p.state == state]
        else:
            profiles = await searcher.find_by_state(state, limit or self.expert_limit)

        return {
            "requested_experts": len(ids) if ids else None,
            "state": state,
            "found_experts": len(profiles),
            "availability": [availability_entry(p) for p in profiles],
        }

    async def analyze_expert_pool(self, focus_area: Optional[str] = None) -> Dict[str, Any]:
        """Composition of a sample of experts matching the focus area."""
        searcher = self._experts("analyze_expert_pool")
        focus_area = (focus_area or "").strip() or None
        batch = await asyncio.to_thread(self.extractor.extract, focus_area or "expert")
        outcome = await searcher.search_batch(batch, limit=POOL_SAMPLE_SIZE)
        analysis = analyze_pool(outcome.experts, focus_area)
        analysis["criteria"] = outcome.criteria.to_dict()
        return analysis

    # ------------------------------------------------------------------
    # Interviews
    # ------------------------------------------------------------------

    async def _normalize_topic(self, topic: Optional[str]) -> Optional[str]:
        if not topic:
            return None
        if not split_alternatives(sanitize_search_text(topic)):
            raise ValueError("question_topic has no searchable characters")
        return await asyncio.to_thread(self.normalizer.normalize, topic)

    async def _search_records(self, params: InterviewSearchParams, operation: str) -> InterviewSearchResult:
        searcher = self._interviews(operation)
        terms = await self._normalize_topic(params.question_topic)
        records = await searcher.search(
            topic=terms,
            expert_name=params.expert_name,
            date_from=params.date_from,
            date_to=params.date_to,
            min_credibility=params.min_credibility_score,
            min_consensus=params.min_consensus_score,
            project_id=params.project_id,
            limit=params.limit or self.interview_limit,
        )
        suggestions = [] if records else list(INTERVIEW_SUGGESTIONS)
        return InterviewSearchResult(records=records, search_terms=terms, suggestions=suggestions)

    async def search_interviews(self, params: InterviewSearchParams) -> InterviewSearchResult:
        return await self._search_records(params, "search_interviews")

    async def get_full_interview(self, meeting_id: str) -> InterviewTranscript:
        records = await self._interviews("get_full_interview").get_full_interview(meeting_id)
        return build_transcript(str(meeting_id).strip(), records)

    async def get_expert_interview_history(self, expert_id: int) -> List[InterviewRecord]:
        return await self._interviews("get_expert_interview_history").get_expert_interview_history(expert_id)

    async def get_interview_insights(self, params: InterviewSearchParams) -> Dict[str, Any]:
        result = await self._search_records(params, "get_interview_insights")
        stats = compute_stats(result.records)
        return {
            "search_terms": result.search_terms,
            "insights": stats.to_dict(),
            "interpretation": interpret(stats),
        }

    async def summarize_interviews(
        self, params: InterviewSearchParams, focus_area: Optional[str] = None
    ) -> Dict[str, Any]:
        result = await self._search_records(params, "summarize_interviews")
        if not result.records:
            return {
                "search_terms": result.search_terms,
                "message": "No interviews found matching the specified criteria.",
                "suggestions": result.suggestions,
            }
        summary = summarize(result.records, focus_area)
        summary["search_terms"] = result.search_terms
        return summary

    async def synthesize_interviews(
        self,
        topic: str,
        min_credibility_score: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> SynthesisReport:
        """
        Search then synthesize. Defaults: credibility >= 7, the configured
        synthesis cap as limit.
        """
        params = InterviewSearchParams(
            question_topic=topic,
            min_credibility_score=(
                SYNTHESIS_MIN_CREDIBILITY if min_credibility_score is None else min_credibility_score
            ),
            limit=limit or self.aggregator.max_records,
        )
        if not params.question_topic:
            raise ValueError("topic must not be blank")
        result = await self._search_records(params, "synthesize_interviews")
        return await asyncio.to_thread(self.aggregator.synthesize, params.question_topic, result.records)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def status(self) -> Dict[str, Any]:
        stores = {}
        for name, searcher in (("interviews", self.interview_searcher), ("experts", self.expert_searcher)):
            if searcher is None:
                stores[name] = "not configured"
            else:
                healthy = await searcher.health_check()
                stores[name] = "ok" if healthy else "unreachable"
        return {
            "stores": stores,
            "llm_criteria": self.extractor.has_llm,
            "topic_expansion": self.normalizer.has_expander,
            "synthesis": self.aggregator.has_synthesizer,
            "variant_policy": self.expert_searcher.variant_policy if self.expert_searcher else None,
            "company_variant_policy": (
                self.expert_searcher.company_variant_policy if self.expert_searcher else None
            ),
        }


def expert_suggestions(outcome: ExpertSearchOutcome) -> List[str]:
    return [] if outcome.experts else list(EXPERT_SUGGESTIONS)
