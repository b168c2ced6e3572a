"""
Searcher

Ranked retrieval against the two record stores.

- ExpertSearcher: people store. Ranking (company match > role match >
  recency, employment status as a hard filter) is owned by the
  search_experts_company_role RPC; this side decides which criteria
  variant to submit.
- InterviewSearcher: interview store. Case-insensitive substring search over
  question/answer text with AND-ed score, date, expert and project filters,
  most recent first.

Store failures are raised as StoreError and never retried here.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..common.config import COMPANY_VARIANT_POLICIES, VARIANT_POLICIES
from ..common.schemas import InterviewRecord, ProfileRecord
from ..common.store_client import SupabaseRestClient
from .criteria_extractor import CriteriaBatch, EmploymentStatus, SearchCriteria
from .topic_normalizer import sanitize_search_text, split_alternatives

logger = logging.getLogger("insights.retriever.searcher")

EXPERT_SEARCH_RPC = "search_experts_company_role"
EXPERTS_TABLE = "experts"
INTERVIEWS_TABLE = "interview_messages"

MAX_EXPERT_LIMIT = 50
MAX_INTERVIEW_LIMIT = 100


def collapse_company_variants(companies: Sequence[str]) -> Tuple[str, ...]:
    """
    Case-insensitive dedupe that also drops names extending an already kept
    name by further words ("SHI International" after "SHI").
    """
    kept: List[str] = []
    kept_lower: List[str] = []
    for name in companies:
        lowered = " ".join(name.lower().split())
        if not lowered:
            continue
        if any(lowered == k or lowered.startswith(k + " ") for k in kept_lower):
            continue
        kept.append(name)
        kept_lower.append(lowered)
    return tuple(kept)


@dataclass
class ExpertSearchOutcome:
    """Result of running a CriteriaBatch against the people store"""
    criteria: SearchCriteria  # the variant whose results are returned
    experts: List[ProfileRecord]
    source: str  # "llm" or "fallback"
    variants_tried: int = 1
    all_variants: List[SearchCriteria] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.experts


class ExpertSearcher:
    """
    People-store retrieval.

    variant_policy:
        "primary"         submit only the first variant (default)
        "first_nonempty"  try non-degenerate variants in order and stop at
                          the first one that returns results
    company_variant_policy:
        "keep"      send company name variants as produced (default)
        "collapse"  dedupe and drop longer spellings of kept names
    """

    def __init__(
        self,
        client: SupabaseRestClient,
        variant_policy: str = "primary",
        company_variant_policy: str = "keep",
    ):
        if variant_policy not in VARIANT_POLICIES:
            raise ValueError(f"Unknown variant policy: {variant_policy}")
        if company_variant_policy not in COMPANY_VARIANT_POLICIES:
            raise ValueError(f"Unknown company variant policy: {company_variant_policy}")
        self._client = client
        self.variant_policy = variant_policy
        self.company_variant_policy = company_variant_policy

    async def health_check(self) -> bool:
        return await self._client.health_check()

    async def search(
        self,
        companies: Sequence[str],
        role_keywords: Sequence[str],
        employment_status: EmploymentStatus = EmploymentStatus.ANY,
        limit: int = 10,
    ) -> List[ProfileRecord]:
        """
        Call the ranked people-search RPC.

        Raises:
            ValueError: limit out of range
            StoreError: RPC failure
        """
        if not 1 <= limit <= MAX_EXPERT_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_EXPERT_LIMIT}")

        companies = list(companies)
        if self.company_variant_policy == "collapse":
            companies = list(collapse_company_variants(companies))

        rows = await self._client.rpc(EXPERT_SEARCH_RPC, {
            "p_companies": companies,
            "p_role_keywords": list(role_keywords),
            "p_employment_status": EmploymentStatus(employment_status).value,
            "p_limit": limit,
        })
        return [ProfileRecord.from_row(row) for row in rows]

    async def search_batch(self, batch: CriteriaBatch, limit: int = 10) -> ExpertSearchOutcome:
        """
        Apply the variant policy to a batch.

        Raises:
            ValueError: primary variant is degenerate ("primary" policy), or
                no variant is usable ("first_nonempty" policy)
            StoreError: RPC failure
        """
        if self.variant_policy == "primary":
            criteria = batch.primary
            if criteria.is_degenerate:
                raise ValueError("Primary criteria variant has neither companies nor role keywords")
            experts = await self._search_criteria(criteria, limit)
            return ExpertSearchOutcome(
                criteria=criteria,
                experts=experts,
                source=batch.source,
                variants_tried=1,
                all_variants=list(batch.variants),
            )

        tried = 0
        first_usable: Optional[SearchCriteria] = None
        for criteria in batch.variants:
            if criteria.is_degenerate:
                logger.debug("Skipping degenerate variant: %s", criteria.reasoning)
                continue
            first_usable = first_usable or criteria
            tried += 1
            experts = await self._search_criteria(criteria, limit)
            if experts:
                logger.info("Variant %d of %d returned %d experts", tried, len(batch), len(experts))
                return ExpertSearchOutcome(
                    criteria=criteria,
                    experts=experts,
                    source=batch.source,
                    variants_tried=tried,
                    all_variants=list(batch.variants),
                )

        if first_usable is None:
            raise ValueError("No criteria variant has companies or role keywords")
        return ExpertSearchOutcome(
            criteria=first_usable,
            experts=[],
            source=batch.source,
            variants_tried=tried,
            all_variants=list(batch.variants),
        )

    async def _search_criteria(self, criteria: SearchCriteria, limit: int) -> List[ProfileRecord]:
        return await self.search(
            criteria.companies,
            criteria.role_keywords,
            criteria.employment_status,
            limit,
        )

    async def get_expert_profile(self, expert_id: str) -> Optional[ProfileRecord]:
        """Profile by id, or None when it does not exist."""
        if not str(expert_id).strip():
            raise ValueError("expert_id must not be blank")
        rows = await self._client.select(
            EXPERTS_TABLE,
            [("id", f"eq.{expert_id}"), ("limit", 1)],
        )
        if not rows:
            return None
        return ProfileRecord.from_row(rows[0])

    async def find_by_state(self, state: str, limit: int = 10) -> List[ProfileRecord]:
        """Experts in one pipeline state, next scheduled action first."""
        if not 1 <= limit <= MAX_EXPERT_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_EXPERT_LIMIT}")
        rows = await self._client.select(
            EXPERTS_TABLE,
            [("state", f"eq.{state}"), ("order", "next_action_at.asc.nullslast"), ("limit", limit)],
        )
        return [ProfileRecord.from_row(row) for row in rows]


class InterviewSearcher:
    """Interview-store retrieval."""

    TEXT_FIELDS = ("question_text", "answer_summary")
    PROFILE_FIELD = "expert_profile"

    def __init__(self, client: SupabaseRestClient, include_profile_text: bool = False):
        self._client = client
        self.include_profile_text = include_profile_text

    async def health_check(self) -> bool:
        return await self._client.health_check()

    @property
    def search_fields(self) -> Tuple[str, ...]:
        if self.include_profile_text:
            return self.TEXT_FIELDS + (self.PROFILE_FIELD,)
        return self.TEXT_FIELDS

    def build_params(
        self,
        topic: Optional[str] = None,
        expert_name: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        min_credibility: Optional[float] = None,
        min_consensus: Optional[float] = None,
        project_id: Optional[int] = None,
        limit: int = 20,
    ) -> List[Tuple[str, Any]]:
        """
        Translate filters into PostgREST query parameters.

        Topic alternatives are OR-ed across every search field; everything
        else is AND-ed. Absent filters are omitted.
        """
        if not 1 <= limit <= MAX_INTERVIEW_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_INTERVIEW_LIMIT}")

        params: List[Tuple[str, Any]] = []

        if topic:
            alternatives = split_alternatives(sanitize_search_text(topic))
            clauses = [
                f'{column}.ilike."*{term}*"'
                for term in alternatives
                for column in self.search_fields
            ]
            if clauses:
                params.append(("or", f"({','.join(clauses)})"))

        if expert_name:
            name = sanitize_search_text(expert_name)
            if name:
                params.append(("expert_name", f"ilike.*{name}*"))

        if project_id is not None:
            params.append(("project_id", f"eq.{int(project_id)}"))
        if date_from:
            params.append(("created_at", f"gte.{sanitize_search_text(date_from)}"))
        if date_to:
            params.append(("created_at", f"lte.{sanitize_search_text(date_to)}"))
        if min_consensus is not None:
            params.append(("consensus_score", f"gte.{min_consensus}"))
        if min_credibility is not None:
            params.append(("credibility_score", f"gte.{min_credibility}"))

        params.append(("order", "created_at.desc"))
        params.append(("limit", limit))
        return params

    async def search(
        self,
        topic: Optional[str] = None,
        expert_name: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        min_credibility: Optional[float] = None,
        min_consensus: Optional[float] = None,
        project_id: Optional[int] = None,
        limit: int = 20,
    ) -> List[InterviewRecord]:
        """
        Raises:
            ValueError: limit out of range
            StoreError: query failure
        """
        params = self.build_params(
            topic=topic,
            expert_name=expert_name,
            date_from=date_from,
            date_to=date_to,
            min_credibility=min_credibility,
            min_consensus=min_consensus,
            project_id=project_id,
            limit=limit,
        )
        rows = await self._client.select(INTERVIEWS_TABLE, params)
        logger.info("Interview search returned %d records", len(rows))
        return [InterviewRecord.from_row(row) for row in rows]

    async def get_full_interview(self, meeting_id: str) -> List[InterviewRecord]:
        """All records of one session, in conversation order."""
        meeting_id = str(meeting_id).strip()
        if not meeting_id:
            raise ValueError("meeting_id must not be blank")
        rows = await self._client.select(
            INTERVIEWS_TABLE,
            [("meeting_id", f"eq.{meeting_id}"), ("order", "created_at.asc")],
        )
        return [InterviewRecord.from_row(row) for row in rows]

    async def get_expert_interview_history(
        self, expert_id: int, limit: Optional[int] = None
    ) -> List[InterviewRecord]:
        """All records answered by one expert, most recent first."""
        params: List[Tuple[str, Any]] = [
            ("expert_id", f"eq.{int(expert_id)}"),
            ("order", "created_at.desc"),
        ]
        if limit is not None:
            params.append(("limit", limit))
        rows = await self._client.select(INTERVIEWS_TABLE, params)
        return [InterviewRecord.from_row(row) for row in rows]


def outcome_to_dict(outcome: ExpertSearchOutcome) -> Dict[str, Any]:
    """Plain-dict view used by the tool layer."""
    return {
        "criteria": outcome.criteria.to_dict(),
        "source": outcome.source,
        "variants_tried": outcome.variants_tried,
        "experts": [e.to_summary() for e in outcome.experts],
    }
