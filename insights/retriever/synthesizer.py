"""
Synthesizer

LLM-based cross-interview synthesis.

Given the filtered interview records and their aggregate statistics, asks the
model for key findings, consensus, disagreement, a credibility assessment and
decision-relevant implications. The raw model text is returned as-is; the
caller keeps the structured records alongside it.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, TYPE_CHECKING

from ..common.llm_client import LLMClient
from ..common.schemas import InterviewRecord

if TYPE_CHECKING:
    from .aggregator import QualityStats

logger = logging.getLogger("insights.retriever.synthesizer")


# Synthesis prompt template
SYNTHESIS_PROMPT = """You are an investment analyst synthesizing expert interview insights for due diligence research.

Your task is to analyze the expert interviews below and synthesize findings on: "{topic}"

Follow these rules strictly:
1. ONLY use information from the provided interviews. Do NOT make up information.
2. Weight each insight by its credibility score (higher credibility = more weight).
3. Name the expert when attributing a view.

Expert Interviews:
{records}

Provide:

1. **Key Findings** (3-5 bullet points): the most important insights across all experts.

2. **Areas of Consensus**: what multiple experts agree on and how strong the agreement is.

3. **Areas of Disagreement**: where views differ, what drives the difference, which view is more credible.

4. **Credibility Assessment**:
   - Average credibility: {avg_credibility}
   - Number of experts: {expert_count}
   - Number of interview records: {record_count}
   - Overall quality of the evidence

5. **Decision Implications**: what a decision-maker should take away, key risks or opportunities, and confidence in the findings.

Return a well-structured analysis in markdown format."""


class Synthesizer(ABC):
    """Capability that turns interview records into narrative findings"""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    def synthesize(self, topic: str, records: List[InterviewRecord], stats: "QualityStats") -> str:
        ...


class LLMSynthesizer(Synthesizer):
    """
    Synthesizes findings using the configured LLM provider.

    Raises from synthesize() on any provider error; the aggregator decides
    how to degrade.
    """

    def __init__(self, llm_client: Optional[LLMClient], max_tokens: int = 4000, timeout: float = 60.0):
        self._llm = llm_client
        self._max_tokens = max_tokens
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def synthesize(self, topic: str, records: List[InterviewRecord], stats: "QualityStats") -> str:
        if not self.is_available:
            raise RuntimeError("LLM client is not available")
        prompt = self.build_prompt(topic, records, stats)
        text = self._llm.generate(prompt, max_tokens=self._max_tokens, timeout=self._timeout)
        if not text:
            raise ValueError("LLM returned an empty synthesis")
        return text

    @staticmethod
    def build_prompt(topic: str, records: List[InterviewRecord], stats: "QualityStats") -> str:
        entries = []
        for record in records:
            entry = record.to_source()
            entry["credentials"] = record.expert_profile
            entries.append(entry)

        avg = stats.avg_credibility
        return SYNTHESIS_PROMPT.format(
            topic=topic,
            records=json.dumps(entries, indent=2, ensure_ascii=False),
            avg_credibility=f"{avg:.1f}/10" if avg is not None else "not scored",
            expert_count=stats.unique_experts,
            record_count=stats.total,
        )
