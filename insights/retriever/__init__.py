"""
Retriever - Query Interpretation and Retrieval

Key Components:
- CriteriaExtractor: free-form people request -> company/role/status criteria
- TopicNormalizer: verbose topic -> sanitized substring search terms
- ExpertSearcher / InterviewSearcher: ranked lookups against the two stores
- ResultAggregator: transcripts, quality statistics and LLM synthesis

Pipeline:
1. Validate the request
2. Extract criteria (people) or normalize the topic (interviews)
3. Query the store
4. Aggregate, optionally synthesize
"""

from .criteria_extractor import CriteriaBatch, CriteriaExtractor, EmploymentStatus, SearchCriteria
from .topic_normalizer import TopicNormalizer, sanitize_search_text
from .searcher import ExpertSearcher, ExpertSearchOutcome, InterviewSearcher
from .aggregator import QualityStats, ResultAggregator, SynthesisReport
from .synthesizer import LLMSynthesizer, Synthesizer
from .engine import InsightsEngine

__all__ = [
    "CriteriaBatch",
    "CriteriaExtractor",
    "EmploymentStatus",
    "SearchCriteria",
    "TopicNormalizer",
    "sanitize_search_text",
    "ExpertSearcher",
    "ExpertSearchOutcome",
    "InterviewSearcher",
    "QualityStats",
    "ResultAggregator",
    "SynthesisReport",
    "LLMSynthesizer",
    "Synthesizer",
    "InsightsEngine",
]
