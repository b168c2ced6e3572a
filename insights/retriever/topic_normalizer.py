"""
Topic Normalizer

Verbose questions ("What do customers think about ... over the last two
years") almost never appear verbatim in short interview answers, so the
topic is turned into a few search terms before substring matching.

Order of preference:
1. LLM semantic expansion (synonyms and related concepts), when enabled
2. Deterministic reduction of long topics to their first meaningful words
3. Static synonym clusters when what is left is too short to match well

Every returned string is sanitized so it can be placed inside a PostgREST
filter expression.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional

from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json, string_list

logger = logging.getLogger("insights.retriever.topic_normalizer")

REDUCE_THRESHOLD = 50
MAX_REDUCED_TOKENS = 4
MIN_TOKEN_LENGTH = 4
SHORT_RESULT_LENGTH = 5
MAX_EXPANDED_TERMS = 10
TERM_SEPARATOR = ", "

_UNSAFE_CHARS = re.compile(r"[;'\"\\]")
_PARENTHETICAL = re.compile(r"\([^)]*\)")
_TOKEN_SPLIT = re.compile(r"[\s,;.!?:]+")


def sanitize_search_text(text: str) -> str:
    """Replace ; ' " and backslash with spaces, then collapse whitespace."""
    return " ".join(_UNSAFE_CHARS.sub(" ", text).split())


def split_alternatives(terms: str) -> List[str]:
    """Split a normalized search string into its substring alternatives."""
    return [t.strip() for t in terms.split(",") if t.strip()]


# ============================================================================
# Expansion capability
# ============================================================================

class TopicExpander(ABC):
    """Capability that returns related search terms for a topic"""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    def expand(self, topic: str) -> List[str]:
        ...


EXPANSION_PROMPT = """You help search a database of short expert-interview answers.
Give 5-10 short search terms (synonyms, related concepts, common phrasings) that
an interview answer about this topic would likely contain. Prefer 1-3 word terms.

Respond with a valid JSON object:
{{"terms": ["term one", "term two"]}}

Topic: {topic}

JSON:"""


class LLMTopicExpander(TopicExpander):
    """Semantic expansion through the configured LLM provider."""

    def __init__(self, llm_client: Optional[LLMClient], max_tokens: int = 300, timeout: float = 30.0):
        self._llm = llm_client
        self._max_tokens = max_tokens
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def expand(self, topic: str) -> List[str]:
        if not self.is_available:
            raise RuntimeError("LLM client is not available")
        raw = self._llm.generate(
            EXPANSION_PROMPT.format(topic=topic),
            max_tokens=self._max_tokens,
            timeout=self._timeout,
        )
        terms = string_list(parse_llm_json(raw).get("terms"))
        if not terms:
            raise ValueError("expansion response contained no terms")
        return terms


# ============================================================================
# Normalizer
# ============================================================================

class TopicNormalizer:
    """
    Produces the sanitized search string for an interview topic.

    Usage:
        normalizer = TopicNormalizer()
        normalizer.normalize("vendor consolidation")  # "vendor consolidation"
    """

    # Words that carry no topical signal in interview questions
    STOP_WORDS = {
        "interviews", "interview", "with", "customers", "customer", "of",
        "the", "and", "or", "about", "for", "in", "on", "at", "to", "from",
        "all", "find", "search", "please", "me", "that", "this", "what",
        "how", "why", "software", "process", "think", "thinks", "thought",
        "thoughts", "does", "have", "their", "they", "them", "there", "these",
        "those", "which", "when", "where", "were", "been", "being", "would",
        "could", "should", "than", "then", "into", "over", "under", "compared",
        "comparison", "versus", "last", "next", "past", "years", "year",
        "months", "month", "weeks", "some", "many", "much", "more", "most",
        "also", "just", "only", "very", "really", "between", "within",
        "without", "during", "across", "experts", "expert", "question",
        "questions", "answer", "answers", "opinion", "opinions", "views",
        "feel", "feeling", "perspective", "people", "like", "your", "value",
        "good", "better", "best", "any", "other", "others", "show", "tell",
    }

    # (raw-topic substrings, related terms)
    SYNONYM_CLUSTERS = (
        (("vendor", "consolidat"), ("procurement", "sourcing", "supplier")),
        (("budget", "allocat"), ("spending", "investment", "cost")),
        (("pric",), ("cost", "subscription", "discount")),
        (("churn", "retention"), ("renewal", "attrition", "cancellation")),
        (("hiring", "recruit"), ("talent", "staffing", "headcount")),
        (("competit",), ("competitor", "market share", "alternative")),
    )

    def __init__(self, expander: Optional[TopicExpander] = None):
        self._expander = expander

    @property
    def has_expander(self) -> bool:
        return self._expander is not None and self._expander.is_available

    def normalize(self, raw_topic: str) -> str:
        """
        Returns:
            Sanitized search string, alternatives separated by ", ".
            Falls back to raw_topic itself if nothing usable remains.

        Raises:
            ValueError: blank topic
        """
        if not raw_topic or not raw_topic.strip():
            raise ValueError("topic must not be blank")

        if self.has_expander:
            try:
                expanded = self._expand(raw_topic)
                if expanded:
                    logger.info("Expanded topic %r -> %r", raw_topic, expanded)
                    return expanded
            except Exception as e:
                logger.warning("Topic expansion failed, using reduction: %s", e)

        terms = self.reduce(raw_topic)
        if len(terms) < SHORT_RESULT_LENGTH:
            synonyms = self._synonyms_for(raw_topic)
            if synonyms:
                terms = TERM_SEPARATOR.join(([terms] if terms else []) + synonyms)

        result = sanitize_search_text(terms)
        return result or raw_topic

    def reduce(self, raw_topic: str) -> str:
        """Keep the first few meaningful words of a long topic; short topics pass through."""
        topic = raw_topic.strip()
        if len(topic) <= REDUCE_THRESHOLD:
            return topic

        stripped = _PARENTHETICAL.sub(" ", topic)
        words = [w for w in _TOKEN_SPLIT.split(stripped.lower()) if w]
        key_words = [
            w for w in words
            if len(w) >= MIN_TOKEN_LENGTH and w not in self.STOP_WORDS
        ]
        reduced = " ".join(key_words[:MAX_REDUCED_TOKENS])
        logger.info("Reduced topic %r -> %r", raw_topic, reduced)
        return reduced

    def _expand(self, raw_topic: str) -> str:
        terms = []
        for term in self._expander.expand(raw_topic):
            clean = sanitize_search_text(term.replace(",", " "))
            if clean and clean.lower() not in (t.lower() for t in terms):
                terms.append(clean)
        return TERM_SEPARATOR.join(terms[:MAX_EXPANDED_TERMS])

    def _synonyms_for(self, raw_topic: str) -> List[str]:
        lowered = raw_topic.lower()
        synonyms: List[str] = []
        for keys, related in self.SYNONYM_CLUSTERS:
            if any(k in lowered for k in keys):
                synonyms.extend(r for r in related if r not in synonyms)
        return synonyms
