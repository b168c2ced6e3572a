"""
Criteria Extractor

Turns a free-form people-search request ("former Google engineering VPs")
into structured search criteria: company names, role keywords and an
employment status.

Two interchangeable strategies:
- LLMCriteriaGenerator asks the model for exactly five diversified variants
- RuleBasedCriteriaGenerator walks a prioritized rule table and always
  returns a single variant

The LLM strategy is tried first when available; any failure (missing key,
network, malformed JSON, wrong shape) drops to the rule table once.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json, string_list

logger = logging.getLogger("insights.retriever.criteria_extractor")

LLM_VARIANT_COUNT = 5
BROAD_ROLES = ("VP", "Director", "Senior", "Lead", "Manager")


class EmploymentStatus(str, Enum):
    """Employment filter applied by the people store"""
    CURRENT = "current"
    FORMER = "former"
    ANY = "any"


def ordered_set(values: Iterable[str]) -> Tuple[str, ...]:
    """Drop blanks and exact duplicates, keep first-seen order."""
    return tuple(dict.fromkeys(v.strip() for v in values if v and v.strip()))


@dataclass(frozen=True)
class SearchCriteria:
    """One candidate (companies, roles, status) tuple"""
    companies: Tuple[str, ...] = ()
    role_keywords: Tuple[str, ...] = ()
    employment_status: EmploymentStatus = EmploymentStatus.ANY
    reasoning: str = ""

    def __post_init__(self):
        object.__setattr__(self, "companies", ordered_set(self.companies))
        object.__setattr__(self, "role_keywords", ordered_set(self.role_keywords))
        object.__setattr__(self, "employment_status", EmploymentStatus(self.employment_status))

    @property
    def is_degenerate(self) -> bool:
        return not self.companies and not self.role_keywords

    def to_dict(self) -> Dict[str, Any]:
        return {
            "companies": list(self.companies),
            "role_keywords": list(self.role_keywords),
            "employment_status": self.employment_status.value,
            "reasoning": self.reasoning,
        }


@dataclass(frozen=True)
class CriteriaBatch:
    """Variants from one strategy run. The first variant is the primary."""
    variants: Tuple[SearchCriteria, ...]
    source: str  # "llm" or "fallback"

    def __post_init__(self):
        if not self.variants:
            raise ValueError("CriteriaBatch requires at least one variant")
        object.__setattr__(self, "variants", tuple(self.variants))

    @property
    def primary(self) -> SearchCriteria:
        return self.variants[0]

    def __len__(self) -> int:
        return len(self.variants)

    def __iter__(self):
        return iter(self.variants)


def detect_employment_status(text: str) -> EmploymentStatus:
    """'former'/'ex-' means former, 'current(ly)' means current, both or neither means any."""
    lowered = text.lower()
    former = bool(re.search(r"\bformer\b|\bex-", lowered))
    current = bool(re.search(r"\bcurrent(ly)?\b", lowered))
    if former and not current:
        return EmploymentStatus.FORMER
    if current and not former:
        return EmploymentStatus.CURRENT
    return EmploymentStatus.ANY


def _phrase_pattern(phrase: str) -> "re.Pattern":
    return re.compile(r"\b" + phrase + r"\b", re.IGNORECASE)


# ============================================================================
# Strategies
# ============================================================================

class CriteriaGenerator(ABC):
    """Capability that produces a CriteriaBatch from a request"""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    def generate(
        self,
        query: str,
        explicit_company: Optional[str] = None,
        explicit_title: Optional[str] = None,
    ) -> CriteriaBatch:
        ...


@dataclass(frozen=True)
class CriteriaRule:
    """
    One row of the fallback table.

    aliases maps a phrase (regex fragment, matched on word boundaries) to
    the canonical companies it stands for. When no alias matches but a
    trigger does, default_companies are used instead.
    """
    name: str
    triggers: Tuple[str, ...]
    aliases: Tuple[Tuple[str, Tuple[str, ...]], ...]
    default_companies: Tuple[str, ...]
    roles: Tuple[str, ...]
    _compiled: Tuple = field(default=(), repr=False, compare=False)

    def __post_init__(self):
        compiled = (
            tuple(_phrase_pattern(t) for t in self.triggers),
            tuple((_phrase_pattern(a), companies) for a, companies in self.aliases),
        )
        object.__setattr__(self, "_compiled", compiled)

    def match(self, text: str) -> Optional[List[str]]:
        """Return the companies this rule yields for text, or None if it does not apply."""
        triggers, aliases = self._compiled
        named: List[str] = []
        for pattern, companies in aliases:
            if pattern.search(text):
                named.extend(companies)
        if named:
            return named
        if any(p.search(text) for p in triggers):
            return list(self.default_companies)
        return None


DEFAULT_RULES: Tuple[CriteriaRule, ...] = (
    CriteriaRule(
        name="executive_search",
        triggers=(r"big 5", r"big five", r"executive search firms?"),
        aliases=(),
        default_companies=(
            "Korn Ferry", "Russell Reynolds", "Heidrick & Struggles",
            "Spencer Stuart", "Egon Zehnder",
        ),
        roles=(
            "Partner", "Principal", "Director", "VP", "Executive Recruiter",
            "Managing Director", "Senior Associate",
        ),
    ),
    CriteriaRule(
        name="consulting",
        triggers=(r"consulting", r"consultancy"),
        aliases=(
            (r"mbb", ("McKinsey", "Bain", "BCG")),
            (r"mckinsey", ("McKinsey",)),
            (r"bain", ("Bain",)),
            (r"bcg", ("BCG",)),
            (r"deloitte", ("Deloitte",)),
            (r"pwc", ("PwC",)),
            (r"accenture", ("Accenture",)),
        ),
        default_companies=("McKinsey", "Bain", "BCG", "Deloitte", "PwC", "EY", "KPMG"),
        roles=("Partner", "Principal", "Director", "VP", "Manager", "Senior Manager"),
    ),
    CriteriaRule(
        name="it_resellers",
        triggers=(r"it resellers?", r"value[- ]added resellers?"),
        aliases=(
            (r"cdw", ("CDW",)),
            (r"shi", ("SHI", "SHI International")),
            (r"insight enterprises", ("Insight Enterprises", "Insight")),
        ),
        default_companies=("CDW", "SHI", "SHI International", "Insight Enterprises", "Insight"),
        roles=("Sales", "Account", "Director", "VP", "Vice President", "Manager", "Executive"),
    ),
    CriteriaRule(
        name="fintech",
        triggers=(r"fintech",),
        aliases=(
            (r"stripe", ("Stripe",)),
            (r"square", ("Square",)),
            (r"paypal", ("PayPal",)),
            (r"plaid", ("Plaid",)),
            (r"coinbase", ("Coinbase",)),
            (r"robinhood", ("Robinhood",)),
            (r"chime", ("Chime",)),
        ),
        default_companies=("Stripe", "Square", "PayPal", "Plaid", "Coinbase", "Robinhood", "Chime"),
        roles=("VP", "Director", "Head", "Product", "Engineering", "Senior"),
    ),
    CriteriaRule(
        name="big_tech",
        triggers=(r"big tech", r"faang"),
        aliases=(
            (r"google", ("Google",)),
            (r"microsoft", ("Microsoft",)),
            (r"meta", ("Meta",)),
            (r"amazon", ("Amazon",)),
            (r"apple", ("Apple",)),
            (r"netflix", ("Netflix",)),
            (r"uber", ("Uber",)),
        ),
        default_companies=("Google", "Microsoft", "Meta", "Amazon", "Apple", "Netflix", "Uber"),
        roles=("VP", "Vice President", "Director", "Head", "Engineering", "Product"),
    ),
)


class RuleBasedCriteriaGenerator(CriteriaGenerator):
    """
    Deterministic, network-free criteria derivation.

    Rules are evaluated in order and the first match wins. A query no rule
    recognizes goes through tokenization: capitalized tokens become company
    candidates and known role words become canonical role keywords.
    """

    # Words never treated as company names even when capitalized
    STOP_WORDS = {
        "a", "an", "the", "and", "or", "of", "at", "in", "on", "for", "from",
        "with", "to", "by", "who", "that", "which", "what", "is", "are", "was",
        "were", "be", "been", "have", "has", "had", "do", "does", "did", "i",
        "we", "our", "us", "me", "my", "you", "your", "they", "their", "them",
        "find", "search", "looking", "look", "need", "want", "get", "show",
        "list", "give", "someone", "somebody", "people", "person", "persons",
        "expert", "experts", "employee", "employees", "staff", "worked",
        "works", "work", "working", "company", "companies", "firm", "firms",
        "team", "teams", "former", "formerly", "current", "currently", "ex",
        "previously", "past", "recent", "recently", "any", "some", "all",
        "please", "like", "about", "over", "into", "than", "can", "could",
        "would", "should", "will", "also", "leaders", "leader", "leadership",
        "background", "experience", "experienced", "knowledge", "insights",
    }

    # Recognizable role words, lowercased token -> canonical keyword
    ROLE_WORDS = {
        "vp": "VP", "vps": "VP", "svp": "SVP", "evp": "EVP",
        "vice": "Vice President",
        "president": "President", "presidents": "President",
        "director": "Director", "directors": "Director",
        "head": "Head", "heads": "Head",
        "manager": "Manager", "managers": "Manager",
        "senior": "Senior", "lead": "Lead", "leads": "Lead",
        "principal": "Principal", "principals": "Principal",
        "partner": "Partner", "partners": "Partner",
        "chief": "Chief", "executive": "Executive", "executives": "Executive",
        "ceo": "CEO", "cto": "CTO", "cfo": "CFO", "coo": "COO",
        "cmo": "CMO", "cio": "CIO", "ciso": "CISO", "cro": "CRO",
        "founder": "Founder", "founders": "Founder", "cofounder": "Founder",
        "engineer": "Engineering", "engineers": "Engineering", "engineering": "Engineering",
        "product": "Product", "sales": "Sales", "account": "Account",
        "marketing": "Marketing", "operations": "Operations",
        "procurement": "Procurement", "finance": "Finance",
        "analyst": "Analyst", "analysts": "Analyst",
        "consultant": "Consultant", "consultants": "Consultant",
        "recruiter": "Recruiter", "recruiters": "Recruiter",
        "architect": "Architect", "architects": "Architect",
        "specialist": "Specialist", "specialists": "Specialist",
    }

    def __init__(self, rules: Tuple[CriteriaRule, ...] = DEFAULT_RULES):
        self.rules = rules

    @property
    def is_available(self) -> bool:
        return True

    def generate(
        self,
        query: str,
        explicit_company: Optional[str] = None,
        explicit_title: Optional[str] = None,
    ) -> CriteriaBatch:
        status = detect_employment_status(query)

        rule_name = "default"
        companies: List[str] = []
        roles: List[str] = []
        for rule in self.rules:
            matched = rule.match(query)
            if matched is not None:
                rule_name = rule.name
                companies = matched
                roles = list(rule.roles)
                break
        else:
            companies, roles = self._tokenize(query)
            if not companies and not roles and not explicit_company and not explicit_title:
                roles = list(BROAD_ROLES)

        if explicit_company:
            companies.insert(0, explicit_company)
        if explicit_title:
            roles.insert(0, explicit_title)

        criteria = SearchCriteria(
            companies=tuple(companies),
            role_keywords=tuple(roles),
            employment_status=status,
            reasoning=f"Fallback rule '{rule_name}'",
        )
        logger.info(
            "Fallback criteria via rule %s: %d companies, %d roles, status=%s",
            rule_name, len(criteria.companies), len(criteria.role_keywords),
            criteria.employment_status.value,
        )
        return CriteriaBatch(variants=(criteria,), source="fallback")

    def _tokenize(self, query: str) -> Tuple[List[str], List[str]]:
        """Split into company candidates and canonical role keywords."""
        companies: List[str] = []
        roles: List[str] = []
        for token in re.findall(r"[A-Za-z0-9][A-Za-z0-9&.'-]*", query):
            token = token.rstrip(".'-")
            if token.lower().startswith("ex-"):
                # "ex-Salesforce": the status is already detected, keep the name
                token = token[3:]
            if not token:
                continue
            lowered = token.lower()
            if lowered in self.ROLE_WORDS:
                roles.append(self.ROLE_WORDS[lowered])
            elif lowered in self.STOP_WORDS:
                continue
            elif token[0].isupper():
                companies.append(token)
        return companies, roles


# LLM prompt for criteria generation
CRITERIA_PROMPT = """You translate expert-network search requests into structured people-search criteria.
Your ONLY job is to extract company names and job role keywords from the request.

Rules:
1. Extract ONLY companies mentioned or unambiguously implied. Do NOT invent companies.
2. Extract ONLY job titles, seniority levels or functions. No generic keywords.
3. Expand well-known aliases into their members:
   - "Big 5" executive search -> Korn Ferry, Russell Reynolds, Heidrick & Struggles, Spencer Stuart, Egon Zehnder
   - "MBB" or "consulting" -> McKinsey, Bain, BCG
   - IT reseller abbreviations -> CDW, SHI, Insight Enterprises
4. Include 2-3 name variants per company (legal suffixes, short forms), e.g. "SHI" -> "SHI", "SHI International", "SHI International Corp".
5. If no role is mentioned use broad seniority: VP, Director, Manager, Lead, Senior.
6. Employment status: "former" or "ex-" -> "former"; "current" -> "current"; both or neither -> "any".

Return EXACTLY 5 search variations:
1. All companies (with variants) + broad roles
2. Primary 2-3 companies + specific roles from the request
3. Company name variants + executive roles (VP, Director, Chief)
4. Secondary or adjacent companies, or mid-level roles (Manager, Senior, Specialist)
5. Same companies, focused on the requested employment status

Respond with a valid JSON object:
{{
    "searches": [
        {{
            "companies": ["Exact", "Company", "Names"],
            "role_keywords": ["Job", "Title", "Keywords"],
            "employment_status": "current" or "former" or "any",
            "reasoning": "brief explanation"
        }}
    ]
}}

Request: {query}

JSON:"""


class LLMCriteriaGenerator(CriteriaGenerator):
    """Criteria generation through the configured LLM provider."""

    def __init__(self, llm_client: Optional[LLMClient], max_tokens: int = 2000, timeout: float = 30.0):
        self._llm = llm_client
        self._max_tokens = max_tokens
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def generate(
        self,
        query: str,
        explicit_company: Optional[str] = None,
        explicit_title: Optional[str] = None,
    ) -> CriteriaBatch:
        """
        Raises:
            RuntimeError: client unavailable
            ValueError: response does not satisfy the five-variant contract
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        full_query = query
        if explicit_company:
            full_query += f" at {explicit_company}"
        if explicit_title:
            full_query += f" {explicit_title}"

        raw = self._llm.generate(
            CRITERIA_PROMPT.format(query=full_query),
            max_tokens=self._max_tokens,
            timeout=self._timeout,
        )
        return self.parse_response(raw)

    @staticmethod
    def parse_response(raw: str) -> CriteriaBatch:
        data = parse_llm_json(raw)
        searches = data.get("searches")
        if not isinstance(searches, list):
            raise ValueError("response has no 'searches' list")
        if len(searches) != LLM_VARIANT_COUNT:
            raise ValueError(f"expected {LLM_VARIANT_COUNT} variants, got {len(searches)}")

        variants = []
        for i, item in enumerate(searches):
            if not isinstance(item, dict):
                raise ValueError(f"variant {i} is not an object")
            status = str(item.get("employment_status") or "any").strip().lower()
            try:
                employment_status = EmploymentStatus(status)
            except ValueError:
                raise ValueError(f"variant {i} has invalid employment_status {status!r}") from None
            variants.append(SearchCriteria(
                companies=tuple(string_list(item.get("companies"))),
                role_keywords=tuple(string_list(item.get("role_keywords"))),
                employment_status=employment_status,
                reasoning=str(item.get("reasoning") or ""),
            ))

        if variants[0].is_degenerate:
            raise ValueError("primary variant has neither companies nor role keywords")
        return CriteriaBatch(variants=tuple(variants), source="llm")


# ============================================================================
# Extractor
# ============================================================================

class CriteriaExtractor:
    """
    Entry point: LLM generator when available, rule table otherwise.

    Usage:
        extractor = CriteriaExtractor(LLMCriteriaGenerator(llm_client))
        batch = extractor.extract("former Google engineering VPs")
        batch.primary.companies  # ("Google",)
    """

    def __init__(
        self,
        generator: Optional[CriteriaGenerator] = None,
        fallback: Optional[CriteriaGenerator] = None,
    ):
        self._generator = generator
        self._fallback = fallback or RuleBasedCriteriaGenerator()

    @property
    def has_llm(self) -> bool:
        return self._generator is not None and self._generator.is_available

    def extract(
        self,
        query: str,
        explicit_company: Optional[str] = None,
        explicit_title: Optional[str] = None,
    ) -> CriteriaBatch:
        """
        Raises:
            ValueError: blank query
        """
        if not query or not query.strip():
            raise ValueError("query must not be blank")
        query = query.strip()

        if self.has_llm:
            try:
                batch = self._generator.generate(query, explicit_company, explicit_title)
                logger.info("LLM criteria generated: %d variants", len(batch))
                return batch
            except Exception as e:
                logger.warning("LLM criteria generation failed, using fallback: %s", e)

        return self._fallback.generate(query, explicit_company, explicit_title)
