"""
Expert Insights

Query interpretation and retrieval over an expert network: people search
from free-form requests, interview search by topic, and aggregation and
synthesis of interview answers.

Usage:
    from insights.common import load_config
    from insights.retriever import InsightsEngine
    from insights.common.schemas import ExpertSearchParams

    engine = InsightsEngine.from_config(load_config())
    outcome = await engine.search_experts(ExpertSearchParams(query="former Google engineering VPs"))
"""

__version__ = "0.1.0"
