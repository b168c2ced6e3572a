"""
Expert Insights Schemas

Store record snapshots and validated request parameters.
"""

from .records import InterviewRecord, ProfileRecord
from .requests import ExpertSearchParams, InterviewSearchParams

__all__ = [
    "InterviewRecord",
    "ProfileRecord",
    "ExpertSearchParams",
    "InterviewSearchParams",
]
