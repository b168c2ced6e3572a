"""
Request Schemas

Validated inputs for the engine operations. Anything that fails validation is
rejected before an LLM or store call is attempted.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ExpertSearchParams(BaseModel):
    """People search request"""
    query: str = Field(..., min_length=1, description="Free-form description of the experts to find")
    current_company: Optional[str] = Field(default=None, description="Explicit company filter")
    current_title: Optional[str] = Field(default=None, description="Explicit title filter")
    limit: Optional[int] = Field(default=None, ge=1, le=50, description="Defaults to the configured expert_limit")

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be blank")
        return value.strip()

    @field_validator("current_company", "current_title")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()


class InterviewSearchParams(BaseModel):
    """Interview corpus search request. All filters are optional and ANDed."""
    question_topic: Optional[str] = None
    expert_name: Optional[str] = None
    project_id: Optional[int] = None
    date_from: Optional[str] = Field(default=None, description="ISO date, inclusive")
    date_to: Optional[str] = Field(default=None, description="ISO date, inclusive")
    min_consensus_score: Optional[float] = Field(default=None, ge=0, le=10)
    min_credibility_score: Optional[float] = Field(default=None, ge=0, le=10)
    limit: Optional[int] = Field(default=None, ge=1, le=100, description="Defaults to the configured interview_limit")

    @field_validator("question_topic", "expert_name", "date_from", "date_to")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()
