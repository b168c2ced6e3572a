"""
Record Schemas

Read-only snapshots of rows from the two record stores. The engine never
creates or mutates these; lifecycle belongs to the stores.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Interview corpus
# ============================================================================

class InterviewRecord(BaseModel):
    """One question/answer row of an expert interview."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Optional[int] = None
    created_at: Optional[str] = None
    project_id: Optional[int] = None
    call_id: Optional[int] = None
    meeting_id: Optional[str] = Field(default=None, description="Session identifier grouping one transcript")
    expert_id: Optional[int] = None
    expert_name: Optional[str] = None
    question_text: Optional[str] = None
    answer_summary: Optional[str] = None
    expert_profile: Optional[str] = None
    credibility_score: Optional[float] = Field(default=None, description="0-10")
    credibility_rationale: Optional[str] = None
    consensus_score: Optional[float] = Field(default=None, description="0-10")
    consensus_rationale: Optional[str] = None
    completion_score: Optional[float] = Field(default=None, description="0-1")

    @field_validator("meeting_id", mode="before")
    @classmethod
    def _meeting_id_as_text(cls, value):
        # Zoom meeting ids arrive as numbers from some ingest paths
        return None if value is None else str(value)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "InterviewRecord":
        return cls.model_validate(row)

    @property
    def session_id(self) -> Optional[str]:
        return self.meeting_id

    def to_source(self) -> Dict[str, Any]:
        """Compact form used in synthesis prompts and tool output."""
        return {
            "expert": self.expert_name,
            "question": self.question_text,
            "answer": self.answer_summary,
            "credibility_score": self.credibility_score,
            "consensus_score": self.consensus_score,
        }


# ============================================================================
# People corpus
# ============================================================================

class ProfileRecord(BaseModel):
    """Snapshot of an expert's profile."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    full_name: Optional[str] = None
    current_company: Optional[str] = None
    current_title: Optional[str] = None
    current_start_year: Optional[int] = None
    recent_companies: List[str] = Field(default_factory=list)
    recent_titles: List[str] = Field(default_factory=list)
    all_companies: List[str] = Field(default_factory=list)
    is_currently_employed: Optional[bool] = None
    background_summary: Optional[str] = None
    searchable_text: Optional[str] = None
    relevant_job_history: Optional[str] = None
    location: Optional[str] = None
    state: Optional[str] = Field(default=None, description="Pipeline state, e.g. vetting or scheduled")
    qa_passed: Optional[bool] = None
    call_booked: Optional[bool] = None
    confirmed_time: Optional[str] = None
    next_action_at: Optional[str] = None
    linkedin_url: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value):
        return str(value)

    @field_validator("recent_companies", "recent_titles", "all_companies", mode="before")
    @classmethod
    def _null_list(cls, value):
        return value or []

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ProfileRecord":
        return cls.model_validate({**row, "raw": row})

    @property
    def background(self) -> str:
        """Best available free-text background, whitespace-collapsed."""
        text = self.searchable_text or self.background_summary or self.relevant_job_history or ""
        return " ".join(text.split())

    def to_summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "current_title": self.current_title,
            "current_company": self.current_company,
            "is_currently_employed": self.is_currently_employed,
            "career": self.recent_companies[:3],
            "background": self.background[:200],
        }
