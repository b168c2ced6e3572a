"""
Expert Pool

Scheduling availability and composition statistics over expert profiles.
Both are pure functions of ProfileRecord snapshots; the engine fetches the
profiles.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..common.schemas import ProfileRecord

EXPERT_STATES = ("vetting", "ready_to_schedule", "scheduled", "completed", "disqualified")
TOP_VALUES = 10
POOL_SAMPLE_SIZE = 50


def availability_status(profile: ProfileRecord) -> str:
    """
    available    ready to schedule and no call booked yet
    scheduled    call on the calendar
    completed    interview done
    in_vetting   still being vetted
    unavailable  anything else (disqualified, booked but not scheduled, unknown)
    """
    if profile.state == "ready_to_schedule" and not profile.call_booked:
        return "available"
    return {
        "scheduled": "scheduled",
        "completed": "completed",
        "vetting": "in_vetting",
    }.get(profile.state or "", "unavailable")


def availability_entry(profile: ProfileRecord) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "full_name": profile.full_name,
        "state": profile.state,
        "call_booked": profile.call_booked,
        "confirmed_time": profile.confirmed_time,
        "next_action_at": profile.next_action_at,
        "availability_status": availability_status(profile),
    }


def _top(values: Iterable[Optional[str]]) -> Dict[str, int]:
    return dict(Counter(v for v in values if v).most_common(TOP_VALUES))


def _rate(part: int, whole: int) -> str:
    if not whole:
        return "N/A"
    return f"{part / whole * 100:.1f}%"


def analyze_pool(profiles: List[ProfileRecord], focus_area: Optional[str] = None) -> Dict[str, Any]:
    """
    Distributions (top 10 by frequency, ties in first-seen order), employment
    counts, scheduling counts and headline rates for a profile sample.
    """
    states = Counter(p.state or "unknown" for p in profiles)
    employed = sum(1 for p in profiles if p.is_currently_employed is True)
    not_employed = sum(1 for p in profiles if p.is_currently_employed is False)
    scheduling = {
        "qa_passed": sum(1 for p in profiles if p.qa_passed),
        "ready_to_schedule": states.get("ready_to_schedule", 0),
        "calls_booked": sum(1 for p in profiles if p.call_booked),
        "completed_interviews": states.get("completed", 0),
    }
    companies = _top(p.current_company for p in profiles)
    titles = _top(p.current_title for p in profiles)

    return {
        "overview": {
            "total_analyzed": len(profiles),
            "focus_area": focus_area or "General pool",
            "analysis_date": datetime.now(timezone.utc).isoformat(),
        },
        "state_distribution": dict(states.most_common()),
        "company_distribution": companies,
        "title_distribution": titles,
        "location_distribution": _top(p.location for p in profiles),
        "employment_status": {
            "currently_employed": employed,
            "not_employed": not_employed,
            "unknown": len(profiles) - employed - not_employed,
        },
        "scheduling_metrics": scheduling,
        "insights": {
            "most_common_state": states.most_common(1)[0][0] if states else None,
            "top_company": next(iter(companies), None),
            "top_title": next(iter(titles), None),
            "employment_rate": _rate(employed, len(profiles)),
            "qa_pass_rate": _rate(scheduling["qa_passed"], len(profiles)),
            "interview_completion_rate": _rate(
                scheduling["completed_interviews"], scheduling["calls_booked"]
            ),
        },
    }
