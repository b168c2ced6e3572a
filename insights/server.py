"""
Expert Insights MCP Server.

Transport: stdio.

Expected MCP Tool Return Format:
{
    "ok": bool,
    "results": Any,          # Present if ok is True
    "error": str,            # Present if ok is False
    "error_type": str        # "input" or "store", present if ok is False
}
"""

import argparse
import logging
import os
import signal
from typing import Annotated, Any, Awaitable, Dict, List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from .common.config import load_config, save_config
from .common.schemas import ExpertSearchParams, InterviewSearchParams
from .common.store_client import StoreError
from .retriever.engine import InsightsEngine, expert_suggestions

logger = logging.getLogger("insights.server")

READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False)


async def _envelope(operation: str, call: Awaitable[Any]) -> Dict[str, Any]:
    """Run an engine call and wrap its result or failure in the tool envelope."""
    try:
        return {"ok": True, "results": await call}
    except StoreError as e:
        logger.error("%s failed: %s", operation, e)
        return {"ok": False, "error_type": "store", "error": str(e)}
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        return {"ok": False, "error_type": "input", "error": str(e)}


class MCPServerApp:
    """
    Registers the engine operations as FastMCP tools.

    Tools only validate arguments, call the engine and shape plain dicts;
    all retrieval logic lives in InsightsEngine.
    """

    def __init__(self, engine: InsightsEngine, mcp_server_name: str = "expert_insights") -> None:
        self.engine = engine
        self.mcp = FastMCP(name=mcp_server_name)

        # ---------- MCP Tools: People ---------- #
        @self.mcp.tool(
            name="search_experts",
            description=(
                "Find experts by natural-language description, e.g. 'former Google engineering VPs' "
                "or 'Big 5 executive search partners'. The request is translated into company, role "
                "and employment-status criteria and run against the expert network."
            ),
            annotations=READ_ONLY,
        )
        async def tool_search_experts(
            query: Annotated[str, Field(description="free-form description of the experts to find")],
            current_company: Annotated[Optional[str], Field(description="explicit company filter")] = None,
            current_title: Annotated[Optional[str], Field(description="explicit title filter")] = None,
            limit: Annotated[Optional[int], Field(description="maximum number of experts (1-50), default from config")] = None,
        ) -> Dict[str, Any]:
            async def _run():
                params = ExpertSearchParams(
                    query=query, current_company=current_company, current_title=current_title, limit=limit
                )
                outcome = await self.engine.search_experts(params)
                return {
                    "criteria": outcome.criteria.to_dict(),
                    "criteria_source": outcome.source,
                    "variants_tried": outcome.variants_tried,
                    "total": len(outcome.experts),
                    "experts": [e.to_summary() for e in outcome.experts],
                    "suggestions": expert_suggestions(outcome),
                }
            return await _envelope("search_experts", _run())

        @self.mcp.tool(
            name="fetch_profile",
            description="Get the full profile of one expert by id.",
            annotations=READ_ONLY,
        )
        async def tool_fetch_profile(
            expert_id: Annotated[str, Field(description="expert id from search_experts")],
        ) -> Dict[str, Any]:
            async def _run():
                profile = await self.engine.get_expert_profile(expert_id)
                if profile is None:
                    return {"found": False, "expert_id": expert_id}
                return {"found": True, "profile": profile.model_dump(exclude={"raw"})}
            return await _envelope("fetch_profile", _run())

        @self.mcp.tool(
            name="get_expert_availability",
            description=(
                "Check the scheduling status of experts (available, scheduled, completed, in_vetting, "
                "unavailable), either for given expert ids or for every expert in one pipeline state."
            ),
            annotations=READ_ONLY,
        )
        async def tool_get_expert_availability(
            expert_ids: Annotated[Optional[List[str]], Field(description="expert ids to check")] = None,
            state: Annotated[
                Optional[str],
                Field(description="vetting, ready_to_schedule, scheduled, completed or disqualified"),
            ] = None,
            limit: Annotated[Optional[int], Field(description="maximum experts for a state lookup (1-50)")] = None,
        ) -> Dict[str, Any]:
            return await _envelope(
                "get_expert_availability",
                self.engine.get_expert_availability(expert_ids=expert_ids, state=state, limit=limit),
            )

        @self.mcp.tool(
            name="analyze_expert_pool",
            description=(
                "Analyze a sample of up to 50 experts for a focus area (e.g. 'fintech'): pipeline state, "
                "company, title and location distributions, employment and scheduling rates."
            ),
            annotations=READ_ONLY,
        )
        async def tool_analyze_expert_pool(
            focus_area: Annotated[Optional[str], Field(description="area to focus the sample on")] = None,
        ) -> Dict[str, Any]:
            return await _envelope("analyze_expert_pool", self.engine.analyze_expert_pool(focus_area))

        # ---------- MCP Tools: Interviews ---------- #
        @self.mcp.tool(
            name="search_insights",
            description=(
                "Search prior expert interview answers by topic, expert, date range and minimum "
                "credibility/consensus scores. Long questions are reduced to their key terms."
            ),
            annotations=READ_ONLY,
        )
        async def tool_search_insights(
            question_topic: Annotated[Optional[str], Field(description="topic or question to match")] = None,
            expert_name: Annotated[Optional[str], Field(description="partial expert name")] = None,
            project_id: Annotated[Optional[int], Field(description="project id")] = None,
            date_from: Annotated[Optional[str], Field(description="ISO date, inclusive")] = None,
            date_to: Annotated[Optional[str], Field(description="ISO date, inclusive")] = None,
            min_credibility_score: Annotated[Optional[float], Field(description="0-10")] = None,
            min_consensus_score: Annotated[Optional[float], Field(description="0-10")] = None,
            limit: Annotated[Optional[int], Field(description="maximum number of records (1-100), default from config")] = None,
        ) -> Dict[str, Any]:
            async def _run():
                params = InterviewSearchParams(
                    question_topic=question_topic,
                    expert_name=expert_name,
                    project_id=project_id,
                    date_from=date_from,
                    date_to=date_to,
                    min_credibility_score=min_credibility_score,
                    min_consensus_score=min_consensus_score,
                    limit=limit,
                )
                result = await self.engine.search_interviews(params)
                return result.to_dict()
            return await _envelope("search_insights", _run())

        @self.mcp.tool(
            name="get_full_interview",
            description="Get every question and answer of one interview session, in order.",
            annotations=READ_ONLY,
        )
        async def tool_get_full_interview(
            meeting_id: Annotated[str, Field(description="meeting id of the interview")],
        ) -> Dict[str, Any]:
            async def _run():
                transcript = await self.engine.get_full_interview(meeting_id)
                if not transcript.records:
                    return {"found": False, "meeting_id": meeting_id}
                return {"found": True, **transcript.to_dict()}
            return await _envelope("get_full_interview", _run())

        @self.mcp.tool(
            name="get_expert_interview_history",
            description="List every interview answer given by one expert, most recent first.",
            annotations=READ_ONLY,
        )
        async def tool_get_expert_interview_history(
            expert_id: Annotated[int, Field(description="numeric expert id")],
        ) -> Dict[str, Any]:
            async def _run():
                records = await self.engine.get_expert_interview_history(expert_id)
                return {
                    "expert_id": expert_id,
                    "total_interviews": len(records),
                    "interviews": [
                        r.model_dump(include={
                            "id", "question_text", "answer_summary", "consensus_score",
                            "credibility_score", "completion_score", "created_at", "project_id",
                        })
                        for r in records
                    ],
                }
            return await _envelope("get_expert_interview_history", _run())

        @self.mcp.tool(
            name="get_interview_insights",
            description="Aggregate quality statistics (credibility, consensus, completion) for matching interviews.",
            annotations=READ_ONLY,
        )
        async def tool_get_interview_insights(
            question_topic: Annotated[Optional[str], Field(description="topic or question to match")] = None,
            expert_name: Annotated[Optional[str], Field(description="partial expert name")] = None,
            project_id: Annotated[Optional[int], Field(description="project id")] = None,
            date_from: Annotated[Optional[str], Field(description="ISO date, inclusive")] = None,
            date_to: Annotated[Optional[str], Field(description="ISO date, inclusive")] = None,
            limit: Annotated[int, Field(description="maximum number of records (1-100)")] = 100,
        ) -> Dict[str, Any]:
            async def _run():
                params = InterviewSearchParams(
                    question_topic=question_topic,
                    expert_name=expert_name,
                    project_id=project_id,
                    date_from=date_from,
                    date_to=date_to,
                    limit=limit,
                )
                return await self.engine.get_interview_insights(params)
            return await _envelope("get_interview_insights", _run())

        @self.mcp.tool(
            name="summarize_interviews",
            description="Summarize matching interviews per expert and by recurring question theme.",
            annotations=READ_ONLY,
        )
        async def tool_summarize_interviews(
            question_topic: Annotated[Optional[str], Field(description="topic or question to match")] = None,
            expert_name: Annotated[Optional[str], Field(description="partial expert name")] = None,
            project_id: Annotated[Optional[int], Field(description="project id")] = None,
            focus_area: Annotated[Optional[str], Field(description="what the summary is for")] = None,
            limit: Annotated[int, Field(description="maximum number of records (1-100)")] = 50,
        ) -> Dict[str, Any]:
            async def _run():
                params = InterviewSearchParams(
                    question_topic=question_topic,
                    expert_name=expert_name,
                    project_id=project_id,
                    limit=limit,
                )
                return await self.engine.summarize_interviews(params, focus_area=focus_area)
            return await _envelope("summarize_interviews", _run())

        @self.mcp.tool(
            name="synthesize_interviews",
            description=(
                "Synthesize findings across high-credibility interviews on a topic: key findings, "
                "consensus, disagreement, credibility and implications. Returns the source records "
                "even when AI synthesis is unavailable."
            ),
            annotations=READ_ONLY,
        )
        async def tool_synthesize_interviews(
            query: Annotated[str, Field(description="topic to synthesize")],
            min_credibility_score: Annotated[Optional[float], Field(description="0-10, default 7")] = None,
            limit: Annotated[Optional[int], Field(description="maximum number of records (default 20)")] = None,
        ) -> Dict[str, Any]:
            async def _run():
                report = await self.engine.synthesize_interviews(
                    query, min_credibility_score=min_credibility_score, limit=limit
                )
                return report.to_dict()
            return await _envelope("synthesize_interviews", _run())

        # ---------- MCP Tools: Status ---------- #
        @self.mcp.tool(
            name="engine_status",
            description="Report store connectivity, AI capabilities and retrieval policies.",
            annotations=READ_ONLY,
        )
        async def tool_engine_status() -> Dict[str, Any]:
            return await _envelope("engine_status", self.engine.status())

    def run(self) -> None:
        """Runs the MCP server using stdio transport."""
        self.mcp.run(transport="stdio")


def main(argv: Optional[List[str]] = None) -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Run the Expert Insights MCP server (stdio).")
    parser.add_argument(
        "--server-name",
        default=os.getenv("MCP_SERVER_NAME", "expert_insights"),
        help="Advertised MCP server name.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("INSIGHTS_LOG_LEVEL", "INFO"),
        help="Logging level (logs go to stderr).",
    )
    parser.add_argument(
        "--write-config",
        action="store_true",
        help="Write the effective configuration to ~/.expert-insights/config.json and exit. "
        "Keys taken from the environment are left blank.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    if args.write_config:
        logger.info("Configuration written to %s", save_config(config))
        return

    if not config.stores.interviews_configured:
        logger.warning("Interview store not configured - interview tools will report store errors")
    if not config.stores.experts_configured:
        logger.warning("Experts store not configured - people search will report store errors")

    app = MCPServerApp(InsightsEngine.from_config(config), mcp_server_name=args.server_name)

    def _handle_shutdown(signum, frame):
        raise SystemExit(0)
    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is not None:
            signal.signal(sig, _handle_shutdown)

    app.run()


if __name__ == "__main__":
    main()
