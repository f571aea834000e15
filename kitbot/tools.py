"""
Tools the model can call during a turn, and their executors.

Every executor performs one side effect and reports back a ToolResult; none of
them raises. The detail string is what the model reads on its second call.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Union

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from kitbot import pdf_service
from kitbot.calendar_service import parse_visit_datetime
from kitbot.language import get_text, get_tool_detail
from kitbot.language.messages_pt import VISITING_HOURS
from kitbot.logging_config import get_logger
from kitbot.metrics import agent_tool_calls_total, human_handoff_requests_total
from kitbot.models import (
    InvalidToolCall,
    RegisterLeadArgs,
    RequestHumanArgs,
    ScheduleVisitArgs,
    SendInfoFolderArgs,
    SendTourVideoArgs,
    ToolArguments,
    ToolResult,
)
from kitbot.services import KitnetGateway, LeadService, VisitService

logger = get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"
VIDEO_MIME_TYPE = "video/mp4"

# Tool definitions for OpenAI tool calling.
# This is a wire contract with the model: names, required fields and enums must not drift.
TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "register_lead",
            "description": "Register or update the prospective tenant when they give their name or show interest in renting",
            "parameters": {
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "The user's name, only if they said it"
                    },
                    "interesse": {
                        "type": "string",
                        "enum": ["curiosidade", "visita", "alugar"],
                        "description": "Interest level: just asking, wants to visit, wants to rent"
                    },
                    "kitnet_interesse": {
                        "type": "integer",
                        "description": "Unit number the user asked about, if any"
                    }
                },
                "required": ["interesse"]
            }
        }
    },
    {
        "type": "function",
        "function": {
            "name": "send_info_folder",
            "description": "Send the printable PDF folder with prices, rules and address. Call immediately when the user asks for the folder or printable information",
            "parameters": {"type": "object", "properties": {}}
        }
    },
    {
        "type": "function",
        "function": {
            "name": "send_tour_video",
            "description": "Send the tour video of the kitnet when the user asks for a video, photos or a tour",
            "parameters": {"type": "object", "properties": {}}
        }
    },
    {
        "type": "function",
        "function": {
            "name": "schedule_visit",
            "description": "Book a visit once the user has chosen a date and time",
            "parameters": {
                "type": "object",
                "properties": {
                    "data_horario": {
                        "type": "string",
                        "description": "Visit date and time, preferably ISO 8601 (YYYY-MM-DDTHH:MM)"
                    }
                },
                "required": ["data_horario"]
            }
        }
    },
    {
        "type": "function",
        "function": {
            "name": "request_human",
            "description": "Flag the conversation for the owner when the user asks for a person or you cannot help",
            "parameters": {
                "type": "object",
                "properties": {
                    "motivo": {
                        "type": "string",
                        "description": "Short reason for the handoff"
                    }
                }
            }
        }
    },
]

TOOL_NAMES = frozenset(tool["function"]["name"] for tool in TOOLS)

_ARGUMENTS = TypeAdapter(ToolArguments)


class MediaSender(Protocol):
    """Transport capability used to deliver files to the user."""

    def __call__(
        self,
        sender_id: str,
        file_path: str,
        mime_type: str,
        file_name: str,
        caption: Optional[str],
    ) -> None:
        ...


class CalendarSync(Protocol):
    def check_availability(self, date_time: str) -> bool:
        ...

    def create_event(self, phone: str, date_time: str, name: Optional[str] = None) -> Optional[str]:
        ...


@dataclass
class ToolContext:
    """Everything an executor may touch during one turn."""
    db: Session
    sender_id: str
    media_sender: MediaSender
    calendar: CalendarSync


def parse_tool_call(name: str, raw_arguments: Optional[str]) -> Union[RegisterLeadArgs, SendInfoFolderArgs,
                                                                      SendTourVideoArgs, ScheduleVisitArgs,
                                                                      RequestHumanArgs, InvalidToolCall]:
    """Validate a model-emitted tool call against the argument schema of its tool."""
    if name not in TOOL_NAMES:
        return InvalidToolCall(tool=name or "", error="unknown tool")

    text = (raw_arguments or "").strip()
    try:
        payload: Any = json.loads(text) if text else {}
    except json.JSONDecodeError as e:
        return InvalidToolCall(tool=name, error=f"invalid JSON ({e.msg})")

    if not isinstance(payload, dict):
        return InvalidToolCall(tool=name, error="arguments must be a JSON object")

    try:
        return _ARGUMENTS.validate_python({**payload, "tool": name})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'arguments'}: {err['msg']}" for err in e.errors()
        )
        return InvalidToolCall(tool=name, error=problems)


def register_lead(ctx: ToolContext, args: RegisterLeadArgs) -> ToolResult:
    try:
        LeadService.upsert_lead(
            ctx.db,
            ctx.sender_id,
            name=args.name,
            interest_level=args.interesse,
            interested_unit=args.kitnet_interesse,
        )
    except Exception as e:
        ctx.db.rollback()
        logger.error("register_lead_failed", sender_id=ctx.sender_id, error=str(e))
        return ToolResult(ok=False, detail=get_tool_detail("lead_failed"))

    return ToolResult(ok=True, detail=get_tool_detail("lead_registered"))


def send_info_folder(ctx: ToolContext, args: SendInfoFolderArgs) -> ToolResult:
    try:
        path = pdf_service.generate_info_folder()
    except Exception as e:
        logger.error("info_folder_generation_failed", error=str(e))
        return ToolResult(ok=False, detail=get_tool_detail("folder_generation_failed"))

    try:
        ctx.media_sender(
            ctx.sender_id,
            path,
            PDF_MIME_TYPE,
            get_text("folder_file_name"),
            get_text("folder_caption"),
        )
    except Exception as e:
        logger.error("info_folder_dispatch_failed", sender_id=ctx.sender_id, error=str(e))
        return ToolResult(ok=False, detail=get_tool_detail("folder_dispatch_failed"))
    finally:
        _discard(path)

    logger.info("info_folder_sent", sender_id=ctx.sender_id)
    return ToolResult(ok=True, detail=get_tool_detail("folder_sent"))


def send_tour_video(ctx: ToolContext, args: SendTourVideoArgs) -> ToolResult:
    path = KitnetGateway.tour_video_path(ctx.db)
    if not os.path.exists(path):
        logger.warning("tour_video_not_found", path=path)
        return ToolResult(ok=False, detail=get_tool_detail("video_not_found"))

    try:
        ctx.media_sender(
            ctx.sender_id,
            path,
            VIDEO_MIME_TYPE,
            get_text("video_file_name"),
            get_text("video_caption"),
        )
    except Exception as e:
        logger.error("tour_video_dispatch_failed", sender_id=ctx.sender_id, error=str(e))
        return ToolResult(ok=False, detail=get_tool_detail("video_dispatch_failed"))

    logger.info("tour_video_sent", sender_id=ctx.sender_id, path=path)
    return ToolResult(ok=True, detail=get_tool_detail("video_sent"))


def schedule_visit(ctx: ToolContext, args: ScheduleVisitArgs) -> ToolResult:
    requested = args.data_horario.strip()
    if not requested:
        return ToolResult(ok=False, detail=get_tool_detail("visit_invalid_time"))

    # Only a parseable time can be checked; free text is still recorded for the owner.
    if parse_visit_datetime(requested) is not None:
        try:
            free = ctx.calendar.check_availability(requested)
        except Exception as e:
            logger.error("visit_availability_check_failed", error=str(e))
            free = True
        if not free:
            return ToolResult(
                ok=False,
                detail=get_tool_detail("visit_slot_busy", data_horario=requested, visiting_hours=VISITING_HOURS),
            )

    try:
        visit = VisitService.create_visit(ctx.db, ctx.sender_id, requested)
        lead = LeadService.get_lead_by_phone(ctx.db, ctx.sender_id)
    except Exception as e:
        ctx.db.rollback()
        logger.error("visit_insert_failed", sender_id=ctx.sender_id, error=str(e))
        return ToolResult(ok=False, detail=get_tool_detail("visit_unavailable"))

    try:
        link = ctx.calendar.create_event(ctx.sender_id, requested, name=lead.name if lead else None)
    except Exception as e:
        logger.error("visit_calendar_sync_failed", sender_id=ctx.sender_id, error=str(e))
        link = None

    if not link:
        logger.info("visit_saved_locally", visit_id=visit.id)
        return ToolResult(ok=True, detail=get_tool_detail("visit_booked_local_only", data_horario=requested))

    try:
        VisitService.attach_calendar_link(ctx.db, visit.id, link)
    except Exception as e:
        ctx.db.rollback()
        logger.warning("visit_calendar_link_not_saved", visit_id=visit.id, error=str(e))

    return ToolResult(ok=True, detail=get_tool_detail("visit_booked_calendar", data_horario=requested))


def request_human(ctx: ToolContext, args: RequestHumanArgs) -> ToolResult:
    logger.warning("human_handoff_requested", sender_id=ctx.sender_id, reason=args.motivo)
    human_handoff_requests_total.inc()
    return ToolResult(ok=True, detail=get_tool_detail("human_requested"))


EXECUTORS: Dict[str, Callable[[ToolContext, Any], ToolResult]] = {
    "register_lead": register_lead,
    "send_info_folder": send_info_folder,
    "send_tour_video": send_tour_video,
    "schedule_visit": schedule_visit,
    "request_human": request_human,
}


def execute_tool_call(ctx: ToolContext, name: str, raw_arguments: Optional[str]) -> ToolResult:
    """Parse, dispatch and run one tool call. Never raises."""
    parsed = parse_tool_call(name, raw_arguments)

    if isinstance(parsed, InvalidToolCall):
        logger.warning("tool_arguments_invalid", tool=parsed.tool, error=parsed.error)
        result = ToolResult(
            ok=False,
            detail=get_tool_detail("invalid_arguments", tool=parsed.tool, error=parsed.error),
        )
        label = "invalid"
    else:
        label = parsed.tool
        try:
            result = EXECUTORS[parsed.tool](ctx, parsed)
        except Exception as e:
            logger.error("tool_execution_failed", tool=parsed.tool, error=str(e))
            result = ToolResult(ok=False, detail=get_tool_detail("tool_failed"))

    agent_tool_calls_total.labels(tool=label, ok=str(result.ok).lower()).inc()
    logger.info("tool_executed", tool=label, ok=result.ok)
    return result


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except OSError as e:
        logger.warning("temp_file_not_removed", path=path, error=str(e))
