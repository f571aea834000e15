"""
LLM-based WhatsApp agent using the OpenAI API.
Answers prospective tenants, and registers leads, sends the folder and the tour
video, books visits or calls a human through tool calling.

A turn is a bounded two-phase protocol: one planning completion (tools
offered), at most one round of tool execution, then one final completion
(no tools) that narrates the tool outcomes.
"""

import enum
from typing import Any, Dict, List, Optional

from openai import OpenAI
from sqlalchemy.orm import Session

from kitbot import database
from kitbot.calendar_service import calendar_service
from kitbot.config import config
from kitbot.db_models import MessageRole
from kitbot.language import get_text
from kitbot.language.messages_pt import (
    ADDRESS,
    MAPS_LINK,
    SYSTEM_PROMPT_TEMPLATE,
    VISITING_HOURS,
    format_business_rules,
)
from kitbot.logging_config import get_logger
from kitbot.metrics import agent_turns_total
from kitbot.models import AvailableUnit
from kitbot.services import ConversationService, KitnetGateway, LeadService
from kitbot.tools import TOOLS, CalendarSync, MediaSender, ToolContext, execute_tool_call

logger = get_logger(__name__)

# Initialize OpenAI client (will be None if API key not configured)
client = OpenAI(
    api_key=config.OPENAI_API_KEY,
    timeout=config.OPENAI_TIMEOUT_SECONDS,
    max_retries=config.OPENAI_MAX_RETRIES,
) if config.OPENAI_API_KEY else None


class TurnState(str, enum.Enum):
    """Phases of one turn."""
    AWAITING_PLAN = "awaiting_plan"
    EXECUTING_TOOLS = "executing_tools"
    AWAITING_FINAL = "awaiting_final"
    DONE = "done"


# No edge leads back to AWAITING_PLAN: a turn has at most one tool round.
_TRANSITIONS = {
    TurnState.AWAITING_PLAN: {TurnState.EXECUTING_TOOLS, TurnState.DONE},
    TurnState.EXECUTING_TOOLS: {TurnState.AWAITING_FINAL},
    TurnState.AWAITING_FINAL: {TurnState.DONE},
    TurnState.DONE: set(),
}


def format_price(value: Optional[float]) -> str:
    """Format a price as 500.00; a missing price formats as 0.00."""
    try:
        return f"{float(value or 0):.2f}"
    except (TypeError, ValueError):
        return "0.00"


def build_system_prompt(
    available: List[AvailableUnit],
    reference_price: Optional[float],
    user_name: str,
    user_phone: str,
) -> str:
    """Build the system prompt from live availability and the fixed business facts."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        address=ADDRESS,
        maps_link=MAPS_LINK,
        availability=get_text("availability_yes") if available else get_text("availability_no"),
        price=format_price(reference_price),
        user_name=user_name,
        user_phone=user_phone,
        unknown_name=get_text("unknown_name"),
        business_rules=format_business_rules(),
        visiting_hours=VISITING_HOURS,
    )


def fallback_reply(db: Session) -> str:
    """Deterministic reply used when the model path fails. Never touches the message store."""
    available = KitnetGateway.list_available(db)
    if available:
        price = KitnetGateway.reference_price(db, available)
        return get_text("fallback_available", price=format_price(price))
    return get_text("fallback_waitlist")


class AgentTurn:
    """One inbound message -> outbound reply cycle for a single sender."""

    def __init__(self, db: Session, sender_id: str, media_sender: MediaSender, calendar: CalendarSync):
        self.db = db
        self.sender_id = sender_id
        self.media_sender = media_sender
        self.calendar = calendar
        self.state = TurnState.AWAITING_PLAN
        self.tool_names: List[str] = []

    def _advance(self, new_state: TurnState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal turn transition {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _complete(self, messages: List[Dict[str, Any]], with_tools: bool):
        if client is None:
            raise RuntimeError("OpenAI API key is not configured")

        kwargs: Dict[str, Any] = {
            "model": config.OPENAI_MODEL,
            "messages": messages,
            "temperature": config.OPENAI_TEMPERATURE,
            "max_tokens": config.OPENAI_MAX_TOKENS,
        }
        if with_tools:
            kwargs["tools"] = TOOLS
            kwargs["tool_choice"] = "auto"

        response = client.chat.completions.create(**kwargs)
        return response.choices[0].message

    def _resolve_user_name(self) -> str:
        try:
            lead = LeadService.get_lead_by_phone(self.db, self.sender_id)
        except Exception as e:
            self.db.rollback()
            logger.error("lead_lookup_failed", sender_id=self.sender_id, error=str(e))
            lead = None
        if lead and lead.name:
            return lead.name
        return get_text("unknown_name")

    def run(self, user_text: str) -> Optional[str]:
        user_name = self._resolve_user_name()

        available = KitnetGateway.list_available(self.db)
        reference_price = KitnetGateway.reference_price(self.db, available)
        system_prompt = build_system_prompt(available, reference_price, user_name, self.sender_id)

        # Saved before reading, so the window always ends with this message.
        ConversationService.save_message(self.db, self.sender_id, MessageRole.USER, user_text)
        window = ConversationService.recent_messages(self.db, self.sender_id, limit=config.HISTORY_WINDOW)
        messages: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        messages.extend(ConversationService.as_chat_messages(window))

        plan = self._complete(messages, with_tools=True)
        tool_calls = list(plan.tool_calls or [])

        if not tool_calls:
            self._advance(TurnState.DONE)
            reply = plan.content or get_text("default_greeting")
        else:
            self._advance(TurnState.EXECUTING_TOOLS)
            messages.append({
                "role": "assistant",
                "content": plan.content,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.function.name, "arguments": call.function.arguments},
                    }
                    for call in tool_calls
                ],
            })

            ctx = ToolContext(
                db=self.db,
                sender_id=self.sender_id,
                media_sender=self.media_sender,
                calendar=self.calendar,
            )
            # Sequential on purpose: later tools see what earlier ones wrote.
            for call in tool_calls:
                result = execute_tool_call(ctx, call.function.name, call.function.arguments)
                self.tool_names.append(call.function.name)
                messages.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": result.detail,
                })

            self._advance(TurnState.AWAITING_FINAL)
            final = self._complete(messages, with_tools=False)
            self._advance(TurnState.DONE)
            reply = final.content

        if reply:
            ConversationService.save_message(self.db, self.sender_id, MessageRole.ASSISTANT, reply)
        return reply or None


def handle_turn(
    user_text: str,
    sender_id: str,
    media_sender: MediaSender,
    *,
    db: Optional[Session] = None,
    calendar: Optional[CalendarSync] = None,
) -> Optional[str]:
    """
    Process one inbound message and return the reply to send.

    Args:
        user_text: Text of the message (or the transcription of an audio)
        sender_id: Sender phone; identifies the conversation and the lead
        media_sender: Transport callback used by tools that send files
        db: Session to use; a new one is opened (and closed) when omitted
        calendar: Calendar collaborator; defaults to the Google Calendar service

    Returns:
        The reply text, or None when the final completion came back empty.
        Never raises: any failure yields the deterministic fallback reply.
    """
    owns_session = db is None
    if owns_session:
        db = database.SessionLocal()

    turn = AgentTurn(db, sender_id, media_sender, calendar or calendar_service)
    try:
        reply = turn.run(user_text)
        agent_turns_total.labels(outcome="tools" if turn.tool_names else "reply").inc()
        logger.info("agent_turn_completed", sender_id=sender_id, tools=turn.tool_names, replied=reply is not None)
        return reply
    except Exception as e:
        logger.error("agent_turn_failed", sender_id=sender_id, state=turn.state.value, error=str(e))
        agent_turns_total.labels(outcome="fallback").inc()
        try:
            db.rollback()
            return fallback_reply(db)
        except Exception as fallback_error:
            logger.error("fallback_reply_failed", error=str(fallback_error))
            return get_text("fallback_waitlist")
    finally:
        if owns_session:
            db.close()
