"""
Tests for the agent turn: context building, the two-phase tool protocol and
the fallback reply.
"""

import json
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from kitbot import agent
from kitbot.db_models import DBConversationMessage, DBLead, DBVisit, MessageRole
from kitbot.language import get_text
from kitbot.services import ConversationService, LeadService
from kitbot.tools import TOOLS

from conftest import completion, tool_call


PHONE = "5548999990000"


def _stored(db):
    rows = db.query(DBConversationMessage).order_by(DBConversationMessage.id).all()
    return [(row.role, row.content) for row in rows]


def test_build_system_prompt_with_units():
    from kitbot.models import AvailableUnit

    units = [AvailableUnit(unit_number=3, price=500, status="livre")]
    prompt = agent.build_system_prompt(units, 500, "Alice", PHONE)

    assert get_text("availability_yes") in prompt
    assert "500.00" in prompt
    assert "Alice" in prompt
    assert PHONE in prompt


def test_format_price():
    assert agent.format_price(500) == "500.00"
    assert agent.format_price(None) == "0.00"
    assert agent.format_price("abc") == "0.00"


def test_plain_reply_is_saved_after_user_message(db_session, install_llm, media_sender, fake_calendar):
    fake = install_llm(completion("Olá! Temos sim."))

    reply = agent.handle_turn("oi, tem kitnet?", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert reply == "Olá! Temos sim."
    assert len(fake.calls) == 1
    assert fake.calls[0]["tools"] == TOOLS
    assert fake.calls[0]["tool_choice"] == "auto"
    assert _stored(db_session) == [
        (MessageRole.USER, "oi, tem kitnet?"),
        (MessageRole.ASSISTANT, "Olá! Temos sim."),
    ]


def test_empty_plan_without_tools_uses_default_greeting(db_session, install_llm, media_sender, fake_calendar):
    install_llm(completion(None))

    reply = agent.handle_turn("oi", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert reply == get_text("default_greeting")


def test_context_window_ends_with_current_message(db_session, install_llm, media_sender, fake_calendar):
    """The window is chronological and its newest entry is the message just received."""
    for i in range(6):
        ConversationService.save_message(db_session, PHONE, MessageRole.USER, f"pergunta {i}")
        ConversationService.save_message(db_session, PHONE, MessageRole.ASSISTANT, f"resposta {i}")
    fake = install_llm(completion("ok"))

    agent.handle_turn("última pergunta", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    messages = fake.calls[0]["messages"]
    assert messages[0]["role"] == "system"
    history = messages[1:]
    assert len(history) == 10
    assert history[-1] == {"role": "user", "content": "última pergunta"}
    assert [m["content"] for m in history[:-1]] == [
        "resposta 1",
        "pergunta 2", "resposta 2",
        "pergunta 3", "resposta 3",
        "pergunta 4", "resposta 4",
        "pergunta 5", "resposta 5",
    ]


def test_known_lead_name_goes_into_prompt(db_session, install_llm, media_sender, fake_calendar):
    LeadService.upsert_lead(db_session, PHONE, name="Marina")
    fake = install_llm(completion("Oi Marina!"))

    agent.handle_turn("oi", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert "Marina" in fake.calls[0]["messages"][0]["content"]


def test_folder_request_sends_pdf(db_session, install_llm, media_sender, fake_calendar, add_kitnet):
    add_kitnet(1, 500)
    fake = install_llm(
        completion(None, [tool_call("call_1", "send_info_folder", "{}")]),
        completion("Pronto, enviei o folder!"),
    )

    reply = agent.handle_turn("quero o folder", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert reply == "Pronto, enviei o folder!"
    assert len(media_sender.calls) == 1
    assert media_sender.calls[0]["mime_type"] == "application/pdf"
    assert media_sender.calls[0]["file_name"] == get_text("folder_file_name")

    # Second call has no tools and carries the assistant tool_calls plus the tool result.
    final_call = fake.calls[1]
    assert "tools" not in final_call
    assistant_msg, tool_msg = final_call["messages"][-2:]
    assert assistant_msg["role"] == "assistant"
    assert assistant_msg["tool_calls"][0]["id"] == "call_1"
    assert tool_msg["role"] == "tool"
    assert tool_msg["tool_call_id"] == "call_1"

    assert _stored(db_session) == [
        (MessageRole.USER, "quero o folder"),
        (MessageRole.ASSISTANT, "Pronto, enviei o folder!"),
    ]


def test_register_and_schedule_in_one_turn(db_session, install_llm, media_sender, fake_calendar):
    install_llm(
        completion(None, [
            tool_call("call_1", "register_lead", json.dumps({"name": "Carlos", "interesse": "visita"})),
            tool_call("call_2", "schedule_visit", json.dumps({"data_horario": "10 às 14h"})),
        ]),
        completion("Obrigado, Carlos! Sua visita ficou marcada para dia 10 às 14h."),
    )

    reply = agent.handle_turn(
        "meu nome é Carlos, quero visitar dia 10 às 14h", PHONE, media_sender, db=db_session, calendar=fake_calendar
    )

    assert "Carlos" in reply and "14h" in reply
    lead = db_session.query(DBLead).filter(DBLead.phone == PHONE).one()
    assert lead.name == "Carlos"
    assert lead.interest_level == "visita"
    visit = db_session.query(DBVisit).one()
    assert visit.requested_datetime == "10 às 14h"
    assert visit.calendar_link == fake_calendar.link
    # schedule_visit ran after register_lead and saw its lead.
    assert fake_calendar.events == [{"phone": PHONE, "date_time": "10 às 14h", "name": "Carlos"}]


def test_no_units_prompt_says_so(db_session, install_llm, media_sender, fake_calendar):
    fake = install_llm(completion("No momento estamos lotados."))

    agent.handle_turn("tem vaga?", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    system_prompt = fake.calls[0]["messages"][0]["content"]
    assert get_text("availability_no") in system_prompt
    assert get_text("availability_yes") not in system_prompt
    assert "0.00" in system_prompt


def test_model_failure_falls_back_with_available_units(db_session, install_llm, media_sender, fake_calendar, add_kitnet):
    add_kitnet(2, 650)
    install_llm(RuntimeError("model down"))

    reply = agent.handle_turn("oi", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert reply == get_text("fallback_available", price="650.00")
    # The fallback is not written to the history.
    assert _stored(db_session) == [(MessageRole.USER, "oi")]


def test_model_failure_falls_back_without_units(db_session, install_llm, media_sender, fake_calendar):
    install_llm(RuntimeError("model down"))

    reply = agent.handle_turn("oi", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert reply == get_text("fallback_waitlist")
    assert reply != get_text("fallback_available", price="0.00")


def test_missing_api_key_falls_back(db_session, media_sender, fake_calendar):
    # The autouse config fixture leaves agent.client as None.
    reply = agent.handle_turn("oi", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert reply == get_text("fallback_waitlist")


def test_tool_database_outage_still_replies(db_session, install_llm, media_sender, fake_calendar, monkeypatch):
    def _outage(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("database is down"))

    monkeypatch.setattr(LeadService, "upsert_lead", _outage)
    fake = install_llm(
        completion(None, [tool_call("call_1", "register_lead", json.dumps({"interesse": "alugar"}))]),
        completion("Anotado!"),
    )

    reply = agent.handle_turn("quero alugar", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert reply == "Anotado!"
    assert fake.calls[1]["messages"][-1]["content"] == "Não foi possível registrar o contato agora. Continue o atendimento normalmente."


def test_message_store_outage_returns_fallback(db_session, install_llm, media_sender, fake_calendar, monkeypatch):
    def _outage(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("database is down"))

    monkeypatch.setattr(ConversationService, "save_message", _outage)
    fake = install_llm(completion("nunca chega"))

    reply = agent.handle_turn("oi", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert reply == get_text("fallback_waitlist")
    assert fake.calls == []


def test_invalid_tool_arguments_are_reported_to_model(db_session, install_llm, media_sender, fake_calendar):
    fake = install_llm(
        completion(None, [tool_call("call_1", "register_lead", "{not json")]),
        completion("Como posso ajudar?"),
    )

    reply = agent.handle_turn("oi", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert reply == "Como posso ajudar?"
    assert "register_lead" in fake.calls[1]["messages"][-1]["content"]
    assert db_session.query(DBLead).count() == 0


def test_empty_final_reply_returns_none(db_session, install_llm, media_sender, fake_calendar):
    install_llm(
        completion(None, [tool_call("call_1", "request_human", json.dumps({"motivo": "negociar preço"}))]),
        completion(""),
    )

    reply = agent.handle_turn("quero falar com o dono", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert reply is None
    assert _stored(db_session) == [(MessageRole.USER, "quero falar com o dono")]


def test_at_most_one_tool_round(db_session, install_llm, media_sender, fake_calendar):
    """Tool calls in the final completion are ignored; only two model calls are made."""
    fake = install_llm(
        completion(None, [tool_call("call_1", "request_human", "{}")]),
        completion("Um atendente vai falar com você.", [tool_call("call_2", "send_info_folder", "{}")]),
    )

    reply = agent.handle_turn("socorro", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    assert reply == "Um atendente vai falar com você."
    assert len(fake.calls) == 2
    assert media_sender.calls == []


@patch("kitbot.agent.client")
def test_completion_uses_configured_model(mock_client, db_session, media_sender, fake_calendar):
    mock_client.chat.completions.create.return_value = completion("Oi!")

    agent.handle_turn("oi", PHONE, media_sender, db=db_session, calendar=fake_calendar)

    kwargs = mock_client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == agent.config.OPENAI_MODEL
    assert kwargs["max_tokens"] == agent.config.OPENAI_MAX_TOKENS


def test_turn_state_rejects_illegal_transition(db_session, media_sender, fake_calendar):
    turn = agent.AgentTurn(db_session, PHONE, media_sender, fake_calendar)

    with pytest.raises(RuntimeError):
        turn._advance(agent.TurnState.AWAITING_FINAL)

    turn._advance(agent.TurnState.EXECUTING_TOOLS)
    turn._advance(agent.TurnState.AWAITING_FINAL)
    turn._advance(agent.TurnState.DONE)
    with pytest.raises(RuntimeError):
        turn._advance(agent.TurnState.EXECUTING_TOOLS)


def test_handle_turn_opens_and_closes_its_own_session(db_session, install_llm, media_sender, fake_calendar, monkeypatch):
    closed = []
    monkeypatch.setattr(db_session, "close", lambda: closed.append(True))
    monkeypatch.setattr(agent.database, "SessionLocal", lambda: db_session)
    install_llm(completion("Oi!"))

    assert agent.handle_turn("oi", PHONE, media_sender, calendar=fake_calendar) == "Oi!"
    assert closed == [True]
