"""
SQLAlchemy database models.
The agent owns conversation messages, leads and visits; kitnets are maintained
by the dashboard backend and only read here.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, Enum as SQLEnum
from datetime import datetime
import enum

from kitbot.database import Base


class LeadStatus(str, enum.Enum):
    """Lead status enum."""
    NEW = "novo"
    VISIT_SCHEDULED = "visita_agendada"
    FOLLOWUP_SENT = "followup_enviado"
    ARCHIVED = "arquivado"


class MessageRole(str, enum.Enum):
    """Author of a stored conversation message."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


def _enum_values(enum_cls):
    # Store the enum values ("novo", "user"), which the dashboard queries, not the member names.
    return [member.value for member in enum_cls]


class DBKitnet(Base):
    """Rental unit, as maintained by the dashboard backend."""
    __tablename__ = "kitnets"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(Integer, unique=True, nullable=False, index=True)
    price = Column(Numeric(10, 2))
    description = Column(Text)
    status = Column(String(20), default="livre")  # livre | ocupada
    video = Column(String(500))  # path of the tour video for this unit


class DBLead(Base):
    """Prospective tenant, keyed by WhatsApp phone."""
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String(60), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=True)
    interest_level = Column(String(20), nullable=True)
    interested_unit = Column(Integer, nullable=True)
    status = Column(SQLEnum(LeadStatus, values_callable=_enum_values), default=LeadStatus.NEW)

    last_contact_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)


class DBVisit(Base):
    """Visit requested through the bot. The external calendar owns conflicts."""
    __tablename__ = "visits"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String(60), nullable=False, index=True)
    requested_datetime = Column(String(100), nullable=False)
    calendar_link = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class DBConversationMessage(Base):
    """
    One entry of a WhatsApp conversation.
    Append-only: rows are never updated or deleted by the agent.
    """
    __tablename__ = "conversation_messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(String(60), nullable=False, index=True)  # sender phone
    role = Column(SQLEnum(MessageRole, values_callable=_enum_values), nullable=False)
    content = Column(Text, nullable=False)
    tool_call_id = Column(String(100), nullable=True)
    tool_name = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
