"""
Service layer for database operations.
Message store, lead registry, visit log and the read-only kitnet gateway.
"""

from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from datetime import datetime, timedelta

from kitbot.config import config
from kitbot.db_models import DBConversationMessage, DBKitnet, DBLead, DBVisit, LeadStatus, MessageRole
from kitbot.language import get_text
from kitbot.logging_config import get_logger
from kitbot.models import AvailableUnit

logger = get_logger(__name__)


class ConversationService:
    """Append-only message history, one conversation per sender."""

    @staticmethod
    def save_message(
        db: Session,
        conversation_id: str,
        role: MessageRole,
        content: str,
        tool_call_id: Optional[str] = None,
        tool_name: Optional[str] = None,
    ) -> DBConversationMessage:
        """Append a message to the conversation."""
        message = DBConversationMessage(
            conversation_id=conversation_id,
            role=MessageRole(role),
            content=content,
            tool_call_id=tool_call_id,
            tool_name=tool_name,
            created_at=datetime.utcnow(),
        )
        db.add(message)
        db.commit()
        db.refresh(message)

        logger.debug("conversation_message_saved", conversation_id=conversation_id, role=message.role.value)
        return message

    @staticmethod
    def recent_messages(db: Session, conversation_id: str, limit: int = 10) -> List[DBConversationMessage]:
        """Return the last `limit` messages, oldest first."""
        rows = (
            db.query(DBConversationMessage)
            .filter(DBConversationMessage.conversation_id == conversation_id)
            .order_by(DBConversationMessage.created_at.desc(), DBConversationMessage.id.desc())
            .limit(limit)
            .all()
        )
        rows.reverse()
        return rows

    @staticmethod
    def as_chat_messages(rows: List[DBConversationMessage]) -> List[dict]:
        """Convert stored rows to OpenAI chat messages."""
        return [{"role": row.role.value, "content": row.content} for row in rows]


class LeadService:
    """Service for managing leads."""

    @staticmethod
    def get_lead_by_phone(db: Session, phone: str) -> Optional[DBLead]:
        """Get lead by phone number."""
        return db.query(DBLead).filter(DBLead.phone == phone).first()

    @staticmethod
    def upsert_lead(
        db: Session,
        phone: str,
        name: Optional[str] = None,
        interest_level: Optional[str] = None,
        interested_unit: Optional[int] = None,
    ) -> DBLead:
        """
        Create the lead or merge new information into it.

        name: kept unless the incoming value is a real name.
        interest_level / interested_unit: replaced when provided, else kept.
        """
        incoming_name = (name or "").strip()
        has_name = bool(incoming_name) and incoming_name != get_text("unknown_name")

        lead = db.query(DBLead).filter(DBLead.phone == phone).first()
        if lead is None:
            lead = DBLead(
                phone=phone,
                name=incoming_name if has_name else None,
                interest_level=interest_level,
                interested_unit=interested_unit,
                status=LeadStatus.NEW,
            )
            db.add(lead)
            created = True
        else:
            if has_name:
                lead.name = incoming_name
            if interest_level is not None:
                lead.interest_level = interest_level
            if interested_unit is not None:
                lead.interested_unit = interested_unit
            created = False

        lead.last_contact_at = datetime.utcnow()
        db.commit()
        db.refresh(lead)

        logger.info("lead_upserted", phone=phone, created=created, has_name=bool(lead.name))
        return lead

    @staticmethod
    def update_lead_status(db: Session, phone: str, status: LeadStatus) -> Optional[DBLead]:
        """Update lead status."""
        lead = db.query(DBLead).filter(DBLead.phone == phone).first()
        if lead:
            lead.status = status
            db.commit()
            db.refresh(lead)

            logger.info("lead_status_updated", phone=phone, status=status.value)

        return lead

    @staticmethod
    def leads_due_for_followup(
        db: Session,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[DBLead]:
        """
        New leads whose last contact is between FOLLOWUP_MIN_AGE_HOURS and
        FOLLOWUP_MAX_AGE_HOURS old, oldest contact first, at most `limit`.
        """
        now = now or datetime.utcnow()
        limit = config.FOLLOWUP_BATCH_SIZE if limit is None else limit
        newest = now - timedelta(hours=config.FOLLOWUP_MIN_AGE_HOURS)
        oldest = now - timedelta(hours=config.FOLLOWUP_MAX_AGE_HOURS)

        return (
            db.query(DBLead)
            .filter(
                DBLead.status == LeadStatus.NEW,
                DBLead.last_contact_at < newest,
                DBLead.last_contact_at > oldest,
            )
            .order_by(DBLead.last_contact_at, DBLead.id)
            .limit(limit)
            .all()
        )


class VisitService:
    """Service for visits requested through the bot."""

    @staticmethod
    def create_visit(db: Session, phone: str, requested_datetime: str) -> DBVisit:
        """Record a requested visit and mark the lead, if any, as scheduled."""
        visit = DBVisit(phone=phone, requested_datetime=requested_datetime)
        db.add(visit)

        lead = db.query(DBLead).filter(DBLead.phone == phone).first()
        if lead:
            lead.status = LeadStatus.VISIT_SCHEDULED
            lead.last_contact_at = datetime.utcnow()

        db.commit()
        db.refresh(visit)

        logger.info("visit_created", visit_id=visit.id, phone=phone, requested_datetime=requested_datetime)
        return visit

    @staticmethod
    def attach_calendar_link(db: Session, visit_id: int, calendar_link: str) -> Optional[DBVisit]:
        """Store the link of the calendar event created for a visit."""
        visit = db.query(DBVisit).filter(DBVisit.id == visit_id).first()
        if visit:
            visit.calendar_link = calendar_link
            db.commit()
            db.refresh(visit)
        return visit

    @staticmethod
    def list_visits(db: Session, phone: Optional[str] = None) -> List[DBVisit]:
        """List visits, optionally for one phone."""
        query = db.query(DBVisit)
        if phone:
            query = query.filter(DBVisit.phone == phone)
        return query.order_by(DBVisit.created_at, DBVisit.id).all()


class KitnetGateway:
    """
    Read-only queries over the kitnets table.
    Missing data is a normal business state: failures yield empty results.
    """

    @staticmethod
    def list_available(db: Session) -> List[AvailableUnit]:
        """Free units ordered by number."""
        try:
            rows = (
                db.query(DBKitnet)
                .filter(func.lower(DBKitnet.status) == "livre")
                .order_by(DBKitnet.number)
                .all()
            )
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("available_units_query_failed", error=str(e))
            return []

        logger.info("available_units_found", count=len(rows))
        return [
            AvailableUnit(
                unit_number=row.number,
                price=float(row.price or 0),
                description=row.description,
                status=row.status,
            )
            for row in rows
        ]

    @staticmethod
    def reference_price(db: Session, available: Optional[List[AvailableUnit]] = None) -> float:
        """First available unit's price, else any unit's price, else zero."""
        if available:
            return available[0].price

        try:
            row = db.query(DBKitnet.price).order_by(DBKitnet.number).first()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("reference_price_query_failed", error=str(e))
            return 0.0

        if row is None or row[0] is None:
            return 0.0
        return float(row[0])

    @staticmethod
    def tour_video_path(db: Session) -> str:
        """Video of the first available unit, else the configured fallback."""
        try:
            row = (
                db.query(DBKitnet.video)
                .filter(func.lower(DBKitnet.status) == "livre")
                .order_by(DBKitnet.number)
                .first()
            )
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("tour_video_query_failed", error=str(e))
            row = None

        if row is not None and row[0]:
            return row[0]
        return config.TOUR_VIDEO_FALLBACK_PATH
