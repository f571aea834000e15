"""
Scheduled job processing with Celery.
Celery beat runs the lead follow-up twice a day, at 10:00 and 18:00 local time.

Run with:
    celery -A kitbot.celery_tasks worker --beat --loglevel=info
"""

from celery import Celery
from celery.schedules import crontab

from kitbot.config import config

# Initialize Celery with Redis broker
celery_app = Celery(
    'kitbot',
    broker=config.REDIS_URL,
    backend=config.REDIS_URL
)

# Celery configuration
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone=config.CALENDAR_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 3 leads with up to 40s between sends
    worker_prefetch_multiplier=1,
    beat_schedule={
        'lead-followups': {
            'task': 'send_lead_followups',
            'schedule': crontab(minute=0, hour='10,18'),
        },
    },
)


@celery_app.task(name='send_lead_followups')
def send_lead_followups_task():
    """
    Background task that nudges new leads who went quiet.

    Returns:
        dict: {"status": "success", "sent": n}, or {"status": "skipped"|"error", "message": ...}
    """
    from kitbot.database import SessionLocal
    from kitbot.followups import WhatsAppGatewaySender, send_followups
    from kitbot.logging_config import logger

    if not config.has_whatsapp_gateway():
        logger.warning("followup_skipped", reason="whatsapp_gateway_not_configured")
        return {"status": "skipped", "message": "WhatsApp gateway not configured"}

    db = SessionLocal()
    sender = WhatsAppGatewaySender(config.WHATSAPP_GATEWAY_URL, config.WHATSAPP_GATEWAY_API_KEY)
    try:
        sent = send_followups(db, sender)
        return {"status": "success", "sent": sent}
    except Exception as e:
        logger.error("followup_job_failed", error=str(e))
        return {"status": "error", "message": str(e)}
    finally:
        sender.close()
        db.close()
