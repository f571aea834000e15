"""Printable information folder (PDF) sent to interested tenants."""

from __future__ import annotations

import os
import tempfile

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from kitbot.language import get_text
from kitbot.language.messages_pt import (
    ADDRESS_SHORT,
    BUSINESS_NAME,
    BUSINESS_RULES,
    FOLDER_RENT,
    VISITING_HOURS,
)
from kitbot.logging_config import get_logger

logger = get_logger(__name__)

HIGHLIGHT = colors.HexColor("#e0f2fe")
FOOTER = colors.HexColor("#1e293b")


def generate_info_folder() -> str:
    """Render the folder into a new private temp file and return its path.

    Every call gets its own file (mkstemp), so concurrent turns never collide.
    The caller owns the file and should delete it once dispatched.
    """
    fd, path = tempfile.mkstemp(prefix="folder_kitnets_", suffix=".pdf")
    os.close(fd)

    try:
        c = canvas.Canvas(path, pagesize=A4)
        width, height = A4

        # Header
        c.setFillColor(colors.black)
        c.setFont("Helvetica-Bold", 24)
        c.drawCentredString(width / 2, height - 70, BUSINESS_NAME)
        c.setFillColor(colors.grey)
        c.setFont("Helvetica", 12)
        c.drawCentredString(width / 2, height - 92, ADDRESS_SHORT)

        # Rent highlight
        c.setFillColor(HIGHLIGHT)
        c.rect(50, height - 160, width - 100, 40, fill=True, stroke=False)
        c.setFillColor(colors.black)
        c.setFont("Helvetica-Bold", 16)
        c.drawCentredString(width / 2, height - 145, get_text("folder_rent_label", rent=FOLDER_RENT))

        # Rules
        y = height - 200
        for title, desc in BUSINESS_RULES:
            c.setFont("Helvetica-Bold", 14)
            c.drawString(60, y, title)
            c.setFont("Helvetica", 12)
            c.drawString(60, y - 18, desc)
            y -= 48

        # Footer
        c.setFillColor(FOOTER)
        c.rect(0, 0, width, 100, fill=True, stroke=False)
        c.setFillColor(colors.white)
        c.setFont("Helvetica-Bold", 14)
        c.drawCentredString(width / 2, 70, get_text("folder_call_to_action"))
        c.setFont("Helvetica", 12)
        c.drawCentredString(width / 2, 50, VISITING_HOURS)
        c.setFont("Helvetica", 10)
        c.drawCentredString(width / 2, 32, get_text("folder_contact"))

        c.showPage()
        c.save()
    except Exception:
        os.remove(path)
        raise

    logger.info("info_folder_generated", path=path)
    return path
