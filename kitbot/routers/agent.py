from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from kitbot import admission, agent
from kitbot.database import get_db
from kitbot.models import AgentTurnRequest, AgentTurnResponse, MediaDispatch
from kitbot.security import verify_api_key

router = APIRouter(tags=["Agent"])


class MediaCollector:
    """MediaSender that records what the agent dispatched during an HTTP turn.

    Only metadata is returned to the caller; temporary files are removed by the
    tools right after dispatch.
    """

    def __init__(self) -> None:
        self.dispatched: List[MediaDispatch] = []

    def __call__(self, sender_id: str, file_path: str, mime_type: str, file_name: str,
                 caption: Optional[str]) -> None:
        self.dispatched.append(MediaDispatch(file_name=file_name, mime_type=mime_type, caption=caption))


# POST /agent/turn
# Gets: JSON body {sender_id: str, text: str} and optional X-API-Key header
# Returns: AgentTurnResponse {reply?: str, media: [{file_name, mime_type, caption}]}
# Example:
#   curl -X POST http://localhost:8000/agent/turn \
#     -H 'Content-Type: application/json' \
#     -d '{"sender_id": "5548999990000", "text": "Oi, tem kitnet livre?"}'
@router.post("/agent/turn", response_model=AgentTurnResponse)
def agent_turn(
    request: AgentTurnRequest,
    db: Session = Depends(get_db),
    api_key: str = Depends(verify_api_key),
):
    """Process one inbound message for a sender (no WhatsApp transport)."""

    if not admission.sender_gate.admit(request.sender_id):
        raise HTTPException(status_code=429, detail="Message received during the sender cool-down")

    media = MediaCollector()
    with admission.sender_gate.hold(request.sender_id):
        reply = agent.handle_turn(request.text, request.sender_id, media, db=db)

    return AgentTurnResponse(reply=reply, media=media.dispatched)
