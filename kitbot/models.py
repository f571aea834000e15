"""Data models for KitBot."""

from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator


class AvailableUnit(BaseModel):
    """Read-only projection of a free kitnet."""
    unit_number: int
    price: float
    description: Optional[str] = None
    status: str


class ToolResult(BaseModel):
    """Outcome of one tool execution, narrated back to the model."""
    ok: bool
    detail: str


# Tool argument payloads. `tool` is the discriminator and is filled in from the
# function name of the tool call, never from the model's JSON.

class RegisterLeadArgs(BaseModel):
    tool: Literal["register_lead"] = "register_lead"
    name: Optional[str] = None
    interesse: Literal["curiosidade", "visita", "alugar"]
    kitnet_interesse: Optional[int] = None

    @field_validator("interesse", mode="before")
    @classmethod
    def _normalize_interest(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class SendInfoFolderArgs(BaseModel):
    tool: Literal["send_info_folder"] = "send_info_folder"


class SendTourVideoArgs(BaseModel):
    tool: Literal["send_tour_video"] = "send_tour_video"


class ScheduleVisitArgs(BaseModel):
    tool: Literal["schedule_visit"] = "schedule_visit"
    data_horario: str


class RequestHumanArgs(BaseModel):
    tool: Literal["request_human"] = "request_human"
    motivo: Optional[str] = None


ToolArguments = Annotated[
    Union[RegisterLeadArgs, SendInfoFolderArgs, SendTourVideoArgs, ScheduleVisitArgs, RequestHumanArgs],
    Field(discriminator="tool"),
]


class InvalidToolCall(BaseModel):
    """A tool call whose name or arguments could not be validated."""
    tool: str
    error: str


class MediaDispatch(BaseModel):
    """Media handed to the transport during a turn."""
    file_name: str
    mime_type: str
    caption: Optional[str] = None


class AgentTurnRequest(BaseModel):
    """Request model for /agent/turn endpoint."""
    sender_id: str = Field(min_length=1)
    text: str = Field(min_length=1)


class AgentTurnResponse(BaseModel):
    """Response model for /agent/turn endpoint."""
    reply: Optional[str] = None
    media: list[MediaDispatch] = Field(default_factory=list)
