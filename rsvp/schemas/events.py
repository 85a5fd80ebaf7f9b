
from pydantic import BaseModel, Field


# ---------- Event ----------
class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    capacity: int = Field(ge=1, le=10000)


class EventCapacityUpdate(BaseModel):
    capacity: int = Field(ge=1, le=10000)


class EventOut(BaseModel):
    id: int
    title: str
    capacity: int
    attendee_count: int

    class Config:
        from_attributes = True
