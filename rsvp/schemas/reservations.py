from pydantic import BaseModel, Field


class ReservationRequest(BaseModel):
    user_id: int = Field(ge=1)


class VerifyRequest(BaseModel):
    user_id: int = Field(ge=1)
    code: str = Field(min_length=6, max_length=6, pattern=r"^[0-9]{6}$")


class ReservationChallengeOut(BaseModel):
    challenge_id: str
    expires_in_seconds: int
    message: str = "Verification code sent to your email. Please check your inbox."
    requires_verification: bool = True

    class Config:
        from_attributes = True


class AttendanceOut(BaseModel):
    event_id: int
    capacity: int
    attendee_count: int
    available_spots: int
    attendees: list[int]

    class Config:
        from_attributes = True


class CancelOut(BaseModel):
    success: bool = True
    message: str = "Successfully cancelled registration"
    attendance: AttendanceOut
