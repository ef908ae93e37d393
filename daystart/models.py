from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class IdentityResponse(BaseModel):
    id: str
    email: Optional[str] = None


# ============== SETTINGS MODELS ==============

class UserSettingsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day_start_time: str = Field(..., alias="dayStartTime")

class UserSettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Left untyped: any malformed value gets the same 400 from the route.
    day_start_time: Optional[Any] = Field(None, alias="dayStartTime")

class UserSettingsUpdateResponse(UserSettingsResponse):
    message: str = "Settings updated successfully"

class DayResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str  # YYYY-MM-DD logical day
    day_start_time: str = Field(..., alias="dayStartTime")
    start: str  # UTC ISO instant, inclusive
    end: str  # UTC ISO instant, exclusive
