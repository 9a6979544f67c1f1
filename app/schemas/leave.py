from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Optional
from app.models.leave_request import LeaveCategory, LeaveStatus

class LeaveRequestCreate(BaseModel):
    category: LeaveCategory = Field(alias="type")
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    reason: str = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)

class LeaveOwner(BaseModel):
    id: int
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)

class LeaveRequestResponse(BaseModel):
    id: int
    user_id: int
    category: LeaveCategory
    start_date: date
    end_date: date
    days: int
    reason: str
    status: LeaveStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class LeaveRequestWithOwner(LeaveRequestResponse):
    user: LeaveOwner


# Resolve forward references for Pydantic V2
LeaveRequestResponse.model_rebuild()
LeaveRequestWithOwner.model_rebuild()
