from sqlalchemy import Column, Integer, String, Date, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum

class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class LeaveCategory(str, enum.Enum):
    ANNUAL = "annual"
    CASUAL = "casual"
    SICK = "sick"
    UNPAID = "unpaid"

class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    category = Column(String, index=True, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(String, nullable=False)
    status = Column(String, default=LeaveStatus.PENDING.value, nullable=False) # Using String to store enum value for simplicity with SQLite
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="leave_requests")

    @property
    def days(self) -> int:
        """Inclusive calendar-day span; a single-day leave counts as 1."""
        return (self.end_date - self.start_date).days + 1

    def __repr__(self):
        return f"<LeaveRequest {self.id} {self.category} {self.status}>"
