from sqlalchemy import Column, Integer, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.leave_request import LeaveCategory

# Yearly allowances granted at registration; unpaid is effectively unlimited
DEFAULT_ALLOWANCES = {
    LeaveCategory.ANNUAL: 20,
    LeaveCategory.SICK: 10,
    LeaveCategory.CASUAL: 12,
    LeaveCategory.UNPAID: 9999,
}

class LeaveBalance(Base):
    __tablename__ = "leave_balances"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, index=True, nullable=False)
    annual = Column(Integer, default=DEFAULT_ALLOWANCES[LeaveCategory.ANNUAL], nullable=False)
    sick = Column(Integer, default=DEFAULT_ALLOWANCES[LeaveCategory.SICK], nullable=False)
    casual = Column(Integer, default=DEFAULT_ALLOWANCES[LeaveCategory.CASUAL], nullable=False)
    unpaid = Column(Integer, default=DEFAULT_ALLOWANCES[LeaveCategory.UNPAID], nullable=False)
    # Bumped on every deduction; guards the read-check-write sequence
    version = Column(Integer, default=0, nullable=False)

    user = relationship("User", back_populates="leave_balance")

    def balance_for(self, category) -> int:
        return getattr(self, LeaveCategory(category).value)

    def as_dict(self) -> dict:
        return {c.value: self.balance_for(c) for c in LeaveCategory}
