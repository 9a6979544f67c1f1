from typing import Dict, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.schemas import ApiResponse
from app.database import get_db
from app.models.leave_request import LeaveStatus
from app.models.user import User
from app.routers.auth_deps import get_current_user, require_admin
from app.schemas.leave import LeaveRequestCreate, LeaveRequestResponse, LeaveRequestWithOwner
from app.services.balance_service import BalanceService
from app.services.leave_service import LeaveService

router = APIRouter(
    prefix="/leaves",
    tags=["leave"]
)


@router.post("/apply", response_model=ApiResponse[LeaveRequestResponse], status_code=status.HTTP_201_CREATED)
def apply_leave(
    data: LeaveRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    leave = LeaveService(db).submit(
        user_id=current_user.id,
        category=data.category,
        start_date=data.start_date,
        end_date=data.end_date,
        reason=data.reason,
    )
    return ApiResponse.ok(
        LeaveRequestResponse.model_validate(leave),
        message="Leave application submitted successfully",
    )


@router.get("/user", response_model=ApiResponse[List[LeaveRequestResponse]])
def get_user_leaves(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    leaves = LeaveService(db).get_for_user(current_user.id)
    return ApiResponse.ok(
        [LeaveRequestResponse.model_validate(l) for l in leaves],
        message="User leave applications fetched successfully",
    )


@router.get("/balance", response_model=ApiResponse[Dict[str, int]])
def get_leave_balance(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ApiResponse.ok(BalanceService(db).get_balance(current_user.id), message="Leave balance fetched successfully")


@router.get("", response_model=ApiResponse[List[LeaveRequestWithOwner]])
def get_all_leaves(db: Session = Depends(get_db), current_user: User = Depends(require_admin())):
    leaves = LeaveService(db).get_all()
    return ApiResponse.ok(
        [LeaveRequestWithOwner.model_validate(l) for l in leaves],
        message="All leave applications fetched successfully",
    )


# The route decides the target status; the service takes it explicitly
@router.patch("/{leave_id}/approve", response_model=ApiResponse[LeaveRequestResponse])
def approve_leave(leave_id: int, db: Session = Depends(get_db), current_user: User = Depends(require_admin())):
    leave = LeaveService(db).transition(leave_id, LeaveStatus.APPROVED, actor_id=current_user.id)
    return ApiResponse.ok(LeaveRequestResponse.model_validate(leave), message="Leave status updated successfully")


@router.patch("/{leave_id}/reject", response_model=ApiResponse[LeaveRequestResponse])
def reject_leave(leave_id: int, db: Session = Depends(get_db), current_user: User = Depends(require_admin())):
    leave = LeaveService(db).transition(leave_id, LeaveStatus.REJECTED, actor_id=current_user.id)
    return ApiResponse.ok(LeaveRequestResponse.model_validate(leave), message="Leave status updated successfully")


@router.delete("/{leave_id}", response_model=ApiResponse[None])
def delete_leave(leave_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    LeaveService(db).remove(leave_id, requester_id=current_user.id)
    return ApiResponse.ok(None, message="Leave deleted")
