from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError

from app.core.exceptions import AccessDeniedError, AuthenticationError, UserExistsError
from app.models.user import User, UserRole, UserSession
from app.services import auth as auth_service
from app.services.balance_service import BalanceService
from app.services.base import BaseService


def _utcnow() -> datetime:
    # user_sessions.expires_at is stored naive, in UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserService(BaseService):
    """Registration, credential checks and refresh-token sessions."""

    def register(self, name: str, email: str, password: str, role: UserRole = UserRole.EMPLOYEE) -> User:
        """Create a user together with its default leave ledger, in one commit."""
        if self.db.query(User).filter(User.email == email).first():
            raise UserExistsError()

        user = User(
            name=name,
            email=email,
            hashed_password=auth_service.get_password_hash(password),
            role=role,
            is_active=True,
        )
        self.db.add(user)
        try:
            self.db.flush()
            BalanceService(self.db).create_ledger(user.id)
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email
            self.db.rollback()
            raise UserExistsError()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(user)
        self._logger.info(f"Registered user {user.id} ({user.role.value})")
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.db.query(User).filter(User.email == email).first()
        if not user or not auth_service.verify_password(password, user.hashed_password):
            self._logger.warning("Failed login attempt", extra={"email": email})
            raise AuthenticationError("Invalid email or password")
        if not user.is_active:
            raise AccessDeniedError("User is inactive")
        return user

    def open_session(self, user: User, user_agent: Optional[str] = None, ip_address: Optional[str] = None) -> str:
        """Mint a refresh token for ``user`` and persist it as a session."""
        refresh_token = auth_service.create_refresh_token(data={"sub": str(user.id)})
        session = UserSession(
            user_id=user.id,
            refresh_token=refresh_token,
            expires_at=_utcnow() + timedelta(days=auth_service.REFRESH_TOKEN_EXPIRE_DAYS),
            user_agent=user_agent,
            ip_address=ip_address,
        )
        self.db.add(session)
        self.db.commit()
        return refresh_token

    def rotate_session(self, refresh_token: Optional[str]) -> Tuple[User, str]:
        """Revoke the session behind ``refresh_token`` and open a new one."""
        if not refresh_token:
            raise AuthenticationError("No refresh token found")

        payload = auth_service.decode_refresh_token(refresh_token)
        # Expired tokens decode to {"error": ...} and carry no type claim
        if payload is None or payload.get("type") != "refresh":
            raise AuthenticationError("Invalid or expired refresh token")

        db_session = self.db.query(UserSession).filter(
            UserSession.refresh_token == refresh_token,
            UserSession.is_revoked == False,  # noqa: E712
        ).first()
        if not db_session or db_session.expires_at <= _utcnow():
            raise AuthenticationError("Session expired or revoked")

        user = db_session.user
        if not user or not user.is_active:
            raise AuthenticationError("User inactive or not found")

        # Rotation: Revoke old, create new
        db_session.is_revoked = True
        new_token = self.open_session(user, db_session.user_agent, db_session.ip_address)
        return user, new_token

    def revoke_session(self, refresh_token: Optional[str]) -> None:
        if not refresh_token:
            return
        db_session = self.db.query(UserSession).filter(UserSession.refresh_token == refresh_token).first()
        if db_session:
            db_session.is_revoked = True
            self.db.commit()
