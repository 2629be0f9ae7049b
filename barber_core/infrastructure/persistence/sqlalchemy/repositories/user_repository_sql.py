import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import User
from .....application.ports.user_repo import UserRepository, UserDto, NewUser
from .....exceptions import Conflict, NotFound

logger = logging.getLogger(__name__)


class SqlUserRepository(UserRepository):
    """User store backed by the ``users`` table.

    Uniqueness of phone number and email is enforced by the table's unique
    indexes; the read-before-write checks here only pick a friendlier error
    and are not relied on for correctness.
    """

    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, user: User) -> UserDto:
        return UserDto(
            id=user.id,
            phone_number=user.phone_number,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            is_verified=bool(user.is_verified),
            created_at=user.created_at,
            updated_at=user.updated_at,
            email=user.email,
            password_hash=user.password_hash,
            external_customer_id=user.external_customer_id,
        )

    def _load(self, user_id: str) -> User:
        user = self.session.exec(select(User).where(User.id == user_id)).first()
        if not user:
            raise NotFound()
        return user

    def _commit(self, user: User, conflict_reason: Optional[str] = None) -> User:
        user.updated_at = datetime.utcnow()
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            if conflict_reason is None:
                raise
            raise Conflict(conflict_reason)
        self.session.refresh(user)
        return user

    def get_by_phone(self, phone_number: str) -> Optional[UserDto]:
        user = self.session.exec(select(User).where(User.phone_number == phone_number)).first()
        return self._to_dto(user) if user else None

    def get_by_email(self, email: str) -> Optional[UserDto]:
        user = self.session.exec(select(User).where(User.email == email)).first()
        return self._to_dto(user) if user else None

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        user = self.session.exec(select(User).where(User.id == user_id)).first()
        return self._to_dto(user) if user else None

    def create(self, draft: NewUser) -> UserDto:
        if self.get_by_phone(draft.phone_number):
            raise Conflict(Conflict.PHONE_TAKEN)
        if draft.email and self.get_by_email(draft.email):
            raise Conflict(Conflict.EMAIL_TAKEN)

        user = User(
            phone_number=draft.phone_number,
            first_name=draft.first_name,
            last_name=draft.last_name,
            email=draft.email,
            password_hash=draft.password_hash,
            role=draft.role,
            is_verified=draft.is_verified,
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent create; work out which key collided
            self.session.rollback()
            if self.get_by_phone(draft.phone_number):
                raise Conflict(Conflict.PHONE_TAKEN)
            raise Conflict(Conflict.EMAIL_TAKEN)
        self.session.refresh(user)
        return self._to_dto(user)

    def mark_verified(self, user_id: str) -> UserDto:
        user = self._load(user_id)
        if user.is_verified:
            return self._to_dto(user)
        user.is_verified = True
        return self._to_dto(self._commit(user))

    def update_phone(self, user_id: str, phone_number: str) -> UserDto:
        user = self._load(user_id)
        if user.phone_number == phone_number:
            return self._to_dto(user)
        owner = self.get_by_phone(phone_number)
        if owner and owner.id != user_id:
            raise Conflict(Conflict.PHONE_TAKEN, "Phone number already in use")
        user.phone_number = phone_number
        return self._to_dto(self._commit(user, Conflict.PHONE_TAKEN))

    def set_password(self, user_id: str, password_hash: str) -> None:
        user = self._load(user_id)
        user.password_hash = password_hash
        self._commit(user)

    def set_external_customer_id(self, user_id: str, external_customer_id: str) -> str:
        stmt = (
            update(User)
            .where(User.id == user_id, User.external_customer_id.is_(None))
            .values(external_customer_id=external_customer_id, updated_at=datetime.utcnow())
        )
        result = self.session.execute(stmt)
        self.session.commit()
        if result.rowcount:
            return external_customer_id

        user = self._load(user_id)
        self.session.refresh(user)
        if user.external_customer_id != external_customer_id:
            logger.warning(
                f"User {user_id} already linked to external customer {user.external_customer_id}; "
                f"keeping it and discarding {external_customer_id}"
            )
        return user.external_customer_id

    def update_profile(self, user_id: str, first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> UserDto:
        user = self._load(user_id)
        if email is not None and email != user.email:
            owner = self.get_by_email(email)
            if owner and owner.id != user_id:
                raise Conflict(Conflict.EMAIL_TAKEN)
            user.email = email
        if first_name is not None:
            user.first_name = first_name
        if last_name is not None:
            user.last_name = last_name
        return self._to_dto(self._commit(user, Conflict.EMAIL_TAKEN))
