from sqlalchemy.orm import Session
from typing import List
import logging

from ..models.user import User
from ..core.errors import BadRequestError, NotFoundError
from ..core.security import get_password_hash
from ..schemas.user import UserUpdate, UserResponse

logger = logging.getLogger(__name__)

class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    def list_users(self, skip: int = 0, limit: int = 50) -> List[User]:
        return self.db.query(User).order_by(User.id).offset(skip).limit(limit).all()

    def update_user(self, user_id: int, update_data: UserUpdate) -> User:
        """Apply a partial update. Shared by self-service and admin edits."""
        user = self.get_user(user_id)
        changes = update_data.model_dump(exclude_unset=True)

        if "email" in changes and changes["email"] != user.email:
            taken = self.db.query(User).filter(
                User.email == changes["email"],
                User.id != user.id
            ).first()
            if taken:
                raise BadRequestError("Email already registered")

        if "password" in changes:
            password = changes.pop("password")
            if password is not None:
                user.password_hash = get_password_hash(password)

        for field, value in changes.items():
            if value is None and field in ("name", "email", "medical_history"):
                continue
            setattr(user, field, value)

        self.db.commit()
        self.db.refresh(user)

        logger.info(f"Updated profile of user {user.id}: {sorted(changes)}")
        return user

    def delete_user(self, user_id: int) -> UserResponse:
        """Hard delete; appointments go with the user."""
        user = self.get_user(user_id)
        snapshot = UserResponse.model_validate(user)
        self.db.delete(user)
        self.db.commit()

        logger.info(f"Deleted user {user_id}")
        return snapshot
