from sqlalchemy.orm import Session

from scheduler.models.user import User


def user_exists(db: Session, user_id: str) -> bool:
    return db.query(User.id).filter(User.id == user_id).first() is not None
