from datetime import datetime
from sqlalchemy import Column, DateTime
from ..database import Base  # the declarative Base shared with Alembic's env.py


class BaseModel(Base):
    __abstract__ = True

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
