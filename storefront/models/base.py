import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import declarative_base

from storefront.utils.date_utils import utcnow

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class IdMixin:
    id = Column(String(36), primary_key=True, default=new_id, index=True)


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
