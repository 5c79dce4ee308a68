import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Column, DateTime, Index, String, Text
from sqlalchemy.orm import declarative_base

Base: Any = declarative_base()


def _new_id() -> str:
    return uuid.uuid4().hex


class RegistrationModel(Base):
    __tablename__ = "registrations"
    id = Column(String(32), primary_key=True, default=_new_id)
    email = Column(String, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    organization_name = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending")
    decision_reason = Column(Text, nullable=True)
    decided_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("idx_registrations_status", "status"),)


class AccountModel(Base):
    __tablename__ = "accounts"
    id = Column(String(32), primary_key=True, default=_new_id)
    email = Column(String, nullable=False, unique=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class AffiliateModel(Base):
    __tablename__ = "affiliates"
    id = Column(String(32), primary_key=True, default=_new_id)
    email = Column(String, nullable=False, unique=True)
    organization_name = Column(String, nullable=True)
    contact_name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=True)
    password_changed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)
