"""
Audit log model: append-only record of security-relevant auth events.
"""
from enum import Enum

from sqlalchemy import Column, String, Integer, Boolean, Text
from sqlalchemy.types import Enum as SAEnum

from models.base_model import BaseModel, Base


class AuditEvent(str, Enum):
    LOGIN_ATTEMPT = "LOGIN_ATTEMPT"
    LOGIN_FAILURE = "LOGIN_FAILURE"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_ERROR = "LOGIN_ERROR"
    TOKEN_REFRESH = "TOKEN_REFRESH"
    REFRESH_FAILED = "REFRESH_FAILED"
    LOGOUT = "LOGOUT"


class AuditLog(BaseModel, Base):
    __tablename__ = "audit_logs"

    event_type = Column(SAEnum(AuditEvent, name="audit_event", native_enum=False), nullable=False, index=True)
    # no FK: entries outlive the users they mention
    user_id = Column(Integer, nullable=True, index=True)
    email = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    success = Column(Boolean, nullable=False, default=False)
    details = Column(Text, nullable=True)

    def __repr__(self):
        return f"<AuditLog id={self.id} event={self.event_type} success={self.success}>"
