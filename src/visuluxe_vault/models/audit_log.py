"""
visuluxe_vault/models/audit_log.py — Log imutável de ações administrativas.

Também é a fonte da janela de rate limit de decrypts.
"""
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from visuluxe_vault.database import Base, utcnow

PROVIDER_KEY_DECRYPTED = "provider_key_decrypted"
PROVIDER_KEY_ENCRYPTED = "provider_key_encrypted"
API_KEY_CREATED = "api_key_created"
PROVIDER_CONNECTION_TESTED = "provider_connection_tested"


class AuditLog(Base):
    __tablename__ = "admin_audit_logs"
    __table_args__ = (
        Index("ix_admin_audit_logs_actor_action_created", "actor_id", "action", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    actor_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    # provider_key_decrypted | provider_key_encrypted | api_key_created | provider_connection_tested

    target_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    ip_address: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
