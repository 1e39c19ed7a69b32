"""
visuluxe_vault/services/audit.py — Auditoria e alertas para super admins.

Tudo aqui é best-effort: falhar ao gravar um audit ou uma notificação é
logado e engolido, nunca derruba a operação principal que já deu certo.
"""
from dataclasses import dataclass

from fastapi import Request
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.models.audit_log import AuditLog
from visuluxe_vault.models.notification import Notification, NotificationType
from visuluxe_vault.services.identity import IdentityService


@dataclass(frozen=True)
class RequestMeta:
    """Origem da requisição, só para auditoria."""
    ip_address: str | None = None
    user_agent: str | None = None

    @property
    def ip_or_unknown(self) -> str:
        return self.ip_address or "unknown"

    @classmethod
    def from_request(cls, request: Request) -> "RequestMeta":
        return cls(ip_address=client_ip(request), user_agent=request.headers.get("user-agent"))


def client_ip(request: Request) -> str | None:
    """X-Forwarded-For (primeiro salto) → CF-Connecting-IP → None."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.headers.get("cf-connecting-ip")


class AuditService:

    @staticmethod
    async def record(
        db: AsyncSession,
        actor_id: str,
        action: str,
        target_type: str | None = None,
        target_id: str | None = None,
        details: dict | None = None,
        meta: RequestMeta | None = None,
    ) -> bool:
        meta = meta or RequestMeta()
        try:
            db.add(AuditLog(
                actor_id=actor_id,
                action=action,
                target_type=target_type,
                target_id=target_id,
                details=details,
                ip_address=meta.ip_address,
                user_agent=meta.user_agent,
            ))
            await db.commit()
            return True
        except Exception as e:
            await db.rollback()
            logger.error(f"❌ Falha ao gravar audit action={action} target={target_id}: {e}")
            return False

    @staticmethod
    async def notify_super_admins(
        db: AsyncSession,
        actor_id: str,
        title: str,
        message: str,
        action_url: str = "/admin/security",
    ) -> int:
        """Cria uma notificação por super_admin, exceto o próprio ator."""
        try:
            recipients = [
                uid for uid in await IdentityService.list_super_admin_ids(db)
                if uid != actor_id
            ]
            for uid in recipients:
                db.add(Notification(
                    user_id=uid,
                    title=title,
                    message=message,
                    type=NotificationType.SECURITY.value,
                    action_url=action_url,
                ))
            if recipients:
                await db.commit()
            return len(recipients)
        except Exception as e:
            await db.rollback()
            logger.error(f"❌ Falha ao notificar super admins ({title}): {e}")
            return 0
