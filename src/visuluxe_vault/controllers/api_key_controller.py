"""
visuluxe_vault/controllers/api_key_controller.py — Emissão de chaves de API da plataforma.

Formato: "sk-" + 64 hex (32 bytes aleatórios). No banco vão só o
SHA-256 e os 8 primeiros caracteres; a chave completa volta UMA vez.
"""
import hashlib
import secrets
from datetime import timedelta
from typing import Optional

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.database import utcnow
from visuluxe_vault.errors import InvalidInput
from visuluxe_vault.models.api_key import ApiKey
from visuluxe_vault.models.audit_log import API_KEY_CREATED
from visuluxe_vault.models.user import User
from visuluxe_vault.services.audit import AuditService, RequestMeta

KEY_PREFIX_LENGTH = 8


class CreateApiKeyRequest(BaseModel):
    name: Optional[str] = None
    expires_in_days: Optional[int] = None


def generate_api_key() -> str:
    return "sk-" + secrets.token_hex(32)


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class ApiKeyController:

    @staticmethod
    async def count_active(db: AsyncSession, user_id: str) -> int:
        result = await db.execute(
            select(func.count(ApiKey.id)).where(ApiKey.user_id == user_id, ApiKey.status == "active")
        )
        return result.scalar_one()

    @staticmethod
    async def create(
        db: AsyncSession,
        user: User,
        body: CreateApiKeyRequest,
        max_active: int,
        meta: RequestMeta,
    ) -> dict:
        name = (body.name or "").strip()
        if not name:
            raise InvalidInput("Key name is required")

        if await ApiKeyController.count_active(db, user.id) >= max_active:
            raise InvalidInput(f"Maximum of {max_active} active API keys allowed")

        full_key = generate_api_key()
        expires_at = None
        if body.expires_in_days and body.expires_in_days > 0:
            expires_at = utcnow() + timedelta(days=body.expires_in_days)

        api_key = ApiKey(
            user_id=user.id,
            name=name,
            key_hash=hash_api_key(full_key),
            key_prefix=full_key[:KEY_PREFIX_LENGTH],
            status="active",
            expires_at=expires_at,
        )
        db.add(api_key)
        await db.commit()
        await db.refresh(api_key)

        response = {
            "success": True,
            "api_key": {
                "id": api_key.id,
                "name": api_key.name,
                "key": full_key,
                "key_prefix": api_key.key_prefix,
                "created_at": api_key.created_at.isoformat(),
                "expires_at": api_key.expires_at.isoformat() if api_key.expires_at else None,
                "status": api_key.status,
            },
            "warning": "Save this key securely. It will not be shown again.",
        }
        logger.info(f"🔑 Nova API key {api_key.key_prefix}… para user={user.id}")

        await AuditService.record(
            db,
            actor_id=user.id,
            action=API_KEY_CREATED,
            target_type="api_keys",
            target_id=api_key.id,
            details={"name": name, "key_prefix": api_key.key_prefix},
            meta=meta,
        )
        return response
