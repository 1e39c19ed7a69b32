"""
visuluxe_vault/controllers/provider_connection_controller.py — Teste de conexão.

Decifra a chave guardada (ou usa a legada em texto puro), chama o
endpoint de saúde do provedor e grava o resultado no provedor e no
audit log. Falha do provedor NÃO é erro da rota: volta 200 com
success=false e o motivo.
"""
from typing import Optional

from loguru import logger
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.controllers.provider_key_controller import get_provider_or_404
from visuluxe_vault.errors import DecryptionFailed, InvalidInput
from visuluxe_vault.models.audit_log import PROVIDER_CONNECTION_TESTED
from visuluxe_vault.models.provider import KeyState
from visuluxe_vault.models.user import User
from visuluxe_vault.services.audit import AuditService, RequestMeta
from visuluxe_vault.services.crypto import Cipher
from visuluxe_vault.services.provider_health import (
    ConnectionResult,
    ProviderConnectionTester,
    detect_provider_type,
    health_endpoint,
)
from visuluxe_vault.services.rate_limiter import ProviderTestRateLimiter


class ConnectionTestRequest(BaseModel):
    provider_id: Optional[str] = None


class ProviderConnectionController:

    def __init__(
        self,
        db: AsyncSession,
        cipher: Cipher,
        tester: ProviderConnectionTester,
        rate_limiter: ProviderTestRateLimiter,
    ):
        self.db = db
        self.cipher = cipher
        self.tester = tester
        self.rate_limiter = rate_limiter

    async def test(self, provider_id: Optional[str], actor: User, meta: RequestMeta) -> dict:
        if not provider_id:
            raise InvalidInput("Missing provider_id")

        self.rate_limiter.check(provider_id)
        provider = await get_provider_or_404(self.db, provider_id)

        if not provider.has_key:
            return ConnectionResult.not_attempted(
                "No API key configured for this provider", "API key not set",
            ).to_response()

        if provider.key_state is KeyState.ENCRYPTED:
            try:
                api_key = self.cipher.decrypt(provider.api_key_encrypted)
            except DecryptionFailed as e:
                logger.error(f"❌ Decrypt falhou no teste de conexão (provider={provider.id}): {e.message}")
                return ConnectionResult.not_attempted(
                    "Failed to decrypt API key", "Decryption error",
                ).to_response()
        else:
            api_key = provider.api_key_encrypted

        kind = detect_provider_type(provider.name, provider.base_url)
        endpoint = health_endpoint(kind, provider.base_url, api_key)
        if not endpoint.url:
            return ConnectionResult.not_attempted(
                "No base URL configured for this provider", "Missing base URL",
            ).to_response()

        result = await self.tester.run(endpoint, api_key)

        target_id, display_name, actor_id = provider.id, provider.display_name, actor.id
        provider.record_test(result.success, result.message, result.response_time_ms)
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"❌ Falha ao gravar resultado do teste (provider={target_id}): {e}")

        status = "success" if result.success else "failed"
        logger.info(f"🩺 Teste de conexão: {display_name} → {status} ({result.response_time_ms}ms)")

        await AuditService.record(
            self.db,
            actor_id=actor_id,
            action=PROVIDER_CONNECTION_TESTED,
            target_type="provider",
            target_id=target_id,
            details={
                "provider_name": display_name,
                "provider_type": kind.value,
                "result": status,
                "response_time_ms": result.response_time_ms,
                "error_message": None if result.success else result.message,
            },
            meta=meta,
        )
        return result.to_response()
