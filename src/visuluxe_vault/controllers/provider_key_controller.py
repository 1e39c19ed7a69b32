"""
visuluxe_vault/controllers/provider_key_controller.py — Chaves de API dos provedores.

Quatro ações, todas atrás do Access Gate (admin ou acima):

  encrypt            → cifra uma chave nova e devolve blob + máscara (não persiste;
                       quem grava no provedor é o gerenciamento de provedores)
  decrypt            → rate limit + step-up com senha, decifra, audita e avisa
                       os super admins
  get_masked         → visão mascarada, sem nunca expor o segredo
  re_encrypt_legacy  → migra chave legada em texto puro para o formato cifrado

Auditoria e notificações são best-effort (ver services/audit.py).
"""
import enum
from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.errors import DecryptionFailed, InvalidInput, NotFound, Unauthenticated
from visuluxe_vault.models.audit_log import PROVIDER_KEY_DECRYPTED, PROVIDER_KEY_ENCRYPTED
from visuluxe_vault.models.provider import KeyState, Provider
from visuluxe_vault.models.user import User
from visuluxe_vault.services.audit import AuditService, RequestMeta
from visuluxe_vault.services.crypto import Cipher
from visuluxe_vault.services.identity import IdentityService
from visuluxe_vault.services.masking import MASK, mask_api_key
from visuluxe_vault.services.rate_limiter import DecryptRateLimiter


class KeyAction(str, enum.Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"
    GET_MASKED = "get_masked"
    RE_ENCRYPT_LEGACY = "re_encrypt_legacy"

    @classmethod
    def parse(cls, raw: Any) -> "KeyAction":
        """Qualquer tag fora das quatro (inclusive não-string) vira 400."""
        try:
            if not isinstance(raw, str):
                raise ValueError(raw)
            return cls(raw)
        except ValueError:
            raise InvalidInput(
                "Invalid action. Use: encrypt, decrypt, get_masked, or re_encrypt_legacy"
            )


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class ManageKeysRequest(BaseModel):
    # qualquer tipo; KeyAction.parse valida
    action: Any = None
    provider_id: Optional[str] = None
    api_key: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True)
class MaskedView:
    has_key: bool
    is_encrypted: bool
    masked_key: Optional[str]
    # blob marcado como cifrado que não decifra: legado mal marcado ou corrompido
    corrupted: bool = False


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

async def get_provider_or_404(db: AsyncSession, provider_id: str) -> Provider:
    result = await db.execute(select(Provider).where(Provider.id == provider_id))
    provider = result.scalar_one_or_none()
    if not provider:
        raise NotFound("Provider not found")
    return provider


class ProviderKeyController:

    def __init__(self, db: AsyncSession, cipher: Cipher, rate_limiter: DecryptRateLimiter):
        self.db = db
        self.cipher = cipher
        self.rate_limiter = rate_limiter

    async def _get_provider(self, provider_id: str) -> Provider:
        return await get_provider_or_404(self.db, provider_id)

    # ------------------------------------------------------------------
    # encrypt
    # ------------------------------------------------------------------

    def encrypt_for_storage(self, api_key: Optional[str]) -> dict:
        if not api_key:
            raise InvalidInput("API key is required")
        return {
            "success": True,
            "encrypted_key": self.cipher.encrypt(api_key),
            "masked_key": mask_api_key(api_key),
        }

    # ------------------------------------------------------------------
    # get_masked
    # ------------------------------------------------------------------

    async def masked_view(self, provider_id: str) -> MaskedView:
        provider = await self._get_provider(provider_id)

        if not provider.has_key:
            return MaskedView(has_key=False, is_encrypted=False, masked_key=None)

        match provider.key_state:
            case KeyState.ENCRYPTED:
                try:
                    plain = self.cipher.decrypt(provider.api_key_encrypted)
                except DecryptionFailed as e:
                    # Compatibilidade: trata como legado e mascara o valor bruto
                    logger.warning(
                        f"⚠️ Chave marcada como cifrada não decifra (provider={provider.id}): {e.message}"
                    )
                    return MaskedView(
                        has_key=True,
                        is_encrypted=False,
                        masked_key=MASK + provider.api_key_encrypted[-4:],
                        corrupted=True,
                    )
                return MaskedView(has_key=True, is_encrypted=True, masked_key=mask_api_key(plain))
            case KeyState.PLAINTEXT:
                return MaskedView(
                    has_key=True,
                    is_encrypted=False,
                    masked_key=mask_api_key(provider.api_key_encrypted),
                )

    async def get_masked(self, provider_id: Optional[str]) -> dict:
        if not provider_id:
            raise InvalidInput("Provider ID is required")
        view = await self.masked_view(provider_id)
        return {
            "success": True,
            "masked_key": view.masked_key,
            "has_key": view.has_key,
            "is_encrypted": view.is_encrypted,
        }

    # ------------------------------------------------------------------
    # re_encrypt_legacy
    # ------------------------------------------------------------------

    async def migrate_legacy(self, provider_id: Optional[str], actor: User, meta: RequestMeta) -> dict:
        if not provider_id:
            raise InvalidInput("Provider ID is required")

        provider = await self._get_provider(provider_id)
        if not provider.has_key:
            raise InvalidInput("No API key to encrypt")

        if provider.key_state is KeyState.ENCRYPTED:
            return {"success": True, "message": "Key already encrypted"}

        # rollback no audit expira as instâncias: guarde o que precisa antes
        target_id, name, actor_id = provider.id, provider.name, actor.id

        provider.mark_encrypted(self.cipher.encrypt(provider.api_key_encrypted))
        await self.db.commit()
        logger.info(f"🔐 Chave legada cifrada: provider={target_id} actor={actor_id}")

        await AuditService.record(
            self.db,
            actor_id=actor_id,
            action=PROVIDER_KEY_ENCRYPTED,
            target_type="providers",
            target_id=target_id,
            details={
                "provider_name": name,
                "ip_address": meta.ip_address,
                "migration_type": "legacy_to_encrypted",
            },
            meta=meta,
        )

        return {"success": True, "message": f"Key for {name} encrypted successfully"}

    # ------------------------------------------------------------------
    # decrypt
    # ------------------------------------------------------------------

    async def reveal(
        self,
        provider_id: Optional[str],
        password: Optional[str],
        actor: User,
        meta: RequestMeta,
    ) -> dict:
        if not provider_id:
            raise InvalidInput("Provider ID is required")
        if not password:
            raise InvalidInput("Password is required for re-authentication")

        await self.rate_limiter.check(self.db, actor.id, meta.ip_or_unknown)

        if not await IdentityService.verify_password(actor, password):
            raise Unauthenticated("Invalid password")

        provider = await self._get_provider(provider_id)
        if not provider.has_key:
            raise NotFound("No API key stored for this provider")

        try:
            plain = self.cipher.decrypt(provider.api_key_encrypted)
        except DecryptionFailed as e:
            logger.error(f"❌ Decrypt falhou (provider={provider.id}): {e.message}")
            raise DecryptionFailed(
                "Failed to decrypt key. It may be stored in plain text or corrupted."
            ) from e

        target_id, name = provider.id, provider.name
        actor_id, actor_email = actor.id, actor.email
        logger.info(f"🔓 Chave revelada: provider={target_id} actor={actor_id}")

        await AuditService.record(
            self.db,
            actor_id=actor_id,
            action=PROVIDER_KEY_DECRYPTED,
            target_type="providers",
            target_id=target_id,
            details={
                "provider_name": name,
                "ip_address": meta.ip_address,
                "user_agent": meta.user_agent,
            },
            meta=meta,
        )
        await AuditService.notify_super_admins(
            self.db,
            actor_id=actor_id,
            title="API Key Decrypted",
            message=f'{actor_email} viewed the API key for provider "{name}"',
        )

        return {"success": True, "api_key": plain, "masked_key": mask_api_key(plain)}

    # ------------------------------------------------------------------
    # Despacho
    # ------------------------------------------------------------------

    async def handle(self, body: ManageKeysRequest, actor: User, meta: RequestMeta) -> dict:
        action = KeyAction.parse(body.action)
        match action:
            case KeyAction.ENCRYPT:
                return self.encrypt_for_storage(body.api_key)
            case KeyAction.DECRYPT:
                return await self.reveal(body.provider_id, body.password, actor, meta)
            case KeyAction.GET_MASKED:
                return await self.get_masked(body.provider_id)
            case KeyAction.RE_ENCRYPT_LEGACY:
                return await self.migrate_legacy(body.provider_id, actor, meta)
