"""
visuluxe_vault/services/rate_limiter.py — Limites de uso das ações sensíveis.

Decrypt (por ator): janela deslizante calculada a partir do audit log (provider_key_decrypted
nos últimos N minutos). Não é um contador atômico: sob alta concorrência
o limite pode ser ultrapassado por pouco.

Teste de conexão (por provedor): janela fixa em memória, zera quando o
processo reinicia. Protege as APIs dos provedores, não o segredo.
"""
import math
import time
from datetime import timedelta
from typing import Callable

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.database import utcnow
from visuluxe_vault.errors import RateLimited
from visuluxe_vault.models.audit_log import PROVIDER_KEY_DECRYPTED, AuditLog


class DecryptRateLimiter:

    def __init__(self, max_per_window: int = 10, window: timedelta = timedelta(hours=1)):
        self.max_per_window = max_per_window
        self.window = window

    async def count_recent(self, db: AsyncSession, actor_id: str) -> int:
        since = utcnow() - self.window
        result = await db.execute(
            select(func.count(AuditLog.id)).where(
                AuditLog.actor_id == actor_id,
                AuditLog.action == PROVIDER_KEY_DECRYPTED,
                AuditLog.created_at >= since,
            )
        )
        return result.scalar_one()

    async def check(self, db: AsyncSession, actor_id: str, ip: str = "unknown"):
        """Lança RateLimited se o ator já atingiu o limite na janela."""
        count = await self.count_recent(db, actor_id)
        if count >= self.max_per_window:
            logger.warning(f"⛔ Rate limit de decrypt atingido: user={actor_id} ip={ip} count={count}")
            raise RateLimited(
                f"Rate limit exceeded. Max {self.max_per_window} decryptions per "
                f"{self._window_label()}. IP: {ip}"
            )

    def _window_label(self) -> str:
        minutes = int(self.window.total_seconds() // 60)
        if minutes == 60:
            return "hour"
        return f"{minutes} minutes"


class ProviderTestRateLimiter:

    def __init__(
        self,
        max_per_window: int = 5,
        window: timedelta = timedelta(minutes=1),
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_per_window = max_per_window
        self.window = window
        self._clock = clock
        self._hits: dict[str, tuple[int, float]] = {}  # provider_id → (contagem, reset_at)

    def check(self, provider_id: str):
        """Conta um teste; lança RateLimited com o tempo de espera se estourou."""
        now = self._clock()
        count, reset_at = self._hits.get(provider_id, (0, 0.0))

        if count == 0 or now > reset_at:
            self._hits[provider_id] = (1, now + self.window.total_seconds())
            return

        if count >= self.max_per_window:
            retry_after = math.ceil(reset_at - now)
            logger.warning(f"⛔ Rate limit de teste de conexão: provider={provider_id}")
            raise RateLimited(f"Rate limit exceeded. Try again in {retry_after} seconds")

        self._hits[provider_id] = (count + 1, reset_at)
