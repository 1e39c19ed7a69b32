"""
visuluxe_vault/client.py — SDK para ferramentas admin acessarem o Vault.

USO BÁSICO:

    from visuluxe_vault.client import ProviderKeysClient

    vault = ProviderKeysClient(
        base_url="http://visuluxe-vault:8003",
        email="admin@visuluxe.app",
        password="...",
    )

    await vault.get_masked(provider_id)        # {"masked_key": "••••••••-123", ...}
    await vault.re_encrypt_legacy(provider_id)
    await vault.test_connection(provider_id)   # {"success": true, "responseTime": 182, ...}
    blob = await vault.encrypt("sk-live-...")  # {"encrypted_key": ..., "masked_key": ...}
    key = await vault.decrypt(provider_id)     # step-up com a mesma senha do login

Renovação automática de JWT: o chamador não precisa gerenciar tokens.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx


class VaultClientError(Exception):
    """Resposta de erro do Vault ({"error": "..."})."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


def _raise_for_error(resp: httpx.Response):
    if resp.is_success:
        return
    try:
        message = resp.json().get("error") or resp.reason_phrase
    except ValueError:
        message = resp.reason_phrase
    raise VaultClientError(resp.status_code, message)


class ProviderKeysClient:
    """
    Client assíncrono para o Visuluxe-Vault.

    transport: opcional, repassado ao httpx (ex.: ASGITransport ou
    MockTransport em testes).
    """

    def __init__(
        self,
        base_url: str,
        email: str,
        password: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10,
    ):
        self.base_url = base_url.rstrip("/")
        self.email = email
        self._password = password
        self._transport = transport
        self._timeout = timeout
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, transport=self._transport, timeout=self._timeout)

    # ------------------------------------------------------------------
    # Auth interna
    # ------------------------------------------------------------------

    async def _ensure_token(self):
        """Renova o JWT se expirado ou ausente."""
        now = datetime.now(timezone.utc)
        if self._token and self._token_expires_at and now < self._token_expires_at - timedelta(minutes=1):
            return

        async with self._client() as client:
            resp = await client.post(
                "/auth/token",
                json={"email": self.email, "password": self._password},
            )
        _raise_for_error(resp)
        data = resp.json()
        self._token = data["access_token"]
        self._token_expires_at = now + timedelta(minutes=data["expires_in_minutes"])

    async def _post(self, path: str, body: dict) -> dict:
        await self._ensure_token()
        async with self._client() as client:
            resp = await client.post(
                path,
                headers={"Authorization": f"Bearer {self._token}"},
                json=body,
            )
        _raise_for_error(resp)
        return resp.json()

    async def _action(self, action: str, **fields) -> dict:
        body = {"action": action, **{k: v for k, v in fields.items() if v is not None}}
        return await self._post("/manage-provider-keys", body)

    # ------------------------------------------------------------------
    # Ações
    # ------------------------------------------------------------------

    async def encrypt(self, api_key: str) -> dict:
        """Cifra uma chave nova. Não grava nada: devolve encrypted_key e masked_key."""
        return await self._action("encrypt", api_key=api_key)

    async def decrypt(self, provider_id: str, password: Optional[str] = None) -> str:
        """
        Revela a chave de um provedor. Usa a senha do login como step-up
        se outra não for informada. Máx. 10 por hora.
        """
        data = await self._action("decrypt", provider_id=provider_id, password=password or self._password)
        return data["api_key"]

    async def get_masked(self, provider_id: str) -> dict:
        return await self._action("get_masked", provider_id=provider_id)

    async def re_encrypt_legacy(self, provider_id: str) -> str:
        data = await self._action("re_encrypt_legacy", provider_id=provider_id)
        return data["message"]

    async def test_connection(self, provider_id: str) -> dict:
        """Chama a API do provedor com a chave guardada. Falha do provedor vem em success=false."""
        return await self._post("/test-provider-connection", {"provider_id": provider_id})
