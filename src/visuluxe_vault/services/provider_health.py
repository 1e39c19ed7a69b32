"""
visuluxe_vault/services/provider_health.py — Teste de conectividade com provedores.

Descobre o tipo do provedor (pelo nome ou pela base_url), monta a
requisição mais barata que exige a chave e mede a resposta. A chave
NUNCA volta no resultado: se ela fizer parte da URL (Google), o endpoint
reportado sai com "***" no lugar.
"""
import enum
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx
from loguru import logger

from visuluxe_vault.database import utcnow

ERROR_DETAILS_LIMIT = 500
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_TEST_MODEL = "claude-3-haiku-20240307"


class ProviderType(str, enum.Enum):
    OPENAI = "openai"
    REPLICATE = "replicate"
    STABILITY = "stability"
    TOGETHER = "together"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    FAL = "fal"
    GENERIC = "generic"


# (tipo, trecho no nome, trecho na base_url) — a primeira que bater vence
_DETECTION = [
    (ProviderType.OPENAI, "openai", "openai.com"),
    (ProviderType.REPLICATE, "replicate", "replicate.com"),
    (ProviderType.STABILITY, "stability", "stability.ai"),
    (ProviderType.TOGETHER, "together", "together.xyz"),
    (ProviderType.ANTHROPIC, "anthropic", "anthropic.com"),
    (ProviderType.GOOGLE, "google", "generativelanguage.googleapis.com"),
    (ProviderType.FAL, "fal", "fal.run"),
]


def detect_provider_type(name: str, base_url: Optional[str]) -> ProviderType:
    name_lower = name.lower()
    url_lower = (base_url or "").lower()
    for kind, name_hint, url_hint in _DETECTION:
        if name_hint in name_lower or url_hint in url_lower:
            return kind
    return ProviderType.GENERIC


@dataclass(frozen=True)
class HealthEndpoint:
    url: str
    method: str
    headers: dict
    json: Optional[dict] = None


def health_endpoint(kind: ProviderType, base_url: Optional[str], api_key: str) -> HealthEndpoint:
    headers = {"Content-Type": "application/json"}
    bearer = {**headers, "Authorization": f"Bearer {api_key}"}

    match kind:
        case ProviderType.OPENAI:
            url = f"{base_url}/models" if base_url else "https://api.openai.com/v1/models"
            return HealthEndpoint(url, "GET", bearer)
        case ProviderType.REPLICATE:
            return HealthEndpoint("https://api.replicate.com/v1/predictions", "GET", bearer)
        case ProviderType.STABILITY:
            url = f"{base_url}/engines/list" if base_url else "https://api.stability.ai/v1/engines/list"
            return HealthEndpoint(url, "GET", bearer)
        case ProviderType.TOGETHER:
            return HealthEndpoint("https://api.together.xyz/v1/models", "GET", bearer)
        case ProviderType.ANTHROPIC:
            url = f"{base_url}/messages" if base_url else "https://api.anthropic.com/v1/messages"
            return HealthEndpoint(
                url,
                "POST",
                {**headers, "x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION},
                json={
                    "model": ANTHROPIC_TEST_MODEL,
                    "max_tokens": 1,
                    "messages": [{"role": "user", "content": "test"}],
                },
            )
        case ProviderType.GOOGLE:
            return HealthEndpoint(
                f"https://generativelanguage.googleapis.com/v1/models?key={api_key}", "GET", headers,
            )
        case ProviderType.FAL:
            return HealthEndpoint(
                base_url or "https://fal.run", "GET", {**headers, "Authorization": f"Key {api_key}"},
            )
        case ProviderType.GENERIC:
            return HealthEndpoint(base_url or "", "GET", bearer)


@dataclass
class ConnectionResult:
    success: bool
    message: str
    response_time_ms: int = 0
    status_code: int = 0
    endpoint: str = ""
    method: Optional[str] = None
    error_details: Optional[str] = None
    tested_at: str = field(default_factory=lambda: utcnow().isoformat() + "Z")

    @classmethod
    def not_attempted(cls, message: str, error_details: str) -> "ConnectionResult":
        return cls(success=False, message=message, error_details=error_details)

    def to_response(self) -> dict:
        details = {
            "statusCode": self.status_code,
            "endpoint": self.endpoint,
            "timestamp": self.tested_at,
        }
        if self.method:
            details["method"] = self.method
        if self.error_details is not None:
            details["errorDetails"] = self.error_details
        return {
            "success": self.success,
            "message": self.message,
            "responseTime": self.response_time_ms,
            "details": details,
        }


def _failure_message(status_code: int) -> str:
    if status_code in (401, 403):
        return "Invalid API key or unauthorized"
    if status_code == 429:
        return "Provider rate limit exceeded"
    if status_code >= 500:
        return "Provider server error"
    return "Provider returned an error"


class ProviderConnectionTester:
    """
    Faz a chamada de saúde ao provedor.

    transport: opcional, repassado ao httpx (MockTransport nos testes).
    """

    def __init__(self, timeout: float = 10, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    async def run(self, endpoint: HealthEndpoint, api_key: str) -> ConnectionResult:
        shown = endpoint.url.replace(api_key, "***")
        started = time.perf_counter()

        def elapsed() -> int:
            return int((time.perf_counter() - started) * 1000)

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                resp = await client.request(
                    endpoint.method, endpoint.url, headers=endpoint.headers, json=endpoint.json,
                )
        except httpx.TimeoutException as e:
            logger.warning(f"⏱️ Timeout testando {shown}")
            return ConnectionResult(
                success=False,
                message=f"Connection timeout after {int(self.timeout)} seconds",
                response_time_ms=elapsed(),
                endpoint=shown,
                method=endpoint.method,
                error_details=str(e) or "Timeout",
            )
        except httpx.HTTPError as e:
            logger.warning(f"🔌 Falha de rede testando {shown}: {type(e).__name__}")
            return ConnectionResult(
                success=False,
                message="Unable to reach provider API",
                response_time_ms=elapsed(),
                endpoint=shown,
                method=endpoint.method,
                error_details=str(e) or type(e).__name__,
            )

        if resp.is_success:
            return ConnectionResult(
                success=True,
                message="Connection successful",
                response_time_ms=elapsed(),
                status_code=resp.status_code,
                endpoint=shown,
                method=endpoint.method,
            )
        return ConnectionResult(
            success=False,
            message=_failure_message(resp.status_code),
            response_time_ms=elapsed(),
            status_code=resp.status_code,
            endpoint=shown,
            method=endpoint.method,
            error_details=resp.text[:ERROR_DETAILS_LIMIT],
        )
