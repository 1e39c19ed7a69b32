"""
visuluxe_vault/middlewares/auth.py — Access Gate das rotas do Vault.

Etapas, nesta ordem:
  1. Chave de cifragem configurada no servidor       → senão 500
  2. Bearer JWT presente e válido, usuário ativo      → senão 401
  3. Papel admin ou acima (super_admin | admin)       → senão 403
  4. (só decrypt) rate limit e step-up com senha      → 429 / 401,
     feitos no controller, depois do despacho da ação

Declare as dependências na rota nesta mesma ordem: o FastAPI resolve
os parâmetros na ordem em que aparecem.
"""
import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.config import Settings
from visuluxe_vault.database import get_db
from visuluxe_vault.errors import Forbidden, ServerMisconfigured, Unauthenticated
from visuluxe_vault.models.user import User
from visuluxe_vault.services.crypto import Cipher
from visuluxe_vault.services.identity import IdentityService
from visuluxe_vault.services.jwt_service import verify_token


bearer_scheme = HTTPBearer(auto_error=False)


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


# ---------------------------------------------------------------------------
# Dependência: Cipher (ENCRYPTION_KEY)
# ---------------------------------------------------------------------------

def require_cipher(request: Request) -> Cipher:
    cipher: Cipher | None = request.app.state.cipher
    if cipher is None:
        logger.error("❌ ENCRYPTION_KEY não configurada")
        raise ServerMisconfigured("Encryption not configured on server")
    return cipher


# ---------------------------------------------------------------------------
# Dependência: usuário autenticado (Bearer JWT)
# ---------------------------------------------------------------------------

async def require_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings_dep),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Valida o Bearer JWT e retorna o usuário ativo.
    Lança 401 se ausente, inválido, expirado ou se o usuário não existe mais.
    """
    if not request.headers.get("authorization"):
        raise Unauthenticated("Missing authorization header")
    # header presente mas sem "Bearer <token>"
    if not credentials:
        raise Unauthenticated("Unauthorized")

    try:
        payload = verify_token(settings, credentials.credentials)
    except jwt.InvalidTokenError:
        # ExpiredSignatureError é subclasse de InvalidTokenError
        raise Unauthenticated("Unauthorized")

    user_id = payload.get("sub")
    user = await IdentityService.get_user(db, user_id) if user_id else None
    if not user:
        raise Unauthenticated("Unauthorized")
    return user


# ---------------------------------------------------------------------------
# Dependência: admin ou acima
# ---------------------------------------------------------------------------

async def require_admin(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not await IdentityService.is_admin_or_above(db, user.id):
        logger.warning(f"🚫 Acesso admin negado para user={user.id}")
        raise Forbidden("Admin access required")
    return user
