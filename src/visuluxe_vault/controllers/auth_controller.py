"""
visuluxe_vault/controllers/auth_controller.py — Login de usuários da plataforma.
"""
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.config import Settings
from visuluxe_vault.errors import Unauthenticated
from visuluxe_vault.services.identity import IdentityService
from visuluxe_vault.services.jwt_service import create_token
from visuluxe_vault.services.safe_errors import get_auth_error_message


class AuthController:

    @staticmethod
    async def authenticate(
        db: AsyncSession,
        settings: Settings,
        email: str,
        password: str,
        ip: str | None = None,
    ) -> dict:
        """
        Troca email+senha por um JWT de sessão.
        Lança Unauthenticated se as credenciais não conferem.
        """
        user = await IdentityService.authenticate(db, email, password)
        if not user:
            logger.warning(f"🚫 Login falhou para email={email!r} ip={ip or 'unknown'}")
            raise Unauthenticated(get_auth_error_message({"code": "invalid_credentials"}, "signin"))
        return create_token(settings, user.id, user.email)
