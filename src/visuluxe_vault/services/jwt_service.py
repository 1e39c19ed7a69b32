"""
visuluxe_vault/services/jwt_service.py — Tokens de sessão dos usuários da plataforma.

Claims: sub (id do usuário), email, iat, exp. O papel NÃO vai no token:
o Access Gate relê user_roles a cada requisição, então rebaixar um admin
vale na hora, sem esperar o token expirar.
"""
from datetime import datetime, timedelta, timezone

import jwt

from visuluxe_vault.config import Settings

REQUIRED_CLAIMS = ["sub", "exp"]


def create_token(settings: Settings, user_id: str, email: str) -> dict:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "email": email,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    }
    return {
        "access_token": jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM),
        "token_type": "bearer",
        "expires_in_minutes": settings.JWT_EXPIRE_MINUTES,
    }


def verify_token(settings: Settings, token: str) -> dict:
    """Claims do token. Sem sub/exp, assinatura errada ou expirado → jwt.InvalidTokenError."""
    return jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": REQUIRED_CLAIMS},
    )
