"""
visuluxe_vault/routes/auth_routes.py — POST /auth/token

Usuários da plataforma trocam email+senha por um JWT de sessão,
usado depois como Bearer nas demais rotas.
"""
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.config import Settings
from visuluxe_vault.controllers.auth_controller import AuthController
from visuluxe_vault.database import get_db
from visuluxe_vault.middlewares.auth import get_settings_dep
from visuluxe_vault.services.audit import client_ip

router = APIRouter(prefix="/auth", tags=["Auth"])


class TokenRequest(BaseModel):
    email: str
    password: str


@router.post("/token", summary="Autenticar usuário e obter JWT")
async def get_token(
    body: TokenRequest,
    request: Request,
    settings: Settings = Depends(get_settings_dep),
    db: AsyncSession = Depends(get_db),
):
    """
    Retorna JWT válido por `JWT_EXPIRE_MINUTES` (padrão: 60min).
    """
    return await AuthController.authenticate(
        db, settings, body.email, body.password, ip=client_ip(request)
    )
