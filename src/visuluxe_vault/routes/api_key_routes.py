"""
visuluxe_vault/routes/api_key_routes.py — POST /create-api-key

Qualquer usuário autenticado pode emitir chaves da plataforma
(limite de chaves ativas por usuário em MAX_ACTIVE_API_KEYS).
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.config import Settings
from visuluxe_vault.controllers.api_key_controller import ApiKeyController, CreateApiKeyRequest
from visuluxe_vault.database import get_db
from visuluxe_vault.middlewares.auth import get_settings_dep, require_user
from visuluxe_vault.models.user import User
from visuluxe_vault.services.audit import RequestMeta

router = APIRouter(tags=["API Keys"])


@router.options("/create-api-key", include_in_schema=False)
async def create_api_key_preflight():
    return Response(status_code=200)


@router.post("/create-api-key", summary="Emitir nova chave de API da plataforma")
async def create_api_key(
    body: CreateApiKeyRequest,
    request: Request,
    user: User = Depends(require_user),
    settings: Settings = Depends(get_settings_dep),
    db: AsyncSession = Depends(get_db),
):
    """
    Retorna a chave completa **uma única vez**. Guarde-a agora.
    """
    return await ApiKeyController.create(
        db, user, body, settings.MAX_ACTIVE_API_KEYS, RequestMeta.from_request(request)
    )
