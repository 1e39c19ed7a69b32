"""
visuluxe_vault/routes/provider_connection_routes.py — POST /test-provider-connection

Corpo: { "provider_id": str }. Mesmo Access Gate do gerenciamento de chaves.
Máx. 5 testes por minuto por provedor.
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.controllers.provider_connection_controller import (
    ProviderConnectionController,
    ConnectionTestRequest,
)
from visuluxe_vault.database import get_db
from visuluxe_vault.middlewares.auth import require_admin, require_cipher
from visuluxe_vault.models.user import User
from visuluxe_vault.services.audit import RequestMeta
from visuluxe_vault.services.crypto import Cipher

router = APIRouter(tags=["Provider Keys"])


@router.options("/test-provider-connection", include_in_schema=False)
async def provider_connection_preflight():
    return Response(status_code=200)


@router.post("/test-provider-connection", summary="Testar a chave de um provedor contra a API dele")
async def provider_connection(
    body: ConnectionTestRequest,
    request: Request,
    cipher: Cipher = Depends(require_cipher),
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    state = request.app.state
    controller = ProviderConnectionController(
        db, cipher, state.connection_tester, state.provider_test_rate_limiter,
    )
    return await controller.test(body.provider_id, user, RequestMeta.from_request(request))
