"""
visuluxe_vault/routes/provider_key_routes.py — POST /manage-provider-keys

Endpoint único, despachado pela ação do corpo:
  { "action": "encrypt" | "decrypt" | "get_masked" | "re_encrypt_legacy",
    "provider_id"?: str, "api_key"?: str, "password"?: str }

Dependências na ordem do Access Gate: cipher → bearer → papel admin.
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.controllers.provider_key_controller import ManageKeysRequest, ProviderKeyController
from visuluxe_vault.database import get_db
from visuluxe_vault.middlewares.auth import require_admin, require_cipher
from visuluxe_vault.models.user import User
from visuluxe_vault.services.audit import RequestMeta
from visuluxe_vault.services.crypto import Cipher

router = APIRouter(tags=["Provider Keys"])


@router.options("/manage-provider-keys", include_in_schema=False)
async def manage_provider_keys_preflight():
    return Response(status_code=200)


@router.post("/manage-provider-keys", summary="Gerenciar chaves de API dos provedores")
async def manage_provider_keys(
    body: ManageKeysRequest,
    request: Request,
    cipher: Cipher = Depends(require_cipher),
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    - **encrypt**: cifra `api_key` e devolve `encrypted_key` + `masked_key`
    - **decrypt**: exige `provider_id` + `password`; máx. 10 por hora por usuário
    - **get_masked**: `masked_key`, `has_key`, `is_encrypted` de `provider_id`
    - **re_encrypt_legacy**: migra a chave em texto puro de `provider_id`
    """
    controller = ProviderKeyController(db, cipher, request.app.state.rate_limiter)
    return await controller.handle(body, user, RequestMeta.from_request(request))
