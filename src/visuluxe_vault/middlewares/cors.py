"""
visuluxe_vault/middlewares/cors.py — CORS permissivo para o painel admin.

Dois ajustes sobre o CORSMiddleware do Starlette:
  - todo preflight responde 200 com corpo vazio, qualquer que seja o
    cabeçalho ou método pedido
  - exceção inesperada vira {"error": ...} dentro da camada de CORS, então
    o 500 também leva Access-Control-Allow-Origin
"""
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from visuluxe_vault.services.safe_errors import get_safe_error_message

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]
CORS_ALLOW_METHODS = ["GET", "POST", "OPTIONS"]


class VaultCORSMiddleware(CORSMiddleware):

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        headers = {
            k: v for k, v in response.headers.items()
            if k.startswith("access-control-") or k == "vary"
        }
        return Response(status_code=200, headers=headers)


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    """Última rede: qualquer exceção não tratada vira 500 com mensagem segura."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception(f"💥 Erro não tratado em {request.method} {request.url.path}")
            return JSONResponse(status_code=500, content={"error": get_safe_error_message(exc)})


def install_cors(app, allow_origins: list[str]):
    """Registra as duas camadas. A de erros precisa ficar DENTRO da de CORS."""
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(
        VaultCORSMiddleware,
        allow_origins=allow_origins,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=[*CORS_ALLOW_HEADERS, "*"],
    )
