"""
visuluxe_vault/main.py — Ponto de entrada do Visuluxe-Vault.

create_app(settings) monta tudo a partir de um Settings explícito:
engine/sessões, Cipher (se ENCRYPTION_KEY existir), rate limiter,
CORS e os handlers que transformam qualquer erro em {"error": "..."}
(inclusive os inesperados, ver middlewares/cors.py).

Rodar:  visuluxe-vault   (ou uvicorn visuluxe_vault.main:create_app --factory)
"""
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from visuluxe_vault import __version__
from visuluxe_vault.config import Settings, get_settings
from visuluxe_vault.database import build_engine, build_sessionmaker, init_db
from visuluxe_vault.errors import VaultError
from visuluxe_vault.middlewares.cors import install_cors
from visuluxe_vault.routes.api_key_routes import router as api_key_router
from visuluxe_vault.routes.auth_routes import router as auth_router
from visuluxe_vault.routes.provider_connection_routes import router as provider_connection_router
from visuluxe_vault.routes.provider_key_routes import router as provider_key_router
from visuluxe_vault.services.crypto import Cipher
from visuluxe_vault.services.log_config import configure_logging
from visuluxe_vault.services.provider_health import ProviderConnectionTester
from visuluxe_vault.services.rate_limiter import DecryptRateLimiter, ProviderTestRateLimiter
from visuluxe_vault.services.safe_errors import get_safe_error_message


def _build_cipher(settings: Settings) -> Cipher | None:
    if not settings.ENCRYPTION_KEY:
        logger.warning("⚠️ ENCRYPTION_KEY ausente — ações de chave vão responder 500")
        return None
    try:
        return Cipher.from_base64(settings.ENCRYPTION_KEY)
    except ValueError as e:
        raise RuntimeError(
            f"❌ ENCRYPTION_KEY inválida!\n"
            f"Gere uma com: python -c \"from visuluxe_vault.services.crypto import generate_key; print(generate_key())\"\n"
            f"Erro: {e}"
        ) from e


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI):

    @app.exception_handler(VaultError)
    async def vault_error_handler(request: Request, exc: VaultError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, get_safe_error_message({"message": str(exc.detail)}))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request body")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    engine = build_engine(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ---------- Startup ----------
        logger.info(f"🔐 {settings.APP_NAME} iniciando…")
        await init_db(engine)
        logger.info("✅ Banco inicializado. Vault pronto.")

        yield

        # ---------- Shutdown ----------
        await engine.dispose()
        logger.info("🔒 Vault encerrado.")

    app = FastAPI(
        title=settings.APP_NAME,
        version=__version__,
        description="Cofre das chaves de API dos provedores de imagem da Visuluxe.",
        lifespan=lifespan,
        docs_url="/docs" if settings.APP_ENV == "development" else None,
        redoc_url=None,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.cipher = _build_cipher(settings)
    app.state.rate_limiter = DecryptRateLimiter(
        max_per_window=settings.DECRYPT_RATE_LIMIT,
        window=timedelta(minutes=settings.DECRYPT_RATE_WINDOW_MINUTES),
    )
    app.state.provider_test_rate_limiter = ProviderTestRateLimiter(
        max_per_window=settings.PROVIDER_TEST_RATE_LIMIT,
    )
    app.state.connection_tester = ProviderConnectionTester(timeout=settings.PROVIDER_TEST_TIMEOUT_SECONDS)

    install_cors(app, settings.cors_origins())
    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(provider_key_router)
    app.include_router(provider_connection_router)
    app.include_router(api_key_router)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "service": settings.APP_NAME}

    return app


def run():
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "visuluxe_vault.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.APP_ENV == "development",
    )


if __name__ == "__main__":
    run()
