"""
visuluxe_vault/config.py — Configurações centralizadas via .env

O objeto Settings é construído uma única vez por get_settings() e passado
explicitamente para create_app(), que monta o Cipher a partir dele.
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "visuluxe-vault"
    APP_ENV: str = "development"
    APP_PORT: int = 8003
    LOG_LEVEL: str = "INFO"

    # Chave AES-256 em base64 (32 bytes). Sem ela as ações respondem 500.
    # Gere com: python -c "from visuluxe_vault.services.crypto import generate_key; print(generate_key())"
    ENCRYPTION_KEY: str | None = None

    # JWT das sessões de usuários da plataforma
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60

    # Limite de decrypts por ator numa janela deslizante
    DECRYPT_RATE_LIMIT: int = 10
    DECRYPT_RATE_WINDOW_MINUTES: int = 60

    # Teste de conexão com provedores
    PROVIDER_TEST_RATE_LIMIT: int = 5
    PROVIDER_TEST_TIMEOUT_SECONDS: float = 10

    # Chaves de API da plataforma
    MAX_ACTIVE_API_KEYS: int = 10

    # Separadas por vírgula. "*" = qualquer origem
    CORS_ALLOW_ORIGINS: str = "*"

    # Banco
    DATABASE_URL: str = "sqlite+aiosqlite:///./visuluxe_vault.db"

    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ALLOW_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
