"""
visuluxe_vault/models/provider.py — Provedores upstream de geração de imagem.

O campo api_key_encrypted guarda OU o texto puro legado OU o blob cifrado
(base64 de nonce 12B + ciphertext + tag). Quem diz qual dos dois é o
key_encrypted_at, exposto como o estado explícito key_state.

Criação e remoção de provedores pertencem ao gerenciamento de provedores;
aqui só lemos, migramos a chave e registramos o último teste de conexão.
"""
import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from visuluxe_vault.database import Base, utcnow


class KeyState(str, enum.Enum):
    PLAINTEXT = "plaintext"
    ENCRYPTED = "encrypted"


class Provider(Base):
    __tablename__ = "providers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    base_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    api_key_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    key_encrypted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # resultado do último teste de conexão
    last_test_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_test_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    last_test_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_test_response_time: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def has_key(self) -> bool:
        return bool(self.api_key_encrypted)

    @property
    def key_state(self) -> KeyState:
        if self.key_encrypted_at is not None:
            return KeyState.ENCRYPTED
        return KeyState.PLAINTEXT

    def mark_encrypted(self, blob: str, at: datetime | None = None):
        self.api_key_encrypted = blob
        self.key_encrypted_at = at or utcnow()

    def record_test(self, success: bool, message: str, response_time_ms: int):
        self.last_test_at = utcnow()
        self.last_test_status = "success" if success else "failed"
        self.last_test_message = message
        self.last_test_response_time = response_time_ms
