"""
visuluxe_vault/services/crypto.py — AES-256-GCM para chaves de provedores.

Formato do blob: base64( nonce 12B | ciphertext + tag 16B ).
Um nonce aleatório novo por chamada: cifrar o mesmo texto duas vezes
gera blobs diferentes. Tag inválida, chave errada ou blob malformado
viram DecryptionFailed, nunca um texto "parecido com válido".

A ENCRYPTION_KEY fica APENAS no ambiente. Nunca logue chave, texto puro
ou ciphertext.
"""
import base64
import binascii
import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from visuluxe_vault.errors import DecryptionFailed

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256


def generate_key() -> str:
    """Gera uma ENCRYPTION_KEY nova (32 bytes aleatórios em base64)."""
    return base64.b64encode(secrets.token_bytes(KEY_LENGTH)).decode("ascii")


class Cipher:
    """Cifra/decifra segredos com a chave do servidor."""

    def __init__(self, key: bytes):
        if len(key) != KEY_LENGTH:
            raise ValueError(
                f"ENCRYPTION_KEY must decode to exactly {KEY_LENGTH} bytes, got {len(key)}"
            )
        self._aead = AESGCM(key)

    @classmethod
    def from_base64(cls, encoded: str) -> "Cipher":
        try:
            key = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"ENCRYPTION_KEY is not valid base64: {e}") from e
        return cls(key)

    def __repr__(self) -> str:
        return "<Cipher AES-256-GCM>"

    def encrypt(self, plain_text: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        ct = self._aead.encrypt(nonce, plain_text.encode("utf-8"), None)
        return base64.b64encode(nonce + ct).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """Decifra um blob do banco. Lança DecryptionFailed em qualquer falha."""
        try:
            combined = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise DecryptionFailed("Encrypted value is not valid base64") from e

        if len(combined) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionFailed(
                f"Encrypted value too short: {len(combined)} bytes "
                f"(minimum {NONCE_SIZE + TAG_SIZE})"
            )

        nonce, ct = combined[:NONCE_SIZE], combined[NONCE_SIZE:]
        try:
            plain = self._aead.decrypt(nonce, ct, None)
        except InvalidTag as e:
            raise DecryptionFailed("Authentication tag mismatch") from e

        try:
            return plain.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionFailed("Decrypted value is not valid UTF-8") from e
