"""
visuluxe_vault/errors.py — Taxonomia de erros do Vault.

Controllers e serviços lançam estes erros; main.py converte cada um em
JSON {"error": "<mensagem>"} com o status_code da classe.
"""


class VaultError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(VaultError):
    status_code = 400


class Unauthenticated(VaultError):
    status_code = 401


class Forbidden(VaultError):
    status_code = 403


class NotFound(VaultError):
    status_code = 404


class RateLimited(VaultError):
    status_code = 429


class DecryptionFailed(VaultError):
    status_code = 500


class ServerMisconfigured(VaultError):
    status_code = 500
