"""
visuluxe_vault/services/safe_errors.py — Mensagens de erro seguras para o usuário.

Converte erros brutos (banco, auth, storage) em mensagens amigáveis e
impede vazamento de detalhes internos: nomes de tabela/coluna/constraint,
SQL, tokens, timestamps e stack traces nunca chegam na resposta.

Aceita exceções, dicts ({"code": ..., "message": ...}) ou qualquer objeto
com atributos code/message/error_description.
"""
import re
from typing import Any, Literal

from loguru import logger

GENERIC_MESSAGE = "An error occurred. Please try again."

# Códigos conhecidos → mensagem amigável
ERROR_MESSAGES: dict[str, str] = {
    # Postgres
    "23505": "This username is already taken. Please choose a different one.",
    "23503": "The referenced data no longer exists.",
    "23502": "Please fill in all required fields.",
    "22001": "The input is too long. Please shorten it.",
    "23514": "The input does not meet the required format.",
    # PostgREST
    "PGRST116": "The requested resource was not found.",
    "PGRST301": "The request could not be processed.",
    "PGRST204": "No data was returned.",
    # Auth
    "invalid_credentials": "Invalid email or password. Please try again.",
    "email_not_confirmed": "Please verify your email address before signing in.",
    "user_not_found": "No account found with this email address.",
    "email_taken": "An account with this email already exists.",
    "weak_password": "Please choose a stronger password.",
    "invalid_email": "Please enter a valid email address.",
    "signup_disabled": "Account registration is temporarily disabled.",
    "over_request_rate_limit": "Too many attempts. Please wait a moment and try again.",
    "over_email_send_rate_limit": "Too many email requests. Please wait before trying again.",
    # Storage
    "storage/invalid-file-type": "This file type is not allowed.",
    "storage/file-too-large": "The file is too large. Please choose a smaller file.",
    "storage/unauthorized": "You are not authorized to perform this action.",
}

SENSITIVE_PATTERNS = [
    re.compile(r"constraint\s+\w+", re.IGNORECASE),
    re.compile(r"table\s+\w+\.\w+", re.IGNORECASE),
    re.compile(r"column\s+\w+", re.IGNORECASE),
    re.compile(r"violates\s+\w+", re.IGNORECASE),
    re.compile(r"relation\s+\w+", re.IGNORECASE),
    re.compile(r"schema\s+\w+", re.IGNORECASE),
    re.compile(r"JWT\s+token", re.IGNORECASE),
    re.compile(r"at\s+\d{4}-\d{2}-\d{2}", re.IGNORECASE),
    re.compile(r"stack\s*:", re.IGNORECASE),
    re.compile(r"Error:\s+at\s+", re.IGNORECASE),
]

UNSAFE_KEYWORDS = ("sql", "query", "database", "postgres", "supabase", "row", "policy", "rls")

MAX_PASSTHROUGH_LENGTH = 100


def _field(error: Any, name: str) -> Any:
    if isinstance(error, dict):
        return error.get(name)
    return getattr(error, name, None)


def _extract(error: Any) -> tuple[str | None, str]:
    code = _field(error, "code") or _field(error, "sqlstate") or _field(error, "pgcode")
    message = _field(error, "message") or _field(error, "error_description")
    if not message and isinstance(error, BaseException):
        message = str(error)
    return (str(code) if code is not None else None), (message if isinstance(message, str) else "")


def is_sensitive(message: str) -> bool:
    return any(p.search(message) for p in SENSITIVE_PATTERNS)


def get_safe_error_message(error: Any) -> str:
    if not error:
        return GENERIC_MESSAGE

    code, message = _extract(error)
    if code and code in ERROR_MESSAGES:
        return ERROR_MESSAGES[code]

    if is_sensitive(message):
        logger.debug(f"[Error Details]: {error!r}")
        return GENERIC_MESSAGE

    lower = message.lower()
    if "duplicate key" in lower:
        return ERROR_MESSAGES["23505"]

    if "password" in lower:
        if "weak" in lower or "short" in lower:
            return "Please choose a stronger password (at least 6 characters)."
        if "incorrect" in lower or "invalid" in lower:
            return "Invalid email or password. Please try again."

    if "email" in lower and "already" in lower:
        return "An account with this email already exists."

    if "rate limit" in lower:
        return "Too many attempts. Please wait a moment and try again."

    if "network" in lower or "connection" in lower:
        return "Connection error. Please check your internet and try again."

    # Mensagem curta e sem termos técnicos pode passar
    if 0 < len(message) < MAX_PASSTHROUGH_LENGTH:
        if not any(k in lower for k in UNSAFE_KEYWORDS):
            return message

    return GENERIC_MESSAGE


def get_auth_error_message(error: Any, context: Literal["signin", "signup", "signout"]) -> str:
    base = get_safe_error_message(error)
    if base != GENERIC_MESSAGE:
        return base
    return {
        "signin": "Unable to sign in. Please check your credentials and try again.",
        "signup": "Unable to create account. Please try again later.",
        "signout": "Unable to sign out. Please try again.",
    }[context]
