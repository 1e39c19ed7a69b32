from visuluxe_vault.models.api_key import ApiKey
from visuluxe_vault.models.audit_log import AuditLog
from visuluxe_vault.models.notification import Notification
from visuluxe_vault.models.provider import KeyState, Provider
from visuluxe_vault.models.user import AppRole, User, UserRole

__all__ = [
    "ApiKey",
    "AppRole",
    "AuditLog",
    "KeyState",
    "Notification",
    "Provider",
    "User",
    "UserRole",
]
