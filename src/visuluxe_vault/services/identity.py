"""
visuluxe_vault/services/identity.py — Provedor de identidade da plataforma.

Senhas com bcrypt, papéis em user_roles. Usado pelo Access Gate para:
  - resolver o usuário do token
  - checar "admin ou acima"
  - revalidar a senha antes de um decrypt (step-up)
"""
import bcrypt
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from visuluxe_vault.models.user import ADMIN_OR_ABOVE, AppRole, User, UserRole


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("ascii")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
    except ValueError:
        # hash corrompido ou senha > 72 bytes
        return False


class IdentityService:

    @staticmethod
    async def get_user(db: AsyncSession, user_id: str) -> User | None:
        result = await db.execute(
            select(User).where(User.id == user_id, User.is_active == True)  # noqa: E712
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
        """Retorna o usuário se email+senha conferem, senão None."""
        result = await db.execute(
            select(User).where(User.email == email.strip().lower(), User.is_active == True)  # noqa: E712
        )
        user = result.scalar_one_or_none()
        if not user or not check_password(password, user.password_hash):
            return None
        return user

    @staticmethod
    async def verify_password(user: User, password: str) -> bool:
        """Step-up: confirma a senha atual do usuário já autenticado."""
        ok = check_password(password, user.password_hash)
        if not ok:
            logger.warning(f"🔒 Step-up falhou para user={user.id}")
        return ok

    @staticmethod
    async def get_role(db: AsyncSession, user_id: str) -> str | None:
        result = await db.execute(select(UserRole.role).where(UserRole.user_id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def is_admin_or_above(db: AsyncSession, user_id: str) -> bool:
        return await IdentityService.get_role(db, user_id) in ADMIN_OR_ABOVE

    @staticmethod
    async def list_super_admin_ids(db: AsyncSession) -> list[str]:
        result = await db.execute(
            select(UserRole.user_id).where(UserRole.role == AppRole.SUPER_ADMIN.value)
        )
        return list(result.scalars().all())

    @staticmethod
    async def create_user(
        db: AsyncSession,
        email: str,
        password: str,
        role: AppRole = AppRole.USER,
    ) -> User:
        """Cadastra usuário + papel. Usado pelo visuluxe-vault-create-user (cli.py) e pelos testes."""
        user = User(email=email.strip().lower(), password_hash=hash_password(password))
        db.add(user)
        await db.flush()
        db.add(UserRole(user_id=user.id, role=role.value))
        await db.commit()
        await db.refresh(user)
        return user
