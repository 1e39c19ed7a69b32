"""
visuluxe_vault/cli.py — Cadastro de usuários pela linha de comando.

Cria o primeiro super_admin (ou qualquer outro usuário) direto no banco:

    visuluxe-vault-create-user --email root@visuluxe.app --role super_admin

Sem --password a senha é pedida no terminal.
"""
import argparse
import asyncio
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from visuluxe_vault.database import build_engine, build_sessionmaker, init_db
from visuluxe_vault.models.user import AppRole
from visuluxe_vault.services.identity import IdentityService


async def bootstrap_user(database_url: str, email: str, password: str, role: AppRole):
    engine = build_engine(database_url)
    try:
        await init_db(engine)
        async with build_sessionmaker(engine)() as db:
            return await IdentityService.create_user(db, email, password, role)
    finally:
        await engine.dispose()


def create_user_main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Cadastrar usuário do Visuluxe-Vault")
    parser.add_argument("--email", required=True)
    parser.add_argument(
        "--role",
        choices=[r.value for r in AppRole],
        default=AppRole.ADMIN.value,
        help="Papel do usuário (padrão: admin)",
    )
    parser.add_argument("--password", help="Senha; omita para digitar sem eco")
    parser.add_argument("--database-url", help="Padrão: DATABASE_URL do ambiente/.env")
    args = parser.parse_args(argv)

    database_url = args.database_url
    if not database_url:
        from visuluxe_vault.config import get_settings
        database_url = get_settings().DATABASE_URL

    password = args.password or getpass.getpass("Senha: ")
    if not password:
        print("❌ Senha vazia.", file=sys.stderr)
        return 1

    try:
        user = asyncio.run(bootstrap_user(database_url, args.email, password, AppRole(args.role)))
    except IntegrityError:
        print(f"❌ Já existe um usuário com o email {args.email}.", file=sys.stderr)
        return 1

    print(f"✅ Usuário {user.email} criado com papel {args.role} (id={user.id})")
    return 0


def run():
    sys.exit(create_user_main())


if __name__ == "__main__":
    run()
