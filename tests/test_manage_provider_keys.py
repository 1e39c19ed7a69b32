"""
End-to-end tests for POST /manage-provider-keys.

Every request goes through the full app: CORS, the access gate
dependencies, action dispatch and the {"error": ...} handlers.
"""
from datetime import timedelta

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport
from sqlalchemy import func, select

from visuluxe_vault.controllers.provider_key_controller import ProviderKeyController
from visuluxe_vault.database import utcnow
from visuluxe_vault.main import create_app
from visuluxe_vault.models.audit_log import PROVIDER_KEY_DECRYPTED, PROVIDER_KEY_ENCRYPTED, AuditLog
from visuluxe_vault.models.notification import Notification
from visuluxe_vault.models.provider import KeyState
from visuluxe_vault.models.user import AppRole
from visuluxe_vault.services.identity import IdentityService
from visuluxe_vault.services.masking import MASK

from .conftest import PASSWORD

URL = "/manage-provider-keys"


async def count_audit(db, action: str) -> int:
    result = await db.execute(select(func.count(AuditLog.id)).where(AuditLog.action == action))
    return result.scalar_one()


async def seed_decrypts(db, actor_id: str, n: int, age=timedelta(minutes=5)):
    for _ in range(n):
        db.add(AuditLog(actor_id=actor_id, action=PROVIDER_KEY_DECRYPTED, created_at=utcnow() - age))
    await db.commit()


@pytest_asyncio.fixture
async def admin_headers(admin, auth_headers):
    return auth_headers(admin)


# ---------------------------------------------------------------------------
# Access gate
# ---------------------------------------------------------------------------

class TestAccessGate:

    async def test_missing_authorization_header(self, client):
        resp = await client.post(URL, json={"action": "get_masked", "provider_id": "x"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Missing authorization header"}

    async def test_invalid_token(self, client):
        resp = await client.post(URL, json={"action": "encrypt"}, headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}

    async def test_wrong_scheme(self, client, admin, auth_headers):
        token = auth_headers(admin)["Authorization"].split(" ", 1)[1]
        resp = await client.post(URL, json={"action": "encrypt"}, headers={"Authorization": f"Basic {token}"})
        assert resp.status_code == 401

    async def test_regular_user_is_forbidden(self, client, make_user, auth_headers):
        user = await make_user("user@visuluxe.app", AppRole.USER)
        resp = await client.post(URL, json={"action": "encrypt", "api_key": "sk-x"}, headers=auth_headers(user))
        assert resp.status_code == 403
        assert resp.json() == {"error": "Admin access required"}

    async def test_moderator_is_forbidden(self, client, make_user, auth_headers):
        user = await make_user("mod@visuluxe.app", AppRole.MODERATOR)
        resp = await client.post(URL, json={"action": "encrypt", "api_key": "sk-x"}, headers=auth_headers(user))
        assert resp.status_code == 403

    async def test_super_admin_is_allowed(self, client, super_admin, auth_headers):
        resp = await client.post(
            URL, json={"action": "encrypt", "api_key": "sk-x"}, headers=auth_headers(super_admin),
        )
        assert resp.status_code == 200

    async def test_missing_encryption_key_is_checked_first(self, settings):
        app = create_app(settings.model_copy(update={"ENCRYPTION_KEY": None}))
        assert app.state.cipher is None
        async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.post(URL, json={"action": "encrypt", "api_key": "sk-x"})
        await app.state.engine.dispose()
        assert resp.status_code == 500
        assert resp.json() == {"error": "Encryption not configured on server"}

    async def test_invalid_encryption_key_fails_at_startup(self, settings):
        with pytest.raises(RuntimeError):
            create_app(settings.model_copy(update={"ENCRYPTION_KEY": "c2hvcnQ="}))


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestDispatch:

    @pytest.mark.parametrize(
        "body",
        [{}, {"action": "rotate"}, {"action": "ENCRYPT"}, {"action": 5}, {"action": None}, {"action": []}],
    )
    async def test_unknown_action(self, client, admin_headers, body):
        resp = await client.post(URL, json=body, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json() == {
            "error": "Invalid action. Use: encrypt, decrypt, get_masked, or re_encrypt_legacy"
        }

    async def test_malformed_body(self, client, admin_headers):
        resp = await client.post(URL, content=b"not json", headers={**admin_headers, "content-type": "application/json"})
        assert resp.status_code == 400
        assert "error" in resp.json()

    async def test_options_preflight(self, client):
        resp = await client.options(URL, headers={
            "Origin": "https://admin.visuluxe.app",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        })
        assert resp.status_code == 200
        assert resp.content == b""
        assert resp.headers["access-control-allow-origin"] in ("*", "https://admin.visuluxe.app")

    async def test_preflight_with_extra_header_is_still_empty_200(self, client):
        resp = await client.options(URL, headers={
            "Origin": "https://admin.visuluxe.app",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, x-request-id",
        })
        assert resp.status_code == 200
        assert resp.content == b""
        assert "x-request-id" in resp.headers["access-control-allow-headers"].lower()

    async def test_preflight_with_unlisted_method_is_still_empty_200(self, client):
        resp = await client.options(URL, headers={
            "Origin": "https://admin.visuluxe.app",
            "Access-Control-Request-Method": "DELETE",
        })
        assert resp.status_code == 200
        assert resp.content == b""

    async def test_plain_options_without_cors_headers(self, client):
        resp = await client.options(URL)
        assert resp.status_code == 200
        assert resp.content == b""

    async def test_unexpected_error_keeps_cors_and_envelope(self, client, admin_headers, monkeypatch):
        async def broken_handle(self, body, actor, meta):
            raise RuntimeError("db down")

        monkeypatch.setattr(ProviderKeyController, "handle", broken_handle)
        resp = await client.post(
            URL,
            json={"action": "get_masked", "provider_id": "p1"},
            headers={**admin_headers, "Origin": "https://x.app"},
        )
        assert resp.status_code == 500
        assert resp.json() == {"error": "db down"}
        assert "access-control-allow-origin" in resp.headers

    async def test_unexpected_error_in_dependency_is_redacted(self, client, admin_headers, monkeypatch):
        async def broken_role_lookup(db, user_id):
            raise RuntimeError("relation user_roles does not exist")

        monkeypatch.setattr(IdentityService, "is_admin_or_above", staticmethod(broken_role_lookup))
        resp = await client.post(
            URL,
            json={"action": "encrypt", "api_key": "sk-x"},
            headers={**admin_headers, "Origin": "https://x.app"},
        )
        assert resp.status_code == 500
        assert resp.json() == {"error": "An error occurred. Please try again."}
        assert "access-control-allow-origin" in resp.headers
    async def test_cors_header_on_error_response(self, client):
        resp = await client.post(URL, json={}, headers={"Origin": "https://admin.visuluxe.app"})
        assert resp.status_code == 401
        assert "access-control-allow-origin" in resp.headers


# ---------------------------------------------------------------------------
# encrypt
# ---------------------------------------------------------------------------

class TestEncrypt:

    async def test_returns_blob_and_mask(self, client, admin_headers, cipher):
        resp = await client.post(URL, json={"action": "encrypt", "api_key": "sk-live-abcdef"}, headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["masked_key"] == MASK + "cdef"
        assert cipher.decrypt(data["encrypted_key"]) == "sk-live-abcdef"

    async def test_does_not_persist_or_audit(self, client, admin_headers, db):
        await client.post(URL, json={"action": "encrypt", "api_key": "sk-live-abcdef"}, headers=admin_headers)
        assert await count_audit(db, PROVIDER_KEY_ENCRYPTED) == 0

    @pytest.mark.parametrize("api_key", [None, ""])
    async def test_api_key_required(self, client, admin_headers, api_key):
        resp = await client.post(URL, json={"action": "encrypt", "api_key": api_key}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": "API key is required"}


# ---------------------------------------------------------------------------
# get_masked / re_encrypt_legacy
# ---------------------------------------------------------------------------

class TestLegacyMigration:

    async def test_legacy_key_lifecycle(self, client, admin_headers, make_provider, db, cipher):
        provider = await make_provider("openai", api_key="sk-legacy-123")

        resp = await client.post(URL, json={"action": "get_masked", "provider_id": provider.id}, headers=admin_headers)
        assert resp.json() == {
            "success": True,
            "masked_key": "••••••••-123",
            "has_key": True,
            "is_encrypted": False,
        }

        resp = await client.post(URL, json={"action": "re_encrypt_legacy", "provider_id": provider.id}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Key for openai encrypted successfully"}

        await db.refresh(provider)
        assert provider.key_state is KeyState.ENCRYPTED
        assert provider.api_key_encrypted != "sk-legacy-123"
        assert cipher.decrypt(provider.api_key_encrypted) == "sk-legacy-123"

        resp = await client.post(URL, json={"action": "get_masked", "provider_id": provider.id}, headers=admin_headers)
        assert resp.json() == {
            "success": True,
            "masked_key": "••••••••-123",
            "has_key": True,
            "is_encrypted": True,
        }

    async def test_migration_is_idempotent(self, client, admin, admin_headers, make_provider, db):
        provider = await make_provider("stability", api_key="sk-legacy-456")
        body = {"action": "re_encrypt_legacy", "provider_id": provider.id}

        first = await client.post(URL, json=body, headers=admin_headers)
        await db.refresh(provider)
        blob = provider.api_key_encrypted

        second = await client.post(URL, json=body, headers=admin_headers)
        await db.refresh(provider)

        assert first.status_code == second.status_code == 200
        assert second.json() == {"success": True, "message": "Key already encrypted"}
        assert provider.api_key_encrypted == blob
        assert await count_audit(db, PROVIDER_KEY_ENCRYPTED) == 1

        entry = (await db.execute(select(AuditLog))).scalar_one()
        assert entry.actor_id == admin.id
        assert entry.target_type == "providers"
        assert entry.target_id == provider.id
        assert entry.details["migration_type"] == "legacy_to_encrypted"
        assert entry.details["provider_name"] == "stability"

    async def test_migrated_key_decrypts_to_original(self, client, admin_headers, make_provider):
        provider = await make_provider("replicate", api_key="r8_legacy_token")
        await client.post(URL, json={"action": "re_encrypt_legacy", "provider_id": provider.id}, headers=admin_headers)

        resp = await client.post(
            URL,
            json={"action": "decrypt", "provider_id": provider.id, "password": PASSWORD},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["api_key"] == "r8_legacy_token"

    async def test_no_key_to_migrate(self, client, admin_headers, make_provider):
        provider = await make_provider("empty")
        resp = await client.post(URL, json={"action": "re_encrypt_legacy", "provider_id": provider.id}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": "No API key to encrypt"}

    async def test_provider_without_key_masked_view(self, client, admin_headers, make_provider):
        provider = await make_provider("empty")
        resp = await client.post(URL, json={"action": "get_masked", "provider_id": provider.id}, headers=admin_headers)
        assert resp.json() == {"success": True, "masked_key": None, "has_key": False, "is_encrypted": False}

    @pytest.mark.parametrize("action", ["get_masked", "re_encrypt_legacy"])
    async def test_unknown_provider(self, client, admin_headers, action):
        resp = await client.post(URL, json={"action": action, "provider_id": "nope"}, headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json() == {"error": "Provider not found"}

    @pytest.mark.parametrize("action", ["get_masked", "re_encrypt_legacy", "decrypt"])
    async def test_provider_id_required(self, client, admin_headers, action):
        resp = await client.post(URL, json={"action": action, "password": PASSWORD}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Provider ID is required"}

    async def test_undecryptable_blob_falls_back_to_raw_mask(self, client, admin_headers, make_provider, db):
        provider = await make_provider("broken", api_key="sk-legacy-123")
        provider.mark_encrypted("sk-legacy-123")
        await db.commit()

        resp = await client.post(URL, json={"action": "get_masked", "provider_id": provider.id}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "masked_key": "••••••••-123",
            "has_key": True,
            "is_encrypted": False,
        }


# ---------------------------------------------------------------------------
# decrypt
# ---------------------------------------------------------------------------

class TestDecrypt:

    async def test_reveals_key_audits_and_notifies(self, client, admin, admin_headers, super_admin, make_provider, cipher, db):
        provider = await make_provider("openai", api_key="sk-live-secret", encrypted_with=cipher)

        resp = await client.post(
            URL,
            json={"action": "decrypt", "provider_id": provider.id, "password": PASSWORD},
            headers={**admin_headers, "X-Forwarded-For": "203.0.113.9, 10.0.0.1", "User-Agent": "admin-ui"},
        )

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "api_key": "sk-live-secret", "masked_key": MASK + "cret"}

        entry = (await db.execute(select(AuditLog))).scalar_one()
        assert entry.action == PROVIDER_KEY_DECRYPTED
        assert entry.actor_id == admin.id
        assert entry.target_id == provider.id
        assert entry.ip_address == "203.0.113.9"
        assert entry.details == {"provider_name": "openai", "ip_address": "203.0.113.9", "user_agent": "admin-ui"}

        note = (await db.execute(select(Notification))).scalar_one()
        assert note.user_id == super_admin.id
        assert note.title == "API Key Decrypted"
        assert note.message == 'admin@visuluxe.app viewed the API key for provider "openai"'
        assert note.type == "security"

    async def test_super_admin_is_not_notified_of_own_decrypt(self, client, super_admin, auth_headers, make_provider, cipher, db):
        provider = await make_provider("openai", api_key="sk-live-secret", encrypted_with=cipher)
        resp = await client.post(
            URL,
            json={"action": "decrypt", "provider_id": provider.id, "password": PASSWORD},
            headers=auth_headers(super_admin),
        )
        assert resp.status_code == 200
        result = await db.execute(select(func.count(Notification.id)))
        assert result.scalar_one() == 0

    async def test_password_required(self, client, admin_headers, make_provider):
        provider = await make_provider("openai")
        resp = await client.post(URL, json={"action": "decrypt", "provider_id": provider.id}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Password is required for re-authentication"}

    async def test_wrong_password_never_touches_cipher(self, app, client, admin_headers, make_provider, cipher, db, monkeypatch):
        provider = await make_provider("openai", api_key="sk-live-secret", encrypted_with=cipher)

        def boom(blob):
            raise AssertionError("cipher must not be used before step-up")

        monkeypatch.setattr(app.state.cipher, "decrypt", boom)
        resp = await client.post(
            URL,
            json={"action": "decrypt", "provider_id": provider.id, "password": "wrong"},
            headers=admin_headers,
        )
        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid password"}
        assert await count_audit(db, PROVIDER_KEY_DECRYPTED) == 0

    async def test_rate_limited_at_ten(self, client, admin, admin_headers, make_provider, cipher, db):
        provider = await make_provider("openai", api_key="sk-live-secret", encrypted_with=cipher)
        await seed_decrypts(db, admin.id, 10)

        resp = await client.post(
            URL,
            json={"action": "decrypt", "provider_id": provider.id, "password": PASSWORD},
            headers={**admin_headers, "CF-Connecting-IP": "198.51.100.4"},
        )
        assert resp.status_code == 429
        assert resp.json() == {"error": "Rate limit exceeded. Max 10 decryptions per hour. IP: 198.51.100.4"}
        assert await count_audit(db, PROVIDER_KEY_DECRYPTED) == 10

    async def test_rate_limit_precedes_password_check(self, client, admin, admin_headers, make_provider, db):
        provider = await make_provider("openai")
        await seed_decrypts(db, admin.id, 10)
        resp = await client.post(
            URL,
            json={"action": "decrypt", "provider_id": provider.id, "password": "wrong"},
            headers=admin_headers,
        )
        assert resp.status_code == 429

    async def test_ninth_entry_still_allowed(self, client, admin, admin_headers, make_provider, cipher, db):
        provider = await make_provider("openai", api_key="sk-live-secret", encrypted_with=cipher)
        await seed_decrypts(db, admin.id, 9)
        await seed_decrypts(db, admin.id, 5, age=timedelta(hours=2))

        resp = await client.post(
            URL,
            json={"action": "decrypt", "provider_id": provider.id, "password": PASSWORD},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert await count_audit(db, PROVIDER_KEY_DECRYPTED) == 15

    async def test_unknown_provider(self, client, admin_headers):
        resp = await client.post(
            URL,
            json={"action": "decrypt", "provider_id": "nope", "password": PASSWORD},
            headers=admin_headers,
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "Provider not found"}

    async def test_provider_without_key(self, client, admin_headers, make_provider):
        provider = await make_provider("empty")
        resp = await client.post(
            URL,
            json={"action": "decrypt", "provider_id": provider.id, "password": PASSWORD},
            headers=admin_headers,
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "No API key stored for this provider"}

    async def test_plaintext_key_cannot_be_decrypted(self, client, admin_headers, make_provider, db):
        provider = await make_provider("openai", api_key="sk-legacy-123")
        resp = await client.post(
            URL,
            json={"action": "decrypt", "provider_id": provider.id, "password": PASSWORD},
            headers=admin_headers,
        )
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to decrypt key. It may be stored in plain text or corrupted."}
        assert await count_audit(db, PROVIDER_KEY_DECRYPTED) == 0

    async def test_notification_failure_does_not_fail_decrypt(self, client, admin_headers, make_provider, cipher, monkeypatch):
        provider = await make_provider("openai", api_key="sk-live-secret", encrypted_with=cipher)

        async def broken(db):
            raise RuntimeError("notifications table unavailable")

        monkeypatch.setattr(IdentityService, "list_super_admin_ids", staticmethod(broken))
        resp = await client.post(
            URL,
            json={"action": "decrypt", "provider_id": provider.id, "password": PASSWORD},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["api_key"] == "sk-live-secret"
