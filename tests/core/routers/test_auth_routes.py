"""
End-to-end tests for /api/auth.

Run tests:
    pytest tests/core/routers/test_auth_routes.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

from transit_api.core.db.models import Account, OTPChallenge
from transit_api.core.enums import AccountRole
from conftest import TEST_PASSWORD

EMAIL = "ua622339@cfd.nu.edu.pk"


async def _register(client, notifier, email=EMAIL, name="Ali Khan", password=TEST_PASSWORD):
    response = await client.post("/api/auth/send-otp", json={"email": email, "name": name})
    assert response.status_code == 200, response.text
    return await client.post(
        "/api/auth/register",
        json={
            "name": name,
            "email": email,
            "password": password,
            "otp": notifier.last_code(email),
        },
    )


class TestSendOTP:

    @pytest.mark.asyncio
    async def test_success(self, client, notifier):
        response = await client.post(
            "/api/auth/send-otp", json={"email": EMAIL, "name": "Ali Khan"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "OTP sent successfully"}
        assert notifier.sent[-1]["to"] == EMAIL

    @pytest.mark.asyncio
    async def test_missing_field(self, client):
        response = await client.post("/api/auth/send-otp", json={"email": EMAIL})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("name")

    @pytest.mark.asyncio
    async def test_wrong_domain(self, client):
        response = await client.post(
            "/api/auth/send-otp", json={"email": "ali@gmail.com", "name": "Ali"}
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_already_registered(self, client, make_account):
        await make_account(email=EMAIL)

        response = await client.post(
            "/api/auth/send-otp", json={"email": EMAIL, "name": "Ali"}
        )
        assert response.status_code == 409
        assert response.json() == {"success": False, "error": "Email already registered"}

    @pytest.mark.asyncio
    async def test_delivery_failure(self, client, notifier, session_factory):
        notifier.fail = True

        response = await client.post(
            "/api/auth/send-otp", json={"email": EMAIL, "name": "Ali"}
        )

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "Failed to send verification email",
        }
        async with session_factory() as session:
            rows = (await session.execute(select(OTPChallenge))).scalars().all()
        assert rows == []


class TestRegister:

    @pytest.mark.asyncio
    async def test_full_registration_flow(self, client, notifier):
        response = await _register(client, notifier)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["email"] == EMAIL
        assert body["name"] == "Ali Khan"
        assert body["role"] == "student"
        assert body["token"]
        assert "password" not in body
        assert "password_hash" not in body

        me = await client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"}
        )
        assert me.status_code == 200
        assert me.json() == {
            "success": True,
            "data": {"id": body["id"], "name": "Ali Khan", "email": EMAIL, "role": "student"},
        }

    @pytest.mark.asyncio
    async def test_role_in_body_is_ignored(self, client, notifier):
        await client.post("/api/auth/send-otp", json={"email": EMAIL, "name": "Ali"})
        response = await client.post(
            "/api/auth/register",
            json={
                "name": "Ali",
                "email": EMAIL,
                "password": TEST_PASSWORD,
                "otp": notifier.last_code(EMAIL),
                "role": "admin",
            },
        )

        assert response.status_code == 201
        assert response.json()["role"] == "student"

    @pytest.mark.asyncio
    async def test_password_stored_hashed(self, client, notifier, session_factory):
        await _register(client, notifier)

        async with session_factory() as session:
            account = (
                await session.execute(select(Account).where(Account.email == EMAIL))
            ).scalar_one()
        assert account.password_hash != TEST_PASSWORD
        assert account.password_hash.startswith("$2b$")

    @pytest.mark.asyncio
    async def test_wrong_code_then_attempts_exhausted(self, client, notifier):
        await client.post("/api/auth/send-otp", json={"email": EMAIL, "name": "Ali"})
        code = notifier.last_code(EMAIL)
        payload = {"name": "Ali", "email": EMAIL, "password": TEST_PASSWORD, "otp": "000000"}

        for _ in range(4):
            response = await client.post("/api/auth/register", json=payload)
            assert response.status_code == 400
            assert response.json()["error"] == "Invalid OTP"

        response = await client.post("/api/auth/register", json=payload)
        assert response.status_code == 400
        assert response.json()["error"] == (
            "Maximum verification attempts reached. Please request a new OTP."
        )

        response = await client.post("/api/auth/register", json={**payload, "otp": code})
        assert response.status_code == 404
        assert response.json()["error"] == "OTP not found or expired"

    @pytest.mark.asyncio
    async def test_expired_code(self, client, notifier, session_factory):
        await client.post("/api/auth/send-otp", json={"email": EMAIL, "name": "Ali"})
        past = datetime.now(timezone.utc) - timedelta(minutes=31)
        async with session_factory() as session:
            await session.execute(
                update(OTPChallenge).values(
                    created_at=past, expires_at=past + timedelta(minutes=30)
                )
            )
            await session.commit()

        response = await client.post(
            "/api/auth/register",
            json={
                "name": "Ali",
                "email": EMAIL,
                "password": TEST_PASSWORD,
                "otp": notifier.last_code(EMAIL),
            },
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_short_password(self, client, notifier):
        response = await _register(client, notifier, password="12345")

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Password must be at least 6 characters",
        }

    @pytest.mark.asyncio
    async def test_otp_must_be_six_digits(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"name": "Ali", "email": EMAIL, "password": TEST_PASSWORD, "otp": "12ab"},
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("otp")

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, client, notifier):
        assert (await _register(client, notifier)).status_code == 201

        response = await client.post(
            "/api/auth/send-otp", json={"email": EMAIL, "name": "Ali"}
        )
        assert response.status_code == 409


class TestLogin:

    @pytest.mark.asyncio
    async def test_success(self, client, make_account):
        account = await make_account(role=AccountRole.DRIVER, email="driver1@cfd.nu.edu.pk", name="Driver One")

        response = await client.post(
            "/api/auth/login",
            json={"email": "driver1@cfd.nu.edu.pk", "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["id"] == str(account.id)
        assert body["name"] == "Driver One"
        assert body["role"] == "driver"
        assert "password_hash" not in body

    @pytest.mark.asyncio
    async def test_login_after_registration(self, client, notifier):
        await _register(client, notifier)

        response = await client.post(
            "/api/auth/login", json={"email": EMAIL, "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        assert response.json()["role"] == "student"

    @pytest.mark.asyncio
    async def test_bad_credentials_indistinguishable(self, client, make_account):
        await make_account(email="known@cfd.nu.edu.pk")

        wrong_password = await client.post(
            "/api/auth/login", json={"email": "known@cfd.nu.edu.pk", "password": "wrong-one"}
        )
        unknown_email = await client.post(
            "/api/auth/login", json={"email": "ghost@cfd.nu.edu.pk", "password": "wrong-one"}
        )

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json() == {
            "success": False,
            "error": "Invalid credentials",
        }

    @pytest.mark.asyncio
    async def test_missing_password(self, client):
        response = await client.post("/api/auth/login", json={"email": EMAIL})
        assert response.status_code == 400
        assert response.json()["success"] is False


class TestMe:

    @pytest.mark.asyncio
    async def test_no_token(self, client):
        response = await client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": "Access denied. No token provided.",
        }

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.get(
            "/api/auth/me", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid token"

    @pytest.mark.asyncio
    async def test_deleted_account(self, client, services, make_account, auth_headers, session_factory):
        account = await make_account()
        headers = auth_headers(account)
        async with session_factory() as session:
            await services.accounts.delete(session, account.id)

        response = await client.get("/api/auth/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["error"] == "User not found"

    @pytest.mark.asyncio
    async def test_role_mismatch(self, client, services, make_account, auth_headers, session_factory):
        account = await make_account(role=AccountRole.DRIVER)
        headers = auth_headers(account)
        async with session_factory() as session:
            await services.accounts.update_profile(
                session, account.id, {"role": AccountRole.STUDENT}
            )

        response = await client.get("/api/auth/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid token - role mismatch"


class TestServiceEndpoints:

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["checks"] == {"database": "ok"}
