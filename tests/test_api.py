"""HTTP surface tests: registration, auth and wallet routes."""
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from tests.conftest import VALID_PASSWORD, StubOnboardingGuard
from wallet_ledger.main import create_app


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def login(client: AsyncClient, email: str, password: str = VALID_PASSWORD) -> str:
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["token"]


@pytest.fixture
async def second_user(client: AsyncClient):
    """Another registered user to receive transfers."""
    payload = {
        "email": "friend@example.com",
        "phone_number": "+2348099990000",
        "password": VALID_PASSWORD,
        "first_name": "Chidi",
        "last_name": "Eze",
    }
    response = await client.post("/users/register", json=payload)
    assert response.status_code == 201
    return response.json()


# ===== REGISTRATION =====

@pytest.mark.asyncio
async def test_register_user(client: AsyncClient, registration_payload: dict, onboarding_guard):
    response = await client.post("/users/register", json=registration_payload)

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "testuser@example.com"
    assert data["first_name"] == "Ada"
    assert "id" in data
    assert "password" not in data
    assert "password_hash" not in data
    assert onboarding_guard.calls == [("testuser@example.com", "+2348012345678")]


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, registered_user: dict):
    payload = {**registered_user, "phone_number": "+2348011112222"}
    payload.pop("id")

    response = await client.post("/users/register", json=payload)

    assert response.status_code == 409
    assert response.json()["code"] == "conflict"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field,value",
    [
        ("email", "not-an-email"),
        ("password", "weak"),
        ("password", "nouppercase1!"),
        ("phone_number", "12"),
        ("first_name", "   "),
    ],
)
async def test_register_validation(client: AsyncClient, registration_payload: dict, field, value):
    response = await client.post("/users/register", json={**registration_payload, field: value})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_register_blacklisted_user(database, registration_payload: dict):
    guard = StubOnboardingGuard(admissible=False, reason="User found in blacklist")
    app = create_app(database=database, onboarding_guard=guard)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/users/register", json=registration_payload)
        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "onboarding_rejected"
        assert "User found in blacklist" in body["detail"]

        # Nothing was created
        login_response = await ac.post(
            "/auth/login",
            json={"email": registration_payload["email"], "password": VALID_PASSWORD},
        )
        assert login_response.status_code == 401


# ===== AUTH =====

@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, registered_user: dict):
    response = await client.post(
        "/auth/login",
        json={"email": registered_user["email"], "password": registered_user["password"]},
    )

    assert response.status_code == 200
    data = response.json()
    assert len(data["token"]) == 64
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == registered_user["id"]
    assert "expires_at" in data


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, registered_user: dict):
    response = await client.post(
        "/auth/login",
        json={"email": registered_user["email"], "password": "WrongPass123!"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Incorrect email or password"
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_verify_token(client: AsyncClient, auth_token: str, registered_user: dict):
    response = await client.get("/auth/verify", headers=bearer(auth_token))

    assert response.status_code == 200
    assert response.json()["email"] == registered_user["email"]


@pytest.mark.asyncio
async def test_logout_revokes_only_that_token(client: AsyncClient, registered_user: dict):
    first = await login(client, registered_user["email"])
    second = await login(client, registered_user["email"])

    response = await client.post("/auth/logout", headers=bearer(first))
    assert response.status_code == 200

    assert (await client.get("/auth/verify", headers=bearer(first))).status_code == 401
    assert (await client.get("/auth/verify", headers=bearer(second))).status_code == 200


@pytest.mark.asyncio
async def test_logout_all(client: AsyncClient, registered_user: dict):
    tokens = [await login(client, registered_user["email"]) for _ in range(3)]

    response = await client.post("/auth/logout-all", headers=bearer(tokens[0]))

    assert response.status_code == 200
    assert response.json()["revoked"] == 3
    for token in tokens:
        assert (await client.get("/auth/verify", headers=bearer(token))).status_code == 401


@pytest.mark.asyncio
async def test_logout_requires_auth(client: AsyncClient):
    response = await client.post("/auth/logout")

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"


# ===== PROFILE =====

@pytest.mark.asyncio
async def test_get_profile(client: AsyncClient, auth_token: str, registered_user: dict):
    response = await client.get("/users/me", headers=bearer(auth_token))

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == registered_user["id"]
    assert Decimal(data["balance"]) == Decimal("0.00")


@pytest.mark.asyncio
async def test_update_profile(client: AsyncClient, auth_token: str):
    response = await client.put(
        "/users/me", json={"last_name": "Okafor"}, headers=bearer(auth_token)
    )

    assert response.status_code == 200
    assert response.json()["last_name"] == "Okafor"
    assert response.json()["first_name"] == "Ada"


@pytest.mark.asyncio
async def test_update_profile_phone_conflict(
    client: AsyncClient, auth_token: str, second_user: dict
):
    response = await client.put(
        "/users/me",
        json={"phone_number": second_user["phone_number"]},
        headers=bearer(auth_token),
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_delete_account(client: AsyncClient, auth_token: str):
    response = await client.delete("/users/me", headers=bearer(auth_token))

    assert response.status_code == 204
    # Tokens went with the account
    assert (await client.get("/users/me", headers=bearer(auth_token))).status_code == 401


# ===== WALLET =====

@pytest.mark.asyncio
async def test_wallet_requires_auth(client: AsyncClient):
    response = await client.get("/wallet/balance")

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"


@pytest.mark.asyncio
async def test_fund_and_balance(client: AsyncClient, auth_token: str):
    response = await client.post(
        "/wallet/fund", json={"amount": "1000.00"}, headers=bearer(auth_token)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["type"] == "credit"
    assert data["reference_type"] == "funding"
    assert Decimal(data["amount"]) == Decimal("1000.00")
    assert Decimal(data["balance_before"]) == Decimal("0")
    assert Decimal(data["balance_after"]) == Decimal("1000.00")

    balance = await client.get("/wallet/balance", headers=bearer(auth_token))
    assert Decimal(balance.json()["balance"]) == Decimal("1000.00")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "amount", ["0", "-10.00", "1.234", "5.000000000000000000000000000001", "1e999999999"]
)
async def test_fund_invalid_amount(client: AsyncClient, auth_token: str, amount: str):
    response = await client.post(
        "/wallet/fund", json={"amount": amount}, headers=bearer(auth_token)
    )

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_amount"


@pytest.mark.asyncio
async def test_withdraw(client: AsyncClient, auth_token: str):
    await client.post("/wallet/fund", json={"amount": "50.00"}, headers=bearer(auth_token))

    response = await client.post(
        "/wallet/withdraw",
        json={"amount": "20.25", "description": "Groceries"},
        headers=bearer(auth_token),
    )

    assert response.status_code == 200
    assert response.json()["type"] == "debit"
    assert response.json()["description"] == "Groceries"
    assert Decimal(response.json()["balance_after"]) == Decimal("29.75")


@pytest.mark.asyncio
async def test_withdraw_insufficient_balance(client: AsyncClient, auth_token: str):
    response = await client.post(
        "/wallet/withdraw", json={"amount": "1.00"}, headers=bearer(auth_token)
    )

    assert response.status_code == 400
    assert response.json()["code"] == "insufficient_balance"
    assert response.json()["detail"] == "Insufficient balance"


@pytest.mark.asyncio
async def test_transfer(client: AsyncClient, auth_token: str, second_user: dict):
    await client.post("/wallet/fund", json={"amount": "100.00"}, headers=bearer(auth_token))

    response = await client.post(
        "/wallet/transfer",
        json={"recipient_email": "FRIEND@example.com", "amount": "40.00"},
        headers=bearer(auth_token),
    )

    assert response.status_code == 200
    data = response.json()
    debit, credit = data["sender_transaction"], data["recipient_transaction"]
    assert debit["reference_id"] == credit["id"]
    assert credit["reference_id"] == debit["id"]
    assert debit["reference_type"] == credit["reference_type"] == "transfer"

    friend_token = await login(client, second_user["email"])
    balance = await client.get("/wallet/balance", headers=bearer(friend_token))
    assert Decimal(balance.json()["balance"]) == Decimal("40.00")


@pytest.mark.asyncio
async def test_transfer_to_self(client: AsyncClient, auth_token: str, registered_user: dict):
    await client.post("/wallet/fund", json={"amount": "10.00"}, headers=bearer(auth_token))

    response = await client.post(
        "/wallet/transfer",
        json={"recipient_email": registered_user["email"], "amount": "5.00"},
        headers=bearer(auth_token),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "self_transfer_not_allowed"


@pytest.mark.asyncio
async def test_transfer_unknown_recipient(client: AsyncClient, auth_token: str):
    await client.post("/wallet/fund", json={"amount": "10.00"}, headers=bearer(auth_token))

    response = await client.post(
        "/wallet/transfer",
        json={"recipient_email": "ghost@example.com", "amount": "5.00"},
        headers=bearer(auth_token),
    )

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_transactions_pagination(client: AsyncClient, auth_token: str):
    for amount in ("1.00", "2.00", "3.00"):
        await client.post("/wallet/fund", json={"amount": amount}, headers=bearer(auth_token))

    response = await client.get(
        "/wallet/transactions", params={"limit": 2}, headers=bearer(auth_token)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["has_more"] is True
    assert [Decimal(t["amount"]) for t in data["items"]] == [Decimal("3.00"), Decimal("2.00")]

    last_page = await client.get(
        "/wallet/transactions", params={"limit": 2, "offset": 2}, headers=bearer(auth_token)
    )
    assert last_page.json()["has_more"] is False
    assert len(last_page.json()["items"]) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 101}, {"offset": -1}])
async def test_transactions_bad_paging(client: AsyncClient, auth_token: str, params: dict):
    response = await client.get("/wallet/transactions", params=params, headers=bearer(auth_token))

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_audit(client: AsyncClient, auth_token: str):
    await client.post("/wallet/fund", json={"amount": "80.00"}, headers=bearer(auth_token))
    await client.post("/wallet/withdraw", json={"amount": "30.00"}, headers=bearer(auth_token))

    response = await client.get("/wallet/audit", headers=bearer(auth_token))

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["balance"]) == Decimal("50.00")
    assert data["transaction_count"] == 2
    assert data["balanced"] is True
    assert data["chain_intact"] is True
