from fastapi import status
from fastapi.testclient import TestClient


def _nonce(client: TestClient, address: str) -> dict:
    response = client.post("/wallet/nonce", json={"address": address})
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


def _link(client, sign, auth_headers, account_id, wallet, chain_id=1):
    message = _nonce(client, wallet.address)["message"]
    return client.post(
        "/wallet/link",
        json={
            "address": wallet.address,
            "message": message,
            "signature": sign(wallet, message),
            "chainId": chain_id,
        },
        headers=auth_headers(account_id),
    )


class TestNonceAPI:
    """Test cases for the /wallet/nonce endpoint"""

    def test_nonce_success(self, client: TestClient, alice):
        """Test that a challenge message is returned without authentication"""
        data = _nonce(client, alice.address)

        assert len(data["nonce"]) == 64
        assert data["nonce"] in data["message"]
        assert alice.address.lower() in data["message"]
        assert data["expiresIn"] == 300
        assert data["expiresAt"] > 0

    def test_nonce_invalid_address(self, client: TestClient):
        """Test that a malformed address is refused with a typed error"""
        response = client.post("/wallet/nonce", json={"address": "0x1234"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "INVALID_ADDRESS_FORMAT"

    def test_nonce_missing_address(self, client: TestClient):
        response = client.post("/wallet/nonce", json={})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestLinkAPI:
    """Test cases for the /wallet/link and /wallet/me endpoints"""

    def test_link_flow(self, client, sign, auth_headers, alice):
        """Test link, read back, replay, unlink and read again"""
        message = _nonce(client, alice.address)["message"]
        body = {
            "address": alice.address,
            "message": message,
            "signature": sign(alice, message),
            "chainId": 1,
        }

        response = client.post("/wallet/link", json=body, headers=auth_headers("user-1"))
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["address"] == alice.address.lower()
        assert data["accountId"] == "user-1"
        assert data["chainId"] == 1
        assert data["isExternal"] is True
        assert data["linkedAt"]

        response = client.get("/wallet/me", headers=auth_headers("user-1"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["id"] == data["id"]

        # same message and signature a second time
        response = client.post("/wallet/link", json=body, headers=auth_headers("user-1"))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "CHALLENGE_INVALID"

        response = client.delete("/wallet/link", headers=auth_headers("user-1"))
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert response.content == b""

        response = client.get("/wallet/me", headers=auth_headers("user-1"))
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "NOT_LINKED"

    def test_link_requires_auth(self, client, sign, alice):
        """Test that linking without a token is refused"""
        message = _nonce(client, alice.address)["message"]
        response = client.post(
            "/wallet/link",
            json={"address": alice.address, "message": message, "signature": sign(alice, message)},
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_link_invalid_token(self, client):
        response = client.get("/wallet/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Invalid token"

    def test_link_signature_mismatch(self, client, sign, auth_headers, alice, bob):
        """Test that a signature by another wallet is refused"""
        message = _nonce(client, alice.address)["message"]
        response = client.post(
            "/wallet/link",
            json={"address": alice.address, "message": message, "signature": sign(bob, message)},
            headers=auth_headers("user-1"),
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "SIGNATURE_MISMATCH"

    def test_link_malformed_signature(self, client, auth_headers, alice):
        message = _nonce(client, alice.address)["message"]
        response = client.post(
            "/wallet/link",
            json={"address": alice.address, "message": message, "signature": "0x00"},
            headers=auth_headers("user-1"),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "MALFORMED_SIGNATURE"

    def test_link_malformed_message(self, client, sign, auth_headers, alice):
        response = client.post(
            "/wallet/link",
            json={"address": alice.address, "message": "hi", "signature": sign(alice, "hi")},
            headers=auth_headers("user-1"),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "MALFORMED_MESSAGE"

    def test_address_taken_by_other_account(self, client, sign, auth_headers, alice):
        """Test that account Y cannot link the address account X holds"""
        assert _link(client, sign, auth_headers, "user-x", alice).status_code == 201

        response = _link(client, sign, auth_headers, "user-y", alice)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "ALREADY_LINKED_TO_OTHER_ACCOUNT"

    def test_account_already_has_wallet(self, client, sign, auth_headers, alice, bob):
        """Test that account X must unlink before linking another address"""
        assert _link(client, sign, auth_headers, "user-x", alice).status_code == 201

        response = _link(client, sign, auth_headers, "user-x", bob)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "ACCOUNT_ALREADY_HAS_WALLET"

    def test_unlink_not_linked(self, client, auth_headers):
        response = client.delete("/wallet/link", headers=auth_headers("user-1"))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "NOT_LINKED"


class TestHealthCheckAPI:
    """Test cases for the /health endpoint"""

    def test_get_health_success(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"status": "ok"}
