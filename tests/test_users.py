"""
Tests for user administration endpoints
"""
import pytest
from fastapi import status

from tests.helpers import bearer, cookie_header, refresh_cookie


@pytest.fixture
async def admin_token(signup):
    response = await signup(email="root@x.com", role="admin")
    return response.json()["accessToken"]


class TestListAndGet:

    async def test_admin_lists_users(self, client, signup, admin_token):
        await signup()

        response = await client.get("/api/v1/users", headers=bearer(admin_token))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 2
        assert {user["email"] for user in data["users"]} == {"root@x.com", "a@x.com"}

    async def test_pagination(self, client, signup, admin_token):
        await signup()

        response = await client.get("/api/v1/users?skip=1&limit=1", headers=bearer(admin_token))

        data = response.json()
        assert data["total"] == 2
        assert len(data["users"]) == 1
        assert data["skip"] == 1 and data["limit"] == 1

    async def test_patient_cannot_list_users(self, client, signup):
        token = (await signup()).json()["accessToken"]

        response = await client.get("/api/v1/users", headers=bearer(token))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    async def test_get_unknown_user(self, client, admin_token):
        response = await client.get("/api/v1/users/missing", headers=bearer(admin_token))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["message"] == "User not found"


class TestUpdate:

    async def test_user_updates_own_profile(self, client, signup):
        login = await signup()
        user_id = login.json()["user"]["id"]

        response = await client.patch(
            f"/api/v1/users/{user_id}",
            json={"firstName": "  Amal ", "phone": "+20100"},
            headers=bearer(login.json()["accessToken"]),
        )

        assert response.status_code == status.HTTP_200_OK
        user = response.json()["user"]
        assert user["firstName"] == "Amal"
        assert user["phone"] == "+20100"

    async def test_disallowed_fields_are_ignored(self, client, signup):
        login = await signup()
        user_id = login.json()["user"]["id"]

        response = await client.patch(
            f"/api/v1/users/{user_id}",
            json={"lastName": "C", "role": "admin", "isActive": False},
            headers=bearer(login.json()["accessToken"]),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["role"] == "patient"
        assert response.json()["user"]["isActive"] is True

    async def test_only_disallowed_fields_is_rejected(self, client, signup):
        login = await signup()
        user_id = login.json()["user"]["id"]

        response = await client.patch(
            f"/api/v1/users/{user_id}",
            json={"role": "admin"},
            headers=bearer(login.json()["accessToken"]),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "validation_error"

    async def test_cannot_update_someone_else(self, client, signup, admin_token):
        other = await signup(email="b@x.com")
        login = await signup()

        response = await client.patch(
            f"/api/v1/users/{other.json()['user']['id']}",
            json={"firstName": "Hacked"},
            headers=bearer(login.json()["accessToken"]),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    async def test_admin_updates_anyone(self, client, signup, admin_token):
        login = await signup()

        response = await client.patch(
            f"/api/v1/users/{login.json()['user']['id']}",
            json={"lastName": "Fixed"},
            headers=bearer(admin_token),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["lastName"] == "Fixed"

    async def test_email_change_requires_reverification(self, client, signup):
        login = await signup()

        response = await client.patch(
            f"/api/v1/users/{login.json()['user']['id']}",
            json={"email": "New@x.com"},
            headers=bearer(login.json()["accessToken"]),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["email"] == "new@x.com"
        assert response.json()["user"]["isEmailVerified"] is False
        assert "verify your new email" in response.json()["message"]

    async def test_email_change_to_taken_address(self, client, signup):
        await signup(email="b@x.com")
        login = await signup()

        response = await client.patch(
            f"/api/v1/users/{login.json()['user']['id']}",
            json={"email": "b@x.com"},
            headers=bearer(login.json()["accessToken"]),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"]["code"] == "duplicate_email"


class TestDeactivate:

    async def test_deactivated_user_cannot_login_or_refresh(self, client, signup, admin_token):
        login = await signup()
        user_id = login.json()["user"]["id"]

        response = await client.delete(f"/api/v1/users/{user_id}", headers=bearer(admin_token))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["isActive"] is False

        relogin = await client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": "secret1"})
        assert relogin.status_code == status.HTTP_403_FORBIDDEN
        assert relogin.json()["error"]["code"] == "account_deactivated"

        client.cookies.clear()
        refresh = await client.post("/api/v1/auth/refresh", headers=cookie_header(refresh_cookie(login).value))
        assert refresh.status_code == status.HTTP_403_FORBIDDEN
        assert refresh_cookie(refresh).value == ""

    async def test_patient_cannot_deactivate(self, client, signup, admin_token):
        login = await signup()

        response = await client.delete(
            f"/api/v1/users/{login.json()['user']['id']}", headers=bearer(login.json()["accessToken"])
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestDoctorVerificationStatus:

    async def test_admin_approves_doctor(self, client, signup, admin_token):
        doctor = await signup(email="doc@x.com", role="doctor")

        response = await client.patch(
            f"/api/v1/users/{doctor.json()['user']['id']}/verification-status",
            json={"verificationStatus": "approved"},
            headers=bearer(admin_token),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["verificationStatus"] == "approved"

    async def test_patient_has_no_verification_status(self, client, signup, admin_token):
        patient = await signup()

        response = await client.patch(
            f"/api/v1/users/{patient.json()['user']['id']}/verification-status",
            json={"verificationStatus": "approved"},
            headers=bearer(admin_token),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    async def test_unknown_status_value(self, client, signup, admin_token):
        doctor = await signup(email="doc@x.com", role="doctor")

        response = await client.patch(
            f"/api/v1/users/{doctor.json()['user']['id']}/verification-status",
            json={"verificationStatus": "maybe"},
            headers=bearer(admin_token),
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
