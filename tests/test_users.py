"""Tests for login, employees and the profile."""

import pytest

from auth import create_token, hash_password, verify_password
from database import create_document


@pytest.fixture
def staff(db):
    user_id = create_document(db, "users", {
        "name": "Linus Staff",
        "email": "linus@adminhub.io",
        "password_hash": hash_password("correct-horse"),
        "role": "employee",
        "department": "Warehouse",
        "position": "Picker",
        "phone": "",
        "image": None,
    })
    token = create_token({"id": user_id, "email": "linus@adminhub.io", "name": "Linus Staff", "role": "employee"})
    return user_id, {"Authorization": f"Bearer {token}"}


class TestLogin:
    def test_login_returns_token_without_hash(self, client, staff):
        response = client.post("/api/auth/login", json={"email": "Linus@AdminHub.io", "password": "correct-horse"})
        assert response.status_code == 200
        data = response.json()
        assert "password_hash" not in data["user"]
        assert data["user"]["email"] == "linus@adminhub.io"

        profile = client.get("/api/profile", headers={"Authorization": f"Bearer {data['token']}"})
        assert profile.json()["user"]["name"] == "Linus Staff"

    def test_wrong_password(self, client, staff):
        response = client.post("/api/auth/login", json={"email": "linus@adminhub.io", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"


class TestEmployeesApi:
    def test_create_and_list(self, client, db, auth_headers):
        form = {"name": "Mia Manager", "email": "mia@adminhub.io", "password": "s3cret-pass", "role": "manager",
                "department": "Sales"}
        response = client.post("/api/employees", data=form, headers=auth_headers)
        assert response.status_code == 201
        employee = response.json()["employee"]
        assert employee["role"] == "manager"
        assert "password_hash" not in employee

        stored = db["users"].find_one({"email": "mia@adminhub.io"})
        assert verify_password("s3cret-pass", stored["password_hash"])

        sales = client.get("/api/employees", params={"department": "Sales"}, headers=auth_headers).json()["employees"]
        assert [e["name"] for e in sales] == ["Mia Manager"]

    def test_duplicate_email(self, client, auth_headers):
        form = {"name": "Ada Again", "email": "ada@adminhub.io", "password": "long-enough"}
        response = client.post("/api/employees", data=form, headers=auth_headers)
        assert response.status_code == 409

    def test_short_password(self, client, auth_headers):
        form = {"name": "Short", "email": "short@adminhub.io", "password": "abc"}
        assert client.post("/api/employees", data=form, headers=auth_headers).status_code == 400

    def test_update_and_delete(self, client, db, media, staff, auth_headers):
        user_id, _ = staff
        response = client.put(f"/api/employees/{user_id}", data={"position": "Lead"},
                              files={"image": ("me.jpg", b"jpeg", "image/jpeg")}, headers=auth_headers)
        employee = response.json()["employee"]
        assert employee["position"] == "Lead"
        assert employee["department"] == "Warehouse"
        assert employee["image"]["public_id"] == "adminhub/img1"

        assert client.delete(f"/api/employees/{user_id}", headers=auth_headers).json() == {"success": True}
        assert media.deleted == ["adminhub/img1"]
        assert client.get(f"/api/employees/{user_id}", headers=auth_headers).status_code == 404


class TestProfileApi:
    def test_email_must_be_unique(self, client, admin, staff):
        _, headers = staff
        response = client.put("/api/profile", data={"email": "ada@adminhub.io"}, headers=headers)
        assert response.status_code == 409

    def test_update_fields(self, client, staff):
        _, headers = staff
        user = client.put("/api/profile", data={"phone": "555-0199"}, headers=headers).json()["user"]
        assert user["phone"] == "555-0199"
        assert user["name"] == "Linus Staff"

    def test_change_password(self, client, db, staff):
        user_id, headers = staff
        wrong = client.put("/api/profile/password",
                           json={"current_password": "bad", "new_password": "battery-staple"}, headers=headers)
        assert wrong.status_code == 400
        assert wrong.json()["error"] == "Current password is incorrect"

        ok = client.put("/api/profile/password",
                        json={"current_password": "correct-horse", "new_password": "battery-staple"}, headers=headers)
        assert ok.json() == {"success": True}
        login = client.post("/api/auth/login", json={"email": "linus@adminhub.io", "password": "battery-staple"})
        assert login.status_code == 200
