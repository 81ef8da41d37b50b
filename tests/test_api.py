"""HTTP tests: auth, verification and admin routes against an in-memory database."""

import re
import unittest
from datetime import UTC, datetime, timedelta
from typing import Annotated
from unittest.mock import MagicMock, patch

import jwt
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.api.v1.auth import get_credential_updater
from app.api.v1.verification import RESET_REQUEST_MESSAGE, get_verification_engine
from app.core.config import get_settings
from app.core.database import get_db
from app.core.security import create_access_token
from app.main import app
from app.models import Account, AccountCredential
from app.services.credentials import CredentialUpdater
from app.services.delivery import DeliveryError, EmailSender, SmsSender
from app.services.verification import VerificationEngine
from tests.support import add_account, fast_hash, make_session_factory

PREFIX = get_settings().API_V1_PREFIX


class ApiTestCase(unittest.TestCase):
    """Routes wired to SQLite, a fast hasher and mock senders."""

    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.email = MagicMock(spec=EmailSender)
        self.sms = MagicMock(spec=SmsSender)

        def override_get_db():
            db = self.session_factory()
            try:
                yield db
            finally:
                db.close()

        def override_credentials(
            db: Annotated[Session, Depends(get_db)],
        ) -> CredentialUpdater:
            return CredentialUpdater(db, hasher=fast_hash)

        def override_engine(
            db: Annotated[Session, Depends(get_db)],
        ) -> VerificationEngine:
            return VerificationEngine(
                db,
                get_settings(),
                credentials=CredentialUpdater(db, hasher=fast_hash),
                email_sender=self.email,
                sms_sender=self.sms,
            )

        app.dependency_overrides[get_db] = override_get_db
        self.fast_credentials = override_credentials
        app.dependency_overrides[get_credential_updater] = override_credentials
        app.dependency_overrides[get_verification_engine] = override_engine
        self.client = TestClient(app)
        self.db = self.session_factory()

    def tearDown(self) -> None:
        self.db.close()
        app.dependency_overrides.clear()

    def make_user(self, role: int = 1, password: str = "password123", **fields: object) -> Account:
        account = add_account(self.db, role=role, **fields)
        CredentialUpdater(self.db, hasher=fast_hash).replace(account.id, password)
        return account

    def auth_headers(self, account: Account) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(sub=account.id, role=account.role)}"}

    def last_email_body(self) -> str:
        return self.email.send.call_args.args[2]


class TestAuthentication(ApiTestCase):
    def test_root_and_health(self) -> None:
        root = self.client.get("/")
        self.assertEqual(root.status_code, 200)
        self.assertEqual(root.json()["docs"], "/docs")
        response = self.client.get(f"{PREFIX}/health/")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["database"], "connected")
        self.assertEqual(body["service"], "auth2")
        self.assertIn(body["sms_delivery"], ("enabled", "disabled"))

    def test_admin_route_requires_token(self) -> None:
        response = self.client.get(f"{PREFIX}/admin/users")
        self.assertEqual(response.status_code, 401)

    def test_invalid_token(self) -> None:
        response = self.client.get(
            f"{PREFIX}/admin/users", headers={"Authorization": "Bearer not-a-jwt"}
        )
        self.assertEqual(response.status_code, 401)

    def test_login_wrong_password(self) -> None:
        user = self.make_user()
        response = self.client.post(
            f"{PREFIX}/auth/login", json={"email": user.email, "password": "wrong-password"}
        )
        self.assertEqual(response.status_code, 401)

    def test_login_blocked_account(self) -> None:
        user = self.make_user(status="suspended")
        response = self.client.post(
            f"{PREFIX}/auth/login", json={"email": user.email, "password": "password123"}
        )
        self.assertEqual(response.status_code, 403)

    def test_login_token_carries_role_rank(self) -> None:
        user = self.make_user(role=3)
        response = self.client.post(
            f"{PREFIX}/auth/login", json={"email": user.email.upper(), "password": "password123"}
        )
        self.assertEqual(response.status_code, 200)
        claims = jwt.decode(
            response.json()["access_token"], options={"verify_signature": False}
        )
        self.assertEqual(claims["role"], 3)
        self.assertEqual(claims["sub"], str(user.id))

    def test_change_password(self) -> None:
        user = self.make_user()
        headers = self.auth_headers(user)
        bad = self.client.post(
            f"{PREFIX}/auth/password/change",
            json={"old_password": "nope-nope", "new_password": "password456"},
            headers=headers,
        )
        self.assertEqual(bad.status_code, 401)
        ok = self.client.post(
            f"{PREFIX}/auth/password/change",
            json={"old_password": "password123", "new_password": "password456"},
            headers=headers,
        )
        self.assertEqual(ok.status_code, 200)
        login = self.client.post(
            f"{PREFIX}/auth/login", json={"email": user.email, "password": "password456"}
        )
        self.assertEqual(login.status_code, 200)


class TestAdminAuthorization(ApiTestCase):
    def _create_body(self, role: object, suffix: str = "x") -> dict[str, object]:
        return {
            "firstname": "New",
            "lastname": "Person",
            "email": f"new-{suffix}@example.com",
            "username": f"new_{suffix}",
            "password": "password123",
            "phone": "2065559999",
            "role": role,
        }

    def test_user_rejected_without_touching_storage(self) -> None:
        user = self.make_user(role=1)
        with patch("app.api.v1.admin.accounts.create_account") as create:
            response = self.client.post(
                f"{PREFIX}/admin/users", json=self._create_body(1), headers=self.auth_headers(user)
            )
        self.assertEqual(response.status_code, 403)
        create.assert_not_called()

    def test_moderator_cannot_list_users(self) -> None:
        moderator = self.make_user(role=2)
        response = self.client.get(f"{PREFIX}/admin/users", headers=self.auth_headers(moderator))
        self.assertEqual(response.status_code, 403)

    def test_admin_cannot_create_superadmin(self) -> None:
        admin = self.make_user(role=3)
        response = self.client.post(
            f"{PREFIX}/admin/users",
            json=self._create_body("SuperAdmin"),
            headers=self.auth_headers(admin),
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(
            response.json()["detail"], "You cannot create a user with a higher role than yours"
        )

    def test_admin_creates_moderator_by_name_or_rank(self) -> None:
        admin = self.make_user(role=3)
        by_name = self.client.post(
            f"{PREFIX}/admin/users",
            json=self._create_body("moderator", "a"),
            headers=self.auth_headers(admin),
        )
        self.assertEqual(by_name.status_code, 201)
        self.assertEqual(by_name.json()["user"]["role"], 2)
        self.assertEqual(by_name.json()["user"]["status"], "active")

        body = self._create_body(2, "b")
        body["phone"] = "2065558888"
        by_rank = self.client.post(
            f"{PREFIX}/admin/users", json=body, headers=self.auth_headers(admin)
        )
        self.assertEqual(by_rank.status_code, 201)
        self.assertEqual(by_rank.json()["user"]["role"], 2)

    def test_unrecognized_role_is_bad_request(self) -> None:
        admin = self.make_user(role=5)
        response = self.client.post(
            f"{PREFIX}/admin/users", json=self._create_body("Root"), headers=self.auth_headers(admin)
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Invalid role specified")

    def test_non_ascii_digit_role_is_bad_request(self) -> None:
        owner = self.make_user(role=5)
        target = self.make_user(role=1)
        headers = self.auth_headers(owner)

        created = self.client.post(
            f"{PREFIX}/admin/users", json=self._create_body("²"), headers=headers
        )
        changed = self.client.put(
            f"{PREFIX}/admin/users/{target.id}/role", json={"role": "9" * 5000}, headers=headers
        )
        searched = self.client.get(
            f"{PREFIX}/admin/users/search", params={"role": "²"}, headers=headers
        )
        for response in (created, changed, searched):
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["detail"], "Invalid role specified")
        self.db.refresh(target)
        self.assertEqual(target.role, 1)

    def test_unknown_role_claim_is_forbidden(self) -> None:
        account = self.make_user(role=5)
        settings = get_settings()
        token = jwt.encode(
            {
                "sub": str(account.id),
                "role": 9,
                "exp": datetime.now(UTC) + timedelta(minutes=5),
            },
            settings.JWT_SECRET.get_secret_value(),
            algorithm=settings.JWT_ALGORITHM,
        )
        response = self.client.get(
            f"{PREFIX}/admin/users", headers={"Authorization": f"Bearer {token}"}
        )
        self.assertEqual(response.status_code, 403)

    def test_admin_cannot_change_role_above_own(self) -> None:
        admin = self.make_user(role=3)
        target = self.make_user(role=1)
        response = self.client.put(
            f"{PREFIX}/admin/users/{target.id}/role",
            json={"role": "Owner"},
            headers=self.auth_headers(admin),
        )
        self.assertEqual(response.status_code, 403)
        self.db.refresh(target)
        self.assertEqual(target.role, 1)

    def test_admin_promotes_to_own_rank(self) -> None:
        admin = self.make_user(role=3)
        target = self.make_user(role=1)
        response = self.client.put(
            f"{PREFIX}/admin/users/{target.id}/role",
            json={"role": "3"},
            headers=self.auth_headers(admin),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["role"], 3)

    def test_admin_cannot_manage_higher_ranked_account(self) -> None:
        admin = self.make_user(role=3)
        superadmin = self.make_user(role=4)
        response = self.client.delete(
            f"{PREFIX}/admin/users/{superadmin.id}", headers=self.auth_headers(admin)
        )
        self.assertEqual(response.status_code, 403)
        self.db.refresh(superadmin)
        self.assertEqual(superadmin.status, "active")

    def test_soft_delete_blocks_login(self) -> None:
        admin = self.make_user(role=3)
        target = self.make_user(role=1)
        response = self.client.delete(
            f"{PREFIX}/admin/users/{target.id}", headers=self.auth_headers(admin)
        )
        self.assertEqual(response.status_code, 200)
        login = self.client.post(
            f"{PREFIX}/auth/login", json={"email": target.email, "password": "password123"}
        )
        self.assertEqual(login.status_code, 403)

    def test_missing_user_is_not_found(self) -> None:
        admin = self.make_user(role=3)
        response = self.client.get(f"{PREFIX}/admin/users/9999", headers=self.auth_headers(admin))
        self.assertEqual(response.status_code, 404)

    def test_search_and_stats(self) -> None:
        admin = self.make_user(role=3, first_name="Grace")
        self.make_user(role=1, status="pending", first_name="Alan")
        headers = self.auth_headers(admin)

        search = self.client.get(
            f"{PREFIX}/admin/users/search", params={"q": "gra", "role": "Admin"}, headers=headers
        )
        self.assertEqual(search.status_code, 200)
        self.assertEqual([u["id"] for u in search.json()["users"]], [admin.id])

        bad_role = self.client.get(
            f"{PREFIX}/admin/users/search", params={"role": "Root"}, headers=headers
        )
        self.assertEqual(bad_role.status_code, 400)

        stats = self.client.get(f"{PREFIX}/admin/users/stats", headers=headers).json()["stats"]
        self.assertEqual(stats["total_users"], 2)
        self.assertEqual(stats["pending_users"], 1)


def _failing_hasher(password: str) -> str:
    raise RuntimeError("hasher unavailable")


class TestAccountCreationRollback(ApiTestCase):
    """A hashing failure while creating an account leaves no account row behind."""

    body = {
        "firstname": "Ada",
        "lastname": "Lovelace",
        "email": "ada@example.com",
        "username": "ada",
        "password": "password123",
        "phone": "2065550142",
    }

    def _break_hasher(self) -> None:
        def override_credentials(
            db: Annotated[Session, Depends(get_db)],
        ) -> CredentialUpdater:
            return CredentialUpdater(db, hasher=_failing_hasher)

        app.dependency_overrides[get_credential_updater] = override_credentials

    def _counts(self) -> tuple[int, int]:
        accounts_count = self.db.execute(select(func.count()).select_from(Account)).scalar_one()
        credentials_count = self.db.execute(
            select(func.count()).select_from(AccountCredential)
        ).scalar_one()
        return accounts_count, credentials_count

    def test_register_rolls_back_and_can_be_retried(self) -> None:
        self._break_hasher()
        failed = self.client.post(f"{PREFIX}/auth/register", json=self.body)
        self.assertEqual(failed.status_code, 500)
        self.assertEqual(self._counts(), (0, 0))

        app.dependency_overrides[get_credential_updater] = self.fast_credentials
        retried = self.client.post(f"{PREFIX}/auth/register", json=self.body)
        self.assertEqual(retried.status_code, 201)
        self.assertEqual(self._counts(), (1, 1))

    def test_admin_create_rolls_back(self) -> None:
        admin = self.make_user(role=3)
        self._break_hasher()
        response = self.client.post(
            f"{PREFIX}/admin/users",
            json={**self.body, "role": "User"},
            headers=self.auth_headers(admin),
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(self._counts(), (1, 1))


class TestVerificationFlows(ApiTestCase):
    def _register(self) -> dict[str, object]:
        response = self.client.post(
            f"{PREFIX}/auth/register",
            json={
                "firstname": "Ada",
                "lastname": "Lovelace",
                "email": "ada@example.com",
                "username": "ada",
                "password": "password123",
                "phone": "206-555-0142",
                "role": 5,
            },
        )
        self.assertEqual(response.status_code, 201)
        return response.json()["user"]

    def _login(self, password: str = "password123") -> dict[str, str]:
        response = self.client.post(
            f"{PREFIX}/auth/login", json={"email": "ada@example.com", "password": password}
        )
        self.assertEqual(response.status_code, 200)
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    def test_register_ignores_requested_role(self) -> None:
        user = self._register()
        self.assertEqual(user["role"], 1)
        self.assertEqual(user["status"], "pending")

    def test_duplicate_registration(self) -> None:
        self._register()
        response = self.client.post(
            f"{PREFIX}/auth/register",
            json={
                "firstname": "Ada",
                "lastname": "Again",
                "email": "ADA@example.com",
                "username": "ada2",
                "password": "password123",
                "phone": "2065550199",
            },
        )
        self.assertEqual(response.status_code, 409)

    def test_email_verification_flow(self) -> None:
        self._register()
        headers = self._login()

        sent = self.client.post(f"{PREFIX}/auth/verify/email/send", headers=headers)
        self.assertEqual(sent.status_code, 200)
        self.assertTrue(sent.json()["delivered"])
        code = re.search(r"\b(\d{6})\b", self.last_email_body()).group(1)

        confirmed = self.client.post(
            f"{PREFIX}/auth/verify/email/confirm", json={"code": code}, headers=headers
        )
        self.assertEqual(confirmed.status_code, 200)

        again = self.client.post(
            f"{PREFIX}/auth/verify/email/confirm", json={"code": code}, headers=headers
        )
        self.assertEqual(again.status_code, 400)
        self.assertIn("already been used", again.json()["detail"])

        account = self.db.get(Account, 1)
        self.assertTrue(account.email_verified)
        self.assertEqual(account.status, "active")

    def test_confirm_without_code_is_not_found(self) -> None:
        self._register()
        response = self.client.post(
            f"{PREFIX}/auth/verify/phone/verify", json={"code": "123456"}, headers=self._login()
        )
        self.assertEqual(response.status_code, 404)

    def test_malformed_code_rejected(self) -> None:
        self._register()
        response = self.client.post(
            f"{PREFIX}/auth/verify/email/confirm", json={"code": "12ab"}, headers=self._login()
        )
        self.assertEqual(response.status_code, 422)

    def test_phone_send_reports_delivery_failure(self) -> None:
        self._register()
        self.sms.send.side_effect = DeliveryError("gateway down", channel="sms")
        response = self.client.post(
            f"{PREFIX}/auth/verify/phone/send", json={"carrier": "att"}, headers=self._login()
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["delivered"])

    def test_phone_send_unknown_carrier(self) -> None:
        self._register()
        response = self.client.post(
            f"{PREFIX}/auth/verify/phone/send", json={"carrier": "pigeon"}, headers=self._login()
        )
        self.assertEqual(response.status_code, 422)
        self.sms.send.assert_not_called()

    def test_carriers(self) -> None:
        response = self.client.get(f"{PREFIX}/auth/verify/carriers")
        self.assertIn("att", response.json()["carriers"])

    def test_password_reset_flow(self) -> None:
        self._register()
        self.db.get(Account, 1).email_verified = True
        self.db.commit()

        requested = self.client.post(
            f"{PREFIX}/auth/password/reset-request", json={"email": "ada@example.com"}
        )
        self.assertEqual(requested.status_code, 200)
        self.assertEqual(requested.json()["message"], RESET_REQUEST_MESSAGE)
        token = re.search(r"token=([A-Za-z0-9_\-]+)", self.last_email_body()).group(1)

        reset = self.client.post(
            f"{PREFIX}/auth/password/reset", json={"token": token, "password": "newpassword1"}
        )
        self.assertEqual(reset.status_code, 200)
        self._login("newpassword1")
        old = self.client.post(
            f"{PREFIX}/auth/login", json={"email": "ada@example.com", "password": "password123"}
        )
        self.assertEqual(old.status_code, 401)

        reused = self.client.post(
            f"{PREFIX}/auth/password/reset", json={"token": token, "password": "another-one1"}
        )
        self.assertEqual(reused.status_code, 400)

    def test_reset_request_for_unverified_or_unknown_email_sends_nothing(self) -> None:
        self._register()
        for email in ("ada@example.com", "nobody@example.com"):
            with self.subTest(email=email):
                response = self.client.post(
                    f"{PREFIX}/auth/password/reset-request", json={"email": email}
                )
                self.assertEqual(response.status_code, 200)
                self.assertEqual(response.json()["message"], RESET_REQUEST_MESSAGE)
        self.email.send.assert_not_called()

    def test_reset_with_unknown_token(self) -> None:
        response = self.client.post(
            f"{PREFIX}/auth/password/reset", json={"token": "bogus", "password": "newpassword1"}
        )
        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
