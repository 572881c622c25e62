"""
Integration tests for the SiWarga flows

All flows run against the in-memory local store; the remote wiring is
exercised through httpx.MockTransport.
"""

import asyncio

import httpx
import pytest

from src.audit import AuditLogger
from src.config import SecuritySettings, Settings, StorageMode
from src.config.runtime import ConnectionConfig
from src.identity import (
    AuthenticationError,
    CredentialResetError,
    PermissionDeniedError,
    RegistrationError,
)
from src.models.audit import AuditEventType
from src.models.payment import PaymentStatus
from src.models.user import ADMIN_HOUSE_ID, Role, Session, UserRecord
from src.orchestrator import (
    AuthFlow,
    CredentialUpgrade,
    InvalidSubmissionError,
    SyncFlow,
    create_app_components,
)
from src.security.hasher import hash_secret
from src.security.reconciler import MatchPath, reset_credential
from src.services.proof import ProofUpload
from src.services.storage import (
    LocalAuditStorage,
    LocalKeyValueStore,
    LocalPaymentStorage,
    LocalUserStorage,
    StorageError,
    SyncError,
)
from src.services.storage.local import PAYMENTS_KEY, USERS_KEY
from src.validation import RegistrationValidator


def build(users=None, payments=None):
    """Components over a fresh in-memory store, synced once."""
    store = LocalKeyValueStore()
    if users is not None:
        store.set_json(USERS_KEY, users)
    if payments is not None:
        store.set_json(PAYMENTS_KEY, payments)
    components = create_app_components(
        settings=Settings(),
        store=store,
        connection=ConnectionConfig(mode=StorageMode.LOCAL),
    )
    asyncio.run(components.sync_flow.refresh())
    return components


def stored_users(components):
    return {row["houseNumber"]: row for row in components.store.get_json(USERS_KEY, default=[])}


def event_types(components):
    events = asyncio.run(components.audit_logger.recent_events(limit=100))
    return [event.event_type for event in events]


class TestSyncFlow:
    """Loading and atomicity."""

    def test_demo_data_is_normalized(self):
        components = build()
        budi = components.sync_flow.identity.find("A1/1")
        assert budi.pin == hash_secret("1234")
        assert len(components.sync_flow.payments) == 2
        assert AuditEventType.DATA_SYNCED in event_types(components)

    def test_failed_sync_leaves_tables_unchanged(self):
        """Users and payments are both fetched before either is replaced."""
        store = LocalKeyValueStore()
        users = LocalUserStorage(store)

        class BrokenPayments(LocalPaymentStorage):
            fail = False

            async def list_payments(self):
                if self.fail:
                    raise SyncError("getPayments: backend responded with 503")
                return await super().list_payments()

        payments = BrokenPayments(store)
        audit = AuditLogger(LocalAuditStorage(store))
        flow = SyncFlow(users, payments, audit_logger=audit)
        asyncio.run(flow.refresh())
        before_users = flow.identity.users
        before_payments = flow.payments

        store.set_json(USERS_KEY, [{"houseNumber": "C1/1", "pin": "1"}])
        payments.fail = True
        with pytest.raises(SyncError):
            asyncio.run(flow.refresh())

        assert flow.identity.users == before_users
        assert flow.payments == before_payments
        events = asyncio.run(audit.recent_events())
        assert events[0].event_type == AuditEventType.SYNC_FAILED

    def test_corrupt_users_value_fails_sync(self):
        """Garbled stored users surface as a failed sync, not the demo seed."""
        components = build(users=[{"houseNumber": "C1/1", "name": "Bu Sari", "pin": "7777"}])
        before = components.sync_flow.identity.users
        garbled = '[{"houseNumber": "C1/1", "name": "Bu Sari"'
        components.store.set_item(USERS_KEY, garbled)

        with pytest.raises(SyncError):
            asyncio.run(components.sync_flow.refresh())
        assert components.sync_flow.identity.users == before
        assert "Admin" not in [u.house_id for u in before]

        with pytest.raises(RegistrationError):
            asyncio.run(components.auth_flow.register("B1/2", "Bu Rina", "4321", "4321"))
        assert components.store.get_item(USERS_KEY) == garbled

    def test_storage_error_becomes_sync_error(self):
        class Unreadable(LocalUserStorage):
            async def list_users(self):
                raise StorageError("Local store is unreadable")

        store = LocalKeyValueStore()
        flow = SyncFlow(Unreadable(store), LocalPaymentStorage(store))
        with pytest.raises(SyncError):
            asyncio.run(flow.refresh())


class TestRegistration:
    """New houses."""

    def test_register_hashes_pin(self):
        components = build()
        session = asyncio.run(components.auth_flow.register("B1/2", "Bu Rina", "4321", "4321"))
        assert session.house_id == "B1/2"
        assert stored_users(components)["B1/2"]["pin"] == hash_secret("4321")
        assert "B1/2" in components.sync_flow.identity
        assert AuditEventType.USER_REGISTERED in event_types(components)

    def test_register_existing_house(self):
        components = build()
        with pytest.raises(RegistrationError):
            asyncio.run(components.auth_flow.register("A1/1", "Pak Budi", "4321", "4321"))

    def test_register_invalid_form(self):
        components = build()
        with pytest.raises(RegistrationError) as exc_info:
            asyncio.run(components.auth_flow.register("B1/2", "Bu Rina", "4321", "1234"))
        assert "PINs do not match" in str(exc_info.value)
        assert "B1/2" not in stored_users(components)

    def test_register_then_login(self):
        components = build()
        asyncio.run(components.auth_flow.register("B1/2", "Bu Rina", "4321", "4321"))
        detected = components.auth_flow.detect_user(Role.RESIDENT, "B1/2")
        session = asyncio.run(components.auth_flow.login(detected, "4321"))
        assert session.user.name == "Bu Rina"


class TestLogin:
    """Login, failures and credential upgrades."""

    def test_login_with_digest(self):
        components = build()
        detected = components.auth_flow.detect_user(Role.RESIDENT, "A1/1")
        session = asyncio.run(components.auth_flow.login(detected, "1234"))
        assert session.house_id == "A1/1"
        assert not session.credential_upgraded

    def test_wrong_pin(self):
        components = build()
        detected = components.auth_flow.detect_user(Role.RESIDENT, "A1/1")
        with pytest.raises(AuthenticationError) as exc_info:
            asyncio.run(components.auth_flow.login(detected, "9999"))
        assert str(exc_info.value) == "Incorrect PIN. Access denied."
        assert AuditEventType.LOGIN_FAILED in event_types(components)

    def test_empty_pin_rejected(self):
        """An empty PIN is refused even when no PIN is stored."""
        components = build(users=[{"houseNumber": "A1/1", "name": "Pak Budi", "role": "resident", "pin": ""}])
        detected = components.auth_flow.detect_user(Role.RESIDENT, "A1/1")
        with pytest.raises(AuthenticationError):
            asyncio.run(components.auth_flow.login(detected, "   "))

    def test_empty_credential_upgraded_on_login(self):
        """Bootstrap login with the default PIN persists its digest."""
        components = build(users=[{"houseNumber": "A1/1", "name": "Pak Budi", "role": "resident", "pin": ""}])
        detected = components.auth_flow.detect_user(Role.RESIDENT, "A1/1")
        session = asyncio.run(components.auth_flow.login(detected, "1234"))

        assert session.credential_upgraded
        assert stored_users(components)["A1/1"]["pin"] == hash_secret("1234")
        assert components.sync_flow.identity.find("A1/1").pin == hash_secret("1234")
        assert AuditEventType.CREDENTIAL_UPGRADED in event_types(components)

    def test_placeholder_admin_is_registered_on_first_login(self):
        components = build(users=[{"houseNumber": "A1/1", "name": "Pak Budi", "role": "resident", "pin": "1234"}])
        detected = components.auth_flow.detect_user(Role.ADMIN)
        assert detected.pin == ""

        session = asyncio.run(components.auth_flow.login(detected, "1234"))
        assert session.is_admin
        admin_row = stored_users(components)[ADMIN_HOUSE_ID]
        assert admin_row["role"] == "admin"
        assert admin_row["pin"] == hash_secret("1234")

    def test_legacy_plaintext_in_memory_is_upgraded(self):
        """A record that reached login unnormalized still gets upgraded."""
        components = build()
        legacy = UserRecord(house_id="A1/1", name="Pak Budi", pin="rahasia")
        components.sync_flow.identity.upsert(legacy)

        upgrades = []

        async def capture(upgrade: CredentialUpgrade):
            upgrades.append(upgrade)

        flow = AuthFlow(
            user_storage=LocalUserStorage(components.store),
            sync_flow=components.sync_flow,
            validator=RegistrationValidator(SecuritySettings()),
            on_credential_upgraded=capture,
        )
        session = asyncio.run(flow.login(legacy, "rahasia"))

        assert session.credential_upgraded
        assert upgrades[0].path == MatchPath.LEGACY_PLAINTEXT
        assert upgrades[0].record.pin == hash_secret("rahasia")
        assert not upgrades[0].is_new_record

    def test_upgrade_failure_does_not_block_login(self):
        components = build(users=[{"houseNumber": "A1/1", "name": "Pak Budi", "role": "resident", "pin": ""}])

        async def broken(upgrade):
            raise StorageError("updateUser: backend unreachable")

        flow = AuthFlow(
            user_storage=LocalUserStorage(components.store),
            sync_flow=components.sync_flow,
            validator=RegistrationValidator(SecuritySettings()),
            audit_logger=components.audit_logger,
            on_credential_upgraded=broken,
        )
        detected = flow.detect_user(Role.RESIDENT, "A1/1")
        session = asyncio.run(flow.login(detected, "1234"))

        assert session.house_id == "A1/1"
        assert not session.credential_upgraded
        assert stored_users(components)["A1/1"]["pin"] == ""
        assert AuditEventType.CREDENTIAL_UPGRADE_FAILED in event_types(components)


class TestResetPin:
    """Admin PIN resets."""

    def admin_session(self):
        return Session(user=UserRecord(house_id=ADMIN_HOUSE_ID, name="Bendahara RW", role=Role.ADMIN))

    def test_reset(self):
        components = build()
        asyncio.run(components.auth_flow.reset_pin(self.admin_session(), "A1/1"))
        assert stored_users(components)["A1/1"]["pin"] == reset_credential()
        assert components.sync_flow.identity.find("A1/1").pin == reset_credential()

        detected = components.auth_flow.detect_user(Role.RESIDENT, "A1/1")
        assert asyncio.run(components.auth_flow.login(detected, "123456"))

    def test_resident_cannot_reset(self):
        components = build()
        resident = Session(user=components.sync_flow.identity.find("A1/1"))
        with pytest.raises(PermissionDeniedError):
            asyncio.run(components.auth_flow.reset_pin(resident, "A1/1"))

    def test_failed_write_keeps_old_credential(self):
        components = build()

        class ReadOnlyUsers(LocalUserStorage):
            async def update_user(self, user):
                raise StorageError("updateUser failed: quota exceeded")

        flow = AuthFlow(
            user_storage=ReadOnlyUsers(components.store),
            sync_flow=components.sync_flow,
            validator=RegistrationValidator(SecuritySettings()),
            audit_logger=components.audit_logger,
        )
        with pytest.raises(CredentialResetError):
            asyncio.run(flow.reset_pin(self.admin_session(), "A1/1"))

        assert components.sync_flow.identity.find("A1/1").pin == hash_secret("1234")
        assert AuditEventType.CREDENTIAL_RESET_FAILED in event_types(components)

    def test_unknown_house(self):
        components = build()
        with pytest.raises(CredentialResetError):
            asyncio.run(components.auth_flow.reset_pin(self.admin_session(), "D5/22"))


class TestPaymentFlow:
    """Submitting and reviewing dues."""

    def login(self, components, role=Role.RESIDENT, house_id="A1/1"):
        detected = components.auth_flow.detect_user(role, house_id)
        return asyncio.run(components.auth_flow.login(detected, "1234"))

    def test_submit_payment(self):
        components = build()
        session = self.login(components)
        payment = asyncio.run(components.payment_flow.submit_payment(
            session, month="Maret", year=2024, amount=50000, note="Transfer BCA",
        ))
        assert payment.status == PaymentStatus.PENDING
        assert payment.house_id == "A1/1"
        assert payment.user_name == "Pak Budi"
        assert components.store.get_json(PAYMENTS_KEY)[0]["id"] == payment.id
        assert components.sync_flow.payments[0].id == payment.id

    def test_submit_with_proof(self):
        components = build()
        session = self.login(components)
        proof = ProofUpload(file_name="bukti.pdf", data=b"%PDF-1.4 receipt")
        payment = asyncio.run(components.payment_flow.submit_payment(
            session, month="April", year=2024, amount=50000, proof=proof,
        ))
        assert payment.proof_link.startswith("data:application/pdf;base64,")
        assert AuditEventType.PROOF_UPLOADED in event_types(components)

    def test_invalid_submission(self):
        components = build()
        session = self.login(components)
        with pytest.raises(InvalidSubmissionError) as exc_info:
            asyncio.run(components.payment_flow.submit_payment(
                session, month="Maret", year=2024, amount=0,
            ))
        assert exc_info.value.result.has_errors

    def test_admin_verifies(self):
        components = build()
        admin = self.login(components, role=Role.ADMIN, house_id=None)
        updated = asyncio.run(components.payment_flow.verify_payment(admin, "2", "confirmed"))
        assert updated.status == PaymentStatus.CONFIRMED
        statuses = {row["id"]: row["status"] for row in components.store.get_json(PAYMENTS_KEY)}
        assert statuses["2"] == "confirmed"

    def test_resident_cannot_verify(self):
        components = build()
        session = self.login(components)
        with pytest.raises(PermissionDeniedError):
            asyncio.run(components.payment_flow.verify_payment(session, "2", PaymentStatus.CONFIRMED))


class TestCreateAppComponents:
    """Wiring for both storage modes."""

    def test_remote_mode(self):
        users = [{"houseNumber": "A1/1", "name": "Pak Budi", "role": "resident", "pin": 1234}]

        def handler(request):
            action = request.url.params.get("action")
            data = users if action == "getUsers" else []
            return httpx.Response(200, json={"status": "success", "data": data})

        components = create_app_components(
            settings=Settings(),
            store=LocalKeyValueStore(),
            connection=ConnectionConfig(mode="sheet", script_url="https://script.google.com/macros/s/x/exec"),
            transport=httpx.MockTransport(handler),
        )
        asyncio.run(components.sync_flow.refresh())

        assert components.sync_flow.source == "remote"
        assert components.sync_flow.identity.find("A1/1").pin == hash_secret("1234")
        assert components.sync_flow.payments == []

    def test_remote_without_url_falls_back_to_local(self):
        components = create_app_components(
            settings=Settings(),
            store=LocalKeyValueStore(),
            connection=ConnectionConfig(mode=StorageMode.REMOTE, script_url=""),
        )
        assert components.sync_flow.source == "local"
