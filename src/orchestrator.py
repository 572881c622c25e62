"""
Main Orchestrator for SiWarga

This module ties together all the components and defines the
end-to-end flows for:
1. Sync (fetch users + payments → normalize → replace in-memory tables)
2. Auth (detect user → register or login → session, PIN reset by admin)
3. Payments (validate → upload proof → record pending → admin review)

DESIGN DECISION: The orchestrator enforces the boundaries:
- A failed sync never replaces the tables with partial data
- PINs are hashed before anything reaches storage
- The in-memory credential changes only after storage confirms a reset
- Every step is audited, and audit events never carry PINs

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from datetime import datetime
from typing import Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict

from src.audit import AuditLogger, create_correlation_id
from src.config import Settings, StorageMode, get_settings
from src.config.runtime import ConnectionConfig, load_connection_config
from src.identity import (
    AuthenticationError,
    CredentialResetError,
    IdentityStore,
    PermissionDeniedError,
    RegistrationError,
)
from src.models.payment import PaymentRecord, PaymentStatus, generate_payment_id
from src.models.user import Role, Session, UserRecord
from src.models.validation import ValidationResult
from src.queries import PaymentQueryExecutor
from src.security import hash_secret, match_credential, reset_credential
from src.security.reconciler import MatchPath
from src.services.proof import ProofService, ProofUpload
from src.services.storage import (
    AppsScriptClient,
    DuplicateError,
    LocalAuditStorage,
    LocalKeyValueStore,
    LocalPaymentStorage,
    LocalUserStorage,
    PaymentStorageInterface,
    RemotePaymentStorage,
    RemoteUserStorage,
    StorageError,
    SyncError,
    UserStorageInterface,
)
from src.validation import PaymentValidator, RegistrationValidator, get_user_friendly_summary


logger = structlog.get_logger("siwarga.orchestrator")

# A user record found by house id, or the admin (possibly a placeholder)
DetectedUser = UserRecord


class InvalidSubmissionError(Exception):
    """A payment form was rejected by validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(get_user_friendly_summary(result))


class CredentialUpgrade(BaseModel):
    """
    Emitted when a login was accepted through a legacy comparison.

    record already carries the digest of the typed PIN.
    """

    record: UserRecord
    path: MatchPath
    is_new_record: bool = False

    @property
    def house_id(self) -> str:
        return self.record.house_id


UpgradeCallback = Callable[[CredentialUpgrade], Awaitable[None]]


class SyncFlow:
    """
    Loads users and payments from storage.

    Both lists are fetched before either table is replaced, so a failed
    sync leaves everything exactly as it was.
    """

    def __init__(
        self,
        user_storage: UserStorageInterface,
        payment_storage: PaymentStorageInterface,
        identity: Optional[IdentityStore] = None,
        audit_logger: Optional[AuditLogger] = None,
        source: str = StorageMode.LOCAL.value,
    ):
        self._user_storage = user_storage
        self._payment_storage = payment_storage
        self._identity = identity if identity is not None else IdentityStore()
        self._audit_logger = audit_logger
        self._source = source
        self._payments: list[PaymentRecord] = []
        self._last_synced: Optional[datetime] = None

    @property
    def identity(self) -> IdentityStore:
        return self._identity

    @property
    def payments(self) -> list[PaymentRecord]:
        return list(self._payments)

    @property
    def last_synced(self) -> Optional[datetime]:
        return self._last_synced

    @property
    def source(self) -> str:
        return self._source

    def queries(self) -> PaymentQueryExecutor:
        return PaymentQueryExecutor(self._payments)

    async def refresh(self) -> tuple[list[UserRecord], list[PaymentRecord]]:
        """
        Fetch everything and replace the in-memory tables.

        Raises:
            SyncError: If either fetch fails (tables unchanged)
        """
        try:
            users = await self._user_storage.list_users()
            payments = await self._payment_storage.list_payments()
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_sync_failed(self._source, str(e))
            if isinstance(e, SyncError):
                raise
            raise SyncError(str(e)) from e

        loaded = self._identity.load(users)
        self._payments = list(payments)
        self._last_synced = datetime.utcnow()

        if self._audit_logger:
            await self._audit_logger.log_data_synced(self._source, len(loaded), len(payments))

        return loaded, self.payments

    def record_payment(self, payment: PaymentRecord) -> None:
        """Put a payment at the top of the in-memory list (newest first)."""
        self._payments = [payment] + [p for p in self._payments if p.id != payment.id]

    def replace_payment(self, payment: PaymentRecord) -> None:
        self._payments = [payment if p.id == payment.id else p for p in self._payments]


class AuthFlow:
    """
    Orchestrates registration, login and PIN resets.

    Flow:
    1. Detect → role + house id → known record, placeholder admin, or None
    2. None → Register (hash PIN → store → session)
    3. Record → Login (match → session, upgrade legacy PIN if needed)

    The admin can reset any resident's PIN to the reset default.
    """

    def __init__(
        self,
        user_storage: UserStorageInterface,
        sync_flow: SyncFlow,
        validator: Optional[RegistrationValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        on_credential_upgraded: Optional[UpgradeCallback] = None,
        refresh_after_write: bool = False,
    ):
        self._user_storage = user_storage
        self._sync_flow = sync_flow
        self._validator = validator or RegistrationValidator()
        self._audit_logger = audit_logger
        self._on_credential_upgraded = on_credential_upgraded or self.persist_upgrade
        self._refresh_after_write = refresh_after_write

    @property
    def identity(self) -> IdentityStore:
        return self._sync_flow.identity

    def detect_user(self, role: Union[Role, str], house_id: Optional[str] = None) -> Optional[DetectedUser]:
        """Who is logging in? None means the house still has to register."""
        return self.identity.detect_user(role, house_id)

    async def _refresh_quietly(self) -> None:
        if not self._refresh_after_write:
            return
        try:
            await self._sync_flow.refresh()
        except SyncError as e:
            logger.warning("refresh_after_write_failed", error=str(e))

    async def register(
        self,
        house_id: str,
        name: str,
        pin: str,
        confirm_pin: str,
    ) -> Session:
        """
        Register a new house and log it in.

        Raises:
            RegistrationError: If the form is invalid or the house is taken
        """
        result = self._validator.validate(
            house_id=house_id,
            name=name,
            pin=pin,
            confirm_pin=confirm_pin,
            already_registered=house_id in self.identity,
        )
        if result.has_errors:
            if self._audit_logger:
                await self._audit_logger.log_registration_failed(house_id, "validation")
            raise RegistrationError(get_user_friendly_summary(result))

        record = UserRecord(
            house_id=house_id,
            name=name,
            role=Role.RESIDENT,
            pin=hash_secret(pin),
        )

        try:
            await self._user_storage.register_user(record)
        except DuplicateError as e:
            if self._audit_logger:
                await self._audit_logger.log_registration_failed(house_id, "duplicate")
            raise RegistrationError(f"House {house_id} is already registered") from e
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_registration_failed(house_id, "storage")
            raise RegistrationError(f"Could not save registration: {e}") from e

        self.identity.upsert(record)
        if self._audit_logger:
            await self._audit_logger.log_user_registered(house_id, record.name)

        await self._refresh_quietly()
        return Session(user=self.identity.find(house_id) or record)

    async def persist_upgrade(self, upgrade: CredentialUpgrade) -> None:
        """Default upgrade callback: write the digest back to storage."""
        if upgrade.is_new_record:
            await self._user_storage.register_user(upgrade.record)
        else:
            await self._user_storage.update_user(upgrade.record)

    async def login(
        self,
        detected: DetectedUser,
        typed_pin: str,
        correlation_id: Optional[UUID] = None,
    ) -> Session:
        """
        Check the typed PIN against the detected user's stored credential.

        Raises:
            AuthenticationError: Always with the same message, whatever
                the reason the PIN was refused
        """
        correlation_id = correlation_id or create_correlation_id()
        typed = "" if typed_pin is None else str(typed_pin).strip()

        # An empty stored credential would otherwise match an empty PIN
        outcome = match_credential(typed, detected.pin, detected.role) if typed else None
        if not outcome:
            if self._audit_logger:
                await self._audit_logger.log_login_failed(detected.house_id, correlation_id)
            raise AuthenticationError()

        user = detected
        upgraded = False
        if outcome.needs_upgrade:
            user = detected.model_copy(update={"pin": outcome.upgraded_credential})
            upgrade = CredentialUpgrade(
                record=user,
                path=outcome.path,
                is_new_record=detected.house_id not in self.identity,
            )
            try:
                await self._on_credential_upgraded(upgrade)
                upgraded = True
                if self._audit_logger:
                    await self._audit_logger.log_credential_upgraded(
                        detected.house_id, outcome.path.value, correlation_id
                    )
            except StorageError as e:
                # The user is in; the next login will try the upgrade again
                logger.warning(
                    "credential_upgrade_failed",
                    house_id=detected.house_id,
                    error=str(e),
                )
                if self._audit_logger:
                    await self._audit_logger.log_credential_upgrade_failed(
                        detected.house_id, str(e), correlation_id
                    )
            self.identity.upsert(user)

        if self._audit_logger:
            await self._audit_logger.log_login_succeeded(
                detected.house_id, user.role.value, outcome.path.value, correlation_id
            )

        return Session(user=user, credential_upgraded=upgraded)

    async def reset_pin(self, actor: Session, house_id: str) -> UserRecord:
        """
        Reset a resident's PIN to the reset default.

        Raises:
            PermissionDeniedError: If actor is not the admin
            CredentialResetError: If the user is unknown or the write failed
        """
        if not actor.is_admin:
            raise PermissionDeniedError("Only the admin can reset PINs")

        target = self.identity.find(house_id)
        if target is None:
            raise CredentialResetError(f"Unknown house: {house_id}")

        updated = target.model_copy(update={"pin": reset_credential()})
        try:
            await self._user_storage.update_user(updated)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_credential_reset_failed(
                    house_id, actor.house_id, str(e)
                )
            raise CredentialResetError(f"PIN for {house_id} was not reset: {e}") from e

        self.identity.upsert(updated)
        if self._audit_logger:
            await self._audit_logger.log_credential_reset(house_id, actor.house_id)

        await self._refresh_quietly()
        return updated


class PaymentFlow:
    """
    Orchestrates dues payments.

    Flow:
    1. Validate → errors block, warnings are shown
    2. Proof → validated and stored through the payment backend
    3. Record → saved as pending
    4. Review → the admin confirms or rejects
    """

    def __init__(
        self,
        payment_storage: PaymentStorageInterface,
        sync_flow: SyncFlow,
        proof_service: Optional[ProofService] = None,
        validator: Optional[PaymentValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        refresh_after_write: bool = False,
    ):
        self._payment_storage = payment_storage
        self._sync_flow = sync_flow
        self._proof_service = proof_service or ProofService(payment_storage)
        self._validator = validator or PaymentValidator()
        self._audit_logger = audit_logger
        self._refresh_after_write = refresh_after_write

    def check_submission(
        self,
        session: Session,
        month: str,
        year: int,
        amount: int,
    ) -> ValidationResult:
        """Validate without submitting, so the form can show warnings."""
        return self._validator.validate(
            house_id=session.house_id,
            month=month,
            year=year,
            amount=amount,
            existing=self._sync_flow.payments,
        )

    async def submit_payment(
        self,
        session: Session,
        month: str,
        year: int,
        amount: int,
        note: str = "",
        proof: Optional[ProofUpload] = None,
        now: Optional[datetime] = None,
    ) -> PaymentRecord:
        """
        Record a pending dues payment for the session's house.

        Raises:
            InvalidSubmissionError: If validation found errors
            ProofValidationError: If the proof file is unusable
            StorageError: If the payment could not be saved
        """
        now = now or datetime.utcnow()
        result = self.check_submission(session, month, year, amount)
        if result.has_errors:
            raise InvalidSubmissionError(result)

        proof_link = ""
        if proof is not None:
            proof_link = await self._proof_service.upload(proof, session.house_id, now=now)
            if self._audit_logger:
                await self._audit_logger.log_proof_uploaded(
                    session.house_id, proof.file_name, proof.size_bytes
                )

        payment = PaymentRecord(
            id=generate_payment_id(),
            house_id=session.house_id,
            user_name=session.user.name,
            month=month,
            year=year,
            amount=amount,
            status=PaymentStatus.PENDING,
            note=note,
            proof_link=proof_link,
            date=now,
        )
        await self._payment_storage.add_payment(payment)
        self._sync_flow.record_payment(payment)

        if self._audit_logger:
            await self._audit_logger.log_payment_submitted(
                payment.id, payment.house_id, payment.period, payment.amount
            )

        if self._refresh_after_write:
            try:
                await self._sync_flow.refresh()
            except SyncError as e:
                logger.warning("refresh_after_write_failed", error=str(e))

        return payment

    async def verify_payment(
        self,
        session: Session,
        payment_id: str,
        status: Union[PaymentStatus, str],
    ) -> Optional[PaymentRecord]:
        """
        Confirm or reject a payment.

        Returns the updated in-memory record, or None if the payment was
        not among the loaded ones.

        Raises:
            PermissionDeniedError: If session is not the admin
            NotFoundError: If the payment doesn't exist
        """
        if not session.is_admin:
            raise PermissionDeniedError("Only the admin can review payments")

        status = PaymentStatus(status)
        await self._payment_storage.update_payment_status(payment_id, status)

        existing = self._sync_flow.queries().find(payment_id)
        updated = None
        if existing is not None:
            updated = existing.model_copy(update={"status": status})
            self._sync_flow.replace_payment(updated)

        if self._audit_logger:
            await self._audit_logger.log_payment_status_updated(
                payment_id, status.value, session.house_id
            )

        return updated


class AppComponents(BaseModel):
    """Everything the UI needs, wired for one storage mode."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    connection: ConnectionConfig
    store: LocalKeyValueStore
    audit_logger: AuditLogger
    sync_flow: SyncFlow
    auth_flow: AuthFlow
    payment_flow: PaymentFlow


def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[LocalKeyValueStore] = None,
    connection: Optional[ConnectionConfig] = None,
    transport=None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
        store: Local key-value store (defaults to the configured data file)
        connection: Storage mode override (defaults to the saved connection)
        transport: httpx transport for the remote client, for tests

    The remote store is used only when the connection says so AND a
    script URL is set; otherwise everything runs against the local store.
    Audit events always go to the local store.
    """
    settings = settings or get_settings()
    store = store or LocalKeyValueStore(settings.local.data_path)
    connection = connection or load_connection_config(store, settings.app, settings.remote)

    audit_logger = AuditLogger(LocalAuditStorage(store, limit=settings.local.audit_log_limit))

    if connection.is_remote and connection.has_valid_url:
        client = AppsScriptClient(
            script_url=connection.script_url,
            settings=settings.remote,
            transport=transport,
        )
        user_storage = RemoteUserStorage(client)
        payment_storage = RemotePaymentStorage(client)
        source = StorageMode.REMOTE.value
    else:
        if connection.is_remote:
            logger.warning("remote_store_not_configured", fallback="local")
        user_storage = LocalUserStorage(store, seed_demo_data=settings.local.seed_demo_data)
        payment_storage = LocalPaymentStorage(store, seed_demo_data=settings.local.seed_demo_data)
        source = StorageMode.LOCAL.value

    refresh_after_write = source == StorageMode.REMOTE.value

    sync_flow = SyncFlow(
        user_storage=user_storage,
        payment_storage=payment_storage,
        audit_logger=audit_logger,
        source=source,
    )
    auth_flow = AuthFlow(
        user_storage=user_storage,
        sync_flow=sync_flow,
        validator=RegistrationValidator(settings.security),
        audit_logger=audit_logger,
        refresh_after_write=refresh_after_write,
    )
    payment_flow = PaymentFlow(
        payment_storage=payment_storage,
        sync_flow=sync_flow,
        proof_service=ProofService(payment_storage, settings.app),
        validator=PaymentValidator(settings.app),
        audit_logger=audit_logger,
        refresh_after_write=refresh_after_write,
    )

    return AppComponents(
        connection=connection,
        store=store,
        audit_logger=audit_logger,
        sync_flow=sync_flow,
        auth_flow=auth_flow,
        payment_flow=payment_flow,
    )
