"""
Remote Storage Implementation (Apps Script + Google Sheets)

DESIGN DECISION: Production data lives in a Google Sheet behind a small
Apps Script web app (source in backend/Code.gs). The script exposes:
- GET  ?action=getUsers | getPayments
- POST {"action": ..., ...payload} for every write

Every answer is a JSON object with "status" ("success" or "error") and
either "data", "url" or "message".

TRADEOFFS:
- No transactions (last write wins)
- Full table reads on every sync (fine for one housing complex)
- Apps Script answers through a redirect, so redirects must be followed
"""

import base64
from pathlib import Path
from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import RemoteStoreSettings, get_settings
from src.models.payment import PaymentRecord, PaymentStatus
from src.models.user import UserRecord
from src.services.storage.interface import (
    DuplicateError,
    NotFoundError,
    PaymentStorageInterface,
    StorageError,
    SyncError,
    UserStorageInterface,
)

logger = structlog.get_logger(__name__)


class RemoteActionError(StorageError):
    """The script understood the request and refused it."""

    def __init__(self, action: str, message: str):
        self.action = action
        self.message = message
        super().__init__(f"{action} failed: {message}")


class AppsScriptClient:
    """
    Low-level client for the Apps Script web app.

    Handles transport, retries and the success/error envelope.
    """

    def __init__(
        self,
        script_url: Optional[str] = None,
        settings: Optional[RemoteStoreSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings().remote
        self._script_url = (script_url if script_url is not None else self._settings.script_url).strip()
        self._transport = transport

    @property
    def script_url(self) -> str:
        return self._script_url

    @property
    def is_configured(self) -> bool:
        return self._script_url.startswith("http")

    def _http_client(self) -> httpx.AsyncClient:
        if not self.is_configured:
            raise SyncError("Remote store URL is not configured")
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.timeout_seconds),
            follow_redirects=True,
            transport=self._transport,
        )

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _send(self, method: str, **kwargs: Any) -> httpx.Response:
        async with self._http_client() as client:
            return await client.request(method, self._script_url, **kwargs)

    def _unwrap(self, action: str, response: httpx.Response) -> dict:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SyncError(
                f"{action}: backend responded with {e.response.status_code}"
            ) from e
        try:
            body = response.json()
        except ValueError as e:
            raise SyncError(f"{action}: backend returned non-JSON response") from e
        if not isinstance(body, dict):
            raise SyncError(f"{action}: backend returned unexpected payload")
        if body.get("status") != "success":
            raise RemoteActionError(action, str(body.get("message") or "unknown error"))
        return body

    async def _call(self, action: str, method: str, **kwargs: Any) -> dict:
        try:
            response = await self._send(method, **kwargs)
        except httpx.TransportError as e:
            logger.error("remote_store_unreachable", action=action, error=str(e))
            raise SyncError(f"{action}: backend unreachable: {e}") from e
        return self._unwrap(action, response)

    async def get(self, action: str) -> Any:
        """Run a read action and return its "data" payload."""
        body = await self._call(action, "GET", params={"action": action})
        data = body.get("data")
        if not isinstance(data, list):
            raise SyncError(f"{action}: response carries no data list")
        return data

    async def post(self, action: str, payload: dict) -> dict:
        """Run a write action and return the whole response body."""
        return await self._call(action, "POST", json={"action": action, **payload})


class RemoteUserStorage(UserStorageInterface):
    """Users sheet via the Apps Script client."""

    def __init__(self, client: AppsScriptClient):
        self._client = client

    async def list_users(self) -> list[UserRecord]:
        try:
            rows = await self._client.get("getUsers")
        except RemoteActionError as e:
            raise SyncError(str(e)) from e
        users = []
        for row in rows:
            try:
                users.append(UserRecord.model_validate(row))
            except (ValueError, TypeError):
                logger.warning("remote_user_row_skipped", row_keys=sorted(row) if isinstance(row, dict) else None)
        return users

    async def register_user(self, user: UserRecord) -> bool:
        try:
            await self._client.post("registerUser", user.to_wire())
        except RemoteActionError as e:
            message = e.message.lower()
            if "already registered" in message or "sudah terdaftar" in message:
                raise DuplicateError(f"House already registered: {user.house_id}") from e
            raise
        return True

    async def update_user(self, user: UserRecord) -> bool:
        try:
            await self._client.post("updateUser", user.to_wire())
        except RemoteActionError as e:
            if "not found" in e.message.lower():
                raise NotFoundError(f"User not found: {user.house_id}") from e
            raise
        return True


class RemotePaymentStorage(PaymentStorageInterface):
    """Payments sheet and proof uploads (Drive) via the Apps Script client."""

    def __init__(self, client: AppsScriptClient):
        self._client = client

    async def list_payments(self) -> list[PaymentRecord]:
        try:
            rows = await self._client.get("getPayments")
        except RemoteActionError as e:
            raise SyncError(str(e)) from e
        payments = []
        for row in rows:
            try:
                payments.append(PaymentRecord.model_validate(row))
            except (ValueError, TypeError):
                logger.warning("remote_payment_row_skipped", payment_id=row.get("id") if isinstance(row, dict) else None)
        return payments

    async def add_payment(self, payment: PaymentRecord) -> bool:
        await self._client.post("addPayment", payment.to_wire())
        return True

    async def update_payment_status(
        self,
        payment_id: str,
        status: PaymentStatus,
    ) -> bool:
        try:
            await self._client.post(
                "updatePaymentStatus",
                {"id": payment_id, "status": PaymentStatus(status).value},
            )
        except RemoteActionError as e:
            if "not found" in e.message.lower():
                raise NotFoundError(f"Payment not found: {payment_id}") from e
            raise
        return True

    async def store_proof(
        self,
        data: bytes,
        mime_type: str,
        file_name: str,
    ) -> str:
        body = await self._client.post(
            "uploadProof",
            {
                "base64Data": base64.b64encode(data).decode("ascii"),
                "mimeType": mime_type,
                "fileName": file_name,
            },
        )
        url = body.get("url")
        if not url:
            raise StorageError("uploadProof: response carries no URL")
        return str(url)


BACKEND_SCRIPT_PATH = Path(__file__).parent / "backend" / "Code.gs"


def backend_script_source() -> str:
    """Apps Script source the admin deploys next to the spreadsheet."""
    return BACKEND_SCRIPT_PATH.read_text(encoding="utf-8")
