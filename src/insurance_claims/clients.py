"""Collaborator contracts and the REST client for the dashboard backend."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from .config import Settings, get_settings
from .errors import CollaboratorError
from .schemas import (
    Appointment,
    Claim,
    ClaimFormData,
    ClaimRequest,
    FromInvoiceRequest,
    Invoice,
    Patient,
    StaffUser,
    StatusPatch,
)

logger = logging.getLogger(__name__)


# --- Contracts ---


class AppointmentsApi(Protocol):
    async def list_appointments(self, location_id: str, user_id: str = "") -> list[Appointment]: ...


class PatientsApi(Protocol):
    async def get_patient(self, patient_id: str, location_id: str) -> Patient: ...


class UsersApi(Protocol):
    async def list_users(self, location_id: str) -> list[StaffUser]: ...


class InvoicesApi(Protocol):
    async def list_invoices(self, patient_id: str) -> list[Invoice]: ...


class ClaimsApi(Protocol):
    async def list_claims(self, location_id: str) -> list[Claim]: ...

    async def create(self, request: ClaimRequest) -> Claim: ...

    async def update(self, claim_id: str, request: ClaimRequest) -> Claim: ...

    async def patch_status(self, claim_id: str, patch: StatusPatch) -> Claim: ...

    async def create_from_invoice(self, invoice_id: str, request: FromInvoiceRequest) -> Claim: ...

    async def save_draft(
        self, appointment_id: str, patient_id: str, form_data: ClaimFormData
    ) -> None: ...


# --- Fire-and-forget calls ---


class BackgroundCalls:
    """Tracks fire-and-forget coroutines; failures are logged, never raised."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._finished(t, description))
        return task

    def _finished(self, task: asyncio.Task, description: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("%s cancelled", description)
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("%s failed: %s", description, exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every pending call to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# --- REST client ---


class BackendClient:
    """httpx-based implementation of every collaborator contract.

    Each call runs under the client's timeout; any transport error, timeout,
    non-2xx status or ``success: false`` body becomes a ``CollaboratorError``.
    """

    def __init__(self, http: httpx.AsyncClient, location_id: str = ""):
        self._http = http
        self.location_id = location_id

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        description = f"{method} {url}"
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise CollaboratorError(f"{description} timed out") from exc
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"{description} failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if response.is_error:
            reason = body.get("error") or f"{description} returned HTTP {response.status_code}"
            raise CollaboratorError(reason, status_code=response.status_code)
        if body.get("success") is False:
            raise CollaboratorError(body.get("error") or f"{description} was not successful")
        return body

    def _location_headers(self) -> dict[str, str]:
        return {"x-location-id": self.location_id} if self.location_id else {}

    @staticmethod
    def _parse(model: type, payload: Any, description: str) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise CollaboratorError(f"Malformed {description} in backend response") from exc

    def _parse_list(self, model: type, items: Any, description: str) -> list:
        return [self._parse(model, item, description) for item in items or []]

    # Scheduling and registry reads

    async def list_appointments(self, location_id: str, user_id: str = "") -> list[Appointment]:
        body = await self._request(
            "GET", "/api/appointments", params={"locationId": location_id, "userId": user_id}
        )
        return self._parse_list(Appointment, body.get("appointments"), "appointment")

    async def get_patient(self, patient_id: str, location_id: str) -> Patient:
        body = await self._request(
            "GET", f"/api/patients/{patient_id}", params={"locationId": location_id}
        )
        return self._parse(Patient, body.get("patient") or body, "patient")

    async def list_users(self, location_id: str) -> list[StaffUser]:
        body = await self._request("GET", "/api/users", params={"locationId": location_id})
        return self._parse_list(StaffUser, body.get("users"), "user")

    async def list_invoices(self, patient_id: str) -> list[Invoice]:
        body = await self._request(
            "GET", f"/api/invoices/{patient_id}", headers=self._location_headers()
        )
        return self._parse_list(Invoice, body.get("invoices"), "invoice")

    # Claims

    async def list_claims(self, location_id: str) -> list[Claim]:
        body = await self._request("GET", "/api/claims/all", params={"locationId": location_id})
        return self._parse_list(Claim, body.get("claims"), "claim")

    async def create(self, request: ClaimRequest) -> Claim:
        return await self._submit(request)

    async def update(self, claim_id: str, request: ClaimRequest) -> Claim:
        return await self._submit(request.model_copy(update={"editing_claim_id": claim_id}))

    async def _submit(self, request: ClaimRequest) -> Claim:
        body = await self._request(
            "POST",
            "/api/claims/submit",
            params={"locationId": request.location_id or self.location_id},
            json=request.model_dump(mode="json", by_alias=True),
        )
        return self._parse(Claim, body.get("claim"), "claim")

    async def patch_status(self, claim_id: str, patch: StatusPatch) -> Claim:
        body = await self._request(
            "PATCH",
            f"/api/claims/{claim_id}/status",
            json=patch.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return self._parse(Claim, body.get("claim"), "claim")

    async def create_from_invoice(self, invoice_id: str, request: FromInvoiceRequest) -> Claim:
        body = await self._request(
            "POST",
            f"/api/claims/from-invoice/{invoice_id}",
            headers=self._location_headers(),
            json=request.model_dump(mode="json", by_alias=True),
        )
        return self._parse(Claim, body.get("claim"), "claim")

    async def save_draft(
        self, appointment_id: str, patient_id: str, form_data: ClaimFormData
    ) -> None:
        await self._request(
            "POST",
            "/api/claims/draft",
            json={
                "locationId": self.location_id,
                "appointmentId": appointment_id,
                "patientId": patient_id,
                "claimData": form_data.model_dump(mode="json", by_alias=True),
                "status": "draft",
            },
        )

    # Audit

    async def post_audit_log(self, entry: dict[str, Any]) -> None:
        await self._request(
            "POST",
            "/api/audit-logs",
            headers=self._location_headers(),
            json={**entry, "locationId": self.location_id},
        )


def get_backend_client(settings: Settings | None = None) -> BackendClient:
    """Backend client configured from settings."""
    settings = settings or get_settings()
    http = httpx.AsyncClient(
        base_url=settings.api_url,
        timeout=httpx.Timeout(settings.request_timeout),
    )
    return BackendClient(http, location_id=settings.location_id)
