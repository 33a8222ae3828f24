"""Discovery of completed appointments that have not been billed yet."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from .clients import AppointmentsApi, BackendClient, ClaimsApi, PatientsApi, UsersApi
from .config import OrganizationConfig, Settings, get_settings
from .custom_fields import CLINICIAN_NAME_KEYS, PAYER_ID_KEYS, PAYER_NAME_KEYS, patient_field
from .schemas import Appointment, AppointmentPhase, Claim, Patient, StaffUser, UnbilledSession

logger = logging.getLogger(__name__)

DEFAULT_SESSION_LENGTH = timedelta(minutes=60)
BILLABLE_STATUSES = {"confirmed", "showed"}
UNKNOWN_PROVIDER = "Unknown Provider"
UNKNOWN_PATIENT = "Unknown Patient"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def appointment_end(appointment: Appointment) -> datetime | None:
    """Explicit end time, or start plus one hour."""
    if appointment.end_time is not None:
        return appointment.end_time
    if appointment.start_time is not None:
        return appointment.start_time + DEFAULT_SESSION_LENGTH
    return None


def appointment_phase(appointment: Appointment, now: datetime | None = None) -> AppointmentPhase:
    """Display status of an appointment at ``now``.

    Cancellation wins over elapsed time, so a cancelled past appointment is
    never reported as completed.
    """
    now = now or _utcnow()
    status = (appointment.appointment_status or "").lower()
    start = appointment.start_time
    end = appointment_end(appointment)

    if status == "cancelled":
        return AppointmentPhase.CANCELLED
    if status == "confirmed" and start is not None and start > now:
        return AppointmentPhase.UPCOMING
    if status in ("completed", "showed") or (end is not None and end < now):
        return AppointmentPhase.COMPLETED
    if start is not None and end is not None and start <= now <= end:
        return AppointmentPhase.IN_PROGRESS
    return AppointmentPhase.SCHEDULED


def is_completed_for_billing(appointment: Appointment, now: datetime | None = None) -> bool:
    """Confirmed or showed, and the session has ended."""
    now = now or _utcnow()
    status = (appointment.appointment_status or "").lower()
    end = appointment_end(appointment)
    return status in BILLABLE_STATUSES and end is not None and end < now


def patient_display_name(appointment: Appointment, patient: Patient | None) -> str:
    if patient is not None:
        full = f"{patient.first_name or ''} {patient.last_name or ''}".strip()
        if full:
            return full
        if patient.name:
            return patient.name
    contact = appointment.contact
    if contact is not None:
        full = f"{contact.first_name or ''} {contact.last_name or ''}".strip()
        if full:
            return full
    return appointment.contact_name or UNKNOWN_PATIENT


def session_patient_name(session: UnbilledSession) -> str:
    return patient_display_name(session.appointment, session.patient)


class UnbilledSessionAggregator:
    """Joins appointments, patients, users and claims into billing candidates."""

    def __init__(
        self,
        appointments: AppointmentsApi,
        patients: PatientsApi,
        users: UsersApi,
        claims: ClaimsApi,
        org: OrganizationConfig | None = None,
    ):
        self.appointments = appointments
        self.patients = patients
        self.users = users
        self.claims = claims
        self.org = org or OrganizationConfig()

    async def _users(self, location_id: str) -> list[StaffUser]:
        try:
            return await self.users.list_users(location_id)
        except Exception as exc:
            logger.warning("Could not fetch users, clinician names will fall back: %s", exc)
            return []

    async def _claims(self, location_id: str) -> list[Claim]:
        try:
            return await self.claims.list_claims(location_id)
        except Exception as exc:
            logger.warning("Could not fetch existing claims: %s", exc)
            return []

    async def _patient(self, patient_id: str | None, location_id: str) -> Patient | None:
        if not patient_id:
            return None
        try:
            return await self.patients.get_patient(patient_id, location_id)
        except Exception as exc:
            logger.warning("Could not fetch patient %s: %s", patient_id, exc)
            return None

    def _clinician(
        self, appointment: Appointment, users: dict[str, StaffUser], patient: Patient | None
    ) -> str:
        user = users.get(appointment.assigned_user_id or "")
        if user is not None and user.display_name():
            return user.display_name()
        return patient_field(patient, *CLINICIAN_NAME_KEYS) or UNKNOWN_PROVIDER

    async def collect(
        self, location_id: str, user_id: str = "", now: datetime | None = None
    ) -> list[UnbilledSession]:
        """Build the unbilled session list.

        Appointment list failures propagate as ``CollaboratorError``; every
        other lookup degrades to empty values.
        """
        now = now or _utcnow()
        users = {user.id: user for user in await self._users(location_id)}
        appointments = await self.appointments.list_appointments(location_id, user_id)
        billed = {claim.appointment_id for claim in await self._claims(location_id) if claim.appointment_id}

        sessions: list[UnbilledSession] = []
        for appointment in appointments:
            if not is_completed_for_billing(appointment, now) or appointment.id in billed:
                continue

            patient = await self._patient(appointment.contact_id, location_id)
            sessions.append(
                UnbilledSession(
                    appointment=appointment,
                    patient=patient,
                    payer_name=patient_field(patient, *PAYER_NAME_KEYS),
                    payer_id=patient_field(patient, *PAYER_ID_KEYS),
                    charge_amount=self.org.default_charge,
                    clinician_name=self._clinician(appointment, users, patient),
                    clinician_id=appointment.assigned_user_id or "",
                )
            )

        logger.info(
            "Found %d unbilled session(s) out of %d appointment(s)", len(sessions), len(appointments)
        )
        return sessions


class CandidatePool:
    """Latest unbilled-session list, refreshed on an interval."""

    def __init__(
        self,
        aggregator: UnbilledSessionAggregator,
        location_id: str,
        user_id: str = "",
        interval: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.aggregator = aggregator
        self.location_id = location_id
        self.user_id = user_id
        self.interval = interval
        self._clock = clock
        self.sessions: list[UnbilledSession] = []
        self.refreshed_at: datetime | None = None

    async def refresh(self) -> list[UnbilledSession]:
        """Re-run aggregation; on failure the previous list is kept."""
        try:
            self.sessions = await self.aggregator.collect(
                self.location_id, self.user_id, now=self._clock()
            )
        except Exception as exc:
            logger.warning("Unbilled session refresh failed, keeping previous list: %s", exc)
            return self.sessions
        self.refreshed_at = self._clock()
        return self.sessions

    async def run(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            await self.refresh()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass


def get_candidate_pool(
    client: BackendClient, org: OrganizationConfig | None = None, settings: Settings | None = None
) -> CandidatePool:
    """Candidate pool over the backend client, configured from settings."""
    settings = settings or get_settings()
    aggregator = UnbilledSessionAggregator(client, client, client, client, org)
    return CandidatePool(
        aggregator,
        settings.location_id,
        user_id=settings.user_id,
        interval=settings.refresh_interval,
    )
