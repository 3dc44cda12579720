"""
Booking store client for Supabase's PostgREST interface.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
from pendulum import DateTime

from ..domain.exceptions import ConflictError, StoreError
from ..domain.models import (
    Appointment,
    AppointmentType,
    BookedInterval,
    SessionInstance,
    SessionTemplate,
    WorkingSchedule,
)
from .records import (
    appointment_to_row,
    parse_appointment,
    parse_appointment_type,
    parse_booked_interval,
    parse_session,
    parse_working_schedule,
    session_to_row,
)

logger = logging.getLogger(__name__)

Params = List[Tuple[str, str]]


class SupabaseStore:
    """
    Client for the practice tables exposed through ``/rest/v1``.

    Requests are blocking (``requests``) and run in a worker thread so the
    services can await them and apply their own timeouts.
    """

    REST_PATH = "/rest/v1"

    def __init__(
        self,
        url: str,
        api_key: str,
        timezone: str = "Europe/Amsterdam",
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the store client.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            api_key: Service or anon key sent as ``apikey`` and bearer token
            timezone: IANA timezone timestamps are converted to
            timeout_seconds: Per-request HTTP timeout
            session: Optional ``requests.Session`` to reuse
        """
        self.base_url = f"{url.rstrip('/')}{self.REST_PATH}"
        self.timezone = timezone
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def get_working_schedules(
        self,
        day_of_week: int,
        doctor_id: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> List[WorkingSchedule]:
        params: Params = [
            ("select", "*,doctor:users(name)"),
            ("day_of_week", f"eq.{day_of_week}"),
            ("is_active", "eq.true"),
            ("order", "start_time.asc"),
        ]
        if doctor_id:
            params.append(("doctor_id", f"eq.{doctor_id}"))
        if location_id:
            params.append(("location_id", f"eq.{location_id}"))

        rows = await self._select("doctor_schedules", params)
        return [parse_working_schedule(row) for row in rows]

    async def get_booked_intervals(
        self,
        start: DateTime,
        end: DateTime,
        doctor_id: Optional[str] = None,
    ) -> List[BookedInterval]:
        params: Params = [
            ("select", "id,doctor_id,scheduled_at,end_time,status"),
            ("scheduled_at", f"gte.{start.to_iso8601_string()}"),
            ("scheduled_at", f"lt.{end.to_iso8601_string()}"),
            ("status", "neq.cancelled"),
            ("order", "scheduled_at.asc"),
        ]
        if doctor_id:
            params.append(("doctor_id", f"eq.{doctor_id}"))

        rows = await self._select("appointments", params)
        return [parse_booked_interval(row, self.timezone) for row in rows]

    async def get_appointment_type(self, appointment_type_id: str) -> Optional[AppointmentType]:
        rows = await self._select(
            "appointment_types",
            [("select", "*"), ("id", f"eq.{appointment_type_id}")],
        )
        if not rows:
            return None
        if len(rows) > 1:
            raise StoreError(f"Appointment type id '{appointment_type_id}' is not unique")
        return parse_appointment_type(rows[0])

    async def create_session(self, template: SessionTemplate) -> SessionTemplate:
        rows = await self._insert("sessions", [session_to_row(template)])
        if len(rows) != 1:
            raise StoreError(f"Expected one created session, got {len(rows)}")

        saved = parse_session(rows[0], self.timezone, staff_ids=template.staff_ids)
        if not isinstance(saved, SessionTemplate):
            raise StoreError(f"Created session {saved.id} unexpectedly has a parent")
        return saved

    async def create_session_instances(
        self, instances: Sequence[SessionInstance]
    ) -> List[SessionInstance]:
        if not instances:
            return []

        rows = await self._insert("sessions", [session_to_row(i) for i in instances])
        saved: List[SessionInstance] = []
        for row, instance in zip(rows, instances):
            parsed = parse_session(row, self.timezone, staff_ids=instance.staff_ids)
            if not isinstance(parsed, SessionInstance):
                raise StoreError(f"Created session {parsed.id} lost its parent reference")
            saved.append(parsed)
        return saved

    async def link_staff_to_instances(
        self, instance_ids: Sequence[str], staff_ids: Sequence[str]
    ) -> None:
        links = [
            {"session_id": session_id, "user_id": staff_id}
            for session_id in instance_ids
            for staff_id in staff_ids
        ]
        if not links:
            return
        await self._call("POST", "session_trainers", payload=links, prefer="return=minimal")

    async def delete_children(self, parent_id: str) -> None:
        await self._call(
            "DELETE",
            "sessions",
            params=[("parent_session_id", f"eq.{parent_id}")],
            prefer="return=minimal",
        )

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        rows = await self._insert("appointments", [appointment_to_row(appointment)])
        if len(rows) != 1:
            raise StoreError(f"Expected one created appointment, got {len(rows)}")
        return parse_appointment(rows[0], self.timezone)

    async def _select(self, table: str, params: Params) -> List[Dict[str, Any]]:
        data = await self._call("GET", table, params=params)
        return self._expect_rows(table, data)

    async def _insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        data = await self._call("POST", table, payload=rows, prefer="return=representation")
        return self._expect_rows(table, data)

    async def _call(self, method: str, table: str, **kwargs: Any) -> Any:
        return await asyncio.to_thread(self._request, method, table, **kwargs)

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[Params] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        """
        Perform one REST call and decode the JSON body.

        Raises:
            ConflictError: On HTTP 409 (unique/exclusion constraint violated)
            StoreError: On transport errors, other HTTP errors or invalid JSON
        """
        url = f"{self.base_url}/{table}"
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer

        logger.debug("%s %s %s", method, table, params or "")

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            if e.response is not None and e.response.status_code == 409:
                raise ConflictError(f"Supabase rejected {method} {table}: {e.response.text}") from e
            raise StoreError(f"Supabase {method} {table} failed: {e}") from e
        except requests.exceptions.RequestException as e:
            raise StoreError(f"Supabase {method} {table} failed: {e}") from e

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"Supabase {method} {table} returned invalid JSON") from e

    @staticmethod
    def _expect_rows(table: str, data: Any) -> List[Dict[str, Any]]:
        if not isinstance(data, list):
            raise StoreError(f"Expected a list of {table} rows, got {type(data).__name__}")
        return data
