"""
Creation of (recurring) session series.

A series is written as: the template, its staff links, then every generated
instance in a single batch followed by one staff-link call for all of them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from ..domain.exceptions import StoreError, ValidationError
from ..domain.models import SessionInstance, SessionTemplate
from ..domain.recurrence import expand_recurrence, validate_recurrence
from .store import BookingWriter, with_timeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSeries:
    """A persisted template and the instances generated from it."""
    template: SessionTemplate
    instances: List[SessionInstance] = field(default_factory=list)

    @property
    def sessions(self) -> List[Union[SessionTemplate, SessionInstance]]:
        return [self.template, *self.instances]


class SessionSeriesService:
    """Persists a template session and materializes its recurrence."""

    def __init__(self, writer: BookingWriter, *, timeout_seconds: Optional[float] = 10.0) -> None:
        self._writer = writer
        self._timeout_seconds = timeout_seconds

    async def create_series(
        self,
        template: SessionTemplate,
        timeout: Optional[float] = None,
    ) -> SessionSeries:
        """
        Persist ``template`` and, when it recurs, all of its instances.

        Args:
            template: Unsaved session carrying staff ids and recurrence settings
            timeout: Seconds allowed for the whole write sequence

        Returns:
            The saved template and instances, both with ids

        Raises:
            ValidationError: If the recurrence settings are incomplete (nothing is written)
            StoreError: If a write fails or times out; recurring sessions written
                by this call are removed again
        """
        validate_recurrence(
            template.recurrence_type,
            template.recurrence_end_date,
            template.start_time.date(),
        )
        if template.id is not None:
            raise ValidationError(f"Session '{template.id}' has already been created")

        return await with_timeout(
            self._write_series(template),
            self._timeout_seconds if timeout is None else timeout,
            "Session series creation",
        )

    async def _write_series(self, template: SessionTemplate) -> SessionSeries:
        saved = await self._writer.create_session(template)
        if saved.id is None:
            raise StoreError("Store did not return an id for the created session")
        logger.info("Created session %s (%s)", saved.id, saved.recurrence_type.value)

        if saved.staff_ids:
            await self._writer.link_staff_to_instances([saved.id], saved.staff_ids)

        generated = expand_recurrence(saved, saved.recurrence_type, saved.recurrence_end_date)
        if not generated:
            return SessionSeries(template=saved)

        # Instance ids may be unknown here (cancelled or unparsable insert),
        # so cleanup is scoped to the parent.
        try:
            instances = await self._writer.create_session_instances(generated)
            instance_ids = [instance.id for instance in instances]

            if len(instances) != len(generated) or any(i is None for i in instance_ids):
                raise StoreError(
                    f"Store created {len(instances)} of {len(generated)} recurring sessions for {saved.id}"
                )

            if saved.staff_ids:
                await self._writer.link_staff_to_instances(instance_ids, saved.staff_ids)
        except BaseException:
            await self._discard(saved.id)
            raise

        logger.info("Created %d recurring sessions for %s", len(instances), saved.id)
        return SessionSeries(template=saved, instances=instances)

    async def _discard(self, parent_id: str) -> None:
        logger.warning("Removing recurring sessions of %s after a failed write", parent_id)
        try:
            await asyncio.shield(self._writer.delete_children(parent_id))
        except StoreError as exc:
            logger.error("Could not remove recurring sessions of %s: %s", parent_id, exc)
