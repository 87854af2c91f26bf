"""
Global Allotment Policy
=======================

Singleton flag "use the same rider for pickup and delivery".

* ``read``    -- current flag, ``False`` until the first write
* ``enable``  -- needs the authorizer's approval, else ``Unauthorized``
* ``disable`` -- always allowed

Writes merge ``{flag, updatedAt, updatedBy}`` into the singleton row.
The assignment flow does not consult the flag yet.
"""

from __future__ import annotations

import logging

from .authorization import AllotmentCaller, GlobalAllotmentAuthorizer
from .base import WorkflowService
from src.domain.entities import AllotmentConfig
from src.domain.errors import Unauthorized
from src.infrastructure.repositories import AdminSettingsRepository, commit

logger = logging.getLogger(__name__)


class AllotmentPolicy(WorkflowService):
    def __init__(
        self, session, notifier, authorizer: GlobalAllotmentAuthorizer, **kwargs
    ):
        super().__init__(session, notifier, **kwargs)
        self.authorizer = authorizer
        self.admin_settings = AdminSettingsRepository(session)

    async def read(self) -> AllotmentConfig:
        async with self.reported("allotment read"):
            return await self.admin_settings.get_allotment()

    async def enable(self, caller: AllotmentCaller) -> AllotmentConfig:
        async with self.reported("allotment enable", caller=caller.identity):
            if not self.authorizer.can_enable_global_allotment(caller):
                raise Unauthorized(f"{caller.identity} may not enable same-rider allotment")
            return await self._write(True, caller)

    async def disable(self, caller: AllotmentCaller) -> AllotmentConfig:
        async with self.reported("allotment disable", caller=caller.identity):
            return await self._write(False, caller)

    async def _write(self, enabled: bool, caller: AllotmentCaller) -> AllotmentConfig:
        await self.admin_settings.merge_allotment(enabled, self.clock(), caller.identity)
        await commit(self.session)

        state = "ENABLED" if enabled else "DISABLED"
        logger.info("Same-rider allotment %s by %s", state, caller.identity)
        await self.notifier.notify_success(
            f"Same rider for pickup & delivery {state} for all bookings"
        )
        return await self.admin_settings.get_allotment()
