"""Entry points the scheduler and the external trigger call into."""

from __future__ import annotations

import hmac
import logging
from typing import Awaitable, Callable, Iterable

from feedsync.db.options import OptionStore
from feedsync.logic.reconcile import RunResult
from feedsync.settings import CRON_SECRET_KEY, EXTERNAL, cron_mode

logger = logging.getLogger(__name__)

RunImports = Callable[[], Awaitable[list[RunResult]]]


class TriggerRejected(Exception):
    def __init__(self, status_code: int, reason: str) -> None:
        super().__init__(reason)
        self.status_code = status_code
        self.reason = reason


class ImportTrigger:
    def __init__(self, options: OptionStore, run_imports: RunImports) -> None:
        self.options = options
        self.run_imports = run_imports

    async def on_timer_fire(self) -> list[RunResult]:
        return await self.run_imports()

    async def on_trigger_request(
        self, credential: str | None, *, extra_params: Iterable[str] = ()
    ) -> list[RunResult]:
        """Run the imports for an external request carrying ``credential``.

        Raises ``TriggerRejected`` without touching any state when the request
        is malformed, the credential is wrong or external triggering is off.
        """
        extra = sorted(extra_params)
        if not credential:
            raise TriggerRejected(400, "Missing credential")
        if extra:
            raise TriggerRejected(400, f"Unexpected parameters: {', '.join(extra)}")
        try:
            mode = cron_mode(self.options)
        except ValueError as exc:
            logger.warning("Rejected trigger request: %s", exc)
            raise TriggerRejected(403, "Trigger not available") from exc
        if mode != EXTERNAL:
            logger.warning("Rejected trigger request: cron mode is %s", mode)
            raise TriggerRejected(403, "Trigger not available")
        secret = self.options.get(CRON_SECRET_KEY)
        if not secret:
            logger.warning("Rejected trigger request: no secret configured")
            raise TriggerRejected(403, "Trigger not available")
        if not hmac.compare_digest(credential.encode("utf-8"), secret.encode("utf-8")):
            logger.warning("Rejected trigger request: wrong credential")
            raise TriggerRejected(403, "Invalid credential")
        logger.info("Running imports for external trigger")
        return await self.run_imports()
