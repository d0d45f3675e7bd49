"""Periodic status polling for active runs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from .. import classifier
from ..models import ACTIVE_STATUSES, Run, RunState, Status
from ..store import RunStore
from .socket import ManagerFactory

logger = logging.getLogger(__name__)

DEAD_CHECKS_BEFORE_MARKING = 3


class RunMonitor:
    """Polls every active run once per ``monitor_all`` call.

    Per-run ``RunState`` lives only as long as this object; a restarted
    daemon starts from scratch, so a run must be seen alive again before
    it can be declared dead.
    """

    def __init__(
        self,
        store: RunStore,
        manager_factory: ManagerFactory,
        dead_checks: int = DEAD_CHECKS_BEFORE_MARKING,
    ) -> None:
        self.store = store
        self.manager_factory = manager_factory
        self.dead_checks = dead_checks
        self.states: dict[str, RunState] = {}

    def state_for(self, run: Run) -> RunState:
        key = str(run.ref())
        if key not in self.states:
            self.states[key] = RunState()
        return self.states[key]

    async def monitor_all(self) -> None:
        try:
            runs = self.store.list_runs(ACTIVE_STATUSES)
        except Exception:
            logger.exception("Error listing runs")
            return
        for run in runs:
            try:
                await self.monitor_run(run)
            except Exception:
                logger.exception("Error monitoring %s", run.ref())
        active = {str(run.ref()) for run in runs}
        for key in list(self.states):
            if key not in active:
                del self.states[key]

    async def monitor_run(self, run: Run) -> Status | None:
        """Poll one run. Returns the status written to the store, if any."""
        ref = run.ref()
        state = self.state_for(run)
        state.last_check_at = datetime.now(timezone.utc)
        manager = self.manager_factory(run)

        if await manager.is_alive(run):
            state.was_alive = True
            state.dead_check_count = 0
        else:
            state.dead_check_count += 1
            if not state.was_alive:
                logger.debug("%s: not alive yet (never confirmed alive), waiting", ref)
                return None
            if state.dead_check_count < self.dead_checks:
                logger.info(
                    "%s: not alive (%d/%d checks), waiting", ref, state.dead_check_count, self.dead_checks
                )
                return None
            logger.info(
                "%s: confirmed dead after %d checks, marking %s",
                ref,
                state.dead_check_count,
                manager.dead_status,
            )
            return self._update(run, manager.dead_status)

        try:
            output = await manager.capture_output(run)
        except Exception as exc:
            logger.warning("%s: failed to capture output: %s", ref, exc)
            return None

        content_hash = classifier.hash_content(output)
        output_changed = content_hash != state.output_hash
        has_prompt = manager.detect_prompt(output)
        if output_changed:
            state.output_hash = content_hash
            state.last_output = output
            state.last_output_at = datetime.now(timezone.utc)

        pr_url = classifier.detect_pr_url(output)
        if pr_url and not state.pr_recorded:
            logger.info("%s: PR created: %s", ref, pr_url)
            self.store.record_artifact(ref, "pr", url=pr_url)
            state.pr_recorded = True
            return self._update(run, Status.PR_OPEN)

        new_status = await manager.get_status(run, output, state, output_changed, has_prompt)
        if new_status is not None and new_status != run.status:
            logger.info("%s: status change %s -> %s", ref, run.status, new_status)
            return self._update(run, new_status)
        return None

    def _update(self, run: Run, status: Status) -> Status:
        self.store.update_status(run.ref(), status)
        run.status = status
        return status
