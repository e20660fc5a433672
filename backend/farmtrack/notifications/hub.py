"""Fan-out of StageAdvanced facts to external notifiers.

Delivery is best-effort and fire-and-forget from the ledger's perspective:
each notifier is isolated, so one failing transport neither blocks the
others nor rolls back the append that produced the fact.
"""

from typing import Protocol, runtime_checkable

import structlog

from farmtrack.domain.events import StageAdvanced

logger = structlog.get_logger(__name__)


@runtime_checkable
class StageNotifier(Protocol):
    def notify(self, fact: StageAdvanced) -> None: ...


class NotificationHub:
    """Forwards each fact to every registered notifier."""

    def __init__(self, notifiers: list[StageNotifier] | None = None):
        self._notifiers: list[StageNotifier] = list(notifiers or [])

    def register(self, notifier: StageNotifier) -> None:
        self._notifiers.append(notifier)

    @property
    def notifiers(self) -> tuple[StageNotifier, ...]:
        return tuple(self._notifiers)

    def notify(self, fact: StageAdvanced) -> None:
        for notifier in list(self._notifiers):
            try:
                notifier.notify(fact)
            except Exception as e:
                logger.error(
                    "notifier_failed",
                    notifier=type(notifier).__name__,
                    order_id=fact.order_id,
                    to_stage_id=fact.to_stage_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )


class LoggingNotifier:
    """Writes every fact to the structured log."""

    def notify(self, fact: StageAdvanced) -> None:
        logger.info(
            "stage_advanced",
            order_id=fact.order_id,
            from_stage_id=fact.from_stage_id,
            to_stage_id=fact.to_stage_id,
            occurred_at=fact.occurred_at,
            event_id=fact.event_id,
        )
