"""
Audit Logger

DESIGN DECISION: Every mutation of the entity store is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability when a balance looks wrong
3. A change feed other observers can follow

The audit logger:
- Is a plain store observer, called synchronously after each commit
- Keeps an optional bounded history for inspection
- Never raises into the mutation that triggered it
"""

from collections import deque
from typing import Optional

import structlog

from flourish.models.audit import AuditEvent, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def get_logger(name: Optional[str] = None):
    """Get a structlog logger bound to the given module name."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.

    Register it on the entity store with ``store.subscribe(audit_logger)``.
    """

    def __init__(self, history_size: int = 0):
        """
        Initialize audit logger.

        Args:
            history_size: Number of recent events to keep in memory.
                          0 keeps none.
        """
        self._logger = get_logger("flourish.audit")
        self._history: Optional[deque] = (
            deque(maxlen=history_size) if history_size > 0 else None
        )

    def __call__(self, event: AuditEvent) -> None:
        self.log(event)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at the level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._history is not None:
            self._history.append(event)

    @property
    def history(self) -> list[AuditEvent]:
        """Most recent events, oldest first."""
        return list(self._history) if self._history is not None else []
