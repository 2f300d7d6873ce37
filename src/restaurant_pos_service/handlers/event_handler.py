"""EventBridge handler for scheduled housekeeping tasks."""

import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from restaurant_pos_service.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)

MARK_OVERDUE_INVOICES = "mark_overdue_invoices"


class ScheduledTaskEvent(BaseModel):
    """Detail of a scheduled EventBridge rule.

    Attributes:
        task: Name of the housekeeping task to run
    """

    task: str


def parse_scheduled_event(event: dict[str, Any]) -> ScheduledTaskEvent | None:
    """Parse an EventBridge event into a ScheduledTaskEvent.

    Args:
        event: Raw EventBridge event dictionary

    Returns:
        ScheduledTaskEvent if parsing succeeds, None otherwise
    """
    try:
        detail = event.get("detail") or {}
        return ScheduledTaskEvent(**detail)
    except (ValidationError, TypeError) as e:
        logger.error(f"Failed to parse scheduled event: {e}")
        return None


class EventHandler:
    """Runs scheduled tasks delivered by EventBridge."""

    def __init__(self, invoice_service: InvoiceService) -> None:
        """Initialize the event handler.

        Args:
            invoice_service: Service owning invoice housekeeping
        """
        self.invoice_service = invoice_service

    async def handle_eventbridge_event(
        self, event: dict[str, Any], _context: Any
    ) -> dict[str, Any]:
        """Lambda handler for scheduled EventBridge events.

        Args:
            event: EventBridge event dictionary
            _context: Lambda context object (unused)

        Returns:
            Dictionary with statusCode and body for Lambda response
        """
        scheduled = parse_scheduled_event(event)
        if not scheduled:
            return {
                "statusCode": 400,
                "body": "Invalid event format",
            }

        if scheduled.task != MARK_OVERDUE_INVOICES:
            logger.warning(f"Ignoring unknown scheduled task {scheduled.task}")
            return {
                "statusCode": 400,
                "body": f"Unknown task {scheduled.task}",
            }

        marked = await self.invoice_service.mark_overdue_invoices()
        return {
            "statusCode": 200,
            "body": f"Marked {len(marked)} invoices overdue",
        }
