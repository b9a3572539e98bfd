"""Scheduled transfers package."""

from flourish.transfers.scheduled import ScheduledTransferService

__all__ = ["ScheduledTransferService"]
