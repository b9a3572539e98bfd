"""
Main Orchestrator for Flourish

This module ties together all the components:
1. Blob storage (memory, JSON file or Google Sheets)
2. The entity store and its observers
3. Ledger, action engine and scheduled transfers

DESIGN DECISION: Components are wired explicitly.
- One EntityStore per FinanceService, passed to every component
- Nothing is a module-level singleton, so tests build as many isolated
  services as they like
- The AuditLogger is just the first observer on the store

A typical refresh cycle for a user:
    process due subscriptions -> generate action items -> read the Action Center
"""

from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from flourish.actions import ActionEngine
from flourish.audit import AuditLogger, get_logger
from flourish.config import Settings, get_settings
from flourish.ledger import Ledger
from flourish.models.actions import ActionItem
from flourish.services.storage import (
    BlobStorageInterface,
    GoogleSheetsBlobStorage,
    GoogleSheetsClient,
    InMemoryBlobStorage,
    JsonFileBlobStorage,
)
from flourish.store import EntityStore
from flourish.transfers import ScheduledTransferService


logger = get_logger(__name__)


class FinanceService:
    """
    Facade over the finance core.

    Exposes the components directly (``service.ledger.apply_expense(...)``)
    and adds the refresh cycle that keeps the Action Center current.
    """

    def __init__(
        self,
        store: EntityStore,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        app_settings = settings.app

        self.store = store
        self.actions = ActionEngine(store, app_settings)
        self.ledger = Ledger(store, self.actions, app_settings)
        self.transfers = ScheduledTransferService(store, self.ledger, self.actions)

    def refresh(self, user_id: UUID) -> list[ActionItem]:
        """
        Charge due subscriptions, re-run the action rules and return the
        user's active Action Center items.
        """
        charged = self.ledger.process_subscriptions(user_id)
        created = self.actions.generate_action_items(user_id)
        logger.info(
            "refresh_completed",
            user_id=str(user_id),
            subscriptions_charged=len(charged),
            action_items_created=len(created),
        )
        return self.actions.get_action_items(user_id)


def create_storage(settings: Optional[Settings] = None) -> BlobStorageInterface:
    """
    Build the blob store named by FLOURISH_STORAGE_BACKEND.

    A Google Sheets backend that is not configured falls back to the
    local JSON file.
    """
    settings = settings or get_settings()
    storage_settings = settings.storage

    if storage_settings.backend == "memory":
        return InMemoryBlobStorage()

    if storage_settings.backend == "google_sheets":
        try:
            return GoogleSheetsBlobStorage(GoogleSheetsClient(settings.google_sheets))
        except Exception as e:
            logger.warning(
                "google_sheets_unavailable",
                error=str(e),
                fallback=storage_settings.json_path,
            )

    return JsonFileBlobStorage(storage_settings.json_path)


def create_app_components(
    settings: Optional[Settings] = None,
    storage: Optional[BlobStorageInterface] = None,
    clock: Optional[Callable[[], datetime]] = None,
    audit_history_size: int = 0,
) -> tuple[FinanceService, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        settings: Defaults to the cached environment settings
        storage: Overrides the configured backend (tests pass a memory store)
        clock: Source of "now" for every date rule
        audit_history_size: Recent audit events kept in memory

    Returns:
        (finance_service, audit_logger)
    """
    settings = settings or get_settings()
    storage = storage if storage is not None else create_storage(settings)

    store = EntityStore(
        storage,
        clock=clock,
        default_currency=settings.app.currency_code,
    )
    audit_logger = AuditLogger(history_size=audit_history_size)
    store.subscribe(audit_logger)

    return FinanceService(store, settings), audit_logger
