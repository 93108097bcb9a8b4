"""
Module: payment_kernel.selectors.notification_log_selector
Responsibility: Read-only queries over the notification audit log for admin
    and support screens: individual entries, filtered listings, the queue of
    notifications awaiting manual reconciliation, and the history of a buffer.
Architecture position: Kernel > Selectors.

Audit relevance:
    ``list_unresolved`` is the operator's work queue.  An unmatched or
    ambiguous entry leaves it only when a ReconciliationResolution is
    recorded for it; the entry itself is never edited.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select

from payment_kernel.domain.dtos import LogEntryDTO, ResolutionDTO
from payment_kernel.models.notification_log import (
    RESOLVABLE_STATUSES,
    NotificationLogEntry,
    NotificationStatus,
)
from payment_kernel.models.resolution import ReconciliationResolution
from payment_kernel.selectors.base import BaseSelector


class NotificationLogSelector(BaseSelector[NotificationLogEntry]):
    """
    Selector for notification log queries.

    Usage:
        selector = NotificationLogSelector(session)
        for entry in selector.list_unresolved():
            print(entry.status, entry.message_content)
    """

    def get(self, log_entry_id: UUID) -> LogEntryDTO | None:
        entry = self.session.get(NotificationLogEntry, log_entry_id)
        return LogEntryDTO.from_model(entry) if entry is not None else None

    def list_entries(
        self,
        status: NotificationStatus | str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[LogEntryDTO]:
        """List entries newest first, optionally filtered by status."""
        stmt = select(NotificationLogEntry)
        if status is not None:
            stmt = stmt.where(
                NotificationLogEntry.status == NotificationStatus(status).value
            )
        stmt = (
            stmt.order_by(
                NotificationLogEntry.created_at.desc(),
                NotificationLogEntry.id,
            )
            .limit(limit)
            .offset(offset)
        )
        return [LogEntryDTO.from_model(e) for e in self.session.execute(stmt).scalars()]

    def list_unresolved(self, limit: int | None = None) -> list[LogEntryDTO]:
        """
        Unmatched and ambiguous entries with no manual resolution, oldest first.
        """
        resolved = select(ReconciliationResolution.log_entry_id).where(
            ReconciliationResolution.log_entry_id == NotificationLogEntry.id
        )
        stmt = (
            select(NotificationLogEntry)
            .where(
                NotificationLogEntry.status.in_([s.value for s in RESOLVABLE_STATUSES]),
                ~resolved.exists(),
            )
            .order_by(NotificationLogEntry.created_at, NotificationLogEntry.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [LogEntryDTO.from_model(e) for e in self.session.execute(stmt).scalars()]

    def entries_for_buffer(self, buffer_id: UUID) -> list[LogEntryDTO]:
        """
        Every entry that names ``buffer_id``: the matching entry and any
        ambiguous entries that listed it as a candidate.
        """
        stmt = (
            select(NotificationLogEntry)
            .where(
                or_(
                    NotificationLogEntry.buffer_id == buffer_id,
                    NotificationLogEntry.candidate_buffer_ids.is_not(None),
                )
            )
            .order_by(NotificationLogEntry.created_at, NotificationLogEntry.id)
        )
        entries = []
        for entry in self.session.execute(stmt).scalars():
            if entry.buffer_id == buffer_id or str(buffer_id) in (
                entry.candidate_buffer_ids or ()
            ):
                entries.append(LogEntryDTO.from_model(entry))
        return entries

    def resolution_for(self, log_entry_id: UUID) -> ResolutionDTO | None:
        resolution = self.session.execute(
            select(ReconciliationResolution).where(
                ReconciliationResolution.log_entry_id == log_entry_id
            )
        ).scalar_one_or_none()
        return ResolutionDTO.from_model(resolution) if resolution is not None else None

    def count_by_status(self) -> dict[str, int]:
        """Number of entries per status."""
        rows = self.session.execute(
            select(NotificationLogEntry.status, func.count()).group_by(
                NotificationLogEntry.status
            )
        )
        return {status: count for status, count in rows}
