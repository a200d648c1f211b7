"""Reconstruction of an asset's permission set from its event log."""

from collections.abc import Iterable
from functools import reduce

import structlog

from ..ledger.reader import LedgerReader
from ..utils.addresses import normalize_address
from ..utils.errors import LedgerReadError, PermissionLogError
from ..utils.types import PermissionEvent, PermissionEventKind

logger = structlog.get_logger(__name__)


def apply_permission_event(
    permissions: frozenset[str], owner: str, event: PermissionEvent
) -> frozenset[str]:
    """Apply one event to a permission set.

    Revoking the owner is ignored so the owner always keeps access.
    """
    grantee = normalize_address(event.grantee)
    if event.kind is PermissionEventKind.GRANT:
        return permissions | {grantee}
    if grantee == normalize_address(owner):
        return permissions
    return permissions - {grantee}


def reconcile_permissions(
    owner: str, events: Iterable[PermissionEvent]
) -> frozenset[str]:
    """Fold events, in ledger order, into the current permission set."""
    ordered = sorted(events, key=lambda event: event.order)
    return reduce(
        lambda permissions, event: apply_permission_event(permissions, owner, event),
        ordered,
        frozenset({normalize_address(owner)}),
    )


class PermissionReconciler:
    """Reads an asset's permission log and folds it into a set."""

    def __init__(self, reader: LedgerReader) -> None:
        """Initialize the reconciler."""
        self.reader = reader

    async def current_permissions(self, asset_id: int, owner: str) -> frozenset[str]:
        """Return the reconciled permission set of an asset.

        Raises:
            PermissionLogError: the event log could not be read.
        """
        events = await self.read_events(asset_id)
        return reconcile_permissions(owner, events)

    async def read_events(self, asset_id: int) -> list[PermissionEvent]:
        """Read the permission log, classifying read failures."""
        try:
            return await self.reader.get_permission_events(asset_id)
        except LedgerReadError as e:
            logger.error(
                "Permission log unreadable", asset_id=asset_id, error=str(e)
            )
            raise PermissionLogError(asset_id, str(e)) from e
