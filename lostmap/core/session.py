import logging
from typing import Optional

from lostmap.core.interfaces import IdentityProvider
from lostmap.models.identity import Identity
from lostmap.models.report import Report

logger = logging.getLogger(__name__)


class SessionContext:
    """
    Mirrors the identity provider's current sign-in state.

    The provider pushes every change (including the initial state) through
    on_identity_changed, so the context never polls.

    allow_edit_unowned keeps the legacy rule that pins without an owner can be
    edited by anyone.
    """

    def __init__(self, provider: IdentityProvider, allow_edit_unowned: bool = True):
        self.allow_edit_unowned = allow_edit_unowned
        self._identity: Optional[Identity] = None
        self._unsubscribe = provider.on_identity_changed(self._on_identity_changed)

    def _on_identity_changed(self, identity: Optional[Identity]) -> None:
        previous = self._identity
        self._identity = identity

        if identity != previous:
            logger.info("Identity changed: %s", identity.uid if identity else "signed out")

    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def is_owner(self, report: Report) -> bool:
        identity = self._identity
        return (
            identity is not None
            and report.owner_id is not None
            and report.owner_id == identity.uid
        )

    def can_edit(self, report: Report) -> bool:
        if report.owner_id is None:
            return self.allow_edit_unowned
        return self.is_owner(report)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
