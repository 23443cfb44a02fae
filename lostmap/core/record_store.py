import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from lostmap.core.session import SessionContext
from lostmap.models.report import Report

logger = logging.getLogger(__name__)

Listener = Callable[[Tuple[Report, ...]], None]


class ReportEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    report: Report
    is_owner: bool
    can_edit: bool


def order_reports(reports: Iterable[Report]) -> Tuple[Report, ...]:
    """Dedupe by id (last one wins), newest first, ties broken by id."""
    by_id: Dict[str, Report] = {}
    for report in reports:
        by_id[report.id] = report

    # two stable sorts: id ascending survives inside equal timestamps
    ordered = sorted(by_id.values(), key=lambda r: r.id)
    ordered.sort(key=lambda r: r.created_at, reverse=True)
    return tuple(ordered)


class RecordStore:
    """
    The reports currently on the map, exactly as the live feed last delivered them.

    replace_all swaps the whole snapshot in one assignment, so readers see
    either the old tuple or the new one and never a mix.
    """

    def __init__(self, session: Optional[SessionContext] = None):
        self._session = session
        self._reports: Tuple[Report, ...] = ()
        self._index: Dict[str, Report] = {}
        self._listeners: List[Listener] = []
        self.version = 0

    def replace_all(self, reports: Iterable[Report]) -> None:
        ordered = order_reports(reports)
        index = {r.id: r for r in ordered}

        self._reports, self._index = ordered, index
        self.version += 1

        for listener in list(self._listeners):
            try:
                listener(ordered)
            except Exception:
                logger.exception("Record store listener failed")

    def all(self) -> Tuple[Report, ...]:
        return self._reports

    def get(self, report_id: str) -> Optional[Report]:
        return self._index.get(report_id)

    def __len__(self) -> int:
        return len(self._reports)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def entries(self) -> List[ReportEntry]:
        session = self._session
        return [
            ReportEntry(
                report=report,
                is_owner=session.is_owner(report) if session else False,
                can_edit=session.can_edit(report) if session else False,
            )
            for report in self._reports
        ]

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove
