"""
Analysis sessions: the record list and current selection the views share.

Each caller gets its own AnalysisSession, keyed by the authenticated user id
or by an anonymous session cookie. A session is the single writer of its
records. Only load() (dashboard refresh) and submit() (new analysis) change
the list; views read it through the API routes.
"""

from collections import OrderedDict

import structlog

from inmoai.constants import UNSAVED_USER_ID
from inmoai.models.analysis import OrchestrationResult
from inmoai.models.property import PropertyInput, PropertyRecord
from inmoai.services.orchestrator import NoticeCallback, ReportOrchestrator, StateCallback
from inmoai.services.persistence import PropertyRepository

logger = structlog.get_logger(__name__)


class AnalysisSession:
    """Owns the in-memory records of one caller."""

    def __init__(
        self,
        orchestrator: ReportOrchestrator,
        repository: PropertyRepository,
        *,
        user_id: str | None = None,
        token: str | None = None,
    ) -> None:
        """
        Args:
            orchestrator: Runs the two-tier report generation.
            repository:   Storage backend chosen at startup.
            user_id:      Authenticated caller, None for anonymous sessions.
            token:        Cookie value identifying an anonymous session.
        """
        self.orchestrator = orchestrator
        self.repository = repository
        self.user_id = user_id
        self.token = token
        # Owner id the repository stamps on this caller's records
        self.owner_id = repository.owner_for(user_id)
        self.records: list[PropertyRecord] = []
        self.current: PropertyRecord | None = None

    def owns(self, record: PropertyRecord) -> bool:
        return record.user_id in (self.owner_id, UNSAVED_USER_ID)

    async def load(self) -> list[PropertyRecord]:
        """Replace the record list with what the repository holds for this caller."""
        records = await self.repository.list(user_id=self.user_id)
        self.records = [record for record in records if self.owns(record)]
        logger.info("session_records_loaded", count=len(self.records), user_id=self.user_id)
        return self.records

    async def submit(
        self,
        property_input: PropertyInput,
        *,
        on_notice: NoticeCallback | None = None,
        on_state: StateCallback | None = None,
    ) -> OrchestrationResult:
        """
        Run one analysis. Saved records join the list; unsaved ones only
        become the current record.
        """
        result = await self.orchestrator.run(
            property_input, user_id=self.user_id, on_notice=on_notice, on_state=on_state
        )
        if result.record is not None:
            if result.record.saved:
                self.records.append(result.record)
            self.current = result.record
        return result

    def get(self, record_id: str) -> PropertyRecord | None:
        """Find one of this caller's records by id, including the current unsaved one."""
        if self.current is not None and self.current.id == record_id:
            record = self.current
        else:
            record = next((record for record in self.records if record.id == record_id), None)
        if record is None or not self.owns(record):
            return None
        return record

    def select(self, record_id: str) -> PropertyRecord | None:
        """Make a record current (dashboard click)."""
        record = self.get(record_id)
        if record is not None:
            self.current = record
        return record


class SessionRegistry:
    """
    Per-caller AnalysisSession store.

    Sessions are created on first use and start empty; the dashboard fills
    them through load(). The least recently used session is dropped once
    max_sessions is exceeded.
    """

    def __init__(
        self,
        orchestrator: ReportOrchestrator,
        repository: PropertyRepository,
        max_sessions: int = 1000,
    ) -> None:
        self.orchestrator = orchestrator
        self.repository = repository
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, AnalysisSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def for_user(self, user_id: str) -> AnalysisSession:
        return self._get_or_create(f"user:{user_id}", user_id=user_id)

    def for_anonymous(self, token: str) -> AnalysisSession:
        return self._get_or_create(f"anon:{token}", token=token)

    def _get_or_create(self, key: str, *, user_id: str | None = None, token: str | None = None) -> AnalysisSession:
        session = self._sessions.get(key)
        if session is not None:
            self._sessions.move_to_end(key)
            return session

        session = AnalysisSession(self.orchestrator, self.repository, user_id=user_id, token=token)
        self._sessions[key] = session
        if len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.info("session_evicted", kind=evicted.split(":", 1)[0], active=len(self._sessions))
        return session
