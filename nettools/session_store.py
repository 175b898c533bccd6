"""Per-kind session state with change notification and snapshot persistence."""

import json
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Callable

from PySide6.QtCore import QObject, QSettings, Signal

from nettools.models import (
    DEFAULT_PARAMETERS,
    DigQuery,
    DnsRecord,
    Hop,
    Kind,
    PingSample,
    Session,
)
from nettools.parsers import parser_for

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "nettools/state"
MAX_DIG_HISTORY = 5


def new_session(kind: Kind) -> Session:
    """Fresh idle session with the kind's default parameters."""
    session = Session(kind=kind, parameters=dict(DEFAULT_PARAMETERS[kind]))
    session.aggregates = parser_for(kind).compute_stats([])
    return session


def _record_to_dict(record) -> dict:
    data = asdict(record)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = value.isoformat()
    return data


def _record_from_dict(kind: Kind, data: dict):
    if kind is Kind.PING:
        return PingSample(
            sequence=int(data["sequence"]),
            round_trip_ms=data.get("round_trip_ms"),
            received_at=datetime.fromisoformat(data["received_at"]),
        )
    if kind is Kind.DIG:
        return DnsRecord(
            name=data["name"],
            ttl_seconds=int(data["ttl_seconds"]),
            record_type=data["record_type"],
            value=data["value"],
            observed_at=datetime.fromisoformat(data["observed_at"]),
        )
    return Hop(
        hop_number=int(data["hop_number"]),
        hostname=data.get("hostname"),
        address=data.get("address"),
        latency_ms=data.get("latency_ms"),
        is_timeout=bool(data.get("is_timeout")),
    )


def session_to_dict(session: Session) -> dict:
    """Serialize a session into the snapshot layout."""
    return {
        "target": session.target,
        "parameters": dict(session.parameters),
        "rawOutput": session.output_text,
        "running": session.running,
        "records": [_record_to_dict(r) for r in session.records],
        "aggregates": asdict(session.aggregates) if session.aggregates is not None else {},
        "summarySeen": session.summary_seen,
        "history": [_record_to_dict(q) for q in session.history],
    }


def session_from_dict(kind: Kind, data: dict) -> Session:
    """Rebuild a session from the snapshot layout.

    Aggregates are recomputed from the restored records rather than read
    back, so they always agree with the records.
    """
    raw_output = data.get("rawOutput") or ""
    records = [_record_from_dict(kind, r) for r in data.get("records") or []]
    history = [
        DigQuery(
            target=q["target"],
            record_type=q["record_type"],
            completed_at=datetime.fromisoformat(q["completed_at"]),
            record_count=int(q["record_count"]),
        )
        for q in data.get("history") or []
    ]

    return Session(
        kind=kind,
        target=data.get("target") or "",
        parameters=dict(data.get("parameters") or DEFAULT_PARAMETERS[kind]),
        raw_output=raw_output.split("\n") if raw_output else [],
        running=bool(data.get("running")),
        records=records,
        aggregates=parser_for(kind).compute_stats(records),
        summary_seen=bool(data.get("summarySeen")),
        history=history,
    )


class SessionStore(QObject):
    """Holds exactly one Session per kind for the lifetime of the process.

    Every mutation writes a full JSON snapshot under SNAPSHOT_KEY and then
    notifies observers, both through the session_changed signal and through
    callbacks registered with on_change().
    """

    session_changed = Signal(str)  # kind value

    def __init__(self, settings: QSettings | None = None, parent=None):
        super().__init__(parent)

        self._settings = settings
        self._sessions = {kind: new_session(kind) for kind in Kind}
        self._active_kind = Kind.PING
        self._observers = {kind: [] for kind in Kind}

        if self._settings is not None:
            self.restore()

    @property
    def active_kind(self) -> Kind:
        return self._active_kind

    def set_active_kind(self, kind: Kind):
        """Switch the active tool. Runs of other kinds keep accumulating."""
        kind = Kind(kind)
        if kind is self._active_kind:
            return
        self._active_kind = kind
        logger.debug("Active kind: %s", kind.value)
        self._commit(kind)

    def get(self, kind: Kind) -> Session:
        return self._sessions[Kind(kind)]

    def sessions(self) -> dict[Kind, Session]:
        return dict(self._sessions)

    def on_change(self, kind: Kind, callback: Callable[[Session], None]) -> Callable[[], None]:
        """Register callback(session) for changes to kind; returns an unsubscribe function."""
        observers = self._observers[Kind(kind)]
        observers.append(callback)

        def unsubscribe():
            if callback in observers:
                observers.remove(callback)

        return unsubscribe

    def begin_run(self, kind: Kind, target: str, parameters: dict[str, str]):
        """Reset the kind's output and records and mark it running."""
        kind = Kind(kind)
        session = self._sessions[kind]
        session.target = target
        session.parameters = dict(parameters)
        session.raw_output = []
        session.records = []
        session.aggregates = parser_for(kind).compute_stats([])
        session.summary_seen = False
        session.running = True

        logger.info("Run started: kind=%s, target=%s, parameters=%s", kind.value, target, parameters)
        self._commit(kind)

    def apply_fragment(self, kind: Kind, text: str):
        kind = Kind(kind)
        session = self._sessions[kind]
        result = parser_for(kind).consume(session, text)
        if not result.lines:
            return

        session.raw_output.extend(result.lines)
        session.records = result.records
        session.aggregates = result.stats
        session.summary_seen = result.summary_seen
        self._commit(kind)

    def apply_completion(self, kind: Kind, ended_at: float | None = None):
        kind = Kind(kind)
        session = self._sessions[kind]
        session.running = False

        if kind is Kind.DIG and session.records:
            query = DigQuery(
                target=session.target,
                record_type=session.parameters.get("type", ""),
                completed_at=datetime.now(),
                record_count=len(session.records),
            )
            session.history = [query] + session.history[: MAX_DIG_HISTORY - 1]

        logger.info(
            "Run completed: kind=%s, target=%s, records=%d, ended_at=%s",
            kind.value,
            session.target,
            len(session.records),
            ended_at,
        )
        self._commit(kind)

    def apply_error(self, kind: Kind, message: str):
        """Record an error line and end the run, keeping partial records.

        A multi-line message is stored one line per entry, like fragments.
        """
        kind = Kind(kind)
        session = self._sessions[kind]
        lines = f"Error: {message}".splitlines()
        session.raw_output.extend([lines[0]] + [line for line in lines[1:] if line.strip()])
        session.running = False

        logger.info("Run failed: kind=%s, target=%s, error=%s", kind.value, session.target, message)
        self._commit(kind)

    def snapshot(self) -> dict:
        return {
            "activeKind": self._active_kind.value,
            "sessions": {kind.value: session_to_dict(s) for kind, s in self._sessions.items()},
        }

    def restore(self):
        """Load the last snapshot; a missing or unreadable one leaves the defaults."""
        if self._settings is None:
            return

        raw = self._settings.value(SNAPSHOT_KEY)
        if not raw:
            logger.debug("No stored snapshot, using defaults")
            return

        try:
            data = json.loads(raw)
            sessions = {
                kind: session_from_dict(kind, data["sessions"][kind.value])
                if kind.value in data["sessions"]
                else new_session(kind)
                for kind in Kind
            }
            active_kind = Kind(data.get("activeKind", Kind.PING.value))
        except (AttributeError, TypeError, ValueError, KeyError) as e:
            logger.warning("Discarding unreadable snapshot: %s", e)
            return

        self._sessions = sessions
        self._active_kind = active_kind
        logger.info("Snapshot restored: active_kind=%s", active_kind.value)

    def _persist(self):
        if self._settings is None:
            return
        self._settings.setValue(SNAPSHOT_KEY, json.dumps(self.snapshot()))

    def _commit(self, kind: Kind):
        self._persist()
        self.session_changed.emit(kind.value)

        session = self._sessions[kind]
        for callback in list(self._observers[kind]):
            try:
                callback(session)
            except Exception:
                logger.exception("Session observer failed: kind=%s", kind.value)
