"""SQLite backing for the event store."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Sequence

from compliance_pipeline.audit.models import AuditLogEntry
from compliance_pipeline.domain.models import (
    AlertStatus,
    ConsentRecord,
    DataRequest,
    LegalDocument,
    PrivacySettings,
    Profile,
    RequestKind,
    Role,
    SecurityAlert,
    SecurityEvent,
    Severity,
    SourceCount,
)
from compliance_pipeline.errors import StoreError
from compliance_pipeline.utils.serialization import dumps, loads_object
from compliance_pipeline.utils.time import parse_iso, utc_now

logger = logging.getLogger(__name__)

_SqlValue = str | bytes | int | float | None
_SqlParams = Sequence[_SqlValue] | Mapping[str, _SqlValue]

PENDING_STATUS = "pending"


def _ts(value: datetime) -> str:
    """Fixed-width UTC ISO string so lexical order matches time order."""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _new_id() -> str:
    return str(uuid.uuid4())


class SqliteEventStore:
    def __init__(self, path: str, wal: bool = True) -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._tx_depth = 0
        self._closed = False
        if wal and path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS security_events (
                id TEXT PRIMARY KEY,
                event_type TEXT NOT NULL,
                severity TEXT NOT NULL
                    CHECK (severity IN ('low', 'medium', 'high', 'critical')),
                description TEXT NOT NULL,
                source_ip TEXT NOT NULL,
                user_agent TEXT NOT NULL,
                user_id TEXT,
                company_id TEXT,
                metadata TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS security_alerts (
                id TEXT PRIMARY KEY,
                recipients TEXT NOT NULL,
                event_data TEXT NOT NULL,
                status TEXT NOT NULL CHECK (status IN ('pending', 'sent', 'failed')),
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                role TEXT NOT NULL DEFAULT 'user',
                email TEXT,
                empresa_id TEXT,
                nome TEXT
            );

            CREATE TABLE IF NOT EXISTS privacy_consents (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                consent_type TEXT NOT NULL,
                version TEXT NOT NULL,
                consent_given INTEGER NOT NULL,
                ip_address TEXT NOT NULL,
                user_agent TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS privacy_settings (
                user_id TEXT PRIMARY KEY,
                marketing_emails INTEGER NOT NULL,
                analytics_tracking INTEGER NOT NULL,
                chat_data_retention INTEGER NOT NULL,
                personalized_ads INTEGER NOT NULL,
                data_sharing INTEGER NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS data_export_requests (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS data_deletion_requests (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL,
                deletion_type TEXT NOT NULL,
                justification TEXT,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS audit_logs (
                id TEXT PRIMARY KEY,
                actor_id TEXT NOT NULL,
                company_id TEXT,
                action_name TEXT NOT NULL,
                target_type TEXT NOT NULL,
                target_id TEXT,
                metadata TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS legal_documents (
                id TEXT PRIMARY KEY,
                document_type TEXT NOT NULL,
                title TEXT NOT NULL,
                version TEXT NOT NULL,
                content TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_type_created
                ON security_events(event_type, created_at);
            CREATE INDEX IF NOT EXISTS idx_events_severity_created
                ON security_events(severity, created_at);
            CREATE INDEX IF NOT EXISTS idx_consents_user_type
                ON privacy_consents(user_id, consent_type, created_at);
            CREATE INDEX IF NOT EXISTS idx_export_user_status
                ON data_export_requests(user_id, status);
            CREATE INDEX IF NOT EXISTS idx_deletion_user_status
                ON data_deletion_requests(user_id, status);
            CREATE INDEX IF NOT EXISTS idx_audit_actor ON audit_logs(actor_id);
            CREATE INDEX IF NOT EXISTS idx_profiles_role ON profiles(role);
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Low-level access

    @contextmanager
    def transaction(self) -> Iterator["SqliteEventStore"]:
        """Commit all writes made inside the block together, or roll them back.

        Nested blocks join the outermost transaction.
        """
        with self._lock:
            self._tx_depth += 1
            try:
                yield self
            except BaseException:
                self._tx_depth -= 1
                if self._tx_depth == 0:
                    self._conn.rollback()
                raise
            self._tx_depth -= 1
            if self._tx_depth == 0:
                try:
                    self._conn.commit()
                except sqlite3.Error as exc:
                    self._conn.rollback()
                    raise StoreError("Failed to commit transaction") from exc

    def execute(self, query: str, params: _SqlParams = ()) -> int:
        with self._lock:
            try:
                cursor = self._conn.execute(query, params)
                if self._tx_depth == 0:
                    self._conn.commit()
            except sqlite3.Error as exc:
                logger.error("SQLite write failed: %s", exc)
                raise StoreError("Failed to write to store") from exc
            return cursor.rowcount

    def fetch_one(self, query: str, params: _SqlParams = ()) -> sqlite3.Row | None:
        with self._lock:
            try:
                return self._conn.execute(query, params).fetchone()
            except sqlite3.Error as exc:
                logger.error("SQLite read failed: %s", exc)
                raise StoreError("Failed to read from store") from exc

    def fetch_all(self, query: str, params: _SqlParams = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(query, params).fetchall()
            except sqlite3.Error as exc:
                logger.error("SQLite read failed: %s", exc)
                raise StoreError("Failed to read from store") from exc

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

    # ------------------------------------------------------------------
    # Security events and alerts

    def insert_event(self, event: SecurityEvent) -> None:
        self.execute(
            """
            INSERT INTO security_events (
                id, event_type, severity, description, source_ip, user_agent,
                user_id, company_id, metadata, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.id,
                event.event_type,
                event.severity.value,
                event.description,
                event.source_ip,
                event.user_agent,
                event.user_id,
                event.company_id,
                dumps(event.metadata),
                _ts(event.created_at),
            ),
        )

    def list_events(
        self,
        *,
        severities: Iterable[Severity] | None = None,
        event_types: Iterable[str] | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[SecurityEvent]:
        clauses: list[str] = []
        params: list[_SqlValue] = []
        if severities is not None:
            values = [Severity(s).value for s in severities]
            if not values:
                return []
            clauses.append(f"severity IN ({','.join('?' for _ in values)})")
            params.extend(values)
        if event_types is not None:
            types = list(event_types)
            if not types:
                return []
            clauses.append(f"event_type IN ({','.join('?' for _ in types)})")
            params.extend(types)
        if since is not None:
            clauses.append("created_at >= ?")
            params.append(_ts(since))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit if limit is not None else -1)
        rows = self.fetch_all(
            f"SELECT * FROM security_events {where} "
            "ORDER BY created_at DESC, rowid DESC LIMIT ?",
            params,
        )
        return [self._row_to_event(row) for row in rows]

    def count_events_by_source(
        self,
        event_type: str,
        since: datetime,
        min_count: int,
        limit: int | None = None,
    ) -> list[SourceCount]:
        rows = self.fetch_all(
            """
            SELECT source_ip, COUNT(*) AS attempts, MAX(created_at) AS last_seen
            FROM security_events
            WHERE event_type = ? AND created_at >= ?
            GROUP BY source_ip
            HAVING COUNT(*) >= ?
            ORDER BY attempts DESC, last_seen DESC
            LIMIT ?
            """,
            (event_type, _ts(since), min_count, limit if limit is not None else -1),
        )
        return [
            SourceCount(
                ip=row["source_ip"],
                attempts=int(row["attempts"]),
                last_seen=parse_iso(row["last_seen"]),
            )
            for row in rows
        ]

    def insert_alert(self, alert: SecurityAlert) -> None:
        self.execute(
            """
            INSERT INTO security_alerts (id, recipients, event_data, status, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                alert.id,
                json.dumps(list(alert.recipients)),
                dumps(alert.event_data),
                alert.status.value,
                _ts(alert.created_at),
            ),
        )

    def list_alerts(self) -> list[SecurityAlert]:
        rows = self.fetch_all("SELECT * FROM security_alerts ORDER BY created_at DESC, rowid DESC")
        return [
            SecurityAlert(
                id=row["id"],
                recipients=tuple(json.loads(row["recipients"])),
                event_data=loads_object(row["event_data"]),
                status=AlertStatus(row["status"]),
                created_at=parse_iso(row["created_at"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Profiles

    def get_profile(self, user_id: str) -> Profile | None:
        row = self.fetch_one("SELECT * FROM profiles WHERE id = ?", (user_id,))
        if row is None:
            return None
        return self._row_to_profile(row)

    def list_profiles_by_role(self, roles: Iterable[Role]) -> list[Profile]:
        values = [Role(r).value for r in roles]
        if not values:
            return []
        rows = self.fetch_all(
            f"SELECT * FROM profiles WHERE role IN ({','.join('?' for _ in values)}) "
            "ORDER BY id",
            values,
        )
        return [self._row_to_profile(row) for row in rows]

    # ------------------------------------------------------------------
    # Consent and privacy settings

    def insert_consent(self, record: ConsentRecord) -> None:
        self.execute(
            """
            INSERT INTO privacy_consents (
                id, user_id, consent_type, version, consent_given,
                ip_address, user_agent, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.user_id,
                record.consent_type,
                record.version,
                int(record.consent_given),
                record.ip_address,
                record.user_agent,
                _ts(record.created_at),
            ),
        )

    def list_consents(self, user_id: str) -> list[ConsentRecord]:
        rows = self.fetch_all(
            "SELECT * FROM privacy_consents WHERE user_id = ? "
            "ORDER BY created_at ASC, rowid ASC",
            (user_id,),
        )
        return [self._row_to_consent(row) for row in rows]

    def get_consent_status(self, user_id: str) -> list[ConsentRecord]:
        """Most recent consent record per consent type."""
        rows = self.fetch_all(
            """
            SELECT c.* FROM privacy_consents AS c
            WHERE c.user_id = ?
              AND c.rowid = (
                SELECT c2.rowid FROM privacy_consents AS c2
                WHERE c2.user_id = c.user_id AND c2.consent_type = c.consent_type
                ORDER BY c2.created_at DESC, c2.rowid DESC
                LIMIT 1
              )
            ORDER BY c.consent_type
            """,
            (user_id,),
        )
        return [self._row_to_consent(row) for row in rows]

    def get_privacy_settings(self, user_id: str) -> PrivacySettings | None:
        row = self.fetch_one("SELECT * FROM privacy_settings WHERE user_id = ?", (user_id,))
        if row is None:
            return None
        return PrivacySettings(
            user_id=row["user_id"],
            marketing_emails=bool(row["marketing_emails"]),
            analytics_tracking=bool(row["analytics_tracking"]),
            chat_data_retention=bool(row["chat_data_retention"]),
            personalized_ads=bool(row["personalized_ads"]),
            data_sharing=bool(row["data_sharing"]),
            updated_at=parse_iso(row["updated_at"]),
        )

    def upsert_privacy_settings(self, settings: PrivacySettings) -> None:
        updated_at = settings.updated_at or utc_now()
        self.execute(
            """
            INSERT INTO privacy_settings (
                user_id, marketing_emails, analytics_tracking, chat_data_retention,
                personalized_ads, data_sharing, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                marketing_emails = excluded.marketing_emails,
                analytics_tracking = excluded.analytics_tracking,
                chat_data_retention = excluded.chat_data_retention,
                personalized_ads = excluded.personalized_ads,
                data_sharing = excluded.data_sharing,
                updated_at = excluded.updated_at
            """,
            (
                settings.user_id,
                int(settings.marketing_emails),
                int(settings.analytics_tracking),
                int(settings.chat_data_retention),
                int(settings.personalized_ads),
                int(settings.data_sharing),
                _ts(updated_at),
            ),
        )

    # ------------------------------------------------------------------
    # Data-subject requests

    def create_export_request(self, user_id: str) -> DataRequest:
        """Create a pending export request, or return the one already pending."""
        with self.transaction():
            row = self.fetch_one(
                "SELECT * FROM data_export_requests WHERE user_id = ? AND status = ? "
                "ORDER BY created_at DESC LIMIT 1",
                (user_id, PENDING_STATUS),
            )
            if row is not None:
                logger.info("Reusing pending export request %s for user %s", row["id"], user_id)
                return replace(self._row_to_request(row, RequestKind.EXPORT), reused=True)

            request = DataRequest(
                id=_new_id(),
                kind=RequestKind.EXPORT,
                user_id=user_id,
                status=PENDING_STATUS,
                created_at=utc_now(),
            )
            self.execute(
                "INSERT INTO data_export_requests (id, user_id, status, created_at) "
                "VALUES (?, ?, ?, ?)",
                (request.id, request.user_id, request.status, _ts(request.created_at)),
            )
            return request

    def create_deletion_request(
        self,
        user_id: str,
        deletion_type: str,
        justification: str | None,
    ) -> DataRequest:
        """Create a pending deletion request, or return the one already pending."""
        with self.transaction():
            row = self.fetch_one(
                "SELECT * FROM data_deletion_requests WHERE user_id = ? AND status = ? "
                "ORDER BY created_at DESC LIMIT 1",
                (user_id, PENDING_STATUS),
            )
            if row is not None:
                logger.info(
                    "Reusing pending deletion request %s for user %s", row["id"], user_id
                )
                return replace(self._row_to_request(row, RequestKind.DELETION), reused=True)

            request = DataRequest(
                id=_new_id(),
                kind=RequestKind.DELETION,
                user_id=user_id,
                status=PENDING_STATUS,
                created_at=utc_now(),
                deletion_type=deletion_type,
                justification=justification,
            )
            self.execute(
                """
                INSERT INTO data_deletion_requests (
                    id, user_id, status, deletion_type, justification, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    request.id,
                    request.user_id,
                    request.status,
                    request.deletion_type,
                    request.justification,
                    _ts(request.created_at),
                ),
            )
            return request

    # ------------------------------------------------------------------
    # Audit trail

    def insert_audit_entry(self, entry: AuditLogEntry) -> None:
        self.execute(
            """
            INSERT INTO audit_logs (
                id, actor_id, company_id, action_name, target_type, target_id,
                metadata, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.actor_id,
                entry.company_id,
                entry.action_name,
                entry.target_type,
                entry.target_id,
                dumps(entry.metadata),
                _ts(entry.created_at),
            ),
        )

    def list_audit_entries(self, actor_id: str | None = None) -> list[AuditLogEntry]:
        if actor_id is None:
            rows = self.fetch_all("SELECT * FROM audit_logs ORDER BY created_at, rowid")
        else:
            rows = self.fetch_all(
                "SELECT * FROM audit_logs WHERE actor_id = ? ORDER BY created_at, rowid",
                (actor_id,),
            )
        return [
            AuditLogEntry(
                id=row["id"],
                actor_id=row["actor_id"],
                company_id=row["company_id"],
                action_name=row["action_name"],
                target_type=row["target_type"],
                target_id=row["target_id"],
                metadata=loads_object(row["metadata"]),
                created_at=parse_iso(row["created_at"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Legal documents

    def list_legal_documents(self, active_only: bool = True) -> list[LegalDocument]:
        where = "WHERE is_active = 1" if active_only else ""
        rows = self.fetch_all(
            f"SELECT * FROM legal_documents {where} ORDER BY created_at DESC, rowid DESC"
        )
        return [
            LegalDocument(
                id=row["id"],
                document_type=row["document_type"],
                title=row["title"],
                version=row["version"],
                content=row["content"],
                is_active=bool(row["is_active"]),
                created_at=parse_iso(row["created_at"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Row mapping

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> SecurityEvent:
        return SecurityEvent(
            id=row["id"],
            event_type=row["event_type"],
            severity=Severity(row["severity"]),
            description=row["description"],
            source_ip=row["source_ip"],
            user_agent=row["user_agent"],
            user_id=row["user_id"],
            company_id=row["company_id"],
            metadata=loads_object(row["metadata"]),
            created_at=parse_iso(row["created_at"]),
        )

    @staticmethod
    def _row_to_profile(row: sqlite3.Row) -> Profile:
        return Profile(
            id=row["id"],
            role=Role.from_stored(row["role"]),
            email=row["email"],
            empresa_id=row["empresa_id"],
            name=row["nome"],
        )

    @staticmethod
    def _row_to_consent(row: sqlite3.Row) -> ConsentRecord:
        return ConsentRecord(
            id=row["id"],
            user_id=row["user_id"],
            consent_type=row["consent_type"],
            version=row["version"],
            consent_given=bool(row["consent_given"]),
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            created_at=parse_iso(row["created_at"]),
        )

    @staticmethod
    def _row_to_request(row: sqlite3.Row, kind: RequestKind) -> DataRequest:
        keys = row.keys()
        return DataRequest(
            id=row["id"],
            kind=kind,
            user_id=row["user_id"],
            status=row["status"],
            created_at=parse_iso(row["created_at"]),
            deletion_type=row["deletion_type"] if "deletion_type" in keys else None,
            justification=row["justification"] if "justification" in keys else None,
        )
