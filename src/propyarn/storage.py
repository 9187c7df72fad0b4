"""SQLite storage. Un archivo = un multiverso (snapshot completo)."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

from propyarn.models import Character, Event, Memory, Timeline, Trace
from propyarn.multiverse import Multiverse
from propyarn.serialization import (
    character_from_dict,
    character_to_dict,
    event_from_dict,
    event_to_dict,
    memory_from_dict,
    memory_to_dict,
    multiverse_from_dict,
    timeline_from_dict,
    timeline_to_dict,
)

_ENTITY_TABLES = ("timelines", "characters", "memories", "events")


class Storage:
    """SQLite backend. Zero config. Portable."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path) if path != ":memory:" else path
        self.conn = sqlite3.connect(str(self.path))
        if path != ":memory:":
            self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS timelines (
                id INTEGER PRIMARY KEY,
                position INTEGER NOT NULL,
                parent INTEGER,
                data TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS characters (
                id INTEGER PRIMARY KEY,
                position INTEGER NOT NULL,
                name TEXT NOT NULL,
                current_timeline INTEGER NOT NULL,
                alive INTEGER NOT NULL,
                data TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_characters_timeline
                ON characters(current_timeline);

            CREATE TABLE IF NOT EXISTS memories (
                id INTEGER PRIMARY KEY,
                position INTEGER NOT NULL,
                event INTEGER NOT NULL,
                source_timeline INTEGER NOT NULL,
                data TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS events (
                id INTEGER PRIMARY KEY,
                position INTEGER NOT NULL,
                timeline INTEGER NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                data TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_events_timeline
                ON events(timeline);

            CREATE TABLE IF NOT EXISTS traces (
                id TEXT PRIMARY KEY,
                operation TEXT NOT NULL,
                input_text TEXT NOT NULL DEFAULT '',
                output_text TEXT NOT NULL DEFAULT '',
                duration_ms REAL,
                metadata TEXT NOT NULL DEFAULT '{}',
                created_at REAL NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_traces_operation
                ON traces(operation);
            CREATE INDEX IF NOT EXISTS idx_traces_created
                ON traces(created_at DESC);
        """)
        self.conn.commit()

    # ── Snapshot ───────────────────────────────────────────────────────

    def save_multiverse(self, multiverse: Multiverse) -> None:
        """Reemplaza el snapshot guardado por el estado actual, en una transacción."""
        with self.conn:
            for table in _ENTITY_TABLES:
                self.conn.execute(f"DELETE FROM {table}")
            self.conn.execute("DELETE FROM meta")

            self.conn.executemany(
                "INSERT INTO meta (key, value) VALUES (?, ?)",
                [
                    ("root_timeline", json.dumps(int(multiverse.root_timeline))),
                    ("counters", json.dumps(multiverse.counters)),
                ],
            )
            self.conn.executemany(
                """INSERT INTO timelines (id, position, parent, data)
                   VALUES (?, ?, ?, ?)""",
                [
                    (int(t.id), pos, None if t.parent is None else int(t.parent),
                     json.dumps(timeline_to_dict(t)))
                    for pos, t in enumerate(multiverse.timelines.values())
                ],
            )
            self.conn.executemany(
                """INSERT INTO characters
                   (id, position, name, current_timeline, alive, data)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                [
                    (int(c.id), pos, c.name, int(c.current_timeline), int(c.alive),
                     json.dumps(character_to_dict(c)))
                    for pos, c in enumerate(multiverse.characters.values())
                ],
            )
            self.conn.executemany(
                """INSERT INTO memories (id, position, event, source_timeline, data)
                   VALUES (?, ?, ?, ?, ?)""",
                [
                    (int(m.id), pos, int(m.event), int(m.source_timeline),
                     json.dumps(memory_to_dict(m)))
                    for pos, m in enumerate(multiverse.memories.values())
                ],
            )
            self.conn.executemany(
                """INSERT INTO events (id, position, timeline, description, data)
                   VALUES (?, ?, ?, ?, ?)""",
                [
                    (int(e.id), pos, int(e.timeline), e.description,
                     json.dumps(event_to_dict(e)))
                    for pos, e in enumerate(multiverse.events.values())
                ],
            )

    def load_multiverse(self, enable_traces: bool = False) -> Multiverse | None:
        """Reconstruye el multiverso guardado. None si la base está vacía."""
        meta = dict(self.conn.execute("SELECT key, value FROM meta").fetchall())
        if "counters" not in meta:
            return None

        def rows(table: str) -> list[dict]:
            found = self.conn.execute(
                f"SELECT data FROM {table} ORDER BY position"
            ).fetchall()
            return [json.loads(r[0]) for r in found]

        multiverse = multiverse_from_dict({
            "root_timeline": json.loads(meta.get("root_timeline", "0")),
            "counters": json.loads(meta["counters"]),
            "timelines": rows("timelines"),
            "characters": rows("characters"),
            "memories": rows("memories"),
            "events": rows("events"),
        }, enable_traces=enable_traces)
        return multiverse

    # ── Single-entity reads ────────────────────────────────────────────

    def load_character(self, character_id: int) -> Character | None:
        row = self.conn.execute(
            "SELECT data FROM characters WHERE id = ?", (int(character_id),)
        ).fetchone()
        return None if row is None else character_from_dict(json.loads(row[0]))

    def load_timeline(self, timeline_id: int) -> Timeline | None:
        row = self.conn.execute(
            "SELECT data FROM timelines WHERE id = ?", (int(timeline_id),)
        ).fetchone()
        return None if row is None else timeline_from_dict(json.loads(row[0]))

    def load_memory(self, memory_id: int) -> Memory | None:
        row = self.conn.execute(
            "SELECT data FROM memories WHERE id = ?", (int(memory_id),)
        ).fetchone()
        return None if row is None else memory_from_dict(json.loads(row[0]))

    def events_in_timeline(self, timeline_id: int) -> list[Event]:
        found = self.conn.execute(
            "SELECT data FROM events WHERE timeline = ? ORDER BY position",
            (int(timeline_id),),
        ).fetchall()
        return [event_from_dict(json.loads(r[0])) for r in found]

    def count(self, table: str = "events") -> int:
        if table not in _ENTITY_TABLES:
            raise ValueError(f"Unknown table: {table!r}")
        return self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    # ── Traces ─────────────────────────────────────────────────────────

    def save_trace(self, trace: Trace) -> None:
        self.conn.execute(
            """INSERT OR REPLACE INTO traces
               (id, operation, input_text, output_text,
                duration_ms, metadata, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                trace.id, trace.operation, trace.input_text,
                trace.output_text, trace.duration_ms,
                json.dumps(trace.metadata), trace.created_at,
            ),
        )
        self.conn.commit()

    def load_traces(self, operation: str | None = None,
                    limit: int = 100) -> list[Trace]:
        query = "SELECT * FROM traces WHERE 1=1"
        params: list = []
        if operation is not None:
            query += " AND operation = ?"
            params.append(operation)
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        rows = self.conn.execute(query, params).fetchall()
        return [self._row_to_trace(r) for r in rows]

    # ── Close ──────────────────────────────────────────────────────────

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> Storage:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # ── Row mappers ────────────────────────────────────────────────────

    @staticmethod
    def _row_to_trace(row: tuple) -> Trace:
        return Trace(
            id=row[0],
            operation=row[1],
            input_text=row[2],
            output_text=row[3],
            duration_ms=row[4],
            metadata=json.loads(row[5]),
            created_at=row[6],
        )


# ── Atajos ─────────────────────────────────────────────────────────────


def save_snapshot(multiverse: Multiverse, path: str | Path) -> None:
    """Guarda el multiverso y sus traces en path."""
    with Storage(path) as storage:
        storage.save_multiverse(multiverse)
        for trace in multiverse.traces(limit=len(multiverse._traces)):
            storage.save_trace(trace)


def load_snapshot(path: str | Path, enable_traces: bool = False) -> Multiverse | None:
    with Storage(path) as storage:
        return storage.load_multiverse(enable_traces=enable_traces)
