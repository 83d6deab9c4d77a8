import uuid
from datetime import UTC, datetime

import aiosqlite

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT 'Untitled Project',
    description TEXT NOT NULL DEFAULT '',
    code TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    seq INTEGER NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    timestamp TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_project ON messages(project_id, seq);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

DEFAULT_PROJECT_NAME = "Untitled Project"
DEFAULT_PROJECT_DESCRIPTION = "A new Shell Bay project"

PROJECT_COLUMNS = "id, name, description, code, created_at, updated_at"
MESSAGE_COLUMNS = "id, project_id, role, content, timestamp"


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _uuid() -> str:
    return str(uuid.uuid4())


class SQLiteStore:
    def __init__(self, path: str) -> None:
        self._path = path
        self._db: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Return the database connection, raising if not initialized."""
        if self._db is None:
            raise RuntimeError("SQLiteStore not initialized — call initialize() first")
        return self._db

    async def initialize(self) -> None:
        self._db = await aiosqlite.connect(self._path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.executescript(SCHEMA_SQL)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()

    # --- Projects ---

    async def create_project(
        self,
        name: str = DEFAULT_PROJECT_NAME,
        description: str = DEFAULT_PROJECT_DESCRIPTION,
    ) -> dict:
        pid = _uuid()
        now = _now()
        await self.db.execute(
            "INSERT INTO projects (id, name, description, code, created_at, updated_at) VALUES (?, ?, ?, '', ?, ?)",
            (pid, name, description, now, now),
        )
        await self.db.commit()
        return {
            "id": pid,
            "name": name,
            "description": description,
            "code": "",
            "created_at": now,
            "updated_at": now,
        }

    async def list_projects(self) -> list[dict]:
        cursor = await self.db.execute(
            f"SELECT {PROJECT_COLUMNS} FROM projects ORDER BY created_at DESC"
        )
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def get_project(self, project_id: str) -> dict | None:
        cursor = await self.db.execute(
            f"SELECT {PROJECT_COLUMNS} FROM projects WHERE id = ?",
            (project_id,),
        )
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def update_project(
        self, project_id: str, name: str | None = None, description: str | None = None
    ) -> None:
        await self.db.execute(
            "UPDATE projects SET name = COALESCE(?, name), description = COALESCE(?, description), updated_at = ? WHERE id = ?",
            (name, description, _now(), project_id),
        )
        await self.db.commit()

    async def update_code(self, project_id: str, code: str) -> None:
        await self.db.execute(
            "UPDATE projects SET code = ?, updated_at = ? WHERE id = ?",
            (code, _now(), project_id),
        )
        await self.db.commit()

    async def delete_project(self, project_id: str) -> bool:
        await self.db.execute("DELETE FROM messages WHERE project_id = ?", (project_id,))
        cursor = await self.db.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        await self.db.commit()
        return cursor.rowcount > 0

    # --- Messages ---

    async def add_message(self, project_id: str, role: str, content: str) -> dict:
        mid = _uuid()
        now = _now()
        await self.db.execute(
            """INSERT INTO messages (id, project_id, seq, role, content, timestamp)
               VALUES (?, ?, (SELECT COALESCE(MAX(seq), 0) + 1 FROM messages WHERE project_id = ?), ?, ?, ?)""",
            (mid, project_id, project_id, role, content, now),
        )
        await self.db.execute(
            "UPDATE projects SET updated_at = ? WHERE id = ?",
            (now, project_id),
        )
        await self.db.commit()
        return {
            "id": mid,
            "project_id": project_id,
            "role": role,
            "content": content,
            "timestamp": now,
        }

    async def get_messages(self, project_id: str) -> list[dict]:
        cursor = await self.db.execute(
            f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE project_id = ? ORDER BY seq",
            (project_id,),
        )
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    # --- Settings ---

    async def get_setting(self, key: str) -> str | None:
        cursor = await self.db.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = await cursor.fetchone()
        return row["value"] if row else None

    async def set_setting(self, key: str, value: str) -> None:
        await self.db.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )
        await self.db.commit()

    async def get_settings(self) -> dict[str, str]:
        cursor = await self.db.execute("SELECT key, value FROM settings")
        rows = await cursor.fetchall()
        return {r["key"]: r["value"] for r in rows}
