from __future__ import annotations

import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiomysql
import aiosqlite
from loguru import logger

from .config import get_settings

_PLACEHOLDER = re.compile(r"%s")


class Database:
    """Thin async wrapper over a MySQL pool with a local SQLite fallback.

    Repositories always write MySQL-flavoured SQL with ``%s`` placeholders; the
    SQLite path rewrites placeholders and DDL so development and tests can run
    without a MySQL server.
    """

    def __init__(self) -> None:
        self._pool: aiomysql.Pool | None = None
        self._sqlite_conn: aiosqlite.Connection | None = None
        self._settings = get_settings()
        self._use_sqlite = self._should_use_sqlite()

    def _should_use_sqlite(self) -> bool:
        return not all(
            [
                self._settings.database_host,
                self._settings.database_user,
                self._settings.database_name,
            ]
        )

    def _get_sqlite_path(self) -> Path:
        return Path(__file__).resolve().parent.parent.parent / "emive_portal.db"

    def is_sqlite(self) -> bool:
        return self._use_sqlite

    def _split_sql_statements(self, sql: str) -> list[str]:
        """Split a migration script on semicolons outside quoted literals and comments."""

        statements: list[str] = []
        current: list[str] = []
        quote: str | None = None
        i = 0
        length = len(sql)

        while i < length:
            char = sql[i]
            next_char = sql[i + 1] if i + 1 < length else ""

            if quote is None:
                if char == "-" and next_char == "-":
                    newline = sql.find("\n", i)
                    i = length if newline == -1 else newline
                    continue
                if char == "/" and next_char == "*":
                    end = sql.find("*/", i + 2)
                    i = length if end == -1 else end + 2
                    continue
                if char in ("'", '"'):
                    quote = char
                elif char == ";":
                    statement = "".join(current).strip()
                    if statement:
                        statements.append(statement)
                    current = []
                    i += 1
                    continue
            elif char == quote:
                if next_char == quote:
                    current.append(char + next_char)
                    i += 2
                    continue
                quote = None

            current.append(char)
            i += 1

        remaining = "".join(current).strip()
        if remaining:
            statements.append(remaining)
        return statements

    def _adapt_query(self, sql: str) -> str:
        if not self._use_sqlite:
            return sql
        return _PLACEHOLDER.sub("?", sql)

    def _adapt_sql_for_sqlite(self, sql: str) -> str:
        """Translate the MySQL DDL used by the migrations into SQLite syntax."""

        sql = re.sub(r"\s*ENGINE\s*=\s*\w+", "", sql, flags=re.IGNORECASE)
        sql = re.sub(r"\s*DEFAULT\s+CHARSET\s*=\s*\w+", "", sql, flags=re.IGNORECASE)
        sql = re.sub(r"\s*COLLATE\s*=\s*\w+", "", sql, flags=re.IGNORECASE)
        sql = re.sub(r"\s*COMMENT\s+'[^']*'", "", sql, flags=re.IGNORECASE)
        sql = re.sub(
            r"\bINT\s+PRIMARY\s+KEY\s+AUTO_INCREMENT\b",
            "INTEGER PRIMARY KEY AUTOINCREMENT",
            sql,
            flags=re.IGNORECASE,
        )
        sql = re.sub(r"\bDATETIME\b", "TEXT", sql, flags=re.IGNORECASE)
        sql = re.sub(r"\bJSON\b", "TEXT", sql, flags=re.IGNORECASE)
        sql = re.sub(r"\s*ON\s+UPDATE\s+CURRENT_TIMESTAMP", "", sql, flags=re.IGNORECASE)
        sql = re.sub(r"\bCURRENT_TIMESTAMP\b", "(datetime('now'))", sql, flags=re.IGNORECASE)
        return sql

    async def connect(self) -> None:
        if self._pool or self._sqlite_conn:
            return

        if self._use_sqlite:
            logger.info("Connecting to SQLite database")
            self._sqlite_conn = await aiosqlite.connect(str(self._get_sqlite_path()))
            self._sqlite_conn.row_factory = aiosqlite.Row
            await self._sqlite_conn.execute("PRAGMA foreign_keys = ON")
            await self._sqlite_conn.commit()
        else:
            logger.info("Connecting to MySQL at {host}", host=self._settings.database_host)
            self._pool = await aiomysql.create_pool(
                host=self._settings.database_host,
                user=self._settings.database_user,
                password=self._settings.database_password or "",
                db=self._settings.database_name,
                autocommit=True,
                minsize=1,
                maxsize=10,
                pool_recycle=600,
                charset="utf8mb4",
                init_command="SET time_zone = '+00:00'",
            )

    async def disconnect(self) -> None:
        if self._sqlite_conn:
            await self._sqlite_conn.close()
            self._sqlite_conn = None
            logger.info("SQLite database disconnected")
        elif self._pool:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None
            logger.info("MySQL database disconnected")

    def is_connected(self) -> bool:
        return self._pool is not None or self._sqlite_conn is not None

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Any]:
        if self._use_sqlite:
            if not self._sqlite_conn:
                raise RuntimeError("SQLite database not initialised")
            yield self._sqlite_conn
        else:
            if not self._pool:
                raise RuntimeError("Database pool not initialised")
            conn = await self._pool.acquire()
            try:
                yield conn
            finally:
                self._pool.release(conn)

    async def execute(self, sql: str, params: tuple | None = None) -> None:
        if self._use_sqlite:
            async with self.acquire() as conn:
                await conn.execute(self._adapt_query(sql), params or ())
                await conn.commit()
        else:
            async with self.acquire() as conn:
                async with conn.cursor() as cursor:
                    await cursor.execute(sql, params)

    async def execute_returning_lastrowid(self, sql: str, params: tuple | None = None) -> int:
        if self._use_sqlite:
            async with self.acquire() as conn:
                cursor = await conn.execute(self._adapt_query(sql), params or ())
                await conn.commit()
                return int(cursor.lastrowid or 0)
        async with self.acquire() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(sql, params)
                last_row_id = cursor.lastrowid
        return int(last_row_id) if last_row_id is not None else 0

    async def execute_many(self, sql: str, rows: list[tuple]) -> None:
        if not rows:
            return
        if self._use_sqlite:
            async with self.acquire() as conn:
                await conn.executemany(self._adapt_query(sql), rows)
                await conn.commit()
        else:
            async with self.acquire() as conn:
                async with conn.cursor() as cursor:
                    await cursor.executemany(sql, rows)

    async def fetch_one(self, sql: str, params: tuple | None = None) -> dict[str, Any] | None:
        if self._use_sqlite:
            async with self.acquire() as conn:
                cursor = await conn.execute(self._adapt_query(sql), params or ())
                row = await cursor.fetchone()
                return dict(row) if row else None
        async with self.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(sql, params)
                return await cursor.fetchone()

    async def fetch_all(self, sql: str, params: tuple | None = None) -> list[dict[str, Any]]:
        if self._use_sqlite:
            async with self.acquire() as conn:
                cursor = await conn.execute(self._adapt_query(sql), params or ())
                rows = await cursor.fetchall()
                return [dict(row) for row in rows]
        async with self.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(sql, params)
                rows = await cursor.fetchall()
                return list(rows)

    def _get_migrations_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent.parent / "migrations"

    async def _ensure_migrations_table(self, conn: Any) -> None:
        ddl = "CREATE TABLE IF NOT EXISTS migrations (name VARCHAR(255) PRIMARY KEY)"
        if self._use_sqlite:
            await conn.execute(ddl)
            await conn.commit()
        else:
            async with conn.cursor() as cursor:
                await cursor.execute("SET sql_notes = 0")
                try:
                    await cursor.execute(ddl)
                finally:
                    await cursor.execute("SET sql_notes = 1")

    async def _applied_migrations(self, conn: Any) -> set[str]:
        if self._use_sqlite:
            cursor = await conn.execute("SELECT name FROM migrations")
            return {dict(row)["name"] for row in await cursor.fetchall()}
        async with conn.cursor(aiomysql.DictCursor) as cursor:
            await cursor.execute("SELECT name FROM migrations")
            return {row["name"] for row in await cursor.fetchall()}

    async def _apply_migration_file(self, conn: Any, path: Path) -> None:
        sql = path.read_text(encoding="utf-8")
        if self._use_sqlite:
            sql = self._adapt_sql_for_sqlite(sql)
        statements = self._split_sql_statements(sql)

        if self._use_sqlite:
            for statement in statements:
                await conn.execute(statement)
            await conn.execute("INSERT INTO migrations (name) VALUES (?)", (path.name,))
            await conn.commit()
        else:
            async with conn.cursor() as cursor:
                for statement in statements:
                    await cursor.execute(statement)
                await cursor.execute(
                    "INSERT INTO migrations (name) VALUES (%s)",
                    (path.name,),
                )

    async def _create_mysql_database(self) -> None:
        temp_conn = await aiomysql.connect(
            host=self._settings.database_host,
            user=self._settings.database_user,
            password=self._settings.database_password or "",
            autocommit=True,
        )
        try:
            async with temp_conn.cursor() as cursor:
                await cursor.execute("SET sql_notes = 0")
                try:
                    await cursor.execute(
                        f"CREATE DATABASE IF NOT EXISTS `{self._settings.database_name}` "
                        "CHARACTER SET utf8mb4"
                    )
                finally:
                    await cursor.execute("SET sql_notes = 1")
        finally:
            temp_conn.close()

    async def run_migrations(self) -> None:
        """Apply every pending ``migrations/*.sql`` file in name order."""

        if not self._use_sqlite:
            await self._create_mysql_database()

        await self.connect()
        migrations_dir = self._get_migrations_dir()
        if not migrations_dir.exists():
            logger.warning("No migrations directory found at {path}", path=str(migrations_dir))
            return

        lock_name = f"{self._settings.database_name or 'emive_portal'}_migration_lock"
        lock_acquired = False

        async with self.acquire() as conn:
            try:
                if self._use_sqlite:
                    lock_acquired = True
                else:
                    async with conn.cursor() as cursor:
                        await cursor.execute(
                            "SELECT GET_LOCK(%s, %s)",
                            (lock_name, self._settings.migration_lock_timeout),
                        )
                        result = await cursor.fetchone()
                    lock_acquired = bool(result and result[0] == 1)
                    if not lock_acquired:
                        logger.error(
                            "Unable to obtain database migration lock {lock}",
                            lock=lock_name,
                        )
                        raise RuntimeError("Could not obtain database migration lock")

                await self._ensure_migrations_table(conn)
                applied = await self._applied_migrations(conn)
                for path in sorted(migrations_dir.glob("*.sql")):
                    if path.name in applied:
                        continue
                    await self._apply_migration_file(conn, path)
                    logger.info("Applied migration {name}", name=path.name)
            finally:
                if lock_acquired and not self._use_sqlite:
                    async with conn.cursor() as cursor:
                        await cursor.execute("SELECT RELEASE_LOCK(%s)", (lock_name,))


db = Database()
