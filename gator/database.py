"""Queries against the SQLite store of users, feeds, follows and posts."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, TypeVar

from .models import Feed, FeedFollowDetail, FeedListing, Post, User

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT,
    updated_at TEXT,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    name TEXT,
    created_at TEXT,
    updated_at TEXT,
    url TEXT UNIQUE,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    user_id TEXT REFERENCES users (id) ON DELETE CASCADE,
    feed_id TEXT REFERENCES feeds (id) ON DELETE CASCADE,
    created_at TEXT,
    updated_at TEXT,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT,
    updated_at TEXT,
    title TEXT,
    url TEXT UNIQUE,
    description TEXT,
    published_at TEXT,
    feed_id TEXT REFERENCES feeds (id) ON DELETE CASCADE
);
"""

_FEED_COLUMNS = "id, name, created_at, updated_at, url, user_id, last_fetched_at"
_POST_COLUMNS = "id, created_at, updated_at, title, url, description, published_at, feed_id"
_USER_COLUMNS = "id, created_at, updated_at, name"


class DatabaseError(Exception):
    """A query failed."""


class NotFoundError(DatabaseError):
    """A query that returns one row found none."""


@contextmanager
def _translate() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


def _uuid_out(value: uuid.UUID | None) -> str | None:
    return None if value is None else str(value)


def _uuid_in(text: str | None) -> uuid.UUID | None:
    return None if text is None else uuid.UUID(text)


def _time_out(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def _time_in(text: str | None) -> datetime | None:
    return None if text is None else datetime.fromisoformat(text)


def _user(row: sqlite3.Row) -> User:
    return User(
        id=uuid.UUID(row["id"]),
        created_at=_time_in(row["created_at"]),
        updated_at=_time_in(row["updated_at"]),
        name=row["name"],
    )


def _feed(row: sqlite3.Row) -> Feed:
    return Feed(
        id=uuid.UUID(row["id"]),
        name=row["name"],
        created_at=_time_in(row["created_at"]),
        updated_at=_time_in(row["updated_at"]),
        url=row["url"],
        user_id=uuid.UUID(row["user_id"]),
        last_fetched_at=_time_in(row["last_fetched_at"]),
    )


def _post(row: sqlite3.Row) -> Post:
    return Post(
        id=uuid.UUID(row["id"]),
        created_at=_time_in(row["created_at"]),
        updated_at=_time_in(row["updated_at"]),
        title=row["title"],
        url=row["url"],
        description=row["description"],
        published_at=_time_in(row["published_at"]),
        feed_id=_uuid_in(row["feed_id"]),
    )


def _follow_detail(row: sqlite3.Row) -> FeedFollowDetail:
    return FeedFollowDetail(
        id=uuid.UUID(row["id"]),
        user_id=_uuid_in(row["user_id"]),
        feed_id=_uuid_in(row["feed_id"]),
        created_at=_time_in(row["created_at"]),
        updated_at=_time_in(row["updated_at"]),
        feed_name=row["feed_name"],
        user_name=row["user_name"],
    )


def _sqlite_path(url: str) -> str:
    if not url:
        raise DatabaseError("database url is empty")
    if url in (":memory:", "sqlite://", "sqlite:///:memory:"):
        return ":memory:"
    if url.startswith("sqlite:///"):
        return url[len("sqlite:///"):]
    if "://" in url:
        raise DatabaseError(f"unsupported database url: {url}")
    return url


def connect(url: str) -> Queries:
    """Open the database named by *url* and make sure its tables exist."""
    path = _sqlite_path(url)
    with _translate():
        connection = sqlite3.connect(path, isolation_level=None)
    queries = Queries(connection)
    queries.create_schema()
    return queries


class Queries:
    """The application's queries over one database connection."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._conn.row_factory = sqlite3.Row
        with _translate():
            self._conn.execute("PRAGMA foreign_keys = ON")

    def __enter__(self) -> Queries:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the connection."""
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[Queries]:
        """Run the enclosed queries in one transaction, rolled back on error."""
        if self._conn.in_transaction:
            raise DatabaseError("a transaction is already open")
        with _translate():
            self._conn.execute("BEGIN")
        try:
            yield self
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        with _translate():
            self._conn.execute("COMMIT")

    def create_schema(self) -> None:
        """Create any missing tables."""
        with _translate():
            for statement in SCHEMA.split(";"):
                if statement.strip():
                    self._conn.execute(statement)

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        with _translate():
            return self._conn.execute(sql, params)

    def _one(
        self, sql: str, params: tuple[Any, ...], convert: Callable[[sqlite3.Row], T]
    ) -> T:
        with _translate():
            row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise NotFoundError("no rows in result set")
        return convert(row)

    def _many(
        self, sql: str, params: tuple[Any, ...], convert: Callable[[sqlite3.Row], T]
    ) -> list[T]:
        with _translate():
            rows = self._conn.execute(sql, params).fetchall()
        return [convert(row) for row in rows]

    # users

    def create_user(
        self,
        id: uuid.UUID,
        created_at: datetime | None,
        updated_at: datetime | None,
        name: str,
    ) -> User:
        """Insert a user and return it."""
        self._execute(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (str(id), _time_out(created_at), _time_out(updated_at), name),
        )
        return self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (str(id),), _user
        )

    def get_user_by_name(self, name: str) -> User:
        """Return the user called *name*."""
        return self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE name = ?", (name,), _user
        )

    def get_users(self) -> list[User]:
        """Return every user."""
        return self._many(f"SELECT {_USER_COLUMNS} FROM users", (), _user)

    def reset_users(self) -> None:
        """Delete every user, and with them their feeds, follows and posts."""
        self._execute("DELETE FROM users")

    # feeds

    def add_feed(
        self,
        id: uuid.UUID,
        created_at: datetime | None,
        updated_at: datetime | None,
        name: str | None,
        url: str | None,
        user_id: uuid.UUID,
    ) -> Feed:
        """Insert a feed and return it."""
        self._execute(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (
                str(id),
                _time_out(created_at),
                _time_out(updated_at),
                name,
                url,
                str(user_id),
            ),
        )
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(id),), _feed
        )

    def get_feed_by_url(self, url: str | None) -> Feed:
        """Return the feed with the given URL."""
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,), _feed
        )

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed fetched least recently, never-fetched feeds first."""
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds"
            " ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC LIMIT 1",
            (),
            _feed,
        )

    def list_feeds(self) -> list[FeedListing]:
        """Return every feed with the name of the user who added it."""
        return self._many(
            "SELECT f.name AS name, f.url AS url, u.name AS user_name"
            " FROM feeds AS f JOIN users AS u ON u.id = f.user_id",
            (),
            lambda row: FeedListing(
                name=row["name"], url=row["url"], user_name=row["user_name"]
            ),
        )

    def mark_feed_fetched(self, id: uuid.UUID) -> None:
        """Stamp the feed as fetched now."""
        now = _time_out(datetime.now(timezone.utc))
        self._execute(
            "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (now, now, str(id)),
        )

    # follows

    def create_feed_follow(
        self,
        id: uuid.UUID,
        user_id: uuid.UUID | None,
        feed_id: uuid.UUID | None,
        created_at: datetime | None,
        updated_at: datetime | None,
    ) -> FeedFollowDetail:
        """Insert a follow and return it with the feed and user names."""
        self._execute(
            "INSERT INTO feed_follows (id, user_id, feed_id, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?)",
            (
                str(id),
                _uuid_out(user_id),
                _uuid_out(feed_id),
                _time_out(created_at),
                _time_out(updated_at),
            ),
        )
        return self._one(
            "SELECT ff.id, ff.user_id, ff.feed_id, ff.created_at, ff.updated_at,"
            " f.name AS feed_name, u.name AS user_name"
            " FROM feed_follows AS ff"
            " JOIN users AS u ON u.id = ff.user_id"
            " JOIN feeds AS f ON f.id = ff.feed_id"
            " WHERE ff.id = ?",
            (str(id),),
            _follow_detail,
        )

    def get_feed_follows_for_user(self, name: str) -> list[FeedFollowDetail]:
        """Return the follows of the user called *name*."""
        return self._many(
            "SELECT ff.id, ff.user_id, ff.feed_id, ff.created_at, ff.updated_at,"
            " f.name AS feed_name, u.name AS user_name"
            " FROM feed_follows AS ff"
            " JOIN users AS u ON u.id = ff.user_id"
            " JOIN feeds AS f ON f.id = ff.feed_id"
            " WHERE u.name = ?",
            (name,),
            _follow_detail,
        )

    def unfollow(self, user_id: uuid.UUID | None, url: str | None) -> None:
        """Remove the user's follow of the feed with the given URL."""
        self._execute(
            "DELETE FROM feed_follows WHERE user_id = ?"
            " AND feed_id = (SELECT id FROM feeds WHERE url = ?)",
            (_uuid_out(user_id), url),
        )

    # posts

    def create_post(
        self,
        id: uuid.UUID,
        title: str | None,
        url: str | None,
        description: str | None,
        published_at: datetime | None,
        feed_id: uuid.UUID | None,
    ) -> Post:
        """Insert a post and return it."""
        self._execute(
            "INSERT INTO posts (id, title, url, description, published_at, feed_id)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (
                str(id),
                title,
                url,
                description,
                _time_out(published_at),
                _uuid_out(feed_id),
            ),
        )
        return self._one(
            f"SELECT {_POST_COLUMNS} FROM posts WHERE id = ?", (str(id),), _post
        )

    def get_posts_for_user(self, user_id: uuid.UUID, limit: int) -> list[Post]:
        """Return the newest posts from feeds the user added, at most *limit*."""
        if limit < 0:
            raise DatabaseError("LIMIT must not be negative")
        return self._many(
            f"SELECT {_POST_COLUMNS} FROM posts"
            " WHERE feed_id IN (SELECT id FROM feeds WHERE user_id = ?)"
            " ORDER BY published_at DESC LIMIT ?",
            (str(user_id), limit),
            _post,
        )