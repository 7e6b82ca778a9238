"""SQLite storage for users, feeds, follows and posts."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from os import PathLike
from typing import Any, Callable, Sequence, TypeVar, Union
from uuid import UUID

from .models import Feed, FeedFollow, FeedFollowRow, Post, PostWithFeed, User

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL,
    published_at TEXT NOT NULL,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
"""

_USER_COLUMNS = "id, created_at, updated_at, name"
_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"


class DatabaseError(Exception):
    """A query failed."""


class NotFoundError(DatabaseError):
    """A query that must return a row returned none."""


def _encode_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _decode_time(text: str) -> datetime:
    return datetime.fromisoformat(text)


def _user(row: sqlite3.Row) -> User:
    return User(
        id=UUID(row["id"]),
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
        name=row["name"],
    )


def _feed(row: sqlite3.Row) -> Feed:
    fetched = row["last_fetched_at"]
    return Feed(
        id=UUID(row["id"]),
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
        name=row["name"],
        url=row["url"],
        user_id=UUID(row["user_id"]),
        last_fetched_at=_decode_time(fetched) if fetched is not None else None,
    )


def _follow_row(row: sqlite3.Row) -> FeedFollowRow:
    return FeedFollowRow(
        id=UUID(row["id"]),
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
        user_id=UUID(row["user_id"]),
        feed_id=UUID(row["feed_id"]),
        user_name=row["user_name"],
        feed_name=row["feed_name"],
    )


def _post_with_feed(row: sqlite3.Row) -> PostWithFeed:
    return PostWithFeed(
        id=UUID(row["id"]),
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
        title=row["title"],
        url=row["url"],
        description=row["description"],
        published_at=_decode_time(row["published_at"]),
        feed_id=UUID(row["feed_id"]),
        feed_name=row["feed_name"],
    )


class Database:
    """The aggregator's store, backed by an SQLite file or ``:memory:``."""

    def __init__(self, path: Union[str, "PathLike[str]"]) -> None:
        try:
            self._conn = sqlite3.connect(path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        try:
            with self._conn:
                return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def _one(
        self, sql: str, params: Sequence[Any], build: Callable[[sqlite3.Row], T]
    ) -> T:
        rows = self._execute(sql, params)
        if not rows:
            raise NotFoundError("no rows in result set")
        return build(rows[0])

    # users

    def create_user(self, user: User) -> User:
        self._execute(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (
                str(user.id),
                _encode_time(user.created_at),
                _encode_time(user.updated_at),
                user.name,
            ),
        )
        return self.get_user_by_id(user.id)

    def get_user(self, name: str) -> User:
        return self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE name = ?", (name,), _user
        )

    def get_user_by_id(self, user_id: UUID) -> User:
        return self._one(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (str(user_id),), _user
        )

    def get_users(self) -> list[User]:
        return [_user(row) for row in self._execute(f"SELECT {_USER_COLUMNS} FROM users")]

    def delete_users(self) -> None:
        self._execute("DELETE FROM users")

    # feeds

    def create_feed(self, feed: Feed) -> Feed:
        self._execute(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (
                str(feed.id),
                _encode_time(feed.created_at),
                _encode_time(feed.updated_at),
                feed.name,
                feed.url,
                str(feed.user_id),
            ),
        )
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(feed.id),), _feed
        )

    def get_feed_by_url(self, url: str) -> Feed:
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,), _feed
        )

    def get_feeds(self) -> list[Feed]:
        return [_feed(row) for row in self._execute(f"SELECT {_FEED_COLUMNS} FROM feeds")]

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed fetched longest ago, never-fetched feeds first."""
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds"
            " ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC LIMIT 1",
            (),
            _feed,
        )

    def mark_feed_fetched(self, feed_id: UUID) -> None:
        now = _encode_time(datetime.now(timezone.utc))
        self._execute(
            "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (now, now, str(feed_id)),
        )

    # feed follows

    def create_feed_follow(self, follow: FeedFollow) -> FeedFollowRow:
        self._execute(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id)"
            " VALUES (?, ?, ?, ?, ?)",
            (
                str(follow.id),
                _encode_time(follow.created_at),
                _encode_time(follow.updated_at),
                str(follow.user_id),
                str(follow.feed_id),
            ),
        )
        return self._one(
            "SELECT feed_follows.id, feed_follows.created_at, feed_follows.updated_at,"
            " feed_follows.user_id, feed_follows.feed_id,"
            " users.name AS user_name, feeds.name AS feed_name"
            " FROM feed_follows"
            " INNER JOIN users ON users.id = feed_follows.user_id"
            " INNER JOIN feeds ON feeds.id = feed_follows.feed_id"
            " WHERE feed_follows.id = ?",
            (str(follow.id),),
            _follow_row,
        )

    def get_feed_follows_for_user(self, user_id: UUID) -> list[FeedFollowRow]:
        rows = self._execute(
            "SELECT feed_follows.id, feed_follows.created_at, feed_follows.updated_at,"
            " feed_follows.user_id, feed_follows.feed_id,"
            " feeds.name AS feed_name, users.name AS user_name"
            " FROM feed_follows"
            " INNER JOIN users ON users.id = feed_follows.user_id"
            " INNER JOIN feeds ON feeds.id = feed_follows.feed_id"
            " WHERE feed_follows.user_id = ?",
            (str(user_id),),
        )
        return [_follow_row(row) for row in rows]

    def delete_feed_follow(self, user_id: UUID, feed_id: UUID) -> None:
        self._execute(
            "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = ?",
            (str(user_id), str(feed_id)),
        )

    # posts

    def create_post(self, post: Post) -> Post:
        self._execute(
            "INSERT INTO posts (id, created_at, updated_at, title, url, description,"
            " published_at, feed_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(post.id),
                _encode_time(post.created_at),
                _encode_time(post.updated_at),
                post.title,
                post.url,
                post.description,
                _encode_time(post.published_at),
                str(post.feed_id),
            ),
        )
        return post

    def get_posts_by_user(self, user_id: UUID, limit: int) -> list[PostWithFeed]:
        """Return the newest posts from feeds the user follows."""
        if limit < 0:
            raise DatabaseError("LIMIT must not be negative")
        rows = self._execute(
            "SELECT posts.id, posts.created_at, posts.updated_at, posts.title,"
            " posts.url, posts.description, posts.published_at, posts.feed_id,"
            " feeds.name AS feed_name"
            " FROM posts"
            " INNER JOIN feed_follows ON posts.feed_id = feed_follows.feed_id"
            " INNER JOIN feeds ON posts.feed_id = feeds.id"
            " WHERE feed_follows.user_id = ?"
            " ORDER BY posts.published_at DESC"
            " LIMIT ?",
            (str(user_id), limit),
        )
        return [_post_with_feed(row) for row in rows]