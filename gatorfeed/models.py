"""Records stored by the feed aggregator."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


def _now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True)
class User:
    id: UUID
    created_at: datetime
    updated_at: datetime
    name: str

    @classmethod
    def new(cls, name: str) -> User:
        """Create a user with a fresh id and the current time."""
        now = _now()
        return cls(id=uuid.uuid4(), created_at=now, updated_at=now, name=name)


@dataclass(frozen=True)
class Feed:
    id: UUID
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: UUID
    last_fetched_at: datetime | None = None

    @classmethod
    def new(cls, name: str, url: str, user_id: UUID) -> Feed:
        """Create a never-fetched feed owned by ``user_id``."""
        now = _now()
        return cls(
            id=uuid.uuid4(),
            created_at=now,
            updated_at=now,
            name=name,
            url=url,
            user_id=user_id,
        )


@dataclass(frozen=True)
class FeedFollow:
    id: UUID
    created_at: datetime
    updated_at: datetime
    user_id: UUID
    feed_id: UUID

    @classmethod
    def new(cls, user_id: UUID, feed_id: UUID) -> FeedFollow:
        """Create a follow of ``feed_id`` by ``user_id``."""
        now = _now()
        return cls(
            id=uuid.uuid4(),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            feed_id=feed_id,
        )


@dataclass(frozen=True)
class FeedFollowRow(FeedFollow):
    """A feed follow together with the names of its user and feed."""

    user_name: str
    feed_name: str


@dataclass(frozen=True)
class Post:
    id: UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    description: str
    published_at: datetime
    feed_id: UUID

    @classmethod
    def new(
        cls,
        title: str,
        url: str,
        description: str,
        published_at: datetime,
        feed_id: UUID,
    ) -> Post:
        """Create a post belonging to ``feed_id``."""
        now = _now()
        return cls(
            id=uuid.uuid4(),
            created_at=now,
            updated_at=now,
            title=title,
            url=url,
            description=description,
            published_at=published_at,
            feed_id=feed_id,
        )


@dataclass(frozen=True)
class PostWithFeed(Post):
    """A post together with the name of the feed it came from."""

    feed_name: str