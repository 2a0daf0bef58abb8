"""Records stored in and returned by the database."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class User:
    """A registered user."""

    id: UUID
    created_at: datetime | None
    updated_at: datetime | None
    name: str


@dataclass(frozen=True)
class Feed:
    """An RSS feed added by a user."""

    id: UUID
    name: str | None
    created_at: datetime | None
    updated_at: datetime | None
    url: str | None
    user_id: UUID
    last_fetched_at: datetime | None


@dataclass(frozen=True)
class FeedFollow:
    """A user following a feed."""

    id: UUID
    user_id: UUID | None
    feed_id: UUID | None
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(frozen=True)
class Post:
    """An item collected from a feed."""

    id: UUID
    created_at: datetime | None
    updated_at: datetime | None
    title: str | None
    url: str | None
    description: str | None
    published_at: datetime | None
    feed_id: UUID | None


@dataclass(frozen=True)
class FeedFollowDetail:
    """A follow together with the names of its feed and user."""

    id: UUID
    user_id: UUID | None
    feed_id: UUID | None
    created_at: datetime | None
    updated_at: datetime | None
    feed_name: str | None
    user_name: str

    def follow(self) -> FeedFollow:
        """Return the bare follow record."""
        return FeedFollow(
            id=self.id,
            user_id=self.user_id,
            feed_id=self.feed_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass(frozen=True)
class FeedListing:
    """A feed's name and URL with the name of the user who added it."""

    name: str | None
    url: str | None
    user_name: str