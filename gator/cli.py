"""The gator command line: users, feeds, follows and post aggregation."""

from __future__ import annotations

import http.client
import re
import sys
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import Callable, Sequence

from . import config
from .config import Config
from .database import DatabaseError, Queries, connect
from .models import User
from .rss import RSSFeed, fetch_feed, parse_pub_date

Handler = Callable[["State", "Command"], None]
UserHandler = Callable[["State", "Command", User], None]


class CommandError(Exception):
    """A command could not be carried out."""


@dataclass
class State:
    """What every command works with."""

    db: Queries
    cfg: Config


@dataclass
class Command:
    """A command name and its arguments."""

    name: str
    args: list[str] = field(default_factory=list)


@dataclass
class Commands:
    """Registry of command handlers by name."""

    registry: dict[str, Handler] = field(default_factory=dict)

    def register(self, name: str, handler: Handler) -> None:
        """Make *handler* run for the command *name*."""
        self.registry[name] = handler

    def run(self, state: State, cmd: Command) -> None:
        """Run the handler registered for *cmd*."""
        handler = self.registry.get(cmd.name)
        if handler is None:
            raise CommandError("invalid command")
        handler(state, cmd)


_NS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_MAX_NS = 2**63 - 1
_COMPONENT = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]*)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "30s", "1h30m" or "1.5m"."""
    rest = text
    negative = False
    if rest[:1] in ("+", "-"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f"invalid duration {text!r}")

    total = Fraction(0)
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        whole, frac, unit = match.groups()
        if not whole and not frac:
            raise ValueError(f"invalid duration {text!r}")
        if not unit:
            raise ValueError(f"missing unit in duration {text!r}")
        if unit not in _NS_PER_UNIT:
            raise ValueError(f"unknown unit {unit!r} in duration {text!r}")
        value = Fraction(int(whole or "0"))
        if frac:
            value += Fraction(int(frac), 10 ** len(frac))
        total += value * _NS_PER_UNIT[unit]
        if total > _MAX_NS:
            raise ValueError(f"invalid duration {text!r}")
        pos = match.end()

    micros = float(total / 1000)
    return timedelta(microseconds=-micros if negative else micros)


def _decimal(value: int, digits: int) -> str:
    whole, frac = divmod(value, 10**digits)
    frac_text = str(frac).rjust(digits, "0").rstrip("0")
    return f"{whole}.{frac_text}" if frac_text else str(whole)


def _format_duration(interval: timedelta) -> str:
    ns = (interval // timedelta(microseconds=1)) * 1000
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < 1_000:
        return f"{sign}{ns}ns"
    if ns < 1_000_000:
        return f"{sign}{_decimal(ns, 3)}µs"
    if ns < 1_000_000_000:
        return f"{sign}{_decimal(ns, 6)}ms"
    minutes, rem = divmod(ns, 60_000_000_000)
    text = f"{_decimal(rem, 9)}s"
    if minutes:
        hours, minutes = divmod(minutes, 60)
        text = (f"{hours}h" if hours else "") + f"{minutes}m" + text
    return sign + text


def _now() -> datetime:
    return datetime.now(timezone.utc)


def logged_in(handler: UserHandler) -> Handler:
    """Wrap *handler* so that it receives the current user."""

    def wrapper(state: State, cmd: Command) -> None:
        user = state.db.get_user_by_name(state.cfg.current_user_name)
        handler(state, cmd, user)

    return wrapper


def handler_login(state: State, cmd: Command) -> None:
    """Make a registered user the current one."""
    if not cmd.args:
        raise CommandError("a username is required")
    name = cmd.args[0]
    try:
        user = state.db.get_user_by_name(name)
    except DatabaseError as exc:
        raise CommandError("could not retrieve user from database") from exc
    if user.name != name:
        raise CommandError("user is not registered")
    state.cfg.set_user(name)


def handler_register(state: State, cmd: Command) -> None:
    """Create a user and make it the current one."""
    if not cmd.args:
        raise CommandError("username is required")
    now = _now()
    try:
        user = state.db.create_user(uuid.uuid4(), now, now, cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"could not create user {exc}") from exc
    print(user)
    state.cfg.set_user(cmd.args[0])


def handler_reset(state: State, cmd: Command) -> None:
    """Delete every user."""
    try:
        state.db.reset_users()
    except DatabaseError as exc:
        raise CommandError("could not clear users") from exc


def handler_users(state: State, cmd: Command) -> None:
    """List users, marking the current one."""
    try:
        users = state.db.get_users()
    except DatabaseError as exc:
        raise CommandError("could not get users") from exc
    for user in users:
        if user.name == state.cfg.current_user_name:
            print(f"{user.name} (current)")
        else:
            print(user.name)


_SCRAPE_ERRORS = (
    DatabaseError,
    CommandError,
    OSError,
    ValueError,
    http.client.HTTPException,
)


def handler_agg(state: State, cmd: Command) -> None:
    """Scrape the next feed now and then once every interval, forever."""
    if not cmd.args:
        raise CommandError("duration must be provided")
    try:
        interval = parse_duration(cmd.args[0])
    except ValueError as exc:
        raise CommandError("invalid duration provided") from exc
    if interval <= timedelta(0):
        raise CommandError("duration must be positive")

    print(f"Collecting feeds every {_format_duration(interval)}")
    seconds = interval.total_seconds()
    next_tick = time.monotonic()
    while True:
        print("scraping next")
        try:
            scrape_feeds(state)
        except _SCRAPE_ERRORS as exc:
            print(f"Could not scrape {exc}")
        next_tick += seconds
        now = time.monotonic()
        if next_tick < now:
            next_tick = now
        time.sleep(next_tick - now)


def handler_feeds(state: State, cmd: Command) -> None:
    """List every feed with the user who added it."""
    for listing in state.db.list_feeds():
        print(f"{listing.name or ''}, {listing.url or ''}, {listing.user_name}")


def handler_addfeed(state: State, cmd: Command, user: User) -> None:
    """Add a feed and follow it as the current user."""
    if len(cmd.args) < 2:
        raise CommandError("name and url must be provided")
    name, url = cmd.args[0], cmd.args[1]
    now = _now()
    feed = state.db.add_feed(uuid.uuid4(), now, now, name, url, user.id)
    print(f"id:{feed.id}\nname: {feed.name}\nurl: {feed.url}\nuser_id:{feed.user_id}")
    now = _now()
    state.db.create_feed_follow(uuid.uuid4(), user.id, feed.id, now, now)


def handler_follow(state: State, cmd: Command, user: User) -> None:
    """Follow an existing feed by its URL."""
    if not cmd.args:
        raise CommandError("feed url must be provided")
    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError("cannot find the feed") from exc
    now = _now()
    follow = state.db.create_feed_follow(uuid.uuid4(), user.id, feed.id, now, now)
    print(follow)


def handler_following(state: State, cmd: Command) -> None:
    """List the feeds the current user follows."""
    for follow in state.db.get_feed_follows_for_user(state.cfg.current_user_name):
        print(follow.feed_name or "")


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    """Stop following the feed with the given URL."""
    if not cmd.args:
        raise CommandError("user and url must be provided")
    state.db.unfollow(user.id, cmd.args[0])


_INTEGER = re.compile(r"[+-]?[0-9]+")


def handler_browse(state: State, cmd: Command, user: User) -> None:
    """Show the newest posts from the user's feeds, two unless told otherwise."""
    limit = 2
    if cmd.args:
        text = cmd.args[0]
        if _INTEGER.fullmatch(text):
            limit = int(text)
        else:
            print(f'could not parse error: invalid limit "{text}"')

    print(f"Getting {limit} feeds for {user.name}: {user.id}")
    try:
        posts = state.db.get_posts_for_user(user.id, limit)
    except DatabaseError:
        print("posts: 0")
        raise
    print(f"posts: {len(posts)}")
    for post in posts:
        print(f"Title: {post.title or ''}")
        print(f"Description: {post.description or ''}")


def scrape_feeds(
    state: State, fetch: Callable[[str], RSSFeed] = fetch_feed
) -> int:
    """Fetch the feed due next and store its items; return how many were stored."""
    feed = state.db.get_next_feed_to_fetch()
    state.db.mark_feed_fetched(feed.id)
    if feed.url is None:
        raise CommandError("cannot fetch feed that has no url")

    content = fetch(feed.url)
    created = 0
    for item in content.items:
        published = parse_pub_date(item.pub_date)
        try:
            state.db.create_post(
                uuid.uuid4(),
                item.title,
                item.link,
                item.description,
                published,
                feed.id,
            )
        except DatabaseError as exc:
            print(exc)
        else:
            created += 1
    return created


def build_commands() -> Commands:
    """Return the registry of every command."""
    commands = Commands()
    commands.register("login", handler_login)
    commands.register("register", handler_register)
    commands.register("reset", handler_reset)
    commands.register("users", handler_users)
    commands.register("agg", handler_agg)
    commands.register("feeds", handler_feeds)
    commands.register("addfeed", logged_in(handler_addfeed))
    commands.register("follow", logged_in(handler_follow))
    commands.register("following", handler_following)
    commands.register("unfollow", logged_in(handler_unfollow))
    commands.register("browse", logged_in(handler_browse))
    return commands


def main(argv: Sequence[str] | None = None) -> int:
    """Run one command from the command line and return the exit status."""
    args = list(sys.argv[1:] if argv is None else argv)

    try:
        cfg = config.read()
    except (OSError, ValueError):
        print("Could not read config file", file=sys.stderr)
        return 1

    try:
        db = connect(cfg.db_url)
    except DatabaseError:
        print("Could not open connection to database", file=sys.stderr)
        return 1

    with db:
        if not args:
            print("not enough arguments were provided", file=sys.stderr)
            return 1
        cmd = Command(name=args[0], args=args[1:])
        try:
            build_commands().run(State(db=db, cfg=cfg), cmd)
        except (CommandError, DatabaseError, OSError) as exc:
            print(exc, file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())