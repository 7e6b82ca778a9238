"""Handlers for each aggregator command."""

from __future__ import annotations

import functools
import http.client
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from .commands import Command, CommandError
from .config import Config
from .database import Database, DatabaseError
from .models import Feed, FeedFollow, Post, User
from .rss import RSSFeed, fetch_feed

logger = logging.getLogger(__name__)

SEPARATOR = "====================================="

_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_FETCH_ERRORS = (OSError, ValueError, http.client.HTTPException)


@dataclass
class State:
    """What every command handler works with."""

    db: Database
    cfg: Config
    fetch: Callable[[str], RSSFeed] = fetch_feed


# durations

_UNIT_NANOS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_NUMBER = re.compile(r"([0-9]*)(?:\.([0-9]*))?")
_UNIT = re.compile(r"[^.0-9]*")


def _parse_duration_ns(text: str) -> int:
    invalid = ValueError(f'time: invalid duration "{text}"')
    rest = text
    negative = False
    if rest and rest[0] in "+-":
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return 0
    if not rest:
        raise invalid
    limit = (1 << 63) if negative else (1 << 63) - 1
    total = 0
    while rest:
        if rest[0] != "." and rest[0] not in "0123456789":
            raise invalid
        number = _NUMBER.match(rest)
        whole, fraction = number.group(1), number.group(2)
        if not whole and not fraction:
            raise invalid
        rest = rest[number.end():]
        unit = _UNIT.match(rest).group(0)
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        if unit not in _UNIT_NANOS:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        rest = rest[len(unit):]
        size = _UNIT_NANOS[unit]
        value = int(whole or "0") * size
        if fraction:
            value += int(fraction) * size // 10 ** len(fraction)
        total += value
        if total > limit:
            raise invalid
    return -total if negative else total


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1m30s"`` or ``"1.5h"``."""
    return timedelta(microseconds=_parse_duration_ns(text) / 1000)


def _with_fraction(value: int, size: int) -> str:
    whole, remainder = divmod(value, size)
    if not remainder:
        return str(whole)
    digits = str(remainder).rjust(len(str(size)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"


def _format_duration(nanos: int) -> str:
    if nanos == 0:
        return "0s"
    sign = "-" if nanos < 0 else ""
    value = abs(nanos)
    if value < 1_000:
        return f"{sign}{value}ns"
    if value < 1_000_000:
        return f"{sign}{_with_fraction(value, 1_000)}\u00b5s"
    if value < 1_000_000_000:
        return f"{sign}{_with_fraction(value, 1_000_000)}ms"
    minutes, seconds = divmod(value, 60_000_000_000)
    text = f"{_with_fraction(seconds, 1_000_000_000)}s"
    if minutes:
        hours, minutes = divmod(minutes, 60)
        text = f"{minutes}m{text}"
        if hours:
            text = f"{hours}h{text}"
    return sign + text


# time formatting and parsing

def _format_time(value: datetime) -> str:
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.strftime("%z") or "+0000"
    zone = value.tzname() or offset
    return f"{text} {offset} {zone}"


def _format_day(value: datetime) -> str:
    return f"{_DAY_NAMES[value.weekday()]} {_MONTH_NAMES[value.month - 1]} {value.day}"


_RFC1123Z = re.compile(
    r"(Mon|Tue|Wed|Thu|Fri|Sat|Sun), ([0-9]{2}) "
    r"(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec) ([0-9]{4}) "
    r"([0-9]{1,2}):([0-9]{2}):([0-9]{2}) ([+-])([0-9]{2})([0-9]{2})",
    re.IGNORECASE,
)


def _parse_pub_date(text: str) -> datetime:
    match = _RFC1123Z.fullmatch(text)
    if match is None:
        raise ValueError(f'cannot parse "{text}" as RFC1123Z')
    _, day, month, year, hour, minute, second, sign, off_h, off_m = match.groups()
    offset = timedelta(hours=int(off_h), minutes=int(off_m))
    if sign == "-":
        offset = -offset
    return datetime(
        int(year),
        _MONTH_NAMES.index(month.title()) + 1,
        int(day),
        int(hour),
        int(minute),
        int(second),
        tzinfo=timezone(offset),
    )


def _format_user(user: User) -> str:
    return (
        f"{{ID:{user.id} CreatedAt:{_format_time(user.created_at)} "
        f"UpdatedAt:{_format_time(user.updated_at)} Name:{user.name}}}"
    )


# middleware

UserHandler = Callable[[State, Command, User], None]


def logged_in(handler: UserHandler) -> Callable[[State, Command], None]:
    """Wrap ``handler`` so that it receives the current user."""

    @functools.wraps(handler)
    def wrapper(state: State, cmd: Command) -> None:
        current_user = state.db.get_user(state.cfg.current_user_name)
        return handler(state, cmd, current_user)

    return wrapper


# users

def handle_register(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    name = cmd.args[0]

    try:
        state.db.get_user(name)
    except DatabaseError:
        pass
    else:
        raise CommandError("that user already exists")

    try:
        user = state.db.create_user(User.new(name))
    except DatabaseError as exc:
        raise CommandError(f"couldn't create new user: {exc}") from exc

    try:
        state.cfg.set_user(name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc

    print("User created successfully!")
    print(f"User Data: {_format_user(user)}")


def handle_login(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    name = cmd.args[0]

    try:
        state.db.get_user(name)
    except DatabaseError as exc:
        raise CommandError(f"that user doesn't exist: {exc}") from exc

    try:
        state.cfg.set_user(name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc

    print("User switched successfully!")


def handle_users(state: State, cmd: Command) -> None:
    try:
        users = state.db.get_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't list users: {exc}") from exc

    for user in users:
        if user.name == state.cfg.current_user_name:
            print(f"* {user.name} (current)")
        else:
            print(f"* {user.name}")


def handle_reset(state: State, cmd: Command) -> None:
    try:
        state.db.delete_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't reset database: {exc}") from exc
    print("Database resetted successfully!")


# aggregation

def handle_agg(state: State, cmd: Command) -> None:
    """Scrape the next due feed at every tick of the given interval, forever."""
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <duration>")
    try:
        nanos = _parse_duration_ns(cmd.args[0])
    except ValueError as exc:
        raise CommandError(f"Invalid duration entered: {exc}") from exc

    print(f"Collecting feeds every {_format_duration(nanos)}...")
    if nanos <= 0:
        raise CommandError("non-positive interval for NewTicker")

    interval = nanos / 1e9
    next_tick = time.monotonic() + interval
    while True:
        scrape_feeds(state)
        now = time.monotonic()
        if now < next_tick:
            time.sleep(next_tick - now)
            next_tick += interval
        else:
            # Ticks missed while scraping collapse into a single one.
            missed = (now - next_tick) // interval + 1
            next_tick += missed * interval


def scrape_feeds(state: State) -> int:
    """Fetch the feed due next, store its posts and return how many it listed."""
    try:
        feed = state.db.get_next_feed_to_fetch()
    except DatabaseError as exc:
        logger.error("Error getting next feed to fetch: %s", exc)
        return 0

    try:
        state.db.mark_feed_fetched(feed.id)
    except DatabaseError as exc:
        logger.error("Error marking feed %s as fetched: %s", feed.name, exc)

    try:
        rss_feed = state.fetch(feed.url)
    except _FETCH_ERRORS as exc:
        logger.error("Error fetching feed %s: %s", feed.name, exc)
        rss_feed = RSSFeed()

    for item in rss_feed.items:
        try:
            published_at = _parse_pub_date(item.pub_date)
        except ValueError as exc:
            logger.error("Error parsing date: %s", exc)
            published_at = _ZERO_TIME

        post = Post.new(
            title=item.title,
            url=item.link,
            description=item.description,
            published_at=published_at,
            feed_id=feed.id,
        )
        try:
            state.db.create_post(post)
        except DatabaseError:
            # Posts already stored on an earlier pass are expected here.
            pass

    logger.info("Feed %s collected, %d posts found", feed.name, len(rss_feed.items))
    return len(rss_feed.items)


# feeds

def format_feed(feed: Feed, user: User) -> str:
    """Describe a feed and its creator, one field per line."""
    return "\n".join(
        [
            f"* ID:            {feed.id}",
            f"* Created:       {_format_time(feed.created_at)}",
            f"* Updated:       {_format_time(feed.updated_at)}",
            f"* Name:          {feed.name}",
            f"* URL:           {feed.url}",
            f"* User:          {user.name}",
        ]
    )


def handle_feeds(state: State, cmd: Command) -> None:
    try:
        feeds = state.db.get_feeds()
    except DatabaseError as exc:
        raise CommandError(f"error retrieving feeds: {exc}") from exc

    if not feeds:
        raise CommandError("No feeds found.")

    for feed in feeds:
        try:
            user = state.db.get_user_by_id(feed.user_id)
        except DatabaseError as exc:
            raise CommandError(f"couldn't retrieve feed creator: {exc}") from exc
        print(format_feed(feed, user))
        print(SEPARATOR)


def handle_addfeed(state: State, cmd: Command, current_user: User) -> None:
    if len(cmd.args) != 2:
        raise CommandError(f"usage: {cmd.name} <name> <url>")
    name, url = cmd.args

    try:
        feed = state.db.create_feed(Feed.new(name, url, current_user.id))
    except DatabaseError as exc:
        raise CommandError(f"couldn't create new feed: {exc}") from exc

    try:
        follow = state.db.create_feed_follow(FeedFollow.new(current_user.id, feed.id))
    except DatabaseError as exc:
        raise CommandError(f"Error following feed: {exc}") from exc

    print("Feed created successfully!")
    print(format_feed(feed, current_user))
    print(SEPARATOR)
    print(
        f"User '{follow.user_name}' followed the feed '{follow.feed_name}' successfully!"
    )
    print(SEPARATOR)


# follows

def handle_follow(state: State, cmd: Command, current_user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <url>")

    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"That feed does not exist: {exc}") from exc

    try:
        follow = state.db.create_feed_follow(FeedFollow.new(current_user.id, feed.id))
    except DatabaseError as exc:
        raise CommandError(f"Error following feed: {exc}") from exc

    print(
        f"User '{follow.user_name}' followed the feed '{follow.feed_name}' successfully!"
    )


def handle_following(state: State, cmd: Command, current_user: User) -> None:
    try:
        follows = state.db.get_feed_follows_for_user(current_user.id)
    except DatabaseError as exc:
        raise CommandError(
            f"Error retrieving followed feeds for current user: {exc}"
        ) from exc

    if not follows:
        print("No feed follows found for this user.")
        return

    print("Current user is following the listed feeds:")
    for follow in follows:
        print(f"* {follow.feed_name}")


def handle_unfollow(state: State, cmd: Command, current_user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <url>")

    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"Feed does not exist: {exc}") from exc

    try:
        state.db.delete_feed_follow(current_user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"Error unfollowing feed: {exc}") from exc

    print(f"{feed.name} unfollowed successfully!")


# browsing

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _parse_limit(text: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise CommandError(f'Invalid limit: strconv.Atoi: parsing "{text}": invalid syntax')
    value = int(text)
    if not -(1 << 63) <= value < (1 << 63):
        raise CommandError(f'Invalid limit: strconv.Atoi: parsing "{text}": value out of range')
    # The limit travels as a 32-bit integer.
    return (value + (1 << 31)) % (1 << 32) - (1 << 31)


def handle_browse(state: State, cmd: Command, current_user: User) -> None:
    limit = 2
    if len(cmd.args) == 1:
        limit = _parse_limit(cmd.args[0])

    try:
        posts = state.db.get_posts_by_user(current_user.id, limit)
    except DatabaseError as exc:
        raise CommandError(
            f"Error retrieving posts for user {current_user.name}: {exc}"
        ) from exc

    print(f"Found {len(posts)} posts for user {current_user.name}:")
    for post in posts:
        print(f"{_format_day(post.published_at)} from {post.feed_name}")
        print(f"--- {post.title} ---")
        print(f"    {post.description}")
        print(f"Link: {post.url}")
        print(SEPARATOR)