"""Command-line entry point for the feed aggregator."""

from __future__ import annotations

import logging
import sys
from typing import Sequence

from . import config
from .commands import Command, CommandError, Commands
from .database import Database, DatabaseError
from .handlers import (
    State,
    handle_addfeed,
    handle_agg,
    handle_browse,
    handle_feeds,
    handle_follow,
    handle_following,
    handle_login,
    handle_register,
    handle_reset,
    handle_unfollow,
    handle_users,
    logged_in,
)


def build_commands() -> Commands:
    """Return the registry of every command the program understands."""
    commands = Commands()
    commands.register("login", handle_login)
    commands.register("register", handle_register)
    commands.register("reset", handle_reset)
    commands.register("users", handle_users)
    commands.register("agg", handle_agg)
    commands.register("addfeed", logged_in(handle_addfeed))
    commands.register("feeds", handle_feeds)
    commands.register("follow", logged_in(handle_follow))
    commands.register("following", logged_in(handle_following))
    commands.register("unfollow", logged_in(handle_unfollow))
    commands.register("browse", logged_in(handle_browse))
    return commands


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Run one command given on the command line; return the exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    try:
        cfg = config.read()
    except (OSError, ValueError) as exc:
        return _fail(f"error reading config: {exc}")

    try:
        db = Database(cfg.db_url)
    except DatabaseError as exc:
        return _fail(f"error connecting to the database: {exc}")

    with db:
        if not args:
            return _fail("Usage: cli <command> [args...]")

        state = State(db=db, cfg=cfg)
        cmd = Command(name=args[0], args=args[1:])
        try:
            build_commands().run(state, cmd)
        except (CommandError, DatabaseError) as exc:
            return _fail(f"error running command: {exc}")
        except KeyboardInterrupt:
            return 130
    return 0