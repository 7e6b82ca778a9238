# gatorfeed

A small command-line RSS aggregator. Register a user, add the feeds you
care about, let the aggregator collect their posts on a schedule, and
browse the newest posts from the feeds you follow. Everything is kept in
an SQLite database file.

## Installation

```
pip install .
```

This installs the `gator` command. The package uses only the Python
standard library.

## Configuration

`gator` reads its settings from `.gatorconfig.json` in your home
directory. The file must exist before the first run; if it cannot be
read, `gator` prints `error reading config: ...` and exits with status 1.
It holds the path of the SQLite database file and the name of the user
who is currently logged in:

```json
{"db_url": "/path/to/gator.db", "current_user_name": ""}
```

The database file and its tables are created on first use.
`current_user_name` is rewritten for you by `register` and `login`;
other keys in the file are ignored and dropped when it is rewritten.

## Usage

```
gator <command> [args...]
```

| Command                   | What it does                                              |
|---------------------------|-----------------------------------------------------------|
| `register <name>`         | Create a user and log in as that user                     |
| `login <name>`            | Switch to an existing user                                |
| `users`                   | List all users, marking the current one with `(current)`  |
| `reset`                   | Delete all users, and with them their feeds, follows and posts |
| `addfeed <name> <url>`    | Add a feed and follow it as the current user              |
| `feeds`                   | List every feed and the user who added it                 |
| `follow <url>`            | Follow a feed that has already been added                 |
| `following`               | List the feeds the current user follows                   |
| `unfollow <url>`          | Stop following a feed                                     |
| `agg <duration>`          | Fetch one feed at every tick of `<duration>`, until interrupted |
| `browse [limit]`          | Show the newest posts from followed feeds (default 2)     |

`addfeed`, `follow`, `following`, `unfollow` and `browse` act for the
user named in `current_user_name` and fail if that user does not exist.
Feed URLs and user names are unique.

When a command fails, `gator` prints `error running command: ...` to
standard error and exits with status 1; an unknown command gives
`command not found`. Interrupting `agg` with Ctrl+C exits with status 130.

### Durations

`agg` takes a duration made of one or more numbers, each followed by a
unit: `ns`, `us` (or `µs`), `ms`, `s`, `m`, `h`. Fractions and a leading
sign are allowed, for example `30s`, `1m`, `1h30m` or `1.5h`. The
interval must be positive.

### Aggregation

At each tick `agg` picks the feed fetched least recently (feeds never
fetched come first), marks it as fetched, downloads it with the
`User-Agent` header `gator` and a 10-second timeout, and stores each of
its items as a post. HTML entities in titles and descriptions are
unescaped. Publication dates are read in the form
`Mon, 02 Jan 2006 15:04:05 -0700`; an item whose date cannot be read is
stored with the date 1 January of year 1. Posts whose link is already
stored are skipped. Each pass logs `Feed <name> collected, <n> posts found`.

### Example session

```
gator register alice
gator addfeed "Example Blog" https://blog.example.com/rss.xml
gator agg 1m          # leave running; Ctrl+C to stop
gator browse 5
```

## Use as a library

- `gatorfeed.config.read(path=None)` loads a `Config`
  (`db_url`, `current_user_name`); `Config.set_user()` and
  `Config.save()` write it back.
- `gatorfeed.database.Database(path)` opens the SQLite store and is a
  context manager. Lookups that find nothing raise `NotFoundError`, a
  subclass of `DatabaseError`.
- `gatorfeed.rss.parse_feed(data)` parses an RSS document into an
  `RSSFeed` with a list of `RSSItem`s; `fetch_feed(url, timeout=10.0)`
  downloads and parses one.
- `gatorfeed.handlers.parse_duration(text)` turns a duration string into
  a `timedelta`.
- `gatorfeed.cli.main(argv=None)` runs one command and returns the exit
  status.

## What it does not do

Storage is a local SQLite file only; there is no database server
support. Feeds are fetched one per tick, one after another, and there is
no command to delete a single user, feed or post.

## Running the tests

```
pip install .[test]
pytest
```