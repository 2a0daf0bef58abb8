# gator

`gator` is a small command-line RSS aggregator. You register users, add
feeds, follow feeds, and leave `gator agg` running to collect posts on a
fixed interval. You then read the newest posts with `gator browse`.

Everything is stored in a local SQLite database.

## Installation

```
pip install .
```

This installs the `gator` command.

## Configuration

`gator` reads its settings from `~/.gatorconfig.json`. The file must exist
before any command is run; if it is missing or is not a JSON object with
string fields, `gator` prints `Could not read config file` and exits with
status 1.

```json
{
  "db_url": "gator.db",
  "current_user_name": ""
}
```

- `db_url` names the SQLite database. It may be a file path (`gator.db`),
  a `sqlite:///path/to/gator.db` URL, or `:memory:` / `sqlite://` for a
  throwaway in-memory database. The tables are created on first use.
- `current_user_name` is the user you are logged in as. `gator login` and
  `gator register` rewrite this field (and the file) for you.

## Commands

```
gator register <name>        create a user and log in as them
gator login <name>           switch to an existing user
gator users                  list users, marking the current one with "(current)"
gator reset                  delete all users, and with them their feeds, follows and posts

gator addfeed <name> <url>   add a feed and follow it as the current user
gator feeds                  list every feed as "name, url, user who added it"
gator follow <url>           follow an existing feed as the current user
gator unfollow <url>         stop following a feed
gator following              list the names of the feeds the current user follows

gator agg <interval>         scrape one feed now, then one more every interval, until interrupted
gator browse [limit]         show the newest posts for the current user (default 2)
```

`addfeed`, `follow`, `unfollow` and `browse` need a logged-in user that
exists in the database.

### Aggregating

`gator agg` takes a duration made of numbers with units, such as `30s`,
`1m`, `1h30m` or `1.5m`. The units are `ns`, `us` (or `µs`), `ms`, `s`,
`m` and `h`; the interval must be positive. On each tick it picks the feed
fetched longest ago (feeds never fetched come first), marks it as fetched,
downloads it with the user agent `gator`, and stores each item as a post.
Items whose publication date cannot be read as an RFC 1123 date are
stamped with the current time. Items that cannot be stored (for example a
link already saved as a post) are reported and skipped; a failed scrape is
reported as `Could not scrape ...` and the loop carries on. Stop it with
Ctrl-C.

### Browsing

`gator browse` shows the title and description of the newest posts,
ordered by publication date, from the feeds the current user **added**.
If the limit given is not an integer, it says so and uses the default of 2.

### Errors and exit status

Errors are printed to standard error and the command exits with status 1:
an unknown command prints `invalid command`, and a missing argument prints
what is required. Interrupting a command exits with status 130.

## Example

```
gator register alice
gator addfeed "Example News" https://example.com/rss.xml
gator agg 1m
gator browse 5
```

## Using it as a library

- `gator.config` — `read(path=None)` loads a `Config`; `Config.set_user()`
  records the current user and saves the file; `Config.to_json()` and
  `Config.from_json()` convert to and from the stored JSON.
- `gator.database` — `connect(url)` returns a `Queries` object (usable as a
  context manager) with `create_user`, `get_user_by_name`, `get_users`,
  `reset_users`, `add_feed`, `get_feed_by_url`, `get_next_feed_to_fetch`,
  `list_feeds`, `mark_feed_fetched`, `create_feed_follow`,
  `get_feed_follows_for_user`, `unfollow`, `create_post` and
  `get_posts_for_user`. `Queries.transaction()` groups queries and rolls
  them back on error. Failures raise `DatabaseError`; a single-row lookup
  that finds nothing raises `NotFoundError`.
- `gator.models` — the frozen dataclasses `User`, `Feed`, `FeedFollow`,
  `Post`, `FeedFollowDetail` and `FeedListing`.
- `gator.rss` — `parse_feed(data)` turns an RSS document into an `RSSFeed`
  of `RSSItem`s (a document that cannot be parsed gives an empty feed),
  `fetch_feed(url, timeout=None)` downloads and parses one, and
  `parse_pub_date(text, now=None)` reads an item's date.
- `gator.cli` — `main(argv=None)` runs one command; `build_commands()`
  returns the command registry and `scrape_feeds(state, fetch)` performs a
  single aggregation step.

## What it does not do

- It only works with SQLite. A `db_url` with any other scheme (for example
  `postgres://...`) is refused with `Could not open connection to database`.
- It fetches RSS only; Atom feeds yield no items.
- `gator agg` runs in the foreground; there is no background service.

## Running the tests

```
pip install ".[test]"
pytest
```