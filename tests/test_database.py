import uuid
from datetime import datetime, timedelta, timezone

import pytest

from gatorfeed.database import Database, DatabaseError, NotFoundError
from gatorfeed.models import Feed, FeedFollow, Post, User


@pytest.fixture
def db():
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def alice(db):
    return db.create_user(User.new("alice"))


def _feed(db, owner, name="Blog", url="https://example.com/rss"):
    return db.create_feed(Feed.new(name, url, owner.id))


def test_create_and_get_user(db):
    user = User.new("alice")
    created = db.create_user(user)
    assert created == user
    assert db.get_user("alice") == user
    assert db.get_user_by_id(user.id) == user


def test_get_missing_user_raises(db):
    with pytest.raises(NotFoundError):
        db.get_user("nobody")
    with pytest.raises(NotFoundError):
        db.get_user_by_id(uuid.uuid4())


def test_duplicate_user_name_raises(db, alice):
    with pytest.raises(DatabaseError):
        db.create_user(User.new("alice"))


def test_get_users(db):
    for name in ("a", "b", "c"):
        db.create_user(User.new(name))
    assert {u.name for u in db.get_users()} == {"a", "b", "c"}


def test_delete_users_cascades(db, alice):
    _feed(db, alice)
    db.delete_users()
    assert db.get_users() == []
    assert db.get_feeds() == []


def test_naive_times_are_local(db):
    naive = datetime(2024, 3, 4, 5, 6, 7)
    user = User(id=uuid.uuid4(), created_at=naive, updated_at=naive, name="n")
    stored = db.create_user(user)
    assert stored.created_at == naive.astimezone()
    assert stored.created_at.tzinfo is not None


def test_create_and_lookup_feed(db, alice):
    feed = _feed(db, alice)
    assert feed.last_fetched_at is None
    assert db.get_feed_by_url("https://example.com/rss") == feed
    assert db.get_feeds() == [feed]


def test_feed_for_unknown_user_raises(db):
    with pytest.raises(DatabaseError):
        db.create_feed(Feed.new("x", "https://example.com/x", uuid.uuid4()))


def test_duplicate_feed_url_raises(db, alice):
    _feed(db, alice)
    with pytest.raises(DatabaseError):
        _feed(db, alice, name="Other")


def test_get_feed_by_missing_url_raises(db):
    with pytest.raises(NotFoundError):
        db.get_feed_by_url("https://example.com/none")


def test_next_feed_with_no_feeds_raises(db):
    with pytest.raises(NotFoundError):
        db.get_next_feed_to_fetch()


def test_next_feed_prefers_unfetched(db, alice):
    first = _feed(db, alice, "A", "https://example.com/a")
    second = _feed(db, alice, "B", "https://example.com/b")
    db.mark_feed_fetched(first.id)
    assert db.get_next_feed_to_fetch().id == second.id
    db.mark_feed_fetched(second.id)
    assert db.get_next_feed_to_fetch().last_fetched_at is not None


def test_mark_feed_fetched_updates_times(db, alice):
    feed = _feed(db, alice)
    db.mark_feed_fetched(feed.id)
    updated = db.get_feed_by_url(feed.url)
    assert updated.last_fetched_at == updated.updated_at
    assert updated.updated_at >= feed.created_at


def test_create_feed_follow_returns_names(db, alice):
    feed = _feed(db, alice)
    row = db.create_feed_follow(FeedFollow.new(alice.id, feed.id))
    assert row.user_name == "alice"
    assert row.feed_name == "Blog"
    assert (row.user_id, row.feed_id) == (alice.id, feed.id)


def test_duplicate_follow_raises(db, alice):
    feed = _feed(db, alice)
    db.create_feed_follow(FeedFollow.new(alice.id, feed.id))
    with pytest.raises(DatabaseError):
        db.create_feed_follow(FeedFollow.new(alice.id, feed.id))


def test_follows_for_user_and_unfollow(db, alice):
    bob = db.create_user(User.new("bob"))
    a = _feed(db, alice, "A", "https://example.com/a")
    b = _feed(db, alice, "B", "https://example.com/b")
    db.create_feed_follow(FeedFollow.new(alice.id, a.id))
    db.create_feed_follow(FeedFollow.new(alice.id, b.id))
    db.create_feed_follow(FeedFollow.new(bob.id, a.id))
    assert {r.feed_name for r in db.get_feed_follows_for_user(alice.id)} == {"A", "B"}
    db.delete_feed_follow(alice.id, a.id)
    assert [r.feed_name for r in db.get_feed_follows_for_user(alice.id)] == ["B"]
    assert [r.feed_name for r in db.get_feed_follows_for_user(bob.id)] == ["A"]


def test_posts_by_user_newest_first_with_limit(db, alice):
    feed = _feed(db, alice)
    db.create_feed_follow(FeedFollow.new(alice.id, feed.id))
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for day in range(4):
        db.create_post(
            Post.new(f"t{day}", f"https://example.com/p{day}", "d",
                     base + timedelta(days=day), feed.id)
        )
    posts = db.get_posts_by_user(alice.id, 2)
    assert [p.title for p in posts] == ["t3", "t2"]
    assert all(p.feed_name == "Blog" for p in posts)
    assert len(db.get_posts_by_user(alice.id, 10)) == 4


def test_posts_only_from_followed_feeds(db, alice):
    followed = _feed(db, alice, "A", "https://example.com/a")
    other = _feed(db, alice, "B", "https://example.com/b")
    db.create_feed_follow(FeedFollow.new(alice.id, followed.id))
    now = datetime.now(timezone.utc)
    kept = db.create_post(Post.new("x", "https://example.com/x", "d", now, followed.id))
    db.create_post(Post.new("y", "https://example.com/y", "d", now, other.id))
    posts = db.get_posts_by_user(alice.id, 5)
    assert [p.id for p in posts] == [kept.id]
    assert posts[0].published_at == now


def test_negative_limit_raises(db, alice):
    with pytest.raises(DatabaseError):
        db.get_posts_by_user(alice.id, -1)


def test_duplicate_post_url_raises(db, alice):
    feed = _feed(db, alice)
    now = datetime.now(timezone.utc)
    db.create_post(Post.new("x", "https://example.com/x", "d", now, feed.id))
    with pytest.raises(DatabaseError):
        db.create_post(Post.new("x2", "https://example.com/x", "d", now, feed.id))


def test_context_manager_closes(tmp_path):
    with Database(tmp_path / "g.db") as database:
        database.create_user(User.new("alice"))
    with pytest.raises(DatabaseError):
        database.get_users()


def test_data_persists_in_file(tmp_path):
    path = tmp_path / "g.db"
    with Database(path) as database:
        user = database.create_user(User.new("alice"))
    with Database(path) as database:
        assert database.get_user("alice") == user