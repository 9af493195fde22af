"""Tests for the change feed and the pending review counter."""

from app.services.change_feed import ChangeEvent, ChangeFeed, PendingReviewCounter


def event(status, old_status=None):
    return ChangeEvent("applications", "update", {"id": "a1", "status": status}, old_status=old_status)


def test_publish_reaches_topic_subscribers_only():
    feed = ChangeFeed()
    seen, other = [], []
    feed.subscribe("applications", seen.append)
    feed.subscribe("mentorship_matches", other.append)

    feed.publish(event("submitted", "draft"))

    assert len(seen) == 1
    assert other == []


def test_unsubscribe_stops_delivery():
    feed = ChangeFeed()
    seen = []
    subscription = feed.subscribe("applications", seen.append)

    subscription.unsubscribe()
    subscription.unsubscribe()
    feed.publish(event("submitted", "draft"))

    assert seen == []
    assert feed.subscriber_count("applications") == 0


def test_failing_handler_does_not_block_others():
    feed = ChangeFeed()
    seen = []

    def broken(_):
        raise ValueError("bad handler")

    feed.subscribe("applications", broken)
    feed.subscribe("applications", seen.append)
    feed.publish(event("approved", "submitted"))

    assert len(seen) == 1


def test_counter_follows_submitted_transitions():
    feed = ChangeFeed()
    counter = PendingReviewCounter()
    counter.seed(2)
    counter.start(feed)

    feed.publish(event("submitted", "draft"))
    assert counter.count == 3

    feed.publish(event("approved", "submitted"))
    feed.publish(event("pending", "submitted"))
    assert counter.count == 1

    feed.publish(event("draft", None))
    assert counter.count == 1


def test_counter_never_goes_negative_and_stops_cleanly():
    feed = ChangeFeed()
    counter = PendingReviewCounter()
    counter.start(feed)

    feed.publish(event("rejected", "submitted"))
    assert counter.count == 0

    counter.stop()
    assert feed.subscriber_count("applications") == 0
    feed.publish(event("submitted", "draft"))
    assert counter.count == 0
