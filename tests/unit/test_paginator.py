"""
Unit tests for Paginator with a mocked transport.
"""
import threading

import pytest

from orange_zest.events import EventKind
from orange_zest.exceptions import (
    ApiError,
    AuthenticationError,
    MalformedResponseError,
    RetriesExhaustedError,
    TransientServerError,
    ZestCancelled,
)
from orange_zest.models import CollectionKind, Page
from orange_zest.paginator import Paginator
from orange_zest.retry import RetryPolicy


def kinds(events):
    return [e.kind for e in events]


class TestPaginator:
    """Test collection pagination."""

    @pytest.fixture
    def client(self, mocker):
        return mocker.Mock()

    def test_single_page(self, client, no_wait_policy, on_event, recorded_events):
        """Test a collection that fits in one page."""
        client.fetch_page.return_value = Page(items=["a", "b"], next_cursor=None)

        result = Paginator(client, no_wait_policy).fetch_all(CollectionKind.LIKES, on_event)

        assert result == ["a", "b"]
        client.fetch_page.assert_called_once_with(CollectionKind.LIKES, None)
        assert kinds(recorded_events) == [EventKind.MORE_ITEMS_DOWNLOADED]
        assert recorded_events[0].count == 2

    def test_follows_cursor_and_preserves_order(self, client, no_wait_policy, on_event, recorded_events):
        """Test that pages are requested with each returned cursor, in order."""
        client.fetch_page.side_effect = [
            Page(items=[1, 2], next_cursor="c1"),
            Page(items=[3], next_cursor="c2"),
            Page(items=[4, 5, 6], next_cursor=None),
        ]

        result = Paginator(client, no_wait_policy).fetch_all(CollectionKind.PLAYLISTS, on_event)

        assert result == [1, 2, 3, 4, 5, 6]
        cursors = [c.args[1] for c in client.fetch_page.call_args_list]
        assert cursors == [None, "c1", "c2"]
        assert [e.count for e in recorded_events] == [2, 1, 3]

    def test_length_is_sum_of_pages(self, client, no_wait_policy):
        """Test that no item is dropped or duplicated across pages."""
        pages = [list(range(i * 10, i * 10 + n)) for i, n in enumerate([5, 0, 7, 1])]
        client.fetch_page.side_effect = [
            Page(items=p, next_cursor=f"c{i}" if i < len(pages) - 1 else None)
            for i, p in enumerate(pages)
        ]

        result = Paginator(client, no_wait_policy).fetch_all(CollectionKind.LIKES)

        assert len(result) == sum(len(p) for p in pages)
        assert result == [item for p in pages for item in p]

    def test_transient_error_retries_same_cursor(self, client, no_wait_policy, on_event, recorded_events):
        """Test pages [[a,b], server error, [c]] produce one pause and [a,b,c]."""
        client.fetch_page.side_effect = [
            Page(items=["a", "b"], next_cursor="next"),
            TransientServerError("503", status_code=503),
            Page(items=["c"], next_cursor=None),
        ]

        result = Paginator(client, no_wait_policy).fetch_all(CollectionKind.LIKES, on_event)

        assert result == ["a", "b", "c"]
        pauses = [e for e in recorded_events if e.kind == EventKind.PAUSED_AFTER_SERVER_ERROR]
        assert len(pauses) == 1
        cursors = [c.args[1] for c in client.fetch_page.call_args_list]
        assert cursors == [None, "next", "next"]

    def test_retries_give_same_collection_as_clean_run(self, client, no_wait_policy):
        """Test that N transient failures followed by success change nothing."""
        clean = [Page(items=["x", "y"], next_cursor="n"), Page(items=["z"], next_cursor=None)]
        client.fetch_page.side_effect = clean
        expected = Paginator(client, no_wait_policy).fetch_all(CollectionKind.LIKES)

        client.fetch_page.reset_mock()
        client.fetch_page.side_effect = [
            TransientServerError("500"),
            TransientServerError("502"),
            clean[0],
            TransientServerError("500"),
            clean[1],
        ]
        assert Paginator(client, no_wait_policy).fetch_all(CollectionKind.LIKES) == expected

    def test_pause_uses_policy_delay(self, client, mocker, on_event, recorded_events):
        """Test that the pause lasts the policy's fixed delay."""
        sleep = mocker.patch("orange_zest.retry.time.sleep")
        client.fetch_page.side_effect = [
            TransientServerError("503"),
            Page(items=[1], next_cursor=None),
        ]
        policy = RetryPolicy(server_error_delay=30.0, max_server_errors=5, pacing_delay=0)

        Paginator(client, policy).fetch_all(CollectionKind.LIKES, on_event)

        sleep.assert_called_once_with(30.0)
        assert recorded_events[0].delay_seconds == 30.0

    def test_non_transient_error_aborts(self, client, no_wait_policy):
        """Test that any other error aborts without a partial collection."""
        client.fetch_page.side_effect = [
            Page(items=[1, 2], next_cursor="c1"),
            ApiError("HTTP 404", status_code=404),
        ]

        with pytest.raises(ApiError):
            Paginator(client, no_wait_policy).fetch_all(CollectionKind.LIKES)
        assert client.fetch_page.call_count == 2

    def test_authentication_error_aborts(self, client, no_wait_policy):
        """Test that rejected credentials abort immediately."""
        client.fetch_page.side_effect = AuthenticationError("401", status_code=401)

        with pytest.raises(AuthenticationError):
            Paginator(client, no_wait_policy).fetch_all(CollectionKind.LIKES)
        client.fetch_page.assert_called_once()

    def test_retries_exhausted_is_fatal(self, client, no_wait_policy):
        """Test that endless server errors eventually abort the fetch."""
        client.fetch_page.side_effect = TransientServerError("503")

        with pytest.raises(RetriesExhaustedError):
            Paginator(client, no_wait_policy).fetch_all(CollectionKind.LIKES)
        assert client.fetch_page.call_count == no_wait_policy.max_server_errors + 1

    def test_repeated_cursor_is_malformed(self, client, no_wait_policy):
        """Test that a server repeating its cursor cannot loop forever."""
        client.fetch_page.side_effect = [
            Page(items=[1], next_cursor="same"),
            Page(items=[2], next_cursor="same"),
        ]

        with pytest.raises(MalformedResponseError):
            Paginator(client, no_wait_policy).fetch_all(CollectionKind.LIKES)

    def test_cancel_between_pages(self, client, no_wait_policy):
        """Test that cancellation is honored at the page boundary."""
        cancel = threading.Event()

        def fetch(kind, cursor):
            cancel.set()
            return Page(items=[1], next_cursor="more")

        client.fetch_page.side_effect = fetch

        with pytest.raises(ZestCancelled):
            Paginator(client, no_wait_policy, cancel_event=cancel).fetch_all(CollectionKind.LIKES)
        client.fetch_page.assert_called_once()

    def test_observer_errors_do_not_affect_fetch(self, client, no_wait_policy):
        """Test that a failing observer cannot change the result."""
        client.fetch_page.return_value = Page(items=[1, 2], next_cursor=None)

        def broken_observer(event):
            raise RuntimeError("observer bug")

        result = Paginator(client, no_wait_policy).fetch_all(CollectionKind.LIKES, broken_observer)
        assert result == [1, 2]
