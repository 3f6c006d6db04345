"""
Collection pagination with pause-and-retry on server errors.
"""

import logging
import threading
from typing import Any, List, Optional

from orange_zest.events import EventSink, ZestingEvent, emit
from orange_zest.exceptions import MalformedResponseError
from orange_zest.models import CollectionKind
from orange_zest.retry import RetryPolicy

logger = logging.getLogger(__name__)


class Paginator:
    """Pulls every page of a collection into one ordered list."""

    def __init__(
        self,
        client,
        retry_policy: Optional[RetryPolicy] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize paginator.

        Args:
            client: Transport with ``fetch_page(kind, cursor) -> Page``
            retry_policy: Policy for transient server errors
            cancel_event: Optional cancellation flag checked between pages
        """
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.cancel_event = cancel_event

    def fetch_all(
        self, kind: CollectionKind, on_event: Optional[EventSink] = None
    ) -> List[Any]:
        """
        Fetch a complete collection.

        Items keep the order the server returned them in. A transient error
        re-requests the same cursor, so the result is identical to a run
        without errors.

        Args:
            kind: Collection to fetch
            on_event: Observer for progress and pause events

        Returns:
            All items of the collection

        Raises:
            ZestError: Any non-transient failure; no partial collection is returned
        """
        items: List[Any] = []
        cursor: Optional[str] = None
        pages = 0

        while True:
            page = self.retry_policy.call(
                lambda: self.client.fetch_page(kind, cursor),
                on_event,
                self.cancel_event,
            )
            pages += 1
            items.extend(page.items)
            logger.debug(
                f"Fetched {kind.value} page {pages}: {len(page.items)} items "
                f"({len(items)} total)"
            )
            emit(on_event, ZestingEvent.more_items_downloaded(len(page.items)))

            if not page.next_cursor:
                break
            if page.next_cursor == cursor:
                raise MalformedResponseError(
                    f"Server repeated cursor for {kind.value}: {cursor}"
                )
            cursor = page.next_cursor

        logger.info(f"Fetched {len(items)} {kind.value} in {pages} pages")
        return items
