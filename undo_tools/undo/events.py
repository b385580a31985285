"""
Event notification for undo lifecycle transitions.

Listeners are registered per event type and run on a bounded worker pool,
so a slow or failing listener never blocks or breaks the mutation that
emitted the event.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional, Set, Union

from ..core.types import EventType, UndoEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[UndoEvent], None]


class EventNotifier:
    """
    Fan-out of UndoEvents to registered listeners.

    No ordering is guaranteed between listeners of one event, or between
    separate events, unless synchronous mode is used.

    Example:
        >>> notifier = EventNotifier(max_workers=2)
        >>> notifier.subscribe(EventType.OPERATION_UNDONE, print)
        >>> notifier.publish(UndoEvent(type=EventType.OPERATION_UNDONE))
        >>> notifier.flush(timeout=1.0)
    """

    def __init__(
        self,
        max_workers: int = 4,
        timeout: float = 5.0,
        synchronous: bool = False,
    ):
        """
        Initialize event notifier.

        Args:
            max_workers: Size of the listener worker pool
            timeout: Default seconds flush() and close() wait for listeners
            synchronous: Run listeners inline in publish() instead of the pool
        """
        self.timeout = timeout
        self.synchronous = synchronous
        self._callbacks: Dict[EventType, List[EventCallback]] = {}
        self._lock = threading.Lock()
        self._pending: Set[Future] = set()
        self._executor: Optional[ThreadPoolExecutor] = None
        if not synchronous:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="undo-events"
            )

    def subscribe(
        self, event_type: Union[EventType, str], callback: EventCallback
    ) -> None:
        """
        Register a listener for an event type.

        Args:
            event_type: Event type (enum or its string value)
            callback: Called with the UndoEvent
        """
        event_type = EventType(event_type)
        with self._lock:
            self._callbacks.setdefault(event_type, []).append(callback)

    def unsubscribe(
        self, event_type: Union[EventType, str], callback: EventCallback
    ) -> bool:
        """
        Remove a listener.

        Returns:
            True if the listener was registered
        """
        event_type = EventType(event_type)
        with self._lock:
            callbacks = self._callbacks.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)
                return True
        return False

    def publish(self, event: UndoEvent) -> None:
        """
        Deliver an event to every listener registered for its type.

        Args:
            event: Event to deliver
        """
        with self._lock:
            callbacks = list(self._callbacks.get(event.type, []))

        if not callbacks:
            return

        executor = self._executor
        for callback in callbacks:
            if executor is None:
                self._deliver(callback, event)
                continue

            try:
                future = executor.submit(self._deliver, callback, event)
            except RuntimeError:
                logger.debug(f"Notifier closed, dropping {event.type.value} event")
                return

            with self._lock:
                self._pending.add(future)
            future.add_done_callback(self._discard)

    def _deliver(self, callback: EventCallback, event: UndoEvent) -> None:
        try:
            callback(event)
        except Exception as e:
            name = getattr(callback, "__name__", repr(callback))
            logger.error(f"Undo event listener {name} failed on {event.type.value}: {e}")

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for queued deliveries to finish.

        Args:
            timeout: Seconds to wait (defaults to the notifier timeout)

        Returns:
            True if every delivery finished in time
        """
        with self._lock:
            pending = list(self._pending)

        if not pending:
            return True

        _, not_done = wait(pending, timeout=self.timeout if timeout is None else timeout)
        if not_done:
            logger.warning(f"{len(not_done)} undo event listener(s) still running")
            return False
        return True

    def close(self, timeout: Optional[float] = None) -> None:
        """
        Release the worker pool.

        Deliveries still running after the timeout are abandoned; the pool
        threads are not waited on. Events published afterwards are delivered
        inline.
        """
        if self._executor is None:
            return

        self.flush(timeout)
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._executor = None
