"""Single-threaded service driving the controller.

:class:`MphService` runs a daemon thread that owns an
:class:`~mphrga_inficon.controller.MphController`. Poll ticks and commands
run on that thread only, so exchanges with the instrument are strictly
serialized without any lock around the controller.

Commands are callables taking the controller. They are queued together with
a :class:`concurrent.futures.Future`; the thread waits on the queue until
the next tick is due, so a command wakes it immediately. A tick that has
fallen due runs before the next queued command is taken, so a steady stream
of commands cannot hold polling off.

Example:
    >>> service = MphService(controller)
    >>> service.start()
    >>> service.call(lambda c: c.start_monitor())
    >>> service.stop()
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, TypeVar

from mphrga_inficon.config import MphConfig
from mphrga_inficon.controller import MphController, create_controller
from mphrga_inficon.parameters import ParameterStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

Command = Callable[[MphController], Any]


class MphService:
    """Runs poll ticks and queued commands on one worker thread.

    Args:
        controller: The controller owned by the worker thread.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        controller: MphController,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._controller = controller
        self._clock = clock
        self._queue: queue.Queue[tuple[Command, Future[Any]] | None] = queue.Queue()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._ticks = 0

    # -- Lifecycle -----------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """Return True while the worker thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        """Number of poll ticks run so far."""
        return self._ticks

    def start(self) -> None:
        """Start the worker thread.

        Raises:
            RuntimeError: If the service is already running.
        """
        if self.is_running:
            raise RuntimeError("Service is already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="mphrga-service", daemon=True)
        self._thread.start()
        logger.info("Service started (poll period %.3f s)", self._controller.poll_period)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop the worker thread after its current tick or command.

        Commands still queued are cancelled.

        Args:
            timeout: Maximum time to wait for the thread to exit.
        """
        self._stop_event.set()
        self._queue.put(None)
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._cancel_pending()
        logger.info("Service stopped")

    # -- Commands ------------------------------------------------------------

    def submit(self, command: Callable[[MphController], T]) -> Future[T]:
        """Queue a command for the worker thread.

        Args:
            command: Callable receiving the controller.

        Returns:
            Future resolved with the command's result or exception.

        Raises:
            RuntimeError: If the service is not running.
        """
        if not self.is_running or self._stop_event.is_set():
            raise RuntimeError("Service is not running")
        future: Future[T] = Future()
        self._queue.put((command, future))
        return future

    def call(self, command: Callable[[MphController], T], timeout: float | None = 10.0) -> T:
        """Run a command on the worker thread and wait for its result.

        Args:
            command: Callable receiving the controller.
            timeout: Maximum time to wait in seconds.

        Returns:
            The command's return value.

        Raises:
            Exception: Whatever the command raised.
            concurrent.futures.TimeoutError: If the command did not finish
                in time.
        """
        return self.submit(command).result(timeout)

    # -- Worker --------------------------------------------------------------

    def _run(self) -> None:
        controller = self._controller
        while True:
            wait = controller.time_until_tick(self._clock())
            try:
                item = self._queue.get(timeout=wait)
            except queue.Empty:
                item = None

            if self._stop_event.is_set():
                break

            if item is not None:
                self._execute(*item)

            # A due tick runs before the next queued command is taken
            if controller.time_until_tick(self._clock()) <= 0:
                self._tick()

    def _execute(self, command: Command, future: Future[Any]) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = command(self._controller)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            future.set_exception(exc)
        else:
            future.set_result(result)

    def _tick(self) -> None:
        try:
            self._controller.tick()
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Unexpected error in poll tick")
        self._ticks += 1

    def _cancel_pending(self) -> None:
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            if item is not None:
                item[1].cancel()


def create_service(
    config: MphConfig,
    store: ParameterStore | None = None,
) -> tuple[MphService, ParameterStore]:
    """Create a service and parameter store for a TCP-attached instrument.

    Args:
        config: Service configuration.
        store: Parameter store to publish into; a new one if None.

    Returns:
        The (not yet started) service and its parameter store.
    """
    store = store if store is not None else ParameterStore()
    controller = create_controller(config, store)
    return MphService(controller), store
