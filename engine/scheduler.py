"""Processing scheduler: decides when passes run and which results count.

The scheduler lives on the interactive thread. Passes run on an executor and
debounce timers fire on timer threads; both only post events to a queue,
which the interactive thread drains with :meth:`poll` or
:meth:`run_until_idle`. Graph state is therefore only touched by the
interactive thread.

Every dispatch bumps ``generation``. A finished pass whose generation is no
longer current is dropped without touching any node.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Any, Callable, Optional

from config_io.config import Config
from config_io.schema import ExecutorKind, SchedulerState
from engine.evaluator import PassResult, run_pass
from engine.graph import Edge, Graph, Node
from modelling import transfer
from modelling.components.map_layer import SaveMapLayer

logger = logging.getLogger(__name__)


def make_executor(config: Config) -> Executor:
    pcfg = config.processing
    if pcfg.executor == ExecutorKind.PROCESS:
        return ProcessPoolExecutor(max_workers=pcfg.max_workers)
    return ThreadPoolExecutor(max_workers=pcfg.max_workers, thread_name_prefix="tilegraph-pass")


class ProcessingScheduler:
    """Runs evaluation passes for ``graph`` and applies the current one."""

    def __init__(
        self,
        graph: Graph,
        save: SaveMapLayer,
        config: Config | None = None,
        executor: Executor | None = None,
        on_update: Callable[[], None] | None = None,
    ):
        self.graph = graph
        self.save = save
        self.config = config or Config()
        self.on_update = on_update
        self.last_error: Optional[BaseException] = None

        self._auto = self.config.processing.auto
        self._delay = self.config.processing.debounce_ms / 1000.0
        self._owns_executor = executor is None
        self._executor = executor or make_executor(self.config)

        self._events: queue.SimpleQueue = queue.SimpleQueue()
        self._generation = 0
        self._current: Optional[Future] = None
        self._timer: Optional[threading.Timer] = None
        self._timer_token = 0
        self._loading = False

    # ── Status ─────────────────────────────────────────────────────────

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def state(self) -> SchedulerState:
        if self._current is not None:
            return SchedulerState.RUNNING
        if self._timer is not None:
            return SchedulerState.PENDING
        return SchedulerState.IDLE

    @property
    def is_processing(self) -> bool:
        return self._current is not None

    @property
    def is_loading(self) -> bool:
        return self._loading

    def set_loading(self, loading: bool) -> None:
        self._loading = loading
        self._notify()

    @property
    def auto_processing(self) -> bool:
        return self._auto

    def set_auto_processing(self, auto: bool) -> None:
        """Switch modes. Turning auto on processes the graph straight away."""
        if auto == self._auto:
            return
        self._auto = auto
        if auto:
            self.dispatch()
        else:
            self._cancel_timer()
            self._notify()

    # ── Triggers ───────────────────────────────────────────────────────

    def notify_parameter_change(self) -> None:
        """A node parameter or name changed: (re)arm the debounce timer."""
        if not self._auto:
            return
        self._cancel_timer()
        token = self._timer_token
        self._timer = threading.Timer(self._delay, self._events.put, args=(("timer", token),))
        self._timer.daemon = True
        self._timer.start()
        self._notify()

    def notify_structure_change(self) -> None:
        """A node or edge was added or removed: process immediately."""
        if self._auto:
            self.dispatch()

    def process(self) -> int:
        """Explicit user request to run, in either mode."""
        return self.dispatch()

    def dispatch(self) -> int:
        """Start a pass on a snapshot of the graph, superseding any in flight."""
        self._cancel_timer()
        self._generation += 1
        generation = self._generation
        if self._current is not None:
            # only a pass that has not started can be cancelled; a running one
            # finishes and is dropped as stale
            if self._current.cancel():
                logger.debug(f"Pass {generation} cancelled a queued pass")
            else:
                logger.debug(f"Pass {generation} supersedes an in-flight pass")

        message = transfer.serialize({
            "generation": generation,
            "graph": self.graph.to_dict(),
            "extent": self.config.extent.as_tuple(),
        })
        future = self._executor.submit(run_pass, message)
        self._current = future
        future.add_done_callback(lambda f: self._events.put(("done", generation, f)))
        logger.info(f"Dispatched pass {generation} ({len(self.graph.nodes)} nodes)")
        self._notify()
        return generation

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        # a timer that already fired carries the old token and is ignored
        self._timer_token += 1

    # ── Graph edits ────────────────────────────────────────────────────

    def add_node(self, kind: str, name: str = "", data: dict[str, Any] | None = None) -> Node:
        node = self.graph.add_node(kind, name=name, data=data)
        self.notify_structure_change()
        return node

    def remove_node(self, node_id: int) -> None:
        self.graph.remove_node(node_id)
        self.notify_structure_change()

    def connect(self, source: int, output: str, target: int, input: str) -> Edge:
        edge = self.graph.connect(source, output, target, input)
        self.notify_structure_change()
        return edge

    def disconnect(self, edge: Edge) -> None:
        self.graph.disconnect(edge)
        self.notify_structure_change()

    def edit_node(self, node_id: int, name: str | None = None, **data: Any) -> None:
        node = self.graph.get_node(node_id)
        if name is not None:
            node.name = name
        node.data.update(data)
        self.notify_parameter_change()

    # ── Event handling ─────────────────────────────────────────────────

    def poll(self) -> int:
        """Handle every queued event without blocking. Returns how many."""
        handled = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return handled
            self._handle(event)
            handled += 1

    def run_until_idle(self, timeout: float | None = None) -> bool:
        """Handle events until no pass is running or pending. False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.state != SchedulerState.IDLE:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            try:
                event = self._events.get(timeout=remaining)
            except queue.Empty:
                return False
            self._handle(event)
        self.poll()
        return True

    def _handle(self, event: tuple) -> None:
        if event[0] == "timer":
            if event[1] == self._timer_token and self._timer is not None:
                self._timer = None
                self.dispatch()
            return

        _, generation, future = event
        if generation != self._generation:
            logger.debug(f"Discarding stale pass {generation} (current {self._generation})")
            return
        self._current = None

        if future.cancelled():
            logger.warning(f"Pass {generation} was cancelled")
        elif future.exception() is not None:
            self.last_error = future.exception()
            logger.error(f"Pass {generation} failed: {self.last_error}")
        else:
            self.last_error = None
            self._apply(PassResult.from_message(future.result()))
        self._notify()

    def _apply(self, result: PassResult) -> None:
        """Annotate nodes, then deliver saves. A raising ``save`` is logged and
        the remaining saves are still delivered."""
        for node_id, message in result.errors.items():
            node = self.graph.nodes.get(node_id)
            if node is not None:
                node.error_message = message
        for node_id, grid in result.saves:
            if node_id not in self.graph.nodes:
                continue
            try:
                self.save(node_id, grid)
            except Exception:
                logger.exception(f"Saving layer for node {node_id} failed")
        logger.info(
            f"Applied pass {result.generation}: {len(result.saves)} layers, "
            f"{len(result.failed)} node errors"
        )

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update()

    # ── Lifecycle ──────────────────────────────────────────────────────

    def close(self) -> None:
        self._cancel_timer()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> ProcessingScheduler:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
