"""BuilderSession — the stateful editing session for one automator.

Wraps a ``Graph`` value with selection, dirty tracking and the
save/publish state machine. The canvas translates gestures into calls
on this object and renders its state back.

A session is constructed explicitly by whatever hosts the editor for a
given automator (one per editor, one per test); there is no shared
process-wide session.

States::

    CLEAN ──mutation──► DIRTY ──save()──► SAVING ──ok──► CLEAN
      ▲                   ▲                  │
      │                   └─────failure──────┘
      └── load() from any state

Edits made while a save is in flight are kept; the session then ends
the save in DIRTY instead of CLEAN. ``save``, ``publish`` and
``unpublish`` share one lock so requests for the automator never
overlap.

Usage::

    session = BuilderSession(service, actor_id="user-1")
    await session.load(automator_id)
    start_id = session.add_node("start", Position(x=0, y=0))
    ...
    await session.save()
    await session.publish()
"""

from __future__ import annotations

import asyncio
from enum import Enum
from logging import getLogger
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from automator.automator_model import (
    Automator,
    AutomatorDefinition,
    AutomatorNode,
    Position,
    ValidationResult,
    Viewport,
)
from automator.automator_service import AutomatorService
from automator.config import AutomatorConfig, get_automator_config
from automator.errors import AutomatorError, GraphModelError, ValidationFailed
from automator.graph_model import (
    Graph,
    add_node,
    connect,
    delete_edge,
    delete_node,
    move_node,
    set_edge_label,
    set_viewport,
    update_node_data,
)
from automator.graph_validator import validate
from automator.node_schema import AutomatorNodeType
from automator.viewport import screen_to_flow, zoom_around

logger = getLogger(__name__)


class SessionState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"


class BuilderSession:
    """Editing session over one automator's graph."""

    def __init__(
        self,
        service: AutomatorService,
        actor_id: str,
        config: Optional[AutomatorConfig] = None,
    ) -> None:
        self._service = service
        self._actor_id = actor_id
        self._config = config or get_automator_config()

        self._automator: Optional[Automator] = None
        self._graph = Graph.empty()
        self._saved_definition = AutomatorDefinition.empty()
        self._selected_node_id: Optional[str] = None

        # Dirty tracking: every mutation bumps the revision; a save
        # records the revision it persisted.
        self._revision = 0
        self._saved_revision = 0
        self._in_flight = False

        # Bumped on every load/reset. Queued save/publish/unpublish calls
        # issued for an earlier generation are dropped.
        self._generation = 0
        self._io_lock = asyncio.Lock()
        self._validation_result: Optional[ValidationResult] = None
        self._last_error: Optional[AutomatorError] = None
        self._load_warning: Optional[str] = None

    # ========================================================================
    # Properties
    # ========================================================================

    @property
    def automator(self) -> Optional[Automator]:
        return self._automator

    @property
    def automator_id(self) -> Optional[str]:
        return self._automator.id if self._automator else None

    @property
    def graph(self) -> Graph:
        return self._graph

    @property
    def viewport(self) -> Viewport:
        return self._graph.viewport

    @property
    def state(self) -> SessionState:
        if self._in_flight:
            return SessionState.SAVING
        if self._revision != self._saved_revision:
            return SessionState.DIRTY
        return SessionState.CLEAN

    @property
    def is_dirty(self) -> bool:
        return self._revision != self._saved_revision

    @property
    def is_saving(self) -> bool:
        return self._in_flight

    @property
    def has_unsaved_changes(self) -> bool:
        """Whether leaving the editor now should prompt the user."""
        return self.is_dirty or self._in_flight

    @property
    def selected_node_id(self) -> Optional[str]:
        return self._selected_node_id

    @property
    def selected_node(self) -> Optional[AutomatorNode]:
        if self._selected_node_id is None:
            return None
        return self._graph.nodes.get(self._selected_node_id)

    @property
    def saved_definition(self) -> AutomatorDefinition:
        """The definition as of the last successful load or save."""
        return self._saved_definition

    @property
    def validation_result(self) -> Optional[ValidationResult]:
        return self._validation_result

    @property
    def last_error(self) -> Optional[AutomatorError]:
        return self._last_error

    @property
    def load_warning(self) -> Optional[str]:
        """Set when the stored definition was unreadable and replaced."""
        return self._load_warning

    # ========================================================================
    # Loading
    # ========================================================================

    async def load(self, automator_id: str) -> Automator:
        """Load an automator, discarding the current graph and selection."""
        async with self._io_lock:
            automator = await self._service.load(automator_id)
            self.set_automator(automator)
        return automator

    def set_automator(self, automator: Automator) -> None:
        self._generation += 1
        self._automator = automator
        self._graph = Graph.from_definition(automator.definition)
        self._saved_definition = automator.definition
        self._selected_node_id = None
        self._revision = 0
        self._saved_revision = 0
        self._validation_result = None
        self._last_error = None
        self._load_warning = automator.definition_error
        if self._load_warning:
            logger.warning(
                f"[{automator.id}] Editing with an empty graph; stored definition "
                f"was unreadable: {self._load_warning}"
            )
        logger.info(
            f"[{automator.id}] Builder session loaded: "
            f"{len(self._graph.nodes)} nodes, {len(self._graph.edges)} edges"
        )

    def reset(self) -> None:
        self._generation += 1
        self._automator = None
        self._graph = Graph.empty()
        self._saved_definition = AutomatorDefinition.empty()
        self._selected_node_id = None
        self._revision = 0
        self._saved_revision = 0
        self._validation_result = None
        self._last_error = None
        self._load_warning = None

    # ========================================================================
    # Graph mutations (dirtying)
    # ========================================================================

    def add_node(
        self,
        node_type: Union[str, AutomatorNodeType],
        position: Position,
    ) -> Optional[str]:
        """Add a node and select it. Returns the new id, or ``None`` on error."""
        try:
            graph, node_id = add_node(self._graph, node_type, position)
        except GraphModelError as e:
            self._report_contract_violation("add_node", e)
            return None
        self._commit(graph)
        self._selected_node_id = node_id
        return node_id

    def add_node_at_screen_point(
        self,
        node_type: Union[str, AutomatorNodeType],
        screen_point: Position,
    ) -> Optional[str]:
        """Add a node dropped at a canvas-relative screen position."""
        try:
            position = screen_to_flow(screen_point, self.viewport, snap_grid=self._config.snap_grid)
        except ValueError as e:
            logger.error(f"[{self.automator_id}] add_node_at_screen_point ignored: {e}")
            return None
        return self.add_node(node_type, position)

    def update_node_data(self, node_id: str, partial: Mapping[str, Any]) -> bool:
        return self._apply("update_node_data", update_node_data, node_id, partial)

    def move_node(self, node_id: str, position: Position) -> bool:
        return self._apply("move_node", move_node, node_id, position)

    def delete_node(self, node_id: str) -> bool:
        deleted = self._apply("delete_node", delete_node, node_id)
        if deleted and self._selected_node_id == node_id:
            self._selected_node_id = None
        return deleted

    def connect(
        self,
        source: str,
        target: str,
        source_handle: Optional[str] = None,
        target_handle: Optional[str] = None,
    ) -> bool:
        return self._apply("connect", connect, source, source_handle, target, target_handle)

    def delete_edge(self, edge_id: str) -> bool:
        return self._apply("delete_edge", delete_edge, edge_id)

    def set_edge_label(self, edge_id: str, label: Optional[str]) -> bool:
        return self._apply("set_edge_label", set_edge_label, edge_id, label)

    # ========================================================================
    # Navigation (non-dirtying)
    # ========================================================================

    def select_node(self, node_id: Optional[str]) -> None:
        if node_id is not None and node_id not in self._graph.nodes:
            logger.error(f"[{self.automator_id}] select_node ignored: unknown node {node_id}")
            return
        self._selected_node_id = node_id

    def set_viewport(self, viewport: Viewport) -> bool:
        if viewport.zoom <= 0:
            logger.error(
                f"[{self.automator_id}] set_viewport ignored: zoom must be positive, "
                f"got {viewport.zoom}"
            )
            return False
        self._graph = set_viewport(self._graph, viewport)
        return True

    def zoom_to(self, zoom: float, anchor: Optional[Position] = None) -> Viewport:
        """Zoom around ``anchor`` (screen space), clamped to the configured range."""
        zoom = self._config.clamp_zoom(zoom)
        anchor = anchor or Position(x=0, y=0)
        viewport = zoom_around(self.viewport, anchor, zoom)
        self.set_viewport(viewport)
        return viewport

    # ========================================================================
    # Projection & validation
    # ========================================================================

    def get_definition(self) -> AutomatorDefinition:
        """Project the current graph into the serializable definition."""
        return self._graph.to_definition()

    def validate(self) -> ValidationResult:
        self._validation_result = validate(self._graph)
        return self._validation_result

    # ========================================================================
    # Persistence
    # ========================================================================

    async def save(self) -> Optional[Automator]:
        """Persist the current graph.

        Waits for any in-flight save/publish first. Nothing is sent if
        there are no unsaved edits by the time the lock is acquired, or
        if another automator was loaded in the meantime (returns ``None``).

        Raises:
            PersistenceError: the store failed; edits are kept and the
                session stays DIRTY.
        """
        self._require_automator()
        generation = self._generation
        async with self._io_lock:
            if self._superseded("save", generation):
                return None
            automator = self._automator
            if not self.is_dirty:
                return automator
            revision = self._revision
            definition = self.get_definition()
            updated = await self._run_io(
                "save",
                generation,
                self._service.save(automator.id, definition, self._actor_id),
            )
            if self._generation != generation:
                return updated
            self._saved_revision = revision
            self._saved_definition = definition
            self._automator = updated
            if self.is_dirty:
                logger.info(f"[{automator.id}] Saved; edits made during save are still pending")
            return updated

    async def publish(self) -> Optional[Automator]:
        """Save pending edits, validate, then publish.

        Returns ``None`` when another automator was loaded before the
        request could run.

        Raises:
            ValidationFailed: the graph is not valid; nothing is published.
            PersistenceError: the store failed.
        """
        self._require_automator()
        generation = self._generation
        if self.is_dirty:
            await self.save()
        if self._superseded("publish", generation):
            return None
        result = self.validate()
        if not result.valid:
            raise ValidationFailed(result.errors)
        return await self._transition("publish", generation, self._service.publish)

    async def unpublish(self) -> Optional[Automator]:
        self._require_automator()
        return await self._transition("unpublish", self._generation, self._service.unpublish)

    async def toggle_publish(self) -> Optional[Automator]:
        """Publish a draft or unpublish a published automator."""
        automator = self._require_automator()
        if automator.is_published:
            return await self.unpublish()
        return await self.publish()

    # ========================================================================
    # Internals
    # ========================================================================

    async def _transition(
        self,
        action: str,
        generation: int,
        call: Callable[[str, str], Awaitable[Automator]],
    ) -> Optional[Automator]:
        async with self._io_lock:
            if self._superseded(action, generation):
                return None
            automator = self._automator
            updated = await self._run_io(action, generation, call(automator.id, self._actor_id))
            if self._generation == generation:
                self._automator = updated
            return updated

    def _superseded(self, action: str, generation: int) -> bool:
        if self._generation == generation and self._automator is not None:
            return False
        logger.warning(
            f"[{self.automator_id}] {action} dropped: a different automator "
            f"was loaded after it was requested"
        )
        return True

    def _apply(self, action: str, fn: Callable[..., Graph], *args: Any) -> bool:
        try:
            graph = fn(self._graph, *args)
        except GraphModelError as e:
            self._report_contract_violation(action, e)
            return False
        self._commit(graph)
        return True

    def _commit(self, graph: Graph) -> None:
        if graph is self._graph:
            return
        self._graph = graph
        self._revision += 1
        self._validation_result = None

    def _report_contract_violation(self, action: str, error: GraphModelError) -> None:
        logger.error(f"[{self.automator_id}] {action} ignored: {error}")

    async def _run_io(
        self,
        action: str,
        generation: int,
        call: Awaitable[Automator],
    ) -> Automator:
        self._in_flight = True
        try:
            updated = await call
        except AutomatorError as e:
            logger.error(f"[{self.automator_id}] {action} failed: {e}")
            if self._generation == generation:
                self._last_error = e
                if action != "save":
                    # The user may retry; the next save re-sends the snapshot.
                    self._saved_revision = -1
            raise
        finally:
            self._in_flight = False
        if self._generation == generation:
            self._last_error = None
        return updated

    def _require_automator(self) -> Automator:
        if self._automator is None:
            raise RuntimeError("No automator loaded in this builder session")
        return self._automator
