"""Shared pytest fixtures for automator tests."""

from typing import Dict, Tuple

import pytest
import pytest_asyncio

from automator.automator_model import Automator, Position
from automator.automator_service import AutomatorService
from automator.automator_store import InMemoryAutomatorStore
from automator.builder_session import BuilderSession
from automator.config import AutomatorConfig
from automator.graph_model import Graph, add_node, connect, update_node_data

ACTOR = "user-1"
TEAM = "team-1"


class FailingStore(InMemoryAutomatorStore):
    """Accepts reads; writes fail once ``broken`` is set."""

    def __init__(self):
        super().__init__()
        self.broken = False

    def put(self, document):
        if self.broken:
            raise OSError("disk full")
        super().put(document)


@pytest.fixture
def config(tmp_path) -> AutomatorConfig:
    """Config pointing at a throwaway directory."""
    return AutomatorConfig(storage_dir=tmp_path / "automators")


@pytest.fixture
def store() -> InMemoryAutomatorStore:
    return InMemoryAutomatorStore()


@pytest.fixture
def service(store, config) -> AutomatorService:
    return AutomatorService(store=store, config=config)


@pytest_asyncio.fixture
async def automator(service) -> Automator:
    """A freshly created, empty draft automator."""
    return await service.create(TEAM, "Listing intake", actor_id=ACTOR)


@pytest_asyncio.fixture
async def session(service, config, automator) -> BuilderSession:
    """A builder session with the empty draft loaded."""
    session = BuilderSession(service, actor_id=ACTOR, config=config)
    await session.load(automator.id)
    return session


@pytest.fixture
def showing_graph() -> Tuple[Graph, Dict[str, str]]:
    """start → decision(yes → end success, no → collect date → end failure)."""
    graph = Graph.empty()
    ids: Dict[str, str] = {}

    graph, ids["start"] = add_node(graph, "start", Position(x=240, y=0))
    graph, ids["decision"] = add_node(graph, "decision", Position(x=240, y=150))
    graph, ids["success"] = add_node(graph, "end", Position(x=60, y=300))
    graph, ids["collect"] = add_node(graph, "dataCollection", Position(x=420, y=300))
    graph, ids["failure"] = add_node(graph, "end", Position(x=420, y=450))

    graph = update_node_data(graph, ids["decision"], {
        "question": "Has a buyer?",
        "storeAs": "has_buyer",
    })
    graph = update_node_data(graph, ids["success"], {"outcome": "success"})
    graph = update_node_data(graph, ids["collect"], {
        "fieldName": "showing_date",
        "fieldType": "date",
        "required": True,
    })
    graph = update_node_data(graph, ids["failure"], {"outcome": "failure"})

    graph = connect(graph, ids["start"], None, ids["decision"])
    graph = connect(graph, ids["decision"], "yes", ids["success"])
    graph = connect(graph, ids["decision"], "no", ids["collect"])
    graph = connect(graph, ids["collect"], None, ids["failure"])
    return graph, ids
