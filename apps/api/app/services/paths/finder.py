from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError
from app.services.graph.records import ContactRecord, EdgeRecord
from app.services.graph.store import GraphStore

logger = logging.getLogger(__name__)

MAX_DEGREES_CEILING = 6


@dataclass(frozen=True)
class PathResult:
    contact_ids: tuple[str, ...]
    total_cost: float
    relationship_types: tuple[str, ...]
    contacts: tuple[dict, ...] = field(default_factory=tuple)

    @property
    def hops(self) -> int:
        return len(self.contact_ids) - 1

    @property
    def mean_cost(self) -> float:
        return round(self.total_cost / len(self.relationship_types), 6) if self.relationship_types else 0.0

    def as_dict(self) -> dict:
        return {
            "contact_ids": list(self.contact_ids),
            "contacts": list(self.contacts),
            "path_length": self.hops,
            "total_cost": self.total_cost,
            "mean_cost": self.mean_cost,
            "relationship_types": list(self.relationship_types),
        }


def build_weighted_graph(edges: list[EdgeRecord], min_strength: float) -> dict[str, list[tuple[str, float, str]]]:
    """Undirected adjacency over verified edges at or above ``min_strength``; cost is 1 - strength."""
    graph: dict[str, list[tuple[str, float, str]]] = {}
    for edge in edges:
        if not edge.is_verified or edge.strength < min_strength:
            continue
        cost = 1.0 - edge.strength
        graph.setdefault(edge.contact_id, []).append((edge.related_contact_id, cost, edge.relationship_type))
        graph.setdefault(edge.related_contact_id, []).append((edge.contact_id, cost, edge.relationship_type))
    return graph


def search_paths(
    graph: dict[str, list[tuple[str, float, str]]],
    from_id: str,
    to_id: str,
    *,
    max_degrees: int,
    max_paths: int = 3,
) -> list[tuple[tuple[str, ...], float, tuple[str, ...]]]:
    # Equal-cost entries pop in push order, so the first discovered path wins a tie.
    counter = itertools.count()
    frontier: list[tuple[float, int, str, tuple[str, ...], tuple[str, ...]]] = [(0.0, next(counter), from_id, (from_id,), ())]
    expanded: set[tuple[str, int]] = set()
    found: list[tuple[tuple[str, ...], float, tuple[str, ...]]] = []

    while frontier and len(found) < max_paths:
        cost, _, node, path, types = heapq.heappop(frontier)
        if len(path) > max_degrees + 1:
            continue
        if node == to_id:
            found.append((path, round(cost, 6), types))
            continue

        key = (node, len(path))
        if key in expanded:
            continue
        expanded.add(key)

        for neighbour, step_cost, relationship_type in graph.get(node, ()):
            if neighbour in path:
                continue
            heapq.heappush(
                frontier,
                (cost + step_cost, next(counter), neighbour, path + (neighbour,), types + (relationship_type,)),
            )

    # Stable sort keeps discovery order among equal costs.
    found.sort(key=lambda item: item[1])
    return found


def _contact_summary(contact: ContactRecord | None, contact_id: str) -> dict:
    if contact is None:
        return {"contact_id": contact_id, "name": contact_id, "company": None, "position": None}
    return {
        "contact_id": contact.contact_id,
        "name": contact.full_name,
        "company": contact.company,
        "position": contact.position,
    }


def find_paths(
    db: Session,
    *,
    account_id: str,
    from_id: str,
    to_id: str,
    max_degrees: int = 4,
    min_strength: float = 0.2,
    max_paths: int = 3,
) -> list[PathResult]:
    if not 1 <= max_degrees <= MAX_DEGREES_CEILING:
        raise InvalidInputError(f"max_degrees must be between 1 and {MAX_DEGREES_CEILING}")
    if not 0.0 <= min_strength <= 1.0:
        raise InvalidInputError("min_strength must be within [0, 1]")
    if from_id == to_id:
        raise InvalidInputError("from and to contacts must differ")

    store = GraphStore(db)
    store.get_contact(account_id, from_id)
    store.get_contact(account_id, to_id)

    edges = store.list_edges(account_id, min_strength=min_strength, verified_only=True)
    graph = build_weighted_graph(edges, min_strength)
    raw_paths = search_paths(graph, from_id, to_id, max_degrees=max_degrees, max_paths=max_paths)
    if not raw_paths:
        logger.info("path_search_no_result", extra={"from_id": from_id, "to_id": to_id, "max_degrees": max_degrees})
        return []

    path_ids = sorted({contact_id for path, _, _ in raw_paths for contact_id in path})
    contacts = {item.contact_id: item for item in store.list_contacts(account_id, path_ids, status=None)}
    return [
        PathResult(
            contact_ids=path,
            total_cost=cost,
            relationship_types=types,
            contacts=tuple(_contact_summary(contacts.get(contact_id), contact_id) for contact_id in path),
        )
        for path, cost, types in raw_paths
    ]
