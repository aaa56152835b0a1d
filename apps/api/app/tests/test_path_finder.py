from __future__ import annotations

import pytest

from app.core.errors import InvalidInputError
from app.services.graph.records import EdgeRecord
from app.services.paths.finder import build_weighted_graph, find_paths, search_paths


def _edge(edge_id: str, left: str, right: str, strength: float, *, verified: bool = True, kind: str = "colleague") -> EdgeRecord:
    return EdgeRecord(
        relationship_id=edge_id,
        contact_id=left,
        related_contact_id=right,
        relationship_type=kind,
        strength=strength,
        is_verified=verified,
    )


def test_direct_strong_edge_is_first_with_cost_point_one() -> None:
    graph = build_weighted_graph(
        [
            _edge("e-1", "a", "b", 0.9),
            _edge("e-2", "a", "c", 0.8),
            _edge("e-3", "c", "b", 0.8),
        ],
        0.2,
    )

    paths = search_paths(graph, "a", "b", max_degrees=4)

    assert paths[0][0] == ("a", "b")
    assert paths[0][1] == pytest.approx(0.1)
    assert paths[1][0] == ("a", "c", "b")
    assert paths[1][1] == pytest.approx(0.4)


def test_disconnected_components_return_no_paths() -> None:
    graph = build_weighted_graph([_edge("e-1", "a", "b", 0.9), _edge("e-2", "c", "d", 0.9)], 0.2)

    assert search_paths(graph, "a", "d", max_degrees=4) == []


def test_weak_and_unverified_edges_are_excluded() -> None:
    graph = build_weighted_graph(
        [
            _edge("e-1", "a", "b", 0.1),
            _edge("e-2", "a", "c", 0.9, verified=False),
            _edge("e-3", "a", "d", 0.5),
        ],
        0.2,
    )

    assert set(graph) == {"a", "d"}


def test_edges_are_traversed_in_both_directions() -> None:
    graph = build_weighted_graph([_edge("e-1", "b", "a", 0.7, kind="friend")], 0.2)

    paths = search_paths(graph, "a", "b", max_degrees=1)

    assert paths == [(("a", "b"), pytest.approx(0.3), ("friend",))]


def test_max_degrees_limits_hops() -> None:
    chain = [_edge(f"e-{index}", f"n{index}", f"n{index + 1}", 0.9) for index in range(5)]
    graph = build_weighted_graph(chain, 0.2)

    assert search_paths(graph, "n0", "n5", max_degrees=4) == []
    found = search_paths(graph, "n0", "n5", max_degrees=5)
    assert found[0][0] == ("n0", "n1", "n2", "n3", "n4", "n5")


def test_at_most_three_paths_sorted_by_cost() -> None:
    edges = []
    for index, strength in enumerate((0.9, 0.8, 0.7, 0.6)):
        middle = f"m{index}"
        edges.append(_edge(f"l-{index}", "a", middle, strength))
        edges.append(_edge(f"r-{index}", middle, "z", strength))
    graph = build_weighted_graph(edges, 0.2)

    paths = search_paths(graph, "a", "z", max_degrees=4)

    assert len(paths) == 3
    assert [path[0][1] for path in paths] == ["m0", "m1", "m2"]
    costs = [path[1] for path in paths]
    assert costs == sorted(costs)


def test_find_paths_rejects_bad_arguments() -> None:
    with pytest.raises(InvalidInputError):
        find_paths(None, account_id="acct-1", from_id="a", to_id="b", max_degrees=7)  # type: ignore[arg-type]
    with pytest.raises(InvalidInputError):
        find_paths(None, account_id="acct-1", from_id="a", to_id="b", min_strength=1.5)  # type: ignore[arg-type]
    with pytest.raises(InvalidInputError):
        find_paths(None, account_id="acct-1", from_id="a", to_id="a")  # type: ignore[arg-type]
