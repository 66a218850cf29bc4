"""Tests for network metrics, connectors, communities and influence."""
from datetime import datetime

import networkx as nx
import pytest

from be.network.graph import ContactRecord, NetworkGraph, build_network_graph
from be.network.metrics import (
    calculate_eigenvector_centrality,
    calculate_influence_scores,
    calculate_network_metrics,
    detect_communities,
    get_clustering_coefficients,
    get_key_connectors,
)

NOW = datetime(2025, 6, 16, 12, 0, 0)


def make_network(names, edges):
    connections = {node_id: [] for node_id in names}
    for a, b in edges:
        connections[a].append(names[b])
    records = [
        ContactRecord(id=node_id, name=name, linkedin_connections=connections[node_id])
        for node_id, name in names.items()
    ]
    network, _ = build_network_graph(records, now=NOW)
    return network


@pytest.fixture
def line():
    """Alice - Bob - Carol."""
    return make_network({1: "Alice", 2: "Bob", 3: "Carol"}, [(1, 2), (2, 3)])


@pytest.fixture
def two_triangles():
    """Two triangles joined by the Carol - Dave bridge."""
    names = {1: "Alice", 2: "Bob", 3: "Carol", 4: "Dave", 5: "Erin", 6: "Frank"}
    edges = [(1, 2), (2, 3), (1, 3), (4, 5), (5, 6), (4, 6), (3, 4)]
    return make_network(names, edges)


class TestNetworkMetrics:
    """Network-wide statistics."""

    def test_empty_network(self):
        metrics = calculate_network_metrics(NetworkGraph())
        assert metrics.total_nodes == 0
        assert metrics.key_connectors == []

    def test_line(self, line):
        metrics = calculate_network_metrics(line)

        assert metrics.total_nodes == 3
        assert metrics.total_edges == 2
        assert metrics.avg_degree == pytest.approx(4 / 3)
        assert metrics.network_density == pytest.approx(2 / 3)
        assert metrics.largest_component_size == 3
        assert metrics.avg_path_length == pytest.approx(4 / 3)
        assert metrics.key_connectors[0].id == 2
        assert line.nodes[2].betweenness_centrality == pytest.approx(1.0)

    def test_single_node(self):
        network = make_network({1: "Alice"}, [])
        metrics = calculate_network_metrics(network)
        assert metrics.network_density == 0.0
        assert metrics.avg_path_length == 0.0
        assert metrics.largest_component_size == 1


class TestKeyConnectors:
    def test_min_degree_filter(self, line):
        assert [n.id for n in get_key_connectors(line, min_degree=2)] == [2]
        assert get_key_connectors(line) == []

    def test_limit(self, two_triangles):
        connectors = get_key_connectors(two_triangles, min_degree=2, limit=2)
        assert {n.id for n in connectors} == {3, 4}


class TestClustering:
    def test_triangle_members_fully_clustered(self, two_triangles):
        clustering = get_clustering_coefficients(two_triangles)
        assert clustering[1] == pytest.approx(1.0)
        assert clustering[3] == pytest.approx(1 / 3)

    def test_empty(self):
        assert get_clustering_coefficients(NetworkGraph()) == {}


class TestCommunities:
    def test_two_triangles_split(self, two_triangles):
        communities = detect_communities(two_triangles)

        assert [c.id for c in communities] == [1, 4]
        assert [[m.id for m in c.members] for c in communities] == [[1, 2, 3], [4, 5, 6]]
        assert communities[0].density == pytest.approx(1.0)
        assert communities[0].avg_degree == pytest.approx(7 / 3)

    def test_deterministic(self, two_triangles):
        first = [[m.id for m in c.members] for c in detect_communities(two_triangles)]
        second = [[m.id for m in c.members] for c in detect_communities(two_triangles)]
        assert first == second

    def test_empty(self):
        assert detect_communities(NetworkGraph()) == []


class TestInfluence:
    def test_edgeless_eigenvector_is_zero(self):
        network = make_network({1: "Alice", 2: "Bob"}, [])
        assert calculate_eigenvector_centrality(network) == {1: 0.0, 2: 0.0}

    def test_non_convergence_scores_zero(self, line, monkeypatch):
        def fail(*args, **kwargs):
            raise nx.PowerIterationFailedConvergence(1)

        monkeypatch.setattr(nx, "eigenvector_centrality", fail)
        assert calculate_eigenvector_centrality(line) == {1: 0.0, 2: 0.0, 3: 0.0}

    def test_hub_ranks_first(self, line):
        scores = calculate_influence_scores(line)

        assert [s.rank for s in scores] == [1, 2, 3]
        assert scores[0].node_id == 2
        assert scores[0].factors.degree == pytest.approx(2 / 3)
        assert scores[0].factors.betweenness == pytest.approx(1.0)
        assert 0 <= scores[-1].score <= scores[0].score <= 100

    def test_empty(self):
        assert calculate_influence_scores(NetworkGraph()) == []
