"""Tests for contact graph construction."""
import math
from datetime import datetime, timedelta

import pytest

from be.network.graph import ContactRecord, build_network_graph, calculate_edge_weight

NOW = datetime(2025, 6, 16, 12, 0, 0)


class TestEdgeWeight:
    """Recency-based relationship weight."""

    def test_never_contacted_uses_default(self):
        assert calculate_edge_weight(None, NOW) == 0.3

    def test_contacted_today_is_full_strength(self):
        assert calculate_edge_weight(NOW, NOW) == 1.0

    def test_decays_exponentially(self):
        weight = calculate_edge_weight(NOW - timedelta(days=30), NOW)
        assert weight == pytest.approx(math.exp(-0.6))

    def test_floored_for_old_contacts(self):
        assert calculate_edge_weight(NOW - timedelta(days=200), NOW) == 0.1

    def test_future_contact_capped_at_full_strength(self):
        assert calculate_edge_weight(NOW + timedelta(days=100), NOW) == 1.0


class TestBuildNetworkGraph:
    """Graph building and connection diagnostics."""

    @pytest.fixture
    def contacts(self):
        return [
            ContactRecord(
                id=1,
                name="Alice Ray",
                linkedin_connections=["Bob Stone", "Unknown Person", "Alice Ray"],
                last_contact=NOW - timedelta(days=30),
            ),
            ContactRecord(id=2, name="Bob Stone", linkedin_connections=["Alice Ray"]),
            ContactRecord(id=3, name="Carol King"),
        ]

    def test_nodes_and_undirected_edges(self, contacts):
        network, _ = build_network_graph(contacts, now=NOW)

        assert set(network.nodes) == {1, 2, 3}
        assert len(network.edges) == 1
        assert network.neighbors(1) == {2}
        assert network.neighbors(2) == {1}

    def test_degrees(self, contacts):
        network, _ = build_network_graph(contacts, now=NOW)
        assert [network.nodes[i].degree for i in (1, 2, 3)] == [1, 1, 0]

    def test_edge_weight_from_declaring_contact(self, contacts):
        network, _ = build_network_graph(contacts, now=NOW)
        assert network.edge_weight(1, 2) == pytest.approx(math.exp(-0.6))

    def test_diagnostics(self, contacts):
        _, diagnostics = build_network_graph(contacts, now=NOW)

        # Self-reference is skipped and not counted
        assert diagnostics.total_connection_references == 3
        assert diagnostics.matched_connections == 2
        assert diagnostics.unmatched_connections == ["Unknown Person"]
        assert diagnostics.match_rate == 67
        assert [n.id for n in diagnostics.isolated_contacts] == [3]

    def test_self_reference_by_id_is_ignored(self):
        network, diagnostics = build_network_graph(
            [ContactRecord(id=1, name="Alice Ray", linkedin_connections=["1"])],
            now=NOW,
        )
        assert len(network.edges) == 0
        assert diagnostics.total_connection_references == 0
        assert diagnostics.match_rate == 0

    def test_unknown_id_like_reference_is_unmatched(self):
        _, diagnostics = build_network_graph(
            [ContactRecord(id=1, name="Alice Ray", linkedin_connections=["42"])],
            now=NOW,
        )
        assert diagnostics.unmatched_connections == ["42"]

    def test_empty_contact_book(self):
        network, diagnostics = build_network_graph([], now=NOW)
        assert len(network) == 0
        assert diagnostics.match_rate == 0
        assert diagnostics.isolated_contacts == []
