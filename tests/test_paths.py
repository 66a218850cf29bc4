"""Tests for introduction paths and mutual connections."""
from datetime import datetime, timedelta

import pytest

from be.network.graph import ContactRecord, build_network_graph
from be.network.paths import find_all_introduction_paths, find_introduction_path, find_mutual_connections

NOW = datetime(2025, 6, 16, 12, 0, 0)
NAMES = {1: "Alice", 2: "Bob", 3: "Carol", 4: "Dave", 5: "Erin", 6: "Frank"}


def make_network(edges, last_contacts=None):
    """Build a graph where each (a, b) edge is declared by ``a``."""
    last_contacts = last_contacts or {}
    connections = {node_id: [] for node_id in NAMES}
    for a, b in edges:
        connections[a].append(NAMES[b])
    records = [
        ContactRecord(
            id=node_id,
            name=name,
            linkedin_connections=connections[node_id],
            last_contact=last_contacts.get(node_id),
        )
        for node_id, name in NAMES.items()
    ]
    network, _ = build_network_graph(records, now=NOW)
    return network


@pytest.fixture
def chain():
    return make_network([(1, 2), (2, 3), (3, 4), (4, 5), (5, 6)])


@pytest.fixture
def diamond():
    return make_network([(1, 2), (2, 4), (1, 3), (3, 4), (1, 4)])


class TestFindIntroductionPath:
    """Shortest warm path between two contacts."""

    def test_two_hop_path(self, chain):
        path = find_introduction_path(chain, 1, 3)

        assert [c.id for c in path.contacts] == [1, 2, 3]
        assert path.length == 2
        assert [c.id for c in path.intermediaries] == [2]
        # default weight 0.3, one extra hop costs 20%
        assert path.warmth_score == 24

    def test_direct_connection_has_no_penalty(self, chain):
        path = find_introduction_path(chain, 1, 2)
        assert path.length == 1
        assert path.intermediaries == []
        assert path.warmth_score == 30

    def test_future_last_contact_stays_in_range(self):
        network = make_network([(1, 2)], last_contacts={1: NOW + timedelta(days=100)})
        assert find_introduction_path(network, 1, 2).warmth_score == 100

    def test_beyond_max_depth(self, chain):
        assert find_introduction_path(chain, 1, 6) is None
        assert find_introduction_path(chain, 1, 6, max_depth=5).length == 5

    @pytest.mark.parametrize("from_id,to_id", [(1, 1), (1, 99), (99, 1)])
    def test_degenerate_endpoints(self, chain, from_id, to_id):
        assert find_introduction_path(chain, from_id, to_id) is None

    def test_unreachable(self):
        network = make_network([(1, 2), (3, 4)])
        assert find_introduction_path(network, 1, 4) is None

    def test_last_interaction_in_path(self):
        recent = NOW - timedelta(days=2)
        older = NOW - timedelta(days=20)
        network = make_network([(1, 2), (2, 3)], last_contacts={1: older, 2: recent})

        path = find_introduction_path(network, 1, 3)
        assert path.last_interaction_in_path == recent


class TestFindAllIntroductionPaths:
    """Alternative paths ranked by warmth."""

    def test_warmest_first(self, diamond):
        paths = find_all_introduction_paths(diamond, 1, 4)

        assert len(paths) == 3
        assert [c.id for c in paths[0].contacts] == [1, 4]
        assert paths[0].warmth_score == 30
        assert {tuple(c.id for c in p.contacts) for p in paths[1:]} == {(1, 2, 4), (1, 3, 4)}

    def test_max_paths(self, diamond):
        assert len(find_all_introduction_paths(diamond, 1, 4, max_paths=2)) == 2

    def test_same_endpoint(self, diamond):
        assert find_all_introduction_paths(diamond, 1, 1) == []


class TestFindMutualConnections:
    """Contacts that share neighbours with the subject."""

    def test_shared_neighbours(self):
        network = make_network([(1, 2), (2, 4), (1, 3), (3, 4)])
        mutuals = find_mutual_connections(network, 1)

        assert len(mutuals) == 1
        assert mutuals[0].contact.id == 4
        assert sorted(mutuals[0].mutual_with) == [2, 3]
        assert mutuals[0].mutual_count == 2

    def test_unknown_contact(self, chain):
        assert find_mutual_connections(chain, 99) == []
