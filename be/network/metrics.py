"""Network-level metrics, key connectors, communities and influence ranking.

All measures run on graphs of at most a few hundred contacts, so exact
algorithms are used throughout (no sampling except for average path length).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import combinations

import networkx as nx

from be.config import settings
from be.network.graph import NetworkGraph, NetworkNode
from be.network.paths import find_introduction_path

logger = logging.getLogger(__name__)


@dataclass
class NetworkMetrics:
    """Summary statistics for the whole network."""
    total_nodes: int = 0
    total_edges: int = 0
    avg_degree: float = 0.0
    network_density: float = 0.0
    largest_component_size: int = 0
    avg_path_length: float = 0.0
    key_connectors: list[NetworkNode] = field(default_factory=list)


@dataclass
class Community:
    """A cluster of closely connected contacts."""
    id: int
    members: list[NetworkNode]
    density: float
    avg_degree: float


@dataclass
class InfluenceFactors:
    degree: float
    betweenness: float
    clustering: float
    eigenvector: float


@dataclass
class InfluenceScore:
    """Weighted blend of centrality measures, scaled to 0-100."""
    node_id: int
    score: float
    rank: int
    factors: InfluenceFactors


def calculate_betweenness_centrality(network: NetworkGraph) -> dict[int, float]:
    """Normalized betweenness, written onto the nodes as a side effect."""
    if len(network) == 0:
        return {}
    betweenness = nx.betweenness_centrality(network.graph, normalized=True)
    for node_id, value in betweenness.items():
        network.nodes[node_id].betweenness_centrality = value
    return betweenness


def calculate_clustering_coefficients(network: NetworkGraph) -> dict[int, float]:
    """Local clustering coefficients, written onto the nodes as a side effect."""
    if len(network) == 0:
        return {}
    clustering = nx.clustering(network.graph)
    for node_id, value in clustering.items():
        network.nodes[node_id].clustering_coefficient = float(value)
    return {node_id: float(value) for node_id, value in clustering.items()}


def find_largest_component(network: NetworkGraph) -> int:
    """Size of the largest connected component (0 for an empty graph)."""
    return max((len(c) for c in nx.connected_components(network.graph)), default=0)


def calculate_average_path_length(network: NetworkGraph) -> float:
    """Mean hop count between reachable pairs of a node sample.

    Uses the first ``avg_path_sample_size`` nodes and ignores pairs further
    apart than ``avg_path_max_depth`` hops.
    """
    cfg = settings.network
    sampled = list(network.nodes)[:cfg.avg_path_sample_size]
    if len(sampled) < 2:
        return 0.0

    total_length = 0
    path_count = 0
    for source, target in combinations(sampled, 2):
        path = find_introduction_path(network, source, target, cfg.avg_path_max_depth)
        if path is not None:
            total_length += path.length
            path_count += 1

    return total_length / path_count if path_count else 0.0


def calculate_network_metrics(network: NetworkGraph) -> NetworkMetrics:
    """Compute network-wide statistics.

    Also refreshes every node's betweenness and clustering coefficient.
    """
    total_nodes = len(network)
    if total_nodes == 0:
        return NetworkMetrics()

    total_edges = len(network.edges)
    avg_degree = sum(node.degree for node in network.nodes.values()) / total_nodes

    possible_edges = total_nodes * (total_nodes - 1) / 2
    density = total_edges / possible_edges if possible_edges > 0 else 0.0

    calculate_betweenness_centrality(network)
    calculate_clustering_coefficients(network)

    key_connectors = sorted(
        network.nodes.values(),
        key=lambda n: n.betweenness_centrality,
        reverse=True,
    )[:settings.network.key_connector_count]

    return NetworkMetrics(
        total_nodes=total_nodes,
        total_edges=total_edges,
        avg_degree=avg_degree,
        network_density=density,
        largest_component_size=find_largest_component(network),
        avg_path_length=calculate_average_path_length(network),
        key_connectors=key_connectors,
    )


def get_key_connectors(
    network: NetworkGraph,
    min_degree: int | None = None,
    limit: int | None = None,
) -> list[NetworkNode]:
    """Well-connected contacts ranked by how often they bridge others."""
    cfg = settings.network
    min_degree = cfg.connector_min_degree if min_degree is None else min_degree
    limit = cfg.connector_limit if limit is None else limit

    calculate_betweenness_centrality(network)
    candidates = [node for node in network.nodes.values() if node.degree >= min_degree]
    candidates.sort(key=lambda n: n.betweenness_centrality, reverse=True)
    return candidates[:limit]


def get_clustering_coefficients(network: NetworkGraph) -> dict[int, float]:
    return calculate_clustering_coefficients(network)


def detect_communities(network: NetworkGraph) -> list[Community]:
    """Partition contacts into communities by Louvain modularity, largest first.

    The seed is fixed from config so the same contact book always yields the
    same partition.
    """
    if len(network) == 0:
        return []

    partition = nx.community.louvain_communities(network.graph, seed=settings.network.community_seed)

    communities: list[Community] = []
    for member_ids in partition:
        members = [network.nodes[node_id] for node_id in sorted(member_ids)]
        size = len(member_ids)

        internal_edges = network.graph.subgraph(member_ids).number_of_edges()
        total_degree = sum(network.graph.degree(node_id) for node_id in member_ids)
        max_edges = size * (size - 1) / 2

        communities.append(Community(
            id=min(member_ids),
            members=members,
            density=internal_edges / max_edges if max_edges > 0 else 0.0,
            avg_degree=total_degree / size if size else 0.0,
        ))

    communities.sort(key=lambda c: (-len(c.members), c.id))
    logger.info(f"Detected {len(communities)} communities across {len(network)} contacts")
    return communities


def calculate_eigenvector_centrality(network: NetworkGraph) -> dict[int, float]:
    """Eigenvector centrality by power iteration.

    Graphs without edges have no dominant eigenvector; every node scores 0.
    Non-convergence within ``eigenvector_max_iter`` also yields zeros.
    """
    cfg = settings.network
    zeros = {node_id: 0.0 for node_id in network.nodes}
    if network.graph.number_of_edges() == 0:
        return zeros

    try:
        return nx.eigenvector_centrality(
            network.graph,
            max_iter=cfg.eigenvector_max_iter,
            tol=cfg.eigenvector_tolerance,
        )
    except nx.PowerIterationFailedConvergence as e:
        logger.warning(f"Eigenvector centrality did not converge, scoring it as 0: {e}")
        return zeros


def calculate_influence_scores(network: NetworkGraph) -> list[InfluenceScore]:
    """Rank contacts by a weighted blend of degree, betweenness, clustering and eigenvector centrality."""
    cfg = settings.network
    n = len(network)
    if n == 0:
        return []

    betweenness = calculate_betweenness_centrality(network)
    clustering = calculate_clustering_coefficients(network)
    eigenvector = calculate_eigenvector_centrality(network)

    scores: list[InfluenceScore] = []
    for node_id in network.nodes:
        factors = InfluenceFactors(
            degree=network.graph.degree(node_id) / n,
            betweenness=betweenness.get(node_id, 0.0),
            clustering=clustering.get(node_id, 0.0),
            eigenvector=eigenvector.get(node_id, 0.0),
        )
        raw = (
            factors.degree * cfg.influence_degree_weight
            + factors.betweenness * cfg.influence_betweenness_weight
            + factors.clustering * cfg.influence_clustering_weight
            + factors.eigenvector * cfg.influence_eigenvector_weight
        )
        scores.append(InfluenceScore(node_id=node_id, score=raw * 100, rank=0, factors=factors))

    scores.sort(key=lambda s: s.score, reverse=True)
    for rank, item in enumerate(scores, start=1):
        item.rank = rank

    return scores
