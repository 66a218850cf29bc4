"""Warm introduction paths and mutual connections."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from itertools import islice

import networkx as nx

from be.config import settings
from be.network.graph import NetworkGraph, NetworkNode
from be.pipelines.normalization import round_half_up

logger = logging.getLogger(__name__)


@dataclass
class IntroductionPath:
    """A chain of contacts from a source to a target."""
    contacts: list[NetworkNode]
    length: int  # hops
    warmth_score: int  # 0-100, higher is warmer
    intermediaries: list[NetworkNode] = field(default_factory=list)
    last_interaction_in_path: datetime | None = None


@dataclass
class MutualConnection:
    """Another contact and the neighbours it shares with the subject."""
    contact: NetworkNode
    mutual_with: list[int]
    mutual_count: int


def _is_searchable(network: NetworkGraph, from_id: int, to_id: int) -> bool:
    return from_id != to_id and from_id in network.nodes and to_id in network.nodes


def construct_introduction_path(network: NetworkGraph, node_ids: list[int]) -> IntroductionPath:
    """Score a path by its edge weights, penalising every extra hop."""
    cfg = settings.network
    contacts = [network.nodes[node_id] for node_id in node_ids]

    total_weight = 0.0
    for u, v in zip(node_ids, node_ids[1:]):
        weight = network.edge_weight(u, v)
        total_weight += weight if weight is not None else cfg.default_edge_weight

    avg_weight = total_weight / (len(node_ids) - 1)
    length_penalty = max(0.0, 1 - (len(node_ids) - 2) * cfg.path_length_penalty)

    interactions = [
        data["last_interaction"]
        for _, _, data in network.graph.subgraph(node_ids).edges(data=True)
        if data.get("last_interaction") is not None
    ]

    return IntroductionPath(
        contacts=contacts,
        length=len(node_ids) - 1,
        warmth_score=round_half_up(avg_weight * length_penalty * 100),
        intermediaries=contacts[1:-1],
        last_interaction_in_path=max(interactions) if interactions else None,
    )


def find_introduction_path(
    network: NetworkGraph,
    from_id: int,
    to_id: int,
    max_depth: int | None = None,
) -> IntroductionPath | None:
    """Shortest introduction chain of at most ``max_depth`` hops.

    Returns ``None`` for identical or unknown endpoints and when the target
    is unreachable within the hop limit.
    """
    max_depth = settings.network.max_path_depth if max_depth is None else max_depth
    if not _is_searchable(network, from_id, to_id):
        return None

    try:
        node_ids = nx.bidirectional_shortest_path(network.graph, from_id, to_id)
    except nx.NetworkXNoPath:
        return None

    if len(node_ids) - 1 > max_depth:
        return None
    return construct_introduction_path(network, node_ids)


def find_all_introduction_paths(
    network: NetworkGraph,
    from_id: int,
    to_id: int,
    max_depth: int | None = None,
    max_paths: int | None = None,
) -> list[IntroductionPath]:
    """Up to ``max_paths`` simple paths of at most ``max_depth`` hops, warmest first.

    Paths are collected in depth-first order and the first ``max_paths`` found
    are ranked, so a large network does not enumerate every simple path.
    """
    cfg = settings.network
    max_depth = cfg.max_path_depth if max_depth is None else max_depth
    max_paths = cfg.max_paths if max_paths is None else max_paths
    if not _is_searchable(network, from_id, to_id):
        return []

    candidates = nx.all_simple_paths(network.graph, from_id, to_id, cutoff=max_depth)
    paths = [construct_introduction_path(network, list(p)) for p in islice(candidates, max_paths)]
    paths.sort(key=lambda p: p.warmth_score, reverse=True)

    logger.debug(f"Found {len(paths)} introduction paths {from_id} -> {to_id}")
    return paths


def find_mutual_connections(network: NetworkGraph, contact_id: int) -> list[MutualConnection]:
    """Contacts sharing at least one neighbour with ``contact_id``, most shared first."""
    if contact_id not in network.nodes:
        return []

    own_neighbors = network.neighbors(contact_id)
    mutuals: list[MutualConnection] = []

    for other_id, node in network.nodes.items():
        if other_id == contact_id:
            continue

        shared = [n for n in network.graph.adj[other_id] if n in own_neighbors and n != other_id]
        if shared:
            mutuals.append(MutualConnection(contact=node, mutual_with=shared, mutual_count=len(shared)))

    mutuals.sort(key=lambda m: m.mutual_count, reverse=True)
    return mutuals
