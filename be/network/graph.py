"""Network graph construction from LinkedIn connection name strings."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

import networkx as nx

from ai.name_matching import ContactNameMatcher
from be.config import settings
from be.models import utcnow
from be.pipelines.normalization import days_between, round_half_up

logger = logging.getLogger(__name__)


@dataclass
class ContactRecord:
    """The slice of a contact the network analysis needs."""
    id: int
    name: str
    email: str = ""
    company: str | None = None
    position: str | None = None
    avatar: str | None = None
    linkedin_connections: list[str] = field(default_factory=list)
    last_contact: datetime | None = None
    offering: str | None = None
    looking_for: str | None = None


@dataclass
class NetworkNode:
    """A contact in the graph plus its computed centrality measures."""
    id: int
    name: str
    email: str = ""
    company: str | None = None
    position: str | None = None
    avatar: str | None = None
    degree: int = 0
    betweenness_centrality: float = 0.0
    clustering_coefficient: float = 0.0


@dataclass
class NetworkEdge:
    """Undirected relationship; weight is recency-based strength in (0, 1]."""
    source: int
    target: int
    weight: float
    last_interaction: datetime | None = None


@dataclass
class ConnectionDiagnostics:
    """How well connection names resolved to contacts."""
    total_connection_references: int = 0
    matched_connections: int = 0
    unmatched_connections: list[str] = field(default_factory=list)
    isolated_contacts: list[NetworkNode] = field(default_factory=list)
    match_rate: int = 0  # 0-100


@dataclass
class NetworkGraph:
    """Contact graph: node records, edge list and the networkx adjacency."""
    nodes: dict[int, NetworkNode] = field(default_factory=dict)
    edges: list[NetworkEdge] = field(default_factory=list)
    graph: nx.Graph = field(default_factory=nx.Graph)

    def neighbors(self, node_id: int) -> set[int]:
        """Adjacent contact ids (empty for unknown ids)."""
        if node_id not in self.graph:
            return set()
        return set(self.graph.adj[node_id])

    def edge_weight(self, u: int, v: int) -> float | None:
        data = self.graph.get_edge_data(u, v)
        return None if data is None else data["weight"]

    def __len__(self) -> int:
        return len(self.nodes)


def calculate_edge_weight(last_contact: datetime | None, now: datetime | None = None) -> float:
    """Relationship weight from interaction recency.

    Exponential decay: 1.0 today, about 0.55 after 30 days, floored at
    ``min_edge_weight``. Contacts never interacted with get ``default_edge_weight``.
    """
    cfg = settings.network
    if last_contact is None:
        return cfg.default_edge_weight

    # Future dates count as today
    days_since = max(0, days_between(last_contact, now or utcnow()))
    return max(cfg.min_edge_weight, math.exp(-days_since / cfg.edge_decay_days))


def build_network_graph(
    contacts: Iterable[ContactRecord],
    *,
    now: datetime | None = None,
) -> tuple[NetworkGraph, ConnectionDiagnostics]:
    """Build the contact graph and report how connection names resolved.

    Args:
        contacts: Contacts with their LinkedIn connection names
        now: Reference time for edge weights (defaults to current UTC)

    Returns:
        Tuple of (graph, diagnostics)
    """
    now = now or utcnow()
    records = list(contacts)
    network = NetworkGraph()

    for contact in records:
        network.nodes[contact.id] = NetworkNode(
            id=contact.id,
            name=contact.name,
            email=contact.email,
            company=contact.company,
            position=contact.position,
            avatar=contact.avatar,
        )
        network.graph.add_node(contact.id)

    matcher = ContactNameMatcher((c.id, c.name) for c in records)

    total_references = 0
    matched = 0
    unmatched: set[str] = set()

    for contact in records:
        for reference in contact.linkedin_connections or []:
            resolved = matcher.match(reference)
            if resolved is not None and resolved.contact_id == contact.id:
                # A contact listing itself is not a relationship
                continue

            total_references += 1
            if resolved is None or resolved.contact_id not in network.nodes:
                unmatched.add(reference)
                continue

            matched += 1
            target = resolved.contact_id
            if network.graph.has_edge(contact.id, target):
                continue

            weight = calculate_edge_weight(contact.last_contact, now)
            network.graph.add_edge(contact.id, target, weight=weight, last_interaction=contact.last_contact)
            network.edges.append(NetworkEdge(
                source=contact.id,
                target=target,
                weight=weight,
                last_interaction=contact.last_contact,
            ))

    for node_id, node in network.nodes.items():
        node.degree = network.graph.degree(node_id)

    isolated = [node for node in network.nodes.values() if node.degree == 0]

    diagnostics = ConnectionDiagnostics(
        total_connection_references=total_references,
        matched_connections=matched,
        unmatched_connections=sorted(unmatched),
        isolated_contacts=isolated,
        match_rate=round_half_up(matched / total_references * 100) if total_references > 0 else 0,
    )

    logger.info(
        f"Built network graph: {len(network.nodes)} nodes, {len(network.edges)} edges, "
        f"match rate {diagnostics.match_rate}%"
    )
    return network, diagnostics
