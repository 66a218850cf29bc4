"""Network analysis over the stored contact book.

Loads contacts, builds the in-memory connection graph and runs the graph
algorithms from ``be.network``. The graph is rebuilt on every call; contact
books are small and no state is kept between requests.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.network.graph import (
    ConnectionDiagnostics,
    ContactRecord,
    NetworkGraph,
    NetworkNode,
    build_network_graph,
)
from be.network.metrics import (
    Community,
    InfluenceScore,
    NetworkMetrics,
    calculate_influence_scores,
    calculate_network_metrics,
    detect_communities,
    get_clustering_coefficients,
    get_key_connectors,
)
from be.network.paths import (
    IntroductionPath,
    MutualConnection,
    find_all_introduction_paths,
    find_introduction_path,
    find_mutual_connections,
)
from be.pipelines import NotFoundError

logger = logging.getLogger(__name__)


class NetworkAnalysisError(Exception):
    """Raised when the contact network cannot be built or analysed."""
    pass


@dataclass
class NetworkAnalysis:
    """A freshly built graph with its diagnostics."""
    network: NetworkGraph
    diagnostics: ConnectionDiagnostics


def to_contact_record(contact: models.Contact) -> ContactRecord:
    return ContactRecord(
        id=contact.id,
        name=contact.name,
        email=contact.email,
        company=contact.company,
        position=contact.position,
        avatar=contact.avatar,
        linkedin_connections=list(contact.linkedin_connections or []),
        last_contact=contact.last_contact,
        offering=contact.offering,
        looking_for=contact.looking_for,
    )


async def load_contact_records(session: AsyncSession, created_by: str | None = None) -> list[ContactRecord]:
    """Contacts as graph input, optionally only those created by one user."""
    query = select(models.Contact).order_by(models.Contact.id)
    if created_by is not None:
        query = query.where(models.Contact.created_by == created_by)

    try:
        result = await session.execute(query)
    except Exception as e:
        logger.error(f"Loading contacts for network analysis failed: {e}", exc_info=True)
        raise NetworkAnalysisError(f"Failed to load contacts: {e}") from e

    return [to_contact_record(contact) for contact in result.scalars().all()]


async def build_network(
    session: AsyncSession,
    created_by: str | None = None,
    now: datetime | None = None,
) -> NetworkAnalysis:
    """Load contacts and build their connection graph."""
    records = await load_contact_records(session, created_by)
    try:
        network, diagnostics = build_network_graph(records, now=now)
    except Exception as e:
        logger.error(f"Building the network graph failed: {e}", exc_info=True)
        raise NetworkAnalysisError(f"Failed to build network graph: {e}") from e
    return NetworkAnalysis(network=network, diagnostics=diagnostics)


def _require_node(network: NetworkGraph, contact_id: int) -> None:
    if contact_id not in network.nodes:
        raise NotFoundError(f"Contact {contact_id} not found")


async def network_metrics(session: AsyncSession, created_by: str | None = None) -> NetworkMetrics:
    analysis = await build_network(session, created_by)
    try:
        return calculate_network_metrics(analysis.network)
    except Exception as e:
        logger.error(f"Network metrics failed: {e}", exc_info=True)
        raise NetworkAnalysisError(f"Failed to calculate network metrics: {e}") from e


async def connection_diagnostics(session: AsyncSession, created_by: str | None = None) -> ConnectionDiagnostics:
    return (await build_network(session, created_by)).diagnostics


async def introduction_path(
    session: AsyncSession,
    from_id: int,
    to_id: int,
    *,
    max_depth: int | None = None,
    created_by: str | None = None,
) -> IntroductionPath | None:
    """Shortest warm introduction chain between two contacts, or None."""
    network = (await build_network(session, created_by)).network
    _require_node(network, from_id)
    _require_node(network, to_id)
    return find_introduction_path(network, from_id, to_id, max_depth)


async def introduction_paths(
    session: AsyncSession,
    from_id: int,
    to_id: int,
    *,
    max_depth: int | None = None,
    max_paths: int | None = None,
    created_by: str | None = None,
) -> list[IntroductionPath]:
    """Alternative introduction chains, warmest first."""
    network = (await build_network(session, created_by)).network
    _require_node(network, from_id)
    _require_node(network, to_id)
    return find_all_introduction_paths(network, from_id, to_id, max_depth, max_paths)


async def mutual_connections(
    session: AsyncSession,
    contact_id: int,
    created_by: str | None = None,
) -> list[MutualConnection]:
    network = (await build_network(session, created_by)).network
    _require_node(network, contact_id)
    return find_mutual_connections(network, contact_id)


async def key_connectors(
    session: AsyncSession,
    *,
    min_degree: int | None = None,
    limit: int | None = None,
    created_by: str | None = None,
) -> list[NetworkNode]:
    network = (await build_network(session, created_by)).network
    return get_key_connectors(network, min_degree, limit)


async def clustering_coefficients(session: AsyncSession, created_by: str | None = None) -> dict[int, float]:
    network = (await build_network(session, created_by)).network
    return get_clustering_coefficients(network)


async def communities(session: AsyncSession, created_by: str | None = None) -> list[Community]:
    network = (await build_network(session, created_by)).network
    try:
        return detect_communities(network)
    except Exception as e:
        logger.error(f"Community detection failed: {e}", exc_info=True)
        raise NetworkAnalysisError(f"Failed to detect communities: {e}") from e


async def influence_scores(session: AsyncSession, created_by: str | None = None) -> list[InfluenceScore]:
    network = (await build_network(session, created_by)).network
    try:
        return calculate_influence_scores(network)
    except Exception as e:
        logger.error(f"Influence scoring failed: {e}", exc_info=True)
        raise NetworkAnalysisError(f"Failed to calculate influence scores: {e}") from e
