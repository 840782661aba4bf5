from __future__ import annotations

from dataclasses import dataclass

from app.models.clinical import AppointmentStatus, Role

S = AppointmentStatus


@dataclass(frozen=True)
class Edge:
    """One permitted status change"""

    source: AppointmentStatus
    target: AppointmentStatus
    roles: frozenset[Role]
    command: str = "status"


# Edges whose command is not "status" are only reachable for non-admin
# actors through that compound command (triage save, begin, finalize).
TRANSITIONS: dict[tuple[AppointmentStatus, AppointmentStatus], Edge] = {
    (edge.source, edge.target): edge
    for edge in (
        Edge(S.SCHEDULED, S.AWAITING_CARE, frozenset({Role.RECEPTION, Role.ADMIN})),
        Edge(S.SCHEDULED, S.CANCELLED, frozenset({Role.RECEPTION, Role.ADMIN})),
        Edge(
            S.AWAITING_CARE,
            S.AWAITING_PHYSICIAN,
            frozenset({Role.NURSING, Role.ADMIN}),
            command="triage",
        ),
        Edge(S.AWAITING_CARE, S.CANCELLED, frozenset({Role.RECEPTION, Role.ADMIN})),
        Edge(
            S.AWAITING_PHYSICIAN,
            S.IN_PROGRESS,
            frozenset({Role.PHYSICIAN, Role.ADMIN}),
            command="begin",
        ),
        Edge(S.AWAITING_PHYSICIAN, S.CANCELLED, frozenset({Role.ADMIN})),
        Edge(
            S.IN_PROGRESS,
            S.COMPLETED,
            frozenset({Role.PHYSICIAN, Role.ADMIN}),
            command="finalize",
        ),
        Edge(S.IN_PROGRESS, S.CANCELLED, frozenset({Role.ADMIN})),
    )
}


def parse_status(value: object) -> AppointmentStatus | None:
    """Map a raw status value to the enum, or None when unknown"""
    try:
        return AppointmentStatus(value)
    except ValueError:
        return None


def find_edge(
    source: AppointmentStatus, target: AppointmentStatus
) -> Edge | None:
    return TRANSITIONS.get((source, target))


def is_allowed(
    role: Role,
    source: AppointmentStatus,
    target: AppointmentStatus,
    command: str = "status",
) -> bool:
    """Check the capability table for one (role, current, requested) triple

    Administrators may force any change out of a non-terminal state. Other
    roles need a table edge listing their role, reached through the edge's
    own command.
    """
    if source == target or source.is_terminal:
        return False
    if role == Role.ADMIN:
        return True
    edge = find_edge(source, target)
    if edge is None or role not in edge.roles:
        return False
    return edge.command == command


def available_transitions(role: Role, source: AppointmentStatus) -> list[Edge]:
    """List the edges a role may take from a status, in table order

    For administrators this includes forced changes to every other state,
    reported under the plain "status" command when the table has no edge.
    """
    if source.is_terminal:
        return []
    if role == Role.ADMIN:
        edges = []
        for target in AppointmentStatus:
            if target == source:
                continue
            edge = find_edge(source, target)
            edges.append(
                edge or Edge(source, target, frozenset({Role.ADMIN}))
            )
        return edges
    return [
        edge
        for (edge_source, _), edge in TRANSITIONS.items()
        if edge_source == source and role in edge.roles
    ]
