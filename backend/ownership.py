# ownership.py - Ownership chain validation
"""
Every portal entity hangs off a single chain of foreign keys:

    Task / Update / File -> Project -> Client -> Portal -> Freelancer

A freelancer may act on an entity only when the chain ends at their own
portal. A client may act only on its own projects and the tasks, updates
and files inside them; portal- and client-level entities are never
reachable with a client token.

The check is always one query that selects the target row together with
the owner id found at the end of the chain, so existence and ownership
are decided from the same row.
"""

import logging
from enum import Enum
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import ClientPrincipal, FreelancerPrincipal, Principal
from errors import Forbidden, NotFound
from models import Portal, Client, Project, Task, Update, File

logger = logging.getLogger("handoff.ownership")


class EntityKind(str, Enum):
    PORTAL = "portal"
    CLIENT = "client"
    PROJECT = "project"
    TASK = "task"
    UPDATE = "update"
    FILE = "file"

    @property
    def label(self) -> str:
        return self.value.capitalize()


ENTITY_MODELS = {
    EntityKind.PORTAL: Portal,
    EntityKind.CLIENT: Client,
    EntityKind.PROJECT: Project,
    EntityKind.TASK: Task,
    EntityKind.UPDATE: Update,
    EntityKind.FILE: File,
}

# Entities that hang directly off a project
PROJECT_CHILDREN = (EntityKind.TASK, EntityKind.UPDATE, EntityKind.FILE)


def join_to_project(stmt: Select, kind: EntityKind) -> Select:
    if kind in PROJECT_CHILDREN:
        model = ENTITY_MODELS[kind]
        stmt = stmt.join(Project, model.project_id == Project.id)
    return stmt


def join_to_portal(stmt: Select, kind: EntityKind) -> Select:
    """Extend a statement rooted at `kind` with the joins up to portals"""
    stmt = join_to_project(stmt, kind)
    if kind in PROJECT_CHILDREN or kind == EntityKind.PROJECT:
        stmt = stmt.join(Client, Project.client_id == Client.id)
    if kind != EntityKind.PORTAL:
        stmt = stmt.join(Portal, Client.portal_id == Portal.id)
    return stmt


def owned_by_freelancer(stmt: Select, kind: EntityKind, freelancer_id: str) -> Select:
    """Scope a list query rooted at `kind` to rows in the freelancer's portals"""
    return join_to_portal(stmt, kind).where(Portal.owner_id == freelancer_id)


def _chain_query(principal: Principal, kind: EntityKind, entity_id: str) -> Select:
    model = ENTITY_MODELS[kind]
    if isinstance(principal, FreelancerPrincipal):
        stmt = join_to_portal(select(model, Portal.owner_id).select_from(model), kind)
    else:
        stmt = join_to_project(select(model, Project.client_id).select_from(model), kind)
    return stmt.where(model.id == entity_id)


async def authorize(db: AsyncSession, principal: Principal, kind: EntityKind, entity_id: str) -> Any:
    """Return the target entity if `principal` may act on it.

    Raises NotFound when no such entity exists and Forbidden when it exists
    but the ownership chain does not end at the principal.
    """
    if isinstance(principal, ClientPrincipal):
        if kind not in PROJECT_CHILDREN and kind != EntityKind.PROJECT:
            logger.warning(f"Client {principal.id} attempted {kind.value}-level access to {entity_id}")
            raise Forbidden(f"{kind.label} not found", reason="client principal")
        expected_owner = principal.id
    elif isinstance(principal, FreelancerPrincipal):
        expected_owner = principal.id
    else:
        raise TypeError(f"Unsupported principal: {type(principal).__name__}")

    result = await db.execute(_chain_query(principal, kind, entity_id))
    row = result.first()
    if row is None:
        raise NotFound(f"{kind.label} not found")

    entity, owner_id = row
    if owner_id != expected_owner:
        logger.warning(
            f"Ownership chain mismatch: {type(principal).__name__} {principal.id} "
            f"-> {kind.value} {entity_id}"
        )
        raise Forbidden(f"{kind.label} not found", reason="ownership chain mismatch")
    return entity
