# tests/test_ownership.py - Ownership chain validator
import random

import pytest

from auth import FreelancerPrincipal, ClientPrincipal
from errors import Forbidden, NotFound
from models import Task, Update, File, AuthorType
from ownership import EntityKind, authorize
from tests.conftest import make_freelancer, make_portal, make_client, make_project


def as_freelancer(f) -> FreelancerPrincipal:
    return FreelancerPrincipal(id=f.id, email=f.email, name=f.name)


def as_client(c) -> ClientPrincipal:
    return ClientPrincipal(id=c.id, portal_id=c.portal_id, name=c.name, email=c.email)


async def _project_children(db, project, author_id):
    task = Task(project_id=project.id, title="T", position=0)
    update = Update(project_id=project.id, author_type=AuthorType.FREELANCER, author_id=author_id, content="U")
    stored = File(project_id=project.id, name="f.txt", file_path="/tmp/f.txt", file_size=1, uploaded_by=author_id)
    db.add_all([task, update, stored])
    await db.commit()
    return {EntityKind.TASK: task, EntityKind.UPDATE: update, EntityKind.FILE: stored}


@pytest.mark.asyncio
class TestAuthorize:
    async def test_owner_reaches_every_level(self, db_session, freelancer, portal, client_record, project):
        children = await _project_children(db_session, project, freelancer.id)
        targets = {
            EntityKind.PORTAL: portal,
            EntityKind.CLIENT: client_record,
            EntityKind.PROJECT: project,
            **children,
        }
        for kind, entity in targets.items():
            found = await authorize(db_session, as_freelancer(freelancer), kind, entity.id)
            assert found.id == entity.id

    async def test_other_freelancer_is_forbidden(self, db_session, freelancer, other_freelancer, project):
        children = await _project_children(db_session, project, freelancer.id)
        for kind, entity in [(EntityKind.PROJECT, project), *children.items()]:
            with pytest.raises(Forbidden) as exc:
                await authorize(db_session, as_freelancer(other_freelancer), kind, entity.id)
            assert exc.value.status_code == 404
            assert exc.value.reason == "ownership chain mismatch"

    async def test_missing_entity_is_not_found(self, db_session, freelancer):
        for kind in EntityKind:
            with pytest.raises(NotFound) as exc:
                await authorize(db_session, as_freelancer(freelancer), kind, "doesnotexist")
            assert exc.value.detail == f"{kind.label} not found"

    async def test_forbidden_and_missing_look_the_same(self, db_session, other_freelancer, project):
        principal = as_freelancer(other_freelancer)
        with pytest.raises(Forbidden) as forbidden:
            await authorize(db_session, principal, EntityKind.PROJECT, project.id)
        with pytest.raises(NotFound) as missing:
            await authorize(db_session, principal, EntityKind.PROJECT, "doesnotexist")
        assert forbidden.value.status_code == missing.value.status_code
        assert forbidden.value.detail == missing.value.detail

    async def test_client_reaches_own_project_tree(self, db_session, freelancer, client_record, project):
        children = await _project_children(db_session, project, freelancer.id)
        for kind, entity in [(EntityKind.PROJECT, project), *children.items()]:
            found = await authorize(db_session, as_client(client_record), kind, entity.id)
            assert found.id == entity.id

    async def test_client_never_reaches_portal_or_client_level(self, db_session, portal, client_record):
        principal = as_client(client_record)
        with pytest.raises(Forbidden):
            await authorize(db_session, principal, EntityKind.PORTAL, portal.id)
        with pytest.raises(Forbidden):
            await authorize(db_session, principal, EntityKind.CLIENT, client_record.id)

    async def test_client_cannot_reach_sibling_project(self, db_session, portal, client_record):
        neighbour = await make_client(db_session, portal, "neighbour@acme.test")
        theirs = await make_project(db_session, neighbour)
        with pytest.raises(Forbidden):
            await authorize(db_session, as_client(client_record), EntityKind.PROJECT, theirs.id)

    async def test_unknown_principal(self, db_session, project):
        with pytest.raises(TypeError):
            await authorize(db_session, object(), EntityKind.PROJECT, project.id)


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(5))
async def test_random_graph_access_matches_chain(db_session, seed):
    """For a random ownership forest, access is granted exactly when the chain ends at the caller"""
    rng = random.Random(seed)

    freelancers = [await make_freelancer(db_session, f"f{seed}-{i}@graph.test") for i in range(3)]
    # (kind, id) -> owning freelancer id, and (kind, id) -> owning client id below the client level
    freelancer_of, client_of = {}, {}
    portals, clients = [], []

    for i in range(rng.randint(2, 4)):
        owner = rng.choice(freelancers)
        p = await make_portal(db_session, owner, f"g{seed}p{i}")
        portals.append(p)
        freelancer_of[(EntityKind.PORTAL, p.id)] = owner.id
        for j in range(rng.randint(1, 3)):
            c = await make_client(db_session, p, f"c{j}@p{i}.test")
            clients.append(c)
            freelancer_of[(EntityKind.CLIENT, c.id)] = owner.id
            for k in range(rng.randint(0, 2)):
                pr = await make_project(db_session, c, f"Project {k}")
                below = {EntityKind.PROJECT: pr}
                if rng.random() < 0.7:
                    below.update(await _project_children(db_session, pr, owner.id))
                for kind, entity in below.items():
                    freelancer_of[(kind, entity.id)] = owner.id
                    client_of[(kind, entity.id)] = c.id

    for f in freelancers:
        principal = as_freelancer(f)
        for (kind, entity_id), owner_id in freelancer_of.items():
            if owner_id == f.id:
                assert (await authorize(db_session, principal, kind, entity_id)).id == entity_id
            else:
                with pytest.raises(Forbidden):
                    await authorize(db_session, principal, kind, entity_id)

    for c in clients:
        principal = as_client(c)
        for (kind, entity_id), owner_id in client_of.items():
            if owner_id == c.id:
                assert (await authorize(db_session, principal, kind, entity_id)).id == entity_id
            else:
                with pytest.raises(Forbidden):
                    await authorize(db_session, principal, kind, entity_id)
        for p in portals:
            with pytest.raises(Forbidden):
                await authorize(db_session, principal, EntityKind.PORTAL, p.id)
        for other in clients:
            with pytest.raises(Forbidden):
                await authorize(db_session, principal, EntityKind.CLIENT, other.id)
