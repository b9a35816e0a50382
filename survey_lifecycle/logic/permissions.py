"""Capability snapshot computation for a (user, survey instance) pair.

Every check reads a different external fact (role table, recipient rows,
owner rows, the run's designated owner, the owning role), so they carry no
ordering dependency. The snapshot is computed once per request and passed by
value; nothing here is cached.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from survey_lifecycle.logic import repository_instances, repository_membership, repository_people
from survey_lifecycle.logic.errors import InstanceNotFound, PersonNotFound, RunNotFound
from survey_lifecycle.models.people import Person
from survey_lifecycle.models.permissions import SurveyInstancePermissions
from survey_lifecycle.models.survey_instance import SurveyInstance, SurveyRun

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ROLE = "SURVEY_ADMIN"


def build_permissions(
    instance: SurveyInstance,
    *,
    is_admin: bool,
    is_participant: bool,
    is_owner: bool,
    has_owner_role: bool,
) -> SurveyInstancePermissions:
    """Assemble the snapshot; meta edits are limited to the live instance."""
    return SurveyInstancePermissions(
        is_admin=is_admin,
        is_participant=is_participant,
        is_owner=is_owner,
        has_owner_role=has_owner_role,
        is_meta_edit=instance.is_latest and (is_admin or is_owner or has_owner_role),
    )


def resolve_person_or_raise(user_name: str, people: Any = repository_people) -> Person:
    person = people.resolve_person(user_name)
    if person is None:
        raise PersonNotFound(user_name=user_name)
    return person


def permissions_for(
    user_name: str,
    person: Person,
    instance: SurveyInstance,
    run: SurveyRun,
    *,
    people: Any = repository_people,
    membership: Any = repository_membership,
    admin_role: str = DEFAULT_ADMIN_ROLE,
) -> SurveyInstancePermissions:
    is_admin = bool(people.has_role(user_name, admin_role))
    is_participant = bool(membership.is_recipient(person.id, instance.id))
    is_owner = bool(membership.is_owner(person.id, instance.id)) or run.owner_id == person.id
    # Role grants may be keyed by email or by user name.
    identities = {i for i in (person.email, person.user_name, user_name) if i}
    has_owner_role = bool(instance.owning_role) and any(
        people.has_role(identity, instance.owning_role) for identity in sorted(identities)
    )
    perms = build_permissions(
        instance,
        is_admin=is_admin,
        is_participant=is_participant,
        is_owner=is_owner,
        has_owner_role=has_owner_role,
    )
    logger.info(
        "permissions_evaluated user=%s instance_id=%s admin=%s participant=%s owner=%s owner_role=%s meta_edit=%s",
        user_name,
        instance.id,
        perms.is_admin,
        perms.is_participant,
        perms.is_owner,
        perms.has_owner_role,
        perms.is_meta_edit,
    )
    return perms


def evaluate_permissions(
    user_name: str,
    instance_id: int,
    *,
    instances: Any = repository_instances,
    people: Any = repository_people,
    membership: Any = repository_membership,
    admin_role: str = DEFAULT_ADMIN_ROLE,
    instance: Optional[SurveyInstance] = None,
) -> SurveyInstancePermissions:
    """Resolve the user, load the instance and its run, and compute the snapshot.

    Raises PersonNotFound, InstanceNotFound or RunNotFound when a referenced
    record cannot be loaded. A pre-loaded `instance` skips the instance read.
    """
    person = resolve_person_or_raise(user_name, people)
    if instance is None:
        instance = instances.get_instance(instance_id)
        if instance is None:
            raise InstanceNotFound(instance_id)
    run = instances.get_run(instance.survey_run_id)
    if run is None:
        raise RunNotFound(instance.survey_run_id)
    return permissions_for(
        user_name,
        person,
        instance,
        run,
        people=people,
        membership=membership,
        admin_role=admin_role,
    )


__all__ = [
    "DEFAULT_ADMIN_ROLE",
    "build_permissions",
    "resolve_person_or_raise",
    "permissions_for",
    "evaluate_permissions",
]
