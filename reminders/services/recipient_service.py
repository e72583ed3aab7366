"""
Recipient descriptors and their expansion into user ids.

Stored descriptors are strings (or {"type": ..., "value": ...} objects):

    assignee | assigned_user       → the assignment's assigned user
    manager-of-unit | manager      → the unit's manager
    role:<name> | superadmin       → every active user holding the role
    user:<id> | <id>               → that user
"""
import logging
from dataclasses import dataclass

from reminders.errors import InvalidDescriptorError
from reminders.services.types import Assignment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Explicit:
    user_id: int


@dataclass(frozen=True)
class Assignee:
    pass


@dataclass(frozen=True)
class Manager:
    pass


@dataclass(frozen=True)
class Role:
    name: str


Descriptor = Explicit | Assignee | Manager | Role

ASSIGNEE_ALIASES = {"assignee", "assigned_user"}
MANAGER_ALIASES = {"manager-of-unit", "manager"}
ROLE_ALIASES = {"superadmin"}


def _parse_user_id(raw, descriptor) -> int:
    try:
        return int(str(raw).strip())
    except ValueError:
        raise InvalidDescriptorError(descriptor) from None


def parse_descriptor(descriptor) -> Descriptor:
    if isinstance(descriptor, dict):
        kind = descriptor.get("type")
        value = descriptor.get("value")
        if kind == "user" and value is not None:
            return Explicit(_parse_user_id(value, descriptor))
        if kind == "role" and value and str(value).strip():
            return Role(str(value).strip())
        if kind in ASSIGNEE_ALIASES:
            return Assignee()
        if kind in MANAGER_ALIASES:
            return Manager()
        raise InvalidDescriptorError(descriptor)

    if isinstance(descriptor, bool) or not isinstance(descriptor, (str, int)):
        raise InvalidDescriptorError(descriptor)
    if isinstance(descriptor, int):
        return Explicit(descriptor)

    text = descriptor.strip()
    if not text:
        raise InvalidDescriptorError(descriptor)
    if text in ASSIGNEE_ALIASES:
        return Assignee()
    if text in MANAGER_ALIASES:
        return Manager()
    if text in ROLE_ALIASES:
        return Role(text)
    if text.isdigit():
        return Explicit(int(text))

    prefix, sep, value = text.partition(":")
    if sep and value.strip():
        if prefix == "role":
            return Role(value.strip())
        if prefix == "user":
            return Explicit(_parse_user_id(value, descriptor))

    raise InvalidDescriptorError(descriptor)


class RecipientResolver:
    """
    Expands descriptors into a deduplicated list of user ids.

    Role and manager lookups are cached for the lifetime of the resolver,
    which is one driver run.
    """

    def __init__(self, store):
        self.store = store
        self._roles: dict[str, list[int]] = {}
        self._managers: dict[int, int | None] = {}

    async def resolve(self, descriptors, assignment: Assignment | None, unit_id: int) -> list[int]:
        parsed = [parse_descriptor(d) for d in descriptors]

        user_ids: list[int] = []
        for descriptor in parsed:
            user_ids.extend(await self._expand(descriptor, assignment, unit_id))

        # Order-preserving dedup: one notification per user per dispatch
        return list(dict.fromkeys(user_ids))

    async def _expand(self, descriptor: Descriptor, assignment: Assignment | None, unit_id: int) -> list[int]:
        if isinstance(descriptor, Explicit):
            return [descriptor.user_id]
        elif isinstance(descriptor, Assignee):
            if assignment is None or assignment.assigned_user_id is None:
                logger.debug(f"No assignee for unit {unit_id}, skipping descriptor")
                return []
            return [assignment.assigned_user_id]
        elif isinstance(descriptor, Manager):
            if unit_id not in self._managers:
                self._managers[unit_id] = await self.store.get_unit_manager(unit_id)
            manager_id = self._managers[unit_id]
            return [manager_id] if manager_id is not None else []
        elif isinstance(descriptor, Role):
            if descriptor.name not in self._roles:
                self._roles[descriptor.name] = list(await self.store.resolve_users_by_role(descriptor.name))
            return self._roles[descriptor.name]
        raise InvalidDescriptorError(descriptor)
