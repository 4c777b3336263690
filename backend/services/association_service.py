"""
Association service for the polymorphic tag / label join tables.

taggables and labelables link a tag or label to an owner row of some kind
(event, player, user, ...) identified by (type, id). Membership changes are
applied as a set difference against the current rows: one batched DELETE for
ids no longer wanted, one bulk INSERT for new ids, nothing when the sets match.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Set, Type
from sqlalchemy import select, delete, insert
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.models import (
    Label, Labelable, LabelableType, Tag, Taggable, TaggableType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssociationTable:
    """Column layout of one polymorphic join table."""

    model: Type[Any]
    target_model: Type[Any]
    target_column: str
    type_column: str
    owner_column: str

    def target(self):
        return getattr(self.model, self.target_column)

    def owner_filter(self, kind, owner_id: int):
        return (
            getattr(self.model, self.type_column) == kind,
            getattr(self.model, self.owner_column) == owner_id,
        )


TAGGABLES = AssociationTable(
    model=Taggable,
    target_model=Tag,
    target_column="tag_id",
    type_column="taggable_type",
    owner_column="taggable_id",
)

LABELABLES = AssociationTable(
    model=Labelable,
    target_model=Label,
    target_column="label_id",
    type_column="labelable_type",
    owner_column="labelable_id",
)


@dataclass
class ReconcileResult:
    """Ids inserted and deleted by one reconcile call."""

    added: Set[int] = field(default_factory=set)
    removed: Set[int] = field(default_factory=set)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


async def get_associated_ids(
    session: AsyncSession, association: AssociationTable, kind, owner_id: int
) -> Set[int]:
    """Get the set of tag / label ids currently attached to (kind, owner_id)."""
    result = await session.execute(
        select(association.target()).where(*association.owner_filter(kind, owner_id))
    )
    return set(result.scalars().all())


async def reconcile_associations(
    session: AsyncSession,
    association: AssociationTable,
    kind,
    owner_id: int,
    target_ids: Iterable[int],
) -> ReconcileResult:
    """
    Make the associations of (kind, owner_id) equal to target_ids.

    Order and duplicates in target_ids are ignored. Runs inside the caller's
    transaction and does not commit.

    Args:
        session: Database session
        association: TAGGABLES or LABELABLES
        kind: Owner type discriminator (TaggableType / LabelableType)
        owner_id: Id of the owner row
        target_ids: Desired tag / label ids

    Returns:
        ReconcileResult with the ids added and removed
    """
    target = set(target_ids)
    current = await get_associated_ids(session, association, kind, owner_id)

    to_delete = current - target
    to_add = target - current

    if to_delete:
        await session.execute(
            delete(association.model)
            .where(
                *association.owner_filter(kind, owner_id),
                association.target().in_(to_delete),
            )
            .execution_options(synchronize_session=False)
        )

    if to_add:
        await session.execute(
            insert(association.model),
            [
                {
                    association.target_column: target_id,
                    association.type_column: kind,
                    association.owner_column: owner_id,
                }
                for target_id in sorted(to_add)
            ],
        )

    if to_add or to_delete:
        logger.debug(
            "Reconciled %s for %s %d: +%d -%d",
            association.model.__tablename__, getattr(kind, "value", kind), owner_id,
            len(to_add), len(to_delete),
        )
    return ReconcileResult(added=to_add, removed=to_delete)


async def reconcile_tags(
    session: AsyncSession, kind: TaggableType, owner_id: int, tag_ids: Iterable[int]
) -> ReconcileResult:
    """Reconcile the tag set of one owner."""
    return await reconcile_associations(session, TAGGABLES, kind, owner_id, tag_ids)


async def reconcile_labels(
    session: AsyncSession, kind: LabelableType, owner_id: int, label_ids: Iterable[int]
) -> ReconcileResult:
    """Reconcile the label set of one owner."""
    return await reconcile_associations(session, LABELABLES, kind, owner_id, label_ids)


async def list_associated(
    session: AsyncSession, association: AssociationTable, kind, owner_id: int
) -> List[Any]:
    """Get the tag / label rows attached to (kind, owner_id), ordered by id."""
    target_model = association.target_model
    result = await session.execute(
        select(target_model)
        .join(association.model, association.target() == target_model.id)
        .where(*association.owner_filter(kind, owner_id))
        .order_by(target_model.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_tags_for(session: AsyncSession, kind: TaggableType, owner_id: int) -> List[Tag]:
    """Get the tags attached to one owner."""
    return await list_associated(session, TAGGABLES, kind, owner_id)


async def list_labels_for(
    session: AsyncSession, kind: LabelableType, owner_id: int
) -> List[Label]:
    """Get the labels attached to one owner."""
    return await list_associated(session, LABELABLES, kind, owner_id)


async def remove_all_associations(
    session: AsyncSession, association: AssociationTable, kind, owner_id: int
) -> int:
    """
    Delete every association row of (kind, owner_id).

    The join tables have no foreign key to their owners, so deleting an owner
    must call this in the same transaction.

    Returns:
        Number of rows deleted
    """
    result = await session.execute(
        delete(association.model)
        .where(*association.owner_filter(kind, owner_id))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
