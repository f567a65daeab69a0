"""
Member Profiles

Derived member data kept in step with the dependent collections:

- MemberProfileRefresher recomputes a member's "stats" block (record counts per
  cleanup target) and is the default per-member step of the refresh sweep.
- admin_reservation_badge_hook bumps the reservation badge version on admin
  accounts so their clients refetch pending reservations after a cascade
  removed some.
"""

from datetime import datetime, timezone
from typing import Callable

from reconciler.configs import get_logger
from reconciler.configs.constants import ADMIN_ROLES, MEMBER_PAGE_SIZE, MEMBERS_COLLECTION
from reconciler.exceptions import RefreshError, TransientStoreError
from reconciler.storage.base import DocumentStore
from reconciler.storage.gc.registry import ReferenceMap

logger = get_logger("profiles")


class MemberProfileRefresher:
    """Recomputes and stores a member's derived stats."""

    def __init__(
        self,
        store: DocumentStore,
        registry: ReferenceMap,
        members_collection: str = MEMBERS_COLLECTION,
    ):
        self.store = store
        self.registry = registry
        self.members_collection = members_collection

    def compute_stats(self, member_id: str) -> dict[str, int]:
        """Count the records each target holds for one member."""
        stats = {}
        for target in self.registry:
            where = target.member_filter(member_id)
            stats[target.name] = self.store.count(target.collection, where) if where else 0
        return stats

    def __call__(self, member_id: str) -> bool:
        """
        Refresh one member.

        Returns:
            True if the stored stats changed and were written

        Raises:
            NotFoundError: member no longer exists
            RefreshError: stats could not be computed or stored
        """
        member = self.store.get_by_id(self.members_collection, member_id)
        try:
            stats = self.compute_stats(member_id)
            if member.get("stats") == stats:
                return False

            self.store.update_by_id(self.members_collection, member_id, {
                "stats": stats,
                "statsUpdatedAt": datetime.now(timezone.utc).isoformat(),
            })
        except TransientStoreError as e:
            raise RefreshError(f"Failed to refresh stats: {e}", member_id=member_id) from e
        logger.debug(f"Refreshed stats for member {member_id}")
        return True


def admin_reservation_badge_hook(
    store: DocumentStore,
    members_collection: str = MEMBERS_COLLECTION,
    admin_roles: tuple[str, ...] = ADMIN_ROLES,
) -> Callable[[str, int], None]:
    """
    Build a removal hook that bumps reservationBadges.adminVersion on admins.

    Args:
        store: Document store holding the members collection
        members_collection: Members collection name
        admin_roles: Roles whose holders get the bump

    Returns:
        hook(member_id, removed_count)
    """

    def notify(member_id: str, removed: int) -> None:
        bumped = 0
        after = None
        while True:
            admins = store.query(
                members_collection,
                where={"roles": {"$in": list(admin_roles)}},
                after=after,
                limit=MEMBER_PAGE_SIZE,
            )
            for admin in admins:
                if admin["_id"] == member_id:
                    continue
                badges = admin.get("reservationBadges")
                version = badges.get("adminVersion", 0) if isinstance(badges, dict) else 0
                if not isinstance(version, int):
                    version = 0
                bumped += store.update_by_id(
                    members_collection,
                    admin["_id"],
                    {"reservationBadges.adminVersion": version + 1},
                )
            if len(admins) < MEMBER_PAGE_SIZE:
                break
            after = admins[-1]["_id"]
        logger.info(f"Bumped reservation badges on {bumped} admins after removing {removed} reservations of {member_id}")

    return notify


def default_removal_hooks(
    store: DocumentStore,
    members_collection: str = MEMBERS_COLLECTION,
) -> dict[str, Callable[[str, int], None]]:
    """Removal hooks wired into the engine by default, keyed by target name."""
    return {"reservations": admin_reservation_badge_hook(store, members_collection)}
