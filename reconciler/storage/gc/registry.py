"""
Reference Map Registry

Static configuration of every collection that references members: for each
cleanup target, the physical collection and the paths (with shapes) that hold
member ids. The registry is a value injected into the engine so tests and
deployments can substitute their own map.

A target is either whole-document (SCALAR / SCALAR_LIST paths: orphaned records
are deleted) or entry-level (a single OBJECT_LIST path: orphaned sub-entries are
pruned from their parent document). Mixing both in one target is rejected.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional

from reconciler.exceptions import ConfigurationError
from reconciler.storage.references import ReferencePath, ReferenceShape


@dataclass(frozen=True)
class ReferenceTarget:
    """One cleanup target: a collection plus the paths that point at members."""

    name: str
    collection: str
    paths: tuple[ReferencePath, ...]
    metrics: tuple[str, ...] = ()
    """Array fields counted into the summary before a document is deleted."""
    description: str = ""

    @property
    def is_entry_level(self) -> bool:
        return any(path.is_entry_level for path in self.paths)

    @property
    def entry_path(self) -> Optional[ReferencePath]:
        for path in self.paths:
            if path.is_entry_level:
                return path
        return None

    def member_filter(self, member_id: str, shapes: Optional[tuple[ReferenceShape, ...]] = None) -> Optional[dict]:
        """
        Filter matching documents that reference one member.

        Args:
            member_id: Member id to look for
            shapes: Only consider paths of these shapes (all when None)

        Returns:
            Filter dict, or None when no path qualifies
        """
        clauses = [
            {path.field_path: member_id}
            for path in self.paths
            if shapes is None or path.shape in shapes
        ]
        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$or": clauses}

    def validate(self) -> None:
        """Raise ConfigurationError when the target is malformed."""
        if not self.name or not self.collection:
            raise ConfigurationError("Reference target needs a name and a collection", {"name": self.name})
        for path in self.paths:
            if not isinstance(path, ReferencePath) or not path.path:
                raise ConfigurationError("Reference path must be a non-empty ReferencePath", {"target": self.name})
            if path.is_entry_level and not path.key:
                raise ConfigurationError("OBJECT_LIST path needs an id key", {"target": self.name, "path": path.path})
        entry_paths = [path for path in self.paths if path.is_entry_level]
        if entry_paths and len(entry_paths) != len(self.paths):
            raise ConfigurationError(
                "Target mixes OBJECT_LIST with whole-document paths",
                {"target": self.name},
            )
        if len(entry_paths) > 1:
            raise ConfigurationError("Target declares more than one OBJECT_LIST path", {"target": self.name})


@dataclass(frozen=True)
class ReferenceMap:
    """Immutable registry of cleanup targets keyed by name."""

    targets: tuple[ReferenceTarget, ...] = ()
    _by_name: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_name = {}
        for target in self.targets:
            target.validate()
            if target.name in by_name:
                raise ConfigurationError("Duplicate reference target", {"target": target.name})
            by_name[target.name] = target
        object.__setattr__(self, "_by_name", by_name)

    def __iter__(self) -> Iterator[ReferenceTarget]:
        return iter(self.targets)

    def __len__(self) -> int:
        return len(self.targets)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def names(self) -> list[str]:
        return [target.name for target in self.targets]

    def get(self, name: str) -> Optional[ReferenceTarget]:
        return self._by_name.get(name)

    def paths_for(self, name: str) -> tuple[ReferencePath, ...]:
        """Paths for a target; empty for unknown names."""
        target = self._by_name.get(name)
        return target.paths if target else ()

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ReferenceMap":
        """
        Build a registry from the reference_map section of config.yaml.

        Args:
            config: Mapping of target name -> {collection, paths, metrics, description}

        Returns:
            ReferenceMap

        Raises:
            ConfigurationError: when an entry is malformed
        """
        targets = []
        for name, entry in config.items():
            if not isinstance(entry, Mapping):
                raise ConfigurationError("Reference target must be a mapping", {"target": name})
            paths = []
            for raw in entry.get("paths") or []:
                if isinstance(raw, str):
                    raw = {"path": raw}
                try:
                    shape = ReferenceShape(str(raw.get("shape", "scalar")).lower())
                except ValueError:
                    raise ConfigurationError("Unknown reference shape", {"target": name, "shape": raw.get("shape")})
                paths.append(ReferencePath(
                    path=str(raw.get("path", "")),
                    shape=shape,
                    key=str(raw.get("key", "memberId")),
                ))
            targets.append(ReferenceTarget(
                name=str(name),
                collection=str(entry.get("collection") or name),
                paths=tuple(paths),
                metrics=tuple(entry.get("metrics") or ()),
                description=str(entry.get("description", "")),
            ))
        return cls(tuple(targets))


def _member_id(collection: str, description: str) -> ReferenceTarget:
    return ReferenceTarget(
        name=collection,
        collection=collection,
        paths=(ReferencePath("memberId"),),
        description=description,
    )


def _keyed_by_member(collection: str, description: str, metrics: tuple[str, ...] = ()) -> ReferenceTarget:
    return ReferenceTarget(
        name=collection,
        collection=collection,
        paths=(ReferencePath("_id"),),
        metrics=metrics,
        description=description,
    )


DEFAULT_REFERENCE_MAP = ReferenceMap((
    _member_id("memberTimeline", "Timeline events a member produced"),
    _keyed_by_member(
        "memberExtras",
        "Extended member profile, keyed by member id",
        metrics=("avatarUnlocks", "avatarFrameUnlocks", "backgroundUnlocks", "titleUnlocks"),
    ),
    _keyed_by_member("memberPveHistory", "PVE battle history, keyed by member id"),
    _member_id("reservations", "Reservations created by a member"),
    _member_id("memberRights", "Rights and perks a member holds"),
    _member_id("walletTransactions", "Wallet top-up and spend records"),
    _member_id("stoneTransactions", "Stone point earn/spend records"),
    _member_id("taskRecords", "Task completion records"),
    _member_id("couponRecords", "Coupon issue and redemption records"),
    _member_id("chargeOrders", "Charge orders created by admins"),
    _member_id("menuOrders", "Menu orders"),
    _member_id("errorlogs", "Error logs tied to a member"),
    ReferenceTarget(
        name="pvpInvites",
        collection="pvpInvites",
        paths=(ReferencePath("inviterId"), ReferencePath("opponentId")),
        description="PVP invitations",
    ),
    ReferenceTarget(
        name="pvpMatches",
        collection="pvpMatches",
        paths=(ReferencePath("player.memberId"), ReferencePath("opponent.memberId")),
        description="PVP match results",
    ),
    _keyed_by_member("pvpProfiles", "PVP player profile, keyed by member id"),
    ReferenceTarget(
        name="leaderboardEntries",
        collection="pvpLeaderboard",
        paths=(ReferencePath("entries", ReferenceShape.OBJECT_LIST, key="memberId"),),
        description="Ranked entries inside leaderboard snapshots",
    ),
))
