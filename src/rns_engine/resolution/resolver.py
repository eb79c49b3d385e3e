"""Conflict resolution over sealed snapshots and global declarations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from rns_engine.config.declarations import GlobalDeclarations
from rns_engine.errors import AugroupAmbiguity, KeymapConflict, KeymapConflictError
from rns_engine.plugins.models import (
    AugroupEntry,
    AutocmdSpec,
    KeymapSpec,
    ServerConfig,
    Snapshot,
    UserCommandSpec,
)
from rns_engine.runtime.telemetry import record_warning, span

from .operations import (
    CreateAugroup,
    CreateAutocmd,
    CreateKeymap,
    CreateUserCommand,
    ExecCode,
    Operation,
    SetGlobal,
    SetOption,
    SetupServer,
)


@dataclass(frozen=True, slots=True)
class Resolution:
    """Ordered, deduplicated operations plus non-fatal findings."""

    operations: tuple[Operation, ...]
    shadowed: tuple[KeymapSpec, ...] = ()
    warnings: tuple[AugroupAmbiguity, ...] = ()

    def for_origin(self, origin: Optional[str]) -> tuple[Operation, ...]:
        return tuple(op for op in self.operations if op.origin == origin)

    def for_subject(self, subject: object) -> tuple[Operation, ...]:
        """Operations carrying exactly ``subject`` (compared with ``is``)."""

        return tuple(op for op in self.operations if _subject_of(op) is subject)

    def for_identity(self, identity: str) -> tuple[Operation, ...]:
        return tuple(op for op in self.operations if op.identity == identity)

    @property
    def origins(self) -> tuple[Optional[str], ...]:
        seen: Dict[Optional[str], None] = {}
        for op in self.operations:
            seen.setdefault(op.origin, None)
        return tuple(seen)


@dataclass(frozen=True, slots=True)
class _Claim:
    """Keymap claim tagged by owner; ``owner is None`` means ownerless."""

    spec: KeymapSpec
    position: int
    source: Optional[str] = None

    @property
    def owner(self) -> Optional[str]:
        return self.spec.owner


class ConflictResolver:
    """Stateless resolver; ``resolve`` is a pure function of its inputs."""

    def __init__(self, *, logger_name: str | None = None) -> None:
        self._logger_name = logger_name

    def resolve(
        self,
        snapshots: Sequence[Snapshot],
        declarations: Optional[GlobalDeclarations] = None,
    ) -> Resolution:
        """Merge ``snapshots`` (in registry order) with global declarations.

        Raises :class:`KeymapConflictError` when two plugins claim the same
        keymap identity; nothing is returned in that case.
        """

        decls = declarations or GlobalDeclarations()
        with span(
            "resolution::resolve",
            logger_name=self._logger_name,
            component="resolution",
            metadata={"snapshots": len(snapshots)},
        ) as handle:
            plugin_order = [snapshot.plugin for snapshot in snapshots]
            keymaps, shadowed = self._resolve_keymaps(
                _gather_keymaps(snapshots, decls), plugin_order
            )
            augroups, autocmds, warnings = self._resolve_augroups(snapshots, decls)

            operations: List[Operation] = []
            operations.extend(
                SetOption(name=name, value=value) for name, value in decls.options.items()
            )
            operations.extend(
                SetGlobal(name=name, value=value) for name, value in decls.globals.items()
            )
            operations.extend(CreateAugroup(spec=entry) for entry in augroups)
            operations.extend(CreateAutocmd(spec=cmd) for cmd in autocmds)
            operations.extend(
                CreateKeymap(spec=claim.spec, origin=claim.source) for claim in keymaps
            )
            operations.extend(
                CreateUserCommand(spec=spec) for spec in _gather_commands(snapshots, decls)
            )
            operations.extend(
                SetupServer(server=server) for server in _gather_servers(snapshots, decls)
            )
            operations.extend(
                ExecCode(
                    code=snapshot.raw_config,
                    origin=snapshot.plugin,
                    label=f"{snapshot.plugin}.config",
                )
                for snapshot in snapshots
                if snapshot.raw_config
            )

            # Stable sort keeps ownerless-then-registry order inside each stage.
            operations.sort(key=lambda op: op.stage)
            handle.add_metadata("operations", len(operations))
            handle.add_metadata("shadowed", len(shadowed))
            handle.add_metadata("warnings", len(warnings))
            return Resolution(
                operations=tuple(operations),
                shadowed=tuple(shadowed),
                warnings=tuple(warnings),
            )

    def resolve_keymap(
        self,
        spec: KeymapSpec,
        snapshots: Sequence[Snapshot],
        declarations: Optional[GlobalDeclarations] = None,
    ) -> Resolution:
        """Resolve only the claims on ``spec``'s identity.

        Contested identities elsewhere do not block this one; a conflict on
        the same identity still raises :class:`KeymapConflictError`.
        """

        decls = declarations or GlobalDeclarations()
        with span(
            "resolution::resolve_keymap",
            logger_name=self._logger_name,
            component="resolution",
            metadata={"mode": spec.mode, "lhs": spec.lhs},
        ):
            claims = [
                claim
                for claim in _gather_keymaps(snapshots, decls)
                if claim.spec.identity == spec.identity
            ]
            keymaps, shadowed = self._resolve_keymaps(
                claims, [snapshot.plugin for snapshot in snapshots]
            )
            return Resolution(
                operations=tuple(
                    CreateKeymap(spec=claim.spec, origin=claim.source) for claim in keymaps
                ),
                shadowed=tuple(shadowed),
            )

    def check_conflicts(
        self,
        snapshots: Sequence[Snapshot],
        declarations: Optional[GlobalDeclarations] = None,
    ) -> None:
        """Raise :class:`KeymapConflictError` if any keymap identity is contested."""

        decls = declarations or GlobalDeclarations()
        with span(
            "resolution::check_conflicts",
            logger_name=self._logger_name,
            component="resolution",
            metadata={"snapshots": len(snapshots)},
        ):
            conflicts = _find_conflicts(
                _group_claims(_gather_keymaps(snapshots, decls)),
                [snapshot.plugin for snapshot in snapshots],
            )
            if conflicts:
                raise KeymapConflictError(conflicts)

    def _resolve_keymaps(
        self, claims: Sequence[_Claim], plugin_order: Sequence[str]
    ) -> tuple[List[_Claim], List[KeymapSpec]]:
        by_identity = _group_claims(claims)
        conflicts = _find_conflicts(by_identity, plugin_order)
        if conflicts:
            raise KeymapConflictError(conflicts)

        winners: List[_Claim] = []
        shadowed: List[KeymapSpec] = []
        for bucket in by_identity.values():
            # Same owner declaring twice: the later declaration replaces.
            owned = [claim for claim in bucket if claim.owner is not None]
            if owned:
                winners.append(owned[-1])
                shadowed.extend(claim.spec for claim in bucket if claim.owner is None)
            else:
                winners.append(bucket[-1])

        for spec in shadowed:
            record_warning(
                "resolution.keymap_shadowed",
                data={"mode": spec.mode, "lhs": spec.lhs, "rhs": spec.rhs},
                logger_name=self._logger_name,
            )

        ownerless = sorted(
            (claim for claim in winners if claim.owner is None),
            key=lambda claim: claim.position,
        )
        owned_sorted = sorted(
            (claim for claim in winners if claim.owner is not None),
            key=lambda claim: (_owner_rank(claim.owner, plugin_order), claim.position),
        )
        return ownerless + owned_sorted, shadowed

    def _resolve_augroups(
        self, snapshots: Sequence[Snapshot], decls: GlobalDeclarations
    ) -> tuple[List[AugroupEntry], List[AutocmdSpec], List[AugroupAmbiguity]]:
        sources: List[
            tuple[Optional[str], Sequence[AugroupEntry], Sequence[AutocmdSpec]]
        ] = [(None, decls.augroups, decls.autocmds)]
        sources.extend(
            (snapshot.plugin, snapshot.augroups, snapshot.autocmds)
            for snapshot in snapshots
        )

        entries: List[AugroupEntry] = []
        last_clear: Dict[str, int] = {}
        appending: Dict[str, List[Optional[str]]] = {}
        for index, (source, groups, _) in enumerate(sources):
            for entry in groups:
                entries.append(entry)
                if entry.clear:
                    last_clear[entry.name] = index
                else:
                    seen = appending.setdefault(entry.name, [])
                    if source not in seen:
                        seen.append(source)

        warnings: List[AugroupAmbiguity] = []
        for name, group_sources in appending.items():
            if len(group_sources) > 1:
                ambiguity = AugroupAmbiguity(name=name, sources=tuple(group_sources))
                warnings.append(ambiguity)
                record_warning(
                    "resolution.augroup_ambiguity",
                    data={
                        "group": name,
                        "sources": [s or "<global>" for s in group_sources],
                    },
                    logger_name=self._logger_name,
                )

        autocmds: List[AutocmdSpec] = []
        for index, (_, _, commands) in enumerate(sources):
            for cmd in commands:
                cleared_at = last_clear.get(cmd.group) if cmd.group else None
                if cleared_at is not None and index < cleared_at:
                    continue
                autocmds.append(cmd)
        return entries, autocmds, warnings


def _gather_keymaps(
    snapshots: Sequence[Snapshot], decls: GlobalDeclarations
) -> List[_Claim]:
    claims: List[_Claim] = []
    position = 0
    for spec in decls.keymaps:
        claims.append(_Claim(spec=spec, position=position))
        position += 1
    for snapshot in snapshots:
        for spec in snapshot.keymaps:
            claims.append(
                _Claim(spec=spec, position=position, source=snapshot.plugin)
            )
            position += 1
    return claims


def _group_claims(claims: Sequence[_Claim]) -> Dict[tuple, List[_Claim]]:
    by_identity: Dict[tuple, List[_Claim]] = {}
    for claim in claims:
        by_identity.setdefault(claim.spec.identity, []).append(claim)
    return by_identity


def _find_conflicts(
    by_identity: Dict[tuple, List[_Claim]], plugin_order: Sequence[str]
) -> List[KeymapConflict]:
    conflicts: List[KeymapConflict] = []
    for identity, bucket in by_identity.items():
        owners = _ordered_owners(bucket, plugin_order)
        if len(owners) > 1:
            mode, key, buffer = identity
            conflicts.append(
                KeymapConflict(mode=mode, key=key, owners=owners, buffer=buffer)
            )
    return conflicts


def _gather_commands(
    snapshots: Sequence[Snapshot], decls: GlobalDeclarations
) -> Iterable[UserCommandSpec]:
    yield from decls.user_commands
    for snapshot in snapshots:
        yield from snapshot.user_commands


def _gather_servers(
    snapshots: Sequence[Snapshot], decls: GlobalDeclarations
) -> Iterable[ServerConfig]:
    yield from decls.servers
    for snapshot in snapshots:
        yield from snapshot.servers


def _subject_of(op: Operation) -> object:
    if isinstance(op, SetupServer):
        return op.server
    return getattr(op, "spec", None)


def _ordered_owners(
    bucket: Sequence[_Claim], plugin_order: Sequence[str]
) -> tuple[str, ...]:
    owners = {claim.owner for claim in bucket if claim.owner is not None}
    return tuple(sorted(owners, key=lambda owner: _owner_rank(owner, plugin_order)))


def _owner_rank(owner: Optional[str], plugin_order: Sequence[str]) -> tuple[int, str]:
    if owner in plugin_order:
        return (plugin_order.index(owner), owner or "")
    return (len(plugin_order), owner or "")


def resolve(
    snapshots: Sequence[Snapshot], declarations: Optional[GlobalDeclarations] = None
) -> Resolution:
    return ConflictResolver().resolve(snapshots, declarations)


__all__ = ["ConflictResolver", "Resolution", "resolve"]
