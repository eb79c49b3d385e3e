"""Partial-failure tolerant application of resolved operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from rns_engine.errors import ErrorKind, HostCallError
from rns_engine.host.adapter import HostAdapter
from rns_engine.plugins.models import KeymapSpec
from rns_engine.resolution.operations import Operation
from rns_engine.runtime.events import EventBus
from rns_engine.runtime.telemetry import record_warning, span


@dataclass(frozen=True, slots=True)
class ApplyFailure:
    """An operation the host rejected, keyed by the operation identity."""

    operation: Operation
    kind: ErrorKind
    reason: str

    @property
    def identity(self) -> str:
        return self.operation.identity


@dataclass(frozen=True, slots=True)
class ApplyReport:
    """Aggregate outcome of one pipeline pass.

    ``shadowed`` lists ownerless keymaps withheld because a loaded plugin
    owns the same identity.
    """

    applied: tuple[Operation, ...] = ()
    failed: tuple[ApplyFailure, ...] = ()
    shadowed: tuple[KeymapSpec, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def total(self) -> int:
        return len(self.applied) + len(self.failed)

    def failures_for(self, origin: Optional[str]) -> tuple[ApplyFailure, ...]:
        return tuple(f for f in self.failed if f.operation.origin == origin)

    def merge(self, other: "ApplyReport") -> "ApplyReport":
        return ApplyReport(
            applied=self.applied + other.applied,
            failed=self.failed + other.failed,
            shadowed=self.shadowed + other.shadowed,
        )


class ApplicationPipeline:
    """Forwards operations to the host in stage order, one at a time.

    A rejected operation is recorded and the pass continues; nothing is
    rolled back and nothing is retried.
    """

    def __init__(
        self,
        host: HostAdapter,
        *,
        bus: Optional[EventBus] = None,
        logger_name: str | None = None,
    ) -> None:
        self.host = host
        self._bus = bus
        self._logger_name = logger_name

    def apply(
        self,
        operations: Iterable[Operation],
        *,
        label: str = "batch",
        shadowed: Iterable[KeymapSpec] = (),
    ) -> ApplyReport:
        ordered = sorted(operations, key=lambda op: op.stage)
        applied: list[Operation] = []
        failed: list[ApplyFailure] = []
        with span(
            "pipeline::apply",
            logger_name=self._logger_name,
            component="pipeline",
            metadata={"label": label, "operations": len(ordered)},
        ) as handle:
            for op in ordered:
                try:
                    op.apply(self.host)
                except HostCallError as exc:
                    failure = ApplyFailure(
                        operation=op,
                        kind=ErrorKind.PRIMITIVE_APPLY_FAILURE,
                        reason=exc.reason,
                    )
                    failed.append(failure)
                    record_warning(
                        "pipeline.operation_failed",
                        data={
                            "identity": op.identity,
                            "origin": op.origin or "<global>",
                            "reason": exc.reason,
                        },
                        logger_name=self._logger_name,
                    )
                    continue
                applied.append(op)
            handle.add_metadata("applied", len(applied))
            handle.add_metadata("failed", len(failed))

        report = ApplyReport(
            applied=tuple(applied), failed=tuple(failed), shadowed=tuple(shadowed)
        )
        if self._bus is not None:
            self._bus.emit("apply.report", {"label": label, "report": report})
        return report


__all__ = ["ApplicationPipeline", "ApplyReport", "ApplyFailure"]
