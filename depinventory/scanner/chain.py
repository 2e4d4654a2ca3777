"""Strategy chain — ordered fallback extraction with per-step isolation.

A chain is data, not control flow: guards that can short-circuit the
project, best-effort preparation steps (install / build), then extraction
strategies in priority order.  The chain stops at the first strategy that
succeeds with at least one dependency.  Nothing raised by a step escapes
:meth:`StrategyChain.run`; every exception becomes a :class:`Failure`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import structlog

from depinventory.config import ScanConfig
from depinventory.core.process import CommandResult, CommandRunner, run_command
from depinventory.exceptions import CommandTimeoutError
from depinventory.scanner.models import (
    Dependency,
    Ecosystem,
    EmptyNoManifest,
    ExtractionOutcome,
    Failure,
    Project,
    Skipped,
    Success,
    outcome_kind,
)


@dataclass(frozen=True)
class ExtractionContext:
    """Everything a strategy needs besides the project itself.

    ``deadline`` is an event-loop timestamp after which no external command
    may run.  Commands are cut short at the deadline and fail like any other
    timed-out command, so file-based strategies later in the chain still run.
    """

    config: ScanConfig = field(default_factory=ScanConfig)
    runner: CommandRunner = run_command
    log: Any = field(default_factory=lambda: structlog.get_logger("depinventory.extract"))
    deadline: float | None = None

    def bind(self, **values: Any) -> ExtractionContext:
        return replace(self, log=self.log.bind(**values))

    def with_budget(self, seconds: float) -> ExtractionContext:
        """Copy whose commands must finish within *seconds* from now."""
        return replace(self, deadline=asyncio.get_running_loop().time() + seconds)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - asyncio.get_running_loop().time())

    async def run(
        self,
        cmd: list[str],
        *,
        cwd: Path,
        timeout: float | None = None,
        check: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run an external command under the configured (or given) timeout.

        The timeout is capped at the time left before :attr:`deadline`.
        """
        if timeout is None:
            timeout = self.config.command_timeout
        remaining = self.remaining()
        if remaining is None:
            return await self.runner(cmd, cwd=cwd, timeout=timeout, check=check, env=env)

        if remaining <= 0:
            raise CommandTimeoutError(
                f"{' '.join(cmd)} not started: project budget exhausted", cmd=cmd, timeout=0.0
            )
        timeout = min(timeout, remaining)
        try:
            return await asyncio.wait_for(
                self.runner(cmd, cwd=cwd, timeout=timeout, check=check, env=env),
                timeout=remaining,
            )
        except asyncio.TimeoutError:
            raise CommandTimeoutError(
                f"{' '.join(cmd)} timed out after {timeout:g}s", cmd=cmd, timeout=timeout
            ) from None


GuardFn = Callable[[Project, ExtractionContext], "ExtractionOutcome | None"]
PrepareFn = Callable[[Project, ExtractionContext], Awaitable[None]]
StrategyFn = Callable[[Project, ExtractionContext], Awaitable[ExtractionOutcome]]


@dataclass(frozen=True)
class Guard:
    """Pre-check that may end the chain with an outcome (e.g. Skipped)."""

    name: str
    check: GuardFn


@dataclass(frozen=True)
class Preparation:
    """Best-effort install/build step; failure is logged, never fatal."""

    name: str
    run: PrepareFn


@dataclass(frozen=True)
class Strategy:
    """One extraction method in a fallback chain."""

    name: str
    run: StrategyFn


@dataclass
class ChainResult:
    """What a chain run produced and how it got there."""

    outcome: ExtractionOutcome
    attempts: list[tuple[str, str]] = field(default_factory=list)
    strategy: str | None = None
    exhausted: bool = False

    @property
    def dependencies(self) -> list[Dependency]:
        if isinstance(self.outcome, Success):
            return self.outcome.dependencies
        return []

    @property
    def failed(self) -> bool:
        """True when every strategy that ran ended in a failure."""
        return (
            self.exhausted
            and bool(self.attempts)
            and all(kind == "failure" for _, kind in self.attempts)
        )


class StrategyChain:
    """Ordered guards, preparations and strategies for one ecosystem."""

    def __init__(
        self,
        ecosystem: Ecosystem,
        *,
        guards: Sequence[Guard] = (),
        preparations: Sequence[Preparation] = (),
        strategies: Sequence[Strategy] = (),
    ) -> None:
        self.ecosystem = ecosystem
        self.guards = tuple(guards)
        self.preparations = tuple(preparations)
        self.strategies = tuple(strategies)

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self.strategies]

    async def run(self, project: Project, ctx: ExtractionContext) -> ChainResult:
        log = ctx.log

        for guard in self.guards:
            try:
                outcome = guard.check(project, ctx)
            except Exception as e:
                log.warning("chain.guard_failed", guard=guard.name, error=str(e))
                return ChainResult(
                    outcome=Failure(e), attempts=[(guard.name, "failure")], exhausted=True
                )
            if outcome is not None:
                log.info("chain.short_circuit", guard=guard.name, outcome=outcome_kind(outcome))
                return ChainResult(outcome=outcome, attempts=[(guard.name, outcome_kind(outcome))])

        if ctx.config.run_install:
            for prep in self.preparations:
                try:
                    await prep.run(project, ctx)
                except Exception as e:
                    log.warning("chain.prepare_failed", step=prep.name, error=str(e))

        attempts: list[tuple[str, str]] = []
        last: ExtractionOutcome = Success([])
        for strategy in self.strategies:
            try:
                outcome = await strategy.run(project, ctx)
            except Exception as e:
                outcome = Failure(e)

            kind = outcome_kind(outcome)
            attempts.append((strategy.name, kind))
            last = outcome

            if isinstance(outcome, Success) and outcome.dependencies:
                log.info(
                    "chain.resolved",
                    strategy=strategy.name,
                    dependencies=len(outcome.dependencies),
                )
                return ChainResult(outcome=outcome, attempts=attempts, strategy=strategy.name)
            if isinstance(outcome, (Skipped, EmptyNoManifest)):
                log.info("chain.stopped", strategy=strategy.name, outcome=kind)
                return ChainResult(outcome=outcome, attempts=attempts, strategy=strategy.name)
            if isinstance(outcome, Failure):
                log.warning("chain.strategy_failed", strategy=strategy.name, error=outcome.message)
            else:
                log.info("chain.strategy_empty", strategy=strategy.name)

        if isinstance(last, Failure):
            log.warning("chain.exhausted", attempts=attempts)
        return ChainResult(outcome=Success([]), attempts=attempts, exhausted=True)
