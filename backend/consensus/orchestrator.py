"""
Consensus orchestration.

State machine per run:

    COLLECTING -> AGGREGATING -> FINAL
                      |  ^
                      v  |
                   DEBATING          (while not aligned and rounds remain)
                      |
                      v
                  ESCALATED -> FINAL (deadlock / low confidence / truncated)
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional

from utils.errors import EvaluationTimeoutError, SchedulingCoreError
from utils.time import utc_now

from .agents import EVALUATORS, AgentEvaluator
from .aggregation import Aggregation, aggregate
from .config import DEFAULT_CONSENSUS_CONFIG, resolve_config
from .debate import DebateCoordinator
from .proposals import validate_context
from .types import (
    AgentDecision,
    AgentRole,
    ConsensusConfig,
    ConsensusRequest,
    ConsensusResponse,
    ConsensusResult,
    ConsensusStatus,
    DebateRound,
    DecisionContext,
    FinalDecision,
    OrchestrationState,
    Recommendation,
    VoteTally,
)

logger = logging.getLogger(__name__)


def conservative_reject(role: AgentRole, name: str, round_number: int = 0) -> AgentDecision:
    """Stand-in for an agent that never answered."""
    return AgentDecision(
        role=role,
        name=name,
        recommendation=Recommendation.REJECT,
        confidence=0.0,
        score=0.0,
        concerns=(f"{name} did not respond within its time budget",),
        round_number=round_number,
    )


class _Interrupted(Exception):
    """Deadline passed or the run was cancelled."""


class ConsensusOrchestrator:
    """
    Runs the four agents over one DecisionContext and produces a ConsensusResult.

    The orchestrator holds no per-run state; each call to evaluate() resolves
    its own config and owns its own thread pool.
    """

    def __init__(
        self,
        config: ConsensusConfig = DEFAULT_CONSENSUS_CONFIG,
        evaluators: Optional[dict[AgentRole, AgentEvaluator]] = None,
    ):
        self.config = config
        self.evaluators = evaluators or EVALUATORS

    def evaluate(
        self,
        context: DecisionContext,
        config: Optional[ConsensusConfig] = None,
        override: Optional[dict[str, Any]] = None,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ConsensusResult:
        """
        Evaluate a proposal to a final consensus result.

        Args:
            context: Resolved decision context
            config: Base config, defaults to the orchestrator's
            override: Partial config override for this run
            deadline: time.monotonic() value after which the run is cut short
            cancel_event: Set to cut the run short

        Raises:
            InvalidInputError: Context is structurally invalid
            ConfigurationError: Override produced an invalid config
        """
        validate_context(context)
        resolved = resolve_config(config or self.config, context.decision_type, override)
        started = time.monotonic()
        run = _Run(self, context, resolved, deadline, cancel_event)

        pool = ThreadPoolExecutor(max_workers=len(self.evaluators), thread_name_prefix="consensus-agent")
        try:
            return run.execute(pool, started)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def handle_request(self, request: ConsensusRequest, **context_fields) -> ConsensusResponse:
        """
        Evaluate a request and wrap the outcome. Core errors become a failed
        response instead of propagating.

        context_fields are the DecisionContext fields the caller loaded
        (existing_shifts, employee_preferences, jurisdiction, ...).
        """
        try:
            context = DecisionContext(
                decision_type=request.decision_type,
                proposal=request.proposal,
                roster_id=request.roster_id,
                shift_id=request.shift_id,
                user_id=request.user_id,
                **context_fields,
            )
            result = self.evaluate(context, override=request.config_override)
        except SchedulingCoreError as e:
            logger.warning(f"Consensus request from {request.requested_by} failed: {e.message}")
            return ConsensusResponse(success=False, error=e.message, error_kind=e.kind.value)

        return ConsensusResponse(success=True, result=result)


class _Run:
    """State for a single evaluate() call."""

    def __init__(
        self,
        orchestrator: ConsensusOrchestrator,
        context: DecisionContext,
        config: ConsensusConfig,
        deadline: Optional[float],
        cancel_event: Optional[threading.Event],
    ):
        self.evaluators = orchestrator.evaluators
        self.context = context
        self.config = config
        self.deadline = deadline
        self.cancel_event = cancel_event
        self.state = OrchestrationState.COLLECTING
        self.notes: list[str] = []
        self.history: list[AgentDecision] = []
        self.rounds: list[DebateRound] = []
        self.pool: Optional[ThreadPoolExecutor] = None

    def transition(self, state: OrchestrationState) -> None:
        logger.info(f"{self.context.decision_type.value}: {self.state.value} -> {state.value}")
        self.state = state

    def execute(self, pool: ThreadPoolExecutor, started: float) -> ConsensusResult:
        self.pool = pool
        logger.info(f"Starting consensus evaluation for {self.context.decision_type.value}")
        current: list[AgentDecision] = []

        try:
            current = self.collect()
            self.history.extend(current)
            self.check_interrupted()

            self.transition(OrchestrationState.AGGREGATING)
            aggregation = aggregate(current, self.config)

            coordinator = DebateCoordinator(self.context, self.config, self.evaluators, runner=self.run_parallel)
            while coordinator.should_debate(aggregation, len(self.rounds)):
                self.transition(OrchestrationState.DEBATING)
                debate_round, current = coordinator.run_round(current, len(self.rounds) + 1)
                self.rounds.append(debate_round)
                self.history.extend(current)
                self.check_interrupted()

                self.transition(OrchestrationState.AGGREGATING)
                aggregation = aggregate(current, self.config)
        except _Interrupted as e:
            return self.truncated(current, started, str(e))

        if aggregation.status in (ConsensusStatus.ESCALATE, ConsensusStatus.DEADLOCK):
            self.transition(OrchestrationState.ESCALATED)
        self.transition(OrchestrationState.FINAL)
        return self.result(aggregation, started)

    # ------------------------------------------------------------------
    # Agent invocation
    # ------------------------------------------------------------------

    def collect(self) -> list[AgentDecision]:
        tasks = {
            role: self._evaluate_task(evaluator)
            for role, evaluator in self.evaluators.items()
        }
        fallbacks = {
            role: conservative_reject(role, evaluator.name)
            for role, evaluator in self.evaluators.items()
        }
        decisions = self.run_parallel(tasks, fallbacks)
        return [decisions[role] for role in AgentRole if role in decisions]

    def _evaluate_task(self, evaluator: AgentEvaluator) -> Callable:
        return lambda: evaluator.evaluate(self.context, self.config)

    def check_interrupted(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise _Interrupted("cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise _Interrupted("deadline exceeded")

    def _budget(self) -> float:
        budget = self.config.agent_timeout_seconds
        if self.deadline is not None:
            budget = min(budget, max(0.0, self.deadline - time.monotonic()))
        return budget

    def run_parallel(self, tasks: dict[AgentRole, Callable], fallbacks: dict[AgentRole, Any]) -> dict[AgentRole, Any]:
        """Run one task per role on the pool; late roles get their fallback."""
        self.check_interrupted()
        futures = {role: self.pool.submit(task) for role, task in tasks.items()}
        # One shared time budget per batch, measured from submission
        batch_deadline = time.monotonic() + self._budget()

        results = {}
        for role, future in futures.items():
            try:
                results[role] = self._await(role, future, batch_deadline)
            except EvaluationTimeoutError as e:
                logger.warning(e.message)
                self.notes.append(e.message)
                results[role] = fallbacks[role]
        return results

    def _await(self, role: AgentRole, future: Future, batch_deadline: float):
        remaining = max(0.0, batch_deadline - time.monotonic())
        try:
            return future.result(timeout=remaining)
        except FutureTimeoutError:
            future.cancel()
            raise EvaluationTimeoutError(
                f"{self.evaluators[role].name} timed out after {self.config.agent_timeout_seconds}s",
                role=role.value,
            )

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def truncated(self, current: list[AgentDecision], started: float, reason: str) -> ConsensusResult:
        note = f"Evaluation interrupted ({reason}) during {self.state.value}"
        logger.warning(note)
        self.notes.append(note)
        self.transition(OrchestrationState.ESCALATED)

        if current:
            aggregation = aggregate(current, self.config)
        else:
            aggregation = None

        if aggregation is not None and aggregation.hard_limit_override:
            # Hard limits still win over an interrupted run
            self.transition(OrchestrationState.FINAL)
            return self.result(aggregation, started, truncated=True)

        escalation = Aggregation(
            status=ConsensusStatus.ESCALATE,
            final_decision=FinalDecision.ESCALATE,
            tally=aggregation.tally if aggregation else _empty_tally(),
            consensus_score=aggregation.consensus_score if aggregation else 0.0,
            confidence_level=aggregation.confidence_level if aggregation else 0.0,
            summary="Decision escalated for human review due to an interrupted evaluation.",
            key_reasons=aggregation.key_reasons if aggregation else (),
            remaining_concerns=aggregation.remaining_concerns if aggregation else (),
            conditions=aggregation.conditions if aggregation else (),
            escalation_reason="truncated",
        )
        self.transition(OrchestrationState.FINAL)
        return self.result(escalation, started, truncated=True)

    def result(self, aggregation: Aggregation, started: float, truncated: bool = False) -> ConsensusResult:
        duration_ms = round((time.monotonic() - started) * 1000, 1)
        logger.info(
            f"Consensus for {self.context.decision_type.value}: {aggregation.status.value} "
            f"({aggregation.final_decision.value}) after {len(self.rounds)} round(s) in {duration_ms}ms"
        )
        return ConsensusResult(
            status=aggregation.status,
            final_decision=aggregation.final_decision,
            tally=aggregation.tally,
            agent_decisions=tuple(self.history),
            debate_rounds=tuple(self.rounds),
            consensus_score=aggregation.consensus_score,
            confidence_level=aggregation.confidence_level,
            summary=aggregation.summary,
            key_reasons=aggregation.key_reasons,
            remaining_concerns=aggregation.remaining_concerns,
            conditions=aggregation.conditions,
            decision_type=self.context.decision_type,
            evaluated_at=utc_now(),
            duration_ms=duration_ms,
            hard_limit_override=aggregation.hard_limit_override,
            truncated=truncated,
            escalation_reason=aggregation.escalation_reason,
            notes=tuple(self.notes),
        )


def _empty_tally() -> VoteTally:
    return VoteTally(votes_for=0, votes_against=0, abstentions=0, weighted_for=0.0, weighted_against=0.0)
