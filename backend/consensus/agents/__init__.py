"""
Agent evaluators, dispatched by role.

Each role module exposes two plain functions:

    evaluate(context, config) -> AgentDecision
    respond(context, own, decisions, topic, config) -> AgentResponse
"""

from typing import Callable, NamedTuple

from ..types import AgentRole
from . import compliance, cost, employee, operations
from .common import AGENT_NAMES, AGENT_PROFILES


class AgentEvaluator(NamedTuple):
    name: str
    evaluate: Callable
    respond: Callable


EVALUATORS = {
    AgentRole.COMPLIANCE: AgentEvaluator(AGENT_NAMES[AgentRole.COMPLIANCE], compliance.evaluate, compliance.respond),
    AgentRole.COST_OPTIMIZER: AgentEvaluator(AGENT_NAMES[AgentRole.COST_OPTIMIZER], cost.evaluate, cost.respond),
    AgentRole.EMPLOYEE_ADVOCATE: AgentEvaluator(
        AGENT_NAMES[AgentRole.EMPLOYEE_ADVOCATE], employee.evaluate, employee.respond
    ),
    AgentRole.OPERATIONS: AgentEvaluator(AGENT_NAMES[AgentRole.OPERATIONS], operations.evaluate, operations.respond),
}

__all__ = ["AGENT_NAMES", "AGENT_PROFILES", "AgentEvaluator", "EVALUATORS"]
