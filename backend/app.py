import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from config import validate_config
from compliance import ComplianceContext, ComplianceEngine, JurisdictionConfig, PublicationValidator
from consensus.agents import AGENT_NAMES, AGENT_PROFILES
from consensus.audit import ConsensusAuditEntry, build_audit_entry, new_audit_entry
from consensus.config import consensus_config_from_env, resolve_config
from consensus.orchestrator import ConsensusOrchestrator
from consensus.transparency import apply_user_edits, build_transparent_decision
from consensus.types import AgentRole, ConsensusResponse, ConsensusResult
from schemas import (
    AuditPurgeResponse,
    ConsensusEvaluateRequest,
    DecisionEditRequest,
    JurisdictionRuleUpdate,
    PublishCheckRequest,
    ValidateRequest,
)
from db import (
    init_db,
    close_db,
    JurisdictionRuleDoc,
    record_consensus_audit,
    find_audit_entry,
    list_audit_entries,
    delete_audit_entry,
    purge_expired_audit_entries,
)
from utils import RetentionViolationError, SchedulingCoreError, as_utc, setup_logging, utc_now

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    validate_config()
    await init_db()
    yield
    await close_db()


app = FastAPI(title="shiftCompliance", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

engine = ComplianceEngine()
publication_validator = PublicationValidator()
orchestrator = ConsensusOrchestrator(consensus_config_from_env())


def _bad_request(error: SchedulingCoreError) -> HTTPException:
    return HTTPException(status_code=400, detail=error.to_dict())


async def get_jurisdiction_config(jurisdiction: str) -> JurisdictionConfig:
    """Stored rules for the jurisdiction, otherwise the environment defaults."""
    jurisdiction = jurisdiction.upper()
    rule = await JurisdictionRuleDoc.find_one(JurisdictionRuleDoc.jurisdiction == jurisdiction)
    if rule:
        return rule.to_config()
    return JurisdictionConfig.from_env(jurisdiction)


# ============================================================================
# Compliance
# ============================================================================


@app.post("/compliance/validate")
async def validate_shifts(request: ValidateRequest):
    """Validate proposed shifts against the existing schedule."""
    try:
        config = await get_jurisdiction_config(request.jurisdiction)
        context = ComplianceContext(
            config=config,
            proposed_shifts=[s.to_record() for s in request.proposed_shifts],
            existing_shifts=[s.to_record() for s in request.existing_shifts],
            roster=request.roster.to_roster() if request.roster else None,
            **request.toggles(),
        )
    except SchedulingCoreError as e:
        raise _bad_request(e)

    result = engine.validate_context(context)
    return result.to_dict()


@app.post("/compliance/publish-check")
async def check_publish(request: PublishCheckRequest):
    """Check whether publishing a roster now (or at a given moment) is on time."""
    try:
        config = await get_jurisdiction_config(request.jurisdiction)
    except SchedulingCoreError as e:
        raise _bad_request(e)

    roster = request.roster.to_roster()
    validation = publication_validator.check_publish(roster, config, at=request.at)
    return {
        "roster_id": roster.id,
        "jurisdiction": config.jurisdiction,
        **validation.to_dict(),
    }


@app.get("/compliance/rules/{jurisdiction}")
async def get_jurisdiction_rules(jurisdiction: str):
    """Get the working-time rules in effect for a jurisdiction."""
    rule = await JurisdictionRuleDoc.find_one(JurisdictionRuleDoc.jurisdiction == jurisdiction.upper())
    if rule:
        return {
            **rule.to_config().to_dict(),
            "source": "database",
            "updated_by": rule.updated_by,
            "updated_at": rule.updated_at.isoformat(),
        }

    try:
        config = JurisdictionConfig.from_env(jurisdiction.upper())
    except SchedulingCoreError as e:
        raise _bad_request(e)
    return {**config.to_dict(), "source": "default", "updated_by": None, "updated_at": None}


@app.post("/compliance/rules/{jurisdiction}")
async def create_or_update_jurisdiction_rules(jurisdiction: str, request: JurisdictionRuleUpdate):
    """Create or update the working-time rules for a jurisdiction."""
    jurisdiction = jurisdiction.upper()
    try:
        config = request.to_config(jurisdiction)
    except SchedulingCoreError as e:
        raise _bad_request(e)

    values = config.to_dict()
    values.pop("jurisdiction")

    rule = await JurisdictionRuleDoc.find_one(JurisdictionRuleDoc.jurisdiction == jurisdiction)
    if rule:
        await rule.set({**values, "updated_by": request.updated_by, "updated_at": utc_now()})
    else:
        rule = JurisdictionRuleDoc(jurisdiction=jurisdiction, updated_by=request.updated_by, **values)
        await rule.insert()

    logger.info(f"Jurisdiction rules for {jurisdiction} saved by {request.updated_by or 'unknown'}")
    return {"success": True, "jurisdiction": jurisdiction}


# ============================================================================
# Consensus
# ============================================================================


async def _run_consensus(request: ConsensusEvaluateRequest) -> tuple[ConsensusResponse, ConsensusAuditEntry]:
    """Evaluate off the event loop and audit the completed result."""
    try:
        jurisdiction = await get_jurisdiction_config(request.jurisdiction)
        consensus_request = request.to_request()
        context_fields = request.context_fields(jurisdiction)
    except SchedulingCoreError as e:
        raise _bad_request(e)

    response = await run_in_threadpool(orchestrator.handle_request, consensus_request, **context_fields)
    if not response.success:
        raise HTTPException(
            status_code=400,
            detail={"kind": response.error_kind, "message": response.error, "details": {}},
        )

    entry = build_audit_entry(consensus_request, response.result)
    await record_consensus_audit(entry)
    response.audit_id = entry.id
    return response, entry


@app.post("/consensus/evaluate")
async def evaluate_consensus(request: ConsensusEvaluateRequest):
    """Run the agents over a proposal. Every completed evaluation is audited."""
    response, _ = await _run_consensus(request)
    return response.to_dict()


@app.post("/consensus/evaluate/detailed")
async def evaluate_consensus_detailed(request: ConsensusEvaluateRequest):
    """Evaluate and return every agent's scoring components for review."""
    response, entry = await _run_consensus(request)
    decision = build_transparent_decision(response.result, entry.id, created_at=entry.created_at)
    return {"success": True, "audit_id": entry.id, "decision": decision.to_dict()}


@app.post("/consensus/decisions/{audit_id}/edit")
async def edit_consensus_decision(audit_id: str, request: DecisionEditRequest):
    """Re-score components of an audited decision and recalculate the consensus."""
    doc = await find_audit_entry(audit_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Audit record not found")

    try:
        result = ConsensusResult.from_dict(doc.result)
        config = resolve_config(orchestrator.config, result.decision_type)
        decision = build_transparent_decision(result, audit_id, created_at=as_utc(doc.created_at))
        updated = apply_user_edits(decision, request.to_edits(), config)
    except SchedulingCoreError as e:
        raise _bad_request(e)

    # The recalculated decision is a new decision with its own audit trail
    entry = new_audit_entry(
        updated.result,
        request.edited_by,
        roster_id=doc.roster_id,
        shift_id=doc.shift_id,
        user_id=doc.user_id,
    )
    await record_consensus_audit(entry)
    return {
        "success": True,
        "audit_id": entry.id,
        "source_audit_id": audit_id,
        "decision": replace(updated, id=entry.id).to_dict(),
        "message": f"Applied {len(request.edits)} edits. Consensus recalculated.",
    }


@app.get("/consensus/agents")
async def get_consensus_agents():
    """Describe the agents and their vote weights."""
    agents = []
    for role in AgentRole:
        description, expertise = AGENT_PROFILES[role]
        agents.append({
            "role": role.value,
            "name": AGENT_NAMES[role],
            "description": description,
            "expertise": list(expertise),
            "weight": orchestrator.config.weight_for(role),
        })
    return {"agents": agents}


def _audit_summary(doc) -> dict:
    return {
        "audit_id": doc.audit_id,
        "decision_type": doc.decision_type,
        "status": doc.status,
        "final_decision": doc.final_decision,
        "requested_by": doc.requested_by,
        "roster_id": doc.roster_id,
        "shift_id": doc.shift_id,
        "user_id": doc.user_id,
        "created_at": doc.created_at.isoformat(),
        "retain_until": doc.retain_until.isoformat(),
    }


@app.get("/consensus/audit")
async def get_consensus_audit_history(roster_id: str | None = None, limit: int = 50):
    """Get the consensus decision audit trail, newest first."""
    docs = await list_audit_entries(roster_id=roster_id, limit=limit)
    return [_audit_summary(doc) for doc in docs]


@app.get("/consensus/audit/{audit_id}")
async def get_consensus_audit_detail(audit_id: str):
    """Get one audit entry including the full consensus result."""
    doc = await find_audit_entry(audit_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Audit record not found")
    return {**_audit_summary(doc), "result": doc.result}


@app.delete("/consensus/audit/{audit_id}")
async def delete_consensus_audit(audit_id: str):
    """Delete an audit entry. Refused while it is inside its retention period."""
    try:
        deleted = await delete_audit_entry(audit_id)
    except RetentionViolationError as e:
        raise HTTPException(status_code=409, detail=e.to_dict())

    if not deleted:
        raise HTTPException(status_code=404, detail="Audit record not found")
    return {"success": True, "audit_id": audit_id}


@app.post("/consensus/audit/purge", response_model=AuditPurgeResponse)
async def purge_consensus_audit():
    """Delete every audit entry whose retention period has ended."""
    deleted = await purge_expired_audit_entries()
    return AuditPurgeResponse(success=True, deleted=deleted)

