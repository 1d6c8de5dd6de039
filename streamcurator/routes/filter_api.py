"""Filter API routes — per-user filter rule CRUD."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from streamcurator.dependencies import get_rule_service, get_user_id
from streamcurator.models.api import IdsIn
from streamcurator.models.stream import FILTER_KIND_LABELS, FilterKind, FilterRule, FilterRuleIn
from streamcurator.services.filter_service import is_valid_pattern
from streamcurator.services.rule_service import RuleService

router = APIRouter(prefix="/api/filters", tags=["filters"])

_KINDS = {k.value for k in FilterKind}


def _rule_payload(rule: FilterRule) -> dict:
    data = rule.model_dump()
    data["valid"] = rule.kind == FilterKind.EXCLUDE_NAME or is_valid_pattern(rule.pattern)
    return data


def _check_kind(data: FilterRuleIn):
    if data.kind not in _KINDS:
        return JSONResponse({"error": f"Unknown filter kind: {data.kind}"}, status_code=400)
    if not data.pattern.strip():
        return JSONResponse({"error": "Pattern cannot be empty"}, status_code=400)
    return None


@router.get("/kinds")
async def list_kinds():
    return {int(k): label for k, label in FILTER_KIND_LABELS.items()}


@router.get("")
async def list_filters(
    search: str = Query(""),
    user_id: int = Depends(get_user_id),
    rules: RuleService = Depends(get_rule_service),
):
    return [_rule_payload(r) for r in rules.list_rules(user_id, search.strip())]


@router.post("", status_code=201)
async def create_filter(
    data: FilterRuleIn,
    user_id: int = Depends(get_user_id),
    rules: RuleService = Depends(get_rule_service),
):
    error = _check_kind(data)
    if error is not None:
        return error
    rule = rules.create_rule(user_id, data)
    payload = _rule_payload(rule)
    return {"status": "ok", "filter": payload, "valid": payload["valid"]}


@router.post("/delete")
async def delete_filters(
    data: IdsIn,
    user_id: int = Depends(get_user_id),
    rules: RuleService = Depends(get_rule_service),
):
    return {"status": "ok", "deleted": rules.delete_rules(user_id, data.ids)}


@router.put("/{rule_id}")
async def update_filter(
    rule_id: int,
    data: FilterRuleIn,
    user_id: int = Depends(get_user_id),
    rules: RuleService = Depends(get_rule_service),
):
    error = _check_kind(data)
    if error is not None:
        return error
    payload = _rule_payload(rules.update_rule(user_id, rule_id, data))
    return {"status": "ok", "filter": payload, "valid": payload["valid"]}


@router.delete("/{rule_id}")
async def delete_filter(
    rule_id: int,
    user_id: int = Depends(get_user_id),
    rules: RuleService = Depends(get_rule_service),
):
    if not rules.delete_rules(user_id, [rule_id]):
        return JSONResponse({"error": f"Filter {rule_id} not found"}, status_code=404)
    return {"status": "ok"}


@router.post("/{rule_id}/toggle")
async def toggle_filter(
    rule_id: int,
    user_id: int = Depends(get_user_id),
    rules: RuleService = Depends(get_rule_service),
):
    rule = rules.toggle_active(user_id, rule_id)
    return {"status": "ok", "active": rule.active}
