from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.orm import Session

from maintdb.apps.audit import services as audit_services
from maintdb.errors import InvalidTransition

from .registry import WORKFLOWS


def _state_key(state: Any) -> str:
    if isinstance(state, Enum):
        return str(state.value)
    return str(state)


def _json_safe(obj: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if not isinstance(obj, dict):
        return payload
    for key, value in obj.items():
        if isinstance(value, Enum):
            value = value.value
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        payload[key] = value
    return payload


def allowed_transitions(entity_type: str, from_state: Any) -> Set[str]:
    workflow = WORKFLOWS.get(entity_type, {})
    return set(workflow.get("transitions", {}).get(_state_key(from_state), {}))


def apply_transition(
    db: Session,
    *,
    actor_user_id: Optional[str],
    entity_type: str,
    entity_id: str,
    from_state: Any,
    to_state: Any,
    before_obj: Any,
    after_obj: Any,
    critical: bool = True,
) -> None:
    """
    Check a status change against the registered workflow, run its guards and
    write the audit event. Raises InvalidTransition with code
    "invalid_transition" (edge not in the table) or "missing_requirements"
    (a guard failed). Does not mutate the entity; callers set the new status.
    """
    from_key = _state_key(from_state)
    to_key = _state_key(to_state)

    workflow = WORKFLOWS.get(entity_type)
    if not workflow:
        raise InvalidTransition(
            code="invalid_transition",
            detail=[{"field": "entity_type", "reason": f"No workflow registered for {entity_type}"}],
        )

    transitions = workflow.get("transitions", {})
    allowed = transitions.get(from_key, {})
    guards = allowed.get(to_key)

    if guards is None:
        raise InvalidTransition(
            code="invalid_transition",
            detail=[{"field": "status", "reason": f"Cannot transition from {from_key} to {to_key}"}],
        )

    failures: List[Dict[str, str]] = []
    for guard in guards:
        failures.extend(
            guard(
                db,
                before_obj=before_obj,
                after_obj=after_obj,
                from_state=from_key,
                to_state=to_key,
            )
        )

    if failures:
        raise InvalidTransition(code="missing_requirements", detail=failures)

    before_payload: Dict[str, Any] = {"status": from_key}
    after_payload: Dict[str, Any] = {"status": to_key}
    before_payload.update({k: v for k, v in _json_safe(before_obj).items() if k != "status"})
    after_payload.update({k: v for k, v in _json_safe(after_obj).items() if k != "status"})

    audit_services.log_event(
        db,
        actor_user_id=actor_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action="transition",
        before=before_payload,
        after=after_payload,
        metadata={"workflow": entity_type},
        critical=critical,
    )
