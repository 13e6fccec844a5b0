"""
Schema Export & Validation
===========================

JSON-schema export and dict validation for the ClaimGuard data
contracts, so that collaborators written in other languages (the web
front end, the audit store) can validate payloads against the same
definitions.

Usage:
    from claimguard.schemas.export import validate_payload
    errors = validate_payload("raw_decision", model_output_dict)
    if errors:
        print("Validation failed:", errors)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from claimguard.schemas.audit import AuditRecord
from claimguard.schemas.claim import ClaimRequest
from claimguard.schemas.decision import ClaimDecision, RawDecision
from claimguard.schemas.evidence import PolicyClause

logger = logging.getLogger("claimguard.schemas.export")

SCHEMAS: dict[str, type[BaseModel]] = {
    "claim_request": ClaimRequest,
    "policy_clause": PolicyClause,
    "raw_decision": RawDecision,
    "claim_decision": ClaimDecision,
    "audit_record": AuditRecord,
}


def get_json_schema(schema_name: str) -> dict[str, Any]:
    """
    Export the JSON Schema for a ClaimGuard data contract.

    Args:
        schema_name: One of the keys of ``SCHEMAS``.

    Returns:
        JSON Schema dict.
    """
    if schema_name not in SCHEMAS:
        raise ValueError(f"Unknown schema: {schema_name}. Use: {list(SCHEMAS.keys())}")
    return SCHEMAS[schema_name].model_json_schema()


def export_all_schemas(output_dir: str | Path) -> list[Path]:
    """
    Write one ``<name>_schema.json`` file per contract.

    Returns:
        Paths of the written files.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for name in SCHEMAS:
        path = output_dir / f"{name}_schema.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(get_json_schema(name), f, indent=2, ensure_ascii=False)
        logger.info(f"Exported schema: {path}")
        written.append(path)
    return written


def validate_payload(schema_name: str, data: dict[str, Any]) -> list[str]:
    """
    Validate a dict against one of the contracts.

    Audit records are additionally checked for integrity.

    Returns:
        List of error messages (empty if valid).
    """
    if schema_name not in SCHEMAS:
        return [f"Unknown schema: {schema_name}"]

    try:
        obj = SCHEMAS[schema_name].model_validate(data)
    except ValidationError as e:
        return [f"Schema validation failed: {err['loc']}: {err['msg']}" for err in e.errors()]

    if isinstance(obj, AuditRecord) and obj.integrity_hash and not obj.verify_integrity():
        return ["Audit record integrity hash mismatch (possible tampering)"]
    return []
