"""
Inventory cycle logic.

A cycle is a plain document::

    {"id", "date", "isFinalized", "createdBy",
     "sheets": [{"id", "title", "status", "lockedBy": {"id", "name"}, "lockedAt",
                 "items": [{"id", "name", "unit", "code", "actual"}]}]}

Sheet locks are advisory: the server only records who holds a sheet, while
staleness (30 minutes) is judged by clients. Everything here works on dicts
in place or returns new dicts, no I/O.
"""

from __future__ import annotations

import ast
import copy
import math
import operator
import re
import uuid
from typing import Any, Dict, List, Optional, Tuple

from utils.time import minutes_ms

LOCK_TTL_MS = minutes_ms(30)

STATUS_ACTIVE = "active"
STATUS_SUBMITTED = "submitted"

MONGO_FIELDS = ("_id", "__v")


class SheetNotFound(LookupError):
    """Cycle has no sheet with the requested id."""


def find_sheet(cycle: Optional[Dict[str, Any]], sheet_id: str) -> Dict[str, Any]:
    for sheet in (cycle or {}).get("sheets") or []:
        if sheet.get("id") == sheet_id:
            return sheet
    raise SheetNotFound(sheet_id)


def _same_user(holder: Optional[Dict[str, Any]], user_id: Any) -> bool:
    return bool(holder) and str(holder.get("id")) == str(user_id)


def try_lock(
    cycle: Dict[str, Any], sheet_id: str, user: Dict[str, Any], now: int
) -> Tuple[bool, Optional[Dict[str, Any]]]:
    """Take the sheet for ``user`` unless someone else holds it.

    Returns ``(granted, holder)``; on refusal ``holder`` is the current
    ``lockedBy``. Stale locks are not broken here, the holder stays until an
    explicit unlock or submit.
    """
    sheet = find_sheet(cycle, sheet_id)
    holder = sheet.get("lockedBy")
    if holder and not _same_user(holder, user.get("id")):
        return False, holder
    sheet["lockedBy"] = {"id": user.get("id"), "name": user.get("name")}
    sheet["lockedAt"] = now
    return True, sheet["lockedBy"]


def release(cycle: Dict[str, Any], sheet_id: str) -> None:
    sheet = find_sheet(cycle, sheet_id)
    sheet.pop("lockedBy", None)
    sheet.pop("lockedAt", None)


def is_lock_stale(sheet: Dict[str, Any], now: int, ttl: int = LOCK_TTL_MS) -> bool:
    """A lock without a timestamp never expires on its own."""
    locked_at = sheet.get("lockedAt")
    if not sheet.get("lockedBy") or not locked_at:
        return False
    return now - locked_at >= ttl


def locked_by_other(sheet: Dict[str, Any], user_id: Any, now: int) -> bool:
    """Client check before opening a sheet: held by someone else and still fresh."""
    holder = sheet.get("lockedBy")
    if not holder or _same_user(holder, user_id):
        return False
    locked_at = sheet.get("lockedAt")
    return bool(locked_at) and now - locked_at < LOCK_TTL_MS


def set_actual(
    cycle: Dict[str, Any], sheet_id: str, item_id: str, value: Optional[float]
) -> bool:
    """Set the counted amount; None clears it. Returns False for an unknown item."""
    sheet = find_sheet(cycle, sheet_id)
    for item in sheet.get("items") or []:
        if item.get("id") == item_id:
            if value is None:
                item.pop("actual", None)
            else:
                item["actual"] = value
            return True
    return False


def remove_item(cycle: Dict[str, Any], sheet_id: str, item_id: str) -> None:
    sheet = find_sheet(cycle, sheet_id)
    sheet["items"] = [i for i in sheet.get("items") or [] if i.get("id") != item_id]


def submit_sheet(cycle: Dict[str, Any], sheet_id: str) -> None:
    sheet = find_sheet(cycle, sheet_id)
    sheet["status"] = STATUS_SUBMITTED
    sheet.pop("lockedBy", None)
    sheet.pop("lockedAt", None)


def add_sheet(
    cycle: Dict[str, Any], title: str, items: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """Append a sheet built from catalog rows (name, unit, optional code)."""
    rows = []
    for row in items:
        name = str(row.get("name") or "").strip()
        unit = str(row.get("unit") or "").strip()
        if not name or not unit:
            continue
        rows.append(
            {"id": str(uuid.uuid4()), "name": name, "unit": unit, "code": str(row.get("code") or "")}
        )
    if not rows:
        raise ValueError("sheet has no valid items")
    sheet = {"id": str(uuid.uuid4()), "title": title, "items": rows, "status": STATUS_ACTIVE}
    cycle.setdefault("sheets", []).append(sheet)
    return sheet


def new_cycle(created_by: str, now: int) -> Dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "date": now,
        "sheets": [],
        "isFinalized": False,
        "createdBy": created_by or "System",
    }


def clean_mongo_fields(obj: Any) -> Any:
    if isinstance(obj, list):
        return [clean_mongo_fields(v) for v in obj]
    if isinstance(obj, dict):
        return {k: clean_mongo_fields(v) for k, v in obj.items() if k not in MONGO_FIELDS}
    return obj


def _counted(item: Dict[str, Any]) -> bool:
    actual = item.get("actual")
    return isinstance(actual, (int, float)) and actual > 0


def finalize(
    cycle: Dict[str, Any], new_id: str, now: int
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Split the active cycle into an archived snapshot and a fresh reset cycle.

    The archive gets a new id and date, keeps only items counted above zero
    and drops sheets left empty. The reset cycle keeps the id and the item
    lists, with every count, lock and submit status cleared.
    """
    clean = clean_mongo_fields(cycle)

    archive = copy.deepcopy(clean)
    archive.update(id=new_id, isFinalized=True, date=now)
    sheets = []
    for sheet in archive.get("sheets") or []:
        sheet["items"] = [i for i in sheet.get("items") or [] if _counted(i)]
        if sheet["items"]:
            sheets.append(sheet)
    archive["sheets"] = sheets

    reset = copy.deepcopy(clean)
    for sheet in reset.get("sheets") or []:
        sheet["status"] = STATUS_ACTIVE
        sheet.pop("lockedBy", None)
        sheet.pop("lockedAt", None)
        for item in sheet.get("items") or []:
            item.pop("actual", None)
    return archive, reset


def progress(cycle: Optional[Dict[str, Any]]) -> int:
    """Percent of items that have a count, 0 for an empty cycle."""
    total = filled = 0
    for sheet in (cycle or {}).get("sheets") or []:
        for item in sheet.get("items") or []:
            total += 1
            if item.get("actual") is not None:
                filled += 1
    if not total:
        return 0
    return int(filled * 100 / total + 0.5)


def active_cycle(cycles: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return next((c for c in cycles if not c.get("isFinalized")), None)


# --- арифметика в поле ввода: "2+3*1,5" ---

_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}
_ALLOWED_CHARS = re.compile(r"[^-0-9+*/().,]")
_PLAIN_NUMBER = re.compile(r"^[0-9.]+$")


def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _OPERATORS:
        return _OPERATORS[type(node.op)](_eval_node(node.left), _eval_node(node.right))
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.USub, ast.UAdd)):
        value = _eval_node(node.operand)
        return -value if isinstance(node.op, ast.USub) else value
    raise ValueError(f"unsupported expression: {ast.dump(node)}")


def safe_eval(expr: str) -> Optional[float]:
    """Evaluate a count typed as arithmetic.

    Returns None for plain numbers (nothing to compute) and for anything that
    is not a finite arithmetic result.
    """
    clean = _ALLOWED_CHARS.sub("", expr or "").replace(",", ".")
    if not clean or _PLAIN_NUMBER.match(clean):
        return None
    try:
        result = _eval_node(ast.parse(clean, mode="eval"))
        if isinstance(result, bool) or not isinstance(result, (int, float)):
            return None
        # огромные int не влезают во float
        finite = math.isfinite(result)
    except (SyntaxError, ValueError, ZeroDivisionError, RecursionError, OverflowError):
        return None
    return result if finite else None


def parse_count(raw: str) -> Optional[float]:
    """Value to store for what the user typed: evaluated expression or number."""
    evaluated = safe_eval(raw)
    if evaluated is not None:
        return evaluated
    try:
        value = float((raw or "").replace(",", "."))
    except ValueError:
        return None
    return value if math.isfinite(value) else None
