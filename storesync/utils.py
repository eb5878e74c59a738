import json
import math
import re
from typing import Any, Optional

FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
FENCED_ANY_RE = re.compile(r"```\s*([\s\S]*?)\s*```")


def normalize_ref(text: Optional[str]) -> str:
    """Purpose: Normalize a catalog value or reference for ladder matching.
    Inputs/Outputs: Input is a raw string; output is the trimmed, case-folded string.
    Side Effects / State: None; pure function.
    Dependencies: Used by the reference resolver and preflight SKU checks.
    Failure Modes: Returns an empty string when input is falsy.
    If Removed: Matching becomes case- and whitespace-sensitive.
    Testing Notes: "  Widget A " and "widget a" must normalize equally.
    """
    # Case-folding is the only collation applied.
    if not text:
        return ""
    return text.strip().lower()


def extract_json_block(text: str) -> Optional[str]:
    """Purpose: Extract the outermost JSON object block from an arbitrary string.
    Inputs/Outputs: Input is a raw string; output is JSON substring or None.
    Side Effects / State: None; pure function.
    Dependencies: None beyond built-ins; used by parse_model_json.
    Failure Modes: Returns None if braces are missing or inverted.
    If Removed: Model outputs wrapped in prose cannot be recovered.
    Testing Notes: Provide strings with extra text before/after JSON and ensure extraction.
    """
    # Locate the first opening and last closing brace.
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]


def extract_fenced_block(text: str) -> Optional[str]:
    """Return the body of the first ```json fence, or of any fence, if present."""
    match = FENCED_JSON_RE.search(text) or FENCED_ANY_RE.search(text)
    if not match:
        return None
    return match.group(1)


def parse_model_json(text: str) -> Any:
    """Purpose: Recover a JSON value from model output that may deviate from strict JSON.
    Inputs/Outputs: Input is raw model text; output is the decoded value or None.
    Side Effects / State: None; pure function.
    Dependencies: Uses extract_fenced_block and extract_json_block.
    Failure Modes: Returns None when no attempt decodes.
    If Removed: Fenced or prose-wrapped model replies fail the whole plan.
    Testing Notes: Cover direct JSON, fenced blocks, leading prose, and garbage.
    """
    # Direct parse first, then a fenced block, then the outermost braces.
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    fenced = extract_fenced_block(text)
    if fenced:
        try:
            return json.loads(fenced)
        except json.JSONDecodeError:
            return None

    block = extract_json_block(text)
    if not block:
        return None
    try:
        return json.loads(block)
    except json.JSONDecodeError:
        return None


def as_string(value: Any) -> Optional[str]:
    """Return a trimmed non-empty string or None."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def as_number(value: Any) -> Optional[float]:
    """Return a finite number from a number or numeric string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        if not math.isfinite(parsed):
            return None
        return int(parsed) if parsed.is_integer() else parsed
    return None


def as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def is_whole_number(value: Any) -> bool:
    """True for ints and integral floats, excluding booleans."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()
