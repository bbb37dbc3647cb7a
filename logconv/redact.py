# FILE: logconv/redact.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence, Tuple

REDACTED = "[Redacted]"

# Wrappers whose "headers" block is always scrubbed, wherever they appear
# (top level, nested, or under an "err" wrapper).
_HTTP_CARRIERS = ("req", "request", "res", "response", "resp")

BASELINE_PATHS: Tuple[str, ...] = (
    "**.password",
    "**.email",
) + tuple(f"**.{name}.headers.*" for name in _HTTP_CARRIERS)

# ---------- Path grammar ----------
# path    := segment ( "." segment | "[" selector "]" )*
# segment := name | "*" | "**"
# selector:= "*" | digits | '"' text '"' | "'" text "'"
_KEY = "key"
_ANY = "any"
_DEEP = "deep"


@dataclass(frozen=True)
class _Step:
    kind: str
    name: str = ""


def parse_path(path: str) -> Tuple[_Step, ...]:
    """
    Parse a redaction path into matching steps.

    Raises ValueError for malformed paths; this only happens when the
    redactor is built, never while logging.
    """
    if not isinstance(path, str) or not path.strip():
        raise ValueError(f"Invalid redaction path {path!r}: empty")
    src = path.strip()
    steps: List[_Step] = []
    i = 0
    n = len(src)
    expect_segment = True
    while i < n:
        ch = src[i]
        if ch == "[":
            end, step = _parse_bracket(src, i)
            steps.append(step)
            i = end
            expect_segment = False
            continue
        if ch == ".":
            if expect_segment:
                raise ValueError(f"Invalid redaction path {path!r}: empty segment")
            i += 1
            expect_segment = True
            continue
        if not expect_segment:
            raise ValueError(f"Invalid redaction path {path!r}: expected '.' or '['")
        j = i
        while j < n and src[j] not in ".[":
            j += 1
        name = src[i:j]
        if name == "**":
            steps.append(_Step(_DEEP))
        elif name == "*":
            steps.append(_Step(_ANY))
        elif "*" in name:
            raise ValueError(f"Invalid redaction path {path!r}: partial wildcard '{name}'")
        else:
            steps.append(_Step(_KEY, name))
        i = j
        expect_segment = False
    if expect_segment:
        raise ValueError(f"Invalid redaction path {path!r}: trailing '.'")
    if steps[-1].kind == _DEEP:
        raise ValueError(f"Invalid redaction path {path!r}: cannot end with '**'")
    return tuple(steps)


def _parse_bracket(src: str, start: int) -> Tuple[int, _Step]:
    i = start + 1
    if i < len(src) and src[i] in "'\"":
        quote = src[i]
        end = src.find(quote, i + 1)
        if end < 0 or src[end + 1 : end + 2] != "]":
            raise ValueError(f"Invalid redaction path {src!r}: unterminated quote")
        return end + 2, _Step(_KEY, src[i + 1 : end])
    close = src.find("]", i)
    if close < 0:
        raise ValueError(f"Invalid redaction path {src!r}: unclosed '['")
    inner = src[i:close].strip()
    if inner == "*":
        return close + 1, _Step(_ANY)
    if inner.isdigit():
        return close + 1, _Step(_KEY, inner)
    raise ValueError(f"Invalid redaction path {src!r}: bad selector [{inner}]")


# ---------- Matching ----------
def _children(node: Any) -> Iterable[Tuple[Any, Any]]:
    if isinstance(node, dict):
        return list(node.items())
    if isinstance(node, list):
        return list(enumerate(node))
    return ()


def _apply(node: Any, steps: Sequence[_Step], i: int) -> int:
    """Redact matches of steps[i:] below ``node``; return the number replaced."""
    if not isinstance(node, (dict, list)):
        return 0
    step = steps[i]
    last = i == len(steps) - 1
    hits = 0

    if step.kind == _DEEP:
        # Zero levels, then one more level while staying on "**".
        hits += _apply(node, steps, i + 1)
        for _, child in _children(node):
            hits += _apply(child, steps, i)
        return hits

    if step.kind == _ANY:
        targets = [k for k, _ in _children(node)]
    elif isinstance(node, dict):
        targets = [step.name] if step.name in node else []
    elif step.name.isdigit() and int(step.name) < len(node):
        targets = [int(step.name)]
    else:
        targets = []

    for k in targets:
        if last:
            if node[k] != REDACTED:
                node[k] = REDACTED
                hits += 1
        else:
            hits += _apply(node[k], steps, i + 1)
    return hits


class Redactor:
    """
    Replace values at configured paths with ``"[Redacted]"``.

    Works in place on an owned, already serialized tree (plain dicts and
    lists); sibling keys are left untouched.
    """

    def __init__(self, paths: Iterable[str] = (), *, baseline: bool = True) -> None:
        merged: List[str] = list(BASELINE_PATHS) if baseline else []
        for p in paths or ():
            if p not in merged:
                merged.append(p)
        self.paths: Tuple[str, ...] = tuple(merged)
        self._compiled = tuple(parse_path(p) for p in self.paths)

    def __repr__(self) -> str:
        return f"Redactor({len(self.paths)} paths)"

    def redact(self, tree: Any) -> Any:
        for steps in self._compiled:
            _apply(tree, steps, 0)
        return tree


__all__ = ["REDACTED", "BASELINE_PATHS", "Redactor", "parse_path"]
