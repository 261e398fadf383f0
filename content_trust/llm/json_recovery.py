"""
Resilient JSON parsing for model output.

Models wrap JSON in code fences, leave trailing commas, use single quotes,
add comments and, most often, stop mid-object when they hit the output
token limit. ``recover_json`` applies a fixed sequence of repairs, trying a
parse after each step, and stops at the first step that yields valid JSON.

Step order:
    1. strip code fences and surrounding prose
    2. complete unterminated fractions (``0.`` -> ``0.0``)
    3. convert single-quoted keys and values
    4. strip ``//`` and ``/* */`` comments outside strings
    5. structural repair of truncated output
    6. final parse, or JSONRecoveryError with diagnostics
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from content_trust.exceptions import JSONRecoveryError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")
_OPEN_FENCE_RE = re.compile(r"^\s*```(?:json|JSON)?\s*")
_BARE_FRACTION_RE = re.compile(r"([:\[,]\s*-?\d+)\.(?=\s*[,}\]])")
_BARE_FRACTION_END_RE = re.compile(r"([:\[,]\s*-?\d+)\.\s*$")
_SQ_KEY_RE = re.compile(r"'([^'\\\n]*)'(\s*:)")
_SQ_VALUE_RE = re.compile(r"(:\s*)'([^'\\\n]*)'")
_SQ_ARRAY_ITEM_RE = re.compile(r"([\[,]\s*)'([^'\\\n]*)'(?=\s*[,\]])")
_TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")
_TRAILING_COMMA_END_RE = re.compile(r",\s*$")
_OPEN_KEY_RE = re.compile(r'"(?:[^"\\]|\\.)*"\s*:\s*$')
_DANGLING_KEY_RE = re.compile(r'[{,]\s*"(?:[^"\\]|\\.)*"\s*$')

_CLOSERS = {"{": "}", "[": "]"}
_TAIL_CHARS = 200
_FAILED = object()


@dataclass
class RecoveryResult:
    """Outcome of a successful parse."""

    parsed: Any
    recovered: bool = False
    fixes_applied: list[str] = field(default_factory=list)


def _try_parse(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return _FAILED


def _scan(text: str):
    """Yield ``(index, char, in_string)`` honouring escapes."""
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
                yield i, ch, False
                continue
            yield i, ch, True
        else:
            if ch == '"':
                in_string = True
            yield i, ch, in_string


def _outside_strings(text: str, fix: Callable[[str, bool], str]) -> str:
    """
    Apply ``fix(span, at_end)`` to the spans of ``text`` between
    double-quoted strings. String contents are copied unchanged; ``at_end``
    is True only for a span that runs to the end of the text.
    """
    parts = []
    start = 0
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
                parts.append(text[start : i + 1])
                start = i + 1
        elif ch == '"':
            parts.append(fix(text[start:i], False))
            start = i
            in_string = True

    tail = text[start:]
    parts.append(tail if in_string else fix(tail, True))
    return "".join(parts)


def _open_stack(text: str) -> list[str]:
    """Unclosed ``{``/``[`` outside strings, outermost first."""
    stack = []
    for _, ch, in_string in _scan(text):
        if in_string:
            continue
        if ch in _CLOSERS:
            stack.append(ch)
        elif ch in "}]" and stack and _CLOSERS[stack[-1]] == ch:
            stack.pop()
    return stack


# =============================================================================
# Steps
# =============================================================================

def _strip_fences(text: str) -> str:
    match = _FENCE_RE.search(text)
    if match:
        text = match.group(1)
    else:
        # Truncated output can lose the closing fence
        text = _OPEN_FENCE_RE.sub("", text)

    starts = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    if not starts:
        return text.strip()
    text = text[min(starts):]

    # Drop prose after the top-level value closes
    depth = 0
    for i, ch, in_string in _scan(text):
        if in_string:
            continue
        if ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return text[: i + 1]
    return text.rstrip()


def _fix_bare_fractions(text: str) -> str:
    def fix(span: str, at_end: bool) -> str:
        span = _BARE_FRACTION_RE.sub(r"\g<1>.0", span)
        return _BARE_FRACTION_END_RE.sub(r"\g<1>.0", span) if at_end else span

    return _outside_strings(text, fix)


def _fix_single_quotes(text: str) -> str:
    def fix(span: str, at_end: bool) -> str:
        span = _SQ_KEY_RE.sub(r'"\1"\2', span)
        span = _SQ_VALUE_RE.sub(r'\1"\2"', span)
        return _SQ_ARRAY_ITEM_RE.sub(r'\1"\2"', span)

    return _outside_strings(text, fix)


def _strip_comments(text: str) -> str:
    out = []
    i = 0
    n = len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end < 0 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end < 0 else end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _drop_unterminated_entry(text: str) -> str:
    """Cut back to the last complete entry when a string never closes."""
    delimiters = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if escaped:
            escaped = False
        elif ch == "\\" and in_string:
            escaped = True
        elif ch == '"':
            delimiters.append(i)
            in_string = not in_string
    if len(delimiters) % 2 == 0:
        return text

    unmatched = delimiters[-1]
    prefix = text[:unmatched]
    last_comma = -1
    last_opener = -1
    for i, ch, in_string in _scan(prefix):
        if in_string:
            continue
        if ch == ",":
            last_comma = i
        elif ch in "{[":
            last_opener = i

    if last_comma >= 0:
        return prefix[:last_comma]
    if last_opener >= 0:
        return prefix[: last_opener + 1]
    return prefix


def _strip_trailing_commas(text: str) -> str:
    def fix(span: str, at_end: bool) -> str:
        span = _TRAILING_COMMA_RE.sub(r"\1", span)
        return _TRAILING_COMMA_END_RE.sub("", span) if at_end else span

    return _outside_strings(text, fix)


def _complete_open_key(text: str) -> str:
    if _OPEN_KEY_RE.search(text):
        return text.rstrip() + " null"
    return text


def _complete_dangling_key(text: str) -> str:
    stack = _open_stack(text)
    if stack and stack[-1] == "{" and _DANGLING_KEY_RE.search(text):
        return text.rstrip() + ": null"
    return text


def _close_brackets(text: str) -> str:
    stack = _open_stack(text)
    if not stack:
        return text
    return text.rstrip() + "".join(_CLOSERS[ch] for ch in reversed(stack))


_STEPS = (
    ("strip_fences", _strip_fences),
    ("bare_fractions", _fix_bare_fractions),
    ("single_quotes", _fix_single_quotes),
    ("strip_comments", _strip_comments),
)

_STRUCTURAL_STEPS = (
    ("drop_unterminated_entry", _drop_unterminated_entry),
    ("trailing_commas", _strip_trailing_commas),
    ("complete_open_key", _complete_open_key),
    ("complete_dangling_key", _complete_dangling_key),
    ("close_brackets", _close_brackets),
)


def recover_json(raw: Optional[str], context: str = "") -> RecoveryResult:
    """
    Parse model output, repairing it if necessary.

    Args:
        raw: Raw model response
        context: Label used in logs and error diagnostics (e.g. "chunk 3/9")

    Returns:
        RecoveryResult with the parsed value and the fixes that were needed

    Raises:
        JSONRecoveryError: if the text cannot be parsed after every repair
    """
    if raw is None or not raw.strip():
        raise JSONRecoveryError("Empty response", context=context)

    text = raw.strip()
    parsed = _try_parse(text)
    if parsed is not _FAILED:
        return RecoveryResult(parsed=parsed)

    fixes = []
    for name, step in _STEPS:
        repaired = step(text)
        if repaired == text:
            continue
        text = repaired
        fixes.append(name)
        parsed = _try_parse(text)
        if parsed is not _FAILED:
            logger.debug(f"JSON recovered{_label(context)} after {fixes}")
            return RecoveryResult(parsed=parsed, recovered=True, fixes_applied=fixes)

    for name, step in _STRUCTURAL_STEPS:
        repaired = step(text)
        if repaired != text:
            text = repaired
            fixes.append(name)

    parsed = _try_parse(text)
    if parsed is not _FAILED:
        logger.debug(f"JSON recovered{_label(context)} after {fixes}")
        return RecoveryResult(parsed=parsed, recovered=True, fixes_applied=fixes)

    tail = text[-_TAIL_CHARS:]
    logger.warning(
        f"JSON recovery failed{_label(context)}: raw={len(raw)} chars, "
        f"repaired={len(text)} chars, fixes={fixes}"
    )
    raise JSONRecoveryError(
        f"Could not parse model output{_label(context)}",
        raw_length=len(raw),
        repaired_length=len(text),
        fixes_applied=tuple(fixes),
        tail=tail,
        context=context,
    )


def _label(context: str) -> str:
    return f" ({context})" if context else ""
