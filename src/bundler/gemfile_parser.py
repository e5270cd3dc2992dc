"""Reader for the common subset of the Gemfile DSL.

Only what matters for group/platform propagation is understood: ``gem``
declarations with their ``group``/``groups``/``platform``/``platforms``
options, and ``group ... do`` / ``platforms ... do`` blocks. Everything else
(``source``, ``ruby``, ``gemspec``, conditionals) is skipped.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Tuple

from bundler.models import Dependency
from common.errors import LockfileError
from constants import Constants

logger = logging.getLogger(__name__)

_TOKEN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<comment>\#.*)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<wordlist>%[iIwW]\[[^\]]*\]|%[iIwW]\([^)]*\))
  | (?P<label>[A-Za-z_][A-Za-z0-9_]*:(?!:))
  | (?P<symbol>:[A-Za-z_][A-Za-z0-9_]*[?!]?)
  | (?P<arrow>=>)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*[?!]?)
  | (?P<punct>[\[\],(){}|])
  | (?P<other>\S)
    """,
    re.VERBOSE,
)

GROUP_KEYS = ("group", "groups")
PLATFORM_KEYS = ("platform", "platforms")
BLOCK_OPENERS = ("group", "groups", "platform", "platforms")
# keywords whose bodies are closed by a bare `end`
RUBY_BLOCK_KEYWORDS = ("if", "unless", "case", "while", "until", "begin", "def", "class", "module")


def tokenize(line: str) -> List[Tuple[str, str]]:
    """Split a Gemfile line into (kind, text) tokens, dropping whitespace/comments."""
    tokens = []
    for match in _TOKEN.finditer(line):
        kind = match.lastgroup
        if kind in ("ws", "comment"):
            continue
        tokens.append((kind, match.group()))
    return tokens


def _value(kind: str, text: str):
    if kind == "string":
        return text[1:-1]
    if kind == "symbol":
        return text[1:]
    if kind == "wordlist":
        return text[3:-1].split()
    return text


def _parse_args(tokens: List[Tuple[str, str]]) -> Tuple[List[object], Dict[str, object]]:
    """Collect positional values and keyword options from call arguments."""
    positional: List[object] = []
    options: Dict[str, object] = {}
    i = 0
    while i < len(tokens):
        kind, text = tokens[i]
        key = None
        if kind == "label":
            key = text[:-1]
            i += 1
        elif kind in ("symbol", "string") and i + 1 < len(tokens) and tokens[i + 1][0] == "arrow":
            key = _value(kind, text)
            i += 2
        if i >= len(tokens):
            break

        kind, text = tokens[i]
        if kind == "punct" and text == "[":
            values = []
            i += 1
            while i < len(tokens) and tokens[i] != ("punct", "]"):
                if tokens[i][0] in ("symbol", "string"):
                    values.append(_value(*tokens[i]))
                i += 1
            value: object = values
        else:
            value = _value(kind, text)
        i += 1

        if key is not None:
            options[key] = value
        elif not (kind == "punct"):
            positional.append(value)
    return positional, options


def _as_list(value: object) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


def parse_gemfile(raw: str) -> List[Dependency]:
    """Parse Gemfile text into explicit dependencies.

    Args:
        raw: Contents of a Gemfile.

    Returns:
        list: Dependencies in declaration order; a gem declared more than
            once keeps its first declaration.
    """
    stack: List[Tuple[List[str], List[str]]] = [([], [])]
    deps: Dict[str, Dependency] = {}

    for line in raw.splitlines():
        tokens = tokenize(line)
        if not tokens:
            continue
        head_kind, head = tokens[0]
        opens_block = tokens[-1] == ("ident", "do") or (
            len(tokens) >= 2 and tokens[-1][0] == "punct" and tokens[-1][1] == "|" and ("ident", "do") in tokens
        )

        if head_kind == "ident" and head == "end":
            if len(stack) > 1:
                stack.pop()
            continue

        groups, platforms = stack[-1]
        if head_kind == "ident" and head in BLOCK_OPENERS and opens_block:
            end = tokens.index(("ident", "do"))
            positional, _ = _parse_args(tokens[1:end])
            names = [str(v) for v in positional]
            if head in GROUP_KEYS:
                stack.append((groups + names, platforms))
            else:
                stack.append((groups, platforms + names))
            continue

        if head_kind == "ident" and head == "gem":
            args = tokens[1:]
            for idx, token in enumerate(args):
                # trailing `if`/`unless` modifiers
                if token in (("ident", "if"), ("ident", "unless")):
                    args = args[:idx]
                    break
            positional, options = _parse_args(args)
            if not positional:
                raise LockfileError("gem declaration without a name.", context={"line": line.strip()})
            name = str(positional[0])
            requirement = ", ".join(str(v) for v in positional[1:]) or None
            dep_groups = list(groups)
            for key in GROUP_KEYS:
                dep_groups.extend(_as_list(options.get(key)))
            dep_platforms = list(platforms)
            for key in PLATFORM_KEYS:
                dep_platforms.extend(_as_list(options.get(key)))
            if name in deps:
                logger.debug("Ignoring duplicate gem declaration for %s", name)
            else:
                deps[name] = Dependency(
                    name=name,
                    requirement=requirement,
                    groups=frozenset(dep_groups or [Constants.DEFAULT_GROUP]),
                    platforms=frozenset(dep_platforms),
                )
            continue

        if opens_block or (head_kind == "ident" and head in RUBY_BLOCK_KEYWORDS):
            # source/git/path/install_if blocks keep the enclosing context
            stack.append((groups, platforms))

    return list(deps.values())


def read_gemfile(path: str) -> List[Dependency]:
    """Read and parse a Gemfile from disk."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
    except (FileNotFoundError, IOError) as e:
        raise LockfileError(
            "Gemfile could not be read.",
            hint="Pass --gemfile with the manifest used to produce the lockfile.",
            context={"path": str(path), "error": str(e)},
        ) from e
    return parse_gemfile(raw)
