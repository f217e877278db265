"""Bracket-wrapper tokenizer for comma-separated prompt text.

A prompt is a comma-separated list of tokens; each token may be nested inside
any number of emphasis wrappers::

    ((blue_sky)), {masterpiece}, [<lora>]

``parse_wrappers`` peels wrappers outermost first, ``wrap`` puts them back
innermost first, so ``wrap(*parse_wrappers(t))`` reproduces ``t`` for every
token made of well-nested supported brackets.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

WRAPPER_PAIRS: tuple[tuple[str, str, str], ...] = (
    ("{}", "{", "}"),
    ("()", "(", ")"),
    ("[]", "[", "]"),
    ("<>", "<", ">"),
)
WRAPPER_KINDS: tuple[str, ...] = tuple(kind for kind, _start, _end in WRAPPER_PAIRS)
_PAIR_BY_KIND: dict[str, tuple[str, str]] = {kind: (start, end) for kind, start, end in WRAPPER_PAIRS}
_TOKEN_SEPARATOR = re.compile(r"[,，]")


@dataclass
class ParsedToken:
    core: str
    wrappers: list[str] = field(default_factory=list)

    def __iter__(self):
        yield self.core
        yield self.wrappers


def parse_wrappers(token: str) -> ParsedToken:
    current = str(token or "").strip()
    wrappers: list[str] = []
    while len(current) >= 2:
        for kind, start, end in WRAPPER_PAIRS:
            if current.startswith(start) and current.endswith(end):
                wrappers.append(kind)
                current = current[len(start) : -len(end)]
                break
        else:
            break
    return ParsedToken(core=current, wrappers=wrappers)


def wrap(core: str, wrappers: list[str]) -> str:
    result = core
    for kind in reversed(wrappers):
        pair = _PAIR_BY_KIND.get(kind)
        if pair is None:
            raise ValueError(f"Unsupported wrapper kind '{kind}'.")
        result = f"{pair[0]}{result}{pair[1]}"
    return result


def toggle_separator(core: str) -> str:
    if "_" in core:
        return core.replace("_", " ")
    if " " in core:
        return core.replace(" ", "_")
    return core


def toggle_token_separator(token: str) -> str:
    parsed = parse_wrappers(token)
    return wrap(toggle_separator(parsed.core), parsed.wrappers)


def token_wrapper_info(token: str) -> dict[str, Any]:
    parsed = parse_wrappers(token)
    return {"core": parsed.core, "wrappers": list(parsed.wrappers), "wrapperCount": len(parsed.wrappers)}


def split_tokens(text: str) -> list[str]:
    return [piece.strip() for piece in _TOKEN_SEPARATOR.split(text or "") if piece.strip()]


def join_tokens(tokens: list[str]) -> str:
    return ", ".join(tokens)


def normalize_prompt(text: str) -> str:
    return join_tokens(split_tokens(text))


def replace_fullwidth_commas(text: str) -> str:
    return (text or "").replace("，", ",")


def toggle_prompt_separators(text: str) -> str:
    return join_tokens([toggle_token_separator(token) for token in split_tokens(text)])


def add_wrapper(text: str, index: int, kind: str = "{}") -> str:
    if kind not in _PAIR_BY_KIND:
        raise ValueError(f"Unsupported wrapper kind '{kind}'.")
    tokens = split_tokens(text)
    if index < 0 or index >= len(tokens):
        return text
    parsed = parse_wrappers(tokens[index])
    tokens[index] = wrap(parsed.core, [*parsed.wrappers, kind])
    return join_tokens(tokens)


def remove_wrapper(text: str, index: int) -> str:
    tokens = split_tokens(text)
    if index < 0 or index >= len(tokens):
        return text
    parsed = parse_wrappers(tokens[index])
    if not parsed.wrappers:
        return text
    tokens[index] = wrap(parsed.core, parsed.wrappers[:-1])
    return join_tokens(tokens)


def update_token(text: str, index: int, new_token: str) -> str:
    tokens = split_tokens(text)
    if index < 0 or index >= len(tokens):
        return text
    tokens[index] = new_token.strip()
    return join_tokens([token for token in tokens if token])


def remove_token(text: str, index: int) -> str:
    tokens = split_tokens(text)
    if index < 0 or index >= len(tokens):
        return text
    del tokens[index]
    return join_tokens(tokens)


def move_token(text: str, from_index: int, to_index: int) -> str:
    tokens = split_tokens(text)
    if not (0 <= from_index < len(tokens)) or not (0 <= to_index < len(tokens)):
        return text
    item = tokens.pop(from_index)
    tokens.insert(to_index, item)
    return join_tokens(tokens)


def insert_token_after(text: str, index: int, token: str) -> str:
    tokens = split_tokens(text)
    token = token.strip()
    if not token:
        return text
    position = max(0, min(index + 1, len(tokens)))
    tokens.insert(position, token)
    return join_tokens(tokens)
