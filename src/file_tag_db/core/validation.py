"""タグ名/値名の検証.

名前はクエリ言語のトークンと仮想ファイルシステムのパス要素を兼ねるため、
予約語・予約文字を含む名前は作成/リネーム時に拒否します（読み取り経路では検証しない）。
"""

from __future__ import annotations

import unicodedata

from .exceptions import InvalidNameError

_LOGICAL_OPERATORS = frozenset({"and", "or", "not"})
_COMPARISON_OPERATORS = frozenset({"eq", "ne", "lt", "gt", "le", "ge"})

# 文字 → 予約理由（メッセージの後半）
_RESERVED_CHARS = {
    "(": "parentheses: '(' or ')'",
    ")": "parentheses: '(' or ')'",
    ",": "comma: ','",
    "=": "a comparison operator: '=', '!', '<' or '>'",
    "!": "a comparison operator: '=', '!', '<' or '>'",
    "<": "a comparison operator: '=', '!', '<' or '>'",
    ">": "a comparison operator: '=', '!', '<' or '>'",
    " ": "space or tab",
    "\t": "space or tab",
    "/": "slash: '/'",
}

# Unicode 一般カテゴリの先頭文字: Letter / Number / Punctuation / Symbol
_ALLOWED_CATEGORY_CLASSES = frozenset("LNPS")


def _validate(name: str, kind: str, *, allow_leading_minus: bool) -> None:
    if name == "":
        raise InvalidNameError(f"{kind} cannot be empty.")

    if name in (".", ".."):
        raise InvalidNameError(f"{kind} cannot be '.' or '..'.")

    lowered = name.lower()
    if lowered in _LOGICAL_OPERATORS:
        raise InvalidNameError(f"{kind} cannot be a logical operator: 'and', 'or' or 'not'.")
    if lowered in _COMPARISON_OPERATORS:
        raise InvalidNameError(
            f"{kind} cannot be a comparison operator: 'eq', 'ne', 'lt', 'gt', 'le' or 'ge'."
        )

    if not allow_leading_minus and name[0] == "-":
        raise InvalidNameError(f"{kind} cannot start with a minus: '-'.")

    for ch in name:
        reason = _RESERVED_CHARS.get(ch)
        if reason is not None:
            raise InvalidNameError(f"{kind} cannot contain {reason}.")

        if unicodedata.category(ch)[0] not in _ALLOWED_CATEGORY_CLASSES:
            raise InvalidNameError(f"{kind} cannot contain {ch!r} (U+{ord(ch):04X}).")


def validate_tag_name(name: str) -> None:
    """タグ名を検証する.

    Raises:
        InvalidNameError: 予約語・予約文字・先頭の '-' などに抵触する場合

    Examples:
        >>> validate_tag_name("cheese")
        >>> validate_tag_name("-cheese")
        Traceback (most recent call last):
            ...
        file_tag_db.core.exceptions.InvalidNameError: tag name cannot start with a minus: '-'.
    """
    _validate(name, "tag name", allow_leading_minus=False)


def validate_value_name(name: str) -> None:
    """値名を検証する（先頭の '-' は許可: 負の数値を値として使うため）."""
    _validate(name, "tag value", allow_leading_minus=True)
