"""Rule Expression Parser

Turns a rule expression such as ``required,dive,keys,min=1,endkeys,rgb|rgba``
into an ordered tuple of directives. Parsing is pure: names are not checked
against any registry here, that happens when the cache compiles the chain.

Grammar:
    expression  := item ("," item)*
    item        := directive ("|" directive)*      # 2+ directives form an OrGroup
    directive   := name ["=" param]

Params may contain ``0x2C`` and ``0x7C`` for a literal comma and pipe.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from tagrules.errors import TagSyntaxError

SKIP = "-"
OR_SEPARATOR = "|"
DIRECTIVE_SEPARATOR = ","
PARAM_SEPARATOR = "="

_ESCAPES = (("0x2C", ","), ("0x7C", "|"))


class DirectiveKind(str, Enum):
    """What a directive does when the chain runs."""
    PREDICATE = "predicate"
    REQUIRED = "required"
    OMITEMPTY = "omitempty"
    DIVE = "dive"
    KEYS = "keys"
    ENDKEYS = "endkeys"
    STRUCTONLY = "structonly"
    NOSTRUCTLEVEL = "nostructlevel"


CONTROL_KINDS: dict[str, DirectiveKind] = {
    "omitempty": DirectiveKind.OMITEMPTY,
    "dive": DirectiveKind.DIVE,
    "keys": DirectiveKind.KEYS,
    "endkeys": DirectiveKind.ENDKEYS,
    "structonly": DirectiveKind.STRUCTONLY,
    "nostructlevel": DirectiveKind.NOSTRUCTLEVEL,
}

RESERVED_NAMES = frozenset({*CONTROL_KINDS, SKIP, OR_SEPARATOR, DIRECTIVE_SEPARATOR, PARAM_SEPARATOR})


@dataclass(frozen=True, slots=True)
class Directive:
    """One named, optionally parameterized instruction."""
    name: str
    param: str = ""
    is_or_group_member: bool = False
    kind: DirectiveKind = DirectiveKind.PREDICATE

    @property
    def is_control(self) -> bool:
        return self.kind not in (DirectiveKind.PREDICATE, DirectiveKind.REQUIRED)

    def __str__(self) -> str:
        return f"{self.name}={self.param}" if self.param else self.name


@dataclass(frozen=True, slots=True)
class OrGroup:
    """Alternatives joined by ``|``; passes when any member passes."""
    alternatives: tuple[Directive, ...] = field(default_factory=tuple)

    @property
    def name(self) -> str:
        """Canonical tag reported when the whole group fails."""
        return OR_SEPARATOR.join(str(d) for d in self.alternatives)

    def __str__(self) -> str:
        return self.name


Item = Directive | OrGroup


def _unescape(param: str) -> str:
    for code, char in _ESCAPES:
        param = param.replace(code, char)
    return param


def _directive(raw: str, expression: str, *, in_group: bool) -> Directive:
    name, sep, param = raw.partition(PARAM_SEPARATOR)
    name = name.strip()
    if not name:
        raise TagSyntaxError(raw, "empty directive name", expression)
    if sep and not param:
        raise TagSyntaxError(raw, "'=' must be followed by a param", expression)

    if name == SKIP:
        raise TagSyntaxError(raw, "'-' must be the only directive", expression)
    if name == "required":
        kind = DirectiveKind.REQUIRED
    else:
        kind = CONTROL_KINDS.get(name, DirectiveKind.PREDICATE)

    if kind not in (DirectiveKind.PREDICATE, DirectiveKind.REQUIRED):
        if in_group:
            raise TagSyntaxError(raw, f"'{name}' cannot be used inside an or-group", expression)
        if sep:
            raise TagSyntaxError(raw, f"'{name}' does not take a param", expression)

    return Directive(name=name, param=_unescape(param), is_or_group_member=in_group, kind=kind)


def _item(raw: str, expression: str) -> Item:
    if OR_SEPARATOR not in raw:
        return _directive(raw, expression, in_group=False)
    members = raw.split(OR_SEPARATOR)
    return OrGroup(tuple(_directive(m, expression, in_group=True) for m in members))


def _check_keys_blocks(items: tuple[Item, ...], expression: str) -> None:
    """``keys`` must directly follow ``dive`` and be closed by ``endkeys``."""
    open_keys = False
    for i, item in enumerate(items):
        kind = item.kind if isinstance(item, Directive) else DirectiveKind.PREDICATE
        if kind is DirectiveKind.KEYS:
            prev = items[i - 1] if i else None
            if open_keys or not (isinstance(prev, Directive) and prev.kind is DirectiveKind.DIVE):
                raise TagSyntaxError("keys", "'keys' must immediately follow 'dive'", expression)
            open_keys = True
        elif kind is DirectiveKind.ENDKEYS:
            if not open_keys:
                raise TagSyntaxError("endkeys", "'endkeys' without a matching 'keys'", expression)
            open_keys = False
        elif kind is DirectiveKind.DIVE and open_keys:
            raise TagSyntaxError("dive", "'dive' cannot appear between 'keys' and 'endkeys'", expression)
    if open_keys:
        raise TagSyntaxError("keys", "'keys' without a closing 'endkeys'", expression)


def parse_tag(expression: str) -> tuple[Item, ...]:
    """Parse a rule expression into its ordered directives.

    Returns an empty tuple for the empty expression and for ``-``; the caller
    distinguishes the two with :func:`is_skip`.

    Raises:
        TagSyntaxError: on empty names, misplaced control directives or
            unbalanced ``keys``/``endkeys`` blocks.
    """
    expression = expression.strip()
    if not expression or expression == SKIP:
        return ()

    items = tuple(_item(raw.strip(), expression) for raw in expression.split(DIRECTIVE_SEPARATOR))
    _check_keys_blocks(items, expression)
    return items


def is_skip(expression: str | None) -> bool:
    return expression is not None and expression.strip() == SKIP
