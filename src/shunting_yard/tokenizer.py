"""
Grammar-driven tokenizer (lexer).

A grammar is a set of named syntax rules plus named next-sets. Each rule
carries a regular expression that is matched anchored at the current offset
and the names of the rules (or next-sets) allowed to follow it. Scanning
walks the resolved transition graph: at every offset the currently
reachable rules are tried in order and the first match wins.
"""

import re
from dataclasses import dataclass, field, replace
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from .errors import ConfigError, LexError

DEFAULT_SAME_INDEX_LIMIT = 100


@dataclass(eq=False)
class Token:
    """
    A token produced by the tokenizer.

    Tokens compare by identity; the same instance is shared by the token
    list, compiled notation and step descriptors of one run. ``handle`` is
    the token's index in the tokenizer output and can be used as a stable
    integer key instead of the object itself.
    """

    kind: str
    text: str
    position: int
    match: Optional[re.Match[str]] = field(default=None, repr=False)
    handle: int = -1
    params: Optional[List[List["Token"]]] = field(default=None, repr=False)


# Hook run on every match. It may validate or mutate the token and may
# return a custom end offset that replaces the end of the raw match.
OnMatch = Callable[[re.Match[str], Token, List[Token], str], Optional[int]]


def _compile_pattern(name: str, pattern: Union[str, re.Pattern[str]], flags: int = 0) -> re.Pattern[str]:
    if isinstance(pattern, str):
        try:
            pattern = re.compile(pattern, flags)
        except re.error as e:
            raise ConfigError(f"Pattern of rule {name!r} is invalid: {e}") from e
    elif not callable(getattr(pattern, "match", None)):
        raise ConfigError(f"Pattern of rule {name!r} does not support anchored matching")

    source = getattr(pattern, "pattern", "")
    if isinstance(source, str) and (source.startswith("^") or source.startswith("\\A")):
        raise ConfigError(
            f"Pattern of rule {name!r} ({source}) is bound to the start of input "
            "and cannot match at an arbitrary offset"
        )
    return pattern


@dataclass
class SyntaxRule:
    """A named syntax rule."""

    name: str
    pattern: re.Pattern[str]
    next: List[str] = field(default_factory=list)
    on_match: Optional[OnMatch] = None
    ignore: bool = False
    alias: Optional[str] = None
    final: bool = True

    def __post_init__(self) -> None:
        self.pattern = _compile_pattern(self.name, self.pattern)
        self.next = list(self.next)

    @property
    def kind(self) -> str:
        """Kind assigned to tokens emitted by this rule."""
        return self.alias or self.name


class _Node:
    """A syntax rule with its next names resolved into nodes."""

    __slots__ = ("rule", "next")

    def __init__(self, rule: SyntaxRule):
        self.rule = rule
        self.next: List["_Node"] = []


NextSetsInit = Union[Mapping[str, Iterable[str]], Iterable[Tuple[str, Iterable[str]]]]


class Tokenizer:
    """Tokenizer driven by syntax rules and next-sets."""

    def __init__(
        self,
        syntaxes: Iterable[SyntaxRule] = (),
        next_sets: NextSetsInit = (),
        entry: str = "",
    ):
        self._syntaxes: Dict[str, SyntaxRule] = {}
        self._next_sets: Dict[str, List[str]] = {}
        self.entry = entry

        for rule in syntaxes:
            self._syntaxes[rule.name] = rule

        items = next_sets.items() if isinstance(next_sets, Mapping) else next_sets
        for name, members in items:
            self._next_sets[name] = list(members)

    @property
    def syntaxes(self) -> Mapping[str, SyntaxRule]:
        return self._syntaxes

    @property
    def next_sets(self) -> Mapping[str, List[str]]:
        return self._next_sets

    def add_syntax(
        self,
        name: str,
        pattern: Union[str, re.Pattern[str]],
        next: Iterable[str],
        *,
        on_match: Optional[OnMatch] = None,
        ignore: bool = False,
        alias: Optional[str] = None,
        final: bool = True,
        flags: int = 0,
    ) -> SyntaxRule:
        """Adds (or replaces) a syntax rule and returns it."""
        rule = SyntaxRule(
            name=name,
            pattern=_compile_pattern(name, pattern, flags),
            next=list(next),
            on_match=on_match,
            ignore=ignore,
            alias=alias,
            final=final,
        )
        self._syntaxes[name] = rule
        return rule

    def add_next_set(self, name: str, members: Iterable[str]) -> "Tokenizer":
        """Adds (or replaces) a named next-set."""
        self._next_sets[name] = list(members)
        return self

    def clone(self) -> "Tokenizer":
        """Returns a copy whose grammar can be changed independently."""
        return Tokenizer(
            [replace(rule, next=list(rule.next)) for rule in self._syntaxes.values()],
            {name: list(members) for name, members in self._next_sets.items()},
            self.entry,
        )

    def parse(
        self,
        source: str,
        same_index_limit: int = DEFAULT_SAME_INDEX_LIMIT,
        include_ignored: bool = False,
    ) -> List[Token]:
        """
        Tokenizes ``source``.

        Args:
            source: The text to tokenize
            same_index_limit: Consecutive zero-progress matches tolerated
                before the grammar is considered stalled
            include_ignored: Also emit tokens for rules flagged ``ignore``

        Returns:
            List of tokens

        Raises:
            LexError: If no reachable rule matches, or input ends where the
                grammar requires more
            ConfigError: If the grammar is malformed or stalls
        """
        nodes, sets = self._build_graph()
        reachable = self._resolve_entry(nodes, sets)

        tokens: List[Token] = []
        index = 0
        stalled = 0
        last: Optional[_Node] = None

        while index < len(source):
            if not reachable:
                raise LexError("Expecting end of input", index, (), source)

            for node in reachable:
                rule = node.rule
                match = rule.pattern.match(source, index)
                if match is None:
                    continue

                token = Token(kind=rule.kind, text=match.group(0), position=index, match=match)
                end = match.end()
                if rule.on_match is not None:
                    custom_end = rule.on_match(match, token, tokens, source)
                    if custom_end is not None:
                        end = custom_end

                if end == index:
                    stalled += 1
                    if stalled > same_index_limit:
                        raise ConfigError(
                            f"Rule {rule.name!r} made no progress after "
                            f"{same_index_limit} matches at index {index}"
                        )
                else:
                    stalled = 0

                index = end
                if include_ignored or not rule.ignore:
                    token.handle = len(tokens)
                    tokens.append(token)
                reachable = node.next
                last = node
                break
            else:
                names = [node.rule.name for node in reachable]
                raise LexError(f"Expecting {', '.join(names)}", index, names, source)

        if last is not None and not last.rule.final:
            names = [node.rule.name for node in reachable]
            raise LexError("Unexpected end of input", index, names, source)

        return tokens

    def _build_graph(self) -> Tuple[Dict[str, _Node], Dict[str, List[_Node]]]:
        nodes = {name: _Node(rule) for name, rule in self._syntaxes.items()}

        sets: Dict[str, List[_Node]] = {}
        for set_name, members in self._next_sets.items():
            resolved: List[_Node] = []
            for member in members:
                node = nodes.get(member)
                if node is None:
                    raise ConfigError(
                        f"Next set {set_name!r} refers to nonexistent rule {member!r}"
                    )
                resolved.append(node)
            sets[set_name] = resolved

        for node in nodes.values():
            reachable: List[_Node] = []
            for next_name in node.rule.next:
                candidates = []
                if next_name in nodes:
                    candidates.append(nodes[next_name])
                if next_name in sets:
                    candidates.extend(sets[next_name])
                if not candidates:
                    raise ConfigError(
                        f"Rule {node.rule.name!r} refers to nonexistent rule {next_name!r}"
                    )
                for candidate in candidates:
                    if candidate not in reachable:
                        reachable.append(candidate)
            node.next = reachable

        return nodes, sets

    def _resolve_entry(
        self, nodes: Dict[str, _Node], sets: Dict[str, List[_Node]]
    ) -> List[_Node]:
        if self.entry in nodes:
            return [nodes[self.entry]]
        if self.entry in sets:
            return sets[self.entry]
        raise ConfigError(f"Unknown syntax entry {self.entry!r}")
