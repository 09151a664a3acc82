"""Parse Graphviz DOT text into a label-addressed GenericGraph."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .errors import MalformedGraphText
from .graph import GenericGraph

logger = logging.getLogger(__name__)

_PUNCTUATION = "{}[]=;,:"
_KEYWORDS = {"strict", "graph", "digraph", "subgraph", "node", "edge"}


@dataclass
class _Token:
    kind: str  # "id", "edgeop", "eof" or one punctuation character
    value: str
    line: int
    quoted: bool = False

    def keyword(self) -> Optional[str]:
        if self.kind == "id" and not self.quoted and self.value.lower() in _KEYWORDS:
            return self.value.lower()
        return None


@dataclass
class _Scope:
    node_defaults: Dict[str, str] = field(default_factory=dict)
    edge_defaults: Dict[str, str] = field(default_factory=dict)
    graph_attrs: Dict[str, str] = field(default_factory=dict)
    node_ids: List[str] = field(default_factory=list)

    def child(self) -> "_Scope":
        return _Scope(
            node_defaults=dict(self.node_defaults),
            edge_defaults=dict(self.edge_defaults),
        )


def import_graph_text(text: str) -> GenericGraph:
    """Build a GenericGraph from DOT text; vertices are identified by their label."""
    parser = _Parser(text)
    graph = parser.parse()
    logger.debug("imported graph text: %d vertices, %d edges", len(graph.vertices), len(graph.edges))
    return graph


def _tokenize(text: str) -> List[_Token]:
    lines = text.splitlines()

    def fail(message: str, line: int) -> MalformedGraphText:
        fragment = lines[line - 1].strip() if 0 < line <= len(lines) else None
        return MalformedGraphText(message, line=line, fragment=fragment)

    tokens: List[_Token] = []
    n = len(text)
    i = 0
    line = 1
    line_start = True
    while i < n:
        c = text[i]
        if c == "\n":
            line += 1
            line_start = True
            i += 1
            continue
        if c.isspace():
            i += 1
            continue
        if c == "#" and line_start:
            while i < n and text[i] != "\n":
                i += 1
            continue
        line_start = False
        if text.startswith("//", i):
            while i < n and text[i] != "\n":
                i += 1
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end < 0:
                raise fail("unterminated comment", line)
            line += text.count("\n", i, end)
            i = end + 2
            continue
        if text.startswith("->", i) or text.startswith("--", i):
            tokens.append(_Token("edgeop", text[i : i + 2], line))
            i += 2
            continue
        if c in _PUNCTUATION:
            tokens.append(_Token(c, c, line))
            i += 1
            continue
        if c == '"':
            start_line = line
            parts: List[str] = []
            while True:
                value, i, line = _read_quoted(text, i, line)
                if value is None:
                    raise fail("unterminated string", start_line)
                parts.append(value)
                j, j_line = _skip_space(text, i, line)
                if j < n and text[j] == "+":
                    k, k_line = _skip_space(text, j + 1, j_line)
                    if k < n and text[k] == '"':
                        i, line = k, k_line
                        continue
                    raise fail("'+' must join two quoted strings", j_line)
                break
            tokens.append(_Token("id", "".join(parts), start_line, quoted=True))
            continue
        if c == "<":
            start_line = line
            depth = 0
            j = i
            while j < n:
                if text[j] == "<":
                    depth += 1
                elif text[j] == ">":
                    depth -= 1
                    if depth == 0:
                        break
                elif text[j] == "\n":
                    line += 1
                j += 1
            if j >= n:
                raise fail("unterminated HTML string", start_line)
            tokens.append(_Token("id", text[i + 1 : j], start_line, quoted=True))
            i = j + 1
            continue
        if c.isalpha() or c == "_" or ord(c) >= 128:
            j = i
            while j < n and (text[j].isalnum() or text[j] == "_" or ord(text[j]) >= 128):
                j += 1
            tokens.append(_Token("id", text[i:j], line))
            i = j
            continue
        if c.isdigit() or c in ".-":
            j = i + 1 if c == "-" else i
            digits_start = j
            while j < n and text[j].isdigit():
                j += 1
            if j < n and text[j] == ".":
                j += 1
                while j < n and text[j].isdigit():
                    j += 1
            numeral = text[i:j]
            if j == digits_start or numeral in {"-", ".", "-."}:
                raise fail(f"unexpected character {c!r}", line)
            tokens.append(_Token("id", numeral, line))
            i = j
            continue
        raise fail(f"unexpected character {c!r}", line)
    tokens.append(_Token("eof", "", line))
    return tokens


def _read_quoted(text: str, i: int, line: int) -> Tuple[Optional[str], int, int]:
    # Only \" and backslash-newline are lexical escapes in DOT; other sequences stay raw.
    n = len(text)
    j = i + 1
    buf: List[str] = []
    while j < n:
        ch = text[j]
        if ch == "\\" and j + 1 < n:
            nxt = text[j + 1]
            if nxt == '"':
                buf.append('"')
            elif nxt == "\n":
                line += 1
            else:
                buf.append(ch + nxt)
            j += 2
            continue
        if ch == '"':
            return "".join(buf), j + 1, line
        if ch == "\n":
            line += 1
        buf.append(ch)
        j += 1
    return None, j, line


def _skip_space(text: str, i: int, line: int) -> Tuple[int, int]:
    while i < len(text) and text[i].isspace():
        if text[i] == "\n":
            line += 1
        i += 1
    return i, line


def _label_text(raw: str, node_id: Optional[str] = None, graph_id: Optional[str] = None) -> str:
    out: List[str] = []
    i = 0
    while i < len(raw):
        ch = raw[i]
        if ch == "\\" and i + 1 < len(raw):
            nxt = raw[i + 1]
            if nxt in "nlr":
                out.append("\n")
            elif nxt == "\\":
                out.append("\\")
            elif nxt == "N" and node_id is not None:
                out.append(node_id)
            elif nxt == "G" and graph_id is not None:
                out.append(graph_id)
            else:
                out.append(ch + nxt)
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out).rstrip("\n")


class _Parser:
    def __init__(self, text: str) -> None:
        self.lines = text.splitlines()
        self.tokens = _tokenize(text)
        self.pos = 0
        self.directed = True
        self.graph_id: Optional[str] = None
        self.node_order: List[str] = []
        self.node_updates: Dict[str, List[Dict[str, str]]] = {}
        self.edges: List[Tuple[str, str, Dict[str, str]]] = []

    # token helpers

    def peek(self, offset: int = 0) -> _Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def advance(self) -> _Token:
        tok = self.peek()
        if tok.kind != "eof":
            self.pos += 1
        return tok

    def fail(self, message: str, tok: Optional[_Token] = None) -> MalformedGraphText:
        tok = tok or self.peek()
        fragment = self.lines[tok.line - 1].strip() if 0 < tok.line <= len(self.lines) else tok.value
        return MalformedGraphText(message, line=tok.line, fragment=fragment or None)

    def expect(self, kind: str, what: str) -> _Token:
        tok = self.peek()
        if tok.kind != kind:
            found = "end of input" if tok.kind == "eof" else repr(tok.value)
            raise self.fail(f"expected {what}, found {found}", tok)
        return self.advance()

    # grammar

    def parse(self) -> GenericGraph:
        if self.peek().keyword() == "strict":
            self.advance()
        head = self.peek()
        kind = head.keyword()
        if kind not in {"graph", "digraph"}:
            raise self.fail("graph text must start with 'graph' or 'digraph'", head)
        self.advance()
        self.directed = kind == "digraph"
        if self.peek().kind == "id" and self.peek().keyword() is None:
            self.graph_id = self.advance().value
        opening = self.expect("{", "'{' after graph header")
        top = _Scope()
        self.stmt_list(top, opening)
        self.expect("}", "'}' closing the graph")
        if self.peek().kind != "eof":
            raise self.fail("unexpected content after the closing brace")
        return self.build(top)

    def stmt_list(self, scope: _Scope, opening: _Token) -> None:
        while self.peek().kind not in {"}", "eof"}:
            self.stmt(scope)
            if self.peek().kind == ";":
                self.advance()
        if self.peek().kind == "eof":
            raise self.fail("missing '}' for block opened here", opening)

    def stmt(self, scope: _Scope) -> None:
        tok = self.peek()
        keyword = tok.keyword()
        if tok.kind == "{" or keyword == "subgraph":
            ids = self.subgraph(scope)
            if self.peek().kind == "edgeop":
                self.edge_stmt(scope, ids)
            return
        if keyword in {"graph", "node", "edge"}:
            self.advance()
            if self.peek().kind != "[":
                raise self.fail(f"expected attribute list after '{keyword}'")
            attrs = self.attr_list()
            target = {"graph": scope.graph_attrs, "node": scope.node_defaults, "edge": scope.edge_defaults}
            target[keyword].update(attrs)
            return
        if keyword is not None:
            raise self.fail(f"unexpected keyword {tok.value!r}", tok)
        if tok.kind != "id":
            found = "end of input" if tok.kind == "eof" else repr(tok.value)
            raise self.fail(f"expected a statement, found {found}", tok)
        if self.peek(1).kind == "=":
            key = self.advance().value
            self.advance()
            value = self.expect("id", f"a value for {key!r}")
            scope.graph_attrs[key] = value.value
            return
        node_id = self.node_id()
        if self.peek().kind == "edgeop":
            self.declare(scope, node_id, None)
            self.edge_stmt(scope, [node_id])
            return
        attrs = dict(scope.node_defaults)
        attrs.update(self.attr_list())
        self.declare(scope, node_id, attrs)

    def node_id(self) -> str:
        tok = self.expect("id", "a node id")
        # ports (a:port or a:port:compass) do not change vertex identity
        for _ in range(2):
            if self.peek().kind != ":":
                break
            self.advance()
            self.expect("id", "a port name after ':'")
        return tok.value

    def edge_stmt(self, scope: _Scope, first: List[str]) -> None:
        groups = [first]
        while self.peek().kind == "edgeop":
            op = self.advance()
            if op.value != ("->" if self.directed else "--"):
                kind = "digraph" if self.directed else "graph"
                raise self.fail(f"edge operator {op.value!r} is not valid in a {kind}", op)
            nxt = self.peek()
            if nxt.kind == "{" or nxt.keyword() == "subgraph":
                groups.append(self.subgraph(scope))
            elif nxt.kind == "id" and nxt.keyword() is None:
                target = self.node_id()
                self.declare(scope, target, None)
                groups.append([target])
            else:
                raise self.fail("edge is missing its target", nxt)
        attrs = dict(scope.edge_defaults)
        attrs.update(self.attr_list())
        for sources, targets in zip(groups, groups[1:]):
            for source in sources:
                for target in targets:
                    self.edges.append((source, target, dict(attrs)))

    def subgraph(self, scope: _Scope) -> List[str]:
        if self.peek().keyword() == "subgraph":
            self.advance()
            if self.peek().kind == "id" and self.peek().keyword() is None:
                self.advance()
        opening = self.expect("{", "'{' opening the subgraph")
        inner = scope.child()
        self.stmt_list(inner, opening)
        self.expect("}", "'}' closing the subgraph")
        for node_id in inner.node_ids:
            if node_id not in scope.node_ids:
                scope.node_ids.append(node_id)
        return inner.node_ids

    def attr_list(self) -> Dict[str, str]:
        attrs: Dict[str, str] = {}
        while self.peek().kind == "[":
            opening = self.advance()
            while self.peek().kind != "]":
                if self.peek().kind == "eof":
                    raise self.fail("unterminated attribute list", opening)
                key = self.expect("id", "an attribute name")
                if self.peek().kind == "=":
                    self.advance()
                    attrs[key.value] = self.expect("id", f"a value for attribute {key.value!r}").value
                else:
                    attrs[key.value] = "true"
                if self.peek().kind in {";", ","}:
                    self.advance()
            self.advance()
        return attrs

    def declare(self, scope: _Scope, node_id: str, attrs: Optional[Dict[str, str]]) -> None:
        if node_id not in self.node_updates:
            self.node_order.append(node_id)
            self.node_updates[node_id] = [dict(scope.node_defaults)]
        if attrs:
            self.node_updates[node_id].append(attrs)
        if node_id not in scope.node_ids:
            scope.node_ids.append(node_id)

    # assembly

    def build(self, top: _Scope) -> GenericGraph:
        title_raw = top.graph_attrs.get("label")
        graph = GenericGraph(
            title=_label_text(title_raw, graph_id=self.graph_id) if title_raw is not None else None,
            directed=self.directed,
        )
        graph.attrs.update({k: v for k, v in top.graph_attrs.items() if k != "label"})

        label_of: Dict[str, str] = {}
        for node_id in self.node_order:
            merged: Dict[str, str] = {}
            for update in self.node_updates[node_id]:
                merged.update(update)
            raw = merged.pop("label", None)
            label = _label_text(raw, node_id=node_id, graph_id=self.graph_id) if raw is not None else node_id
            label_of[node_id] = label
            graph.add_vertex(label, merged)

        for source, target, attrs in self.edges:
            raw = attrs.pop("label", None)
            graph.add_edge(
                label_of[source],
                label_of[target],
                label=_label_text(raw, graph_id=self.graph_id) if raw is not None else None,
                attrs=attrs,
            )
        return graph


__all__ = ["import_graph_text"]
