"""
Blade Compiler - translates Blade-style view source into Jinja2 source.

The compiler is a two-pass translator:

1. ``tokenize()`` splits the source into TEXT, ECHO (``{{ }}``),
   RAW_ECHO (``{!! !!}``) and DIRECTIVE (``@name(args)``) tokens;
   ``{{-- --}}`` comments are dropped here. Directive arguments are
   read with balanced parentheses and respect quoted strings.
2. ``compile()`` rewrites every token into Jinja2 syntax. Expressions
   written PHP-style (``$user->name``, ``&&``, ``!``, ``===``, ``null``,
   ``['k' => $v]``) are translated into Jinja2 expressions.

Templates that ``@extends`` a layout compile to a series of captured
sections followed by one ``_extend(layout, sections)`` call; the layout
pulls those sections back in with ``@yield``.

The compiled source is executed by :class:`kestrel.templates.View`, which
provides the helper globals referenced here (``_yield``, ``_extend``,
``csrf_field``, ``old``, ...).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..faults import TemplateSyntaxFault


__all__ = ["BladeCompiler", "Token", "translate_expression"]


TEXT = "text"
ECHO = "echo"
RAW_ECHO = "raw_echo"
DIRECTIVE = "directive"


# Directives the compiler understands. Anything else after "@" is text.
DIRECTIVES = frozenset({
    "if", "elseif", "else", "endif",
    "unless", "endunless",
    "isset", "endisset",
    "empty", "endempty",
    "foreach", "endforeach",
    "forelse", "endforelse",
    "include", "extends",
    "section", "endsection", "stop", "yield",
    "csrf", "method", "old",
    "error", "enderror",
    "json",
    "verbatim", "endverbatim",
})

# Directives that accept a parenthesized argument list.
ARG_DIRECTIVES = frozenset({
    "if", "elseif", "unless", "isset", "empty",
    "foreach", "forelse", "include", "extends",
    "section", "yield", "method", "old", "error", "json",
})

_TOKEN_RE = re.compile(r"\{\{--|\{!!|\{\{|@@?([A-Za-z_]\w*)")
_IDENT_RE = re.compile(r"[A-Za-z_]\w*")
_JINJA_MARKERS = ("{{", "{%", "{#")

_WORDS = {
    "null": "none",
    "NULL": "none",
    "TRUE": "true",
    "FALSE": "false",
}


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    args: Optional[str] = None
    position: int = 0


# ============================================================================
# Top-level scanning helpers
# ============================================================================

def _string_end(source: str, start: int) -> int:
    """Index just past the string literal opening at ``start``."""
    quote = source[start]
    i = start + 1
    while i < len(source):
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    return len(source)


def split_top_level(source: str, separator: str) -> List[str]:
    """Split on ``separator`` outside of strings and brackets."""
    parts: List[str] = []
    depth = 0
    last = 0
    i = 0
    while i < len(source):
        ch = source[i]
        if ch in "'\"":
            i = _string_end(source, i)
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif depth == 0 and source.startswith(separator, i):
            parts.append(source[last:i])
            i += len(separator)
            last = i
            continue
        i += 1
    parts.append(source[last:])
    return parts


def _find_top_level(source: str, char: str) -> int:
    depth = 0
    i = 0
    while i < len(source):
        ch = source[i]
        if ch in "'\"":
            i = _string_end(source, i)
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif depth == 0 and ch == char:
            return i
        i += 1
    return -1


def _string_literal(source: str) -> Optional[str]:
    source = source.strip()
    if len(source) >= 2 and source[0] in "'\"" and source[-1] == source[0]:
        if _string_end(source, 0) == len(source):
            return source[1:-1]
    return None


# ============================================================================
# Expression translation
# ============================================================================

def translate_expression(expr: str) -> str:
    """
    Translate a PHP-flavoured Blade expression into a Jinja2 expression.

        $user->name            -> user.name
        !$a && $b === null     -> not a and b == none
        $x ?? 'none'           -> _coalesce(x, 'none')
        $a ? 'y' : 'n'         -> ('y' if a else 'n')
        ['k' => $v]            -> {'k': v}
        $first . ' ' . $last   -> first ~ ' ' ~ last
    """
    expr = expr.strip()

    parts = split_top_level(expr, "??")
    if len(parts) > 1:
        return "_coalesce(" + ", ".join(translate_expression(p) for p in parts) + ")"

    q = _find_top_level(expr, "?")
    if q >= 0:
        condition, rest = expr[:q], expr[q + 1:]
        if rest.lstrip().startswith(":"):
            other = rest.lstrip()[1:]
            return f"({translate_expression(condition)} or {translate_expression(other)})"
        c = _find_top_level(rest, ":")
        if c >= 0:
            return (
                f"({translate_expression(rest[:c])} if {translate_expression(condition)} "
                f"else {translate_expression(rest[c + 1:])})"
            )

    return _translate_simple(expr)


def _translate_simple(expr: str) -> str:
    out: List[str] = []
    literals = set()
    # (index in out, opening char, holds "=>" pairs)
    brackets: List[List] = []
    i = 0
    n = len(expr)

    while i < n:
        ch = expr[i]

        if ch in "'\"":
            end = _string_end(expr, i)
            literals.add(len(out))
            out.append(expr[i:end])
            i = end
            continue

        if ch == "$":
            m = _IDENT_RE.match(expr, i + 1)
            if m:
                name = m.group(0)
                out.append("_loop(loop)" if name == "loop" else name)
                i = m.end()
                continue

        if ch == "@" and _IDENT_RE.match(expr, i + 1):
            i += 1
            continue

        if expr.startswith("->", i):
            out.append(".")
            i += 2
        elif expr.startswith("===", i):
            out.append("==")
            i += 3
        elif expr.startswith("!==", i):
            out.append("!=")
            i += 3
        elif expr.startswith("=>", i):
            if brackets and brackets[-1][1] == "[":
                brackets[-1][2] = True
            out.append(":")
            i += 2
        elif expr.startswith("&&", i):
            out.append(" and ")
            i += 2
        elif expr.startswith("||", i):
            out.append(" or ")
            i += 2
        elif expr.startswith("!=", i):
            out.append("!=")
            i += 2
        elif ch == "!":
            out.append(" not ")
            i += 1
        elif ch == "." and 0 < i < n - 1 and expr[i - 1].isspace() and expr[i + 1].isspace():
            out.append("~")
            i += 1
        elif ch in "([{":
            brackets.append([len(out), ch, False])
            out.append(ch)
            i += 1
        elif ch in ")]}":
            if brackets:
                index, opener, is_dict = brackets.pop()
                if opener == "[" and is_dict:
                    out[index] = "{"
                    ch = "}"
            out.append(ch)
            i += 1
        elif ch.isalpha() or ch == "_":
            m = _IDENT_RE.match(expr, i)
            word = m.group(0)
            out.append(_WORDS.get(word, word))
            i = m.end()
        else:
            out.append(ch)
            i += 1

    # Collapse whitespace outside string literals
    result: List[str] = []
    run: List[str] = []
    for index, piece in enumerate(out):
        if index in literals:
            result.append(re.sub(r"\s+", " ", "".join(run)))
            run = []
            result.append(piece)
        else:
            run.append(piece)
    result.append(re.sub(r"\s+", " ", "".join(run)))
    return "".join(result).strip()


# ============================================================================
# Compiler
# ============================================================================

class BladeCompiler:
    """
    Compile Blade view source into Jinja2 template source.

    Example:
        >>> BladeCompiler().compile("@if($user)Hi {{ $user->name }}@endif")
        '{% if user %}Hi {{ user.name }}{% endif %}'
    """

    def compile(self, source: str, name: str = "<string>") -> str:
        tokens = self.tokenize(source, name)
        if any(t.kind == DIRECTIVE and t.value == "extends" for t in tokens):
            return self._compile_child(tokens, name)
        return self._compile_tokens(tokens, name)

    # ------------------------------------------------------------------
    # Pass 1: tokenize
    # ------------------------------------------------------------------

    def tokenize(self, source: str, name: str = "<string>") -> List[Token]:
        tokens: List[Token] = []
        text: List[str] = []
        pos = 0

        def flush(at: int) -> None:
            if text:
                joined = "".join(text)
                if joined:
                    tokens.append(Token(TEXT, joined, position=at))
                text.clear()

        while True:
            m = _TOKEN_RE.search(source, pos)
            if m is None:
                text.append(source[pos:])
                flush(pos)
                break

            start = m.start()
            lexeme = m.group(0)

            if lexeme == "{{--":
                end = source.find("--}}", m.end())
                if end < 0:
                    raise self._fault(name, source, start, "unclosed comment")
                text.append(source[pos:start])
                flush(pos)
                pos = end + 4
                continue

            if lexeme in ("{!!", "{{"):
                closer = "!!}" if lexeme == "{!!" else "}}"
                end = source.find(closer, m.end())
                if end < 0:
                    raise self._fault(name, source, start, f"unclosed {lexeme}")
                text.append(source[pos:start])
                flush(pos)
                kind = RAW_ECHO if lexeme == "{!!" else ECHO
                tokens.append(Token(kind, source[m.end():end].strip(), position=start))
                pos = end + len(closer)
                continue

            directive = m.group(1)

            if lexeme.startswith("@@"):
                # Escaped directive, emitted literally without one "@"
                text.append(source[pos:start])
                text.append(lexeme[1:])
                pos = m.end()
                continue

            preceded_by_word = start > 0 and (source[start - 1].isalnum() or source[start - 1] == "_")
            if directive not in DIRECTIVES or preceded_by_word:
                text.append(source[pos:m.end()])
                pos = m.end()
                continue

            text.append(source[pos:start])
            flush(pos)

            if directive == "verbatim":
                end = source.find("@endverbatim", m.end())
                if end < 0:
                    raise self._fault(name, source, start, "@verbatim without @endverbatim")
                tokens.append(Token(TEXT, source[m.end():end], position=start))
                pos = end + len("@endverbatim")
                continue

            args = None
            pos = m.end()
            if directive in ARG_DIRECTIVES:
                args, pos = self._read_args(source, pos, name)
            tokens.append(Token(DIRECTIVE, directive, args, position=start))

        return tokens

    def _read_args(self, source: str, pos: int, name: str) -> Tuple[Optional[str], int]:
        """Read a balanced ``( ... )`` group starting at ``pos``."""
        i = pos
        while i < len(source) and source[i] in " \t":
            i += 1
        if i >= len(source) or source[i] != "(":
            return None, pos

        depth = 0
        start = i
        while i < len(source):
            ch = source[i]
            if ch in "'\"":
                i = _string_end(source, i)
                continue
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    return source[start + 1:i], i + 1
            i += 1
        raise self._fault(name, source, start, "unbalanced parentheses")

    @staticmethod
    def _fault(name: str, source: str, position: int, reason: str) -> TemplateSyntaxFault:
        line = source.count("\n", 0, position) + 1
        return TemplateSyntaxFault(name, f"{reason} on line {line}")

    # ------------------------------------------------------------------
    # Pass 2: emit Jinja2
    # ------------------------------------------------------------------

    def _compile_child(self, tokens: List[Token], name: str) -> str:
        """A template that extends a layout: capture sections, then extend."""
        layout = None
        captured: List[Tuple[str, str]] = []
        lines: List[str] = []
        i = 0

        while i < len(tokens):
            token = tokens[i]
            i += 1
            if token.kind != DIRECTIVE:
                continue

            if token.value == "extends":
                layout = self._require_args(token, name)
                continue

            if token.value != "section":
                continue

            parts = split_top_level(self._require_args(token, name), ",")
            var = f"_section_{len(captured)}"
            captured.append((translate_expression(parts[0]), var))

            if len(parts) > 1:
                value = translate_expression(",".join(parts[1:]))
                lines.append(f"{{% set {var} = ({value}) %}}")
                continue

            body, i = self._collect_section(tokens, i, token, name)
            compiled = self._compile_tokens(_strip_edges(body), name)
            lines.append(f"{{% set {var} %}}{compiled}{{% endset %}}")

        sections = ", ".join(f"{key}: {var}" for key, var in captured)
        lines.append(f"{{{{ _extend({translate_expression(layout)}, {{{sections}}}) }}}}")
        return "".join(lines)

    def _collect_section(self, tokens: List[Token], i: int, opener: Token, name: str) -> Tuple[List[Token], int]:
        depth = 1
        body: List[Token] = []
        while i < len(tokens):
            token = tokens[i]
            i += 1
            if token.kind == DIRECTIVE and token.value == "section" and token.args is not None:
                if len(split_top_level(token.args, ",")) == 1:
                    depth += 1
            elif token.kind == DIRECTIVE and token.value in ("endsection", "stop"):
                depth -= 1
                if depth == 0:
                    return body, i
            body.append(token)
        raise TemplateSyntaxFault(name, f"@section({opener.args}) is never closed")

    def _compile_tokens(self, tokens: List[Token], name: str) -> str:
        out: List[str] = []
        stack: List[str] = []

        for token in tokens:
            if token.kind == TEXT:
                out.append(_emit_text(token.value))
            elif token.kind == ECHO:
                out.append(f"{{{{ {translate_expression(token.value)} }}}}")
            elif token.kind == RAW_ECHO:
                out.append(f"{{{{ _raw({translate_expression(token.value)}) }}}}")
            elif token.kind == DIRECTIVE:
                out.append(self._compile_directive(token, stack, name))

        if stack:
            raise TemplateSyntaxFault(name, f"@{stack[-1]} is never closed")
        return "".join(out)

    def _compile_directive(self, token: Token, stack: List[str], name: str) -> str:
        directive = token.value
        args = token.args

        def expr() -> str:
            return translate_expression(self._require_args(token, name))

        def close(opener: str) -> None:
            if not stack or stack[-1] != opener:
                found = f"@{stack[-1]}" if stack else "nothing"
                raise TemplateSyntaxFault(name, f"@{directive} closes {found}")
            stack.pop()

        if directive == "if":
            stack.append("if")
            return f"{{% if {expr()} %}}"
        if directive == "elseif":
            if not stack or stack[-1] not in ("if", "unless", "isset"):
                raise TemplateSyntaxFault(name, "@elseif outside of @if")
            return f"{{% elif {expr()} %}}"
        if directive == "else":
            if not stack or stack[-1] not in ("if", "unless", "isset", "empty"):
                raise TemplateSyntaxFault(name, "@else outside of @if")
            return "{% else %}"
        if directive == "unless":
            stack.append("unless")
            return f"{{% if not ({expr()}) %}}"
        if directive == "isset":
            stack.append("isset")
            return f"{{% if isset({expr()}) %}}"
        if directive == "empty":
            if args is None:
                # @forelse fallback branch
                if not stack or stack[-1] != "forelse":
                    raise TemplateSyntaxFault(name, "@empty outside of @forelse")
                return "{% else %}"
            stack.append("empty")
            return f"{{% if empty({expr()}) %}}"
        if directive in ("endif", "endunless", "endisset", "endempty"):
            close({"endif": "if", "endunless": "unless", "endisset": "isset", "endempty": "empty"}[directive])
            return "{% endif %}"

        if directive in ("foreach", "forelse"):
            stack.append(directive)
            return "{% for " + self._loop_header(self._require_args(token, name), name) + " %}"
        if directive in ("endforeach", "endforelse"):
            close(directive[3:])
            return "{% endfor %}"

        if directive == "error":
            stack.append("error")
            return f"{{% with error = _error({expr()}) %}}{{% set message = error %}}{{% if error %}}"
        if directive == "enderror":
            close("error")
            return "{% endif %}{% endwith %}"

        if directive == "section":
            parts = split_top_level(self._require_args(token, name), ",")
            key = translate_expression(parts[0])
            if len(parts) > 1:
                return f"{{{{ _yield({key}, {translate_expression(','.join(parts[1:]))}) }}}}"
            stack.append("section")
            return f"{{% if _has_section({key}) %}}{{{{ _yield({key}) }}}}{{% else %}}"
        if directive in ("endsection", "stop"):
            close("section")
            return "{% endif %}"
        if directive == "yield":
            return f"{{{{ _yield({expr()}) }}}}"

        if directive == "include":
            return self._compile_include(self._require_args(token, name), name)
        if directive == "extends":
            raise TemplateSyntaxFault(name, "@extends must be used at the top level")

        if directive == "csrf":
            return "{{ csrf_field() }}"
        if directive == "method":
            return f"{{{{ method_field({expr()}) }}}}"
        if directive == "old":
            return f"{{{{ old({expr()}) }}}}"
        if directive == "json":
            return f"{{{{ _json({expr()}) }}}}"

        raise TemplateSyntaxFault(name, f"unsupported directive @{directive}")

    def _loop_header(self, args: str, name: str) -> str:
        parts = split_top_level(args, " as ")
        if len(parts) != 2:
            raise TemplateSyntaxFault(name, f"expected '$items as $item' in @foreach({args})")
        iterable = translate_expression(parts[0])
        target = parts[1]
        pair = split_top_level(target, "=>")
        if len(pair) == 2:
            key, value = (translate_expression(p) for p in pair)
            return f"{key}, {value} in _pairs({iterable})"
        return f"{translate_expression(target)} in {iterable}"

    def _compile_include(self, args: str, name: str) -> str:
        parts = split_top_level(args, ",")
        target = translate_expression(parts[0])
        include = f"{{% include {target} %}}"
        if len(parts) == 1:
            return include

        data = ",".join(parts[1:]).strip()
        if not (data.startswith("[") and data.endswith("]")):
            raise TemplateSyntaxFault(name, f"@include data must be an array literal, got {data}")

        assignments = []
        for entry in split_top_level(data[1:-1], ","):
            if not entry.strip():
                continue
            pair = split_top_level(entry, "=>")
            key = _string_literal(pair[0]) if len(pair) == 2 else None
            if key is None or not _IDENT_RE.fullmatch(key):
                raise TemplateSyntaxFault(name, f"@include data keys must be quoted names, got {entry.strip()}")
            assignments.append(f"{key} = {translate_expression(pair[1])}")

        if not assignments:
            return include
        return f"{{% with {', '.join(assignments)} %}}{include}{{% endwith %}}"

    @staticmethod
    def _require_args(token: Token, name: str) -> str:
        if token.args is None or not token.args.strip():
            raise TemplateSyntaxFault(name, f"@{token.value} requires arguments")
        return token.args


def _emit_text(text: str) -> str:
    if any(marker in text for marker in _JINJA_MARKERS) or text.endswith("{"):
        return "{% raw %}" + text + "{% endraw %}"
    return text


def _strip_edges(tokens: List[Token]) -> List[Token]:
    """Trim whitespace around a section body."""
    tokens = list(tokens)
    if tokens and tokens[0].kind == TEXT:
        tokens[0] = Token(TEXT, tokens[0].value.lstrip(), position=tokens[0].position)
    if tokens and tokens[-1].kind == TEXT:
        tokens[-1] = Token(TEXT, tokens[-1].value.rstrip(), position=tokens[-1].position)
    return [t for t in tokens if not (t.kind == TEXT and not t.value)]
