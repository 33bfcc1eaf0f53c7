"""Format strings for rendering workflow records.

Syntax:

    $name, ${name}   value of a key, looked up through a resolver
    $$               a literal dollar sign
    [...]            the enclosed text, dropped entirely if any key used
                     inside is undefined or not yet published
    \\X              backslash escapes (\\n, \\t, \\x41, \\u00e9, \\$, ...)

A resolver returns ``(value, present)`` for a key, or raises
KeyResolutionError for keys that are undefined. A key that is merely not
present renders as nothing, but still suppresses an enclosing bracket
group. An undefined key outside any bracket fails the whole render with
UnresolvedVariable; syntax errors always fail with MalformedTemplate.
"""

from __future__ import annotations

import string
from collections.abc import Callable

from .errors import KeyResolutionError, MalformedTemplate, UnresolvedVariable

Resolver = Callable[[str], tuple[str, bool]]

_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
}
_HEX_ESCAPES = {"x": 2, "u": 4, "U": 8}
_SPECIAL = "\\[]$"


def render(template: str, resolve: Resolver) -> str:
    """Render template, looking keys up with resolve.

    Raises:
        MalformedTemplate: On any syntax error.
        UnresolvedVariable: If a key outside any bracket group is undefined.
    """
    return _Renderer(template, resolve).run()


class _Group:
    """Output collected for one bracket nesting level."""

    def __init__(self) -> None:
        self.parts: list[str] = []
        self.soft_error: KeyResolutionError | None = None
        self.missing = False

    @property
    def suppressed(self) -> bool:
        return self.missing or self.soft_error is not None


class _Renderer:
    def __init__(self, template: str, resolve: Resolver) -> None:
        self.template = template
        self.resolve = resolve
        self.pos = 0

    def run(self) -> str:
        group = self._scan(nested=False)
        if group.soft_error is not None:
            raise UnresolvedVariable(group.soft_error)
        return "".join(group.parts)

    def _fail(self, reason: str) -> MalformedTemplate:
        return MalformedTemplate(self.template, reason)

    def _scan(self, nested: bool) -> _Group:
        group = _Group()
        text = self.template
        while self.pos < len(text):
            ch = text[self.pos]
            if ch == "\\":
                group.parts.append(self._escape())
            elif ch == "[":
                self.pos += 1
                inner = self._scan(nested=True)
                if not inner.suppressed:
                    group.parts.extend(inner.parts)
            elif ch == "]":
                if not nested:
                    raise self._fail(f"unmatched ']' at offset {self.pos}")
                self.pos += 1
                return group
            elif ch == "$":
                self._variable(group)
            else:
                # Copy the literal run up to the next special character
                end = self.pos + 1
                while end < len(text) and text[end] not in _SPECIAL:
                    end += 1
                group.parts.append(text[self.pos : end])
                self.pos = end
        if nested:
            raise self._fail("unterminated '['")
        return group

    def _escape(self) -> str:
        text = self.template
        start = self.pos
        if start + 1 >= len(text):
            raise self._fail("trailing backslash")
        ch = text[start + 1]
        if ch in string.punctuation:
            self.pos = start + 2
            return ch
        if ch in _SIMPLE_ESCAPES:
            self.pos = start + 2
            return _SIMPLE_ESCAPES[ch]
        if ch in _HEX_ESCAPES:
            width = _HEX_ESCAPES[ch]
            digits = text[start + 2 : start + 2 + width]
            if len(digits) != width or any(d not in string.hexdigits for d in digits):
                raise self._fail(f"bad escape at offset {start}")
            code = int(digits, 16)
            if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
                raise self._fail(f"escape out of range at offset {start}")
            self.pos = start + 2 + width
            return chr(code)
        if ch in "01234567":
            digits = text[start + 1 : start + 4]
            if len(digits) != 3 or any(d not in string.octdigits for d in digits):
                raise self._fail(f"bad octal escape at offset {start}")
            code = int(digits, 8)
            if code > 0xFF:
                raise self._fail(f"octal escape out of range at offset {start}")
            self.pos = start + 4
            return chr(code)
        raise self._fail(f"unknown escape '\\{ch}' at offset {start}")

    def _variable(self, group: _Group) -> None:
        text = self.template
        self.pos += 1
        if self.pos >= len(text):
            group.parts.append("$")
            return
        if text[self.pos] == "$":
            self.pos += 1
            group.parts.append("$")
            return
        if text[self.pos] == "{":
            end = text.find("}", self.pos)
            if end == -1:
                raise self._fail("unterminated '${'")
            key = text[self.pos + 1 : end]
            self.pos = end + 1
        else:
            end = self.pos
            while end < len(text) and (text[end].isalpha() or text[end] == "_"):
                end += 1
            key = text[self.pos : end]
            self.pos = end
        if not key:
            group.parts.append("$")
            return

        try:
            value, present = self.resolve(key)
        except KeyResolutionError as exc:
            if group.soft_error is None:
                group.soft_error = exc
            return
        if not present:
            group.missing = True
            return
        group.parts.append(value)


def format_help(keys_help: str) -> str:
    """Help text describing the format string syntax and available keys."""
    return f"""
<fmtstr> syntax:

  $<var>:   The value of a preset or user-set variable.  Must be followed
            by something other than a letter or _.  Will error if the
            variable is not defined without a default value.

  ${{<var>}}: Alternative syntax.

  [...]:    Only displays the text if all variables used inside are
            defined.  For example to only display the '::' if there are
            unmet deps. use:  $path[ :: $unmet]

  \\...:     Standard backslash escaping.  $$ is a literal $.

preset variables:

{keys_help}"""
