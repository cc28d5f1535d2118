"""
Lexical removal of module syntax from generated UI source files.

The preview runs every file in one shared script scope, so import statements
are dropped and export qualifiers are peeled off declarations. This is line
and pattern matching only, not a parse: a line that is not one of the forms
below is passed through byte for byte. Imports must start at column 0;
indented, conditional and dynamic `import(...)` forms are left alone and, if
they break, fail inside the preview at runtime.

Recognized forms:
    import './styles.css'                        -> removed
    import React from 'react'                    -> removed
    import * as Icons from 'lucide-react'        -> removed
    import React, { useState } from 'react'     -> removed
    import {\n  a,\n  b\n} from './x'            -> removed (up to the path string)
    export default function App() {             -> function App() {
    export default function                      -> function
    export default App;                          -> removed
    export { Header, Footer };                   -> removed
    export const X = ...                         -> const X = ...
    export function X() ...                      -> function X() ...
"""

import re
from typing import List, Tuple


_IMPORT_SIDE_EFFECT_RE = re.compile(r"""^import\s*(["'])[^"'\n]*\1\s*;?\s*$""")
_IMPORT_FROM_RE = re.compile(r"""^import\s*[^"'\n]*?\bfrom\s*(["'])[^"'\n]*\1\s*;?\s*$""")
_IMPORT_START_RE = re.compile(r"""^import(\s+|\s*\{)(?!\s*\()""")
_FROM_TAIL_RE = re.compile(r"""\bfrom\s*(["'])[^"'\n]*\1\s*;?\s*$""")

_EXPORT_DEFAULT_FN_RE = re.compile(r"^export\s+default\s+((?:async\s+)?function\b)(?=\s*\*?\s*(?:[A-Za-z_$]|$))")
_EXPORT_DEFAULT_NAME_RE = re.compile(r"^export\s+default\s+(?!(?:function|class|async)\b)[A-Za-z_$][\w$]*\s*;?\s*$")
_EXPORT_LIST_RE = re.compile(r"""^export\s*\{[^}]*\}\s*(?:from\s*(["'])[^"'\n]*\1)?\s*;?\s*$""")
_EXPORT_LIST_START_RE = re.compile(r"^export\s*\{[^}]*$")
_EXPORT_LIST_TAIL_RE = re.compile(r"""\}\s*(?:from\s*(["'])[^"'\n]*\1)?\s*;?\s*$""")
_EXPORT_DECL_RE = re.compile(r"^export\s+(?=(?:const|function|async\s+function)\b)")


def _split(line: str) -> Tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


def _consume_until(lines: List[str], start: int, tail_re) -> int:
    """Index of the first line at or after `start` matching `tail_re`, or -1."""
    for i in range(start, len(lines)):
        if tail_re.search(_split(lines[i])[0]):
            return i
    return -1


def normalize(source: str) -> str:
    """Strip import/export syntax from `source`; everything else is untouched."""
    lines = source.splitlines(keepends=True)
    out: List[str] = []
    i = 0
    while i < len(lines):
        body, ending = _split(lines[i])

        if body.startswith("import"):
            if _IMPORT_SIDE_EFFECT_RE.match(body) or _IMPORT_FROM_RE.match(body):
                i += 1
                continue
            if _IMPORT_START_RE.match(body):
                end = _consume_until(lines, i + 1, _FROM_TAIL_RE)
                if end != -1:
                    i = end + 1
                    continue

        elif body.startswith("export"):
            fn = _EXPORT_DEFAULT_FN_RE.match(body)
            if fn:
                out.append(fn.group(1) + body[fn.end():] + ending)
                i += 1
                continue
            if _EXPORT_DEFAULT_NAME_RE.match(body) or _EXPORT_LIST_RE.match(body):
                i += 1
                continue
            if _EXPORT_LIST_START_RE.match(body):
                end = _consume_until(lines, i + 1, _EXPORT_LIST_TAIL_RE)
                if end != -1:
                    i = end + 1
                    continue
            decl = _EXPORT_DECL_RE.match(body)
            if decl:
                out.append(body[decl.end():] + ending)
                i += 1
                continue

        out.append(lines[i])
        i += 1
    return "".join(out)
