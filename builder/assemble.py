"""
Assembly of a project file table into one self-contained preview document.

Order inside the document: cleaned stylesheet, runtime helpers, component
files sorted by path, then the entry file, so the entry can use every
component function declared above it. Assembly reads nothing but the table:
the same table always gives the same bytes.
"""

import hashlib
import logging
import re
from typing import Mapping

from builder.files import ENTRY_PATH, STYLESHEET_PATH, component_paths
from builder.normalize import normalize
from builder.runtime import document_body, document_head

logger = logging.getLogger(__name__)

# Babel runs with the react preset only, so TypeScript sources are not compiled.
SCRIPT_EXTENSIONS = (".jsx", ".js")

_CSS_STATEMENT_RES = [
    re.compile(r"@tailwind[^;]*;"),
    re.compile(r"@import[^;]*;"),
    re.compile(r"@apply[^;]*;"),
]
_LAYER_RE = re.compile(r"@layer\s+[\w-]+\s*\{")
_SCRIPT_CLOSE_RE = re.compile(r"</(script)", re.IGNORECASE)
_STYLE_CLOSE_RE = re.compile(r"</(style)", re.IGNORECASE)


def _strip_layers(css: str) -> str:
    """Remove `@layer name { ... }` blocks, honouring nested braces."""
    out = []
    pos = 0
    while True:
        m = _LAYER_RE.search(css, pos)
        if not m:
            out.append(css[pos:])
            break
        out.append(css[pos:m.start()])
        depth = 1
        i = m.end()
        while i < len(css) and depth:
            if css[i] == "{":
                depth += 1
            elif css[i] == "}":
                depth -= 1
            i += 1
        pos = i
    return "".join(out)


def clean_stylesheet(css: str) -> str:
    """Drop at-rules that need a build step (Tailwind/PostCSS) to mean anything."""
    cleaned = _strip_layers(css)
    for pattern in _CSS_STATEMENT_RES:
        cleaned = pattern.sub("", cleaned)
    return _STYLE_CLOSE_RE.sub(r"<\\/\1", cleaned)


def _embed_script(code: str) -> str:
    # A literal "</script" would end the host <script> element early.
    return _SCRIPT_CLOSE_RE.sub(r"<\\/\1", code)


def component_sources(files: Mapping[str, str]) -> str:
    parts = []
    for path in component_paths(files):
        if not path.endswith(SCRIPT_EXTENSIONS):
            continue
        parts.append("// --- %s ---\n%s" % (path, normalize(files[path])))
    return "\n\n".join(parts)


def assemble(files: Mapping[str, str]) -> str:
    """Build the preview document for `files`."""
    stylesheet = clean_stylesheet(files.get(STYLESHEET_PATH, ""))
    components = component_sources(files)
    entry = normalize(files.get(ENTRY_PATH, ""))
    if not entry:
        logger.debug("Assembling without %s", ENTRY_PATH)
    return document_head(stylesheet) + "\n" + document_body(_embed_script(components), _embed_script(entry))


def document_digest(document: str) -> str:
    return hashlib.sha256(document.encode("utf-8")).hexdigest()


class BundleAssembler:
    """Remembers the last document so unchanged tables are not re-assembled."""

    def __init__(self):
        self._last_key = None
        self._last_document = ""

    def build(self, files: Mapping[str, str]) -> str:
        key = tuple(sorted(files.items()))
        if key != self._last_key:
            self._last_document = assemble(files)
            self._last_key = key
        return self._last_document
