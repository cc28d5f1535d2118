"""
Project file table and the merge of file-edit records into it.

A file table maps slash-delimited paths to complete file contents. Records
from one turn are applied in emission order; a record for an existing path
replaces its whole content, otherwise the path is appended. Merging is a
pure function, so replaying the same records converges to the same table.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Union

from builder.stream import FileEdit


ENTRY_PATH = "src/App.jsx"
STYLESHEET_PATH = "src/index.css"
COMPONENTS_DIR = "src/components/"

_SLASHES_RE = re.compile(r"/{2,}")


def canonical_path(path: str) -> str:
    """Canonical form of a model-supplied path.

    "./src/App.jsx", "/src/App.jsx" and "src\\App.jsx" all become
    "src/App.jsx". Case is significant.
    """
    p = path.strip().replace("\\", "/")
    p = _SLASHES_RE.sub("/", p)
    while p.startswith("./") or p.startswith("/"):
        p = p[2:] if p.startswith("./") else p[1:]
    return p


@dataclass(frozen=True)
class FileRecord:
    path: str
    content: str


EditLike = Union[FileEdit, FileRecord, Mapping]


def _as_record(edit: EditLike) -> FileRecord:
    if isinstance(edit, Mapping):
        return FileRecord(path=canonical_path(edit["path"]), content=edit["content"])
    return FileRecord(path=canonical_path(edit.path), content=edit.content)


@dataclass
class MergeResult:
    files: Dict[str, str]
    viewed: Optional[str]
    changed: List[str] = field(default_factory=list)


def apply_edits(
    files: Mapping[str, str],
    edits: Iterable[EditLike],
    viewed: Optional[str] = None,
    entry_path: str = ENTRY_PATH,
) -> MergeResult:
    """Apply `edits` in order to a copy of `files`.

    `changed` lists the paths whose content differs from the input table, in
    first-touched order. If the entry file was touched, `viewed` moves to it.
    """
    merged = dict(files)
    touched: List[str] = []
    for edit in edits:
        record = _as_record(edit)
        if not record.path:
            continue
        merged[record.path] = record.content
        if record.path not in touched:
            touched.append(record.path)

    changed = [p for p in touched if files.get(p) != merged[p]]
    if entry_path in touched:
        viewed = entry_path
    return MergeResult(files=merged, viewed=viewed, changed=changed)


def component_paths(files: Mapping[str, str]) -> List[str]:
    """Paths under the components directory, sorted."""
    return sorted(p for p in files if p.startswith(COMPONENTS_DIR))


def has_entry(files: Mapping[str, str]) -> bool:
    return ENTRY_PATH in files


class FileSetAggregator:
    """A file table plus the "currently viewed file" pointer."""

    def __init__(self, files: Optional[Mapping[str, str]] = None, viewed: Optional[str] = None):
        self.files: Dict[str, str] = dict(files or {})
        self.viewed = viewed if viewed is not None else (ENTRY_PATH if ENTRY_PATH in self.files else None)

    def apply(self, edits: Iterable[EditLike]) -> List[str]:
        """Merge `edits` and return the changed paths."""
        result = apply_edits(self.files, edits, viewed=self.viewed)
        self.files = result.files
        self.viewed = result.viewed
        return result.changed

    def snapshot(self) -> Dict[str, str]:
        return dict(self.files)
