"""Prompt engineering for the Sitesmith website builder.

The model writes React components and must answer in the marker grammar the
stream extractor understands: an optional <thinking> block, then one
<file path="..."> record per complete file. Every record carries the whole
file; there are no partial patches.
"""

import re

WEBSITE_BUILDER_SYSTEM = """You are Sitesmith's website builder, a senior front-end engineer who turns a description into a small, polished React website.

RESPONSE FORMAT (strict):
1. Start with a short plan inside <thinking>...</thinking>: the sections you will build and the visual direction. Keep it under 120 words.
2. Then emit every file you create or change as:
<file path="src/components/Header.jsx">
...complete file content...
</file>
3. Always emit complete files. Never emit diffs, ellipses or "rest unchanged" placeholders.

PROJECT LAYOUT:
- src/App.jsx is the entry file. It must define `function App()` (export default is fine) and compose the page from components.
- Components live in src/components/, one component per file, named after the file (src/components/Hero.jsx defines Hero).
- Styles: Tailwind utility classes. src/index.css may hold plain CSS; Tailwind directives there are ignored in the preview.

RUNTIME RULES (the preview has no bundler):
- React 18 hooks are available as globals: useState, useEffect, useRef, useCallback, useMemo, useContext, useReducer, createContext, Fragment.
- A `cn(...classes)` helper and these icon components are global: ArrowRight, Check, ChevronDown, ChevronRight, Mail, Menu, Phone, Search, Star, User, X, Zap. You may define your own with createIcon(svgPathMarkup).
- Imports are stripped. Do not rely on npm packages, dynamic import() or conditional imports.
- Put import statements at the top of the file and exports on top-level declarations only.

{mode_instructions}"""

NEW_PROJECT_INSTRUCTIONS = """This is a new project. Create src/App.jsx, every component it uses, and src/index.css if you need custom CSS."""

FOLLOW_UP_INSTRUCTIONS = """This is a follow-up request on an existing project. The current files are below. Emit only the files you change, each in full.

CURRENT FILES:
{file_listing}"""

_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)

MAX_HISTORY_MESSAGES = 20


def format_file_listing(files: dict) -> str:
    """Render the file table snapshot for the prompt, sorted by path."""
    blocks = []
    for path in sorted(files):
        blocks.append(f'<file path="{path}">\n{files[path]}\n</file>')
    return "\n\n".join(blocks) if blocks else "(no files yet)"


def build_system_prompt(files: dict) -> str:
    if files:
        mode = FOLLOW_UP_INSTRUCTIONS.format(file_listing=format_file_listing(files))
    else:
        mode = NEW_PROJECT_INSTRUCTIONS
    return WEBSITE_BUILDER_SYSTEM.format(mode_instructions=mode)


def image_block(reference_image: str) -> dict | None:
    """Anthropic image content block for a base64 data URL, or None."""
    match = _DATA_URL_RE.match(reference_image.strip())
    if not match:
        return None
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": match.group(1), "data": match.group(2)},
    }


def build_generation_messages(
    prompt: str,
    files: dict,
    history: list[dict],
    reference_image: str | None = None,
) -> tuple[str, list[dict]]:
    """Build system prompt and messages for one generation turn.

    Returns (system_prompt, messages) tuple.
    """
    system = build_system_prompt(files)

    messages = []
    for msg in history[-MAX_HISTORY_MESSAGES:]:
        if msg["role"] in ("user", "assistant") and msg["content"]:
            messages.append({"role": msg["role"], "content": msg["content"]})

    content: list[dict] = []
    if reference_image:
        block = image_block(reference_image)
        if block:
            content.append(block)
            prompt = prompt + "\n\nMatch the layout and style of the attached reference image."
    content.append({"type": "text", "text": prompt})
    messages.append({"role": "user", "content": content})

    return system, _merge_consecutive(messages)


def _merge_consecutive(messages: list[dict]) -> list[dict]:
    """The API rejects two turns in a row from the same role; fold them together."""
    merged: list[dict] = []
    for msg in messages:
        if merged and merged[-1]["role"] == msg["role"]:
            prev = merged[-1]
            prev["content"] = _as_blocks(prev["content"]) + _as_blocks(msg["content"])
        else:
            merged.append(dict(msg))
    if merged and merged[0]["role"] != "user":
        merged.insert(0, {"role": "user", "content": "Continue the website project."})
    return merged


def _as_blocks(content) -> list[dict]:
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    return list(content)
