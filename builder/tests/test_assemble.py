"""
Tests for preview document assembly.

Validates:
1. Same file table gives the same bytes
2. Stylesheet at-rules that need a build step are removed
3. Components come before the entry, sorted by path
4. Embedded code cannot close the host script element
5. Crash containment is wired into every document
6. Only JSX/JS component files are compiled
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from builder.assemble import BundleAssembler, assemble, clean_stylesheet, document_digest
from builder.runtime import (
    BABEL_CDN,
    CRASH_ATTRIBUTE,
    ERROR_PANEL_ID,
    REACT_CDN,
    REACT_DOM_CDN,
    ROOT_ID,
    TAILWIND_CDN,
)


FILES = {
    "src/App.jsx": "import Hero from './components/Hero';\nexport default function App() { return <Hero />; }\n",
    "src/components/Zed.jsx": "export function Zed() { return null; }\n",
    "src/components/Hero.jsx": "export default function Hero() { return <h1>Hello</h1>; }\n",
    "src/index.css": "@tailwind base;\n@tailwind components;\nbody { margin: 0; }\n",
}


class TestDeterminism:
    """Assembly is a pure function of the table."""

    def test_same_table_same_bytes(self):
        assert assemble(FILES) == assemble(dict(FILES))

    def test_insertion_order_irrelevant(self):
        reordered = dict(reversed(list(FILES.items())))
        assert assemble(reordered) == assemble(FILES)

    def test_digest_stable_and_sensitive(self):
        changed = dict(FILES, **{"src/components/Hero.jsx": "function Hero() { return null; }\n"})
        assert document_digest(assemble(FILES)) == document_digest(assemble(FILES))
        assert document_digest(assemble(changed)) != document_digest(assemble(FILES))

    def test_bundle_assembler_caches(self):
        assembler = BundleAssembler()
        first = assembler.build(FILES)
        assert assembler.build(dict(FILES)) is first
        assert assembler.build({"src/App.jsx": "function App() { return null; }"}) != first


class TestLayout:
    """What goes where in the document."""

    def test_components_sorted_before_entry(self):
        doc = assemble(FILES)
        hero = doc.index("// --- src/components/Hero.jsx ---")
        zed = doc.index("// --- src/components/Zed.jsx ---")
        app = doc.index("function App()")
        assert hero < zed < app

    def test_sources_normalized(self):
        doc = assemble(FILES)
        assert "import Hero" not in doc
        assert "export default function" not in doc
        assert "function Zed()" in doc

    def test_runtime_anchors_present(self):
        doc = assemble(FILES)
        assert 'id="%s"' % ROOT_ID in doc
        assert 'id="%s"' % ERROR_PANEL_ID in doc
        assert "PreviewErrorBoundary" in doc
        assert doc.index("addEventListener('error'") < doc.index("function App()")

    def test_missing_stylesheet_and_components(self):
        doc = assemble({"src/App.jsx": "function App() { return <p>Hello</p>; }\n"})
        assert "function App()" in doc
        assert "// --- " not in doc

    def test_non_script_component_files_ignored(self):
        doc = assemble(dict(FILES, **{"src/components/readme.md": "# notes"}))
        assert "# notes" not in doc

    def test_typescript_component_files_ignored(self):
        doc = assemble(dict(FILES, **{"src/components/Types.tsx": "type Props = { title: string };\n"}))
        assert "type Props" not in doc


class TestStylesheet:
    """Cleaning of src/index.css."""

    def test_tailwind_directives_removed(self):
        assert clean_stylesheet("@tailwind base;\nbody { margin: 0; }") == "\nbody { margin: 0; }"

    def test_import_and_apply_removed(self):
        css = "@import url('x.css');\n.btn { @apply px-4 py-2; color: red; }"
        assert clean_stylesheet(css) == "\n.btn {  color: red; }"

    def test_layer_blocks_removed_with_nesting(self):
        css = "@layer components {\n  .a { color: red; }\n  .b { color: blue; }\n}\nh1 { font-weight: 700; }"
        assert clean_stylesheet(css) == "\nh1 { font-weight: 700; }"

    def test_plain_css_untouched(self):
        css = ":root { --brand: #123456; }\n"
        assert clean_stylesheet(css) == css

    def test_style_close_escaped(self):
        assert "</style" not in clean_stylesheet("a::after { content: '</style>'; }")


class TestScriptEscaping:
    """User code containing a closing script tag stays inside the script."""

    def test_script_close_escaped(self):
        baseline = assemble({"src/App.jsx": "function App() { return null; }\n"})
        doc = assemble({"src/App.jsx": "function App() { const s = '</script>'; return null; }\n"})
        assert doc.count("</script>") == baseline.count("</script>")
        assert "<\\/script>" in doc


class TestCrashContainmentWiring:
    """The document reports its own failures; checked without a browser."""

    DOC = assemble({"src/App.jsx": "function App() { return <h1>Hello</h1>; }\n"})

    def test_error_listener_before_runtime_scripts(self):
        listener = self.DOC.index("window.addEventListener('error'")
        for src in (TAILWIND_CDN, REACT_CDN, REACT_DOM_CDN, BABEL_CDN):
            assert listener < self.DOC.index('src="%s"' % src)

    def test_unhandled_rejections_reported(self):
        assert "window.addEventListener('unhandledrejection'" in self.DOC

    def test_root_render_wrapped_in_boundary_and_try(self):
        entry_at = self.DOC.index("function App()")
        try_at = self.DOC.index("try {", entry_at)
        render_at = self.DOC.index("React.createElement(PreviewErrorBoundary, null, React.createElement(App))")
        catch_at = self.DOC.index("} catch (err) {")
        assert entry_at < try_at < render_at < catch_at
        assert "__showPreviewError(" in self.DOC[catch_at:]

    def test_boundary_fallback_carries_crash_attribute(self):
        start = self.DOC.index("class PreviewErrorBoundary")
        boundary = self.DOC[start:self.DOC.index("// Components", start)]
        assert "getDerivedStateFromError" in boundary
        assert "'%s': 'true'" % CRASH_ATTRIBUTE in boundary

    def test_boundary_declared_before_user_code(self):
        assert self.DOC.index("class PreviewErrorBoundary") < self.DOC.index("function App()")
