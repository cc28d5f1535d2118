"""
Sitesmith Preview Builder

Core library for the website builder's generation-to-preview pipeline:
streamed tag extraction, file table merging, source normalization, preview
document assembly and sandboxed rendering.

Everything except the sandbox is pure and deterministic; the same inputs
always give the same events, tables and document bytes.
"""

from builder.phase import BuildPhase, PhaseMarker, advance, initial_phase
from builder.stream import StreamTagExtractor, ExtractorState, FileEdit, ReasoningPartial, ReasoningComplete, PhaseAdvance
from builder.turn import GenerationTurn
from builder.files import FileSetAggregator, apply_edits, canonical_path, ENTRY_PATH, STYLESHEET_PATH, COMPONENTS_DIR
from builder.normalize import normalize
from builder.assemble import BundleAssembler, assemble, clean_stylesheet, document_digest
from builder.sandbox import SandboxHost, PreviewState, PreviewBrowser, SandboxUnavailable

__version__ = "0.1.0"
