import asyncio
import logging
import time
from typing import AsyncIterator, Optional

from backend.ai.completion import CompletionRequest, CompletionRouter, CompletionUsage
from backend.projects.agents import ModelConfig
from backend.projects.models import ChatMessage
from backend.projects.preview import PreviewRegistry
from backend.projects.store import ProjectStoreBase
from builder.files import apply_edits, canonical_path, has_entry
from builder.frames import encode, encode_done
from builder.phase import progress
from builder.sandbox import SandboxUnavailable
from builder.stream import FileEdit, PhaseAdvance, ReasoningComplete, ReasoningPartial
from builder.turn import GenerationTurn

logger = logging.getLogger(__name__)


class TurnInProgress(Exception):
    """A generation is already running for this project."""


class ProjectNotFound(Exception):
    pass


_END = object()


async def _pump(stream, queue: asyncio.Queue) -> None:
    """Drain the provider stream into `queue` from a single task."""
    try:
        async for chunk in stream:
            await queue.put(chunk)
    except Exception as e:
        await queue.put(e)
        return
    await queue.put(_END)


def _event_frame(event) -> str:
    if isinstance(event, PhaseAdvance):
        step, total = progress(event.phase)
        return encode({"type": "phase", "phase": event.phase.value, "step": step, "total": total})
    if isinstance(event, ReasoningPartial):
        return encode({"type": "reasoning", "content": event.text, "complete": False})
    if isinstance(event, ReasoningComplete):
        return encode({"type": "reasoning", "content": event.text, "complete": True})
    if isinstance(event, FileEdit):
        return encode({
            "type": "file",
            "index": event.index,
            "path": canonical_path(event.path),
            "content": event.content,
        })
    raise TypeError(f"Unknown stream event: {event!r}")


class GenerationPipeline:
    """Runs generation turns: provider stream in, SSE frames out.

    File edits are collected while the response streams and applied to the
    project only after the provider finished, so a broken stream never
    leaves the file table half-updated.

    The project's generating flag is cleared only once the turn's outcome is
    stored. A client that disconnects mid-stream leaves it set, and the next
    project load reports the turn as interrupted.
    """

    def __init__(
        self,
        store: ProjectStoreBase,
        completions: CompletionRouter,
        previews: Optional[PreviewRegistry] = None,
        clock=time.monotonic,
        tick_interval: float = 0.25,
    ):
        self.store = store
        self.completions = completions
        self.previews = previews
        self._clock = clock
        self._tick_interval = tick_interval
        self._active: set[str] = set()
        self._lock = asyncio.Lock()

    def is_active(self, project_id: str) -> bool:
        return project_id in self._active

    async def claim(self, project_id: str) -> None:
        """Reserve the project for one turn; raises TurnInProgress if taken."""
        async with self._lock:
            if project_id in self._active:
                raise TurnInProgress(project_id)
            self._active.add(project_id)

    async def release(self, project_id: str) -> None:
        async with self._lock:
            self._active.discard(project_id)

    async def run(
        self,
        project_id: str,
        prompt: str,
        model: ModelConfig,
        reference_image: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """Stream one turn as SSE frames. The caller must have claimed the project."""
        frames = None
        try:
            snapshot = await self.store.get(project_id)
            if snapshot is None:
                raise ProjectNotFound(project_id)
            frames = self._run_turn(project_id, snapshot, prompt, model, reference_image)
            async for frame in frames:
                yield frame
        finally:
            if frames is not None:
                await frames.aclose()
            await self.release(project_id)

    async def _chunks(self, turn: GenerationTurn, stream, started: float) -> AsyncIterator:
        """Provider chunks interleaved with fallback phase events.

        The provider stream is read by its own task, so fallback phases are
        still emitted while the first token is slow to arrive.
        """
        queue: asyncio.Queue = asyncio.Queue()
        pump = asyncio.create_task(_pump(stream, queue))
        getter = None
        try:
            while True:
                if getter is None:
                    getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait({getter}, timeout=self._tick_interval)
                for event in turn.tick(self._clock() - started):
                    yield event
                if not done:
                    continue
                chunk, getter = getter.result(), None
                if chunk is _END:
                    return
                if isinstance(chunk, Exception):
                    raise chunk
                yield chunk
        finally:
            if getter is not None:
                getter.cancel()
            pump.cancel()

    async def _run_turn(self, project_id, snapshot, prompt, model, reference_image) -> AsyncIterator[str]:
        files = dict(snapshot["files"])
        turn = GenerationTurn(prompt, follow_up=has_entry(files))
        user_msg = ChatMessage(role="user", content=prompt, has_image=bool(reference_image))

        await self.store.set_generating(project_id, True)
        yield _event_frame(PhaseAdvance(turn.phase))

        request = CompletionRequest(
            prompt=prompt,
            model=model,
            files=files,
            history=[{"role": m.role, "content": m.content} for m in snapshot["messages"]],
            reference_image=reference_image,
        )
        usage = CompletionUsage()
        started = self._clock()

        chunks = self._chunks(turn, self.completions.client_for(model).stream(request), started)
        try:
            async for chunk in chunks:
                if isinstance(chunk, PhaseAdvance):
                    yield _event_frame(chunk)
                    continue
                if isinstance(chunk, CompletionUsage):
                    usage = chunk
                    continue
                yield encode({"type": "content", "content": chunk.text})
                for event in turn.feed(chunk.text):
                    yield _event_frame(event)
        except Exception as e:
            logger.exception("Generation stream failed for project %s", project_id)
            message = f"Generation failed: {e}"
            await self.store.append_messages(
                project_id, [user_msg, ChatMessage(role="assistant", content=message)]
            )
            await self.store.set_generating(project_id, False)
            yield encode({"type": "error", "error": message})
            yield encode_done()
            return
        finally:
            await chunks.aclose()

        credits = model.credits_for(usage.input_tokens, usage.output_tokens)
        for event in turn.finish(credits):
            yield _event_frame(event)

        result = apply_edits(files, turn.edits)
        for path in result.changed:
            await self.store.replace_file(project_id, path, result.files[path])
        await self.store.append_messages(
            project_id, [user_msg, ChatMessage(role="assistant", content=turn.summary())]
        )
        if credits:
            await self.store.add_credits(project_id, credits)
        await self.store.set_generating(project_id, False)

        if not turn.succeeded:
            logger.warning("Turn for project %s produced no file changes", project_id)
            yield encode({"type": "error", "error": turn.summary()})
        elif self.previews is not None:
            try:
                outcome = await self.previews.render(project_id, result.files)
                yield encode({"type": "preview", "state": outcome.state.value, "error": outcome.error})
            except SandboxUnavailable as e:
                logger.warning("Preview skipped for project %s: %s", project_id, e)

        yield encode({
            "type": "result",
            "fileChanges": [{"path": p, "content": result.files[p]} for p in result.changed],
            "viewedFile": result.viewed,
            "creditsUsed": credits,
        })
        yield encode_done()
