"""One SandboxHost per project, sharing a lazily launched browser."""

import logging
import os
from typing import Mapping, Optional

from builder.sandbox import ContextFactory, PreviewBrowser, RenderOutcome, SandboxHost

logger = logging.getLogger(__name__)

SETTLE_TIMEOUT = float(os.getenv("SITESMITH_SETTLE_TIMEOUT", "8"))


class PreviewRegistry:
    def __init__(self, context_factory: Optional[ContextFactory] = None, settle_timeout: float = SETTLE_TIMEOUT):
        self._browser: Optional[PreviewBrowser] = None
        if context_factory is None:
            self._browser = PreviewBrowser()
            context_factory = self._browser.new_context
        self._factory = context_factory
        self._settle_timeout = settle_timeout
        self._hosts: dict[str, SandboxHost] = {}

    def get(self, project_id: str) -> Optional[SandboxHost]:
        return self._hosts.get(project_id)

    def host_for(self, project_id: str) -> SandboxHost:
        host = self._hosts.get(project_id)
        if host is None:
            host = SandboxHost(self._factory, settle_timeout=self._settle_timeout)
            self._hosts[project_id] = host
        return host

    async def render(self, project_id: str, files: Mapping[str, str]) -> RenderOutcome:
        outcome = await self.host_for(project_id).mount(files)
        logger.info("Preview for project %s is %s", project_id, outcome.state.value)
        return outcome

    async def discard(self, project_id: str) -> None:
        host = self._hosts.pop(project_id, None)
        if host is not None:
            await host.close()

    async def close(self) -> None:
        for project_id in list(self._hosts):
            await self.discard(project_id)
        if self._browser is not None:
            await self._browser.close()
