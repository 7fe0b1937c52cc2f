"""Ordered, stage-typed dispatch of plugin hooks."""

from typing import Dict, Iterable, List

import structlog

from .interfaces import HookRegistration, HookResult, Stage
from ..errors import HookError

logger = structlog.get_logger()


class HookChain:
    """Per-stage lists of hooks, sorted by (priority, plugin name).

    The lists are built before a run and only read while it is in progress.
    """

    def __init__(self, registrations: Iterable[HookRegistration] = ()):
        self._by_stage: Dict[Stage, List[HookRegistration]] = {stage: [] for stage in Stage}
        for registration in registrations:
            self.register(registration)

    @classmethod
    def from_plugins(cls, plugins: Iterable) -> "HookChain":
        chain = cls()
        for plugin in plugins:
            for registration in plugin.registrations():
                chain.register(registration)
        return chain

    def register(self, registration: HookRegistration) -> None:
        hooks = self._by_stage[registration.stage]
        hooks.append(registration)
        hooks.sort(key=lambda r: r.sort_key)

    def hooks_for(self, stage: Stage) -> List[HookRegistration]:
        return list(self._by_stage[stage])

    def dispatch(self, stage: Stage, ctx) -> HookResult:
        """Run every hook for stage in order, stopping at the first non-CONTINUE.

        Raises HookError if a hook raises or returns something it may not.
        """
        log = getattr(ctx, "log", None) or logger

        for registration in self._by_stage[stage]:
            try:
                result = registration.callback(ctx)
            except HookError:
                raise
            except Exception as e:
                log.warning("hook_failed", stage=stage.value, plugin=registration.plugin_name, error=str(e))
                raise HookError(ctx.feed_id, registration.plugin_name, stage.value, e) from e

            if result is None:
                result = HookResult.CONTINUE
            if not isinstance(result, HookResult):
                raise HookError(
                    ctx.feed_id, registration.plugin_name, stage.value,
                    message=f"plugin {registration.plugin_name!r} returned {result!r} at {stage.value}"
                )
            if result is HookResult.DROP_ITEM and stage is not Stage.POST_FEED_PROCESS:
                raise HookError(
                    ctx.feed_id, registration.plugin_name, stage.value,
                    message=f"plugin {registration.plugin_name!r} dropped an item outside {Stage.POST_FEED_PROCESS.value}"
                )

            if result is not HookResult.CONTINUE:
                log.debug(
                    "hook_short_circuit",
                    stage=stage.value,
                    plugin=registration.plugin_name,
                    result=result.value
                )
                return result

        return HookResult.CONTINUE

    def __len__(self) -> int:
        return sum(len(hooks) for hooks in self._by_stage.values())
