"""Generation-based ownership of renderable resources.

Every geometry/material created for a scene build or a viewer load is
registered under a generation.  Replacing a scene releases the previous
generation explicitly, so a leaked or double-freed handle shows up as a
count mismatch or a :class:`ResourceError` instead of silently lingering.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import ResourceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Handle:
    id: int
    generation: int
    kind: str       # 'geometry', 'material', 'controls', 'renderer'


class ResourceArena:
    def __init__(self):
        self._ids = itertools.count(1)
        self._generations = itertools.count(1)
        self._live: Dict[int, tuple] = {}

    def begin_generation(self) -> int:
        return next(self._generations)

    def allocate(self, generation: int, kind: str, resource: Any) -> Handle:
        handle = Handle(id=next(self._ids), generation=generation, kind=kind)
        self._live[handle.id] = (handle, resource)
        return handle

    def get(self, handle: Handle) -> Any:
        try:
            return self._live[handle.id][1]
        except KeyError:
            raise ResourceError(f"Handle {handle.id} ({handle.kind}) is not live")

    def is_live(self, handle: Handle) -> bool:
        return handle.id in self._live

    def release(self, handle: Handle) -> None:
        if self._live.pop(handle.id, None) is None:
            raise ResourceError(f"Handle {handle.id} ({handle.kind}) released twice")

    def release_generation(self, generation: int) -> int:
        """Release every live handle of ``generation``; returns the count."""
        doomed = [h_id for h_id, (h, _) in self._live.items()
                  if h.generation == generation]
        for h_id in doomed:
            del self._live[h_id]
        if doomed:
            logger.debug(f"Released {len(doomed)} handles of generation {generation}")
        return len(doomed)

    def live_count(self, generation: Optional[int] = None, kind: Optional[str] = None) -> int:
        return sum(1 for h, _ in self._live.values()
                   if (generation is None or h.generation == generation)
                   and (kind is None or h.kind == kind))

    def live_generations(self) -> set:
        return {h.generation for h, _ in self._live.values()}
