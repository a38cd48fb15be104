"""SceneSession: thin orchestrator from selected region to built scene."""

import asyncio
import itertools
import logging
from typing import Awaitable, Callable, Optional, Sequence

from .constants import FETCH_TIMEOUT
from .models import BoundingBox, VectorFeature
from .scene import SceneBuilder, SceneFrame
from .selection import RegionSelector

logger = logging.getLogger(__name__)

FeatureFetcher = Callable[[BoundingBox], Awaitable[Sequence[VectorFeature]]]


class SceneSession:
    """Fetch features for a region and rebuild the scene.

    Requests are numbered; when a newer request was issued while a fetch
    was in flight, the older result is discarded instead of replacing the
    newer scene.  A fetch that raises or times out counts as "no features",
    which leaves the live scene untouched.
    """

    def __init__(self, fetch_features: FeatureFetcher,
                 scene_builder: Optional[SceneBuilder] = None,
                 fetch_timeout: float = FETCH_TIMEOUT):
        self.fetch_features = fetch_features
        self.scene = scene_builder or SceneBuilder()
        self.fetch_timeout = fetch_timeout
        self._request_ids = itertools.count(1)
        self.latest_request = 0
        self._tasks: set = set()

    async def process_region(self, region: BoundingBox) -> Optional[SceneFrame]:
        """Build the scene for ``region``; None when nothing new is shown."""
        request_id = next(self._request_ids)
        self.latest_request = request_id
        logger.info(f"Request {request_id}: fetching features for {region}")

        try:
            features = await asyncio.wait_for(self.fetch_features(region),
                                              self.fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Request {request_id}: feature fetch timed out "
                           f"after {self.fetch_timeout}s")
            features = []
        except Exception as e:
            logger.warning(f"Request {request_id}: feature fetch failed: {e}")
            features = []

        if request_id != self.latest_request:
            logger.info(f"Request {request_id}: superseded by request "
                        f"{self.latest_request}, result discarded")
            return None

        return self.scene.build(region, features)

    def attach(self, selector: RegionSelector) -> None:
        """Rebuild whenever ``selector`` finalizes a region.

        Must be called from inside a running event loop; each region is
        processed as a task.
        """
        def _on_region(region):
            task = asyncio.ensure_future(self.process_region(region))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        selector.subscribe(_on_region)
