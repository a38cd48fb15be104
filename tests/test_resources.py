"""Tests for generation-based resource ownership."""

import pytest

from cityscene.errors import ResourceError
from cityscene.resources import ResourceArena


class TestResourceArena:
    def test_allocate_and_get(self):
        arena = ResourceArena()
        gen = arena.begin_generation()
        handle = arena.allocate(gen, 'geometry', "payload")
        assert arena.get(handle) == "payload"
        assert arena.is_live(handle)
        assert arena.live_count() == 1

    def test_generations_are_distinct(self):
        arena = ResourceArena()
        assert arena.begin_generation() != arena.begin_generation()

    def test_double_release_raises(self):
        arena = ResourceArena()
        handle = arena.allocate(arena.begin_generation(), 'material', object())
        arena.release(handle)
        with pytest.raises(ResourceError):
            arena.release(handle)
        with pytest.raises(ResourceError):
            arena.get(handle)

    def test_release_generation(self):
        arena = ResourceArena()
        old, new = arena.begin_generation(), arena.begin_generation()
        for kind in ('geometry', 'material', 'geometry'):
            arena.allocate(old, kind, None)
        keep = arena.allocate(new, 'geometry', None)

        assert arena.live_count(old, kind='geometry') == 2
        assert arena.release_generation(old) == 3
        assert arena.release_generation(old) == 0
        assert arena.live_generations() == {new}
        assert arena.is_live(keep)
