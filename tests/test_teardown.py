#!/usr/bin/env python3
"""Tests for applier/teardown.py - deferred cleanup stack."""

import sys
import threading
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
from applier.teardown import TeardownRegistry
from common import TeardownFailedError


class TestTeardownRegistry:

    def test_runs_in_reverse_order(self):
        registry = TeardownRegistry()
        ran = []
        for name in ('r1', 'r2', 'r3'):
            registry.register(name, lambda n=name: ran.append(n))

        assert registry.pending == ['r3', 'r2', 'r1']
        registry.run_all()
        assert ran == ['r3', 'r2', 'r1']

    def test_runs_each_action_once(self):
        registry = TeardownRegistry()
        ran = []
        registry.register('only', lambda: ran.append('only'))

        registry.run_all()
        registry.run_all()

        assert ran == ['only']
        assert len(registry) == 0

    def test_failure_does_not_block_others(self):
        registry = TeardownRegistry()
        ran = []

        def boom():
            raise RuntimeError('delete failed')

        registry.register('first', lambda: ran.append('first'))
        registry.register('broken', boom)
        registry.register('last', lambda: ran.append('last'))

        with pytest.raises(TeardownFailedError) as exc_info:
            registry.run_all()

        assert ran == ['last', 'first']
        assert [name for name, _ in exc_info.value.failures] == ['broken']

    def test_failures_returned_without_raising(self):
        registry = TeardownRegistry()

        def boom():
            raise RuntimeError('delete failed')

        registry.register('broken', boom)
        failures = registry.run_all(raise_errors=False)

        assert len(failures) == 1
        assert failures[0][0] == 'broken'
        assert isinstance(failures[0][1], RuntimeError)

    def test_empty_registry(self):
        assert TeardownRegistry().run_all() == []

    def test_concurrent_registration(self):
        """Parallel registrations are all kept."""
        registry = TeardownRegistry()
        barrier = threading.Barrier(8)

        def worker(n):
            barrier.wait()
            for i in range(50):
                registry.register(f'{n}-{i}', lambda: None)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 400
        assert registry.run_all() == []
