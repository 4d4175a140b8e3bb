"""Tests for meter.progress -- the simulated progress ramp."""

import asyncio
import random
import unittest

from meter.progress import ProgressEstimator


class TestTick(unittest.TestCase):
    def test_non_decreasing_and_bounded(self):
        est = ProgressEstimator(rng=random.Random(7))
        previous = est.value
        for _ in range(500):
            value = est.tick()
            self.assertGreaterEqual(value, previous)
            self.assertLessEqual(value, 90.0)
            previous = value

    def test_reaches_ceiling_exactly(self):
        est = ProgressEstimator(rng=random.Random(3))
        for _ in range(1000):
            est.tick()
        self.assertEqual(est.value, 90.0)

    def test_step_is_bounded(self):
        est = ProgressEstimator(rng=random.Random(11), max_step=2.0)
        previous = 0.0
        for _ in range(30):
            value = est.tick()
            self.assertLessEqual(value - previous, 2.0)
            previous = value

    def test_callback_receives_each_new_value(self):
        seen = []
        est = ProgressEstimator(on_sample=seen.append, rng=random.Random(1))
        for _ in range(5):
            est.tick()
        self.assertEqual(len(seen), 5)
        self.assertEqual(seen[-1], est.value)

    def test_no_callback_at_ceiling(self):
        seen = []
        est = ProgressEstimator(on_sample=seen.append, ceiling=1.0, rng=random.Random(1))
        est.value = 1.0
        est.tick()
        self.assertEqual(seen, [])

    def test_custom_ceiling(self):
        est = ProgressEstimator(ceiling=10.0, rng=random.Random(5))
        for _ in range(200):
            est.tick()
        self.assertEqual(est.value, 10.0)


class TestLifecycle(unittest.IsolatedAsyncioTestCase):
    async def test_runs_while_started(self):
        seen = []
        est = ProgressEstimator(on_sample=seen.append, interval=0.001, rng=random.Random(2))
        est.start()
        self.assertTrue(est.running)
        await asyncio.sleep(0.05)
        await est.stop()
        self.assertFalse(est.running)
        self.assertTrue(seen)
        self.assertEqual(sorted(seen), seen)

    async def test_never_ticks_after_stop(self):
        seen = []
        est = ProgressEstimator(on_sample=seen.append, interval=0.001, rng=random.Random(2))
        est.start()
        await asyncio.sleep(0.02)
        await est.stop()
        count = len(seen)
        frozen = est.value
        await asyncio.sleep(0.02)
        self.assertEqual(len(seen), count)
        self.assertEqual(est.value, frozen)

    async def test_context_manager_cancels_on_error(self):
        est = ProgressEstimator(interval=0.001)
        with self.assertRaises(ValueError):
            async with est:
                self.assertTrue(est.running)
                raise ValueError("transfer blew up")
        self.assertFalse(est.running)

    async def test_context_manager_cancels_on_outer_cancel(self):
        est = ProgressEstimator(interval=0.001)

        async def _phase():
            async with est:
                await asyncio.sleep(10)

        task = asyncio.create_task(_phase())
        await asyncio.sleep(0.01)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertFalse(est.running)

    async def test_start_twice_rejected(self):
        est = ProgressEstimator(interval=0.001)
        est.start()
        try:
            with self.assertRaises(RuntimeError):
                est.start()
        finally:
            await est.stop()

    async def test_start_resets_value(self):
        est = ProgressEstimator(interval=10.0)
        est.value = 55.0
        est.start()
        self.assertEqual(est.value, 0.0)
        await est.stop()

    async def test_stop_without_start(self):
        est = ProgressEstimator()
        await est.stop()
        self.assertFalse(est.running)


if __name__ == "__main__":
    unittest.main()
