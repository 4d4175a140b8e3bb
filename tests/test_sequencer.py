"""Tests for meter.sequencer -- the ping/download/upload state machine."""

import asyncio
import random
import unittest

from meter.errors import NetworkFailure, SequencerBusyError
from meter.progress import ProgressEstimator
from meter.sequencer import (
    MeasurementPhase,
    MeasurementReport,
    PhaseResult,
    PhaseSequencer,
)
from meter.transfer import TransferKind, TransferOutcome

BASE_URL = "http://speed.test"

PING_OK = TransferOutcome(duration_seconds=0.0427, success=True)
DOWNLOAD_OK = TransferOutcome(duration_seconds=1.0, success=True)
UPLOAD_OK = TransferOutcome(duration_seconds=0.5, success=True)
FAILED = TransferOutcome(success=False, error=NetworkFailure("connection refused"))


class FakeExecutor:
    """Returns canned outcomes per transfer kind, optionally after a delay."""

    def __init__(self, outcomes=None, delay=0.0, raises=None):
        self.outcomes = {
            TransferKind.PING: PING_OK,
            TransferKind.DOWNLOAD: DOWNLOAD_OK,
            TransferKind.UPLOAD: UPLOAD_OK,
        }
        self.outcomes.update(outcomes or {})
        self.delay = delay
        self.raises = raises or {}
        self.calls = []

    async def run_transfer(self, spec):
        self.calls.append(spec.kind)
        if self.delay:
            await asyncio.sleep(self.delay)
        if spec.kind in self.raises:
            raise self.raises[spec.kind]
        return self.outcomes[spec.kind]


class SequencerTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.estimators = []
        self.snapshots = []

    def _estimator(self, on_sample):
        est = ProgressEstimator(on_sample, interval=0.001, rng=random.Random(0))
        self.estimators.append(est)
        return est

    def _sequencer(self, executor):
        seq = PhaseSequencer(executor, BASE_URL, estimator_factory=self._estimator)
        seq.subscribe(self.snapshots.append)
        return seq


class TestFullSequence(SequencerTestCase):
    async def test_results(self):
        seq = self._sequencer(FakeExecutor())
        report = await seq.start()
        self.assertEqual(report.ping_ms, 43)
        self.assertEqual(report.download_mbps, 83.9)
        self.assertEqual(report.upload_mbps, 33.6)
        self.assertEqual(seq.phase, MeasurementPhase.COMPLETE)
        self.assertEqual(seq.sample, 0.0)
        self.assertFalse(seq.running)

    async def test_units(self):
        report = await self._sequencer(FakeExecutor()).start()
        self.assertEqual(report.results[TransferKind.PING].unit, "ms")
        self.assertEqual(report.results[TransferKind.DOWNLOAD].unit, "Mbps")
        self.assertEqual(report.results[TransferKind.UPLOAD].unit, "Mbps")

    async def test_transfers_in_fixed_order(self):
        executor = FakeExecutor()
        await self._sequencer(executor).start()
        self.assertEqual(
            executor.calls,
            [TransferKind.PING, TransferKind.DOWNLOAD, TransferKind.UPLOAD],
        )

    async def test_phase_order(self):
        await self._sequencer(FakeExecutor()).start()
        phases = []
        for snap in self.snapshots:
            if not phases or phases[-1] is not snap.phase:
                phases.append(snap.phase)
        self.assertEqual(
            phases,
            [
                MeasurementPhase.PING,
                MeasurementPhase.DOWNLOAD,
                MeasurementPhase.UPLOAD,
                MeasurementPhase.COMPLETE,
            ],
        )

    async def test_specs_built_from_base_url(self):
        seq = self._sequencer(FakeExecutor())
        self.assertEqual(seq.ping_spec.url, "http://speed.test/api/speed")
        self.assertEqual(seq.download_spec.url, "http://speed.test/speed.dat")
        self.assertEqual(seq.upload_spec.url, "http://speed.test/api/speed")

    async def test_final_sample_is_rate(self):
        await self._sequencer(FakeExecutor()).start()
        after_download = [
            s for s in self.snapshots
            if s.phase is MeasurementPhase.DOWNLOAD and s.report.download_mbps
        ]
        self.assertTrue(after_download)
        self.assertEqual(after_download[-1].sample, 83.9)

    async def test_final_sample_clamped_but_result_is_not(self):
        fast = TransferOutcome(duration_seconds=0.05, success=True)
        seq = self._sequencer(FakeExecutor({TransferKind.DOWNLOAD: fast}))
        report = await seq.start()
        self.assertEqual(report.download_mbps, 1677.7)
        recorded = [
            s for s in self.snapshots
            if s.phase is MeasurementPhase.DOWNLOAD and s.report.download_mbps
        ]
        self.assertEqual(recorded[-1].sample, 100.0)

    async def test_upload_starts_from_zero(self):
        await self._sequencer(FakeExecutor()).start()
        upload = [s for s in self.snapshots if s.phase is MeasurementPhase.UPLOAD]
        self.assertEqual(upload[0].sample, 0.0)

    async def test_complete_resets_sample(self):
        await self._sequencer(FakeExecutor()).start()
        self.assertEqual(self.snapshots[-1].phase, MeasurementPhase.COMPLETE)
        self.assertEqual(self.snapshots[-1].sample, 0.0)


class TestRepeatedRuns(SequencerTestCase):
    async def test_identical_reports(self):
        seq = self._sequencer(FakeExecutor())
        first = await seq.start()
        second = await seq.start()
        self.assertEqual(first, second)

    async def test_report_reset_at_start(self):
        seq = self._sequencer(FakeExecutor())
        await seq.start()
        self.snapshots.clear()
        await seq.start()
        first = self.snapshots[0]
        self.assertEqual(first.phase, MeasurementPhase.PING)
        self.assertEqual(first.report.to_dict(), {"ping": 0, "download": 0, "upload": 0})
        self.assertEqual(first.sample, 0.0)

    async def test_concurrent_start_rejected(self):
        seq = self._sequencer(FakeExecutor(delay=0.02))
        task = asyncio.create_task(seq.start())
        await asyncio.sleep(0.005)
        self.assertTrue(seq.running)
        with self.assertRaises(SequencerBusyError):
            await seq.start()
        report = await task
        self.assertEqual(report.ping_ms, 43)

    async def test_restart_from_complete(self):
        seq = self._sequencer(FakeExecutor())
        await seq.start()
        self.assertEqual(seq.phase, MeasurementPhase.COMPLETE)
        report = await seq.start()
        self.assertEqual(report.upload_mbps, 33.6)


class TestFailureIsolation(SequencerTestCase):
    async def test_download_failure_keeps_ping(self):
        executor = FakeExecutor({TransferKind.DOWNLOAD: FAILED})
        seq = self._sequencer(executor)
        report = await seq.start()
        self.assertEqual(report.ping_ms, 43)
        self.assertEqual(report.download_mbps, 0)
        self.assertEqual(report.upload_mbps, 33.6)
        self.assertIn(TransferKind.UPLOAD, executor.calls)
        self.assertEqual(seq.phase, MeasurementPhase.COMPLETE)

    async def test_failed_phase_returns_indicator_to_zero(self):
        await self._sequencer(FakeExecutor({TransferKind.DOWNLOAD: FAILED}, delay=0.01)).start()
        download = [s for s in self.snapshots if s.phase is MeasurementPhase.DOWNLOAD]
        self.assertEqual(download[-1].sample, 0.0)

    async def test_ping_failure_is_not_fatal(self):
        report = await self._sequencer(FakeExecutor({TransferKind.PING: FAILED})).start()
        self.assertEqual(report.ping_ms, 0)
        self.assertEqual(report.download_mbps, 83.9)

    async def test_everything_fails(self):
        executor = FakeExecutor({kind: FAILED for kind in TransferKind})
        seq = self._sequencer(executor)
        report = await seq.start()
        self.assertEqual(report.to_dict(), {"ping": 0, "download": 0, "upload": 0})
        self.assertEqual(seq.phase, MeasurementPhase.COMPLETE)

    async def test_raised_measurement_error_treated_as_failure(self):
        executor = FakeExecutor(raises={TransferKind.UPLOAD: NetworkFailure("reset")})
        report = await self._sequencer(executor).start()
        self.assertEqual(report.upload_mbps, 0)
        self.assertEqual(report.download_mbps, 83.9)

    async def test_zero_duration_records_zero(self):
        instant = TransferOutcome(duration_seconds=0.0, success=True)
        report = await self._sequencer(FakeExecutor({TransferKind.DOWNLOAD: instant})).start()
        self.assertEqual(report.download_mbps, 0.0)


class TestEstimatorBinding(SequencerTestCase):
    async def test_estimator_only_in_timed_phases(self):
        await self._sequencer(FakeExecutor(delay=0.02)).start()
        self.assertEqual(len(self.estimators), 2)
        for est in self.estimators:
            self.assertFalse(est.running)
        ping = [s for s in self.snapshots if s.phase is MeasurementPhase.PING]
        self.assertTrue(all(s.sample == 0.0 for s in ping))

    async def test_estimate_bounded_before_result(self):
        await self._sequencer(FakeExecutor(delay=0.02)).start()
        for phase in (MeasurementPhase.DOWNLOAD, MeasurementPhase.UPLOAD):
            estimates = [
                s.sample for s in self.snapshots
                if s.phase is phase and not s.report.results[TransferKind(phase.value)].value
            ]
            self.assertTrue(estimates)
            self.assertEqual(sorted(estimates), estimates)
            self.assertLessEqual(max(estimates), 90.0)

    async def test_no_estimate_after_result(self):
        await self._sequencer(FakeExecutor(delay=0.02)).start()
        recorded = [
            s.sample for s in self.snapshots
            if s.phase is MeasurementPhase.DOWNLOAD and s.report.download_mbps
        ]
        self.assertEqual(recorded, [83.9])

    async def test_cancel_mid_phase(self):
        seq = self._sequencer(FakeExecutor(delay=0.05))
        task = asyncio.create_task(seq.start())
        while seq.phase is not MeasurementPhase.DOWNLOAD:
            await asyncio.sleep(0.005)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertEqual(seq.phase, MeasurementPhase.IDLE)
        self.assertEqual(seq.sample, 0.0)
        self.assertFalse(seq.running)
        for est in self.estimators:
            self.assertFalse(est.running)

    async def test_unexpected_error_returns_to_idle(self):
        seq = self._sequencer(FakeExecutor(raises={TransferKind.DOWNLOAD: ValueError("boom")}))
        with self.assertLogs("meter.sequencer", level="ERROR"):
            with self.assertRaises(ValueError):
                await seq.start()
        self.assertEqual(seq.phase, MeasurementPhase.IDLE)
        self.assertEqual(seq.sample, 0.0)
        self.assertFalse(seq.running)
        self.assertEqual(self.snapshots[-1].phase, MeasurementPhase.IDLE)
        for est in self.estimators:
            self.assertFalse(est.running)


class TestObservation(SequencerTestCase):
    async def test_unsubscribe(self):
        seq = PhaseSequencer(FakeExecutor(), BASE_URL, estimator_factory=self._estimator)
        seen = []
        unsubscribe = seq.subscribe(seen.append)
        unsubscribe()
        await seq.start()
        self.assertEqual(seen, [])

    async def test_report_is_a_copy(self):
        seq = self._sequencer(FakeExecutor())
        await seq.start()
        copy = seq.report
        copy.record(PhaseResult(TransferKind.PING, 999, "ms"))
        self.assertEqual(seq.report.ping_ms, 43)

    def test_initial_state(self):
        seq = PhaseSequencer(FakeExecutor(), BASE_URL)
        self.assertEqual(seq.phase, MeasurementPhase.IDLE)
        self.assertEqual(seq.report, MeasurementReport())
        self.assertEqual(seq.sample, 0.0)


if __name__ == "__main__":
    unittest.main()
