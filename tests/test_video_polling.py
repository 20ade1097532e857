from __future__ import annotations

import threading
from unittest import TestCase

from aicareofyou.services.proxy_client import ProxyClientError
from aicareofyou.services.video_polling import (
    MAX_POLL_ATTEMPTS,
    POLL_ERROR_MESSAGE,
    TIMEOUT_MESSAGE,
    UNEXPECTED_ERROR_MESSAGE,
    RecapPhase,
    RecapState,
    TransitionError,
    VideoRecapWorkflow,
    generation_started,
    job_created,
    opened,
    status_received,
)

JOB = {'video_id': 'vid-1', 'week_start': '2024-06-09', 'week_end': '2024-06-15'}


class FakeProxyClient:
    """Scripted stand-in for :class:`ProxyClient`.

    ``statuses`` items are poll payloads, or exceptions to raise.
    """

    def __init__(self, statuses=(), count=5, job=None, update_error=None):
        self.statuses = list(statuses)
        self.count = count
        self.job = job if job is not None else dict(JOB)
        self.update_error = update_error
        self.polls = 0
        self.updates = []
        self.on_poll = None

    def weekly_reflection_count(self):
        return self.count

    def generate_video_recap(self):
        if isinstance(self.job, Exception):
            raise self.job
        return self.job

    def poll_video_status(self, video_id):
        self.polls += 1
        if self.on_poll:
            self.on_poll()
        item = self.statuses.pop(0) if self.statuses else {'status': 'generating'}
        if isinstance(item, Exception):
            raise item
        return item

    def update_video_url(self, video_url, week_start, week_end):
        if self.update_error:
            raise self.update_error
        self.updates.append((video_url, week_start, week_end))
        return {'success': True}


class TransitionTests(TestCase):
    def test_gating_on_reflection_count(self) -> None:
        self.assertEqual(RecapPhase.NOT_ENOUGH_REFLECTIONS, opened(2).phase)
        self.assertEqual(RecapPhase.INITIAL, opened(3).phase)

    def test_cannot_generate_without_enough_reflections(self) -> None:
        with self.assertRaises(TransitionError):
            generation_started(opened(1))

    def test_completed_without_url_keeps_polling(self) -> None:
        state = job_created(generation_started(RecapState()), JOB)

        state = status_received(state, 'completed', None)

        self.assertEqual(RecapPhase.POLLING, state.phase)
        self.assertEqual(1, state.attempts)

    def test_completed_with_url_finishes(self) -> None:
        state = job_created(generation_started(RecapState()), JOB)

        state = status_received(state, 'completed', 'https://cdn/video.mp4')

        self.assertEqual(RecapPhase.COMPLETED, state.phase)
        self.assertEqual('vid-1', state.video_id)


class WorkflowTests(TestCase):
    def _workflow(self, client, **kwargs):
        self.changes = []
        return VideoRecapWorkflow(client, poll_interval=0, on_change=self.changes.append, **kwargs)

    def test_open_reports_not_enough_reflections(self) -> None:
        workflow = self._workflow(FakeProxyClient(count=2))

        state = workflow.open()

        self.assertEqual(RecapPhase.NOT_ENOUGH_REFLECTIONS, state.phase)
        with self.assertRaises(TransitionError):
            workflow.start()

    def test_completed_video_url_is_persisted(self) -> None:
        client = FakeProxyClient(
            statuses=[{'status': 'generating'}, {'status': 'completed', 'video_url': 'https://cdn/v.mp4'}]
        )
        workflow = self._workflow(client)
        workflow.open()

        workflow.start()

        self.assertEqual(RecapPhase.COMPLETED, workflow.state.phase)
        self.assertEqual('https://cdn/v.mp4', workflow.state.video_url)
        self.assertEqual([('https://cdn/v.mp4', '2024-06-09', '2024-06-15')], client.updates)
        self.assertEqual(2, client.polls)
        self.assertFalse(workflow.running)
        phases = [state.phase for state in self.changes]
        self.assertEqual(RecapPhase.GENERATING, phases[1])
        self.assertEqual(RecapPhase.POLLING, phases[2])

    def test_persist_failure_keeps_completed(self) -> None:
        client = FakeProxyClient(
            statuses=[{'status': 'completed', 'video_url': 'https://cdn/v.mp4'}],
            update_error=ProxyClientError('Error updating video URL', 404),
        )
        workflow = self._workflow(client)

        workflow.start()

        self.assertEqual(RecapPhase.COMPLETED, workflow.state.phase)

    def test_times_out_after_max_attempts(self) -> None:
        client = FakeProxyClient()
        workflow = self._workflow(client)

        workflow.start()

        self.assertEqual(RecapPhase.FAILED, workflow.state.phase)
        self.assertEqual(TIMEOUT_MESSAGE, workflow.state.error)
        self.assertEqual(MAX_POLL_ATTEMPTS, client.polls)

    def test_request_failures_share_the_attempt_budget(self) -> None:
        statuses = [ProxyClientError('boom', 500) for _ in range(MAX_POLL_ATTEMPTS)]
        client = FakeProxyClient(statuses=statuses)
        workflow = self._workflow(client)

        workflow.start()

        self.assertEqual(POLL_ERROR_MESSAGE, workflow.state.error)
        self.assertEqual(MAX_POLL_ATTEMPTS, client.polls)

    def test_mixed_failures_and_pending_responses_hit_cap(self) -> None:
        statuses = [ProxyClientError('boom', 500), {'status': 'queued'}] * 3
        client = FakeProxyClient(statuses=statuses)
        workflow = self._workflow(client, max_attempts=6)

        workflow.start()

        self.assertEqual(RecapPhase.FAILED, workflow.state.phase)
        self.assertEqual(6, client.polls)
        self.assertEqual(TIMEOUT_MESSAGE, workflow.state.error)

    def test_vendor_failure_stops_immediately(self) -> None:
        client = FakeProxyClient(statuses=[{'status': 'failed'}])
        workflow = self._workflow(client)

        workflow.start()

        self.assertEqual('Video generation failed with status: failed', workflow.state.error)
        self.assertEqual(1, client.polls)

    def test_generation_failure_is_reported(self) -> None:
        client = FakeProxyClient(job=ProxyClientError('Tavus API key not configured', 500))
        workflow = self._workflow(client)

        workflow.start()

        self.assertEqual(RecapPhase.FAILED, workflow.state.phase)
        self.assertEqual('Tavus API key not configured', workflow.state.error)
        self.assertEqual(0, client.polls)

    def test_retry_after_failure_is_allowed(self) -> None:
        client = FakeProxyClient(statuses=[{'status': 'error'}, {'status': 'completed', 'video_url': 'u'}])
        workflow = self._workflow(client)

        workflow.start()
        workflow.start()

        self.assertEqual(RecapPhase.COMPLETED, workflow.state.phase)

    def test_cancel_drops_in_flight_result(self) -> None:
        client = FakeProxyClient(
            statuses=[{'status': 'completed', 'video_url': 'https://cdn/v.mp4'}], count=4
        )
        workflow = self._workflow(client)
        workflow.open()
        client.on_poll = workflow.cancel

        workflow.start()

        self.assertEqual(RecapPhase.INITIAL, workflow.state.phase)
        self.assertEqual(4, workflow.state.reflection_count)
        self.assertEqual([], client.updates)
        self.assertEqual(1, client.polls)
        self.assertFalse(workflow.running)

    def test_only_one_run_at_a_time(self) -> None:
        release = threading.Event()
        entered = threading.Event()
        client = FakeProxyClient(statuses=[{'status': 'completed', 'video_url': 'u'}])

        def blocking_generate():
            entered.set()
            release.wait(5)
            return dict(JOB)

        client.generate_video_recap = blocking_generate
        workflow = self._workflow(client)

        thread = workflow.start(background=True)
        self.assertTrue(entered.wait(5))
        self.assertTrue(workflow.running)
        with self.assertRaises(TransitionError):
            workflow.start()
        with self.assertRaises(TransitionError):
            workflow.open()

        release.set()
        workflow.join(5)

        self.assertFalse(thread.is_alive())
        self.assertEqual(RecapPhase.COMPLETED, workflow.state.phase)

    def test_unexpected_error_ends_in_failed(self) -> None:
        client = FakeProxyClient(statuses=[{'status': 'generating'}, RuntimeError('bad payload')])
        workflow = self._workflow(client)

        workflow.start()

        self.assertEqual(RecapPhase.FAILED, workflow.state.phase)
        self.assertEqual(UNEXPECTED_ERROR_MESSAGE, workflow.state.error)
        self.assertFalse(workflow.running)
        self.assertEqual(RecapPhase.FAILED, self.changes[-1].phase)

        client.statuses = [{'status': 'completed', 'video_url': 'https://cdn/v.mp4'}]
        workflow.start()
        self.assertEqual(RecapPhase.COMPLETED, workflow.state.phase)

    def test_raising_observer_does_not_strand_the_run(self) -> None:
        def observer(state):
            if state.phase == RecapPhase.POLLING:
                raise ValueError('render failed')

        workflow = VideoRecapWorkflow(FakeProxyClient(), poll_interval=0, on_change=observer)

        workflow.start()

        self.assertEqual(RecapPhase.FAILED, workflow.state.phase)
        self.assertFalse(workflow.running)
