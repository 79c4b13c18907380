# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import sys
import time
import logging
import threading
import unittest

from mock import Mock, patch

from cloudwait.common.types import NotFoundError, TransportError
from cloudwait.common.types import JobFailedError
from cloudwait.common.types import PollTimeoutError, PollCancelledError
from cloudwait.compute.base import ResourceHandle, Instance
from cloudwait.compute.config import PollingConfig
from cloudwait.compute.drivers.dummy import DummyNodeDriver
from cloudwait.compute.poller import Poller, PollResult
from cloudwait.compute.poller import create_poller, create_poller_from_config
from cloudwait.compute.predicates import InstanceStateRunning
from cloudwait.compute.predicates import InstanceStateTerminated
from cloudwait.compute.predicates import JobCompleted
from cloudwait.compute.types import ResourceType, InstanceState, JobState
from cloudwait.compute.types import PollState, NotFoundPolicy


class FakeTime(object):
    """
    Stands in for the ``time`` module, sleeping only advances the clock.
    """

    def __init__(self, now=0.0):
        self.now = now
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedFetcher(object):
    """
    Fetcher returning one scripted state per call, recording at which time
    each call happened.
    """

    def __init__(self, clock, states):
        self.clock = clock
        self.states = list(states)
        self.calls = []

    def fetch(self, handle):
        self.calls.append(self.clock.now)
        state = self.states[min(len(self.calls), len(self.states)) - 1]

        if isinstance(state, Exception):
            raise state

        return Instance(id=handle.id, state=state, driver=None)


class PollerTestCase(unittest.TestCase):
    def setUp(self):
        self.clock = FakeTime()
        patcher = patch('cloudwait.compute.poller.time', self.clock)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.handle = ResourceHandle('i-1234', ResourceType.INSTANCE)

    def _fetcher(self, *states):
        return ScriptedFetcher(self.clock, states)

    def test_times_out_when_state_is_never_reached(self):
        fetcher = self._fetcher(InstanceState.PENDING)
        poller = Poller(fetcher, InstanceStateRunning(), period=0.1,
                        timeout=1)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.TIMED_OUT)
        self.assertFalse(result.succeeded)
        self.assertIsNone(result.error)
        self.assertAlmostEqual(result.elapsed, 1.0, places=6)
        self.assertAlmostEqual(self.clock.now, 1.0, places=6)
        self.assertTrue(len(fetcher.calls) >= 10)

    def test_last_attempt_happens_at_the_deadline(self):
        fetcher = self._fetcher(InstanceState.PENDING)
        poller = Poller(fetcher, InstanceStateRunning(), period=4, timeout=5)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.TIMED_OUT)
        self.assertEqual(fetcher.calls, [0.0, 4.0, 5.0])
        self.assertEqual(self.clock.sleeps, [4, 1.0])

    def test_state_reached_on_the_last_attempt(self):
        fetcher = self._fetcher(InstanceState.PENDING, InstanceState.PENDING,
                                InstanceState.RUNNING)
        poller = Poller(fetcher, InstanceStateRunning(), period=4, timeout=5)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.SUCCEEDED)
        self.assertEqual(result.elapsed, 5)

    def test_succeeds_as_soon_as_the_state_is_reached(self):
        fetcher = self._fetcher(InstanceState.PENDING, InstanceState.PENDING,
                                InstanceState.RUNNING, InstanceState.RUNNING)
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=60)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.SUCCEEDED)
        self.assertTrue(result.succeeded)
        self.assertEqual(result.attempts, 3)
        self.assertEqual(len(fetcher.calls), 3)
        self.assertEqual(result.elapsed, 2)

    def test_running_after_fifteen_seconds(self):
        fetcher = self._fetcher(InstanceState.PENDING, InstanceState.PENDING,
                                InstanceState.PENDING, InstanceState.RUNNING)
        poller = Poller(fetcher, InstanceStateRunning(), period=5, timeout=60)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.SUCCEEDED)
        self.assertEqual(fetcher.calls, [0.0, 5.0, 10.0, 15.0])
        self.assertEqual(result.attempts, 4)
        self.assertEqual(result.elapsed, 15)

    def test_fetch_error_fails_without_retrying(self):
        error = TransportError('connection reset')
        fetcher = self._fetcher(error, InstanceState.RUNNING)
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=60)

        with self.assertRaises(TransportError):
            poller.poll(self.handle)

        self.assertEqual(len(fetcher.calls), 1)
        self.assertEqual(self.clock.sleeps, [])

    def test_fetch_error_is_returned_when_not_raising(self):
        error = TransportError('connection reset')
        fetcher = self._fetcher(error)
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=60)

        result = poller.poll(self.handle, raise_on_error=False)

        self.assertEqual(result.state, PollState.FAILED)
        self.assertIs(result.error, error)
        self.assertEqual(result.attempts, 1)
        self.assertEqual(len(fetcher.calls), 1)

    def test_comparator_error_fails_the_poll(self):
        driver = DummyNodeDriver(0)
        handle = driver.add_job('job-1', [JobState.PENDING, JobState.FAILED],
                                error='out of capacity')
        poller = Poller(driver, JobCompleted(), period=1, timeout=60)

        result = poller.poll(handle, raise_on_error=False)

        self.assertEqual(result.state, PollState.FAILED)
        self.assertTrue(isinstance(result.error, JobFailedError))
        self.assertEqual(result.error.job_id, 'job-1')
        self.assertEqual(result.attempts, 2)

    def test_not_found_keeps_polling_by_default(self):
        fetcher = self._fetcher(NotFoundError('gone'), InstanceState.PENDING,
                                InstanceState.RUNNING)
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=60)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.SUCCEEDED)
        self.assertEqual(result.attempts, 3)

    def test_not_found_only_times_out(self):
        fetcher = self._fetcher(NotFoundError('gone'))
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=3)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.TIMED_OUT)
        self.assertIsNone(result.error)

    def test_not_found_matches_for_terminated_instances(self):
        fetcher = self._fetcher(InstanceState.STOPPING,
                                NotFoundError('gone'))
        poller = Poller(fetcher, InstanceStateTerminated(), period=1,
                        timeout=60)

        self.assertEqual(poller.not_found_policy, NotFoundPolicy.MATCHED)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.SUCCEEDED)
        self.assertEqual(result.attempts, 2)

    def test_not_found_policy_propagate(self):
        fetcher = self._fetcher(NotFoundError('gone'))
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=60,
                        not_found_policy=NotFoundPolicy.PROPAGATE)

        with self.assertRaises(NotFoundError):
            poller.poll(self.handle)

        self.assertEqual(len(fetcher.calls), 1)

    def test_explicit_policy_overrides_comparator_default(self):
        fetcher = self._fetcher(NotFoundError('gone'),
                                InstanceState.TERMINATED)
        poller = Poller(fetcher, InstanceStateTerminated(), period=1,
                        timeout=60,
                        not_found_policy=NotFoundPolicy.NOT_MATCHED)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.SUCCEEDED)
        self.assertEqual(result.attempts, 2)

    def test_max_tries(self):
        fetcher = self._fetcher(InstanceState.PENDING)
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=60,
                        max_tries=3)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.TIMED_OUT)
        self.assertEqual(result.attempts, 3)
        self.assertEqual(len(fetcher.calls), 3)
        self.assertEqual(result.elapsed, 2)

    def test_zero_timeout_makes_a_single_attempt(self):
        fetcher = self._fetcher(InstanceState.PENDING)
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=0)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.TIMED_OUT)
        self.assertEqual(result.attempts, 1)

    def test_cancel_event_set_before_polling(self):
        fetcher = self._fetcher(InstanceState.RUNNING)
        event = threading.Event()
        event.set()
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=60,
                        cancel_event=event)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.CANCELLED)
        self.assertEqual(result.attempts, 0)
        self.assertEqual(fetcher.calls, [])

    def test_cancel_event_interrupts_the_wait(self):
        event = Mock()
        event.is_set.side_effect = [False, False, True]
        fetcher = self._fetcher(InstanceState.PENDING)
        poller = Poller(fetcher, InstanceStateRunning(), period=5, timeout=60,
                        cancel_event=event)

        result = poller.poll(self.handle)

        self.assertEqual(result.state, PollState.CANCELLED)
        self.assertEqual(result.attempts, 2)
        self.assertEqual(event.wait.call_count, 2)
        event.wait.assert_called_with(5)
        self.assertEqual(self.clock.sleeps, [])

    def test_plain_callables(self):
        calls = []

        def fetch(handle):
            calls.append(handle)
            return len(calls)

        poller = Poller(fetch, lambda count: count == 2, period=1, timeout=10)

        self.assertTrue(poller.apply(self.handle))
        self.assertEqual(calls, [self.handle, self.handle])

    def test_apply(self):
        fetcher = self._fetcher(InstanceState.PENDING, InstanceState.RUNNING)
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=60)
        self.assertTrue(poller.apply(self.handle))

        fetcher = self._fetcher(InstanceState.PENDING)
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=2)
        self.assertFalse(poller.apply(self.handle))

    def test_wait_raises_on_timeout(self):
        fetcher = self._fetcher(InstanceState.PENDING)
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=2)

        with self.assertRaises(PollTimeoutError) as ctx:
            poller.wait(self.handle)

        self.assertEqual(ctx.exception.result.state, PollState.TIMED_OUT)
        self.assertEqual(ctx.exception.result.attempts, 3)
        self.assertIn('i-1234', str(ctx.exception))

    def test_wait_raises_when_cancelled(self):
        event = threading.Event()
        event.set()
        poller = Poller(self._fetcher(InstanceState.PENDING),
                        InstanceStateRunning(), period=1, timeout=60,
                        cancel_event=event)

        with self.assertRaises(PollCancelledError) as ctx:
            poller.wait(self.handle)

        self.assertEqual(ctx.exception.result.state, PollState.CANCELLED)

    def test_wait_returns_result(self):
        fetcher = self._fetcher(InstanceState.RUNNING)
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=60)

        result = poller.wait(self.handle)

        self.assertTrue(isinstance(result, PollResult))
        self.assertEqual(result.state, PollState.SUCCEEDED)

    def test_poller_can_be_reused(self):
        driver = DummyNodeDriver(0)
        first = driver.add_instance('i-1', [InstanceState.PENDING,
                                            InstanceState.RUNNING])
        second = driver.add_instance('i-2', [InstanceState.RUNNING])
        poller = Poller(driver, InstanceStateRunning(), period=1, timeout=60)

        self.assertEqual(poller.poll(first).attempts, 2)
        self.assertEqual(poller.poll(second).attempts, 1)
        self.assertEqual(driver.fetch_count(first), 2)
        self.assertEqual(driver.fetch_count(second), 1)

    def test_invalid_arguments(self):
        fetcher = self._fetcher(InstanceState.RUNNING)
        comparator = InstanceStateRunning()

        self.assertRaises(ValueError, Poller, fetcher, comparator, period=0,
                          timeout=10)
        self.assertRaises(ValueError, Poller, fetcher, comparator, period=1,
                          timeout=-1)
        self.assertRaises(ValueError, Poller, fetcher, comparator, period=1,
                          timeout=10, max_tries=0)

    def test_logging(self):
        logger = Mock(spec=logging.Logger)
        fetcher = self._fetcher(InstanceState.PENDING)
        poller = Poller(fetcher, InstanceStateRunning(), period=1, timeout=1,
                        logger=logger)

        poller.poll(self.handle)

        self.assertEqual(logger.debug.call_count, 2)
        self.assertEqual(logger.warning.call_count, 1)
        self.assertEqual(logger.info.call_count, 0)

    def test_create_poller(self):
        fetcher = self._fetcher(InstanceState.RUNNING)
        poller = create_poller(fetcher, InstanceStateRunning(), 2, 30,
                               max_tries=4)

        self.assertEqual(poller.period, 2)
        self.assertEqual(poller.timeout, 30)
        self.assertEqual(poller.max_tries, 4)
        self.assertEqual(poller.not_found_policy, NotFoundPolicy.NOT_MATCHED)

    def test_create_poller_from_config(self):
        fetcher = self._fetcher(InstanceState.RUNNING)
        config = PollingConfig(period=3, timeout=90, max_tries=5)

        poller = create_poller_from_config(fetcher, InstanceStateRunning(),
                                           config)

        self.assertEqual(poller.period, 3)
        self.assertEqual(poller.timeout, 90)
        self.assertEqual(poller.max_tries, 5)

    @patch.dict('os.environ', {'CLOUDWAIT_POLL_PERIOD': '7',
                               'CLOUDWAIT_POLL_TIMEOUT': '70'})
    def test_create_poller_from_environment(self):
        poller = create_poller_from_config(self._fetcher(), None)

        self.assertEqual(poller.period, 7)
        self.assertEqual(poller.timeout, 70)
        self.assertIsNone(poller.max_tries)


class RealClockPollerTestCase(unittest.TestCase):
    def test_times_out_after_about_a_second(self):
        driver = DummyNodeDriver(0)
        handle = driver.add_instance('i-1', [InstanceState.PENDING])
        poller = Poller(driver, InstanceStateRunning(), period=0.1, timeout=1)

        start = time.monotonic()
        result = poller.poll(handle)
        elapsed = time.monotonic() - start

        self.assertEqual(result.state, PollState.TIMED_OUT)
        self.assertTrue(0.95 <= elapsed < 2, elapsed)
        self.assertTrue(0.95 <= result.elapsed < 2, result.elapsed)
        self.assertTrue(driver.fetch_count(handle) >= 2)

    def test_cancel_from_another_thread(self):
        driver = DummyNodeDriver(0)
        handle = driver.add_instance('i-1', [InstanceState.PENDING])
        event = threading.Event()
        poller = Poller(driver, InstanceStateRunning(), period=30,
                        timeout=600, cancel_event=event)

        timer = threading.Timer(0.2, event.set)
        timer.start()

        start = time.monotonic()
        result = poller.poll(handle)
        timer.join()

        self.assertEqual(result.state, PollState.CANCELLED)
        self.assertEqual(result.attempts, 1)
        self.assertTrue(time.monotonic() - start < 10)


if __name__ == '__main__':
    sys.exit(unittest.main())
