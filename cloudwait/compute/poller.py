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

"""
Blocking pollers which wait for a remote resource to reach a state.

Example::

    from cloudwait.compute.poller import create_poller
    from cloudwait.compute.predicates import InstanceStateRunning

    poller = create_poller(driver, InstanceStateRunning(), period=5,
                           timeout=600)
    result = poller.wait(instance.to_handle())
"""

import time
import logging

from typing import Optional

from cloudwait.common.types import NotFoundError
from cloudwait.common.types import PollTimeoutError, PollCancelledError
from cloudwait.compute.config import PollingConfig
from cloudwait.compute.types import PollState, NotFoundPolicy

__all__ = [
    'PollResult',
    'Poller',

    'create_poller',
    'create_poller_from_config'
]

LOG = logging.getLogger(__name__)


class PollResult(object):
    """
    Outcome of a single poll.

    :ivar state: Terminal :class:`PollState` of the poll.
    :ivar attempts: Number of times the resource was fetched.
    :ivar elapsed: Seconds the poll took.
    :ivar error: Exception which failed the poll, ``None`` otherwise.
    """

    def __init__(self,
                 state,  # type: PollState
                 attempts,  # type: int
                 elapsed,  # type: float
                 error=None  # type: Optional[Exception]
                 ):
        # type: (...) -> None
        self.state = state
        self.attempts = attempts
        self.elapsed = elapsed
        self.error = error

    @property
    def succeeded(self):
        # type: () -> bool
        return self.state == PollState.SUCCEEDED

    def __repr__(self):
        return ('<PollResult state=%s attempts=%s elapsed=%.3f error=%r>' %
                (self.state, self.attempts, self.elapsed, self.error))


class Poller(object):
    """
    Repeatedly fetches a resource and applies a comparator to it until the
    comparator matches, time or attempts run out, the poll is cancelled or
    an error occurs.

    A poller keeps no state between polls, one instance can be used to poll
    many resources, also from many threads at once.
    """

    def __init__(self,
                 fetcher,
                 comparator,
                 period,  # type: float
                 timeout,  # type: float
                 max_tries=None,  # type: Optional[int]
                 not_found_policy=None,  # type: Optional[NotFoundPolicy]
                 logger=None,  # type: Optional[logging.Logger]
                 cancel_event=None
                 ):
        # type: (...) -> None
        """
        :param fetcher: Driver (anything with a ``fetch`` method) or callable
                        which takes a :class:`.ResourceHandle` and returns a
                        fresh snapshot of the resource.

        :param comparator: Comparator (anything with a ``matches`` method) or
                           callable which takes a snapshot and returns
                           ``True`` once the wanted state is reached.
        :type comparator: :class:`cloudwait.compute.predicates.StateComparator`

        :param period: Seconds to wait between two attempts.
        :type period: ``float``

        :param timeout: Seconds after which the poll gives up. The last
                        attempt happens right at the deadline.
        :type timeout: ``float``

        :param max_tries: Maximum number of attempts (optional).
        :type max_tries: ``int``

        :param not_found_policy: How a missing resource is treated. Defaults
                                 to the ``not_found_policy`` of the
                                 comparator, or ``NOT_MATCHED``.
        :type not_found_policy: :class:`.NotFoundPolicy`

        :param logger: Logger to report attempts and outcomes to.
        :type logger: :class:`logging.Logger`

        :param cancel_event: Event which cancels the poll once set.
        :type cancel_event: :class:`threading.Event`
        """
        config = PollingConfig(period=period, timeout=timeout,
                               max_tries=max_tries)

        if not_found_policy is None:
            not_found_policy = getattr(comparator, 'not_found_policy',
                                       NotFoundPolicy.NOT_MATCHED)

        self.fetcher = fetcher
        self.comparator = comparator
        self.period = config.period
        self.timeout = config.timeout
        self.max_tries = config.max_tries
        self.not_found_policy = not_found_policy
        self.logger = logger or LOG
        self.cancel_event = cancel_event

    def poll(self, handle, raise_on_error=True):
        """
        Block until the resource ``handle`` points to matches the comparator.

        :param handle: Resource to poll.
        :type handle: :class:`cloudwait.compute.base.ResourceHandle`

        :param raise_on_error: Raise errors which fail the poll (default).
                               If ``False`` a ``FAILED`` result carrying the
                               error is returned instead.
        :type raise_on_error: ``bool``

        :rtype: :class:`PollResult`
        """
        start = time.monotonic()
        end = start + self.timeout
        attempts = 0

        while True:
            if self._is_cancelled():
                return self._finish(PollState.CANCELLED, handle, attempts,
                                    start)

            attempts += 1

            try:
                matched = self._attempt(handle, attempts)
            except Exception as e:
                result = self._finish(PollState.FAILED, handle, attempts,
                                      start, error=e)
                if raise_on_error:
                    raise
                return result

            if matched:
                return self._finish(PollState.SUCCEEDED, handle, attempts,
                                    start)

            if self.max_tries is not None and attempts >= self.max_tries:
                return self._finish(PollState.TIMED_OUT, handle, attempts,
                                    start)

            remaining = end - time.monotonic()

            if remaining <= 0:
                return self._finish(PollState.TIMED_OUT, handle, attempts,
                                    start)

            self._sleep(min(self.period, remaining))

    def apply(self, handle):
        """
        Poll ``handle`` and tell whether the wanted state was reached in
        time.

        :rtype: ``bool``
        """
        return self.poll(handle).succeeded

    def wait(self, handle):
        """
        Poll ``handle`` and raise unless the wanted state was reached.

        :raises: :class:`PollTimeoutError` when the poll timed out,
                 :class:`PollCancelledError` when it was cancelled.

        :rtype: :class:`PollResult`
        """
        result = self.poll(handle)

        if result.state == PollState.TIMED_OUT:
            raise PollTimeoutError(value='Timed out after %s attempts '
                                   '(%.1f seconds) waiting for %s to match '
                                   '%r' % (result.attempts, result.elapsed,
                                           handle.id, self.comparator),
                                   result=result)

        if result.state == PollState.CANCELLED:
            raise PollCancelledError(value='Waiting for %s was cancelled '
                                     'after %s attempts' %
                                     (handle.id, result.attempts),
                                     result=result)

        return result

    def _attempt(self, handle, attempt):
        self.logger.debug('Fetching %s (attempt %s)', handle, attempt)

        fetch = getattr(self.fetcher, 'fetch', self.fetcher)

        try:
            snapshot = fetch(handle)
        except NotFoundError:
            if self.not_found_policy == NotFoundPolicy.PROPAGATE:
                raise

            self.logger.debug('%s not found, treating it as %s', handle.id,
                              self.not_found_policy)
            return self.not_found_policy == NotFoundPolicy.MATCHED

        matches = getattr(self.comparator, 'matches', self.comparator)
        return matches(snapshot)

    def _is_cancelled(self):
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _sleep(self, delay):
        if self.cancel_event is not None:
            self.cancel_event.wait(delay)
        else:
            time.sleep(delay)

    def _finish(self, state, handle, attempts, start, error=None):
        result = PollResult(state=state, attempts=attempts,
                            elapsed=time.monotonic() - start, error=error)

        if state == PollState.SUCCEEDED:
            self.logger.info('%s reached the wanted state after %s attempts '
                             '(%.1f seconds)', handle.id, attempts,
                             result.elapsed)
        elif state == PollState.TIMED_OUT:
            self.logger.warning('Gave up waiting for %s after %s attempts '
                                '(%.1f seconds)', handle.id, attempts,
                                result.elapsed)
        elif state == PollState.FAILED:
            self.logger.debug('Polling %s failed on attempt %s: %r',
                              handle.id, attempts, error)
        else:
            self.logger.debug('Polling %s was cancelled after %s attempts',
                              handle.id, attempts)

        return result


def create_poller(fetcher, comparator, period, timeout, **kwargs):
    """
    Create a :class:`Poller`.

    :param kwargs: Other keyword arguments accepted by :class:`Poller`
                   (``max_tries``, ``not_found_policy``, ``logger``,
                   ``cancel_event``).

    :rtype: :class:`Poller`
    """
    return Poller(fetcher, comparator, period=period, timeout=timeout,
                  **kwargs)


def create_poller_from_config(fetcher, comparator, config=None, **kwargs):
    """
    Create a :class:`Poller` from a :class:`PollingConfig`.

    :param config: Polling configuration, read from the environment if not
                   provided.
    :type config: :class:`cloudwait.compute.config.PollingConfig`

    :rtype: :class:`Poller`
    """
    if config is None:
        config = PollingConfig.from_env()

    return create_poller(fetcher, comparator, period=config.period,
                         timeout=config.timeout, max_tries=config.max_tries,
                         **kwargs)
