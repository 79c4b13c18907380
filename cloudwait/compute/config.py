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
Polling configuration.
"""

import os

from typing import Optional

__all__ = [
    'DEFAULT_PERIOD',
    'DEFAULT_TIMEOUT',

    'PollingConfig'
]

# All the time values are in seconds
DEFAULT_PERIOD = 5
DEFAULT_TIMEOUT = 600

ENV_PERIOD = 'CLOUDWAIT_POLL_PERIOD'
ENV_TIMEOUT = 'CLOUDWAIT_POLL_TIMEOUT'
ENV_MAX_TRIES = 'CLOUDWAIT_POLL_MAX_TRIES'


def _to_number(name, value):
    if isinstance(value, bool):
        raise ValueError('%s must be a number, got %r' % (name, value))

    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError('%s must be a number, got %r' % (name, value))


def _to_int(name, value):
    number = _to_number(name, value)

    if number != int(number):
        raise ValueError('%s must be a whole number, got %r' % (name, value))

    return int(number)


class PollingConfig(object):
    """
    How often and how long a resource is polled.

    :ivar period: Seconds between two attempts.
    :ivar timeout: Seconds after which polling gives up.
    :ivar max_tries: Maximum number of attempts, ``None`` for no limit.
    """

    def __init__(self,
                 period=DEFAULT_PERIOD,  # type: float
                 timeout=DEFAULT_TIMEOUT,  # type: float
                 max_tries=None  # type: Optional[int]
                 ):
        # type: (...) -> None
        period = _to_number('period', period)
        timeout = _to_number('timeout', timeout)

        if period <= 0:
            raise ValueError('period must be positive, got %s' % (period))

        if timeout < 0:
            raise ValueError('timeout must not be negative, got %s' %
                             (timeout))

        if max_tries is not None:
            max_tries = _to_int('max_tries', max_tries)

            if max_tries <= 0:
                raise ValueError('max_tries must be positive, got %s' %
                                 (max_tries))

        self.period = period
        self.timeout = timeout
        self.max_tries = max_tries

    @classmethod
    def from_dict(cls, values):
        """
        Build a config from a mapping, e.g. a parsed configuration file
        section.

        Recognized keys are ``period``, ``timeout`` and ``maxTries`` (or
        ``max_tries``). Missing keys use the defaults, unknown keys are
        ignored.

        :type values: ``dict``
        :rtype: :class:`PollingConfig`
        """
        max_tries = values.get('maxTries', values.get('max_tries'))

        return cls(period=values.get('period', DEFAULT_PERIOD),
                   timeout=values.get('timeout', DEFAULT_TIMEOUT),
                   max_tries=max_tries)

    @classmethod
    def from_env(cls, environ=None):
        """
        Build a config from the ``CLOUDWAIT_POLL_PERIOD``,
        ``CLOUDWAIT_POLL_TIMEOUT`` and ``CLOUDWAIT_POLL_MAX_TRIES``
        environment variables.

        :param environ: Mapping to read from instead of ``os.environ``.
        :type environ: ``dict``

        :rtype: :class:`PollingConfig`
        """
        if environ is None:
            environ = os.environ

        values = {}

        for key, name in ((ENV_PERIOD, 'period'), (ENV_TIMEOUT, 'timeout'),
                          (ENV_MAX_TRIES, 'max_tries')):
            value = environ.get(key)

            if value not in (None, ''):
                values[name] = value

        return cls.from_dict(values)

    def __eq__(self, other):
        if not isinstance(other, PollingConfig):
            return NotImplemented

        return (self.period, self.timeout, self.max_tries) == \
            (other.period, other.timeout, other.max_tries)

    def __hash__(self):
        return hash((self.period, self.timeout, self.max_tries))

    def __repr__(self):
        return '<PollingConfig period=%s timeout=%s max_tries=%s>' % (
            self.period, self.timeout, self.max_tries)
