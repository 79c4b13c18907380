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

from typing import Optional

from enum import Enum

if False:
    # Work around for MYPY for cyclic import problem
    from cloudwait.common.base import BaseDriver

__all__ = [
    "Type",
    "CloudWaitError",
    "MalformedResponseError",
    "TransportError",
    "ProviderError",
    "NotFoundError",
    "InvalidCredsError",
    "JobFailedError",
    "PollTimeoutError",
    "PollCancelledError"
]


class Type(str, Enum):
    def __eq__(self, other):
        if isinstance(other, Type):
            return other.value == self.value
        elif isinstance(other, str):
            return self.value == other

        return super(Type, self).__eq__(other)

    def __ne__(self, other):
        return not self.__eq__(other)

    def __str__(self):
        return str(self.value)

    def __repr__(self):
        return self.value

    def __hash__(self):
        return hash(self.value)


class CloudWaitError(Exception):
    """The base class for other cloudwait exceptions"""

    def __init__(self, value, driver=None):
        # type: (str, BaseDriver) -> None
        super(CloudWaitError, self).__init__(value)
        self.value = value
        self.driver = driver

    def __str__(self):
        return self.__repr__()

    def __repr__(self):
        return ("<" + self.__class__.__name__ + " in " +
                repr(self.driver) +
                " " +
                repr(self.value) + ">")


class MalformedResponseError(CloudWaitError):
    """Exception for the cases when a provider returns a malformed
    response, e.g. you request JSON and provider returns
    '<h3>something</h3>' due to some error on their side."""

    def __init__(self, value, body=None, driver=None):
        # type: (str, Optional[str], Optional[BaseDriver]) -> None
        super(MalformedResponseError, self).__init__(value=value,
                                                     driver=driver)
        self.body = body

    def __repr__(self):
        return ("<MalformedResponseError in " +
                repr(self.driver) +
                " " +
                repr(self.value) +
                ">: " +
                repr(self.body))


class TransportError(CloudWaitError):
    """
    Exception used when talking to the provider failed, either because the
    remote end could not be reached or because it answered with an error.
    """
    pass


class ProviderError(TransportError):
    """
    Exception used when provider gives back
    error response (HTTP 4xx, 5xx) for a request.

    Specific sub types can be derived for errors like
    HTTP 401 : InvalidCredsError
    HTTP 404 : NotFoundError
    """

    def __init__(self, value, http_code, driver=None):
        # type: (str, int, Optional[BaseDriver]) -> None
        super(ProviderError, self).__init__(value=value, driver=driver)
        self.http_code = http_code


class NotFoundError(ProviderError):
    """
    The resource which was looked up doesn't exist (anymore).
    """

    def __init__(self, value, resource_id=None, driver=None):
        # type: (str, Optional[str], Optional[BaseDriver]) -> None
        super(NotFoundError, self).__init__(value=value, http_code=404,
                                            driver=driver)
        self.resource_id = resource_id


class InvalidCredsError(ProviderError):
    """Exception used when invalid credentials are used on a provider."""

    def __init__(self, value='Invalid credentials with the provider',
                 driver=None):
        # type: (str, Optional[BaseDriver]) -> None
        super(InvalidCredsError, self).__init__(value,
                                                http_code=401,
                                                driver=driver)


class JobFailedError(CloudWaitError):
    """
    An asynchronous provider job finished, but didn't succeed.
    """

    def __init__(self, value, job_id=None, driver=None):
        super(JobFailedError, self).__init__(value=value, driver=driver)
        self.job_id = job_id


class PollTimeoutError(CloudWaitError):
    """
    A poller gave up waiting before the wanted condition was reached.

    :ivar result: :class:`cloudwait.compute.poller.PollResult` of the poll.
    """

    def __init__(self, value, result=None):
        super(PollTimeoutError, self).__init__(value=value)
        self.result = result


class PollCancelledError(CloudWaitError):
    """
    A poller was cancelled through its cancel event.
    """

    def __init__(self, value, result=None):
        super(PollCancelledError, self).__init__(value=value)
        self.result = result
