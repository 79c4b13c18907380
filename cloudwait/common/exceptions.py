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

import time

from email.utils import parsedate_tz, mktime_tz

from cloudwait.common.types import ProviderError

__all__ = [
    'BaseHTTPError',
    'RateLimitReachedError',
    'ServiceUnavailableError',

    'exception_from_message'
]


class BaseHTTPError(ProviderError):

    """
    The base exception class for all HTTP related exceptions which don't
    have a more specific driver level meaning.
    """

    def __init__(self, code, message, headers=None, driver=None):
        super(BaseHTTPError, self).__init__(value=message, http_code=code,
                                            driver=driver)
        self.code = code
        self.message = message
        self.headers = headers

    def __str__(self):
        return '%s %s' % (self.code, self.message)


class RateLimitReachedError(BaseHTTPError):
    """
    HTTP 429 - Rate limit: you've sent too many requests for this time period.
    """
    code = 429
    message = '%s Rate limit exceeded' % (code)

    def __init__(self, *args, **kwargs):
        headers = kwargs.pop('headers', None)
        driver = kwargs.pop('driver', None)
        super(RateLimitReachedError, self).__init__(self.code,
                                                    self.message,
                                                    headers, driver=driver)
        if self.headers is not None:
            self.retry_after = int(self.headers.get('retry-after', 0))
        else:
            self.retry_after = 0


class ServiceUnavailableError(BaseHTTPError):
    """
    HTTP 503 - the provider endpoint is temporarily overloaded or down.
    """
    code = 503

    def __init__(self, *args, **kwargs):
        kwargs['code'] = self.code
        super(ServiceUnavailableError, self).__init__(*args, **kwargs)


_error_classes = [RateLimitReachedError, ServiceUnavailableError]
_code_map = dict((c.code, c) for c in _error_classes)


def exception_from_message(code, message, headers=None, driver=None):
    """
    Return an instance of BaseHTTPError or subclass based on response code.

    If headers include Retry-After, RFC 2616 says that its value may be one of
    two formats: HTTP-date or delta-seconds, for example:

    Retry-After: Fri, 31 Dec 1999 23:59:59 GMT
    Retry-After: 120

    If Retry-After comes in HTTP-date, it'll be translated to a positive
    delta-seconds value when passing it to the exception constructor.

    Usage::
        raise exception_from_message(code=self.status,
                                     message=self.parse_error(),
                                     headers=self.headers)
    """
    kwargs = {
        'code': code,
        'message': message,
        'headers': headers,
        'driver': driver
    }

    if headers and 'retry-after' in headers:
        http_date = parsedate_tz(headers['retry-after'])
        if http_date is not None:
            # Convert HTTP-date to delay-seconds
            delay = max(0, int(mktime_tz(http_date) - time.time()))
            headers['retry-after'] = str(delay)
    cls = _code_map.get(code, BaseHTTPError)
    return cls(**kwargs)
