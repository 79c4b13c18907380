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

import os
import json
import threading
from urllib.parse import urlencode, urlparse
from xml.etree import ElementTree as ET

import requests

import cloudwait

from cloudwait.common.exceptions import exception_from_message
from cloudwait.common.types import MalformedResponseError, TransportError
from cloudwait.http import CloudWaitConnection
from cloudwait.utils.retry import Retry

__all__ = [
    'RETRY_FAILED_HTTP_REQUESTS',

    'Response',
    'JsonResponse',
    'XmlResponse',

    'Connection',
    'ConnectionKey',
    'ConnectionUserAndKey',

    'BaseDriver'
]

# Module level variable indicates if the failed HTTP requests should be
# retried
RETRY_FAILED_HTTP_REQUESTS = False

TRUE_VALUES = ['1', 'true', 'yes', 'on']


def _retry_failed_http_requests():
    value = os.environ.get('CLOUDWAIT_RETRY_FAILED_HTTP_REQUESTS')

    if value is None:
        return RETRY_FAILED_HTTP_REQUESTS

    return value.strip().lower() in TRUE_VALUES


class Response(object):
    """
    A base Response class to derive from.
    """

    status = requests.codes.ok  # Response status code
    headers = {}  # type: dict
    body = None  # Raw response body
    object = None  # Parsed response body

    error = None  # Reason returned by the server.
    connection = None  # Parent connection class
    parse_zero_length_body = False

    def __init__(self, response, connection):
        """
        :param response: HTTP response object. (optional)
        :type response: :class:`requests.Response`

        :param connection: Parent connection object.
        :type connection: :class:`.Connection`
        """
        self.connection = connection

        self.headers = dict((key.lower(), value) for key, value in
                            response.headers.items())
        self.status = response.status_code
        self.error = response.reason
        self.body = response.text.strip() if response.text is not None \
            else ''

        if not self.success():
            raise exception_from_message(code=self.status,
                                         message=self.parse_error(),
                                         headers=self.headers,
                                         driver=self._driver())

        self.object = self.parse_body()

    def _driver(self):
        return getattr(self.connection, 'driver', None)

    def parse_body(self):
        """
        Parse response body.

        Override in a provider's subclass.

        :return: Parsed body.
        :rtype: ``str``
        """
        return self.body if self.body is not None else ''

    def parse_error(self):
        """
        Parse the error messages.

        Override in a provider's subclass. Drivers which can map an error to
        a more specific exception (e.g. :class:`NotFoundError`) raise it from
        here.

        :return: Parsed error.
        :rtype: ``str``
        """
        return self.body

    def success(self):
        """
        Determine if our request was successful.

        The meaning of this can be arbitrary; did we receive OK status? Did
        the node get created? Were we authenticated?

        :rtype: ``bool``
        :return: ``True`` or ``False``
        """
        return self.status in [requests.codes.ok, requests.codes.created,
                               requests.codes.accepted]


class JsonResponse(Response):
    """
    A Base JSON Response class to derive from.
    """

    def parse_body(self):
        if len(self.body) == 0 and not self.parse_zero_length_body:
            return self.body

        try:
            body = json.loads(self.body)
        except ValueError:
            raise MalformedResponseError(
                'Failed to parse JSON',
                body=self.body,
                driver=self._driver())
        return body

    def parse_error(self):
        try:
            return self.parse_body()
        except MalformedResponseError:
            return self.body or self.error


class XmlResponse(Response):
    """
    A Base XML Response class to derive from.
    """

    def parse_body(self):
        if len(self.body) == 0 and not self.parse_zero_length_body:
            return self.body

        try:
            body = ET.XML(self.body)
        except ET.ParseError:
            raise MalformedResponseError('Failed to parse XML',
                                         body=self.body,
                                         driver=self._driver())
        return body

    def parse_error(self):
        try:
            return self.parse_body()
        except MalformedResponseError:
            return self.body or self.error


class Connection(object):
    """
    A base Connection class to derive from.
    """
    conn_class = CloudWaitConnection

    responseCls = Response
    connection = None
    host = '127.0.0.1'  # type: str
    port = 443
    timeout = None  # type: int
    secure = 1
    driver = None
    request_path = ''

    retry_delay = None
    backoff = None

    def __init__(self, secure=True, host=None, port=None, url=None,
                 timeout=None, proxy_url=None, retry_delay=None,
                 backoff=None):
        self.secure = secure and 1 or 0
        self.ua = []

        # action, method and context belong to the request in flight, a
        # connection can be shared by many threads
        self._local = threading.local()

        if not self.secure:
            self.port = 80

        if host:
            self.host = host

        if port is not None:
            self.port = port

        if url:
            (self.host, self.port, self.secure,
             self.request_path) = self._tuple_from_url(url)

        self.timeout = timeout or self.timeout
        self.retry_delay = retry_delay
        self.backoff = backoff
        self.proxy_url = proxy_url

    @property
    def action(self):
        return getattr(self._local, 'action', None)

    @action.setter
    def action(self, value):
        self._local.action = value

    @property
    def method(self):
        return getattr(self._local, 'method', None)

    @method.setter
    def method(self, value):
        self._local.method = value

    @property
    def context(self):
        return getattr(self._local, 'context', {})

    def set_context(self, context):
        if not isinstance(context, dict):
            raise TypeError('context needs to be a dictionary')

        self._local.context = context

    def reset_context(self):
        self._local.context = {}

    def _tuple_from_url(self, url):
        secure = 1
        port = None
        parsed = urlparse(url)

        if parsed.scheme not in ['http', 'https']:
            raise ValueError('Invalid scheme: %s in url %s' %
                             (parsed.scheme, url))

        if parsed.scheme == 'http':
            secure = 0

        port = parsed.port

        if not port:
            port = 80 if parsed.scheme == 'http' else 443

        return (parsed.hostname, port, secure, parsed.path.rstrip('/'))

    def connect(self, host=None, port=None):
        """
        Establish a connection with the API server.

        :type host: ``str``
        :param host: Optional host to override our default

        :type port: ``int``
        :param port: Optional port to override our default

        :returns: A connection
        """
        host = host or self.host
        port = port or self.port

        connection = self.conn_class(host=host, port=int(port),
                                     secure=self.secure,
                                     timeout=self.timeout,
                                     proxy_url=self.proxy_url)
        self.connection = connection

    def _user_agent(self):
        name = getattr(self.driver, 'name', 'unknown')
        return 'cloudwait/%s (%s)%s' % (
            cloudwait.__version__,
            name,
            "".join([" (%s)" % x for x in self.ua]))

    def user_agent_append(self, token):
        """
        Append a token to a user agent string.

        Users of the library should call this to uniquely identify their
        requests to a provider.

        :type token: ``str``
        :param token: Token to add to the user agent.
        """
        self.ua.append(token)

    def request(self, action, params=None, data=None, headers=None,
                method='GET'):
        """
        Request a given `action`.

        Basically a wrapper around the connection
        object's `request` that does some helpful pre-processing.

        :type action: ``str``
        :param action: A path. This can include arguments. If included,
            any extra parameters are appended to the existing ones.

        :type params: ``dict``
        :param params: Optional mapping of additional parameters to send. If
            None, leave as an empty ``dict``.

        :type data: ``unicode``
        :param data: A body of data to send with the request.

        :type headers: ``dict``
        :param headers: Extra headers to add to the request
            None, leave as an empty ``dict``.

        :type method: ``str``
        :param method: An HTTP method such as "GET" or "POST".

        :return: An :class:`Response` instance.
        :rtype: :class:`Response` instance
        """
        if params is None:
            params = {}
        else:
            params = dict(params)

        if headers is None:
            headers = {}
        else:
            headers = dict(headers)

        action = self.morph_action_hook(action)
        self.action = action
        self.method = method

        # Extend default parameters
        params = self.add_default_params(params)

        # Extend default headers
        headers = self.add_default_headers(headers)

        # We always send a user-agent header
        headers.update({'User-Agent': self._user_agent()})

        # Encode data if necessary
        if data is not None:
            data = self.encode_data(data)

        params, headers = self.pre_connect_hook(params, headers)

        if params:
            if '?' in action:
                url = '&'.join((action, urlencode(params, doseq=True)))
            else:
                url = '?'.join((action, urlencode(params, doseq=True)))
        else:
            url = action

        # IF connection has not yet been established
        if self.connection is None:
            self.connect()

        retry_enabled = _retry_failed_http_requests() \
            or self.retry_delay is not None

        send = self._send_request
        if retry_enabled:
            retry_request = Retry(timeout=self.timeout,
                                  retry_delay=self.retry_delay,
                                  backoff=self.backoff)
            send = retry_request(send)

        try:
            return send(method=method, url=url, body=data, headers=headers)
        except requests.exceptions.RequestException as e:
            raise TransportError(value='%s %s failed: %s' % (method, url, e),
                                 driver=self.driver)

    def _send_request(self, method, url, body, headers):
        response = self.connection.request(method=method, url=url, body=body,
                                           headers=headers)
        return self.responseCls(response=response, connection=self)

    def morph_action_hook(self, action):
        return self.request_path + action

    def add_default_params(self, params):
        """
        Adds default parameters (such as API key, version, etc.)
        to the passed `params`

        Should return a dictionary.
        """
        return params

    def add_default_headers(self, headers):
        """
        Adds default headers (such as Authorization, X-Foo-Bar)
        to the passed `headers`

        Should return a dictionary.
        """
        return headers

    def pre_connect_hook(self, params, headers):
        """
        A hook which is called before connecting to the remote server.
        This hook can perform a final manipulation on the params, headers and
        url parameters.

        :type params: ``dict``
        :param params: Request parameters.

        :type headers: ``dict``
        :param headers: Request headers.
        """
        return params, headers

    def encode_data(self, data):
        """
        Encode body data.

        Override in a provider's subclass.
        """
        return data


class ConnectionKey(Connection):
    """
    Base connection class which accepts a single ``key`` argument.
    """

    def __init__(self, key, secure=True, host=None, port=None, url=None,
                 timeout=None, proxy_url=None, retry_delay=None,
                 backoff=None):
        """
        Initialize `user_id` and `key`; set `secure` to an ``int`` based on
        passed value.
        """
        super(ConnectionKey, self).__init__(secure=secure, host=host,
                                            port=port, url=url,
                                            timeout=timeout,
                                            proxy_url=proxy_url,
                                            retry_delay=retry_delay,
                                            backoff=backoff)
        self.key = key


class ConnectionUserAndKey(ConnectionKey):
    """
    Base connection class which accepts a ``user_id`` and ``key`` argument.
    """

    user_id = None  # type: str

    def __init__(self, user_id, key, secure=True, host=None, port=None,
                 url=None, timeout=None, proxy_url=None, retry_delay=None,
                 backoff=None):
        super(ConnectionUserAndKey, self).__init__(key, secure=secure,
                                                   host=host, port=port,
                                                   url=url, timeout=timeout,
                                                   proxy_url=proxy_url,
                                                   retry_delay=retry_delay,
                                                   backoff=backoff)
        self.user_id = user_id


class BaseDriver(object):
    """
    Base driver class from which other classes can inherit from.
    """

    connectionCls = ConnectionKey  # type: type
    name = None  # type: str

    def __init__(self, key, secret=None, secure=True, host=None, port=None,
                 **kwargs):
        """
        :param    key:    API key or username to be used (required)
        :type     key:    ``str``

        :param    secret: Secret password to be used (required)
        :type     secret: ``str``

        :param    secure: Whether to use HTTPS or HTTP. Note: Some providers
                only support HTTPS, and it is on by default.
        :type     secure: ``bool``

        :param    host: Override hostname used for connections.
        :type     host: ``str``

        :param    port: Override port used for connections.
        :type     port: ``int``

        :keyword  timeout: Request timeout and transient retry budget in
                           seconds.
        :type     timeout: ``int``

        :keyword  retry_delay: Enables retrying of transient request errors
                               with the given delay between attempts.
        :type     retry_delay: ``float``

        :rtype: ``None``
        """
        self.key = key
        self.secret = secret
        self.secure = secure
        args = [self.key]

        if self.secret is not None:
            args.append(self.secret)

        args.append(secure)

        host = host or self._get_host()

        if host is not None:
            args.append(host)

        if port is not None:
            args.append(port)

        conn_kwargs = self._ex_connection_class_kwargs()
        for key_name in ('timeout', 'proxy_url', 'retry_delay', 'backoff'):
            if kwargs.get(key_name) is not None:
                conn_kwargs[key_name] = kwargs[key_name]

        self.connection = self.connectionCls(*args, **conn_kwargs)
        self.connection.driver = self
        self.connection.connect()

    def _get_host(self):
        """
        Return the API host for drivers whose endpoint depends on
        constructor arguments (e.g. a region).
        """
        return None

    def _ex_connection_class_kwargs(self):
        """
        Return extra connection keyword arguments which are passed to the
        Connection class constructor.
        """
        return {}

    def __repr__(self):
        return '<%s>' % (self.__class__.__name__)
