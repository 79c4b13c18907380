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

import json
import os
from shlex import quote as pquote
from xml.dom.minidom import parseString

from cloudwait.http import CloudWaitConnection


class LoggingConnection(CloudWaitConnection):
    """
    Debug class to log all HTTP(s) requests as they could be made
    with the curl command.

    :cvar log: file-like object that logs entries are written to.
    """

    log = None

    def _log_response(self, r):
        rv = "# -------- begin %d:%d response ----------\n" % (id(self), id(r))
        ht = "HTTP/1.1 %s %s\r\n" % (r.status_code, r.reason)
        for key, value in r.headers.items():
            ht += "%s: %s\r\n" % (key.title(), value)
        ht += "\r\n"

        body = r.text
        content_type = r.headers.get('content-type', '').split(';')[0]

        pretty_print = os.environ.get('CLOUDWAIT_DEBUG_PRETTY_PRINT_RESPONSE',
                                      False)

        if pretty_print and content_type == 'application/json':
            try:
                body = json.dumps(json.loads(body), sort_keys=True, indent=4)
            except ValueError:
                # Invalid JSON or server is lying about content-type
                pass
        elif pretty_print and content_type in ['text/xml', 'application/xml']:
            try:
                body = parseString(body).toprettyxml()
            except Exception:
                # Invalid XML
                pass

        ht += body

        rv += ht
        rv += ("\n# -------- end %d:%d response ----------\n"
               % (id(self), id(r)))

        return rv

    def _log_curl(self, method, url, body, headers):
        cmd = ["curl"]

        if self.http_proxy_used:
            if self.proxy_username and self.proxy_password:
                proxy_url = '%s://%s:%s@%s:%s' % (self.proxy_scheme,
                                                  self.proxy_username,
                                                  self.proxy_password,
                                                  self.proxy_host,
                                                  self.proxy_port)
            else:
                proxy_url = '%s://%s:%s' % (self.proxy_scheme,
                                            self.proxy_host,
                                            self.proxy_port)
            cmd.extend(['--proxy', pquote(proxy_url)])

        cmd.extend(['-i', '-X', pquote(method)])

        for h in headers:
            cmd.extend(["-H", pquote("%s: %s" % (h, headers[h]))])

        if body is not None and len(body) > 0:
            if isinstance(body, (bytearray, bytes)):
                body = body.decode('utf-8')

            cmd.extend(["--data-binary", pquote(body)])

        cmd.extend([pquote("%s%s" % (self.host, url))])
        return " ".join(cmd)

    def request(self, method, url, body=None, headers=None, **kwargs):
        headers = self._normalize_headers(headers=headers)
        headers.update({'X-CW-Request-ID': str(id(self))})
        if self.log is not None:
            pre = "# -------- begin %d request ----------\n" % id(self)
            self.log.write(pre +
                           self._log_curl(method, url, body, headers) +
                           "\n")
            self.log.flush()
        response = CloudWaitConnection.request(self, method, url, body,
                                               headers, **kwargs)
        if self.log is not None:
            rv = self._log_response(response)
            self.log.write(rv + "\n")
            self.log.flush()
        return response
