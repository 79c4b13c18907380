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
Security (SSL) Settings

Usage:
    import cloudwait.security
    cloudwait.security.VERIFY_SSL_CERT = True

    # Optional.
    cloudwait.security.CA_CERTS_PATH = '/path/to/certfile'
"""

import os

__all__ = [
    'VERIFY_SSL_CERT',
    'CA_CERTS_PATH'
]

VERIFY_SSL_CERT = os.environ.get('CLOUDWAIT_VERIFY_SSL_CERT', True)
VERIFY_SSL_CERT = str(VERIFY_SSL_CERT).lower() in ['true', '1']

# File containing one or more PEM-encoded CA certificates concatenated
# together. None means the bundle shipped with requests is used.
CA_CERTS_PATH = None

environment_cert_file = os.getenv('SSL_CERT_FILE', None)
if environment_cert_file is not None:
    if not os.path.isfile(environment_cert_file):
        raise ValueError('Certificate file %s doesn\'t exist or is a '
                         'directory' % (environment_cert_file))

    CA_CERTS_PATH = environment_cert_file
