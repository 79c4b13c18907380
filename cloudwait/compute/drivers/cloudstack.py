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
CloudStack driver
"""

import base64
import hashlib
import hmac
import ipaddress
import json
from urllib.parse import urlencode, urlparse

from cloudwait.common.base import ConnectionUserAndKey, JsonResponse
from cloudwait.common.types import InvalidCredsError, MalformedResponseError
from cloudwait.common.types import NotFoundError
from cloudwait.compute.base import NodeDriver, Instance, Volume
from cloudwait.compute.base import VolumeAttachment, Snapshot, AsyncJob
from cloudwait.compute.types import Provider, InstanceState, VolumeState
from cloudwait.compute.types import AttachmentState, SnapshotState, JobState

__all__ = [
    'CloudStackResponse',
    'CloudStackConnection',
    'CloudStackNodeDriver'
]

# Error code CloudStack uses for invalid parameter values, including ids of
# resources which don't exist
PARAM_ERROR = 431

# Error codes CloudStack uses for invalid credentials
UNAUTHORIZED_ERRORS = [401, 432]


def _is_private_address(address):
    try:
        return ipaddress.ip_address(address).is_private
    except ValueError:
        return False


class CloudStackResponse(JsonResponse):
    """
    CloudStack wraps errors in a ``<command>response`` object carrying
    ``errorcode`` and ``errortext``.
    """

    def success(self):
        return self.status == 200

    def parse_error(self):
        code, text = self.status, self.error

        try:
            body = json.loads(self.body) if self.body else {}
        except ValueError:
            # Proxies in front of the API answer with plain text or HTML,
            # the status code classifies those
            body, text = {}, self.body

        for value in body.values():
            if isinstance(value, dict) and 'errorcode' in value:
                code = int(value['errorcode'])
                text = value.get('errortext', text)
                break

        message = '%s: %s' % (code, text)

        if self.status in UNAUTHORIZED_ERRORS or code in UNAUTHORIZED_ERRORS:
            raise InvalidCredsError(message, driver=self._driver())

        if self.status == 404 or \
                (code == PARAM_ERROR and 'does not exist' in str(text)):
            resource_id = self.connection.context.get('resource_id')
            raise NotFoundError(value=message, resource_id=resource_id,
                                driver=self._driver())

        return message


class CloudStackConnection(ConnectionUserAndKey):
    responseCls = CloudStackResponse

    ASYNC_PENDING = 0
    ASYNC_SUCCESS = 1
    ASYNC_FAILURE = 2

    def _make_signature(self, params):
        signature = [(k.lower(), v) for k, v in list(params.items())]
        signature.sort(key=lambda x: x[0])
        signature = urlencode(signature)
        signature = signature.lower().replace('+', '%20')
        signature = hmac.new(self.key.encode('utf-8'),
                             msg=signature.encode('utf-8'),
                             digestmod=hashlib.sha1)
        return base64.b64encode(signature.digest()).decode('utf-8')

    def add_default_params(self, params):
        params['apiKey'] = self.user_id
        params['response'] = 'json'

        return params

    def pre_connect_hook(self, params, headers):
        params['signature'] = self._make_signature(params)

        return params, headers

    def _sync_request(self, command, resource_id=None, **kwargs):
        """This method handles synchronous calls which are generally fast
           information retrieval requests and thus return 'quickly'."""

        kwargs['command'] = command

        if resource_id is not None:
            self.set_context({'resource_id': resource_id})

        try:
            result = self.request(self.driver.path, params=kwargs)
        finally:
            self.reset_context()

        command = command.lower() + 'response'
        if command not in result.object:
            raise MalformedResponseError(
                "Unknown response format",
                body=result.body,
                driver=self.driver)
        result = result.object[command]
        return result


class CloudStackNodeDriver(NodeDriver):
    """
    Driver for the CloudStack API.

    Region and zone of a handle are ignored, CloudStack ids are unique
    across zones.

    :cvar host: The host where the API can be reached.
    :cvar path: The path where the API can be reached.
    """

    connectionCls = CloudStackConnection

    name = 'CloudStack'
    website = 'http://cloudstack.org/'
    type = Provider.CLOUDSTACK

    host = None
    path = None

    NODE_STATE_MAP = {
        'Running': InstanceState.RUNNING,
        'Starting': InstanceState.PENDING,
        'Migrating': InstanceState.PENDING,
        'Stopped': InstanceState.STOPPED,
        'Stopping': InstanceState.STOPPING,
        'Shutdowned': InstanceState.STOPPED,
        'Destroyed': InstanceState.TERMINATED,
        'Expunging': InstanceState.TERMINATED,
        'Error': InstanceState.ERROR
    }

    VOLUME_STATE_MAP = {
        'Creating': VolumeState.CREATING,
        'Destroying': VolumeState.DELETING,
        'Expunging': VolumeState.DELETING,
        'Destroy': VolumeState.DELETED,
        'Expunged': VolumeState.DELETED,
        'Allocated': VolumeState.AVAILABLE,
        'Ready': VolumeState.AVAILABLE,
        'UploadError': VolumeState.ERROR
    }

    SNAPSHOT_STATE_MAP = {
        'Creating': SnapshotState.PENDING,
        'BackingUp': SnapshotState.PENDING,
        'BackedUp': SnapshotState.COMPLETED,
        'Error': SnapshotState.ERROR
    }

    JOB_STATE_MAP = {
        CloudStackConnection.ASYNC_PENDING: JobState.PENDING,
        CloudStackConnection.ASYNC_SUCCESS: JobState.SUCCEEDED,
        CloudStackConnection.ASYNC_FAILURE: JobState.FAILED
    }

    def __init__(self, key, secret=None, secure=True, host=None,
                 path=None, port=None, url=None, **kwargs):
        """
        :param    host: The host where the API can be reached. (required)
        :type     host: ``str``

        :param    path: The path where the API can be reached. (required)
        :type     path: ``str``

        :param url: Full URL to the API endpoint. Mutually exclusive with host
                    and path argument.
        :type url: ``str``
        """
        if url:
            parsed = urlparse(url)

            path = parsed.path
            secure = parsed.scheme == 'https'
            host = parsed.hostname
            port = parsed.port or (443 if secure else 80)
        else:
            host = host if host else self.host
            path = path if path else self.path

        if not host or not path:
            raise ValueError('When instantiating CloudStack driver directly '
                             'you also need to provide url or host and path '
                             'argument')

        self.host = host
        self.path = path

        super(CloudStackNodeDriver, self).__init__(key=key,
                                                   secret=secret,
                                                   secure=secure,
                                                   host=host,
                                                   port=port,
                                                   **kwargs)

    def get_instance(self, instance_id, region=None):
        """
        Fetch a single virtual machine.

        :rtype: :class:`Instance`
        """
        res = self._sync_request(command='listVirtualMachines',
                                 resource_id=instance_id, id=instance_id,
                                 listall='true')
        data = self._single(res.get('virtualmachine', []), instance_id)
        return self._to_instance(data)

    def get_volume(self, volume_id, region=None):
        """
        Fetch a single volume.

        :rtype: :class:`Volume`
        """
        res = self._sync_request(command='listVolumes',
                                 resource_id=volume_id, id=volume_id,
                                 listall='true')
        data = self._single(res.get('volume', []), volume_id)
        return self._to_volume(data)

    def get_snapshot(self, snapshot_id, region=None):
        """
        Fetch a single volume snapshot.

        :rtype: :class:`Snapshot`
        """
        res = self._sync_request(command='listSnapshots',
                                 resource_id=snapshot_id, id=snapshot_id,
                                 listall='true')
        data = self._single(res.get('snapshot', []), snapshot_id)
        return self._to_snapshot(data)

    def get_job(self, job_id, region=None):
        """
        Fetch the status of an asynchronous job.

        :rtype: :class:`AsyncJob`
        """
        res = self._sync_request(command='queryAsyncJobResult',
                                 resource_id=job_id, jobid=job_id)
        return self._to_job(res)

    def _sync_request(self, command, **kwargs):
        return self.connection._sync_request(command, **kwargs)

    def _single(self, items, resource_id):
        # CloudStack answers with an empty list for ids it doesn't know
        if not items:
            raise NotFoundError(value='%s does not exist' % (resource_id),
                                resource_id=resource_id, driver=self)

        return items[0]

    def _to_instance(self, data):
        state = self.NODE_STATE_MAP.get(data.get('state'),
                                        InstanceState.UNKNOWN)

        public_ips = []
        private_ips = []

        for nic in data.get('nic', []):
            if 'ipaddress' not in nic:
                continue
            if _is_private_address(nic['ipaddress']):
                private_ips.append(nic['ipaddress'])
            else:
                public_ips.append(nic['ipaddress'])

        if data.get('publicip'):
            public_ips.append(data['publicip'])

        extra = {
            'name': data.get('name', data.get('displayname')),
            'zone_id': data.get('zoneid'),
            'template_id': data.get('templateid'),
            'service_offering_id': data.get('serviceofferingid'),
            'created': data.get('created'),
            'job_id': data.get('jobid')
        }

        return Instance(id=data['id'], state=state, driver=self,
                        public_ips=sorted(set(public_ips)),
                        private_ips=private_ips,
                        region=data.get('zonename'), extra=extra)

    def _to_volume(self, data):
        state = self.VOLUME_STATE_MAP.get(data.get('state'),
                                          VolumeState.UNKNOWN)

        attachments = []

        # CloudStack only reports the current attachment of a volume
        if data.get('virtualmachineid'):
            if state == VolumeState.AVAILABLE:
                state = VolumeState.INUSE

            attachments.append(VolumeAttachment(
                volume_id=data['id'],
                instance_id=data['virtualmachineid'],
                status=AttachmentState.ATTACHED,
                device=str(data['deviceid']) if 'deviceid' in data else None,
                attach_time=data.get('attached')))

        size = data.get('size')

        # Volume sizes are reported in bytes
        if size is not None:
            size = int(size) // (1024 ** 3)

        extra = {
            'name': data.get('name'),
            'type': data.get('type'),
            'zone_id': data.get('zoneid'),
            'created': data.get('created')
        }

        return Volume(id=data['id'], state=state, driver=self, size=size,
                      attachments=attachments,
                      region=data.get('zonename'), extra=extra)

    def _to_snapshot(self, data):
        state = self.SNAPSHOT_STATE_MAP.get(data.get('state'),
                                            SnapshotState.UNKNOWN)

        extra = {
            'name': data.get('name'),
            'snapshot_type': data.get('snapshottype'),
            'interval_type': data.get('intervaltype'),
            'created': data.get('created')
        }

        return Snapshot(id=data['id'], state=state, driver=self,
                        volume_id=data.get('volumeid'), extra=extra)

    def _to_job(self, data):
        status = int(data.get('jobstatus',
                              CloudStackConnection.ASYNC_PENDING))
        state = self.JOB_STATE_MAP.get(status, JobState.PENDING)

        result = data.get('jobresult')
        error = None

        if state == JobState.FAILED and isinstance(result, dict):
            error = result.get('errortext')

        extra = {
            'command': data.get('cmd'),
            'result_type': data.get('jobresulttype'),
            'instance_id': data.get('jobinstanceid'),
            'created': data.get('created')
        }

        return AsyncJob(id=data['jobid'], state=state, driver=self,
                        result=result, error=error, extra=extra)
