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
Dummy Driver

Replays scripted resource states without talking to any provider. Every
fetch of a resource returns the next scripted response, the last one is
repeated once the script is exhausted.
"""

import threading

from cloudwait.common.base import ConnectionKey
from cloudwait.common.types import NotFoundError
from cloudwait.compute.base import NodeDriver, ResourceHandle, Instance
from cloudwait.compute.base import Volume, Snapshot, AsyncJob
from cloudwait.compute.types import Provider, ResourceType

__all__ = [
    'DummyConnection',
    'DummyNodeDriver'
]


class DummyConnection(ConnectionKey):
    """
    Dummy connection class
    """

    def connect(self, host=None, port=None):
        pass


class DummyNodeDriver(NodeDriver):
    """
    Dummy node driver

    >>> from cloudwait.compute.drivers.dummy import DummyNodeDriver
    >>> from cloudwait.compute.types import InstanceState
    >>> driver = DummyNodeDriver(0)
    >>> handle = driver.add_instance('i-1', [InstanceState.PENDING,
    ...                                      InstanceState.RUNNING])
    >>> driver.fetch(handle).state
    pending
    >>> driver.fetch(handle).state
    running
    >>> driver.fetch(handle).state
    running
    >>> driver.fetch_count(handle)
    3
    """

    name = 'Dummy Node Provider'
    website = 'http://example.com'
    type = Provider.DUMMY

    def __init__(self, creds=0):
        """
        :param  creds: Credentials
        :type   creds: ``str``

        :rtype: ``None``
        """
        self.creds = creds
        self.connection = DummyConnection(self.creds)
        self.connection.driver = self

        self._lock = threading.Lock()
        self._scripts = {}
        self._positions = {}
        self._fetches = {}

    def script(self, handle, responses):
        """
        Script the responses for a resource.

        :param handle: Resource the responses are for.
        :type handle: :class:`ResourceHandle`

        :param responses: Snapshots to return or exceptions to raise, one per
                          fetch.
        :type responses: ``list``

        :rtype: :class:`ResourceHandle`
        """
        if not responses:
            raise ValueError('At least one response needs to be scripted')

        key = self._key(handle.resource_type, handle.id)

        with self._lock:
            self._scripts[key] = list(responses)
            self._positions[key] = 0
            self._fetches[key] = 0

        return handle

    def add_instance(self, instance_id, states, public_ips=None,
                     private_ips=None):
        handle = ResourceHandle(instance_id, ResourceType.INSTANCE)
        return self.script(handle, [
            Instance(id=instance_id, state=state, driver=self,
                     public_ips=public_ips, private_ips=private_ips)
            for state in states])

    def add_volume(self, volume_id, states, size=1, attachments=None):
        handle = ResourceHandle(volume_id, ResourceType.VOLUME)
        return self.script(handle, [
            Volume(id=volume_id, state=state, driver=self, size=size,
                   attachments=attachments)
            for state in states])

    def add_snapshot(self, snapshot_id, states, volume_id=None):
        handle = ResourceHandle(snapshot_id, ResourceType.SNAPSHOT)
        return self.script(handle, [
            Snapshot(id=snapshot_id, state=state, driver=self,
                     volume_id=volume_id)
            for state in states])

    def add_job(self, job_id, states, error=None):
        handle = ResourceHandle(job_id, ResourceType.JOB)
        return self.script(handle, [
            AsyncJob(id=job_id, state=state, driver=self, error=error)
            for state in states])

    def remove(self, handle):
        """
        Forget a resource, further fetches raise :class:`NotFoundError`.
        """
        key = self._key(handle.resource_type, handle.id)

        with self._lock:
            self._scripts.pop(key, None)
            self._positions.pop(key, None)

    def fetch_count(self, handle):
        """
        Return how many times the resource was fetched.

        :rtype: ``int``
        """
        key = self._key(handle.resource_type, handle.id)
        return self._fetches.get(key, 0)

    def get_instance(self, instance_id, region=None):
        return self._next(ResourceType.INSTANCE, instance_id)

    def get_volume(self, volume_id, region=None):
        return self._next(ResourceType.VOLUME, volume_id)

    def get_snapshot(self, snapshot_id, region=None):
        return self._next(ResourceType.SNAPSHOT, snapshot_id)

    def get_job(self, job_id, region=None):
        return self._next(ResourceType.JOB, job_id)

    def _key(self, resource_type, resource_id):
        return (str(resource_type), resource_id)

    def _next(self, resource_type, resource_id):
        key = self._key(resource_type, resource_id)

        with self._lock:
            self._fetches[key] = self._fetches.get(key, 0) + 1

            if key not in self._scripts:
                raise NotFoundError(value='%s %s does not exist' %
                                    (resource_type, resource_id),
                                    resource_id=resource_id, driver=self)

            responses = self._scripts[key]
            position = self._positions[key]
            response = responses[min(position, len(responses) - 1)]
            self._positions[key] = position + 1

        if isinstance(response, Exception):
            raise response

        return response
