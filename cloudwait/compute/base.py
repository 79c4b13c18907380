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
Provides base classes for working with remote compute resources.

Every object in here except :class:`ResourceHandle` is a snapshot of a remote
resource at the time it was fetched. Snapshots are never refreshed in place,
polling fetches a new one each time.
"""

from collections import namedtuple
from typing import Dict, List, Optional

from cloudwait.common.base import BaseDriver
from cloudwait.compute.types import ResourceType, InstanceState
from cloudwait.compute.types import VolumeState, AttachmentState
from cloudwait.compute.types import SnapshotState, JobState

__all__ = [
    'ResourceHandle',
    'Instance',
    'Volume',
    'VolumeAttachment',
    'Snapshot',
    'AsyncJob',
    'NodeDriver'
]


class ResourceHandle(namedtuple('ResourceHandle',
                                ['id', 'resource_type', 'region', 'zone'])):
    """
    Identifies a remote resource which can be fetched again.

    Handles are immutable and hashable.

    >>> handle = ResourceHandle('i-1234', ResourceType.INSTANCE,
    ...                         region='us-east-1')
    >>> handle.id, handle.region, handle.zone
    ('i-1234', 'us-east-1', None)
    """
    __slots__ = ()

    def __new__(cls, id, resource_type, region=None, zone=None):
        if not id:
            raise ValueError('Resource handle needs an id')

        return super(ResourceHandle, cls).__new__(cls, id, resource_type,
                                                  region, zone)

    def __repr__(self):
        return '<ResourceHandle id=%s, type=%s, region=%s, zone=%s>' % (
            self.id, self.resource_type, self.region, self.zone)


class Instance(object):
    """
    A compute instance (server, virtual machine) as reported by a provider.
    """

    def __init__(self,
                 id,  # type: str
                 state,  # type: InstanceState
                 driver,  # type: NodeDriver
                 public_ips=None,  # type: Optional[List[str]]
                 private_ips=None,  # type: Optional[List[str]]
                 region=None,  # type: Optional[str]
                 extra=None  # type: Optional[Dict]
                 ):
        # type: (...) -> None
        """
        :param id: Instance ID.
        :type id: ``str``

        :param state: Current state of the instance.
        :type state: :class:`.InstanceState`

        :param driver: Driver which fetched the instance.
        :type driver: :class:`.NodeDriver`

        :param public_ips: Public IP addresses of the instance.
        :type public_ips: ``list`` of ``str``

        :param private_ips: Private IP addresses of the instance.
        :type private_ips: ``list`` of ``str``

        :param region: Region (or zone) the instance lives in.
        :type region: ``str``

        :param extra: Optional provider specific attributes.
        :type extra: ``dict``
        """
        self.id = id
        self.state = state
        self.driver = driver
        self.public_ips = public_ips or []
        self.private_ips = private_ips or []
        self.region = region
        self.extra = extra or {}

    def to_handle(self):
        # type: () -> ResourceHandle
        return ResourceHandle(self.id, ResourceType.INSTANCE,
                              region=self.region)

    def __repr__(self):
        return (('<Instance: id=%s, state=%s, public_ips=%s, '
                 'private_ips=%s, provider=%s ...>')
                % (self.id, self.state, self.public_ips, self.private_ips,
                   getattr(self.driver, 'name', None)))


class VolumeAttachment(object):
    """
    Attachment of a volume to an instance.
    """

    def __init__(self,
                 volume_id,  # type: str
                 instance_id,  # type: Optional[str]
                 status,  # type: AttachmentState
                 device=None,  # type: Optional[str]
                 attach_time=None  # type: Optional[str]
                 ):
        # type: (...) -> None
        """
        :param attach_time: ISO 8601 time the attachment was requested.
                            Timestamps of one provider compare in
                            chronological order.
        :type attach_time: ``str``
        """
        self.volume_id = volume_id
        self.instance_id = instance_id
        self.status = status
        self.device = device
        self.attach_time = attach_time

    def __repr__(self):
        return ('<VolumeAttachment: volume_id=%s, instance_id=%s, status=%s, '
                'device=%s>' % (self.volume_id, self.instance_id,
                                self.status, self.device))


class Volume(object):
    """
    A block storage volume.
    """

    def __init__(self,
                 id,  # type: str
                 state,  # type: VolumeState
                 driver,  # type: NodeDriver
                 size=None,  # type: Optional[int]
                 attachments=None,  # type: Optional[List[VolumeAttachment]]
                 region=None,  # type: Optional[str]
                 extra=None  # type: Optional[Dict]
                 ):
        # type: (...) -> None
        """
        :param size: Size of this volume (in GB).
        :type size: ``int``

        :param attachments: Attachments of this volume, in the order the
                            provider returned them.
        :type attachments: ``list`` of :class:`.VolumeAttachment`
        """
        self.id = id
        self.state = state
        self.driver = driver
        self.size = size
        self.attachments = list(attachments or [])
        self.region = region
        self.extra = extra or {}

    def latest_attachment(self):
        # type: () -> Optional[VolumeAttachment]
        """
        Return the most recent attachment of this volume.

        Attachments are ordered by ``attach_time``. Those without a time sort
        before the ones with a time and on equal times the one listed last
        wins.

        :rtype: :class:`.VolumeAttachment` or ``None`` when the volume has no
                attachments.
        """
        if not self.attachments:
            return None

        indexed = enumerate(self.attachments)
        ordered = sorted(indexed, key=lambda pair: (
            pair[1].attach_time is not None, pair[1].attach_time or '',
            pair[0]))
        return ordered[-1][1]

    def to_handle(self):
        # type: () -> ResourceHandle
        return ResourceHandle(self.id, ResourceType.VOLUME,
                              region=self.region)

    def __repr__(self):
        return '<Volume id=%s state=%s size=%s attachments=%d driver=%s>' % (
            self.id, self.state, self.size, len(self.attachments),
            getattr(self.driver, 'name', None))


class Snapshot(object):
    """
    A point in time snapshot of a volume.
    """

    def __init__(self,
                 id,  # type: str
                 state,  # type: SnapshotState
                 driver,  # type: NodeDriver
                 volume_id=None,  # type: Optional[str]
                 progress=None,  # type: Optional[str]
                 region=None,  # type: Optional[str]
                 extra=None  # type: Optional[Dict]
                 ):
        # type: (...) -> None
        """
        :param progress: Provider reported progress (e.g. ``"80%"``). Only
                         informational, completion is decided by ``state``.
        :type progress: ``str``
        """
        self.id = id
        self.state = state
        self.driver = driver
        self.volume_id = volume_id
        self.progress = progress
        self.region = region
        self.extra = extra or {}

    def to_handle(self):
        # type: () -> ResourceHandle
        return ResourceHandle(self.id, ResourceType.SNAPSHOT,
                              region=self.region)

    def __repr__(self):
        return ('<Snapshot id=%s state=%s volume_id=%s progress=%s>' %
                (self.id, self.state, self.volume_id, self.progress))


class AsyncJob(object):
    """
    An asynchronous provider job, e.g. a CloudStack ``deployVirtualMachine``.
    """

    def __init__(self,
                 id,  # type: str
                 state,  # type: JobState
                 driver,  # type: NodeDriver
                 result=None,  # type: Optional[Dict]
                 error=None,  # type: Optional[str]
                 extra=None  # type: Optional[Dict]
                 ):
        # type: (...) -> None
        self.id = id
        self.state = state
        self.driver = driver
        self.result = result
        self.error = error
        self.extra = extra or {}

    def to_handle(self):
        # type: () -> ResourceHandle
        return ResourceHandle(self.id, ResourceType.JOB)

    def __repr__(self):
        return '<AsyncJob id=%s state=%s error=%s>' % (self.id, self.state,
                                                        self.error)


class NodeDriver(BaseDriver):
    """
    A base NodeDriver class to derive from

    A driver is a resource fetcher: :meth:`fetch` takes a
    :class:`ResourceHandle` and returns a fresh snapshot of the resource.
    Drivers raise :class:`cloudwait.common.types.NotFoundError` when the
    resource doesn't exist and a
    :class:`cloudwait.common.types.TransportError` (or subclass) when the
    provider can't be talked to.
    """

    name = None  # type: str
    type = None
    website = None  # type: str

    def fetch(self, handle):
        # type: (ResourceHandle) -> object
        """
        Fetch the current representation of the resource ``handle`` points
        to.

        :param handle: Resource to fetch.
        :type handle: :class:`.ResourceHandle`

        :rtype: :class:`.Instance`, :class:`.Volume`, :class:`.Snapshot`
                or :class:`.AsyncJob`
        """
        getters = {
            ResourceType.INSTANCE: self.get_instance,
            ResourceType.VOLUME: self.get_volume,
            ResourceType.SNAPSHOT: self.get_snapshot,
            ResourceType.JOB: self.get_job,
        }

        getter = getters.get(handle.resource_type)

        if getter is None:
            raise ValueError('Unsupported resource type: %s' %
                             (handle.resource_type))

        return getter(handle.id, region=handle.region)

    def get_instance(self, instance_id, region=None):
        # type: (str, Optional[str]) -> Instance
        """
        :rtype: :class:`.Instance`
        """
        raise NotImplementedError(
            'get_instance not implemented for this driver')

    def get_volume(self, volume_id, region=None):
        # type: (str, Optional[str]) -> Volume
        """
        :rtype: :class:`.Volume`
        """
        raise NotImplementedError(
            'get_volume not implemented for this driver')

    def get_snapshot(self, snapshot_id, region=None):
        # type: (str, Optional[str]) -> Snapshot
        """
        :rtype: :class:`.Snapshot`
        """
        raise NotImplementedError(
            'get_snapshot not implemented for this driver')

    def get_job(self, job_id, region=None):
        # type: (str, Optional[str]) -> AsyncJob
        """
        :rtype: :class:`.AsyncJob`
        """
        raise NotImplementedError(
            'get_job not implemented for this driver')

    def __repr__(self):
        return '<%s name=%s>' % (self.__class__.__name__, self.name)
