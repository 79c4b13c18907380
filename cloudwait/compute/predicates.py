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
State comparators which tell whether a fetched resource reached a wanted
state.

A comparator is a pure function of a single snapshot. It never fetches
anything itself and holds no state between calls, which makes it safe to
share between pollers and threads.
"""

from cloudwait.common.types import JobFailedError
from cloudwait.compute.types import InstanceState, VolumeState
from cloudwait.compute.types import AttachmentState, SnapshotState
from cloudwait.compute.types import JobState, NotFoundPolicy

__all__ = [
    'StateExtractor',
    'InstanceStateExtractor',
    'VolumeStateExtractor',
    'AttachmentStateExtractor',
    'SnapshotStateExtractor',
    'JobStateExtractor',

    'StateComparator',
    'InstanceStateRunning',
    'InstanceStateStopped',
    'InstanceStateTerminated',
    'InstanceHasIpAddress',
    'VolumeAvailable',
    'VolumeAttached',
    'VolumeDetached',
    'SnapshotCompleted',
    'JobCompleted'
]


class StateExtractor(object):
    """
    Reads the discrete state out of one kind of snapshot.
    """

    def extract_state(self, snapshot):
        """
        :param snapshot: Freshly fetched resource.

        :return: State of the resource, ``None`` if it has none.
        """
        raise NotImplementedError(
            'extract_state not implemented for this extractor')


class InstanceStateExtractor(StateExtractor):
    def extract_state(self, snapshot):
        return snapshot.state


class VolumeStateExtractor(StateExtractor):
    def extract_state(self, snapshot):
        return snapshot.state


class AttachmentStateExtractor(StateExtractor):
    """
    State of the most recent attachment of a volume, ``None`` for a volume
    which has never been attached.
    """

    def extract_state(self, snapshot):
        attachment = snapshot.latest_attachment()

        if attachment is None:
            return None

        return attachment.status


class SnapshotStateExtractor(StateExtractor):
    def extract_state(self, snapshot):
        return snapshot.state


class JobStateExtractor(StateExtractor):
    def extract_state(self, snapshot):
        return snapshot.state


class StateComparator(object):
    """
    Compares the state a :class:`StateExtractor` reads from a snapshot with a
    target state fixed at construction time.

    :cvar not_found_policy: How a poll using this comparator treats a missing
                            resource when the poller doesn't say otherwise.
    """

    not_found_policy = NotFoundPolicy.NOT_MATCHED

    def __init__(self, extractor, target):
        """
        :param extractor: Extractor matching the snapshots this comparator
                          is applied to.
        :type extractor: :class:`StateExtractor`

        :param target: State the resource needs to be in.
        :type target: :class:`cloudwait.common.types.Type`
        """
        self.extractor = extractor
        self.target = target

    def matches(self, snapshot):
        """
        :rtype: ``bool``
        """
        return self.extractor.extract_state(snapshot) == self.target

    def __call__(self, snapshot):
        return self.matches(snapshot)

    def __repr__(self):
        return '<%s target=%s>' % (self.__class__.__name__, self.target)


class InstanceStateRunning(StateComparator):
    def __init__(self):
        super(InstanceStateRunning, self).__init__(InstanceStateExtractor(),
                                                   InstanceState.RUNNING)


class InstanceStateStopped(StateComparator):
    def __init__(self):
        super(InstanceStateStopped, self).__init__(InstanceStateExtractor(),
                                                   InstanceState.STOPPED)


class InstanceStateTerminated(StateComparator):
    """
    Instance is terminated. Providers forget terminated instances after a
    while so an instance which can't be found anymore counts as terminated.
    """

    not_found_policy = NotFoundPolicy.MATCHED

    def __init__(self):
        super(InstanceStateTerminated, self).__init__(
            InstanceStateExtractor(), InstanceState.TERMINATED)


class InstanceHasIpAddress(StateComparator):
    """
    Instance is running and has been assigned at least one public IP address.
    """

    def __init__(self):
        super(InstanceHasIpAddress, self).__init__(InstanceStateExtractor(),
                                                   InstanceState.RUNNING)

    def matches(self, snapshot):
        if not super(InstanceHasIpAddress, self).matches(snapshot):
            return False

        return len(snapshot.public_ips) > 0


class VolumeAvailable(StateComparator):
    def __init__(self):
        super(VolumeAvailable, self).__init__(VolumeStateExtractor(),
                                              VolumeState.AVAILABLE)


class VolumeAttached(StateComparator):
    """
    The most recent attachment of the volume is attached. A volume without
    any attachment doesn't match.
    """

    def __init__(self):
        super(VolumeAttached, self).__init__(AttachmentStateExtractor(),
                                             AttachmentState.ATTACHED)


class VolumeDetached(StateComparator):
    """
    The most recent attachment of the volume is detached. A volume without
    any attachment matches.
    """

    def __init__(self):
        super(VolumeDetached, self).__init__(AttachmentStateExtractor(),
                                             AttachmentState.DETACHED)

    def matches(self, snapshot):
        state = self.extractor.extract_state(snapshot)

        if state is None:
            return True

        return state == self.target


class SnapshotCompleted(StateComparator):
    """
    Snapshot is completed. Reported progress is ignored, some providers
    report 100% long before the snapshot can be used.
    """

    def __init__(self):
        super(SnapshotCompleted, self).__init__(SnapshotStateExtractor(),
                                                SnapshotState.COMPLETED)


class JobCompleted(StateComparator):
    """
    Asynchronous job finished successfully.

    A failed job never finishes successfully, so instead of waiting for the
    poll to time out :class:`JobFailedError` is raised.
    """

    def __init__(self):
        super(JobCompleted, self).__init__(JobStateExtractor(),
                                           JobState.SUCCEEDED)

    def matches(self, snapshot):
        state = self.extractor.extract_state(snapshot)

        if state == JobState.FAILED:
            raise JobFailedError(value='Job %s failed: %s' %
                                 (snapshot.id, snapshot.error),
                                 job_id=snapshot.id,
                                 driver=snapshot.driver)

        return state == self.target
