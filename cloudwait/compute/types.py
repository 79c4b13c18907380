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
Base types used by the compute pollers and drivers
"""

from cloudwait.common.types import Type
from cloudwait.common.types import CloudWaitError, NotFoundError
from cloudwait.common.types import TransportError, ProviderError
from cloudwait.common.types import PollTimeoutError, PollCancelledError

__all__ = [
    "Provider",
    "ResourceType",
    "InstanceState",
    "VolumeState",
    "AttachmentState",
    "SnapshotState",
    "JobState",
    "PollState",
    "NotFoundPolicy",

    "CloudWaitError",
    "NotFoundError",
    "TransportError",
    "ProviderError",
    "PollTimeoutError",
    "PollCancelledError"
]


class Provider(Type):
    """
    Defines for each of the supported providers

    :cvar DUMMY: Example provider which replays scripted states
    :cvar CLOUDSTACK: CloudStack
    :cvar EC2: Amazon AWS.
    """
    DUMMY = 'dummy'
    CLOUDSTACK = 'cloudstack'
    EC2 = 'ec2'


class ResourceType(Type):
    """
    Kinds of remote resources a driver knows how to fetch.
    """
    INSTANCE = 'instance'
    VOLUME = 'volume'
    SNAPSHOT = 'snapshot'
    JOB = 'job'


class InstanceState(Type):
    """
    Standard states for an instance

    :cvar PENDING: Instance is being provisioned or is starting up.
    :cvar RUNNING: Instance is running.
    :cvar STOPPING: Instance is currently trying to stop.
    :cvar STOPPED: Instance is stopped. It can be started later on.
    :cvar TERMINATED: Instance is terminated and can't be started anymore.
    :cvar ERROR: Instance is in an error state.
    :cvar UNKNOWN: Instance state is unknown.
    """
    PENDING = 'pending'
    RUNNING = 'running'
    STOPPING = 'stopping'
    STOPPED = 'stopped'
    TERMINATED = 'terminated'
    ERROR = 'error'
    UNKNOWN = 'unknown'


class VolumeState(Type):
    """
    Standard states of a block storage volume
    """
    CREATING = 'creating'
    AVAILABLE = 'available'
    INUSE = 'inuse'
    DELETING = 'deleting'
    DELETED = 'deleted'
    ERROR = 'error'
    UNKNOWN = 'unknown'


class AttachmentState(Type):
    """
    States of a volume attachment
    """
    ATTACHING = 'attaching'
    ATTACHED = 'attached'
    DETACHING = 'detaching'
    DETACHED = 'detached'
    UNKNOWN = 'unknown'


class SnapshotState(Type):
    """
    Standard states of volume snapshots
    """
    PENDING = 'pending'
    COMPLETED = 'completed'
    ERROR = 'error'
    UNKNOWN = 'unknown'


class JobState(Type):
    """
    States of an asynchronous provider job
    """
    PENDING = 'pending'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


class PollState(Type):
    """
    States of a single poll.

    POLLING is the only non terminal state.
    """
    POLLING = 'polling'
    SUCCEEDED = 'succeeded'
    TIMED_OUT = 'timed_out'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


class NotFoundPolicy(Type):
    """
    How a poll treats a :class:`NotFoundError` raised by the fetcher.

    :cvar NOT_MATCHED: The condition isn't met yet, keep polling.
    :cvar MATCHED: The condition is met, e.g. when waiting for a deletion.
    :cvar PROPAGATE: The error is fatal and is raised to the caller.
    """
    NOT_MATCHED = 'not_matched'
    MATCHED = 'matched'
    PROPAGATE = 'propagate'
