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

import sys
import unittest

from cloudwait.common.types import JobFailedError
from cloudwait.compute.base import Instance, Volume, VolumeAttachment
from cloudwait.compute.base import Snapshot, AsyncJob
from cloudwait.compute.predicates import StateComparator
from cloudwait.compute.predicates import InstanceStateExtractor
from cloudwait.compute.predicates import InstanceStateRunning
from cloudwait.compute.predicates import InstanceStateStopped
from cloudwait.compute.predicates import InstanceStateTerminated
from cloudwait.compute.predicates import InstanceHasIpAddress
from cloudwait.compute.predicates import VolumeAvailable
from cloudwait.compute.predicates import VolumeAttached
from cloudwait.compute.predicates import VolumeDetached
from cloudwait.compute.predicates import SnapshotCompleted
from cloudwait.compute.predicates import JobCompleted
from cloudwait.compute.types import InstanceState, VolumeState
from cloudwait.compute.types import AttachmentState, SnapshotState, JobState
from cloudwait.compute.types import NotFoundPolicy


def _instance(state, public_ips=None):
    return Instance(id='i-1', state=state, driver=None,
                    public_ips=public_ips)


def _attachment(status, attach_time=None, instance_id='i-1'):
    return VolumeAttachment(volume_id='vol-1', instance_id=instance_id,
                            status=status, device='/dev/sdf',
                            attach_time=attach_time)


def _volume(state=VolumeState.INUSE, attachments=None):
    return Volume(id='vol-1', state=state, driver=None, size=10,
                  attachments=attachments)


class InstancePredicatesTestCase(unittest.TestCase):
    def test_instance_state_running(self):
        comparator = InstanceStateRunning()

        self.assertTrue(comparator.matches(_instance(InstanceState.RUNNING)))
        self.assertFalse(comparator.matches(_instance(InstanceState.PENDING)))
        self.assertFalse(comparator.matches(_instance(InstanceState.STOPPED)))

    def test_instance_state_stopped(self):
        comparator = InstanceStateStopped()

        self.assertTrue(comparator.matches(_instance(InstanceState.STOPPED)))
        self.assertFalse(comparator.matches(
            _instance(InstanceState.STOPPING)))

    def test_instance_state_terminated(self):
        comparator = InstanceStateTerminated()

        self.assertTrue(comparator.matches(
            _instance(InstanceState.TERMINATED)))
        self.assertFalse(comparator.matches(_instance(InstanceState.RUNNING)))
        self.assertEqual(comparator.not_found_policy, NotFoundPolicy.MATCHED)

    def test_instance_has_ip_address(self):
        comparator = InstanceHasIpAddress()

        self.assertTrue(comparator.matches(
            _instance(InstanceState.RUNNING, public_ips=['54.211.12.18'])))
        self.assertFalse(comparator.matches(_instance(InstanceState.RUNNING)))
        self.assertFalse(comparator.matches(
            _instance(InstanceState.PENDING, public_ips=['54.211.12.18'])))

    def test_comparators_are_deterministic(self):
        comparator = InstanceStateRunning()
        instance = _instance(InstanceState.RUNNING)

        results = set([comparator.matches(instance) for _ in range(5)])

        self.assertEqual(results, set([True]))
        self.assertEqual(instance.state, InstanceState.RUNNING)

    def test_state_compares_with_plain_strings(self):
        comparator = StateComparator(InstanceStateExtractor(), 'running')

        self.assertTrue(comparator.matches(_instance(InstanceState.RUNNING)))
        self.assertTrue(comparator(_instance(InstanceState.RUNNING)))

    def test_default_not_found_policy(self):
        for comparator in [InstanceStateRunning(), InstanceStateStopped(),
                           VolumeAvailable(), VolumeAttached(),
                           VolumeDetached(), SnapshotCompleted(),
                           JobCompleted()]:
            self.assertEqual(comparator.not_found_policy,
                             NotFoundPolicy.NOT_MATCHED)

    def test_repr(self):
        self.assertEqual(repr(InstanceStateRunning()),
                         '<InstanceStateRunning target=running>')


class VolumePredicatesTestCase(unittest.TestCase):
    def test_volume_available(self):
        comparator = VolumeAvailable()

        self.assertTrue(comparator.matches(_volume(VolumeState.AVAILABLE)))
        self.assertFalse(comparator.matches(_volume(VolumeState.CREATING)))

    def test_volume_attached_without_attachments(self):
        self.assertFalse(VolumeAttached().matches(_volume(attachments=[])))

    def test_volume_attached(self):
        volume = _volume(attachments=[
            _attachment(AttachmentState.ATTACHED, '2013-11-07T12:40:00Z')])

        self.assertTrue(VolumeAttached().matches(volume))
        self.assertFalse(VolumeDetached().matches(volume))

    def test_volume_attaching(self):
        volume = _volume(attachments=[
            _attachment(AttachmentState.ATTACHING, '2013-11-07T12:40:00Z')])

        self.assertFalse(VolumeAttached().matches(volume))
        self.assertFalse(VolumeDetached().matches(volume))

    def test_volume_detached_without_attachments(self):
        self.assertTrue(VolumeDetached().matches(_volume(attachments=[])))

    def test_most_recent_attachment_wins(self):
        volume = _volume(attachments=[
            _attachment(AttachmentState.ATTACHED, '2013-11-07T12:40:00Z',
                        instance_id='i-2'),
            _attachment(AttachmentState.DETACHED, '2013-11-02T08:00:00Z',
                        instance_id='i-1')])

        self.assertTrue(VolumeAttached().matches(volume))
        self.assertFalse(VolumeDetached().matches(volume))
        self.assertEqual(volume.latest_attachment().instance_id, 'i-2')

    def test_attachments_without_time_sort_first(self):
        volume = _volume(attachments=[
            _attachment(AttachmentState.DETACHED, '2013-11-02T08:00:00Z',
                        instance_id='i-1'),
            _attachment(AttachmentState.ATTACHED, None, instance_id='i-2')])

        self.assertEqual(volume.latest_attachment().instance_id, 'i-1')
        self.assertTrue(VolumeDetached().matches(volume))

    def test_equal_times_keep_list_order(self):
        volume = _volume(attachments=[
            _attachment(AttachmentState.DETACHED, '2013-11-07T12:40:00Z',
                        instance_id='i-1'),
            _attachment(AttachmentState.ATTACHED, '2013-11-07T12:40:00Z',
                        instance_id='i-2')])

        self.assertEqual(volume.latest_attachment().instance_id, 'i-2')
        self.assertTrue(VolumeAttached().matches(volume))


class SnapshotAndJobPredicatesTestCase(unittest.TestCase):
    def test_snapshot_completed(self):
        comparator = SnapshotCompleted()
        completed = Snapshot(id='snap-1', state=SnapshotState.COMPLETED,
                             driver=None, progress='40%')
        pending = Snapshot(id='snap-1', state=SnapshotState.PENDING,
                           driver=None, progress='100%')

        self.assertTrue(comparator.matches(completed))
        self.assertFalse(comparator.matches(pending))

    def test_job_completed(self):
        comparator = JobCompleted()

        self.assertTrue(comparator.matches(
            AsyncJob(id='1', state=JobState.SUCCEEDED, driver=None)))
        self.assertFalse(comparator.matches(
            AsyncJob(id='1', state=JobState.PENDING, driver=None)))

    def test_job_failed_raises(self):
        job = AsyncJob(id='17165', state=JobState.FAILED, driver=None,
                       error='Unable to create a deployment')

        with self.assertRaises(JobFailedError) as ctx:
            JobCompleted().matches(job)

        self.assertEqual(ctx.exception.job_id, '17165')
        self.assertIn('Unable to create a deployment',
                      ctx.exception.value)


if __name__ == '__main__':
    sys.exit(unittest.main())
