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
Amazon EC2 driver
"""

import base64
import hmac
import time
import threading
from hashlib import sha256
from urllib.parse import quote as urlquote
from xml.etree import ElementTree as ET

from cloudwait.common.base import ConnectionUserAndKey, XmlResponse
from cloudwait.common.types import InvalidCredsError, NotFoundError
from cloudwait.compute.base import NodeDriver, Instance, Volume
from cloudwait.compute.base import VolumeAttachment, Snapshot
from cloudwait.compute.types import Provider, InstanceState, VolumeState
from cloudwait.compute.types import AttachmentState, SnapshotState
from cloudwait.utils.xml import findtext, findall

__all__ = [
    'API_VERSION',
    'NAMESPACE',
    'REGION_DETAILS',
    'VALID_EC2_REGIONS',

    'EC2Response',
    'EC2Connection',
    'EC2NodeDriver'
]

API_VERSION = '2013-10-15'
NAMESPACE = 'http://ec2.amazonaws.com/doc/%s/' % (API_VERSION)

REGION_DETAILS = {
    'us-east-1': {
        'endpoint': 'ec2.us-east-1.amazonaws.com'
    },
    'us-east-2': {
        'endpoint': 'ec2.us-east-2.amazonaws.com'
    },
    'us-west-1': {
        'endpoint': 'ec2.us-west-1.amazonaws.com'
    },
    'us-west-2': {
        'endpoint': 'ec2.us-west-2.amazonaws.com'
    },
    'eu-west-1': {
        'endpoint': 'ec2.eu-west-1.amazonaws.com'
    },
    'eu-central-1': {
        'endpoint': 'ec2.eu-central-1.amazonaws.com'
    },
    'ap-southeast-1': {
        'endpoint': 'ec2.ap-southeast-1.amazonaws.com'
    },
    'ap-southeast-2': {
        'endpoint': 'ec2.ap-southeast-2.amazonaws.com'
    },
    'ap-northeast-1': {
        'endpoint': 'ec2.ap-northeast-1.amazonaws.com'
    },
    'sa-east-1': {
        'endpoint': 'ec2.sa-east-1.amazonaws.com'
    }
}

VALID_EC2_REGIONS = sorted(REGION_DETAILS.keys())

# Error codes EC2 uses to say that the looked up resource doesn't exist
NOT_FOUND_CODES = [
    'InvalidInstanceID.NotFound',
    'InvalidVolume.NotFound',
    'InvalidSnapshot.NotFound'
]

INVALID_CREDS_CODES = [
    'AuthFailure',
    'InvalidClientTokenId',
    'SignatureDoesNotMatch',
    'OptInRequired'
]


class EC2Response(XmlResponse):
    """
    EC2 specific response parsing and error handling.
    """

    def parse_error(self):
        err_list = []

        if self.status == 403 and not self.body:
            raise InvalidCredsError('%s: %s' % (self.status, self.error),
                                    driver=self._driver())

        try:
            body = ET.XML(self.body)
        except ET.ParseError:
            # Load balancers in front of the endpoint answer with plain text
            # or HTML, the status code classifies those
            return self.body or self.error

        for err in body.findall('Errors/Error'):
            code = findtext(element=err, xpath='Code')
            message = findtext(element=err, xpath='Message')
            err_list.append('%s: %s' % (code, message))

            if code in INVALID_CREDS_CODES:
                raise InvalidCredsError(err_list[-1], driver=self._driver())

            if code in NOT_FOUND_CODES:
                resource_id = self.connection.context.get('resource_id')
                raise NotFoundError(value=err_list[-1],
                                    resource_id=resource_id,
                                    driver=self._driver())

        return '\n'.join(err_list)


class EC2Connection(ConnectionUserAndKey):
    """
    Represents a single connection to the EC2 Endpoint.

    Requests are signed with signature version 2 (HmacSHA256).
    """

    version = API_VERSION
    host = REGION_DETAILS['us-east-1']['endpoint']
    responseCls = EC2Response

    def add_default_params(self, params):
        params['SignatureVersion'] = '2'
        params['SignatureMethod'] = 'HmacSHA256'
        params['AWSAccessKeyId'] = self.user_id
        params['Version'] = self.version
        params['Timestamp'] = time.strftime('%Y-%m-%dT%H:%M:%SZ',
                                            time.gmtime())
        params['Signature'] = self._get_aws_auth_param(params=params,
                                                       secret_key=self.key,
                                                       path=self.action)
        return params

    def _get_aws_auth_param(self, params, secret_key, path='/'):
        """
        Creates the signature required for AWS:

        StringToSign = HTTPVerb + "\\n" +
                       ValueOfHostHeaderInLowercase + "\\n" +
                       HTTPRequestURI + "\\n" +
                       CanonicalizedQueryString
        """
        keys = sorted(params.keys())
        pairs = []
        for key in keys:
            value = str(params[key])
            pairs.append(urlquote(key, safe='') + '=' +
                         urlquote(value, safe='-_~'))

        qs = '&'.join(pairs)

        hostname = self.host.lower()
        if (self.secure and self.port != 443) or \
           (not self.secure and self.port != 80):
            hostname += ':' + str(self.port)

        string_to_sign = '\n'.join((self.method or 'GET', hostname, path, qs))

        b64_hmac = base64.b64encode(
            hmac.new(secret_key.encode('utf-8'),
                     string_to_sign.encode('utf-8'),
                     digestmod=sha256).digest()
        )

        return b64_hmac.decode('utf-8')


class EC2NodeDriver(NodeDriver):
    """
    Amazon EC2 node driver.

    A driver talks to the endpoint of the region it was created for.
    Handles pointing to other regions are fetched through a connection to
    that region's endpoint.
    """

    connectionCls = EC2Connection
    type = Provider.EC2
    name = 'Amazon EC2'
    website = 'http://aws.amazon.com/ec2/'
    path = '/'

    NODE_STATE_MAP = {
        'pending': InstanceState.PENDING,
        'running': InstanceState.RUNNING,
        'shutting-down': InstanceState.UNKNOWN,
        'terminated': InstanceState.TERMINATED,
        'stopping': InstanceState.STOPPING,
        'stopped': InstanceState.STOPPED
    }

    # http://docs.aws.amazon.com/AWSEC2/latest/APIReference/API_Volume.html
    VOLUME_STATE_MAP = {
        'available': VolumeState.AVAILABLE,
        'in-use': VolumeState.INUSE,
        'error': VolumeState.ERROR,
        'creating': VolumeState.CREATING,
        'deleting': VolumeState.DELETING,
        'deleted': VolumeState.DELETED,
        'error_deleting': VolumeState.ERROR
    }

    ATTACHMENT_STATE_MAP = {
        'attaching': AttachmentState.ATTACHING,
        'attached': AttachmentState.ATTACHED,
        'detaching': AttachmentState.DETACHING,
        'detached': AttachmentState.DETACHED
    }

    SNAPSHOT_STATE_MAP = {
        'pending': SnapshotState.PENDING,
        'completed': SnapshotState.COMPLETED,
        'error': SnapshotState.ERROR
    }

    def __init__(self, key, secret=None, secure=True, host=None, port=None,
                 region='us-east-1', **kwargs):
        if region not in VALID_EC2_REGIONS:
            raise ValueError('Invalid region: %s' % (region))

        self.region_name = region
        self._connection_kwargs = kwargs
        self._region_connections = {}
        self._region_lock = threading.Lock()

        host = host or REGION_DETAILS[region]['endpoint']

        super(EC2NodeDriver, self).__init__(key=key, secret=secret,
                                            secure=secure, host=host,
                                            port=port, **kwargs)
        self._region_connections[region] = self.connection

    def get_instance(self, instance_id, region=None):
        """
        Fetch a single instance.

        :param instance_id: ID of the instance, e.g. ``i-4382922a``.
        :type instance_id: ``str``

        :param region: Region of the instance, defaults to the region of the
                       driver.
        :type region: ``str``

        :rtype: :class:`Instance`
        """
        params = {'Action': 'DescribeInstances', 'InstanceId.1': instance_id}
        element = self._describe(params, instance_id, region)

        items = findall(element=element,
                        xpath='reservationSet/item/instancesSet/item',
                        namespace=NAMESPACE)
        return self._to_instance(self._single(items, instance_id),
                                 region=region or self.region_name)

    def get_volume(self, volume_id, region=None):
        """
        Fetch a single volume together with its attachments.

        :rtype: :class:`Volume`
        """
        params = {'Action': 'DescribeVolumes', 'VolumeId.1': volume_id}
        element = self._describe(params, volume_id, region)

        items = findall(element=element, xpath='volumeSet/item',
                        namespace=NAMESPACE)
        return self._to_volume(self._single(items, volume_id),
                               region=region or self.region_name)

    def get_snapshot(self, snapshot_id, region=None):
        """
        Fetch a single volume snapshot.

        :rtype: :class:`Snapshot`
        """
        params = {'Action': 'DescribeSnapshots', 'SnapshotId.1': snapshot_id}
        element = self._describe(params, snapshot_id, region)

        items = findall(element=element, xpath='snapshotSet/item',
                        namespace=NAMESPACE)
        return self._to_snapshot(self._single(items, snapshot_id),
                                 region=region or self.region_name)

    def _describe(self, params, resource_id, region=None):
        connection = self._get_connection(region)
        connection.set_context({'resource_id': resource_id})

        try:
            return connection.request(self.path, params=params).object
        finally:
            connection.reset_context()

    def _get_connection(self, region=None):
        if region is None or region == self.region_name:
            return self.connection

        if region not in VALID_EC2_REGIONS:
            raise ValueError('Invalid region: %s' % (region))

        with self._region_lock:
            if region not in self._region_connections:
                kwargs = dict((k, v) for k, v in
                              self._connection_kwargs.items()
                              if k in ('timeout', 'proxy_url', 'retry_delay',
                                       'backoff') and v is not None)
                connection = self.connectionCls(
                    self.key, self.secret, self.secure,
                    REGION_DETAILS[region]['endpoint'], **kwargs)
                connection.driver = self
                connection.connect()
                self._region_connections[region] = connection

            return self._region_connections[region]

    def _single(self, items, resource_id):
        # EC2 answers with an empty set instead of an error for resources
        # which were deleted a while ago
        if not items:
            raise NotFoundError(value='%s does not exist' % (resource_id),
                                resource_id=resource_id, driver=self)

        return items[0]

    def _to_instance(self, element, region=None):
        state = self.NODE_STATE_MAP.get(
            findtext(element=element, xpath='instanceState/name',
                     namespace=NAMESPACE),
            InstanceState.UNKNOWN)

        instance_id = findtext(element=element, xpath='instanceId',
                               namespace=NAMESPACE)
        public_ip = findtext(element=element, xpath='ipAddress',
                             namespace=NAMESPACE)
        public_ips = [public_ip] if public_ip else []
        private_ip = findtext(element=element, xpath='privateIpAddress',
                              namespace=NAMESPACE)
        private_ips = [private_ip] if private_ip else []

        extra = {
            'instance_type': findtext(element=element, xpath='instanceType',
                                      namespace=NAMESPACE),
            'image_id': findtext(element=element, xpath='imageId',
                                 namespace=NAMESPACE),
            'launch_time': findtext(element=element, xpath='launchTime',
                                    namespace=NAMESPACE),
            'availability_zone': findtext(element=element,
                                          xpath='placement/availabilityZone',
                                          namespace=NAMESPACE),
            'tags': self._get_resource_tags(element)
        }

        return Instance(id=instance_id, state=state, driver=self,
                        public_ips=public_ips, private_ips=private_ips,
                        region=region, extra=extra)

    def _to_volume(self, element, region=None):
        volume_id = findtext(element=element, xpath='volumeId',
                             namespace=NAMESPACE)
        size = findtext(element=element, xpath='size', namespace=NAMESPACE)
        state = self.VOLUME_STATE_MAP.get(
            findtext(element=element, xpath='status', namespace=NAMESPACE),
            VolumeState.UNKNOWN)

        attachments = [self._to_attachment(item) for item in
                       findall(element=element, xpath='attachmentSet/item',
                               namespace=NAMESPACE)]

        extra = {
            'availability_zone': findtext(element=element,
                                          xpath='availabilityZone',
                                          namespace=NAMESPACE),
            'create_time': findtext(element=element, xpath='createTime',
                                    namespace=NAMESPACE),
            'volume_type': findtext(element=element, xpath='volumeType',
                                    namespace=NAMESPACE),
            'snapshot_id': findtext(element=element, xpath='snapshotId',
                                    namespace=NAMESPACE),
            'tags': self._get_resource_tags(element)
        }

        return Volume(id=volume_id, state=state, driver=self,
                      size=int(size) if size else None,
                      attachments=attachments, region=region, extra=extra)

    def _to_attachment(self, element):
        status = self.ATTACHMENT_STATE_MAP.get(
            findtext(element=element, xpath='status', namespace=NAMESPACE),
            AttachmentState.UNKNOWN)

        return VolumeAttachment(
            volume_id=findtext(element=element, xpath='volumeId',
                               namespace=NAMESPACE),
            instance_id=findtext(element=element, xpath='instanceId',
                                 namespace=NAMESPACE),
            status=status,
            device=findtext(element=element, xpath='device',
                            namespace=NAMESPACE),
            attach_time=findtext(element=element, xpath='attachTime',
                                 namespace=NAMESPACE))

    def _to_snapshot(self, element, region=None):
        snapshot_id = findtext(element=element, xpath='snapshotId',
                               namespace=NAMESPACE)
        state = self.SNAPSHOT_STATE_MAP.get(
            findtext(element=element, xpath='status', namespace=NAMESPACE),
            SnapshotState.UNKNOWN)

        extra = {
            'volume_size': findtext(element=element, xpath='volumeSize',
                                    namespace=NAMESPACE),
            'start_time': findtext(element=element, xpath='startTime',
                                   namespace=NAMESPACE),
            'description': findtext(element=element, xpath='description',
                                    namespace=NAMESPACE),
            'tags': self._get_resource_tags(element)
        }

        return Snapshot(id=snapshot_id, state=state, driver=self,
                        volume_id=findtext(element=element, xpath='volumeId',
                                           namespace=NAMESPACE),
                        progress=findtext(element=element, xpath='progress',
                                          namespace=NAMESPACE),
                        region=region, extra=extra)

    def _get_resource_tags(self, element):
        """
        Parse tags from the provided element and return a dictionary with
        key/value pairs.

        :rtype: ``dict``
        """
        tags = {}

        # Get our tag set by parsing the element
        tag_set = findall(element=element, xpath='tagSet/item',
                          namespace=NAMESPACE)

        for tag in tag_set:
            key = findtext(element=tag, xpath='key', namespace=NAMESPACE)
            value = findtext(element=tag, xpath='value', namespace=NAMESPACE)
            tags[key] = value

        return tags

    def __repr__(self):
        return '<EC2NodeDriver region=%s>' % (self.region_name)

