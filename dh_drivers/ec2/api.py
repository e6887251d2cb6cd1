"""Typed seam over the EC2 API.

The driver only sees the dataclasses and `RemoteAPIError` defined here;
request signing and wire decoding belong to boto3.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from dh_common.errors import RemoteAPIError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ec2Instance:
    """The fields of an instance descriptor the driver consumes."""

    instance_id: str
    state_name: str = ""
    public_ip: str = ""
    public_dns_name: str = ""
    private_ip: str = ""


@dataclass(frozen=True)
class KeyPair:
    key_name: str
    key_fingerprint: str
    key_material: str


class Ec2Api(Protocol):
    """Remote provider calls used by the EC2 driver."""

    def run_instance(
        self,
        *,
        image_id: str,
        instance_type: str,
        availability_zone: str,
        security_group: str,
        key_name: str,
    ) -> Ec2Instance: ...

    def describe_instance(self, instance_id: str) -> Ec2Instance: ...

    def create_key_pair(self, key_name: str) -> KeyPair: ...

    def delete_key_pair(self, key_name: str) -> None: ...

    def create_security_group(self, group_name: str, description: str) -> str: ...

    def authorize_ingress(
        self, group_name: str, ports: Sequence[int], cidr: str
    ) -> None: ...

    def create_tags(self, resource_id: str, tags: Mapping[str, str]) -> None: ...

    def start_instances(self, instance_id: str) -> None: ...

    def stop_instances(self, instance_id: str) -> None: ...

    def reboot_instances(self, instance_id: str) -> None: ...

    def terminate_instances(self, instance_id: str) -> None: ...


def _instance_from(data: Mapping[str, Any]) -> Ec2Instance:
    return Ec2Instance(
        instance_id=data.get("InstanceId", ""),
        state_name=(data.get("State") or {}).get("Name", ""),
        public_ip=data.get("PublicIpAddress") or "",
        public_dns_name=data.get("PublicDnsName") or "",
        private_ip=data.get("PrivateIpAddress") or "",
    )


class Boto3Ec2Api:
    """`Ec2Api` implemented with a boto3 EC2 client."""

    def __init__(
        self,
        region: str,
        access_key: str,
        secret_key: str,
        client: Optional[Any] = None,
    ) -> None:
        self.region = region
        self._client = client or boto3.client(
            "ec2",
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )

    def _call(self, action: str, fn: Callable[..., Dict[str, Any]], **kwargs: Any) -> Dict[str, Any]:
        try:
            return fn(**kwargs)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            raise RemoteAPIError(
                action,
                code=error.get("Code"),
                messages=[error.get("Message", "")] if error.get("Message") else [],
                cause=exc,
            ) from exc
        except BotoCoreError as exc:
            raise RemoteAPIError(action, str(exc), cause=exc) from exc

    def run_instance(
        self,
        *,
        image_id: str,
        instance_type: str,
        availability_zone: str,
        security_group: str,
        key_name: str,
    ) -> Ec2Instance:
        resp = self._call(
            "RunInstances",
            self._client.run_instances,
            ImageId=image_id,
            InstanceType=instance_type,
            Placement={"AvailabilityZone": availability_zone},
            SecurityGroups=[security_group],
            KeyName=key_name,
            MinCount=1,
            MaxCount=1,
        )
        instances = resp.get("Instances") or []
        if len(instances) != 1:
            raise RemoteAPIError(
                "RunInstances", f"expected exactly one instance, got {len(instances)}"
            )
        return _instance_from(instances[0])

    def describe_instance(self, instance_id: str) -> Ec2Instance:
        resp = self._call(
            "DescribeInstances",
            self._client.describe_instances,
            InstanceIds=[instance_id],
        )
        for reservation in resp.get("Reservations") or []:
            for instance in reservation.get("Instances") or []:
                return _instance_from(instance)
        raise RemoteAPIError(
            "DescribeInstances",
            f"instance {instance_id} not found in response",
            code="InvalidInstanceID.NotFound",
        )

    def create_key_pair(self, key_name: str) -> KeyPair:
        resp = self._call(
            "CreateKeyPair", self._client.create_key_pair, KeyName=key_name
        )
        material = resp.get("KeyMaterial")
        if not material:
            raise RemoteAPIError("CreateKeyPair", "response carried no key material")
        return KeyPair(
            key_name=resp.get("KeyName", key_name),
            key_fingerprint=resp.get("KeyFingerprint", ""),
            key_material=material,
        )

    def delete_key_pair(self, key_name: str) -> None:
        self._call("DeleteKeyPair", self._client.delete_key_pair, KeyName=key_name)

    def create_security_group(self, group_name: str, description: str) -> str:
        resp = self._call(
            "CreateSecurityGroup",
            self._client.create_security_group,
            GroupName=group_name,
            Description=description,
        )
        return resp.get("GroupId", "")

    def authorize_ingress(self, group_name: str, ports: Sequence[int], cidr: str) -> None:
        self._call(
            "AuthorizeSecurityGroupIngress",
            self._client.authorize_security_group_ingress,
            GroupName=group_name,
            IpPermissions=[
                {
                    "IpProtocol": "tcp",
                    "FromPort": port,
                    "ToPort": port,
                    "IpRanges": [{"CidrIp": cidr}],
                }
                for port in ports
            ],
        )

    def create_tags(self, resource_id: str, tags: Mapping[str, str]) -> None:
        self._call(
            "CreateTags",
            self._client.create_tags,
            Resources=[resource_id],
            Tags=[{"Key": key, "Value": value} for key, value in tags.items()],
        )

    def start_instances(self, instance_id: str) -> None:
        self._call("StartInstances", self._client.start_instances, InstanceIds=[instance_id])

    def stop_instances(self, instance_id: str) -> None:
        self._call("StopInstances", self._client.stop_instances, InstanceIds=[instance_id])

    def reboot_instances(self, instance_id: str) -> None:
        self._call("RebootInstances", self._client.reboot_instances, InstanceIds=[instance_id])

    def terminate_instances(self, instance_id: str) -> None:
        self._call(
            "TerminateInstances", self._client.terminate_instances, InstanceIds=[instance_id]
        )
