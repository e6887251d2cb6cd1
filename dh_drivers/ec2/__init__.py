"""AWS EC2 driver."""

from .api import Boto3Ec2Api, Ec2Api, Ec2Instance, KeyPair
from .driver import Ec2Driver, Ec2DriverOptions, Ec2DriverState

__all__ = [
    "Boto3Ec2Api",
    "Ec2Api",
    "Ec2Driver",
    "Ec2DriverOptions",
    "Ec2DriverState",
    "Ec2Instance",
    "KeyPair",
]
