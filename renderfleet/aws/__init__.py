"""AWS building blocks for render worker fleets.

Example:
    from renderfleet.aws import AWS, AWSClients

    clients = AWSClients(AWS(region="us-west-2"))
"""

from renderfleet.aws.clients import AWSClients, AWSModule
from renderfleet.aws.config import AWS
from renderfleet.aws.logs import LogGroupProps
from renderfleet.aws.network import Port, SubnetSelection, SubnetType

__all__ = [
    "AWS",
    "AWSClients",
    "AWSModule",
    "LogGroupProps",
    "Port",
    "SubnetSelection",
    "SubnetType",
]
