"""Vendor specific operation sequences."""

from netconf_rpc.client.vendors.ios import IOSOperations
from netconf_rpc.client.vendors.junos import JunosOperations

__all__ = ["IOSOperations", "JunosOperations"]
