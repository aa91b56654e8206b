"""NETCONF client module."""

from netconf_rpc.client._transport import Transport
from netconf_rpc.client.client import Client
from netconf_rpc.client.session import ClientSession
from netconf_rpc.client.ssh import SSHAlgorithms, SSHServerParameters, SSHTransport, ssh_client

__all__ = ["Client", "ClientSession", "SSHAlgorithms", "SSHServerParameters", "SSHTransport", "Transport", "ssh_client"]
