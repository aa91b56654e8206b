"""An asynchronous NETCONF client.

Use netconf-rpc to:

- Open NETCONF sessions over SSH and exchange capabilities
- Issue RPCs and receive classified replies
- Run Junos and Cisco IOS configuration management sequences

## Example

```python
from netconf_rpc import Client

async with Client("router1", "admin", password="secret") as client:
    reply = await client.get_config()
    await client.junos.load("system { host-name router1; }")
    await client.junos.commit()
```
"""

from .client.client import Client
from .client.session import ClientSession
from .client.ssh import SSHServerParameters, ssh_client
from .settings import NetconfSettings
from .shared.exceptions import (
    ConnectionClosed,
    DecodeError,
    EncodeError,
    FramingError,
    NetconfError,
    RequestTimeout,
    RpcError,
    SessionNotEstablished,
    TransportError,
)
from .types import (
    BASE_1_0,
    BASE_1_1,
    NETCONF_BASE_NS,
    Hello,
    JunosFacts,
    LoadOptions,
    NamedOperation,
    RpcErrorInfo,
    RpcErrorReply,
    RpcReply,
    SessionState,
    StructuredOperation,
)

__all__ = [
    "BASE_1_0",
    "BASE_1_1",
    "NETCONF_BASE_NS",
    "Client",
    "ClientSession",
    "ConnectionClosed",
    "DecodeError",
    "EncodeError",
    "FramingError",
    "Hello",
    "JunosFacts",
    "LoadOptions",
    "NamedOperation",
    "NetconfError",
    "NetconfSettings",
    "RequestTimeout",
    "RpcError",
    "RpcErrorInfo",
    "RpcErrorReply",
    "RpcReply",
    "SSHServerParameters",
    "SessionNotEstablished",
    "SessionState",
    "StructuredOperation",
    "TransportError",
    "ssh_client",
]
