"""Juniper Junos operations."""

from __future__ import annotations

import logging
from typing import Any
from xml.parsers.expat import ExpatError

import anyio
import xmltodict

from netconf_rpc.client.session import ClientSession
from netconf_rpc.shared.exceptions import EncodeError, RpcError
from netconf_rpc.shared.messages import has_rpc_error, parse_rpc_errors, text_of
from netconf_rpc.types import JunosFacts, LoadOptions, RpcReply

logger = logging.getLogger(__name__)

FACTS_RPCS = ("get-software-information", "get-route-engine-information", "get-chassis-inventory")


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _child(node: Any, *names: str) -> Any:
    for name in names:
        node = _first(node)
        if not isinstance(node, dict):
            return None
        node = node.get(name)
    return node


def config_tag(options: LoadOptions) -> str:
    """Element that carries the configuration in a load-configuration call."""
    if options.action == "set":
        return "configuration-set"
    if options.format == "xml":
        return "configuration"
    return "configuration-text"


def _configuration_tree(text: str) -> Any:
    try:
        tree = xmltodict.parse(text)
    except (ExpatError, ValueError) as exc:
        raise EncodeError(f"Invalid XML configuration: {exc}") from exc
    return tree.get("configuration", tree)


def _check_nested_errors(reply: RpcReply, *nodes: Any) -> None:
    for node in nodes:
        for item in node if isinstance(node, list) else [node]:
            if has_rpc_error(item):
                raise RpcError(reply, parse_rpc_errors(item))


class JunosOperations:
    """Configuration management sequences for Junos devices."""

    def __init__(self, session: ClientSession) -> None:
        self._session = session

    async def load(self, options: LoadOptions | str | dict[str, Any]) -> RpcReply:
        """Load configuration into the candidate datastore.

        A bare string is loaded as text and merged.
        """
        if isinstance(options, str):
            options = LoadOptions(config=options)
        elif isinstance(options, dict):
            options = LoadOptions(**options)
        if options.config is None:
            raise EncodeError("configuration undefined")
        config = options.config
        if options.format == "xml" and isinstance(config, str):
            config = _configuration_tree(config)

        request = {
            "load-configuration": {
                "@action": options.action,
                "@format": options.format,
                config_tag(options): config,
            }
        }
        reply = await self._session.rpc(request)
        # Load errors are reported inside load-configuration-results rather
        # than at the top of the reply.
        _check_nested_errors(reply, _child(reply.body, "load_configuration_results"))
        return reply

    async def commit(self) -> RpcReply:
        reply = await self._session.rpc("commit-configuration")
        commit_results = _child(reply.body, "commit_results")
        results = commit_results if isinstance(commit_results, list) else [commit_results]
        _check_nested_errors(
            reply,
            *results,
            *(result.get("routing_engine") for result in results if isinstance(result, dict)),
        )
        return reply

    async def open_private(self) -> RpcReply:
        return await self._session.rpc({"open-configuration": {"private": None}})

    async def close_private(self) -> RpcReply:
        return await self._session.rpc("close-configuration")

    async def compare(self, rollback: int | None = None) -> str:
        """Text diff between the candidate and a rollback configuration."""
        request: dict[str, Any] = {"@compare": "rollback", "@format": "text"}
        if rollback is not None:
            request["@rollback"] = rollback
        reply = await self._session.rpc({"get-configuration": request})
        output = text_of(_child(reply.body, "configuration_information", "configuration_output"))
        return "" if output is None else str(output)

    async def rollback(self) -> RpcReply:
        return await self._session.rpc("discard-changes")

    async def facts(self) -> JunosFacts:
        """Collect hostname, version, model, uptime and serial number.

        The three underlying RPCs run concurrently. Errors are only examined once
        all of them have completed; the first failure in issue order is raised.
        """
        outcomes: list[RpcReply | Exception | None] = [None] * len(FACTS_RPCS)

        async def call(index: int, name: str) -> None:
            try:
                outcomes[index] = await self._session.rpc(name)
            except Exception as exc:
                outcomes[index] = exc

        async with anyio.create_task_group() as tg:
            for index, name in enumerate(FACTS_RPCS):
                tg.start_soon(call, index, name)

        replies: list[RpcReply] = []
        for name, outcome in zip(FACTS_RPCS, outcomes):
            if isinstance(outcome, Exception):
                logger.debug("%s failed: %s", name, outcome)
                raise outcome
            if not isinstance(outcome, RpcReply):
                raise RuntimeError(f"{name} did not complete")
            replies.append(outcome)

        software, route_engine, chassis = replies
        software_info = _first(_child(software.body, "software_information"))
        return JunosFacts(
            hostname=text_of(_child(software_info, "host_name")),
            version=_child(software_info, "package_information"),
            model=text_of(_child(software_info, "product_model")),
            uptime=text_of(_child(route_engine.body, "route_engine_information", "route_engine", "up_time")),
            serial=text_of(_child(chassis.body, "chassis_inventory", "chassis", "serial_number")),
        )
