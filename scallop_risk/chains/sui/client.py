"""Sui JSON-RPC client over one long-lived HTTP session, rotating endpoints on failure."""
import logging
import ssl
from typing import Any, Callable

import aiohttp
import certifi

from ...config import ChainConfig

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
OBJECT_OPTIONS = {"showType": True, "showContent": True, "showOwner": True}


class SuiClient:
    """Read-only Sui RPC access for the lending-market fetcher.

    The HTTP session is opened on first use and released by :meth:`close`
    (or ``async with``). Each call starts at the last endpoint that answered
    and moves on to the next one when it fails.
    """

    def __init__(self, config: ChainConfig) -> None:
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.current_rpc_index = 0
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(ssl=ssl_context)
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "SuiClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def _post(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        async with self._get_session().post(
            url, json=payload, timeout=aiohttp.ClientTimeout(total=self.timeout)
        ) as response:
            body = await response.json()
        if "error" in body:
            raise RuntimeError(f"RPC Error: {body['error']}")
        return body.get("result", {})

    async def rpc_call(self, method: str, params: list[Any]) -> dict[str, Any]:
        """Call ``method``, trying each configured endpoint once."""
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        count = len(self.endpoints)

        last_error: Exception | None = None
        for attempt in range(count):
            index = (self.current_rpc_index + attempt) % count
            url = self.endpoints[index]
            try:
                result = await self._post(url, payload)
            except Exception as e:
                last_error = e
                logger.warning("%s via %s failed: %s", method, url, e)
                continue
            if index != self.current_rpc_index:
                logger.info("Switched to RPC endpoint: %s", url)
                self.current_rpc_index = index
            return result

        raise RuntimeError(f"All RPC endpoints failed. Last error: {last_error}")

    async def _collect_pages(
        self, method: str, params_for: Callable[[str | None], list[Any]]
    ) -> list[dict[str, Any]]:
        """Follow ``nextCursor`` until the last page; ``params_for(cursor)`` builds each request."""
        items: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            page = await self.rpc_call(method, params_for(cursor))
            items.extend(page.get("data", []))
            cursor = page.get("nextCursor")
            if not page.get("hasNextPage", False) or not cursor:
                return items

    async def get_owned_objects(
        self, wallet_address: str, struct_type: str | None = None
    ) -> list[dict[str, Any]]:
        """Objects owned by ``wallet_address``, optionally only of one Move type."""
        query = {
            "filter": {"StructType": struct_type} if struct_type else None,
            "options": OBJECT_OPTIONS,
        }
        try:
            return await self._collect_pages(
                "suix_getOwnedObjects",
                lambda cursor: [wallet_address, query, cursor, PAGE_SIZE],
            )
        except Exception as e:
            logger.error("Error fetching objects owned by %s: %s", wallet_address, e)
            return []

    async def get_object(self, object_id: str) -> dict[str, Any]:
        """The object's ``data`` part, or ``{}`` when it cannot be read."""
        try:
            result = await self.rpc_call("sui_getObject", [object_id, OBJECT_OPTIONS])
        except Exception as e:
            logger.error("Error fetching object %s: %s", object_id, e)
            return {}
        if "error" in result:
            logger.warning("Object %s not available: %s", object_id, result["error"])
            return {}
        return result.get("data", {})

    async def get_dynamic_fields(self, object_id: str) -> list[dict[str, Any]]:
        try:
            return await self._collect_pages(
                "suix_getDynamicFields",
                lambda cursor: [object_id, cursor, PAGE_SIZE],
            )
        except Exception as e:
            logger.error("Error fetching dynamic fields of %s: %s", object_id, e)
            return []

    async def get_dynamic_field_object(
        self, parent_id: str, key_type: str, key_value: Any
    ) -> dict[str, Any]:
        try:
            result = await self.rpc_call(
                "suix_getDynamicFieldObject",
                [parent_id, {"type": key_type, "value": key_value}],
            )
        except Exception as e:
            logger.error("Error fetching dynamic field %s of %s: %s", key_value, parent_id, e)
            return {}
        return result.get("data", {})

    async def get_balance(self, owner: str, coin_type: str) -> int:
        """Total raw balance of ``coin_type`` across all of ``owner``'s coin objects."""
        try:
            result = await self.rpc_call("suix_getBalance", [owner, coin_type])
        except Exception as e:
            logger.error("Error fetching %s balance of %s: %s", coin_type, owner, e)
            return 0
        return int(result.get("totalBalance", 0))
