"""Chain client protocol: read-only ledger RPC."""
from typing import Any, Protocol


class ChainClient(Protocol):
    """Object, dynamic-field and balance reads the ledger fetcher relies on."""

    async def get_owned_objects(
        self, wallet_address: str, struct_type: str | None = None
    ) -> list[dict[str, Any]]: ...

    async def get_object(self, object_id: str) -> dict[str, Any]: ...

    async def get_dynamic_fields(self, object_id: str) -> list[dict[str, Any]]: ...

    async def get_dynamic_field_object(
        self, parent_id: str, key_type: str, key_value: Any
    ) -> dict[str, Any]: ...

    async def get_balance(self, owner: str, coin_type: str) -> int: ...

    async def close(self) -> None: ...
