"""Protocol definitions for the external decoding collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..components.cursor import ByteCursor
    from ..core.types import StoreKey


class KeyCodec(Protocol):
    """Decodes self-delimiting store keys."""

    def decode_key(self, cursor: ByteCursor) -> StoreKey:
        """Consume one key at the cursor position.

        The number of bytes consumed is StoreKey.size_in_bytes.

        Raises:
            DecodeError: If the key is malformed
            EndOfInputError: If the input ends inside the key
        """
        ...

    def encode_key(self, rendered: str) -> bytes:
        """Encode a key from its rendered form."""
        ...


class TokenCodec(Protocol):
    """Decodes the opaque replication token stored in a cursor record."""

    def decode_token(self, cursor: ByteCursor) -> object:
        ...


class PartitionResolver(Protocol):
    """Resolves a partition identifier from its serialized form."""

    def resolve_partition_id(self, cursor: ByteCursor) -> object:
        ...
