"""Exceptions raised past the store boundary.

Expected business failures (missing board, column or card, or one outside the
caller's scope) are never raised; stores return ``Result.not_found`` for them.
Only storage failures travel as exceptions.
"""


class StorageFault(Exception):
    """The storage engine failed while a transaction was open."""


class InvariantViolation(StorageFault):
    """A container's positions stopped forming the dense range ``1..n``."""

    def __init__(self, table: str, container_id: int, positions: list[int]) -> None:
        self.table = table
        self.container_id = container_id
        self.positions = positions
        super().__init__(
            f"{table} positions for container {container_id} are not dense: {positions}"
        )
