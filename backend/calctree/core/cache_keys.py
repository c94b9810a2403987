"""Cache Keys & TTLs — key naming and expiry for the calculation domain.

Invariants:
    - Every key lives under the "calc:" namespace
    - ROOT(id) is a prefix of ROOT_OPERATIONS(id): invalidate_by_prefix(ROOT(id)) clears both
    - FULL_TREE has the shortest TTL (most volatile); single roots/operations the longest
"""

DEFAULT_TTL_SECONDS = 300


class CacheKeys:
    """Cache key builders."""
    FULL_TREE = "calc:tree:full"
    ROOT_LIST = "calc:roots"

    @staticmethod
    def ROOT(root_id: str) -> str:
        return f"calc:root:{root_id}"

    @staticmethod
    def ROOT_OPERATIONS(root_id: str) -> str:
        return f"calc:root:{root_id}:ops"

    @staticmethod
    def OPERATION(operation_id: str) -> str:
        return f"calc:op:{operation_id}"

    @staticmethod
    def OPERATION_CHILDREN(operation_id: str) -> str:
        return f"calc:op:{operation_id}:children"


class CacheTTL:
    """TTL values in seconds."""
    FULL_TREE = 120
    ROOT_LIST = 300
    ROOT = 600
    ROOT_OPERATIONS = 300
    OPERATION = 600
    OPERATION_CHILDREN = 300
