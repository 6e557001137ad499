"""Application context management for the CLI."""

from dataclasses import dataclass

from rdbrestore.core.adapters.reql import RethinkDBAdapter
from rdbrestore.core.pool import SessionPool


@dataclass
class RestoreAppContext:
    """Application context holding the server adapter and its session pool."""

    adapter: RethinkDBAdapter
    pool: SessionPool

    def close(self) -> None:
        self.pool.close()


def build_restore_context(
    host: str,
    port: int,
    *,
    user: str,
    password: str | None,
    pool_size: int,
) -> RestoreAppContext:
    """Build the restore context. Connections are opened lazily by the pool.

    Args:
        host: Server host name.
        port: Server driver port.
        user: Server user.
        password: Optional server password.
        pool_size: Maximum number of concurrent connections.

    Returns:
        RestoreAppContext: Context with a configured adapter and pool.
    """
    adapter = RethinkDBAdapter(host, port, user=user, password=password)
    pool = SessionPool(adapter.connect, max_open=pool_size)
    return RestoreAppContext(adapter=adapter, pool=pool)
