"""
File registration and one-call dump helpers.

register() prepares a uniquely named ``.sql`` file in a directory and returns
a Dumper bound to it. With ``atomic=True`` the dump is streamed to a
``.sql.partial`` file that is renamed into place only when the dump succeeds.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import IO

from ..config import DumpConfig
from .base import DbApiConnection, DumpError, DumpReport
from .session import DumpSession

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".partial"


class Dumper:
    """A connection bound to an output sink.

    Attributes:
        connection: DB-API connection to dump
        out: Binary sink
        config: Dump configuration
        path: Final dump file path when created by register()
        partial_path: Temporary path written during an atomic dump
    """

    def __init__(
        self,
        connection: DbApiConnection,
        out: IO[bytes],
        config: DumpConfig | None = None,
        lock_connection: DbApiConnection | None = None,
        path: Path | None = None,
        partial_path: Path | None = None,
    ) -> None:
        self.connection = connection
        self.out = out
        self.config = config or DumpConfig()
        self.lock_connection = lock_connection
        self.path = path
        self.partial_path = partial_path

    async def dump(self) -> DumpReport:
        """Dump the connection to the sink.

        Raises:
            DumpError: The first failure encountered
        """
        session = DumpSession(
            self.connection,
            self.out,
            self.config,
            lock_connection=self.lock_connection,
        )
        if self.partial_path is None:
            return await session.run()

        try:
            report = await session.run()
            self.out.flush()
        except BaseException:
            self._discard_partial()
            raise

        self.partial_path.replace(self.path)
        logger.info("Dump written", extra={"path": str(self.path)})
        self.partial_path = None
        return report

    def _discard_partial(self) -> None:
        self.out.close()
        if self.partial_path.exists():
            self.partial_path.unlink()
            logger.info("Removed partial dump", extra={"path": str(self.partial_path)})

    def close(self) -> None:
        """Close the sink (if closable) and the connection."""
        try:
            close = getattr(self.out, "close", None)
            if close is not None:
                close()
            if self.lock_connection is not None and self.lock_connection is not self.connection:
                self.lock_connection.close()
            self.connection.close()
        finally:
            self.connection = None
            self.lock_connection = None
            self.out = None


def register(
    connection: DbApiConnection,
    directory: str | Path,
    name_format: str,
    config: DumpConfig | None = None,
    atomic: bool = False,
    lock_connection: DbApiConnection | None = None,
) -> Dumper:
    """Create a dump file for a connection.

    Args:
        connection: DB-API connection that will be dumped
        directory: Existing directory the dump is stored in
        name_format: strftime format for the file name; ``.sql`` is appended
        config: Dump configuration
        atomic: Write to a partial file and rename on success
        lock_connection: Optional separate connection for table locks

    Returns:
        Dumper writing to the new file

    Raises:
        DumpError: If the directory is invalid or the dump already exists
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise DumpError(
            "Invalid directory", code="INVALID_DIRECTORY", details={"path": str(directory)}
        )

    name = datetime.now().strftime(name_format)
    path = directory / f"{name}.sql"
    if path.exists():
        raise DumpError(
            f"Dump '{name}' already exists.", code="DUMP_EXISTS", details={"path": str(path)}
        )

    partial_path = path.with_name(path.name + PARTIAL_SUFFIX) if atomic else None
    try:
        out = open(partial_path or path, "xb")
    except FileExistsError as e:
        raise DumpError(
            f"Dump '{name}' already exists.", code="DUMP_EXISTS", details={"path": str(path)}
        ) from e

    return Dumper(
        connection,
        out,
        config,
        lock_connection=lock_connection,
        path=path,
        partial_path=partial_path,
    )


async def dump(
    connection: DbApiConnection,
    out: IO[bytes],
    config: DumpConfig | None = None,
) -> DumpReport:
    """Dump a connection to an already open binary sink."""
    return await Dumper(connection, out, config).dump()
