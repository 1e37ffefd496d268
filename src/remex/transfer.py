"""Cancellation-aware file transfers over SFTP."""

from __future__ import annotations

import inspect
import posixpath
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Protocol

import asyncssh

from remex.cancellation import CancellationToken
from remex.errors import CancellationError, TransferError
from remex.logging import get_logger

__all__ = [
    "CHUNK_SIZE",
    "ByteSink",
    "ByteSource",
    "InterruptibleReader",
    "copy_stream",
    "download_file",
    "make_remote_dirs",
    "upload_file",
    "upload_stream",
]

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024


class ByteSource(Protocol):
    """Anything with read(size); local files read synchronously, SFTP files asynchronously."""

    def read(self, size: int = -1, /) -> Any: ...


class ByteSink(Protocol):
    def write(self, data: bytes, /) -> Any: ...


class InterruptibleReader:
    """Byte source that checks the cancellation token before every read.

    An in-flight read is never interrupted; only the next one is refused.
    """

    def __init__(self, token: CancellationToken, source: ByteSource) -> None:
        self._token = token
        self._source = source

    async def read(self, size: int = -1) -> bytes:
        self._token.raise_if_cancelled()
        data = self._source.read(size)
        if inspect.isawaitable(data):
            data = await data
        return data


async def copy_stream(
    token: CancellationToken,
    source: ByteSource,
    destination: ByteSink,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """Copy source into destination until EOF and return the byte count."""
    reader = InterruptibleReader(token, source)
    copied = 0
    while True:
        chunk = await reader.read(chunk_size)
        if not chunk:
            return copied
        result = destination.write(chunk)
        if inspect.isawaitable(result):
            await result
        copied += len(chunk)


@asynccontextmanager
async def _sftp_session(
    token: CancellationToken,
    conn: asyncssh.SSHClientConnection,
) -> AsyncIterator[asyncssh.SFTPClient]:
    """Open an SFTP client, giving up as soon as the token fires."""
    token.raise_if_cancelled()
    sftp = await token.run(conn.start_sftp_client())
    async with sftp:
        yield sftp


async def make_remote_dirs(token: CancellationToken, conn: asyncssh.SSHClientConnection, path: str) -> None:
    """Create path and any missing parents on the remote host. Idempotent."""
    if not path:
        raise TransferError("directory path cannot be empty")
    try:
        async with _sftp_session(token, conn) as sftp:
            await token.run(sftp.makedirs(path, exist_ok=True))
    except CancellationError:
        raise
    except (OSError, asyncssh.Error) as e:
        raise TransferError(f"failed to create remote directory {path}: {e}") from e


async def upload_stream(
    token: CancellationToken,
    conn: asyncssh.SSHClientConnection,
    source: ByteSource,
    remote_path: str,
) -> int:
    """Upload everything readable from source to remote_path.

    Missing remote parent directories are created. A partially written
    remote file is removed whenever the copy does not complete, whatever
    the source or the channel raised.

    Returns:
        Number of bytes written

    Raises:
        CancellationError: Token fired; raised unchanged
        TransferError: Any other failure, with the original error as cause
    """
    if not remote_path:
        raise TransferError("remote file path cannot be empty")

    try:
        async with _sftp_session(token, conn) as sftp:
            parent = posixpath.dirname(remote_path)
            if parent:
                await token.run(sftp.makedirs(parent, exist_ok=True))

            try:
                async with sftp.open(remote_path, "wb") as remote_file:
                    return await copy_stream(token, source, remote_file)
            except Exception:
                await _remove_remote(sftp, remote_path)
                raise
    except CancellationError:
        raise
    except Exception as e:
        raise TransferError(f"failed to upload to {remote_path}: {e}") from e


async def upload_file(
    token: CancellationToken,
    conn: asyncssh.SSHClientConnection,
    local_path: str | Path,
    remote_path: str,
) -> int:
    """Upload a regular local file. Returns the byte count."""
    local = Path(local_path)
    if not local.exists():
        raise TransferError(f"local file not found: {local}")
    if not local.is_file():
        raise TransferError(f"local path is not a regular file: {local}")

    try:
        handle = local.open("rb")
    except OSError as e:
        raise TransferError(f"failed to open local file {local}: {e}") from e
    with handle:
        return await upload_stream(token, conn, handle, remote_path)


async def download_file(
    token: CancellationToken,
    conn: asyncssh.SSHClientConnection,
    remote_path: str,
    local_path: str | Path,
) -> int:
    """Download a remote regular file, creating local parent directories.

    A partially written local file is removed whenever the copy does not
    complete.

    Returns:
        Number of bytes written

    Raises:
        CancellationError: Token fired; raised unchanged
        TransferError: Remote path missing or a directory, or any I/O failure
    """
    local = Path(local_path)
    try:
        local.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise TransferError(f"failed to create local directory {local.parent}: {e}") from e

    try:
        async with _sftp_session(token, conn) as sftp:
            if not await token.run(sftp.exists(remote_path)):
                raise TransferError(f"remote file not found: {remote_path}")
            if await token.run(sftp.isdir(remote_path)):
                raise TransferError(f"remote path is a directory, not a file: {remote_path}")

            async with sftp.open(remote_path, "rb") as remote_file:
                try:
                    with local.open("wb") as local_file:
                        return await copy_stream(token, remote_file, local_file)
                except Exception:
                    local.unlink(missing_ok=True)
                    raise
    except (CancellationError, TransferError):
        raise
    except Exception as e:
        raise TransferError(f"failed to download {remote_path}: {e}") from e


async def _remove_remote(sftp: asyncssh.SFTPClient, remote_path: str) -> None:
    """Best-effort removal of a partially uploaded file."""
    try:
        await sftp.remove(remote_path)
    except (OSError, asyncssh.Error) as e:
        logger.warning("failed to remove partial upload", path=remote_path, error=str(e))
