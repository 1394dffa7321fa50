"""
=============================================================================
FILE STORE AND /files/ HANDLERS
=============================================================================

    GET  /files/{name}   → 200 + file bytes (application/octet-stream)
    POST /files/{name}   → 201, body written to <directory>/{name}

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

The name comes straight from the URL, so "/files/../../etc/passwd" asks
for <directory>/../../etc/passwd. We resolve the joined path and then
require it to still be inside the base directory:

    base       = /srv/files                     (resolved once)
    requested  = (base / "../../etc/passwd").resolve()
               = /etc/passwd
    requested.relative_to(base)  → ValueError → 404

resolve() also follows symlinks, so a link pointing out of the directory
is caught the same way. Anything that fails the check is reported as
"not found", for reads and for writes.

A name that lands on a directory (including "." and "", which resolve to
the base directory) is a 404 on read and a 500 on write.

=============================================================================
ATOMIC WRITES
=============================================================================

    1. Read the whole body (ShortBody → 400, nothing touched on disk)
    2. Write it to a temp file in the same directory
    3. os.replace(temp, target)

os.replace is atomic within one filesystem. Readers see either the old
file or the new one, never a half-written one, and concurrent writers to
the same name end with exactly one complete body (last writer wins).

=============================================================================
"""

import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Optional

from ..http.errors import BadContentLength, FileSystemError, ShortBody
from ..http.request import HTTPRequest
from ..http.response import (
    FileBody,
    HTTPResponse,
    ResponseBuilder,
    bad_request,
    created,
    internal_error,
    not_found,
)
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

FILE_MODE = 0o644


class FileStore:
    """
    Reads and writes files by name under one base directory.

        store = FileStore("/srv/files")
        body = store.open("notes.txt")       # FileBody, caller closes it
        store.write("notes.txt", b"hello")

    A store created with directory=None is "unconfigured": every lookup
    fails with a 404.
    """

    def __init__(self, directory: Optional[str] = None):
        self.root: Optional[Path] = Path(directory).resolve() if directory else None

    @property
    def configured(self) -> bool:
        return self.root is not None

    def resolve(self, name: str) -> Path:
        """
        Map a file name onto a path inside the base directory.

        Raises:
            FileSystemError (404): No directory configured, a NUL in the
                name, or the name resolves outside the directory.
        """
        if self.root is None:
            raise FileSystemError("No directory configured", status_code=404)
        if "\x00" in name:
            raise FileSystemError(f"Invalid file name: {name!r}", status_code=404)

        try:
            path = (self.root / name).resolve()
            path.relative_to(self.root)
        except ValueError:
            logger.warning(f"Path traversal attempt: {name!r}")
            raise FileSystemError(f"Invalid file name: {name!r}", status_code=404) from None

        return path

    def open(self, name: str) -> FileBody:
        """
        Open a file for streaming.

        Returns:
            FileBody with the file open in binary mode and its size from
            fstat(). The caller must close it.

        Raises:
            FileSystemError (404): Missing, not a regular file, unreadable.
        """
        path = self.resolve(name)
        try:
            file = open(path, "rb")
        except OSError as e:
            raise FileSystemError(f"Cannot open {name!r}: {e}", status_code=404) from e

        try:
            info = os.fstat(file.fileno())
        except OSError as e:
            file.close()
            raise FileSystemError(f"Cannot stat {name!r}: {e}", status_code=404) from e

        if not stat.S_ISREG(info.st_mode):
            file.close()
            raise FileSystemError(f"Not a regular file: {name!r}", status_code=404)

        return FileBody(file=file, size=info.st_size)

    def write(self, name: str, data: bytes) -> Path:
        """
        Create or replace a file with `data`, atomically.

        Raises:
            FileSystemError (404): Invalid name.
            FileSystemError (500): The name is a directory, or creating or
                writing the file failed.
        """
        path = self.resolve(name)
        if path.is_dir():
            # The temp file would land next to the directory, not inside it
            raise FileSystemError(f"Is a directory: {name!r}")

        try:
            fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        except OSError as e:
            raise FileSystemError(f"Cannot create {name!r}: {e}") from e

        try:
            with os.fdopen(fd, "wb") as temp:
                temp.write(data)
            os.chmod(temp_path, FILE_MODE)
            os.replace(temp_path, path)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass  # Already moved or never created
            raise FileSystemError(f"Cannot write {name!r}: {e}") from e

        logger.debug(f"Wrote {len(data)} bytes to {path}")
        return path


class FileHandler:
    """
    Route handlers for GET and POST on /files/{name}.

        files = FileHandler(FileStore(config.directory))
        router.add_route(RouteKind.FILES_GET, files.get)
        router.add_route(RouteKind.FILES_POST, files.post)
    """

    def __init__(self, store: FileStore):
        self.store = store

    def get(self, request: HTTPRequest) -> HTTPResponse:
        """200 streaming the file, 404 on any failure."""
        name = request.path_params.get("name", "")
        try:
            body = self.store.open(name)
        except FileSystemError as e:
            logger.debug(f"GET /files/{name}: {e}")
            return not_found()

        return ResponseBuilder().file(body).build()

    def post(self, request: HTTPRequest) -> HTTPResponse:
        """
        Store the request body under the given name.

            no directory / bad name      → 404
            missing or bad Content-Length → 400, close
            body shorter than declared    → 400, close, no file
            filesystem failure            → 500
            success                       → 201
        """
        name = request.path_params.get("name", "")
        if not self.store.configured:
            return not_found()

        if not request.body.declared:
            logger.info(f"POST /files/{name} without Content-Length")
            return bad_request()

        try:
            request.body.length  # Validates the header
            self.store.resolve(name)
        except BadContentLength as e:
            logger.info(f"POST /files/{name}: {e}")
            return bad_request()
        except FileSystemError:
            return not_found()

        try:
            data = request.body.read()
        except ShortBody as e:
            logger.info(f"POST /files/{name}: {e}")
            return bad_request()

        try:
            self.store.write(name, data)
        except FileSystemError as e:
            if e.status_code == HTTPStatus.NOT_FOUND:
                return not_found()
            logger.error(f"POST /files/{name}: {e}")
            return internal_error()

        return created()
