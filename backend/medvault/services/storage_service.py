"""
Local filesystem blob storage for uploaded documents.

Layout: one directory per owner under the storage root, files named
``<namespace>_<uuid4><ext>``. The namespace is the SHA-256 hex digest of the
owner id, so any opaque token subject maps to one safe directory name. Only
the key is ever persisted; the full path is rebuilt from the configured root
on every access.
"""

import hashlib
import logging
import os
import re
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import BinaryIO, Optional, Pattern, Union

from medvault.exceptions import BlobNotFound, Conflict, InvalidInput, StorageFailure
from medvault.models.document import StorageReference
from medvault.utils.validators import contains_traversal, extract_extension

logger = logging.getLogger(__name__)

_UUID = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
_TEMP_PREFIX = ".upload-"


class StorageService:
    """
    Service for storing, loading and deleting document blobs on disk.

    Attributes:
        root: Absolute storage root, fixed at construction
        collision_retries: Attempts to find an unused key before giving up
    """

    def __init__(self, root: str, collision_retries: int = 5):
        """
        Initialize the storage service.

        Args:
            root: Directory that holds the per-owner namespaces
            collision_retries: Attempts to find an unused key per upload

        Raises:
            StorageFailure: If the root directory cannot be created
        """
        self.root = Path(root).expanduser().resolve()
        self.collision_retries = max(1, collision_retries)

        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFailure(
                f"Could not create the storage directory {self.root}: {e}"
            ) from e

        logger.info(f"Blob storage rooted at {self.root}")

    @staticmethod
    def namespace(owner_id: str) -> str:
        """Directory name and key prefix of an owner's namespace."""
        return hashlib.sha256(owner_id.encode("utf-8")).hexdigest()

    def _key_pattern(self, owner_id: str) -> Pattern:
        return re.compile(rf"^{self.namespace(owner_id)}_{_UUID}(\.[A-Za-z0-9]{{1,10}})?$")

    def _generate_key(self, owner_id: str, extension: str) -> str:
        return f"{self.namespace(owner_id)}_{uuid.uuid4()}{extension}"

    def _owner_dir(self, owner_id: str) -> Path:
        if not owner_id:
            raise InvalidInput("Owner id is required")
        return self.root / self.namespace(owner_id)

    def _resolve(self, owner_id: str, key: str) -> Optional[Path]:
        """
        Resolve a key strictly inside the owner's namespace.

        Returns None for anything that is not a key this service could have
        generated for `owner_id`, or that resolves elsewhere.
        """
        if not owner_id or not key:
            return None
        if not self._key_pattern(owner_id).match(key):
            return None

        owner_dir = (self.root / self.namespace(owner_id)).resolve()
        path = (owner_dir / key).resolve()
        if path.parent != owner_dir or not path.is_relative_to(self.root):
            return None
        return path

    def store(
        self,
        owner_id: str,
        content: Union[bytes, BinaryIO],
        original_name: str,
        content_type: Optional[str] = None
    ) -> StorageReference:
        """
        Persist a blob in the owner's namespace under a fresh key.

        The bytes are written to a hidden temporary file first and then
        published with a hard link, which never replaces an existing file.
        A failed call leaves nothing retrievable behind.

        Args:
            owner_id: Namespace to store into
            content: Raw bytes or a readable binary file object
            original_name: Client filename; only its extension is used
            content_type: MIME type reported by the client

        Returns:
            StorageReference describing the stored blob

        Raises:
            InvalidInput: If the filename is unsafe or the owner id is empty
            Conflict: If no unused key was found within the retry budget
            StorageFailure: If writing to disk fails
        """
        if not original_name or contains_traversal(original_name):
            raise InvalidInput(f"Filename contains invalid path sequence: {original_name!r}")

        owner_dir = self._owner_dir(owner_id)
        extension = extract_extension(original_name)

        try:
            owner_dir.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(prefix=_TEMP_PREFIX, dir=owner_dir)
        except OSError as e:
            raise StorageFailure(f"Could not prepare storage for {owner_id}: {e}") from e

        try:
            with os.fdopen(fd, "wb") as temp_file:
                if isinstance(content, (bytes, bytearray, memoryview)):
                    temp_file.write(content)
                else:
                    shutil.copyfileobj(content, temp_file)
                size = temp_file.tell()
                temp_file.flush()
                os.fsync(temp_file.fileno())

            for attempt in range(1, self.collision_retries + 1):
                key = self._generate_key(owner_id, extension)
                try:
                    os.link(temp_name, owner_dir / key)
                except FileExistsError:
                    logger.warning(f"Storage key collision for {owner_id} (attempt {attempt})")
                    continue

                logger.info(f"Stored {size} bytes for owner {owner_id} as {key}")
                return StorageReference(
                    owner_id=owner_id,
                    key=key,
                    size=size,
                    content_type=content_type or "application/octet-stream"
                )

            raise Conflict(
                f"Could not allocate a unique storage key after {self.collision_retries} attempts"
            )

        except OSError as e:
            logger.error(f"Failed to store file {original_name!r} for {owner_id}: {e}")
            raise StorageFailure(f"Could not store file {original_name}. Please try again!") from e

        finally:
            try:
                os.unlink(temp_name)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Could not remove temporary upload {temp_name}: {e}")

    def load(self, owner_id: str, key: str) -> BinaryIO:
        """
        Open a stored blob for reading.

        Args:
            owner_id: Namespace the blob was stored in
            key: Storage key returned by `store`

        Returns:
            Binary file object positioned at the start; the caller closes it

        Raises:
            BlobNotFound: If the key does not exist in the owner's namespace
            StorageFailure: If the file exists but cannot be opened
        """
        path = self._resolve(owner_id, key)
        if path is None:
            raise BlobNotFound(key)

        try:
            return open(path, "rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise BlobNotFound(key) from e
        except OSError as e:
            logger.error(f"Failed to open {key} for {owner_id}: {e}")
            raise StorageFailure(f"Could not read file {key}") from e

    def delete(self, owner_id: str, key: str) -> bool:
        """
        Delete a stored blob. Deleting an absent key is not an error.

        Args:
            owner_id: Namespace the blob was stored in
            key: Storage key returned by `store`

        Returns:
            True if a file was removed, False if there was nothing to remove

        Raises:
            StorageFailure: If the file exists but cannot be removed
        """
        path = self._resolve(owner_id, key)
        if path is None:
            return False

        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to delete {key} for {owner_id}: {e}")
            raise StorageFailure(f"Could not delete file {key}") from e

        logger.info(f"Deleted {key} for owner {owner_id}")
        return True

    def exists(self, owner_id: str, key: str) -> bool:
        """
        Check if a blob exists in the owner's namespace.

        Returns:
            True if file exists, False otherwise
        """
        path = self._resolve(owner_id, key)
        return path is not None and path.is_file()

    def usage(self, owner_id: str) -> int:
        """
        Bytes currently stored for an owner.

        Temporary upload files are not counted.
        """
        if not owner_id:
            return 0

        owner_dir = self.root / self.namespace(owner_id)
        if not owner_dir.is_dir():
            return 0

        pattern = self._key_pattern(owner_id)
        total = 0
        for entry in owner_dir.iterdir():
            if pattern.match(entry.name) and entry.is_file():
                total += entry.stat().st_size
        return total
