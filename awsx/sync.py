# awsx/sync.py
"""
Synchronizes files (on disk, in memory or both) with an object storage
destination.

The remote state is never listed here: the caller passes the objects it
believes already exist (key + hash) and only the difference is uploaded or
deleted.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, List, Optional, Protocol, Union

from pydantic import ValidationError

from .config import get_settings
from .errors import AwsxError, InvalidArgumentError, invalid_argument, wrap_errors
from .files import Patterns, get_files
from .models import DiffResult, FileRecord, RemoteObjectRecord, SyncResult, UploadedFile

# Maximum number of keys a single delete_objects call accepts.
MAX_DELETE_KEYS = 1000

FileLike = Union[FileRecord, dict]
RemoteLike = Union[RemoteObjectRecord, dict]


class ObjectStorage(Protocol):
    """What the synchronizer needs from the destination (see awsx.s3.S3)."""

    def exists(self, bucket: str) -> bool: ...

    def put_object(self, bucket: str, key: str, body: Any, content_type: Optional[str] = None,
                   content_length: Optional[int] = None, cache_control: Optional[str] = None) -> dict: ...

    def delete_objects(self, bucket: str, keys: List[str]) -> None: ...


class UploadError(AwsxError):
    """A single file that could not be uploaded."""

    def __init__(self, key: str, cause: BaseException):
        super().__init__(f"Failed to upload '{key}': {cause}", [cause])
        self.key = key


def _validate_all(model, items, name: str) -> list:
    records, all_errors = [], []
    for idx, item in enumerate(items or []):
        if isinstance(item, model):
            records.append(item)
            continue
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            all_errors.append(ValueError(f"Invalid '{name}[{idx}]': {e}"))
    if all_errors:
        raise InvalidArgumentError(f"Invalid '{name}' argument", all_errors)
    return records


def _to_files(files: Optional[Iterable[FileLike]]) -> List[FileRecord]:
    return _validate_all(FileRecord, files, 'files')


def _to_remote(objects: Optional[Iterable[RemoteLike]], name: str = 'existing_objects') -> List[RemoteObjectRecord]:
    return _validate_all(RemoteObjectRecord, objects, name)


def _rewrap(message: str, error: AwsxError) -> AwsxError:
    """Adds the operation context to `error`, keeping it a validation error if it was one."""
    wrapped = wrap_errors(message, error)
    if isinstance(error, InvalidArgumentError):
        return InvalidArgumentError(message, wrapped.errors)
    return wrapped


def compute_deletions(files: List[FileRecord], existing: List[RemoteObjectRecord]) -> List[RemoteObjectRecord]:
    """Remote objects whose key is no longer carried by any file (hash is irrelevant)."""
    keys = {f.key for f in files}
    return [o for o in existing if o.key not in keys]


def is_unchanged(file: FileRecord, existing: List[RemoteObjectRecord]) -> bool:
    return any(o.key == file.key and o.hash == file.hash for o in existing)


class Synchronizer:
    """
    Diffs a file set against a snapshot of remote objects and applies the
    difference through an ObjectStorage collaborator.

    Uploads run on a fixed size thread pool. Every upload is attempted even
    when a sibling fails; the failures are then raised together.
    """

    def __init__(self, storage: ObjectStorage, max_concurrency: Optional[int] = None):
        self.storage = storage
        self.max_concurrency = max_concurrency or get_settings().max_concurrency

    def resolve_files(self, files: Optional[Iterable[FileLike]] = None, dir: Optional[str] = None,
                      ignore: Patterns = None) -> List[FileRecord]:
        """Explicit files first, then the files found under `dir` (content included)."""
        resolved = _to_files(files)
        if dir:
            resolved.extend(get_files(dir, include_content=True, ignore=ignore,
                                      max_concurrency=self.max_concurrency))
        return resolved

    def diff(self, files: Optional[Iterable[FileLike]] = None, dir: Optional[str] = None,
             ignore: Patterns = None, previous_files: Optional[Iterable[RemoteLike]] = None) -> DiffResult:
        """
        Gets the difference between the local files and `previous_files`
        without touching the destination.
        """
        err_msg = 'Failed to get the difference between files'
        try:
            src_files = self.resolve_files(files, dir, ignore)
        except AwsxError as e:
            raise _rewrap(err_msg, e)

        previous = _to_remote(previous_files, 'previous_files')
        unchanged_files, changed_files = [], []
        for file in src_files:
            if is_unchanged(file, previous):
                unchanged_files.append(file)
            else:
                changed_files.append(file)
        deleted_files = compute_deletions(src_files, previous)

        return DiffResult(
            diff=bool(deleted_files or changed_files),
            src_files=src_files,
            unchanged_files=unchanged_files,
            changed_files=changed_files,
            deleted_files=deleted_files,
        )

    def upload(self, bucket: str, files: Optional[Iterable[FileLike]] = None, dir: Optional[str] = None,
               ignore: Patterns = None, ignore_objects: Optional[Iterable[RemoteLike]] = None) -> List[UploadedFile]:
        """
        Uploads files to `bucket`, skipping those that match both the key
        AND the hash of an entry in `ignore_objects`.

        Returns:
            One UploadedFile per source file, in the source order. Skipped
            files have `ignored=True`.

        Raises:
            InvalidArgumentError: If `bucket` is missing.
            AwsxError: If at least one upload failed. `errors` lists every failure.
        """
        err_msg = f"Failed to upload files to S3 bucket '{bucket}'"
        if not bucket:
            raise invalid_argument(err_msg, "Missing required 'bucket' argument")

        try:
            src_files = self.resolve_files(files, dir, ignore)
        except AwsxError as e:
            raise _rewrap(err_msg, e)
        if not src_files:
            return []

        skip = _to_remote(ignore_objects, 'ignore_objects')

        # Validate everything before the first transfer starts
        all_errors = []
        for idx, file in enumerate(src_files):
            if not file.key:
                all_errors.append(ValueError(f"Missing required 'files[{idx}].key' property"))
            if file.content is None:
                all_errors.append(ValueError(f"Missing required 'files[{idx}].content' property"))
        if all_errors:
            raise wrap_errors(err_msg, all_errors)

        def _upload(file: FileRecord):
            if is_unchanged(file, skip):
                return UploadedFile.model_validate({**file.model_dump(), 'ignored': True}), None
            try:
                self.storage.put_object(
                    bucket,
                    file.key,
                    file.content,
                    content_type=file.content_type or None,
                    content_length=file.content_length or None,
                    cache_control=file.cache_control,
                )
            except Exception as e:
                return None, UploadError(file.key, e)
            return UploadedFile.model_validate({**file.model_dump(), 'ignored': False}), None

        with ThreadPoolExecutor(max_workers=self.max_concurrency) as pool:
            results = list(pool.map(_upload, src_files))

        all_errors = [error for _, error in results if error]
        if all_errors:
            raise AwsxError(err_msg, all_errors)

        return [uploaded for uploaded, _ in results]

    def sync(self, bucket: str, files: Optional[Iterable[FileLike]] = None, dir: Optional[str] = None,
             ignore: Patterns = None, existing_objects: Optional[Iterable[RemoteLike]] = None,
             remove: bool = False, no_warning: bool = False) -> SyncResult:
        """
        Syncs files with a bucket.

        Args:
            bucket: Bucket name.
            files: In-memory files (FileRecords or dicts with the same fields).
            dir: Local folder to scan recursively.
            ignore: Glob ignore pattern(s) for files under `dir` (e.g., '**/node_modules/**').
            existing_objects: Snapshot of the remote objects ({key, hash}).
                Files matching both the key and the hash are not uploaded.
            remove: True means every existing object is deleted and nothing is uploaded.
            no_warning: Silences the warning printed when the bucket does not exist.

        Returns:
            A SyncResult. `updated` is True if at least one file was
            uploaded or deleted. If the bucket does not exist, an empty
            SyncResult is returned and nothing is changed.

        Raises:
            InvalidArgumentError: If `bucket` is missing or more than 1000
                objects would have to be deleted.
            AwsxError: If the files could not be read or at least one upload failed.
        """
        err_msg = f"Failed to sync files with S3 bucket '{bucket}'"
        if not bucket:
            raise invalid_argument(err_msg, "Missing required 'bucket' argument")

        existing = _to_remote(existing_objects)

        # Step 1: Resolve the local file set
        try:
            src_files = self.resolve_files(files, dir, ignore)
        except AwsxError as e:
            raise _rewrap(err_msg, e)

        if remove:
            src_files = []

        deleted_files = compute_deletions(src_files, existing)
        if len(deleted_files) > MAX_DELETE_KEYS:
            raise invalid_argument(
                err_msg,
                f"'S3.deleteObjects' only support a maximum of {MAX_DELETE_KEYS} keys to be deleted at once. "
                f"Current request attempts to delete {len(deleted_files)} keys.")

        # Step 2: Nothing to sync against
        if not self.storage.exists(bucket):
            if not no_warning:
                print(f"⚠️ WARNING: Bucket '{bucket}' does not exist (yet). Synching files aborted.")
            return SyncResult()

        # Step 3: Upload new and changed files
        try:
            uploaded = self.upload(bucket, files=src_files, ignore_objects=existing)
        except AwsxError as e:
            raise AwsxError(err_msg, e.errors)

        # Step 4: Delete what is no longer there, in a single batch
        if deleted_files:
            try:
                self.storage.delete_objects(bucket, [f.key for f in deleted_files])
            except Exception as e:
                raise wrap_errors(err_msg, e)

        uploaded_files = [f for f in uploaded if not f.ignored]
        print(f"✅ Bucket '{bucket}' synced: {len(uploaded_files)} uploaded, "
              f"{len(uploaded) - len(uploaded_files)} unchanged, {len(deleted_files)} deleted.")

        return SyncResult(
            updated=bool(uploaded_files or deleted_files),
            src_files=uploaded,
            uploaded_files=uploaded_files,
            deleted_files=deleted_files,
        )
