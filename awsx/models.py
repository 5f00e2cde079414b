# awsx/models.py
"""
Pydantic models shared by the file scanner and the synchronizer.
"""
import hashlib
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, model_validator


class FileRecord(BaseModel):
    """
    A file to be stored under `key`. Built from disk by `awsx.files` or
    supplied directly by the caller (in-memory files).

    An in-memory file supplied without a hash gets the MD5 of its content.
    """
    model_config = ConfigDict(frozen=True)

    # path relative to the scanned folder
    path: str = ''
    # object key, always '/' separated
    key: str
    # MD5 hex digest of the content
    hash: str = ''
    content_length: int = 0
    content_type: str = ''
    content: Optional[bytes] = None
    cache_control: Optional[str] = None
    # absolute file path and folder, only set for files read from disk
    file: Optional[str] = None
    dir: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def hash_content(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get('hash') or data.get('content') is None:
            return data
        content = data['content']
        if isinstance(content, str):
            content = content.encode('utf-8')
        return {**data, 'hash': hashlib.md5(content).hexdigest()}


class UploadedFile(FileRecord):
    # True means the file was skipped because the remote copy is identical
    ignored: bool = False


class RemoteObjectRecord(BaseModel):
    """What the destination is believed to currently hold."""
    model_config = ConfigDict(frozen=True)

    key: str
    hash: str


class SyncResult(BaseModel):
    updated: bool = False
    src_files: List[UploadedFile] = []
    uploaded_files: List[UploadedFile] = []
    deleted_files: List[RemoteObjectRecord] = []


class DiffResult(BaseModel):
    diff: bool = False
    src_files: List[FileRecord] = []
    unchanged_files: List[FileRecord] = []
    changed_files: List[FileRecord] = []
    deleted_files: List[RemoteObjectRecord] = []
