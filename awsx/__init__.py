# awsx/__init__.py
from .cloudwatch import CloudWatchLogs
from .config import Settings, get_settings
from .errors import AwsxError, InvalidArgumentError
from .models import DiffResult, FileRecord, RemoteObjectRecord, SyncResult, UploadedFile
from .parameter_store import ParameterStore
from .resource import ResourceTagging
from .s3 import S3
from .sns import Topic
from .sync import Synchronizer

__version__ = '0.1.0'
