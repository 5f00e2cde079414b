# awsx/s3.py
"""
S3 bucket and object helpers.

Doc: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/s3.html
"""
import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from botocore.exceptions import BotoCoreError, ClientError

from .clients import make_client
from .errors import invalid_argument, wrap_errors
from .files import Patterns
from .models import DiffResult, SyncResult, UploadedFile
from .sync import MAX_DELETE_KEYS, FileLike, RemoteLike, Synchronizer

DEFAULT_REGION = 'us-east-1'
AWS_ERRORS = (BotoCoreError, ClientError)


def _serialize_body(body: Any) -> Union[bytes, str]:
    if body is None:
        return ''
    if isinstance(body, (bytes, bytearray, str)):
        return body
    if isinstance(body, datetime):
        return body.isoformat()
    if isinstance(body, (dict, list, tuple)):
        return json.dumps(body, indent=2, default=str)
    return str(body)


def _body_length(body: Union[bytes, str]) -> int:
    return len(body.encode('utf-8')) if isinstance(body, str) else len(body)


def _no_website_configuration(error: ClientError) -> bool:
    details = error.response.get('Error', {})
    return (details.get('Code') == 'NoSuchWebsiteConfiguration'
            or 'does not have a website configuration' in (details.get('Message') or ''))


class S3:
    """
    Thin wrapper around an S3 client. Also acts as the object storage
    collaborator of the Synchronizer (exists, put_object, delete_objects).
    """

    def __init__(self, client=None, region: Optional[str] = None, max_concurrency: Optional[int] = None):
        self.client = client or make_client('s3', region=region)
        self.synchronizer = Synchronizer(self, max_concurrency=max_concurrency)

    # Buckets

    def bucket_exists(self, bucket: str) -> bool:
        try:
            self.client.head_bucket(Bucket=bucket)
            return True
        except AWS_ERRORS:
            return False

    exists = bucket_exists

    def get_bucket(self, bucket: str, website: bool = False) -> Dict[str, Any]:
        """
        Gets a bucket details.

        Args:
            bucket: Bucket name.
            website: Includes the website configuration and endpoint.

        Returns:
            A dict with 'region', 'location', 'regional_location',
            'bucket_domain_name' and 'bucket_regional_domain_name'. With
            `website=True`, also 'website' (bool) and, when configured,
            'website_endpoint' plus the raw website configuration.
        """
        err_msg = f"Failed to get bucket '{bucket}' details"
        if not bucket:
            raise invalid_argument(err_msg, "Missing required argument 'bucket'")

        all_errors = []
        details: Dict[str, Any] = {}

        try:
            location = self.client.get_bucket_location(Bucket=bucket)
            details['region'] = location.get('LocationConstraint') or DEFAULT_REGION
        except AWS_ERRORS as e:
            all_errors.append(e)

        if website:
            try:
                config = self.client.get_bucket_website(Bucket=bucket)
                config.pop('ResponseMetadata', None)
                details.update(config)
                details['website'] = True
            except ClientError as e:
                if _no_website_configuration(e):
                    details['website'] = False
                else:
                    all_errors.append(e)
            except BotoCoreError as e:
                all_errors.append(e)

        if all_errors:
            raise wrap_errors(err_msg, all_errors)

        region = details.pop('region')
        output = {
            'region': region,
            'location': f"http://{bucket}.s3.amazonaws.com",
            'regional_location': f"http://{bucket}.s3.{region}.amazonaws.com",
            **details,
        }
        if output.get('website'):
            output['website_endpoint'] = f"http://{bucket}.s3-website-{region}.amazonaws.com"

        output['bucket_domain_name'] = f"{bucket}.s3.amazonaws.com"
        output['bucket_regional_domain_name'] = f"{bucket}.s3.{region}.amazonaws.com"
        return output

    def list_buckets(self) -> Dict[str, Any]:
        """Lists all the buckets in the account."""
        try:
            resp = self.client.list_buckets()
        except AWS_ERRORS as e:
            raise wrap_errors('Failed to list buckets', e)

        owner = resp.get('Owner') or {}
        return {
            'buckets': [{'name': b.get('Name'), 'creation_date': b.get('CreationDate')} for b in resp.get('Buckets', [])],
            'owner': {'id': owner.get('ID'), 'display_name': owner.get('DisplayName')},
        }

    def create_bucket(self, name: str, acl: str = 'private', region: Optional[str] = None,
                      tags: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Creates a bucket, then tags it.

        Args:
            name: Bucket name.
            acl: 'private' (default), 'public-read' (for website), 'public-read-write', 'authenticated-read'.
            region: Default 'us-east-1'.
            tags: e.g., {'Project': 'website'}

        Returns:
            {'location': 'http://<NAME>.s3.amazonaws.com/'}
        """
        err_msg = f"Failed to create bucket '{name}'"
        if not name:
            raise invalid_argument(err_msg, "Missing required argument 'name'")

        region = region or DEFAULT_REGION
        params = {'Bucket': name, 'ACL': acl or 'private'}
        # us-east-1 is the default location and is rejected as an explicit constraint
        if region != DEFAULT_REGION:
            params['CreateBucketConfiguration'] = {'LocationConstraint': region}

        try:
            resp = self.client.create_bucket(**params)
        except AWS_ERRORS as e:
            raise wrap_errors(err_msg, e)

        if tags:
            try:
                self.client.put_bucket_tagging(
                    Bucket=name,
                    Tagging={'TagSet': [{'Key': k, 'Value': v} for k, v in tags.items()]},
                )
            except AWS_ERRORS as e:
                raise wrap_errors(f"Bucket '{name}' successfully created, but tagging it failed.", e)

        return {'location': resp.get('Location')}

    def set_website(self, bucket: str, index: str = 'index.html', error: Optional[str] = None,
                    redirect: Optional[Dict[str, str]] = None) -> None:
        """
        Configures a bucket as a website and makes its objects publicly readable.

        Args:
            bucket: Bucket name.
            index: Index document suffix.
            error: Error document key (e.g., 'error.html').
            redirect: {'hostname': ..., 'protocol': 'http'|'https'} redirects all requests.
        """
        err_msg = f"Failed to configure bucket '{bucket}' as a website"
        if not bucket:
            raise invalid_argument(err_msg, "Missing required argument 'bucket'")

        config: Dict[str, Any] = {'IndexDocument': {'Suffix': index or 'index.html'}}
        if error:
            config['ErrorDocument'] = {'Key': error}
        if redirect and redirect.get('hostname'):
            # RedirectAllRequestsTo cannot be combined with the other settings
            config = {
                'RedirectAllRequestsTo': {
                    'HostName': redirect['hostname'],
                    'Protocol': redirect.get('protocol') or 'http',
                }
            }

        try:
            self.client.put_bucket_website(Bucket=bucket, WebsiteConfiguration=config)
        except AWS_ERRORS as e:
            raise wrap_errors(err_msg, e)

        policy = {
            'Version': '2012-10-17',
            'Statement': [{
                'Sid': 'PublicReadGetObject',
                'Effect': 'Allow',
                'Principal': '*',
                'Action': 's3:GetObject',
                'Resource': f"arn:aws:s3:::{bucket}/*",
            }],
        }
        try:
            self.client.put_bucket_policy(Bucket=bucket, Policy=json.dumps(policy))
        except AWS_ERRORS as e:
            raise wrap_errors(
                f"Bucket '{bucket}' successfully configured as website, but failed to have its policy "
                "updated to allow 's3:GetObject'.", e)

    # Objects

    def get_object(self, bucket: str, key: str) -> Dict[str, Any]:
        err_msg = f"Failed to get object from bucket '{bucket}/{key}'."
        if not bucket:
            raise invalid_argument(err_msg, "Missing required argument 'bucket'")
        if not key:
            raise invalid_argument(err_msg, "Missing required argument 'key'")

        try:
            return self.client.get_object(Bucket=bucket, Key=key)
        except AWS_ERRORS as e:
            raise wrap_errors(err_msg, e)

    def put_object(self, bucket: str, key: str, body: Any = None, content_type: Optional[str] = None,
                   content_length: Optional[int] = None, cache_control: Optional[str] = None,
                   server_side_encryption: Optional[str] = None, storage_class: Optional[str] = None,
                   tagging: Optional[str] = None) -> Dict[str, Any]:
        """
        Uploads an object under a specific key.

        Args:
            bucket: e.g., 'my-super-bucket'
            key: e.g., 'assets/images/hello.jpeg'
            body: bytes or str are sent as is, datetimes as ISO strings and
                dicts/lists as indented JSON. None sends an empty object.
            content_type: e.g., 'image/jpeg'
            content_length: Defaults to the body size.
            cache_control: e.g., 'max-age=172800'
            server_side_encryption: e.g., 'AES256'
            storage_class: e.g., 'STANDARD_IA'
            tagging: e.g., 'key1=value1&key2=value2'
        """
        err_msg = f"Failed to put object in S3 bucket '{bucket}'."
        if not bucket:
            raise invalid_argument(err_msg, "Missing required argument 'bucket'")
        if not key:
            raise invalid_argument(err_msg, "Missing required argument 'key'")

        payload = _serialize_body(body)
        params = {
            'Bucket': bucket,
            'Key': key,
            'Body': payload,
            'ContentLength': content_length or _body_length(payload),
        }
        optional = {
            'ContentType': content_type,
            'CacheControl': cache_control,
            'ServerSideEncryption': server_side_encryption,
            'StorageClass': storage_class,
            'Tagging': tagging,
        }
        params.update({k: v for k, v in optional.items() if v})

        try:
            return self.client.put_object(**params)
        except AWS_ERRORS as e:
            raise wrap_errors(err_msg, e)

    def remove_objects(self, bucket: str, keys: Iterable[Union[str, Dict[str, str]]]) -> None:
        """
        Removes multiple keys from a bucket (max. 1000).

        Args:
            bucket: Bucket name.
            keys: e.g., ['key01', 'key02', {'name': 'key03', 'version': '123'}]

        Raises:
            InvalidArgumentError: If `bucket` is missing or more than 1000 keys
                are passed. No request is sent in that case.
        """
        err_msg = f"Failed to remove objects from S3 bucket '{bucket}'"
        if not bucket:
            raise invalid_argument(err_msg, "Missing required 'bucket' argument")

        keys = list(keys or [])
        if not keys:
            return
        if len(keys) > MAX_DELETE_KEYS:
            raise invalid_argument(
                err_msg,
                f"'S3.deleteObjects' only support a maximum of {MAX_DELETE_KEYS} keys to be deleted at once. "
                f"Current request attempts to delete {len(keys)} keys.")

        objects = []
        for key in keys:
            if isinstance(key, str):
                objects.append({'Key': key})
            elif key and key.get('name'):
                obj = {'Key': key['name']}
                if key.get('version'):
                    obj['VersionId'] = key['version']
                objects.append(obj)

        try:
            resp = self.client.delete_objects(Bucket=bucket, Delete={'Objects': objects})
        except AWS_ERRORS as e:
            raise wrap_errors(err_msg, e)

        # delete_objects reports per-key failures in the body instead of raising
        failed = resp.get('Errors') or []
        if failed:
            raise wrap_errors(err_msg, [Exception(f"{f.get('Key')}: {f.get('Code')} {f.get('Message')}") for f in failed])

    def delete_objects(self, bucket: str, keys: List[str]) -> None:
        self.remove_objects(bucket, keys)

    def sync_files(self, bucket: str, files: Optional[Iterable[FileLike]] = None, dir: Optional[str] = None,
                   ignore: Patterns = None, existing_objects: Optional[Iterable[RemoteLike]] = None,
                   remove: bool = False, no_warning: bool = False) -> SyncResult:
        """Syncs local files (on disk, in memory or both) with a bucket. See Synchronizer.sync."""
        return self.synchronizer.sync(bucket, files=files, dir=dir, ignore=ignore,
                                      existing_objects=existing_objects, remove=remove, no_warning=no_warning)

    def upload_files(self, bucket: str, files: Optional[Iterable[FileLike]] = None, dir: Optional[str] = None,
                     ignore: Patterns = None, ignore_objects: Optional[Iterable[RemoteLike]] = None) -> List[UploadedFile]:
        return self.synchronizer.upload(bucket, files=files, dir=dir, ignore=ignore, ignore_objects=ignore_objects)

    def diff_files(self, files: Optional[Iterable[FileLike]] = None, dir: Optional[str] = None,
                   ignore: Patterns = None, previous_files: Optional[Iterable[RemoteLike]] = None) -> DiffResult:
        return self.synchronizer.diff(files=files, dir=dir, ignore=ignore, previous_files=previous_files)

    @staticmethod
    def get_website_props(website: Union[bool, Dict[str, Any], None]) -> Dict[str, Any]:
        """
        Splits a website definition into the bucket website settings and the
        extra settings (cors, content, cloudfront).

        `routing_rules` is serialized to JSON when it is not already a string.
        """
        if not website:
            return {}
        if isinstance(website, bool):
            return {'website': {}}

        web = dict(website)
        cors = web.pop('cors', None)
        content = web.pop('content', None)
        cloudfront = web.pop('cloudfront', None)

        if web.get('routing_rules') and not isinstance(web['routing_rules'], str):
            web['routing_rules'] = json.dumps(web['routing_rules'])

        return {
            'website': web,
            'cors_rules': cors,
            'content': content,
            'cloudfront': cloudfront,
        }

