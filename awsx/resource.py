# awsx/resource.py
"""
Resource Groups Tagging API lookups.

WARNING: Some services are global (e.g., 'cloudfront'), their resources live in 'us-east-1'.
"""
from typing import Any, Dict, List, Optional, Union

from botocore.exceptions import BotoCoreError, ClientError

from .clients import make_client
from .errors import invalid_argument, wrap_errors


class ResourceTagging:
    """
    Finds resources by tag. One client is created per region and reused.
    `client_factory(region)` can be injected to build those clients.
    """

    def __init__(self, client_factory=None):
        self.client_factory = client_factory or (lambda region: make_client('resourcegroupstaggingapi', region=region))
        self._clients = {}

    def _client(self, region: str):
        if region not in self._clients:
            self._clients[region] = self.client_factory(region)
        return self._clients[region]

    def get_by_tags(self, tags: Dict[str, str], region: str,
                    types: Optional[List[str]] = None) -> Union[List, Dict[str, Any]]:
        """
        Gets the resources carrying all the given tags.

        Args:
            tags: e.g., {'Project': 'website', 'Env': 'prod'}
            region: Region to search.
            types: e.g., ['ec2:instance', 'cloudfront:distribution']

        Returns:
            [] when `tags` is empty, otherwise
            {'pagination_token': str, 'resources': [{'arn': str, 'tags': dict}]}
        """
        err_msg = 'Failed to get resources by tag'
        if tags is None:
            raise invalid_argument(err_msg, "Missing required argument 'tags'")
        if not region:
            raise invalid_argument(err_msg, "Missing required argument 'region'")
        if not tags:
            return []

        params: Dict[str, Any] = {
            'TagFilters': [{'Key': key, 'Values': [value]} for key, value in tags.items()],
        }
        if types:
            params['ResourceTypeFilters'] = list(types)

        try:
            resp = self._client(region).get_resources(**params)
        except (BotoCoreError, ClientError) as e:
            raise wrap_errors(err_msg, e)

        return {
            'pagination_token': resp.get('PaginationToken'),
            'resources': [
                {
                    'arn': r.get('ResourceARN'),
                    'tags': {t['Key']: t['Value'] for t in r.get('Tags', [])},
                }
                for r in resp.get('ResourceTagMappingList', [])
            ],
        }
