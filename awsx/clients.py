# awsx/clients.py
from typing import Optional

import boto3

from .config import get_settings

# API versions pinned by the wrappers.
API_VERSIONS = {
    's3': '2006-03-01',
    'logs': '2014-03-28',
    'sns': '2010-03-31',
    'ssm': '2014-11-06',
    'resourcegroupstaggingapi': '2017-01-26',
}


def make_client(service_name: str, region: Optional[str] = None, **kwargs):
    """
    Creates a boto3 client for `service_name`.

    The region falls back to the configured settings, then to the boto3
    default resolution chain when neither is set.
    """
    region_name = region or get_settings().region
    params = {'service_name': service_name}
    if region_name:
        params['region_name'] = region_name
    if service_name in API_VERSIONS:
        params['api_version'] = API_VERSIONS[service_name]
    params.update(kwargs)
    return boto3.client(**params)
