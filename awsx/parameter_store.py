# awsx/parameter_store.py
"""
SSM Parameter Store get/put.

WARNING: Requires the 'ssm:GetParameter' and 'ssm:PutParameter' permissions.
"""
import json
from datetime import datetime
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .clients import make_client
from .errors import invalid_argument, wrap_errors

PARAMETER_TYPES = ('String', 'StringList', 'SecureString')


def _lower_first(key: str) -> str:
    return key[:1].lower() + key[1:]


def serialize_value(value: Any) -> str:
    """Parameter values are strings: objects become JSON, datetimes ISO and booleans 'true'/'false'."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    return str(value)


class ParameterStore:

    def __init__(self, client=None, region: Optional[str] = None):
        self.client = client or make_client('ssm', region=region)

    def get(self, name: str, version: Optional[str] = None, parse_json: bool = False) -> Optional[Dict[str, Any]]:
        """
        Gets a parameter.

        Args:
            name: Parameter name.
            version: Returns the latest version when not set.
            parse_json: Parses the value as JSON.

        Returns:
            None when the parameter does not exist, otherwise a dict with
            'name', 'type', 'value', 'version', 'lastModifiedDate', 'arn'
            and 'dataType'.
        """
        err_msg = f"Failed to get AWS Parameter store variable '{name or ''}'."
        if not name:
            raise invalid_argument(err_msg, "Missing required argument 'name'.")

        full_name = f"{name}:{version}" if version else name
        try:
            data = self.client.get_parameter(Name=full_name)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ParameterNotFound':
                return None
            raise wrap_errors(err_msg, e)
        except BotoCoreError as e:
            raise wrap_errors(err_msg, e)

        parameter = (data or {}).get('Parameter')
        if not parameter:
            return None

        output = {}
        for key, value in parameter.items():
            output['arn' if key == 'ARN' else _lower_first(key)] = value

        if parse_json and output.get('value'):
            try:
                output['value'] = json.loads(output['value'])
            except ValueError:
                raise wrap_errors(
                    err_msg, f"Failed to JSON parse Parameter Store '{full_name}'. Failed parsed value: {output['value']}")

        return output

    def put(self, name: str, value: Any, type: str = 'String', description: Optional[str] = None,
            overwrite: Optional[bool] = None, tags: Optional[Dict[str, str]] = None,
            tier: Optional[str] = None) -> Dict[str, Any]:
        """
        Creates or updates a parameter.

        Args:
            name: Parameter name.
            value: Any value, serialized with serialize_value.
            type: 'String' (default), 'StringList' or 'SecureString'.
            description: Free text.
            overwrite: Required to update an existing parameter.
            tags: A 'Name' tag is added when missing.
            tier: 'Standard' (default), 'Advanced' or 'Intelligent-Tiering'.

        Returns:
            {'version': int, 'tier': str}
        """
        err_msg = f"Failed to create/update AWS Parameter store variable '{name or ''}'."
        if not name:
            raise invalid_argument(err_msg, "Missing required 'name'.")
        if value is None:
            raise invalid_argument(err_msg, "Missing required 'value'.")
        type = type or 'String'
        if type not in PARAMETER_TYPES:
            raise invalid_argument(err_msg, f"Unsupported type '{type}'. Valid types are {', '.join(PARAMETER_TYPES)}.")

        params: Dict[str, Any] = {
            'Name': name,
            'Value': serialize_value(value),
            'Type': type,
        }
        if description:
            params['Description'] = description
        if isinstance(overwrite, bool):
            params['Overwrite'] = overwrite
        if tags is not None:
            all_tags = {'Name': name, **tags} if 'Name' not in tags else tags
            params['Tags'] = [{'Key': k, 'Value': v} for k, v in all_tags.items()]
        if tier:
            params['Tier'] = tier

        try:
            data = self.client.put_parameter(**params)
        except (BotoCoreError, ClientError) as e:
            raise wrap_errors(err_msg, e)

        return {'version': data.get('Version'), 'tier': data.get('Tier')}

