# awsx/sns.py
"""
SNS publishing.

Doc: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/sns/client/publish.html
"""
import json
import re
from typing import Any, Dict, Optional, Union

from botocore.exceptions import BotoCoreError, ClientError

from .clients import make_client
from .errors import invalid_argument, wrap_errors

SMS_TYPES = {'promotional': 'Promotional', 'transactional': 'Transactional'}
# Sender ids are limited to 11 characters without spaces
SENDER_ID_MAX_LENGTH = 11


def format_attributes(attributes: Optional[Dict[str, Any]]) -> Optional[Dict[str, Dict[str, Any]]]:
    """
    Maps lean attributes to SNS MessageAttributes.

    e.g., {'name': 'hello', 'count': 123, 'meta': {'a': 1}, 'raw': b'\\x00\\x03'} becomes
        {
            'name': {'DataType': 'String', 'StringValue': 'hello'},
            'count': {'DataType': 'Number', 'StringValue': '123'},
            'meta': {'DataType': 'String', 'StringValue': '{"a": 1}'},
            'raw': {'DataType': 'Binary', 'BinaryValue': b'\\x00\\x03'},
        }
    Returns None when there is nothing to format.
    """
    if not attributes or not isinstance(attributes, dict):
        return None

    formatted = {}
    for key, value in attributes.items():
        if isinstance(value, (bytes, bytearray)):
            formatted[key] = {'DataType': 'Binary', 'BinaryValue': bytes(value)}
        elif isinstance(value, (dict, list)):
            formatted[key] = {'DataType': 'String', 'StringValue': json.dumps(value)}
        elif isinstance(value, str):
            formatted[key] = {'DataType': 'String', 'StringValue': value}
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            formatted[key] = {'DataType': 'Number', 'StringValue': str(value)}
        else:
            formatted[key] = {'DataType': 'String', 'StringValue': str(value)}
    return formatted


def publish(client, topic_arn: str, payload: Union[str, Dict[str, Any]], phone: Optional[str] = None,
            subject: Optional[str] = None, type: Optional[str] = None) -> Dict[str, Any]:
    """
    Publishes a message to a topic, or as an SMS when `phone` is set.

    Args:
        client: boto3 SNS client.
        topic_arn: Topic's ARN.
        payload: A string body, or {'body': ..., 'attributes': {...}}. Non
            string bodies are sent as JSON (max size is 256KB).
        phone: E.164 phone number (e.g., '+61420496232').
        subject: Email subject, or the SMS sender id when `phone` is set.
        type: SMS type, 'promotional' or 'transactional'.

    Returns:
        The SNS response ('MessageId', 'ResponseMetadata').
    """
    err_msg = 'Failed to publish message to topic'
    if not topic_arn:
        raise invalid_argument(err_msg, "Missing required argument 'topic_arn'")
    if not payload:
        raise invalid_argument(err_msg, "Missing required argument 'payload'")

    if isinstance(payload, str):
        body, attributes = payload, None
    else:
        body, attributes = payload.get('body'), payload.get('attributes')
    if not body:
        raise invalid_argument(err_msg, "Missing required argument 'payload.body'")

    message = json.dumps(body) if isinstance(body, (dict, list)) else str(body)
    message_attributes = format_attributes(attributes) or {}

    params: Dict[str, Any] = {'Message': message}
    if phone:
        params['PhoneNumber'] = phone
    else:
        params['TopicArn'] = topic_arn

    if subject:
        if phone:
            sender_id = re.sub(r'\s*', '', subject)[:SENDER_ID_MAX_LENGTH]
            message_attributes.update(format_attributes({'AWS.SNS.SMS.SenderID': sender_id}))
        else:
            params['Subject'] = subject

    if phone and type in SMS_TYPES:
        message_attributes.update(format_attributes({'AWS.SNS.SMS.SMSType': SMS_TYPES[type]}))

    params['MessageAttributes'] = message_attributes

    try:
        return client.publish(**params)
    except (BotoCoreError, ClientError) as e:
        raise wrap_errors(err_msg, e)


class Topic:
    """An SNS topic bound to its ARN."""

    def __init__(self, arn: str, client=None, region: Optional[str] = None):
        if not arn:
            raise invalid_argument('Failed to create topic', "Missing required argument 'arn'")
        self.arn = arn
        self.client = client or make_client('sns', region=region)

    def publish(self, payload: Union[str, Dict[str, Any]], phone: Optional[str] = None,
                subject: Optional[str] = None, type: Optional[str] = None) -> Dict[str, Any]:
        return publish(self.client, self.arn, payload, phone=phone, subject=subject, type=type)
