# tests/test_sns.py
import json
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from awsx.errors import AwsxError, InvalidArgumentError
from awsx.sns import Topic, format_attributes, publish

TOPIC_ARN = 'arn:aws:sns:ap-southeast-2:123456789012:alerts'


@pytest.fixture
def client() -> MagicMock:
    mock_client = MagicMock()
    mock_client.publish.return_value = {'MessageId': 'msg-1'}
    return mock_client


def test_format_attributes():
    assert format_attributes({
        'name': 'hello',
        'count': 123,
        'ratio': 0.5,
        'meta': {'a': 1},
        'raw': b'\x00\x03',
        'flag': True,
    }) == {
        'name': {'DataType': 'String', 'StringValue': 'hello'},
        'count': {'DataType': 'Number', 'StringValue': '123'},
        'ratio': {'DataType': 'Number', 'StringValue': '0.5'},
        'meta': {'DataType': 'String', 'StringValue': '{"a": 1}'},
        'raw': {'DataType': 'Binary', 'BinaryValue': b'\x00\x03'},
        'flag': {'DataType': 'String', 'StringValue': 'True'},
    }


@pytest.mark.parametrize("attributes", [None, {}, 'not-a-dict'])
def test_format_attributes_with_nothing_to_format(attributes):
    assert format_attributes(attributes) is None


def test_publish_to_topic(client):
    resp = publish(client, TOPIC_ARN, {'body': {'alert': 'cpu'}, 'attributes': {'level': 'high'}}, subject='CPU')

    assert resp == {'MessageId': 'msg-1'}
    client.publish.assert_called_once_with(
        Message=json.dumps({'alert': 'cpu'}),
        TopicArn=TOPIC_ARN,
        Subject='CPU',
        MessageAttributes={'level': {'DataType': 'String', 'StringValue': 'high'}},
    )


def test_publish_sms(client):
    publish(client, TOPIC_ARN, 'Your code is 1234', phone='+61420000000', subject='My Company Ltd', type='transactional')

    kwargs = client.publish.call_args.kwargs
    assert kwargs['PhoneNumber'] == '+61420000000'
    assert 'TopicArn' not in kwargs
    assert 'Subject' not in kwargs
    assert kwargs['MessageAttributes'] == {
        'AWS.SNS.SMS.SenderID': {'DataType': 'String', 'StringValue': 'MyCompanyLt'},
        'AWS.SNS.SMS.SMSType': {'DataType': 'String', 'StringValue': 'Transactional'},
    }


@pytest.mark.parametrize("payload", [None, '', {'attributes': {'a': 1}}])
def test_publish_requires_a_body(client, payload):
    with pytest.raises(InvalidArgumentError):
        publish(client, TOPIC_ARN, payload)
    client.publish.assert_not_called()


def test_publish_wraps_client_errors(client):
    client.publish.side_effect = ClientError({'Error': {'Code': 'NotFound', 'Message': 'Topic does not exist'}}, 'Publish')

    with pytest.raises(AwsxError) as exc_info:
        publish(client, TOPIC_ARN, 'hello')

    assert 'Topic does not exist' in str(exc_info.value)


def test_topic_requires_arn(client):
    with pytest.raises(InvalidArgumentError):
        Topic('', client=client)


def test_topic_publish(client):
    topic = Topic(TOPIC_ARN, client=client)

    topic.publish('hello')

    client.publish.assert_called_once_with(Message='hello', TopicArn=TOPIC_ARN, MessageAttributes={})


@patch('awsx.sns.make_client')
def test_topic_builds_its_client(mock_make_client):
    Topic(TOPIC_ARN, region='eu-west-1')

    mock_make_client.assert_called_once_with('sns', region='eu-west-1')
