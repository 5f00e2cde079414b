# tests/test_cloudwatch.py
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from awsx.cloudwatch import HOUR, MAX_ITERATION, MAX_LIMIT, MINUTE, CloudWatchLogs, build_time_range
from awsx.errors import AwsxError, InvalidArgumentError

NOW = 1_700_000_000_000


def log_event(ts: int, message: str) -> dict:
    return {
        'logStreamName': '2023/11/14/[$LATEST]abc',
        'timestamp': ts,
        'message': message,
        'ingestionTime': ts + 5,
        'eventId': f"id-{ts}",
    }


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def logs(client) -> CloudWatchLogs:
    return CloudWatchLogs(client=client)


@patch('awsx.cloudwatch._now_ms', return_value=NOW)
def test_default_time_range_is_last_three_hours(mock_now):
    assert build_time_range(None, 'err') == {'startTime': NOW - 3 * HOUR, 'endTime': NOW}


@patch('awsx.cloudwatch._now_ms', return_value=NOW)
def test_last_time_range(mock_now):
    assert build_time_range({'last': {'value': 15, 'unit': 'minute'}}, 'err') == {
        'startTime': NOW - 15 * MINUTE,
        'endTime': NOW,
    }


@patch('awsx.cloudwatch._now_ms', return_value=NOW)
def test_last_time_range_with_invalid_value_defaults_to_three(mock_now):
    assert build_time_range({'last': {'value': 'abc'}}, 'err')['startTime'] == NOW - 3 * HOUR


def test_last_time_range_with_unknown_unit():
    with pytest.raises(InvalidArgumentError) as exc_info:
        build_time_range({'last': {'value': 2, 'unit': 'month'}}, 'err')

    assert "'month' is not supported" in str(exc_info.value)


def test_explicit_dates():
    time_range = build_time_range({
        'start_date_utc': '2021-12-26T00:00:00Z',
        'end_date_utc': datetime(2021, 12, 27, tzinfo=timezone.utc),
    }, 'err')

    assert time_range == {'startTime': 1640476800000, 'endTime': 1640563200000}


def test_invalid_date():
    with pytest.raises(InvalidArgumentError) as exc_info:
        build_time_range({'start_date_utc': 'yesterday'}, 'err')

    assert 'start_date_utc' in str(exc_info.value)


def test_select_requires_log_group(logs, client):
    with pytest.raises(InvalidArgumentError):
        logs.select('')
    client.filter_log_events.assert_not_called()


@patch('awsx.cloudwatch._now_ms', return_value=NOW)
def test_select_single_page(mock_now, logs, client):
    client.filter_log_events.return_value = {
        'events': [log_event(NOW - 10, 'second'), log_event(NOW - 20, 'first')],
        'nextToken': 'token-2',
    }

    result = logs.select('/aws/lambda/my-fn', filter_pattern='ERROR', limit=50)

    client.filter_log_events.assert_called_once_with(
        logGroupName='/aws/lambda/my-fn', limit=50, startTime=NOW - 3 * HOUR, endTime=NOW, filterPattern='ERROR')
    assert result['count'] == 2
    assert result['iteration'] == 1
    assert result['next_token'] == 'token-2'
    assert result['message'] is None
    assert [e['message'] for e in result['events']] == ['first', 'second']

    event = result['events'][0]
    assert event['log_stream_name'] == '2023/11/14/[$LATEST]abc'
    assert event['event_id'] == f"id-{NOW - 20}"
    assert event['timestamp'] == datetime(2023, 11, 14, 22, 13, 19, 980000, tzinfo=timezone.utc)


def test_select_caps_the_limit(logs, client):
    client.filter_log_events.return_value = {'events': []}

    logs.select('/aws/lambda/my-fn', limit=50000)

    assert client.filter_log_events.call_args.kwargs['limit'] == MAX_LIMIT


def test_select_fetch_all_follows_tokens_and_sorts_desc(logs, client):
    client.filter_log_events.side_effect = [
        {'events': [log_event(1000, 'a')], 'nextToken': 't1'},
        {'events': [log_event(3000, 'c')], 'nextToken': 't2'},
        {'events': [log_event(2000, 'b')]},
    ]

    result = logs.select('/aws/lambda/my-fn', next_token='t0', fetch_all=True, sort='desc')

    tokens = [c.kwargs.get('nextToken') for c in client.filter_log_events.call_args_list]
    assert tokens == ['t0', 't1', 't2']
    assert result['iteration'] == 3
    assert result['next_token'] is None
    assert [e['message'] for e in result['events']] == ['c', 'b', 'a']


def test_select_stops_at_max_iteration(logs, client, capsys):
    client.filter_log_events.return_value = {'events': [log_event(1000, 'a')], 'nextToken': 'more'}

    result = logs.select('/aws/lambda/my-fn', fetch_all=True)

    assert client.filter_log_events.call_count == MAX_ITERATION
    assert result['count'] == MAX_ITERATION
    assert result['next_token'] == 'more'
    assert 'Max iteration(100) exceeded' in result['message']
    assert 'Max iteration' in capsys.readouterr().out


def test_select_wraps_client_errors(logs, client):
    client.filter_log_events.side_effect = ClientError(
        {'Error': {'Code': 'ResourceNotFoundException', 'Message': 'The specified log group does not exist.'}},
        'FilterLogEvents')

    with pytest.raises(AwsxError) as exc_info:
        logs.select('/aws/lambda/missing')

    assert exc_info.value.message == 'Failed to select CloudWatch logs'
    assert 'after the 1th iteration' in str(exc_info.value)
