# awsx/cloudwatch.py
"""
CloudWatch Logs queries.

Doc: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/logs/client/filter_log_events.html
"""
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from botocore.exceptions import BotoCoreError, ClientError

from .clients import make_client
from .errors import invalid_argument, wrap_errors

MINUTE = 60 * 1000
HOUR = 60 * MINUTE
DAY = 24 * HOUR
WEEK = 7 * DAY

UNITS = {'minute': MINUTE, 'hour': HOUR, 'day': DAY, 'week': WEEK}

MAX_LIMIT = 10000
# Each request returns up to 1MB, so this caps a query at ~100MB.
MAX_ITERATION = 100
DEFAULT_LAST_VALUE = 3

DateLike = Union[datetime, str, None]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _to_epoch_ms(value: DateLike, name: str, err_msg: str) -> int:
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            raise invalid_argument(
                err_msg,
                f"Wrong argument exception. '{name}' is expected to be a date or a parseable date "
                f"(e.g., '2021-12-26'). Failed to parse {value} to a UTC date.")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def _from_epoch_ms(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=value)


def build_time_range(time_range: Optional[Dict[str, Any]], err_msg: str) -> Dict[str, int]:
    """
    Converts a time range into the startTime/endTime epoch milliseconds.

    `last` wins over explicit dates. With neither, the last 3 hours are used.
    """
    time_range = time_range or {}
    last = time_range.get('last')
    start_date = time_range.get('start_date_utc')
    end_date = time_range.get('end_date_utc')

    if last:
        value = last.get('value')
        try:
            value = float(value)
        except (TypeError, ValueError):
            value = 0
        if value <= 0:
            value = DEFAULT_LAST_VALUE
        unit = last.get('unit') or 'hour'
        if unit not in UNITS:
            raise invalid_argument(err_msg, f"Wrong argument exception. 'unit' value '{unit}' is not supported.")
        now = _now_ms()
        return {'startTime': int(now - value * UNITS[unit]), 'endTime': now}

    if not start_date and not end_date:
        now = _now_ms()
        return {'startTime': now - DEFAULT_LAST_VALUE * HOUR, 'endTime': now}

    params = {}
    if start_date:
        params['startTime'] = _to_epoch_ms(start_date, 'start_date_utc', err_msg)
    if end_date:
        params['endTime'] = _to_epoch_ms(end_date, 'end_date_utc', err_msg)
    return params


class CloudWatchLogs:

    def __init__(self, client=None, region: Optional[str] = None):
        self.client = client or make_client('logs', region=region)

    def select(self, log_group: str, time_range: Optional[Dict[str, Any]] = None, next_token: Optional[str] = None,
               filter_pattern: Optional[str] = None, limit: Optional[int] = None, sort: str = 'asc',
               fetch_all: bool = False) -> Dict[str, Any]:
        """
        Gets the events of a log group, sorted by timestamp.

        Args:
            log_group: e.g., '/aws/lambda/my-function-dev'
            time_range: {'last': {'value': 3, 'unit': 'hour'}} where unit is
                'minute', 'hour' (default), 'day' or 'week', or
                {'start_date_utc': ..., 'end_date_utc': ...} as datetimes or
                ISO strings. Defaults to the last 3 hours.
            next_token: Continues a previous query.
            filter_pattern: e.g., '"ERROR" "timeout"'. Syntax at
                https://docs.aws.amazon.com/AmazonCloudWatch/latest/logs/FilterAndPatternSyntax.html
            limit: Max events per request. Default and max 10,000.
            sort: 'asc' (default) or 'desc'.
            fetch_all: Follows the pagination tokens (up to 100 requests).

        Returns:
            {'count', 'next_token', 'iteration', 'message', 'events'} where
            'message' is a warning when the iteration cap was hit and event
            'timestamp'/'ingestion_time' are UTC datetimes.
        """
        err_msg = 'Failed to select CloudWatch logs'
        if not log_group:
            raise invalid_argument(err_msg, "Missing required argument 'log_group'")

        params = {
            'logGroupName': log_group,
            'limit': MAX_LIMIT if fetch_all else min(limit or MAX_LIMIT, MAX_LIMIT),
            **build_time_range(time_range, err_msg),
        }
        if filter_pattern:
            params['filterPattern'] = filter_pattern

        count = MAX_ITERATION if fetch_all else 1
        events = []
        token = next_token
        iteration = 0
        for _ in range(count):
            iteration += 1
            request = dict(params)
            if token:
                request['nextToken'] = token
            try:
                result = self.client.filter_log_events(**request)
            except (BotoCoreError, ClientError) as e:
                raise wrap_errors(err_msg, f"Failed to extract logs after the {iteration}th iteration", e)

            token = result.get('nextToken')
            events.extend(result.get('events', []))
            if not token:
                break

        message = None
        if iteration == MAX_ITERATION and token:
            message = (f"WARNING: Max iteration({MAX_ITERATION}) exceeded. Failed to extract all logs. "
                       "Reduce the time range in order to fit all the data.")
            print(f"⚠️ {message}")

        sorted_events = sorted(events, key=lambda e: e.get('timestamp', 0), reverse=(sort == 'desc'))
        return {
            'count': len(events),
            'next_token': token,
            'iteration': iteration,
            'message': message,
            'events': [
                {
                    'log_stream_name': e.get('logStreamName'),
                    'timestamp': _from_epoch_ms(e.get('timestamp')),
                    'message': e.get('message'),
                    'ingestion_time': _from_epoch_ms(e.get('ingestionTime')),
                    'event_id': e.get('eventId'),
                }
                for e in sorted_events
            ],
        }
