# tests/conftest.py
import threading
import time

import pytest


class FakeStorage:
    """
    In-memory object storage double. Records every call and tracks how many
    uploads are in flight at the same time.
    """

    def __init__(self, exists=True, fail_keys=(), put_delay=0.0):
        self._exists = exists
        self.fail_keys = set(fail_keys)
        self.put_delay = put_delay
        self.objects = {}
        self.exists_calls = []
        self.put_calls = []
        self.delete_calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def exists(self, bucket):
        self.exists_calls.append(bucket)
        return self._exists

    def put_object(self, bucket, key, body, content_type=None, content_length=None, cache_control=None):
        with self._lock:
            self.put_calls.append(key)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.put_delay:
                time.sleep(self.put_delay)
            if key in self.fail_keys:
                raise RuntimeError(f"boom: {key}")
            self.objects[key] = body
            return {'ETag': '"etag"'}
        finally:
            with self._lock:
                self.in_flight -= 1

    def delete_objects(self, bucket, keys):
        self.delete_calls.append(list(keys))
        for key in keys:
            self.objects.pop(key, None)


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def site_dir(tmp_path):
    """A small website folder with a nested asset, a hidden file and an ignored folder."""
    (tmp_path / 'index.html').write_text('<html>home</html>')
    (tmp_path / 'assets').mkdir()
    (tmp_path / 'assets' / 'app.js').write_text('console.log("hi")')
    (tmp_path / 'assets' / 'logo.png').write_bytes(b'\x89PNG\r\n')
    (tmp_path / '.env').write_text('SECRET=1')
    (tmp_path / 'node_modules').mkdir()
    (tmp_path / 'node_modules' / 'lib.js').write_text('module.exports = 1')
    return tmp_path
