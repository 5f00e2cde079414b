# tests/test_cli.py
from unittest.mock import MagicMock

import pytest
import yaml
from botocore.exceptions import ClientError

from awsx.cli import DEFAULT_MANIFEST, build_parser, load_manifest, run
from awsx.s3 import S3


@pytest.fixture
def client() -> MagicMock:
    mock_client = MagicMock()
    mock_client.delete_objects.return_value = {}
    return mock_client


@pytest.fixture
def s3(client) -> S3:
    return S3(client=client, max_concurrency=2)


def parse(*argv):
    return build_parser().parse_args(list(argv))


def test_load_missing_manifest(tmp_path):
    assert load_manifest(str(tmp_path / 'nope.yml')) == {'ignore': [], 'objects': []}


def test_requires_bucket(site_dir, s3, client, monkeypatch, capsys):
    monkeypatch.delenv('AWSX_BUCKET', raising=False)

    assert run(parse(str(site_dir)), s3=s3) == 2
    assert '--bucket is required' in capsys.readouterr().out
    client.put_object.assert_not_called()


def test_first_run_uploads_and_writes_manifest(site_dir, s3, client, capsys):
    code = run(parse(str(site_dir), '--bucket', 'my-bucket', '--ignore', '**/node_modules/**'), s3=s3)

    assert code == 0
    keys = sorted(c.kwargs['Key'] for c in client.put_object.call_args_list)
    assert keys == ['assets/app.js', 'assets/logo.png', 'index.html']
    assert '+ index.html' in capsys.readouterr().out

    manifest = yaml.safe_load((site_dir / DEFAULT_MANIFEST).read_text())
    assert manifest['ignore'] == ['**/node_modules/**']
    assert sorted(o['key'] for o in manifest['objects']) == keys


def test_second_run_uploads_nothing(site_dir, s3, client, capsys):
    args = parse(str(site_dir), '--bucket', 'my-bucket', '--ignore', '**/node_modules/**')
    run(args, s3=s3)
    client.put_object.reset_mock()
    capsys.readouterr()

    assert run(parse(str(site_dir), '--bucket', 'my-bucket'), s3=s3) == 0

    client.put_object.assert_not_called()
    client.delete_objects.assert_not_called()
    assert 'already up to date' in capsys.readouterr().out


def test_deleted_local_file_is_removed_from_bucket(site_dir, s3, client):
    run(parse(str(site_dir), '--bucket', 'my-bucket', '--ignore', '**/node_modules/**'), s3=s3)
    (site_dir / 'assets' / 'app.js').unlink()

    assert run(parse(str(site_dir), '--bucket', 'my-bucket'), s3=s3) == 0

    client.delete_objects.assert_called_once_with(Bucket='my-bucket', Delete={'Objects': [{'Key': 'assets/app.js'}]})
    manifest = load_manifest(str(site_dir / DEFAULT_MANIFEST))
    assert 'assets/app.js' not in [o['key'] for o in manifest['objects']]


def test_missing_bucket_keeps_manifest_untouched(site_dir, s3, client):
    client.head_bucket.side_effect = ClientError({'Error': {'Code': '404', 'Message': 'Not Found'}}, 'HeadBucket')

    assert run(parse(str(site_dir), '--bucket', 'ghost', '--no-warning'), s3=s3) == 0
    assert not (site_dir / DEFAULT_MANIFEST).exists()


def test_upload_failure_returns_error_code(site_dir, s3, client, capsys):
    client.put_object.side_effect = RuntimeError('network down')

    code = run(parse(str(site_dir), '--bucket', 'my-bucket', '--ignore', '**/node_modules/**'), s3=s3)

    assert code == 1
    assert "Failed to sync files with S3 bucket 'my-bucket'" in capsys.readouterr().out
    assert not (site_dir / DEFAULT_MANIFEST).exists()


def test_custom_manifest_path(site_dir, tmp_path_factory, s3):
    manifest_path = tmp_path_factory.mktemp('state') / 'site.yml'

    run(parse(str(site_dir), '-b', 'my-bucket', '-i', '**/node_modules/**', '-m', str(manifest_path)), s3=s3)

    assert len(load_manifest(str(manifest_path))['objects']) == 3


def test_invalid_manifest_entry_is_reported(site_dir, s3, client, capsys):
    (site_dir / DEFAULT_MANIFEST).write_text(yaml.safe_dump({'objects': [{'hash': 'abc'}]}))

    code = run(parse(str(site_dir), '--bucket', 'my-bucket', '--ignore', '**/node_modules/**'), s3=s3)

    assert code == 1
    assert "existing_objects[0]" in capsys.readouterr().out
    client.put_object.assert_not_called()
