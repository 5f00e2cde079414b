# awsx/cli.py
"""
awsx-sync: pushes a local folder to an S3 bucket.

The remote state is kept in a YAML manifest next to the folder so that a
second run only uploads what changed since the first one:

    ignore:
      - '**/node_modules/**'
    objects:
      - key: index.html
        hash: 5d41402abc4b2a76b9719d911017c592
"""
import argparse
import os
import sys
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .errors import AwsxError
from .models import SyncResult
from .s3 import S3

DEFAULT_MANIFEST = '.awsx-sync.yml'


def load_manifest(path: str) -> Dict[str, Any]:
    """Reads the manifest. A missing or empty file is an empty manifest."""
    if not os.path.exists(path):
        return {'ignore': [], 'objects': []}
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    return {
        'ignore': data.get('ignore') or [],
        'objects': data.get('objects') or [],
    }


def save_manifest(path: str, ignore: List[str], result: SyncResult) -> None:
    """Stores what the bucket holds after `result` (every source file, uploaded or unchanged)."""
    objects = [{'key': f.key, 'hash': f.hash} for f in result.src_files]
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump({'ignore': ignore, 'objects': objects}, f, sort_keys=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='awsx-sync',
        description='Sync a local folder with an S3 bucket. Only new or changed files are uploaded.',
    )
    parser.add_argument('dir', help='Local folder to sync')
    parser.add_argument('--bucket', '-b', default=os.environ.get('AWSX_BUCKET'),
                        help='Destination bucket (default: $AWSX_BUCKET)')
    parser.add_argument('--ignore', '-i', action='append', default=[],
                        help="Glob pattern to skip, e.g. '**/node_modules/**'. Can be repeated.")
    parser.add_argument('--manifest', '-m', default=None,
                        help=f"Remote state manifest (default: <dir>/{DEFAULT_MANIFEST})")
    parser.add_argument('--region', default=None)
    parser.add_argument('--remove', action='store_true', help='Delete every object listed in the manifest')
    parser.add_argument('--no-warning', action='store_true', help='Do not warn when the bucket does not exist')
    return parser


def run(args: argparse.Namespace, s3: Optional[S3] = None) -> int:
    if not args.bucket:
        print("❌ ERROR: --bucket is required (or set AWSX_BUCKET in a .env file).")
        return 2

    manifest_path = args.manifest or os.path.join(args.dir, DEFAULT_MANIFEST)
    manifest = load_manifest(manifest_path)
    saved_ignore = list(dict.fromkeys(manifest['ignore'] + args.ignore))
    ignore = saved_ignore + [f"**/{os.path.basename(manifest_path)}"]

    s3 = s3 or S3(region=args.region)
    try:
        result = s3.sync_files(
            args.bucket,
            dir=args.dir,
            ignore=ignore,
            existing_objects=manifest['objects'],
            remove=args.remove,
            no_warning=args.no_warning,
        )
    except AwsxError as e:
        print(f"❌ {e}")
        return 1

    # Nothing was synced (bucket missing or empty folder): keep the previous state
    if not (result.src_files or result.deleted_files):
        return 0

    for f in result.uploaded_files:
        print(f"  + {f.key}")
    for f in result.deleted_files:
        print(f"  - {f.key}")

    save_manifest(manifest_path, saved_ignore, result)
    if not result.updated:
        print("ℹ️ Bucket already up to date.")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    # Load environment variables from a .env file for local runs
    load_dotenv()
    args = build_parser().parse_args(argv)
    return run(args)


if __name__ == '__main__':
    sys.exit(main())
