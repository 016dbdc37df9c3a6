import argparse
import logging
import os
from pathlib import Path

import tomli_w
from googleapiclient.errors import HttpError
from rich.console import Console
from rich.logging import RichHandler

from .client import GooglePlayClient, endpoint_service_account, load_service_account_json
from .errors import InvalidVersionCodeList, PublishError
from .publish import PublishOptions, PublishResult, publish
from .reconcile import ExplicitList, parse_filter

log = logging.getLogger('playconsole')
console = Console()
err_console = Console(stderr=True)


def _parse_release_files(values: list[str]) -> list[Path]:
    files: list[Path] = []
    for v in values:
        for part in v.split(','):
            part = part.strip()
            if not part:
                continue
            p = Path(part)
            if not p.exists():
                raise FileNotFoundError(part)
            files.append(p)

    if not files:
        raise ValueError('No release files provided.')

    return files


def _parse_version_codes(value: str) -> list[int]:
    try:
        ExplicitList.parse(value)
    except InvalidVersionCodeList as e:
        raise argparse.ArgumentTypeError(str(e)) from e
    return [int(t) for t in value.split(',') if t.strip()]


def _user_fraction(value: str) -> float:
    f = float(value)
    if not 0 < f <= 1:
        raise argparse.ArgumentTypeError(f'{value} is not in (0, 1]')
    return f


def _update_priority(value: str) -> int:
    n = int(value)
    if not 0 <= n <= 5:
        raise argparse.ArgumentTypeError(f'{value} is not in [0, 5]')
    return n


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(message)s',
        datefmt='[%X]',
        handlers=[RichHandler(console=err_console, show_path=False)],
    )
    # discovery cache and transport noise
    for name in ('googleapiclient', 'google', 'urllib3'):
        logging.getLogger(name).setLevel(logging.WARNING)


def write_summary(path: Path, result: PublishResult) -> None:
    summary = {
        'package_name': result.package_name,
        'edit_id': result.edit_id,
        'track': result.track,
        'version_codes': result.version_codes,
        'track_updated': result.track_updated,
    }
    # TOML has no null
    path.write_text(tomli_w.dumps({k: v for k, v in summary.items() if v is not None}))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description='Publish APK/AAB files to Google Play (Publishing API edits).')

    auth = p.add_argument_group('authentication')
    auth.add_argument(
        '--service-account-json-plain-text',
        '--serviceAccountJsonPlainText',
        '--service-account-json',
        dest='service_account_json',
        default=os.getenv('PLAY_SERVICE_ACCOUNT_JSON'),
        help='Service account JSON string, path to a JSON file, or "-" to read from stdin.',
    )
    auth.add_argument('--client-email', default=os.getenv('PLAY_CLIENT_EMAIL'), help='Service account email (endpoint auth)')
    auth.add_argument('--private-key', default=os.getenv('PLAY_PRIVATE_KEY'), help='Service account private key (endpoint auth)')

    p.add_argument(
        '--package-name',
        '--packageName',
        dest='package_name',
        default=os.getenv('PLAY_PACKAGE_NAME'),
        help='Android package name (applicationId), e.g. com.nuqayah.rawy',
    )
    p.add_argument(
        '--release-files',
        '--releaseFiles',
        dest='release_files',
        nargs='+',
        default=[],
        help='One or more APK/AAB paths (can also be comma-separated). The first is the main binary.',
    )
    p.add_argument('--track', default=os.getenv('PLAY_TRACK'), help='Track name, e.g. internal, alpha, beta, production.')
    p.add_argument(
        '--skip-upload',
        action='store_true',
        help='Only update the track, using --version-codes instead of uploading binaries',
    )
    p.add_argument('--version-codes', type=_parse_version_codes, default=[], help='Comma-separated version codes')

    f = p.add_argument_group('track update')
    f.add_argument(
        '--version-code-filter-type',
        '--versionCodeFilterType',
        dest='filter_type',
        choices=['all', 'list', 'expression'],
        help='Which version codes of the current release to replace (default: all)',
    )
    f.add_argument('--replace-list', help='Comma-separated version codes to remove (filter type "list")')
    f.add_argument('--replace-expression', help='Regex of version codes to remove (filter type "expression")')
    f.add_argument('--user-fraction', type=_user_fraction, default=1.0, help='Staged rollout fraction, in (0, 1]')
    f.add_argument('--update-priority', type=_update_priority, default=0, help='In-app update priority, 0-5')

    m = p.add_argument_group('metadata')
    m.add_argument('--changelog-file', type=Path, help='Release notes attached to all uploaded versions')
    m.add_argument('--language-code', default='en-US', help='Language of --changelog-file (default: %(default)s)')
    m.add_argument('--metadata-root', type=Path, help='Directory of per-language store metadata')
    m.add_argument('--update-store-listing', action='store_true', help='Only update the store listing')
    m.add_argument('--obb', action='store_true', help='Upload the expansion file of the main APK')
    m.add_argument('--obb-additional', action='store_true', help='Upload the expansion files of additional APKs')
    m.add_argument('--mapping-file', type=Path, help='Proguard mapping file of the main binary')

    p.add_argument('--num-retries', type=int, default=3, help='Retries of each API request (default: %(default)s)')
    p.add_argument('--summary-file', type=Path, help='Write a TOML summary of the run here')
    p.add_argument('-v', '--verbose', action='store_true')
    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if not args.package_name:
        parser.error('--package-name is required')
    if not args.track and not args.update_store_listing:
        parser.error('--track is required')
    if not args.service_account_json and not (args.client_email and args.private_key):
        parser.error('either --service-account-json or --client-email and --private-key are required')

    try:
        if args.service_account_json:
            service_account_info = load_service_account_json(args.service_account_json)
        else:
            service_account_info = endpoint_service_account(args.client_email, args.private_key)

        upload = not (args.skip_upload or args.update_store_listing)
        opts = PublishOptions(
            package_name=args.package_name,
            track=args.track,
            release_files=_parse_release_files(args.release_files) if upload else [],
            version_codes=args.version_codes,
            filter_spec=parse_filter(
                args.filter_type,
                args.replace_list if args.filter_type == 'list' else args.replace_expression,
            ),
            user_fraction=args.user_fraction,
            update_priority=args.update_priority,
            changelog_file=args.changelog_file,
            language_code=args.language_code,
            metadata_root=args.metadata_root,
            update_store_listing=args.update_store_listing,
            upload_binaries=upload,
            obb_for_main=args.obb,
            obb_for_additional=args.obb_additional,
            mapping_file=args.mapping_file,
        )

        client = GooglePlayClient.from_service_account(service_account_info, num_retries=args.num_retries)
        result = publish(client, opts)
    except HttpError as e:
        msg = str(e)
        if getattr(e, 'content', None):
            msg = e.content.decode(errors='replace')
        err_console.print(f'Google API error:\n{msg}', style='bold red', markup=False)
        return 2
    except (PublishError, OSError, ValueError) as e:
        err_console.print(f'Error: {e}', style='bold red', markup=False)
        return 1

    if args.summary_file:
        write_summary(args.summary_file, result)

    if result.version_codes:
        console.print(f'Version codes: {", ".join(str(v) for v in result.version_codes)}')
    if args.update_store_listing:
        console.print('Store listing updated', style='bold green')
    else:
        console.print(f'Published to the {result.track} track', style='bold green')
    console.print(f'Committed editId: {result.edit_id}')
    return 0
