"""
One publishing run is a single edit transaction:

  1) open an edit
  2) upload the binaries (and their expansion files / mapping file)
  3) upload store metadata or collect the release notes
  4) reconcile and update the track
  5) commit

Any failure after step 1 deletes the edit, so nothing is partially committed.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .client import EditContext, PlatformClient
from .errors import TrackFetchError, TrackUpdateError
from .metadata import common_release_notes, upload_metadata
from .reconcile import All, FilterSpec, build_release, current_version_codes, reconcile

log = logging.getLogger(__name__)


@dataclass
class PublishOptions:
    package_name: str
    track: str
    release_files: list[Path] = field(default_factory=list)
    version_codes: list[int] = field(default_factory=list)
    filter_spec: FilterSpec = field(default_factory=All)
    user_fraction: float = 1.0
    update_priority: int = 0
    changelog_file: Path | None = None
    language_code: str = 'en-US'
    metadata_root: Path | None = None
    update_store_listing: bool = False
    upload_binaries: bool = True
    obb_for_main: bool = False
    obb_for_additional: bool = False
    mapping_file: Path | None = None


@dataclass(frozen=True)
class PublishResult:
    package_name: str
    edit_id: str
    track: str
    version_codes: list[int]
    track_updated: bool


def find_obb_file(binary: Path, package_name: str, version_code: int) -> Path | None:
    """
    Any .obb in the parent of the binary's directory, otherwise
    main.<versionCode>.<packageName>.obb next to the binary.
    """
    current = binary.parent
    for p in sorted(current.parent.iterdir()):
        if p.suffix == '.obb' and p.is_file():
            log.debug('Found obb file in parent directory: %s', p)
            return p

    expected = current / f'main.{version_code}.{package_name}.obb'
    if expected.is_file():
        log.debug('Found obb file next to the binary: %s', expected)
        return expected
    log.debug('No obb found for %s', binary)
    return None


def update_track(
    client: PlatformClient,
    ctx: EditContext,
    track: str,
    version_codes: list[int],
    filter_spec: FilterSpec,
    user_fraction: float = 1.0,
    update_priority: int = 0,
    release_notes: list[dict] | None = None,
) -> dict:
    old_version_codes: list[int] = []
    if not isinstance(filter_spec, All):
        try:
            old_version_codes = current_version_codes(client.get_track(ctx, track))
        except Exception as e:
            raise TrackFetchError(track, e) from e
        log.debug('Current version codes: %s', old_version_codes)

    new_version_codes = reconcile(filter_spec, old_version_codes, version_codes)
    log.debug('New %s track version codes: %s', track, new_version_codes)

    release = build_release(new_version_codes, user_fraction, update_priority, release_notes)
    try:
        return client.update_track(ctx, track, release)
    except Exception as e:
        raise TrackUpdateError(track, e) from e


def _upload_binaries(client: PlatformClient, ctx: EditContext, opts: PublishOptions) -> list[int]:
    version_codes = []
    for i, binary in enumerate(opts.release_files):
        log.info('Uploading %s', binary)
        vc = client.upload_binary(ctx, binary)
        log.debug('Uploaded %s with the version code %s', binary, vc)

        pick_obb = opts.obb_for_main if i == 0 else opts.obb_for_additional
        if pick_obb and binary.suffix.lower() == '.apk':
            obb = find_obb_file(binary, ctx.package_name, vc)
            if obb:
                res = client.upload_expansion_file(ctx, obb, vc, 'main')
                size = (res.get('expansionFile') or {}).get('fileSize')
                log.info('Uploaded obb file with version code %s and size %s', vc, size)
        version_codes.append(vc)

    if version_codes and opts.mapping_file:
        log.info('Uploading mapping file %s', opts.mapping_file)
        client.upload_deobfuscation_map(ctx, opts.mapping_file, version_codes[0])
    return version_codes


def publish(client: PlatformClient, opts: PublishOptions) -> PublishResult:
    ctx = client.insert_edit(opts.package_name)
    log.debug('Created edit %s', ctx.edit_id)

    try:
        require_track_update = False
        if opts.update_store_listing:
            log.debug('Store listing update selected, skipping binaries')
            version_codes = list(opts.version_codes)
        elif opts.upload_binaries:
            version_codes = _upload_binaries(client, ctx, opts)
            require_track_update = True
        else:
            version_codes = list(opts.version_codes)

        release_notes = None
        if opts.metadata_root:
            log.info('Attaching metadata from %s', opts.metadata_root)
            release_notes = upload_metadata(client, ctx, opts.metadata_root, version_codes)
            require_track_update = not opts.update_store_listing
        elif opts.changelog_file:
            log.debug('Attaching %s to all versions', opts.changelog_file)
            notes = common_release_notes(opts.language_code, opts.changelog_file)
            release_notes = notes and [notes]
            require_track_update = True

        if require_track_update:
            log.info('Updating the %s track', opts.track)
            updated = update_track(
                client,
                ctx,
                opts.track,
                version_codes,
                opts.filter_spec,
                opts.user_fraction,
                opts.update_priority,
                release_notes,
            )
            log.debug('Updated track info: %s', updated)

        edit_id = client.commit_edit(ctx)
    except Exception:
        log.debug('Abandoning edit %s', ctx.edit_id)
        try:
            client.delete_edit(ctx)
        except Exception:
            log.warning('Could not delete edit %s', ctx.edit_id, exc_info=True)
        raise

    return PublishResult(opts.package_name, edit_id, opts.track, version_codes, require_track_update)
