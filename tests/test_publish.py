from pathlib import Path

import pytest

from playconsole.errors import TrackFetchError, TrackUpdateError
from playconsole.publish import PublishOptions, find_obb_file, publish, update_track
from playconsole.reconcile import All, ExplicitList, Pattern


@pytest.fixture
def binaries(tmp_path):
    build = tmp_path / 'build'
    build.mkdir()
    paths = []
    for name in ('app.apk', 'app-arm64.apk'):
        p = build / name
        p.write_bytes(b'apk')
        paths.append(p)
    return paths


def options(**kwargs):
    return PublishOptions(package_name='com.example.app', track='beta', **kwargs)


def test_publish_uploads_in_order_and_commits(client, binaries):
    result = publish(client, options(release_files=binaries))

    assert client.called('upload_binary') == [(binaries[0],), (binaries[1],)]
    assert result.version_codes == [100, 101]
    assert result.edit_id == 'edit-1'
    assert result.track_updated
    assert client.committed and not client.deleted
    [(track, release)] = client.called('update_track')
    assert track == 'beta'
    assert release['versionCodes'] == ['100', '101']
    assert release['status'] == 'completed'


def test_all_filter_does_not_fetch_track(client, binaries):
    publish(client, options(release_files=binaries, filter_spec=All()))
    assert client.called('get_track') == []


def test_explicit_list_merges_with_current_release(client, binaries, track_with):
    client.tracks['beta'] = track_with(7, 8, 9)
    publish(client, options(release_files=binaries[:1], filter_spec=ExplicitList(frozenset({8}))))

    [(_, release)] = client.called('update_track')
    assert release['versionCodes'] == ['7', '9', '100']


def test_pattern_filter_on_new_package(client, binaries):
    client.tracks['beta'] = {'track': 'beta'}
    publish(client, options(release_files=binaries[:1], filter_spec=Pattern('1.')))

    [(_, release)] = client.called('update_track')
    assert release['versionCodes'] == ['100']


def test_staged_rollout(client, binaries):
    publish(client, options(release_files=binaries[:1], user_fraction=0.1, update_priority=4))

    [(_, release)] = client.called('update_track')
    assert release['status'] == 'inProgress'
    assert release['userFraction'] == 0.1
    assert release['inAppUpdatePriority'] == 4


def test_track_fetch_failure_abandons_edit(client, binaries):
    with pytest.raises(TrackFetchError) as e:
        publish(client, options(release_files=binaries, filter_spec=ExplicitList(frozenset({1}))))

    assert 'beta' in str(e.value)
    assert client.deleted and not client.committed
    assert client.called('update_track') == []


def test_track_update_failure_abandons_edit(client, binaries):
    client.fail_on.add('update_track')
    with pytest.raises(TrackUpdateError) as e:
        publish(client, options(release_files=binaries))

    assert e.value.track == 'beta'
    assert isinstance(e.value.__cause__, RuntimeError)
    assert client.deleted and not client.committed


def test_failed_edit_deletion_keeps_original_error(client, binaries):
    client.fail_on.update({'get_track', 'delete_edit'})
    with pytest.raises(TrackFetchError) as e:
        publish(client, options(release_files=binaries, filter_spec=ExplicitList(frozenset({1}))))

    assert e.value.track == 'beta'
    assert client.called('delete_edit') == [()]
    assert not client.committed


def test_commit_failure_abandons_edit(client, binaries):
    client.fail_on.add('commit_edit')
    with pytest.raises(RuntimeError):
        publish(client, options(release_files=binaries))
    assert client.deleted


def test_skip_upload_uses_given_version_codes(client, track_with):
    client.tracks['beta'] = track_with(1, 2)
    result = publish(
        client,
        options(upload_binaries=False, version_codes=[3], filter_spec=ExplicitList(frozenset({2})), changelog_file=None),
    )
    # nothing uploaded and no notes: the track is left alone
    assert client.called('upload_binary') == []
    assert not result.track_updated
    assert client.called('update_track') == []
    assert client.committed


def test_changelog_file_attached_to_release(client, tmp_path):
    changelog = tmp_path / 'changelog.txt'
    changelog.write_text('Bug fixes\n')
    publish(client, options(upload_binaries=False, version_codes=[5], changelog_file=changelog, language_code='de-DE'))

    [(_, release)] = client.called('update_track')
    assert release['versionCodes'] == ['5']
    assert release['releaseNotes'] == [{'language': 'de-DE', 'text': 'Bug fixes'}]


def test_empty_changelog_file_adds_no_notes(client, tmp_path):
    changelog = tmp_path / 'changelog.txt'
    changelog.write_text('   \n')
    publish(client, options(upload_binaries=False, version_codes=[5], changelog_file=changelog))

    [(_, release)] = client.called('update_track')
    assert 'releaseNotes' not in release


def test_mapping_file_uploaded_for_first_version_code(client, binaries, tmp_path):
    mapping = tmp_path / 'mapping.txt'
    mapping.write_text('a -> b')
    publish(client, options(release_files=binaries, mapping_file=mapping))
    assert client.called('upload_deobfuscation_map') == [(mapping, 100)]


def test_store_listing_update_skips_binaries_and_track(client, binaries, tmp_path):
    root = tmp_path / 'metadata'
    (root / 'en-US').mkdir(parents=True)
    (root / 'en-US' / 'title.txt').write_text('My App')

    result = publish(
        client, options(release_files=binaries, metadata_root=root, update_store_listing=True)
    )

    assert client.called('upload_binary') == []
    assert client.called('update_listing') == [('en-US', {'title': 'My App'})]
    assert client.called('update_track') == []
    assert not result.track_updated
    assert client.committed


def test_metadata_release_notes_attached(client, binaries, tmp_path):
    changelogs = tmp_path / 'metadata' / 'fr-FR' / 'changelogs'
    changelogs.mkdir(parents=True)
    (changelogs / '100.txt').write_text('Corrections')

    publish(client, options(release_files=binaries[:1], metadata_root=tmp_path / 'metadata'))

    [(_, release)] = client.called('update_track')
    assert release['releaseNotes'] == [{'language': 'fr-FR', 'text': 'Corrections'}]


# ############################################################
# expansion files
# ############################################################
def test_obb_in_parent_directory(client, binaries):
    obb = binaries[0].parent.parent / 'assets.obb'
    obb.write_bytes(b'obb-data')

    publish(client, options(release_files=binaries, obb_for_main=True))
    assert client.called('upload_expansion_file') == [(obb, 100, 'main')]


def test_obb_for_additional_apks_only(client, binaries):
    obb = binaries[0].parent / 'main.101.com.example.app.obb'
    obb.write_bytes(b'obb-data')

    publish(client, options(release_files=binaries, obb_for_additional=True))
    assert client.called('upload_expansion_file') == [(obb, 101, 'main')]


def test_no_obb_upload_unless_requested(client, binaries):
    (binaries[0].parent.parent / 'assets.obb').write_bytes(b'obb-data')
    publish(client, options(release_files=binaries))
    assert client.called('upload_expansion_file') == []


def test_find_obb_file(tmp_path):
    apk_dir = tmp_path / 'out'
    apk_dir.mkdir()
    apk = apk_dir / 'app.apk'
    apk.write_bytes(b'')
    assert find_obb_file(apk, 'com.example.app', 3) is None

    named = apk_dir / 'main.3.com.example.app.obb'
    named.write_bytes(b'')
    assert find_obb_file(apk, 'com.example.app', 3) == named
    assert find_obb_file(apk, 'com.example.app', 4) is None

    parent = tmp_path / 'any.obb'
    parent.write_bytes(b'')
    assert find_obb_file(apk, 'com.example.app', 3) == parent


def test_update_track_returns_platform_response(client, track_with):
    client.tracks['beta'] = track_with(1)
    ctx = client.insert_edit('com.example.app')
    res = update_track(client, ctx, 'beta', [2], Pattern('1'))
    assert res['releases'][0]['versionCodes'] == ['2']
