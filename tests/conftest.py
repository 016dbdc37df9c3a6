from pathlib import Path

import pytest

from playconsole.client import EditContext


class FakePlayClient:
    """In-memory stand-in for GooglePlayClient; records every call."""

    def __init__(self, tracks=None, first_version_code=100):
        self.tracks = tracks or {}
        self.next_version_code = first_version_code
        self.calls = []
        self.committed = False
        self.deleted = False
        self.fail_on = set()

    def _call(self, name, *args):
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise RuntimeError(f'{name} failed')

    def insert_edit(self, package_name):
        self._call('insert_edit', package_name)
        return EditContext(package_name, 'edit-1')

    def get_track(self, ctx, track):
        self._call('get_track', track)
        if track not in self.tracks:
            raise RuntimeError(f'no track {track}')
        return self.tracks[track]

    def update_track(self, ctx, track, release):
        self._call('update_track', track, release)
        self.tracks[track] = {'track': track, 'releases': [release]}
        return self.tracks[track]

    def upload_binary(self, ctx, path):
        self._call('upload_binary', Path(path))
        vc = self.next_version_code
        self.next_version_code += 1
        return vc

    def upload_expansion_file(self, ctx, path, version_code, kind='main'):
        self._call('upload_expansion_file', Path(path), version_code, kind)
        return {'expansionFile': {'fileSize': Path(path).stat().st_size}}

    def upload_deobfuscation_map(self, ctx, path, version_code):
        self._call('upload_deobfuscation_map', Path(path), version_code)
        return {}

    def update_listing(self, ctx, language, listing):
        self._call('update_listing', language, listing)
        return listing

    def replace_images(self, ctx, language, image_type, paths):
        self._call('replace_images', language, image_type, [Path(p).name for p in paths])
        return [{} for _ in paths]

    def commit_edit(self, ctx):
        self._call('commit_edit')
        self.committed = True
        return ctx.edit_id

    def delete_edit(self, ctx):
        self._call('delete_edit')
        self.deleted = True

    def called(self, name):
        return [c[1:] for c in self.calls if c[0] == name]


@pytest.fixture
def client():
    return FakePlayClient()


@pytest.fixture
def track_with():
    def make(*version_codes):
        return {'track': 'beta', 'releases': [{'versionCodes': [str(v) for v in version_codes], 'status': 'completed'}]}

    return make
