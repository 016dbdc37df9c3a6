import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaFileUpload
from tqdm import tqdm

from .errors import InvalidAuthFile

log = logging.getLogger(__name__)

ANDROIDPUBLISHER_SCOPE = 'https://www.googleapis.com/auth/androidpublisher'
TOKEN_URI = 'https://oauth2.googleapis.com/token'

MIME_TYPES = {
    '.aab': 'application/octet-stream',
    '.apk': 'application/vnd.android.package-archive',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
}


@dataclass(frozen=True)
class EditContext:
    package_name: str
    edit_id: str


class PlatformClient(Protocol):
    def insert_edit(self, package_name: str) -> EditContext: ...
    def get_track(self, ctx: EditContext, track: str) -> dict: ...
    def update_track(self, ctx: EditContext, track: str, release: dict) -> dict: ...
    def upload_binary(self, ctx: EditContext, path: Path) -> int: ...
    def upload_expansion_file(self, ctx: EditContext, path: Path, version_code: int, kind: str = 'main') -> dict: ...
    def upload_deobfuscation_map(self, ctx: EditContext, path: Path, version_code: int) -> dict: ...
    def update_listing(self, ctx: EditContext, language: str, listing: dict) -> dict: ...
    def replace_images(self, ctx: EditContext, language: str, image_type: str, paths: list[Path]) -> list[dict]: ...
    def commit_edit(self, ctx: EditContext) -> str: ...
    def delete_edit(self, ctx: EditContext) -> None: ...


#####################################################################
# Auth
#####################################################################
def load_service_account_json(value: str) -> dict:
    """
    Accepts:
      - "-" to read JSON from stdin
      - a path to a JSON file
      - a raw JSON string
    """
    if value == '-':
        return json.loads(sys.stdin.read())

    p = Path(value)
    if p.exists():
        if not p.is_file():
            raise InvalidAuthFile(p, 'not a file')
        try:
            return json.loads(p.read_text())
        except json.JSONDecodeError as e:
            raise InvalidAuthFile(p, e) from e

    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise InvalidAuthFile('(inline JSON)', e) from e


def endpoint_service_account(client_email: str, private_key: str) -> dict:
    """Service account info from a username/password style secret."""
    return {
        'type': 'service_account',
        'client_email': client_email,
        # secret stores tend to keep the PEM newlines escaped
        'private_key': private_key.replace('\\n', '\n'),
        'token_uri': TOKEN_URI,
    }


def load_credentials(service_account_info: dict) -> Credentials:
    info = {'token_uri': TOKEN_URI, **service_account_info}
    return Credentials.from_service_account_info(info, scopes=[ANDROIDPUBLISHER_SCOPE])


#####################################################################
# Google Play
#####################################################################
def _upload_resumable(request, desc: str, num_retries: int = 0) -> dict:
    # googleapiclient resumable upload loop
    response = None
    with tqdm(total=100, desc=desc, unit='%', leave=False) as bar:
        while response is None:
            status, response = request.next_chunk(num_retries=num_retries)
            if status:
                bar.update(int(status.progress() * 100) - bar.n)
        bar.update(100 - bar.n)
    return response


class GooglePlayClient:
    def __init__(self, credentials: Credentials, num_retries: int = 3, service=None):
        self.num_retries = num_retries
        self.service = service or build('androidpublisher', 'v3', credentials=credentials, cache_discovery=False)

    @classmethod
    def from_service_account(cls, service_account_info: dict, **kwargs) -> 'GooglePlayClient':
        return cls(load_credentials(service_account_info), **kwargs)

    @property
    def edits(self):
        return self.service.edits()

    def _execute(self, request) -> dict:
        return request.execute(num_retries=self.num_retries)

    def insert_edit(self, package_name: str) -> EditContext:
        edit = self._execute(self.edits.insert(packageName=package_name, body={}))
        return EditContext(package_name, edit['id'])

    def get_track(self, ctx: EditContext, track: str) -> dict:
        return self._execute(self.edits.tracks().get(packageName=ctx.package_name, editId=ctx.edit_id, track=track))

    def update_track(self, ctx: EditContext, track: str, release: dict) -> dict:
        return self._execute(
            self.edits.tracks().update(
                packageName=ctx.package_name,
                editId=ctx.edit_id,
                track=track,
                body={'track': track, 'releases': [release]},
            )
        )

    def upload_binary(self, ctx: EditContext, path: Path) -> int:
        suffix = path.suffix.lower()
        if suffix == '.aab':
            resource = self.edits.bundles()
        elif suffix == '.apk':
            resource = self.edits.apks()
        else:
            raise ValueError(f'Unsupported file type: {path} (expected .aab or .apk)')

        media = MediaFileUpload(str(path), mimetype=MIME_TYPES[suffix], resumable=True)
        req = resource.upload(packageName=ctx.package_name, editId=ctx.edit_id, media_body=media)
        res = _upload_resumable(req, path.name, self.num_retries)
        return int(res['versionCode'])

    def upload_expansion_file(self, ctx: EditContext, path: Path, version_code: int, kind: str = 'main') -> dict:
        media = MediaFileUpload(str(path), mimetype='application/octet-stream', resumable=True)
        req = self.edits.expansionfiles().upload(
            packageName=ctx.package_name,
            editId=ctx.edit_id,
            apkVersionCode=version_code,
            expansionFileType=kind,
            media_body=media,
        )
        return _upload_resumable(req, path.name, self.num_retries)

    def upload_deobfuscation_map(self, ctx: EditContext, path: Path, version_code: int) -> dict:
        media = MediaFileUpload(str(path), mimetype='application/octet-stream', resumable=True)
        req = self.edits.deobfuscationfiles().upload(
            packageName=ctx.package_name,
            editId=ctx.edit_id,
            apkVersionCode=version_code,
            deobfuscationFileType='proguard',
            media_body=media,
        )
        return _upload_resumable(req, path.name, self.num_retries)

    def update_listing(self, ctx: EditContext, language: str, listing: dict) -> dict:
        return self._execute(
            self.edits.listings().patch(
                packageName=ctx.package_name,
                editId=ctx.edit_id,
                language=language,
                body={'language': language, **listing},
            )
        )

    def replace_images(self, ctx: EditContext, language: str, image_type: str, paths: list[Path]) -> list[dict]:
        images = self.edits.images()
        kwargs = dict(packageName=ctx.package_name, editId=ctx.edit_id, language=language, imageType=image_type)
        self._execute(images.deleteall(**kwargs))
        uploaded = []
        for p in paths:
            media = MediaFileUpload(str(p), mimetype=MIME_TYPES.get(p.suffix.lower(), 'application/octet-stream'))
            uploaded.append(self._execute(images.upload(media_body=media, **kwargs)))
        return uploaded

    def commit_edit(self, ctx: EditContext) -> str:
        committed = self._execute(self.edits.commit(packageName=ctx.package_name, editId=ctx.edit_id))
        return committed.get('id', ctx.edit_id)

    def delete_edit(self, ctx: EditContext) -> None:
        self._execute(self.edits.delete(packageName=ctx.package_name, editId=ctx.edit_id))
