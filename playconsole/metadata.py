"""
Store listing metadata, laid out one directory per language:

    <root>/<language>/title.txt, short_description.txt, full_description.txt, video.txt
    <root>/<language>/changelogs/<versionCode>.txt, changelogs/default.txt
    <root>/<language>/images/<imageType>.png  or  images/<imageType>/*.png
"""

import logging
from pathlib import Path

from .client import EditContext, PlatformClient

log = logging.getLogger(__name__)

LISTING_FILES = {
    'title': 'title.txt',
    'shortDescription': 'short_description.txt',
    'fullDescription': 'full_description.txt',
    'video': 'video.txt',
}
IMAGE_TYPES = [
    'featureGraphic',
    'icon',
    'promoGraphic',
    'tvBanner',
    'phoneScreenshots',
    'sevenInchScreenshots',
    'tenInchScreenshots',
    'tvScreenshots',
    'wearScreenshots',
]
IMAGE_SUFFIXES = {'.png', '.jpg', '.jpeg'}


def read_text(path: Path) -> str | None:
    return path.read_text(encoding='utf-8').strip() if path.is_file() else None


def language_dirs(root: Path) -> list[Path]:
    return sorted(p for p in root.iterdir() if p.is_dir())


def read_listing(lang_dir: Path) -> dict:
    listing = {}
    for field, name in LISTING_FILES.items():
        text = read_text(lang_dir / name)
        if text is not None:
            listing[field] = text
    return listing


def find_images(lang_dir: Path, image_type: str) -> list[Path]:
    images = lang_dir / 'images'
    folder = images / image_type
    if folder.is_dir():
        return sorted(p for p in folder.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)
    return [p for p in (images / f'{image_type}{s}' for s in sorted(IMAGE_SUFFIXES)) if p.is_file()][:1]


def changelog_for(lang_dir: Path, version_codes: list[int]) -> str | None:
    changelogs = lang_dir / 'changelogs'
    for vc in version_codes:
        text = read_text(changelogs / f'{vc}.txt')
        if text:
            return text
    return read_text(changelogs / 'default.txt') or None


def common_release_notes(language: str, changelog_file: Path) -> dict | None:
    text = changelog_file.read_text(encoding='utf-8').strip()
    return {'language': language, 'text': text} if text else None


def upload_metadata(client: PlatformClient, ctx: EditContext, root: Path, version_codes: list[int]) -> list[dict]:
    """Upload listings and images of every language; returns the release notes found."""
    release_notes = []
    for lang_dir in language_dirs(root):
        language = lang_dir.name
        log.debug('Uploading metadata for %s', language)

        listing = read_listing(lang_dir)
        if listing:
            client.update_listing(ctx, language, listing)

        for image_type in IMAGE_TYPES:
            paths = find_images(lang_dir, image_type)
            if paths:
                log.debug('Uploading %d %s image(s) for %s', len(paths), image_type, language)
                client.replace_images(ctx, language, image_type, paths)

        text = changelog_for(lang_dir, version_codes)
        if text:
            release_notes.append({'language': language, 'text': text})
    return release_notes
