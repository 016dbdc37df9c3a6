"""Publish Android app bundles and APKs to Google Play."""

from .errors import (
    InvalidFilterExpression,
    InvalidVersionCodeList,
    PublishError,
    TrackFetchError,
    TrackUpdateError,
)
from .reconcile import All, ExplicitList, Pattern, build_release, parse_filter, reconcile
