class PublishError(Exception):
    pass


class TrackFetchError(PublishError):
    def __init__(self, track: str, cause):
        self.track = track
        self.cause = cause
        super().__init__(f'Cannot download information for the "{track}" track: {cause}')


class TrackUpdateError(PublishError):
    def __init__(self, track: str, cause):
        self.track = track
        self.cause = cause
        super().__init__(f'Cannot update the "{track}" track: {cause}')


class InvalidFilterExpression(PublishError):
    def __init__(self, expression: str, cause):
        self.expression = expression
        super().__init__(f'Invalid version code filter expression {expression!r}: {cause}')


class InvalidVersionCodeList(PublishError):
    def __init__(self, values: list):
        self.values = values
        super().__init__(f'Version codes must be positive integers, got: {", ".join(map(repr, values))}')


class InvalidReleaseNotes(PublishError):
    def __init__(self, language):
        self.language = language
        super().__init__(f'Invalid release notes language code: {language!r}')


class InvalidAuthFile(PublishError):
    def __init__(self, path, cause=None):
        self.path = path
        super().__init__(f'Invalid service account key {path}' + (f': {cause}' if cause else ''))
