class InvalidRequest(Exception):
    """Client input that cannot be served; rendered as a 400 response."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRange(InvalidRequest):
    pass


class InvalidBucket(InvalidRequest):
    pass
