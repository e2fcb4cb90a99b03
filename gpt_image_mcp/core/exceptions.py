class AppError(Exception):
    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidParameterError(AppError):
    pass


class InvalidInputError(AppError):
    def __init__(self, field: str, detail: str | None = None) -> None:
        self.field = field
        super().__init__(
            detail or f"Invalid '{field}' input: Must be an absolute path or a base64-encoded string."
        )


class UpstreamError(AppError):
    def __init__(self, detail: str, code: str | None = None) -> None:
        super().__init__(detail)
        self.code = code


class FilesystemError(AppError):
    pass
