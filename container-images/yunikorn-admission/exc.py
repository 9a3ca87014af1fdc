class ApplicationError(Exception):
    pass


class ProviderError(ApplicationError):
    pass


class RegexParseError(ApplicationError):
    def __init__(self, pattern, reason):
        self.pattern = pattern
        super().__init__(f"error parsing regexp {pattern!r}: {reason}")


class AnnotationFormatError(ApplicationError):
    pass


class DecodeError(ApplicationError):
    pass
