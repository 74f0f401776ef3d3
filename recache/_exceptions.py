__all__ = (
    "CacheError",
    "CacheControlError",
    "ParseError",
    "ValidationError",
    "FetchError",
    "UnexpectedStatusError",
    "InconsistentCacheError",
)


class CacheError(Exception): ...


class CacheControlError(CacheError): ...


class ParseError(CacheControlError): ...


class ValidationError(CacheControlError): ...


class FetchError(CacheError): ...


class UnexpectedStatusError(FetchError):
    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(f"Unexpected status code {status_code} while fetching {url}")
        self.url = url
        self.status_code = status_code


class InconsistentCacheError(FetchError):
    """
    The origin answered 304 Not Modified, but there is no cached body to reuse.
    """

    def __init__(self, url: str) -> None:
        super().__init__(f"Received 304 Not Modified for {url}, but no cached body was found")
        self.url = url
