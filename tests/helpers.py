import typing as tp

from recache import BaseClock


class MockedClock(BaseClock):
    def __init__(self, now: int = 1440504000) -> None:
        self.current = now

    def now(self) -> int:
        return self.current

    def advance(self, seconds: int) -> None:
        self.current += seconds


class RecordingSink:
    """A response sink that keeps everything it receives."""

    def __init__(self) -> None:
        self.status_code = 200
        self.headers: tp.List[tp.Tuple[str, str]] = []
        self.chunks: tp.List[bytes] = []
        self.finished = False

    def set_status(self, status_code: int) -> None:
        self.status_code = status_code

    def set_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    async def write(self, chunk: bytes) -> None:
        self.chunks.append(chunk)

    async def finish(self) -> None:
        self.finished = True

    @property
    def body(self) -> bytes:
        return b"".join(self.chunks)

    def header(self, name: str) -> tp.Optional[str]:
        values = [value for key, value in self.headers if key.lower() == name.lower()]
        return values[-1] if values else None

    def header_names(self) -> tp.List[str]:
        return [key.lower() for key, _ in self.headers]
