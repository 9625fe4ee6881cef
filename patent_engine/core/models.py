"""
Data model for one patent search.

A SourceDescriptor is built once per request; every other object here lives
only inside that request. ResultSet guarantees callers always receive either
real records or exactly one sentinel record explaining the empty outcome.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional


class PageKind(str, Enum):
    """Kind of page a locator set was discovered on."""
    LOGIN = "login"
    SEARCH = "search"


class ResultStatus(str, Enum):
    """Terminal state of a search."""
    OK = "OK"
    NO_RESULTS = "NO_RESULTS"
    ERROR = "ERROR"


class AuthResult(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED_CREDENTIALS = "FAILED_CREDENTIALS"
    SKIPPED = "SKIPPED"


class SubmissionResult(str, Enum):
    SUCCESS = "SUCCESS"
    FIELD_NOT_FOUND = "FIELD_NOT_FOUND"
    SUBMIT_NOT_FOUND = "SUBMIT_NOT_FOUND"


@dataclass(frozen=True)
class Credentials:
    """Opaque login pair handed over by the caller's secret store."""
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class LocatorSet:
    """Selectors for the interactive elements of one rendered page."""
    login_field: Optional[str] = None
    password_field: Optional[str] = None
    query_field: Optional[str] = None
    submit_selector: Optional[str] = None

    FIELDS = ("login_field", "password_field", "query_field", "submit_selector")

    def missing(self, required: Iterable[str]) -> list[str]:
        """Names of required fields that have no locator."""
        return [name for name in required if not getattr(self, name)]

    def merged_with(self, fallback: "LocatorSet") -> "LocatorSet":
        """Fill empty fields from ``fallback``, keeping the ones already found."""
        return LocatorSet(**{
            name: getattr(self, name) or getattr(fallback, name)
            for name in self.FIELDS
        })

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in self.FIELDS)

    def to_dict(self) -> dict[str, Optional[str]]:
        return {name: getattr(self, name) for name in self.FIELDS}


@dataclass(frozen=True)
class SourceDescriptor:
    """Identifies one target site for the lifetime of a single search."""
    name: str
    search_url: str
    requires_auth: bool = False
    login_url: Optional[str] = None
    credentials: Optional[Credentials] = field(default=None, repr=False)
    max_pages: int = 5
    step_timeout: float = 30.0
    settle_delay: float = 0.0
    fallback_locators: Mapping[PageKind, LocatorSet] = field(
        default_factory=lambda: MappingProxyType({})
    )
    auth_failure_markers: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        if self.step_timeout <= 0:
            raise ValueError("step_timeout must be positive")

    @property
    def entry_url(self) -> str:
        """First URL to open: the login page when one is configured."""
        if self.requires_auth and self.login_url:
            return self.login_url
        return self.search_url

    @property
    def step_timeout_ms(self) -> int:
        return int(self.step_timeout * 1000)


@dataclass(frozen=True)
class PageReady:
    """A page finished loading and can be snapshotted."""
    url: str
    page_number: int = 1


@dataclass(frozen=True)
class NoNextPage:
    """Pagination stopped."""
    reason: str


@dataclass
class PageSnapshot:
    """
    Rendered content of one page at one point in time.

    The screenshot is expensive, so it is only captured when a strategy asks
    for it through ``load_screenshot``.
    """
    url: str
    html: str = ""
    text: str = ""
    screenshot: Optional[bytes] = None
    screenshot_loader: Optional[Callable[[], Awaitable[bytes]]] = field(default=None, repr=False)

    async def load_screenshot(self) -> Optional[bytes]:
        if self.screenshot is None and self.screenshot_loader is not None:
            self.screenshot = await self.screenshot_loader()
        return self.screenshot


_WHITESPACE = re.compile(r"\s+")
_KEY_NOISE = re.compile(r"[\s/]+")


def clean_text(value: Any) -> str:
    """Collapse whitespace; lists are joined with '; '."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        value = "; ".join(clean_text(item) for item in value if item)
    return _WHITESPACE.sub(" ", str(value)).strip()


def normalize_key(value: str) -> str:
    """Canonical natural key: 'WO 2020/123456' -> 'WO2020123456'."""
    return _KEY_NOISE.sub("", value or "").upper()


@dataclass(frozen=True)
class CandidateRecord:
    """One patent record. Only ``natural_key`` is required."""
    natural_key: str
    title: str = ""
    abstract: str = ""
    applicant: str = ""
    inventor: str = ""
    date: str = ""
    source_strategy: str = ""
    source_name: str = ""

    @classmethod
    def build(cls, natural_key: str, **fields: Any) -> "CandidateRecord":
        """Create a record with normalized key and cleaned text fields."""
        cleaned = {name: clean_text(value) for name, value in fields.items()}
        return cls(natural_key=normalize_key(natural_key), **cleaned)

    def completeness(self) -> tuple[int, int, int]:
        """Ordering key: more information wins."""
        filled = sum(
            1 for value in (self.title, self.abstract, self.applicant, self.inventor, self.date)
            if value
        )
        return (len(self.abstract), len(self.title), filled)

    @property
    def is_sentinel(self) -> bool:
        return self.natural_key in (ResultStatus.NO_RESULTS.value, ResultStatus.ERROR.value)

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class ResultSet:
    """
    Final, ordered, key-unique outcome of a search.

    Never empty without a sentinel: OK carries at least one real record,
    NO_RESULTS and ERROR carry exactly one sentinel record.
    """
    records: tuple[CandidateRecord, ...]
    status: ResultStatus = ResultStatus.OK

    def __post_init__(self) -> None:
        if not self.records:
            raise ValueError("ResultSet requires at least one record or a sentinel")
        if self.status != ResultStatus.OK:
            if len(self.records) != 1 or self.records[0].natural_key != self.status.value:
                raise ValueError(f"{self.status.value} result must hold exactly one sentinel record")
        keys = [record.natural_key for record in self.records]
        if len(keys) != len(set(keys)):
            raise ValueError("ResultSet records must have unique natural keys")

    @property
    def count(self) -> int:
        """Number of real records (sentinels do not count)."""
        if self.status != ResultStatus.OK:
            return 0
        return len(self.records)

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.OK

    @classmethod
    def no_results(cls, source_name: str = "", detail: str = "") -> "ResultSet":
        sentinel = CandidateRecord(
            natural_key=ResultStatus.NO_RESULTS.value,
            title="No patents found",
            abstract=detail or f"{source_name or 'The source'} returned no results",
            source_strategy="sentinel",
            source_name=source_name,
        )
        return cls(records=(sentinel,), status=ResultStatus.NO_RESULTS)

    @classmethod
    def error(cls, message: str, source_name: str = "") -> "ResultSet":
        sentinel = CandidateRecord(
            natural_key=ResultStatus.ERROR.value,
            title="Search failed",
            abstract=message or "unknown error",
            source_strategy="sentinel",
            source_name=source_name,
        )
        return cls(records=(sentinel,), status=ResultStatus.ERROR)

    def keys(self) -> list[str]:
        return [record.natural_key for record in self.records]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "count": self.count,
            "records": [record.to_dict() for record in self.records],
        }
