from __future__ import annotations

import calendar
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any

# Canonical field → header substrings. For each field the header row is
# scanned left to right and the first header containing any needle wins.
FIELD_CANDIDATES: list[tuple[str, tuple[str, ...]]] = [
    ("date", ("初次到店", "日期", "Date")),
    ("status", ("成交", "狀態", "Status")),
    ("amount", ("金額", "Amount", "價格")),
]

LEFT_EAR_MARKER = "左耳"
RIGHT_EAR_MARKER = "右耳"
PTA_MARKER = "PTA"
STORE_MARKERS = ("門市", "自帶")

YES_VALUES = ("是", "TRUE")
CLOSED_STATUS_VALUES = ("成交", "已成交")

# (header key, accepted literal values). A row is converted when any cell hits.
FULL_CONVERSION_RULE: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("是否成交", YES_VALUES),
    ("是否借機", YES_VALUES),
    ("是否有借機", YES_VALUES),
    ("成交", YES_VALUES),
    ("狀態", CLOSED_STATUS_VALUES),
)

# Clinic and store referral funnels never looked at 是否有借機 and only
# accepted TRUE for 是否借機.
REFERRAL_CONVERSION_RULE: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("是否成交", YES_VALUES),
    ("是否借機", ("TRUE",)),
    ("成交", YES_VALUES),
    ("狀態", CLOSED_STATUS_VALUES),
)

AMOUNT_KEYS = ("成交金額", "金額", "價格", "營業額")
SPECIALIST_KEYS = ("主聽力師", "聽力師")
UNKNOWN_SPECIALIST = "未知業務員"
CLINIC_KEY = "診所名稱"
STORE_PLACEHOLDER = "#N/A"
SOURCE_KEYS = ("顧客來源", "顧客來源\n(可複選)")
SCREENING_MARKER = "聽篩"
SERVICE_DATE_KEYS = ("服務日期", "初次到店")

NO_STATUS_FIELD = "無狀態欄位"
NO_AMOUNT_FIELD = "無金額欄位"

DEFAULT_PTA_THRESHOLD = 40
PTA_THRESHOLD_CHOICES = tuple(range(25, 95, 5))

STORE_OPTIONS = (
    "桃園藝文店",
    "桃園龜山店",
    "桃園內壢二店",
    "桃園環東店",
    "新竹湖口店",
    "北屯崇德店",
)
DEFAULT_STORE = STORE_OPTIONS[0]


class AnalysisError(ValueError):
    """Base class for errors that abort a whole analysis."""


class MissingDateColumnError(AnalysisError):
    def __init__(self, headers: list[str]) -> None:
        needles = ", ".join(dict(FIELD_CANDIDATES)["date"])
        super().__init__(
            f"No recognizable date column: expected a header containing one of {needles}. "
            f"Headers found: {headers}"
        )
        self.headers = list(headers)


@dataclass(frozen=True)
class DateRange:
    start_year: int
    start_month: int
    end_year: int
    end_month: int

    def __post_init__(self) -> None:
        for name in ("start_month", "end_month"):
            month = getattr(self, name)
            if not 1 <= month <= 12:
                raise ValueError(f"{name} must be between 1 and 12, got {month}")

    @property
    def first_day(self) -> date:
        return date(self.start_year, self.start_month, 1)

    @property
    def last_day(self) -> date:
        return date(self.end_year, self.end_month, calendar.monthrange(self.end_year, self.end_month)[1])

    @classmethod
    def calendar_year(cls, year: int) -> "DateRange":
        return cls(year, 1, year, 12)


@dataclass(frozen=True)
class FieldMap:
    date: str
    status: str | None = None
    amount: str | None = None
    left_ear: str | None = None
    right_ear: str | None = None
    store: str | None = None


@dataclass(frozen=True)
class Record:
    row_number: int
    cells: dict[str, str]
    date_text: str
    parsed_date: date

    def get(self, key: str) -> str:
        return self.cells.get(key, "")

    def first_filled(self, keys: tuple[str, ...]) -> str:
        for key in keys:
            value = self.cells.get(key, "")
            if value:
                return value
        return ""


@dataclass(frozen=True)
class ClassifiedRecord:
    record: Record
    is_potential: bool
    is_converted: bool
    referral_potential: bool
    referral_converted: bool
    deal_amount: float | None

    @property
    def counted_amount(self) -> float:
        """Amount that may enter money totals for the full conversion rule."""
        if self.is_converted and self.deal_amount is not None and self.deal_amount > 0:
            return self.deal_amount
        return 0.0

    @property
    def referral_counted_amount(self) -> float:
        if self.referral_converted and self.deal_amount is not None and self.deal_amount > 0:
            return self.deal_amount
        return 0.0


@dataclass(frozen=True)
class MonthlyBucket:
    month: str
    year: int
    month_number: int
    new_customers: int = 0
    completed_deals: int = 0
    total_amount: float = 0.0
    conversion_rate: float = 0.0
    average_amount: float = 0.0


@dataclass(frozen=True)
class SpecialistBucket:
    specialist: str
    potential: int = 0
    orders: int = 0
    sales_total: float = 0.0
    conversion_rate: float = 0.0


@dataclass(frozen=True)
class ClinicBucket:
    clinic: str
    total: int = 0
    potential: int = 0
    converted: int = 0
    total_amount: float = 0.0
    conversion_rate: float = 0.0


@dataclass(frozen=True)
class StoreBucket:
    store: str
    total: int = 0
    potential: int = 0


@dataclass(frozen=True)
class SourceMonthBucket:
    month: str
    year: int
    month_number: int
    total: int = 0
    potential: int = 0
    converted: int = 0
    total_amount: float = 0.0
    conversion_rate: float = 0.0


@dataclass(frozen=True)
class RowDetail:
    row_number: int
    date_text: str
    parsed_date: str
    month: str
    status: str
    amount: str
    is_potential: bool
    is_converted: bool
    deal_amount: float | None


@dataclass(frozen=True)
class RowAccounting:
    data_rows: int
    blank_date_rows: int
    unparseable_date_rows: int
    outside_window_rows: int
    analysed_rows: int


@dataclass(frozen=True)
class AnalysisResult:
    date_range: DateRange
    pta_threshold: float
    fields: FieldMap
    monthly: tuple[MonthlyBucket, ...]
    specialists: tuple[SpecialistBucket, ...]
    clinics: tuple[ClinicBucket, ...]
    stores: tuple[StoreBucket, ...]
    source_months: tuple[SourceMonthBucket, ...]
    total_potential: int
    total_converted: int
    total_amount: float
    overall_conversion_rate: float
    average_deal_amount: float
    earliest: str
    latest: str
    row_accounting: RowAccounting
    rows: tuple[RowDetail, ...]
    titles: dict[str, str] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "parameters": {
                "date_range": asdict(self.date_range),
                "pta_threshold": self.pta_threshold,
            },
            "fields": asdict(self.fields),
            "titles": dict(self.titles),
            "summary": {
                "total_potential": self.total_potential,
                "total_converted": self.total_converted,
                "total_amount": self.total_amount,
                "overall_conversion_rate": self.overall_conversion_rate,
                "average_deal_amount": self.average_deal_amount,
                "date_span": {"earliest": self.earliest, "latest": self.latest},
            },
            "row_accounting": asdict(self.row_accounting),
            "monthly": [asdict(bucket) for bucket in self.monthly],
            "specialists": [asdict(bucket) for bucket in self.specialists],
            "clinics": [asdict(bucket) for bucket in self.clinics],
            "stores": [asdict(bucket) for bucket in self.stores],
            "source_months": [asdict(bucket) for bucket in self.source_months],
            "warnings": list(self.warnings),
        }
