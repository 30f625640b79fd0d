"""
Enums shared by the loaders, aggregations and API
"""
import enum


class Resource(str, enum.Enum):
    """Remote collections served by the collaborator API"""
    SALES = "sales"
    CLIENTS = "clients"
    CHECKOUTS = "checkouts"


class LoadPhase(str, enum.Enum):
    """Lifecycle of one progressive load"""
    IDLE = "idle"
    LOADING_INITIAL = "loading_initial"   # waiting for the first page
    LOADING_MORE = "loading_more"         # first page shown, more arriving
    COMPLETE = "complete"
    ERRORED = "errored"


class ProductCategory(str, enum.Enum):
    """Closed set of product categories"""
    CROCS = "Crocs"
    SEPHORA = "Sephora"
    PANDORA = "Pandora"
    PIX_DO_MILHAO = "PixDoMilhão"
    OUTROS = "Outros"


class DateFilter(str, enum.Enum):
    """Time window applied to sale timestamps"""
    TODAY = "today"
    LAST_7_DAYS = "7days"
    LAST_30_DAYS = "30days"
    ALL = "all"


class StatusFilter(str, enum.Enum):
    """Sale approval filter"""
    ALL = "all"
    APPROVED = "approved"
    PENDING = "pending"


class RollupBucket(str, enum.Enum):
    """Calendar granularity for revenue rollups"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class RowStatus(str, enum.Enum):
    """Inline feedback badge for an edited row"""
    SUCCESS = "success"
    ERROR = "error"
