"""SQLite stores for connections, checks, results and cost metrics."""

from .base import SQLiteStore
from .checks import CheckStore
from .connections import ConnectionStore
from .costs import CostMetricStore
from .results import ResultStore
