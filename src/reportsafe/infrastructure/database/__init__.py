"""Database layer"""

from .client import DatabaseClient
from .models import ActivityDB, Base, CounterDB, ReportDB

__all__ = ["DatabaseClient", "Base", "ReportDB", "ActivityDB", "CounterDB"]
