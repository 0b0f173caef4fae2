from abc import ABC, abstractmethod
from datetime import datetime, timezone


class DateTimeService(ABC):
    @abstractmethod
    def get_current_time_utc(self) -> datetime:
        pass


class SystemDateTimeService(DateTimeService):
    """Wall clock, timezone-aware UTC."""

    def get_current_time_utc(self) -> datetime:
        return datetime.now(timezone.utc)
