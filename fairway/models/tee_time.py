"""Tee time and weather snapshot models."""

from enum import Enum
from typing import Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class TeeTimeStatus(str, Enum):
    """Tee time availability status."""

    OPEN = "OPEN"
    BOOKED = "BOOKED"
    CANCELLED = "CANCELLED"


class SkyCondition(str, Enum):
    """Forecast sky condition."""

    CLEAR = "CLEAR"
    CLOUDY = "CLOUDY"
    RAIN = "RAIN"


class WeatherSnapshot(BaseModel):
    """Forecast for a tee-off hour, produced by the weather feed or a simulation."""

    model_config = ConfigDict(frozen=True)

    sky: SkyCondition = SkyCondition.CLEAR
    temperature_c: float = 15.0
    rain_probability: int = Field(default=0, ge=0, le=100, description="POP in percent")
    wind_speed: float = Field(default=0.0, ge=0, description="Wind speed in m/s")
    rainfall_mm: Optional[float] = Field(default=None, ge=0, description="Hourly rainfall")


class TeeTimeSnapshot(BaseModel):
    """A tee time as read for one pricing decision."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(gt=0)
    golf_club_id: int = Field(gt=0)
    tee_off: AwareDatetime
    base_price: int = Field(gt=0, description="Listed price in minor currency units")
    status: TeeTimeStatus = TeeTimeStatus.OPEN
    weather: Optional[WeatherSnapshot] = None

    @property
    def is_open(self) -> bool:
        return self.status == TeeTimeStatus.OPEN
