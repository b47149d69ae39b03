"""Timeline playback state models (held by the controller, never persisted)."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from chronograph.models.node import Session


class TimeRange(BaseModel):
    """Inclusive playback bounds."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "TimeRange":
        if self.end < self.start:
            raise ValueError("time range end must not precede start")
        return self


class TimelineState(BaseModel):
    """Playback cursor and controls for one viewing session."""

    current_time: datetime
    is_playing: bool = False
    playback_speed: float = Field(default=1.0, gt=0.0)
    time_range: TimeRange
    selected_session: Session | None = None
