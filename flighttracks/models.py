"""
In-memory position model shared by the pipeline and the CSV export.

Positions live only for the duration of one run; the CSV file is the
only thing persisted.
"""

from dataclasses import dataclass
from typing import Optional, List, Any

# Column order of the exported CSV
POSITION_COLUMNS = ['latitude', 'longitude', 'timestamp', 'altitude', 'speed', 'direction']
AGGREGATE_COLUMNS = ['aircraft'] + POSITION_COLUMNS


@dataclass
class FilteredPosition:
    """An airborne track point, renamed for output."""
    latitude: Optional[float]
    longitude: Optional[float]
    timestamp: str
    altitude: float   # feet
    speed: float      # knots
    direction: Optional[float]  # degrees (0-360)
    aircraft: Optional[str] = None

    def to_row(self, include_aircraft: bool = False) -> List[Any]:
        row = [
            self.latitude,
            self.longitude,
            self.timestamp,
            self.altitude,
            self.speed,
            self.direction,
        ]
        if include_aircraft:
            row.insert(0, self.aircraft)
        return row
