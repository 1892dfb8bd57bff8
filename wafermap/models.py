"""
Domain Models for Wafer Chip Mapping.
Encapsulates the chip record and the container holding the current chip collection.
"""
from dataclasses import dataclass, asdict
import pandas as pd
from typing import Any, Dict, Iterator, List, Optional

from wafermap.config import DEFAULT_CHIP_COLOR

# Fields a user may edit on an existing chip.
EDITABLE_FIELDS = ('color', 'label', 'file_name')

# Python attribute name -> key used in saved documents.
_RECORD_KEYS = {'file_name': 'fileName'}


@dataclass
class Chip:
    """
    A single grid cell. (x, y) is the bottom-left corner in wafer-centered
    coordinates (mm). `number` is only set for chips inside the usable area.
    """
    id: int
    x: float
    y: float
    width: float
    height: float
    inside: bool
    number: Optional[int] = None
    color: str = DEFAULT_CHIP_COLOR
    label: str = ''
    file_name: str = ''

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    @property
    def is_default(self) -> bool:
        """True if no user data has been assigned to the chip."""
        return self.color == DEFAULT_CHIP_COLOR and not self.label and not self.file_name

    def to_record(self) -> Dict[str, Any]:
        """Returns the chip as a saved-document record, omitting None values."""
        record = {}
        for key, value in asdict(self).items():
            if value is None:
                continue
            record[_RECORD_KEYS.get(key, key)] = value
        return record


class ChipCollection:
    """
    Container for the current chip collection.
    Chips keep the order in which the generator emitted them.
    """
    def __init__(self, chips: Optional[List[Chip]] = None):
        self._chips: List[Chip] = list(chips) if chips else []
        self._by_id: Dict[int, Chip] = {chip.id: chip for chip in self._chips}

    def get_chip(self, chip_id: int) -> Optional[Chip]:
        return self._by_id.get(chip_id)

    def update_chip(self, chip_id: int, **updates) -> bool:
        """
        Mutates the editable fields of a chip in place.
        Returns False if no chip has the given id.
        """
        unknown = set(updates) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update chip field(s): {sorted(unknown)}. Editable fields are {list(EDITABLE_FIELDS)}.")

        chip = self._by_id.get(chip_id)
        if chip is None:
            return False

        for key, value in updates.items():
            if value is not None:
                setattr(chip, key, value)
        return True

    def inside_chips(self) -> List[Chip]:
        return [chip for chip in self._chips if chip.inside]

    def to_records(self) -> List[Dict[str, Any]]:
        return [chip.to_record() for chip in self._chips]

    def to_dataframe(self, inside_only: bool = False) -> pd.DataFrame:
        """Returns the chips as a DataFrame ordered by reading-order number when inside_only."""
        chips = self.inside_chips() if inside_only else self._chips
        columns = ['id', 'x', 'y', 'width', 'height', 'inside', 'number', 'color', 'label', 'file_name']
        if not chips:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame([asdict(chip) for chip in chips], columns=columns)
        df['number'] = df['number'].astype('Int64')
        if inside_only:
            df = df.sort_values('number').reset_index(drop=True)
        return df

    @property
    def chips(self) -> List[Chip]:
        return list(self._chips)

    def __bool__(self):
        return bool(self._chips)

    def __len__(self):
        return len(self._chips)

    def __iter__(self) -> Iterator[Chip]:
        return iter(self._chips)

    def __contains__(self, chip_id):
        return chip_id in self._by_id
