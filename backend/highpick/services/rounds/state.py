from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class RoundState:
    """In-memory view of the current round, owned by the round machine."""
    id: int
    start_time: datetime
    active: bool = True
    end_time: Optional[datetime] = None
    displayed_numbers: List[int] = field(default_factory=list)
    winning_number: Optional[int] = None
    winners: List[int] = field(default_factory=list)
    winner_names: List[str] = field(default_factory=list)

    @property
    def latest_number(self) -> Optional[int]:
        return self.displayed_numbers[-1] if self.displayed_numbers else None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'active': self.active,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'displayed_numbers': list(self.displayed_numbers),
            'winning_number': self.winning_number,
            'winners': list(self.winners),
            'winner_names': list(self.winner_names),
        }
