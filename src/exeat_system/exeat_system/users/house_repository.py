from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .house_model import House


class HouseRepository(Protocol):
    def list_all(self) -> Sequence[House]:
        raise NotImplementedError

    def get_by_id(self, house_id: int) -> Optional[House]:
        raise NotImplementedError
