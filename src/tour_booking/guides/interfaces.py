"""
Интерфейсы (порты) для работы с гидами.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from ..shared_kernel import EntityId
from .domain import GuideProfile


class IGuideRepository(Protocol):
    def get_by_id(self, guide_id: EntityId) -> Optional[GuideProfile]: ...
    def save(self, guide: GuideProfile) -> None: ...
    def list_all(self) -> List[GuideProfile]: ...
