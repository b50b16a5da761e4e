"""
Overlap audit schemas
"""
from datetime import date
from typing import List
from pydantic import BaseModel, Field


class OverlapSide(BaseModel):
    kind: str = Field(..., description="LEAVE or WFH")
    request_id: int
    request_number: str
    start_date: date
    end_date: date


class OverlapOut(BaseModel):
    """Two active requests of one user sharing at least one day"""
    user_id: int
    first: OverlapSide
    second: OverlapSide
    days: List[date]

    @classmethod
    def from_overlap(cls, overlap) -> "OverlapOut":
        def side(conflict) -> OverlapSide:
            start, end = conflict.selection.bounds()
            return OverlapSide(
                kind=conflict.kind,
                request_id=conflict.request_id,
                request_number=conflict.request_number,
                start_date=start,
                end_date=end,
            )
        return cls(
            user_id=overlap.user_id,
            first=side(overlap.first),
            second=side(overlap.second),
            days=sorted(overlap.days),
        )


class OverlapReport(BaseModel):
    total: int
    items: List[OverlapOut]
