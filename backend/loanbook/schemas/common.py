from pydantic import BaseModel


def finite_or_none(v: float | None):
    if v is None:
        return None
    if v != v:
        raise ValueError("must be a number")
    if v == float("inf") or v == float("-inf"):
        raise ValueError("must be finite")
    return v


class BinCounts(BaseModel):
    message: str
    loans: int = 0
    entries: int = 0
