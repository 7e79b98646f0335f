"""Bybit v5 ticker payloads."""
import math
from typing import Any

from pydantic import (BaseModel, ConfigDict, Field, ValidationError,
                      field_validator)


class BybitTicker(BaseModel):
    """One entry of ``result.list``; only the fields the engine needs."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    symbol: str = ""
    last_price: float | None = Field(default=None, alias="lastPrice")

    @field_validator("last_price", mode="before")
    @classmethod
    def _parse_price(cls, value: Any) -> float | None:
        # Bybit sends prices as strings; anything non-numeric counts as missing
        try:
            price = float(value)
        except (TypeError, ValueError):
            return None
        return price if math.isfinite(price) else None

    @property
    def usable(self) -> bool:
        return bool(self.symbol) and self.last_price is not None


class BybitTickerList(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    category: str = ""
    # Raw entries are validated one by one so a bad entry only drops itself
    items: list[Any] = Field(default_factory=list, alias="list")


class BybitTickersResponse(BaseModel):
    """Envelope of ``GET /v5/market/tickers``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ret_code: int = Field(default=0, alias="retCode")
    ret_msg: str = Field(default="", alias="retMsg")
    result: BybitTickerList = Field(default_factory=BybitTickerList)

    def tickers(self) -> list[BybitTicker]:
        """Parse entries, silently skipping any that are not valid ticker objects."""
        parsed: list[BybitTicker] = []
        for entry in self.result.items:
            if not isinstance(entry, dict):
                continue
            try:
                parsed.append(BybitTicker.model_validate(entry))
            except ValidationError:
                continue
        return parsed
