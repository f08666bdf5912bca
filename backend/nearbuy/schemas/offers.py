from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


ROUTING_UNAVAILABLE = "Distance unavailable"
GEODESIC_UNAVAILABLE = "N/A"


class KnownDistance(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["known"] = "known"
    text: str                      # e.g. "450m", "2.3km"


class UnavailableDistance(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["unavailable"] = "unavailable"
    text: str = ROUTING_UNAVAILABLE


Distance = Annotated[Union[KnownDistance, UnavailableDistance], Field(discriminator="kind")]


class Offer(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    price: Optional[str] = None          # e.g. "$5.99"
    price_value: Optional[float] = None  # parsed numeric value for sorting
    seller: str                          # raw vendor text, e.g. "Voilà by Sobeys"
    store: Optional[str] = None          # canonical retailer, e.g. "Sobeys"
    rating: Optional[float] = None
    reviews: Optional[int] = None
    thumbnail: Optional[str] = None
    product_link: Optional[str] = None
    distance: Optional[Distance] = None  # always set once distances are annotated


ResolvedResultSet = Tuple[Offer, ...]
