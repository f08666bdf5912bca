from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class IdentificationMode(str, Enum):
    BARCODE = "barcode"
    DESCRIPTION = "description"


class UpcIdentification(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["upc"] = "upc"
    code: str


class DescriptionIdentification(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["description"] = "description"
    text: str


IdentificationResult = Annotated[
    Union[UpcIdentification, DescriptionIdentification],
    Field(discriminator="kind"),
]


class CatalogProduct(BaseModel):
    brand: str = ""
    title: str = ""

    def search_query(self) -> str:
        return " ".join(p.strip() for p in (self.brand, self.title) if p and p.strip())
