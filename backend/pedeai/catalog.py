"""Product catalog and customer (CRM) projections of the remote records."""

from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, field_validator

from pedeai.pedidos import format_brl, parse_amount, parse_quantity, parse_table_number


class Station(str, Enum):
    BAR = "bar"
    KITCHEN = "kitchen"


class Product(BaseModel):
    id: int
    name: str
    price: float = 0.0
    category: str = "Geral"
    station: Station = Station.BAR
    stock: int = 0
    min_stock: int = 10
    description: str = ""
    active: bool = True


class ProductInput(BaseModel):
    name: str
    price: float
    category: Optional[str] = None
    station: Optional[Station] = None
    stock: Optional[int] = None
    min_stock: Optional[int] = None
    description: Optional[str] = None
    active: Optional[bool] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    station: Optional[Station] = None
    stock: Optional[int] = None
    min_stock: Optional[int] = None
    description: Optional[str] = None
    active: Optional[bool] = None

    @field_validator("name", "price")
    @classmethod
    def not_null(cls, v):
        # Omit the field to keep it; null would blank a required column
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class Customer(BaseModel):
    id: int
    name: str = ""
    phone: str = ""
    current_table: int = 0
    visits: int = 0


def _station(value: Any) -> Station:
    text = str(value or "").strip().lower()
    if text in ("kitchen", "cozinha"):
        return Station.KITCHEN
    return Station.BAR


def parse_produto(raw: Dict[str, Any]) -> Product:
    ativo = raw.get("ativo")
    return Product(
        id=parse_quantity(raw.get("id"), default=0),
        name=str(raw.get("nome") or ""),
        price=parse_amount(raw.get("preco")),
        category=str(raw.get("categoria") or "Geral"),
        station=_station(raw.get("estacao")),
        stock=parse_quantity(raw.get("estoque"), default=0),
        min_stock=parse_quantity(raw.get("estoque_minimo"), default=10),
        description=str(raw.get("descricao") or ""),
        active=True if ativo is None else bool(ativo),
    )


def product_to_record(product: Union[ProductInput, ProductUpdate], partial: bool = False) -> Dict[str, Any]:
    """Remote column values for a product insert (or the set fields of an update)."""
    data = product.model_dump(exclude_unset=partial)
    mapping = {
        "name": "nome",
        "category": "categoria",
        "station": "estacao",
        "stock": "estoque",
        "min_stock": "estoque_minimo",
        "description": "descricao",
        "active": "ativo",
    }
    record: Dict[str, Any] = {}
    for key, value in data.items():
        if key == "price":
            record["preco"] = format_brl(value) if value is not None else None
        elif key == "station" and value is not None:
            record["estacao"] = Station(value).value
        else:
            record[mapping[key]] = value
    if not partial:
        record["categoria"] = record.get("categoria") or "Geral"
        record["estacao"] = record.get("estacao") or Station.BAR.value
        record["estoque"] = record.get("estoque") or 0
        record["estoque_minimo"] = record.get("estoque_minimo") or 10
        record["descricao"] = record.get("descricao") or ""
        record["ativo"] = True if record.get("ativo") is None else record["ativo"]
    return record


def parse_usuario(raw: Dict[str, Any]) -> Customer:
    return Customer(
        id=parse_quantity(raw.get("id"), default=0),
        name=str(raw.get("nome") or ""),
        phone=str(raw.get("telefone") or ""),
        current_table=parse_table_number(raw.get("mesa_atual")),
        visits=parse_quantity(raw.get("quantas_vezes_foi"), default=0),
    )
