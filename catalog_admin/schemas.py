from decimal import Decimal
from enum import Enum
from typing import Any, Generic, List, Optional, Tuple, TypeVar
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

T = TypeVar('T')

class ProductStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DISCONTINUED = "DISCONTINUED"

class Record(BaseModel):
    """Wire records use camelCase; Python code uses snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, validate_assignment=True)

    def to_input(self, **kw) -> dict:
        return self.model_dump(by_alias=True, mode='json', **kw)

class Localization(Record):
    lang: str = ''
    country: str = ''
    product_name: str = ''
    description: Optional[str] = ''
    price: Decimal = Field(default=Decimal('0'), ge=0)
    currency: str = 'USD'
    # set only on rows added locally and not yet saved
    pending_id: Optional[str] = Field(default=None, exclude=True)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.lang, self.country)

    @field_serializer('price', when_used='json')
    def _price_number(self, v: Decimal) -> float:
        return float(v)

class Product(Record):
    sku: str = ''
    category: Optional[str] = ''
    image_url: Optional[str] = None
    product_status: ProductStatus = ProductStatus.ACTIVE
    quantity_in_stock: int = Field(default=0, ge=0)
    localizations: List[Localization] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return self.sku

    def scalars(self) -> dict:
        return self.model_dump(exclude={'localizations'})

class Translation(Record):
    lang: str
    text: str = ''

    @property
    def key(self) -> str:
        return self.lang

class Category(Record):
    category: str
    translations: List[Translation] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return self.category

class CategoryLabel(Record):
    category: str
    text: Optional[str] = None

class Page(Record, Generic[T]):
    items: List[T] = Field(default_factory=list)
    next_token: Optional[str] = None

class OrderEvent(Record):
    event_id: str
    order_id: Optional[str] = None
    log_type: Optional[str] = None
    timestamp: Optional[str] = None
    message: Optional[str] = None
    details: Optional[Any] = None

class OrderLine(Record):
    sku: str
    quantity: int = 0
    price: Decimal = Decimal('0')

class OrderDetails(Record):
    order_id: Optional[str] = None
    amount: Decimal = Decimal('0')
    currency: str = 'USD'
    products: List[OrderLine] = Field(default_factory=list)

# Dashboard payloads (HTTP surface)

class LoginPayload(BaseModel):
    username: str
    password: str

class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = 'bearer'

class FieldEdit(BaseModel):
    field: str
    value: Any = None

class LocalizationCreate(BaseModel):
    lang: str = ''
    country: str = ''
    product_name: str = ''
    description: Optional[str] = ''
    price: Decimal = Field(default=Decimal('0'), ge=0)
    currency: Optional[str] = None

class CategoryCreate(BaseModel):
    name: str

class TranslationWrite(BaseModel):
    lang: str
    text: str

class FilterPayload(BaseModel):
    q: Optional[str] = ''

class TranslationText(BaseModel):
    text: str
