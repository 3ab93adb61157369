import uuid
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class CategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Name of the category.")
    description: Optional[str] = None


class ProductRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Name of the product (e.g., Margherita Pizza).")
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Selling price of the product.")
    category_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    is_available: bool = Field(True, description="Whether the product can currently be ordered.")


class AvailabilityUpdate(BaseModel):
    is_available: bool


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    price: Decimal
    category_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    is_available: bool


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
