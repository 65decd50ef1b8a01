"""Product and category schemas.

`active` is never accepted from clients: it only changes through the
approval workflow.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from goagri.schemas.validators import is_http_url, normalize_images, sanitize_string


# ── Category ─────────────────────────────────────────────────

class CategoryOut(BaseModel):
    id: str
    category_name: str
    category_description: str | None = None
    image: str | None = None
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CategoryCreate(BaseModel):
    category_name: str
    category_description: str | None = None
    image: str | None = None

    @field_validator("category_name")
    @classmethod
    def _name(cls, v: str) -> str:
        return sanitize_string(v, max_length=255)

    @field_validator("image")
    @classmethod
    def _image(cls, v: str | None) -> str | None:
        if v and not is_http_url(v):
            raise ValueError("image must be a valid http(s) URL")
        return v


class CategoryUpdate(BaseModel):
    category_name: str | None = None
    category_description: str | None = None
    image: str | None = None

    @field_validator("category_name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        return sanitize_string(v, max_length=255) if v is not None else v

    @field_validator("image")
    @classmethod
    def _image(cls, v: str | None) -> str | None:
        if v and not is_http_url(v):
            raise ValueError("image must be a valid http(s) URL")
        return v


class CategoryMutationResponse(BaseModel):
    success: bool = True
    message: str
    category: CategoryOut | None = None
    requires_approval: bool


class CategoryListResponse(BaseModel):
    success: bool = True
    data: list[CategoryOut]


# ── Product ──────────────────────────────────────────────────

class ProductOut(BaseModel):
    id: str
    name: str
    description: str = ""
    stock: int
    sold: int
    price: float
    min_stock: int
    weight_kg: float | None = None
    category_id: str | None = None
    images: list[str] = []
    catalog: bool
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProductCreate(BaseModel):
    name: str
    price: float = Field(ge=0)
    category_id: str
    description: str = ""
    stock: int = Field(0, ge=0)
    min_stock: int = Field(0, ge=0)
    weight_kg: float | None = Field(None, ge=0)
    images: list[str] = []
    catalog: bool = True

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return sanitize_string(v, max_length=255)

    @field_validator("images", mode="before")
    @classmethod
    def _images(cls, v):
        return normalize_images(v)


class ProductUpdate(BaseModel):
    name: str | None = None
    price: float | None = Field(None, ge=0)
    category_id: str | None = None
    description: str | None = None
    stock: int | None = Field(None, ge=0)
    sold: int | None = Field(None, ge=0)
    min_stock: int | None = Field(None, ge=0)
    weight_kg: float | None = Field(None, ge=0)
    images: list[str] | None = None
    catalog: bool | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        return sanitize_string(v, max_length=255) if v is not None else v

    @field_validator("images", mode="before")
    @classmethod
    def _images(cls, v):
        return normalize_images(v) if v is not None else v


class ProductMutationResponse(BaseModel):
    success: bool = True
    message: str
    product: ProductOut | None = None
    requires_approval: bool
