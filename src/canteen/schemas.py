"""
Pydantic schemas for request validation.

Shapes and types are checked here; the dining rules themselves (date format,
meal type, empty or repeated members) are enforced by the services so that
their error codes are the same for every caller.
"""

from pydantic import BaseModel, Field, field_validator


def _strip_ids(values: list[str]) -> list[str]:
    return [value.strip() for value in values]


class DepartmentOrderLine(BaseModel):
    date: str = Field(..., min_length=1, max_length=10)
    meal_type: str = Field(..., min_length=1)
    member_ids: list[str] = Field(default_factory=list)
    remark: str | None = Field(None, max_length=500)
    department_id: str | None = None

    @field_validator("member_ids")
    @classmethod
    def strip_member_ids(cls, v):
        return _strip_ids(v)


class CreateDepartmentOrderRequest(DepartmentOrderLine):
    pass


class BatchDepartmentOrdersRequest(BaseModel):
    orders: list[DepartmentOrderLine] = Field(..., min_length=1, max_length=100)


class MealSlot(BaseModel):
    date: str = Field(..., min_length=1, max_length=10)
    meal_type: str = Field(..., min_length=1)


class QuickBatchOrdersRequest(BaseModel):
    member_ids: list[str] = Field(default_factory=list)
    meals: list[MealSlot] = Field(..., min_length=1, max_length=100)
    remark: str | None = Field(None, max_length=500)
    department_id: str | None = None

    @field_validator("member_ids")
    @classmethod
    def strip_member_ids(cls, v):
        return _strip_ids(v)


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class ConfirmDiningRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    remark: str | None = Field(None, max_length=500)


class AdminConfirmRequest(ConfirmDiningRequest):
    member_id: str | None = None


class BatchConfirmRequest(BaseModel):
    order_ids: list[str] = Field(..., min_length=1, max_length=200)
    remark: str | None = Field(None, max_length=500)

    @field_validator("order_ids")
    @classmethod
    def strip_order_ids(cls, v):
        return _strip_ids(v)


class QRScanRequest(BaseModel):
    qr_code: str = Field(..., min_length=1, max_length=128)

    @field_validator("qr_code")
    @classmethod
    def normalize_code(cls, v):
        return v.strip()
