"""Canonical invoice data produced by normalization.

Every field is independently nullable: extraction is best effort and a
missing value is always reported as None rather than guessed.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class LineItem(BaseModel):
    """One row of an invoice's itemized charges."""

    description: str | None = Field(None, description="Item description")
    quantity: float | None = Field(None, description="Number of units")
    unit_price: float | None = Field(None, description="Price per unit")
    amount: float | None = Field(None, description="Extended line amount")

    def is_empty(self) -> bool:
        return (
            not self.description
            and self.quantity is None
            and self.unit_price is None
            and self.amount is None
        )


class InvoiceFields(BaseModel):
    """Structured invoice fields extracted from a document."""

    # Supplier information
    supplier_name: str | None = Field(None, description="Supplier/vendor company name")
    supplier_address: str | None = Field(None, description="Supplier address")

    # Identifiers
    invoice_number: str | None = Field(None, description="Invoice identifier")
    purchase_order_number: str | None = Field(None, description="Purchase order reference")

    # Dates (local midnight of the calendar date)
    invoice_date: datetime | None = Field(None, description="Date invoice was issued")
    due_date: datetime | None = Field(None, description="Payment due date")

    # Financial details
    subtotal: float | None = Field(None, description="Subtotal before tax")
    tax: float | None = Field(None, description="Tax amount")
    total: float | None = Field(None, description="Total amount including tax")
    currency: str | None = Field(None, description="Currency code (ISO 4217)")

    line_items: list[LineItem] = Field(default_factory=list, description="Itemized charges")
