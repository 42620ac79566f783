"""Argument models for the tools; their JSON schema is what the model sees."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CustomerIdArgs(ToolArgs):
    customerId: int = Field(description="Customer ID")


class CreateAddressArgs(ToolArgs):
    customerId: int = Field(description="Customer ID returned by registerCustomer or getCustomerByPhoneNumber")
    street: str = Field(min_length=1, max_length=200, description="Street, required, max 200 characters")
    district: Optional[str] = Field(default=None, max_length=100, description="District, max 100 characters")
    number: Optional[str] = Field(default=None, description="Street number of the address")
    postalCode: str = Field(min_length=1, max_length=20, description="Postal code, required, max 20 characters")
    reference: Optional[str] = Field(default=None, max_length=45, description="Additional info, max 45 characters")


class CreateOrderArgs(ToolArgs):
    customerId: int = Field(description="Customer ID from registerCustomer or getCustomerByPhoneNumber. Never a hardcoded value")
    productId: int = Field(description="Product ID from the products list")
    addressId: Optional[int] = Field(default=None, description="Address ID from createAddress")
    checkoutId: Optional[int] = Field(default=None, description="Must be null; the checkout is created after the order")


class CreatePortabilityOrderArgs(CreateOrderArgs):
    phoneNumber: Optional[str] = Field(default=None, description="Phone number to port, 10 to 15 digits")


class OrderIdArgs(ToolArgs):
    id: str = Field(min_length=1, description="Order ID (UUID string)")


class UpdateImeiArgs(ToolArgs):
    imei: str = Field(min_length=1, description="Device IMEI")
    portabilityId: Optional[int] = Field(default=None, description="Portability ID; defaults to the one in context")


class UpdateNipArgs(ToolArgs):
    nip: str = Field(min_length=1, description="Portability NIP code")
    portabilityId: Optional[int] = Field(default=None, description="Portability ID; defaults to the one in context")


class CheckoutSessionArgs(ToolArgs):
    payment_link_id: Optional[int] = Field(default=None, description="Payment link ID for the product being purchased")
    customer_id: Optional[int] = Field(default=None, description="Same customer ID used to create the order")
    order_id: Optional[str] = Field(default=None, description="Order ID returned by the order creation tool")
