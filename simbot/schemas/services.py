"""DTOs exchanged with the sibling microservices."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ServiceModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# Customers


class CustomerRequest(ServiceModel):
    firstName: str = Field(description="Customer's first name")
    lastName: str = Field(description="Customer's last name")
    email: str = Field(description="Customer's email address")
    phoneNumber: str = Field(description="Customer's phone number")


class CustomerResponse(ServiceModel):
    id: int
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phoneNumber: Optional[str] = None


class ByEmailRequest(ServiceModel):
    email: str = Field(min_length=1)


class ByPhoneNumberRequest(ServiceModel):
    phoneNumber: str = Field(min_length=1)


# Addresses


class AddressRequest(ServiceModel):
    customerId: int
    street: str
    district: Optional[str] = None
    number: Optional[str] = None
    postalCode: str
    reference: Optional[str] = None
    addressType: str = "CLIENT"


class AddressResponse(ServiceModel):
    id: int
    customerId: Optional[int] = None
    street: Optional[str] = None
    district: Optional[str] = None
    number: Optional[str] = None
    postalCode: Optional[str] = None
    reference: Optional[str] = None
    addressType: Optional[str] = None


# Orders and portabilities


class OrderRequest(ServiceModel):
    customerId: int = Field(description="Customer ID from registerCustomer or getCustomerByPhoneNumber")
    productId: int = Field(description="Product ID from the products list")
    addressId: Optional[int] = Field(default=None, description="Address ID from createAddress")
    checkoutId: Optional[int] = Field(default=None, description="Always null, checkout is created after the order")


class OrderResponse(ServiceModel):
    id: str
    customerId: Optional[int] = None
    productId: Optional[int] = None
    simId: Optional[int] = None
    addressId: Optional[int] = None
    checkoutId: Optional[int] = None
    paymentId: Optional[int] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class PortabilityRequest(ServiceModel):
    phoneNumber: str = Field(pattern=r"^[0-9]{10,15}$")
    orderId: str = Field(min_length=1)


class PortabilityResponse(ServiceModel):
    id: int
    phoneNumber: Optional[str] = None
    imei: Optional[str] = None
    portabilityNip: Optional[str] = None
    portabilityStatus: Optional[str] = None
    orderId: Optional[str] = None


class ImeiRequest(ServiceModel):
    imei: str = Field(min_length=1)


class PortabilityNipRequest(ServiceModel):
    nip: str = Field(min_length=1)


# Products


class SimCardResponse(ServiceModel):
    id: int
    icc: Optional[str] = None
    available: Optional[bool] = None
    portabilityId: Optional[str] = None
    simType: Optional[str] = None
    companyName: Optional[str] = None
    productId: Optional[int] = None
    productName: Optional[str] = None


# Payments


class CheckoutSessionRequest(ServiceModel):
    payment_link_id: int
    customer_id: int
    order_id: str
    success_url: str
    cancel_url: str


class CheckoutSessionResponse(ServiceModel):
    message: Optional[str] = None
    stripe_session_url: Optional[str] = None
    checkout_session_id: Optional[str] = None


# Scraper


class ScrapeRequest(ServiceModel):
    imei: str = Field(min_length=1)


class ScrapeResponse(ServiceModel):
    compatibility: Optional[bool] = None
    message: Optional[str] = None


class ScrapePortabilityRequest(ServiceModel):
    phone_number: str
    imei: Optional[str] = None
    portability_nip: Optional[str] = None
    icc: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None


class ScrapePortabilityResponse(ServiceModel):
    success: Optional[bool] = None
    message: Optional[str] = None
    details: Optional[Any] = None
