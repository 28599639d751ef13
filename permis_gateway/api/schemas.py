"""Pydantic schemas for API request/response validation"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from permis_gateway.domain.models import LeadFields


class LeadRequest(BaseModel):
    """Lead contact fields posted by the enrollment form"""

    model_config = ConfigDict(populate_by_name=True)

    offer_id: str = Field(..., alias="offerId", min_length=1, max_length=100, description="Offer identifier")
    first_name: Optional[str] = Field(None, alias="firstName", max_length=200)
    last_name: Optional[str] = Field(None, alias="lastName", max_length=200)
    phone: Optional[str] = Field(None, max_length=50)

    def lead(self) -> LeadFields:
        return LeadFields(
            first_name=self.first_name or "",
            last_name=self.last_name or "",
            phone=self.phone or "",
        )


class OneShotCheckoutRequest(LeadRequest):
    """Request body for POST /checkout/one-shot"""

    mode: str = Field("1x", description="Must be 1x on this endpoint")
    promo_code: Optional[str] = Field(None, alias="promoCode", max_length=100)


class InstallmentCheckoutRequest(LeadRequest):
    """Request body for POST /checkout/installments"""

    cycles: int = Field(3, description="Number of monthly installments (2, 3 or 4)")


class CheckoutResponse(BaseModel):
    """Response for checkout session creation"""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")


class WebhookAck(BaseModel):
    """Response for POST /webhooks/payment-events"""

    received: bool = True


class ErrorResponse(BaseModel):
    """Error body for 4xx/5xx responses"""

    error: str
    code: Optional[str] = None
    type: Optional[str] = None


class DiagnosticsResponse(BaseModel):
    """Response for GET /diagnostics"""

    model_config = ConfigDict(populate_by_name=True)

    front_url: str = Field(..., alias="frontUrl")
    stripe_mode: str = Field(..., alias="stripeMode")
    webhook_signing: bool = Field(..., alias="webhookSigning")
