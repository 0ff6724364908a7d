from typing import Any, Dict, Optional

from pydantic import ConfigDict, Field

from .base import StandardizedModel, StrictRequestModel


class AccountLinkRequest(StrictRequestModel):
    gym_id: Optional[str] = Field(None, alias="gymId")
    origin: Optional[str] = None
    return_path: Optional[str] = Field(None, alias="returnPath")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class VerifyAccountRequest(StrictRequestModel):
    gym_id: Optional[str] = Field(None, alias="gymId")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class AccountLinkResponse(StandardizedModel):
    url: str
    note: Optional[str] = None


class AccountStatusResponse(StandardizedModel):
    success: bool = True
    status: str
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    requirements: Optional[Dict[str, Any]] = None


class WebhookAck(StandardizedModel):
    received: bool = True
    duplicate: bool = False
    handled: bool = True
    error: Optional[str] = None
