"""
Wire models of the license issuance service (POST /issue-license).

Shared by the activation coordinator and the reference issuance service.
"""

from typing import Optional

from pydantic import BaseModel, Field


class IssueLicenseRequest(BaseModel):
    """Request body for issuing a license for a storefront order."""

    order_id: str = Field(min_length=1, max_length=128)
    email: str = Field(min_length=3, max_length=254)
    lang: Optional[str] = Field(default=None, max_length=16)


class IssueLicenseResponse(BaseModel):
    """
    Response body of the issuance service.

    Either {success: true, license_string, message} or {success: false, error}.
    """

    success: bool
    license_string: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
