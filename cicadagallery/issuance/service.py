"""
Reference license issuance service.

Implements POST /issue-license on top of an OrderBook. Looking orders up at
the storefront and e-mailing keys are left to the OrderBook implementation;
the in-memory one here serves development and tests.
"""

import threading
from typing import Dict, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cicadagallery.issuance.signer import LicenseSigner
from cicadagallery.licensing.schemas import IssueLicenseRequest, IssueLicenseResponse
from cicadagallery.utils.verbosity_logger import get_logger, sanitize_log

logger = get_logger("cicadagallery.issuance.service")

MESSAGES = {
    "en": {
        "issued": "Your license has been issued. Thank you for your purchase!",
        "order_not_found": "order not found",
        "email_mismatch": "e-mail address does not match the order",
        "already_issued": "license already issued for this order",
        "invalid_request": "invalid request",
    },
    "ja": {
        "issued": "ライセンスを発行しました。ご購入ありがとうございます！",
        "order_not_found": "注文が見つかりません",
        "email_mismatch": "メールアドレスが注文と一致しません",
        "already_issued": "この注文のライセンスは発行済みです",
        "invalid_request": "リクエストが不正です",
    },
}


def get_message(key: str, lang: Optional[str] = None) -> str:
    """Look up a response message, falling back to English."""
    language = (lang or "en").split("-")[0].lower()
    return MESSAGES.get(language, MESSAGES["en"])[key]


class OrderBook:
    """
    Source of truth about storefront orders.
    """

    def reserve(self, order_id: str, email: str) -> Optional[str]:
        """
        Reserve an order for license issuance.

        Returns:
            None if the license may be issued, otherwise a message key
        """
        raise NotImplementedError

    def record_issued(self, order_id: str, license_string: str) -> None:
        """Remember the license issued for an order."""
        raise NotImplementedError

    def release(self, order_id: str) -> None:
        """Undo a reservation whose license could not be issued."""
        raise NotImplementedError


class InMemoryOrderBook(OrderBook):
    """OrderBook over a dict of order id to purchaser e-mail."""

    def __init__(self, orders: Optional[Dict[str, str]] = None):
        self._orders = {
            str(order_id): str(email) for order_id, email in (orders or {}).items()
        }
        self._issued: Dict[str, str] = {}
        self._lock = threading.Lock()

    def add_order(self, order_id: str, email: str) -> None:
        with self._lock:
            self._orders[order_id] = email

    def issued_license(self, order_id: str) -> Optional[str]:
        return self._issued.get(order_id)

    def reserve(self, order_id: str, email: str) -> Optional[str]:
        with self._lock:
            expected = self._orders.get(order_id)
            if expected is None:
                return "order_not_found"
            if expected.strip().lower() != email.strip().lower():
                return "email_mismatch"
            if order_id in self._issued:
                return "already_issued"
            self._issued[order_id] = ""
            return None

    def record_issued(self, order_id: str, license_string: str) -> None:
        with self._lock:
            self._issued[order_id] = license_string

    def release(self, order_id: str) -> None:
        with self._lock:
            # Issued licenses stay issued
            if self._issued.get(order_id) == "":
                del self._issued[order_id]


def create_router(signer: LicenseSigner, order_book: OrderBook) -> APIRouter:
    """Build the router serving POST /issue-license."""
    router = APIRouter(tags=["licenses"])

    @router.post(
        "/issue-license",
        response_model=IssueLicenseResponse,
        response_model_exclude_none=True,
    )
    async def issue_license(request: IssueLicenseRequest):
        """
        Exchange a storefront order for a signed license string.
        """
        rejection = order_book.reserve(request.order_id, request.email)
        if rejection:
            logger.warning(
                "License request for order %s rejected: %s",
                sanitize_log(request.order_id),
                rejection,
            )
            return IssueLicenseResponse(
                success=False, error=get_message(rejection, request.lang)
            )

        try:
            license_string = signer.issue(request.order_id, request.email)
        except Exception:
            order_book.release(request.order_id)
            logger.error(
                "Signing failed for order %s, reservation released",
                sanitize_log(request.order_id),
            )
            raise
        order_book.record_issued(request.order_id, license_string)
        logger.info("License issued for order %s", sanitize_log(request.order_id))
        return IssueLicenseResponse(
            success=True,
            license_string=license_string,
            message=get_message("issued", request.lang),
        )

    return router


def create_app(signer: LicenseSigner, order_book: OrderBook) -> FastAPI:
    """Create the issuance service application."""
    app = FastAPI(title="CicadaGallery License Issuance", version="1.0.0")
    app.include_router(create_router(signer, order_book))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """Answer malformed requests in the service's own response shape."""
        logger.warning(
            "Invalid issuance request on %s: %s", request.url.path, exc.errors()
        )
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": get_message("invalid_request")},
        )

    return app
