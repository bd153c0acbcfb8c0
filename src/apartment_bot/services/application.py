"""Submit rental applications through the wohnraumkarte contact form."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import requests

from ..adapters.base import DEFAULT_TIMEOUT, USER_AGENT
from ..exceptions import ApplicationError
from ..models.listing import ListingRecord

logger = logging.getLogger(__name__)

APPLICATION_URL = "https://www.wohnraumkarte.de/Api/sendMailRequest"


@dataclass
class Applicant:
    """Identity and letter sent with every application."""

    name: str
    first_name: str
    phone: str
    email: str
    text: str
    current_employment: str = "angestellte"
    income_type: str = "1"
    monthly_net_income: str = "M_3"
    referrer: str = "DeuWo"
    data_set: str = "deuwo"

    @classmethod
    def from_settings(cls, settings) -> "Applicant":
        application: Dict[str, Any] = settings.config["application"]
        return cls(
            name=settings.applicant_name,
            first_name=settings.applicant_first_name,
            phone=settings.applicant_phone,
            email=settings.applicant_email,
            text=settings.application_text,
            current_employment=str(application["current_employment"]),
            income_type=str(application["income_type"]),
            monthly_net_income=str(application["monthly_net_income"]),
            referrer=str(application["referrer"]),
            data_set=str(application["data_set"]),
        )


class ApplicationService:
    """
    Post a form-encoded application for a listing.

    submit() raises ApplicationError on transport failure or a non-2xx
    answer; what happens to the listing afterwards is the caller's policy.
    """

    def __init__(self, applicant: Applicant, url: str = APPLICATION_URL, timeout: float = DEFAULT_TIMEOUT):
        self.applicant = applicant
        self.url = url
        self.timeout = timeout

    def build_form(self, listing: ListingRecord) -> List[Tuple[str, str]]:
        applicant = self.applicant
        return [
            ("wrkID", listing.id),
            ("name", applicant.name),
            ("prename", applicant.first_name),
            ("phone", applicant.phone),
            ("email", applicant.email),
            ("emailText", applicant.text),
            ("currentEmployment", applicant.current_employment),
            ("incomeType", applicant.income_type),
            ("monthlyNetIncome", applicant.monthly_net_income),
            ("referrer", applicant.referrer),
            ("dataSet", applicant.data_set),
        ]

    async def submit(self, listing: ListingRecord) -> None:
        logger.info(f"Sending application for apartment: {listing.title}")
        await asyncio.to_thread(self._post, listing)
        logger.info(f"Application sent successfully for: {listing.title}")

    def _post(self, listing: ListingRecord) -> None:
        try:
            response = requests.post(
                self.url,
                data=self.build_form(listing),
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ApplicationError(f"Application request failed for {listing.id}: {e}") from e

        logger.debug(f"Application response for {listing.id}: {response.status_code} {response.text[:500]!r}")
        if not response.ok:
            raise ApplicationError(
                f"Application rejected for {listing.id}: HTTP {response.status_code} {response.reason}"
            )
