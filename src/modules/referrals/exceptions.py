from typing import Any, Dict
from uuid import UUID

from modules.core.exceptions import DomainError, NotFound


class ReferralCodeNotFound(NotFound):
    code = "referral_code_not_found"

    def __init__(self, referral_code_id: UUID) -> None:
        self.referral_code_id = referral_code_id
        super().__init__(f"Referral code {referral_code_id} not found.")

    def context(self) -> Dict[str, Any]:
        return {"referral_code_id": str(self.referral_code_id)}


class ReferralCodeInactive(DomainError):
    code = "referral_code_inactive"

    def __init__(self, code: str) -> None:
        self.referral_code = code
        super().__init__(f"Referral code {code} is inactive.")
