from pydantic import BaseModel


class SupervisorQuotaResponse(BaseModel):
    """Monthly payout hours a supervisor may approve without plant-manager sign-off."""

    limit: float
    used: float
    remaining: float
