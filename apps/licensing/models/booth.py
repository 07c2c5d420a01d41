from pydantic import Field

from .common import BaseModel


class BoothSubscription(BaseModel):
    """Booth with its subscription status"""

    booth_id: str
    booth_name: str
    subscription_id: str | None = None
    status: str | None = None
    is_active: bool = False
    current_period_end: str | None = None
    cancel_at_period_end: bool = False
    price_id: str | None = None


class BoothSubscriptionList(BaseModel):
    """Response model for listing booth subscriptions"""

    items: list[BoothSubscription] = Field(default_factory=list)
    total: int = 0
