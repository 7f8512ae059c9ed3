"""
Service pricing configuration

Reads and updates the single service pricing record, previews the impact
of a change and announces committed changes on the event bus.
"""

from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Mapping, Optional

from loguru import logger
from pydantic import ValidationError

from dispatch_engine.config.constants import DEFAULT_PRICING_UPDATED_BY, DEFAULT_SERVICE_PRICING
from dispatch_engine.config.settings import CommissionRates, settings
from dispatch_engine.events import EngineEvent, EventBus
from dispatch_engine.infra.ports import PricingStore
from dispatch_engine.models.domain import ServicePricing, ServiceType
from dispatch_engine.models.results import PriceChangeNotification, PricingImpact
from dispatch_engine.settlement.commission import pricing_impact
from dispatch_engine.utils.dates import utc_now
from dispatch_engine.utils.errors import InvalidPricing, PricingNotFound


def default_pricing(clock: Callable[[], datetime] = utc_now) -> ServicePricing:
    return ServicePricing(
        prices=dict(DEFAULT_SERVICE_PRICING),
        last_updated=clock(),
        updated_by=DEFAULT_PRICING_UPDATED_BY,
    )


def price_change_message(service_type: ServiceType, old_price: float, new_price: float, currency: str = "GHC") -> str:
    """
    Human-readable announcement of one price change.

    Example:
        "Installation service price increased from GHC 500 to GHC 600 (20.0% increase)"
    """
    direction = "increased" if new_price > old_price else "decreased"
    message = (
        f"{service_type.value.capitalize()} service price {direction} "
        f"from {currency} {_plain(old_price)} to {currency} {_plain(new_price)}"
    )
    if old_price:
        percentage = abs((new_price - old_price) / old_price * 100)
        noun = "increase" if new_price > old_price else "decrease"
        message = f"{message} ({percentage:.1f}% {noun})"
    return message


class PricingService:
    """
    Current service pricing with change previews and notifications.

    A missing pricing record is not an error for readers: the default
    record is returned and the fallback logged.
    """

    def __init__(
        self,
        store: PricingStore,
        event_bus: Optional[EventBus] = None,
        technician_payout_rate: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
        commission_rates: Optional[CommissionRates] = None,
    ):
        self.store = store
        self.events = event_bus or EventBus()
        self.rates = commission_rates or CommissionRates.from_settings(settings)
        if technician_payout_rate is not None:
            self.rates = replace(self.rates, technician_payout_rate=technician_payout_rate)
        self._clock = clock

    def get_current_pricing(self) -> ServicePricing:
        try:
            return self.store.load()
        except PricingNotFound:
            logger.warning("No service pricing stored, using default pricing")
            return default_pricing(self._clock)

    def get_service_price(self, service_type: ServiceType) -> float:
        return self.get_current_pricing().price_for(service_type)

    def preview(self, new_prices: Mapping[ServiceType, float]) -> List[PricingImpact]:
        """Impact of replacing the current prices with ``new_prices``."""
        proposed = self._validated(new_prices, "preview")
        return pricing_impact(self.get_current_pricing(), proposed, commission_rates=self.rates)

    def update_pricing(
        self,
        new_prices: Mapping[ServiceType, float],
        actor: str,
        actor_name: Optional[str] = None,
    ) -> List[PriceChangeNotification]:
        """
        Replace the stored pricing.

        Args:
            new_prices: Price for every service type
            actor: Id of the admin making the change (stored as ``updated_by``)
            actor_name: Display name used on notifications (defaults to ``actor``)

        Returns:
            One notification per service type whose price changed

        Raises:
            InvalidPricing: a service type is missing or a price is negative
        """
        current = self.get_current_pricing()
        updated = self._validated(new_prices, actor)
        self.store.save(updated)

        now = updated.last_updated
        notifications = []
        for service_type in ServiceType:
            old_price = current.price_for(service_type)
            new_price = updated.price_for(service_type)
            if old_price == new_price:
                continue
            notifications.append(
                PriceChangeNotification(
                    service_type=service_type,
                    old_price=old_price,
                    new_price=new_price,
                    change_percentage=round((new_price - old_price) / old_price * 100, 1) if old_price else None,
                    message=price_change_message(service_type, old_price, new_price, self.rates.currency_code),
                    created_by=actor_name or actor,
                    created_at=now,
                )
            )

        logger.success(f"Service pricing updated by {actor} ({len(notifications)} price change(s))")
        self.events.publish(
            EngineEvent(
                event="pricing_updated",
                subject_id="service_pricing",
                actor=actor,
                payload={
                    "prices": {service.value: price for service, price in updated.prices.items()},
                    "changes": [n.message for n in notifications],
                },
            )
        )
        return notifications

    def _validated(self, new_prices: Mapping[ServiceType, float], actor: str) -> ServicePricing:
        try:
            return ServicePricing(prices=dict(new_prices), last_updated=self._clock(), updated_by=actor)
        except ValidationError as e:
            raise InvalidPricing(f"Invalid service pricing: {e.errors()[0]['msg']}") from e


def _plain(amount: float) -> str:
    # 500.0 -> "500", 99.5 -> "99.5"
    text = f"{amount:.2f}"
    return text.rstrip("0").rstrip(".") if "." in text else text
