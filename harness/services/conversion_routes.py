"""
Conversion Routes
Validated reward liquidation paths and the venue book that resolves them.

A route is `hops` plus the router used for each adjacent pair:
    hops   = [ICE, USDC, TETU]
    venues = [dfyn_router, quick_router]          # len(hops) - 1
Malformed routes are rejected when the model is built, not at trade time.
"""

import logging
from typing import Any, Dict, List

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from infrastructure.errors import RouteValidationError
from infrastructure.ledger import ZERO_ADDRESS, address_of

logger = logging.getLogger("ConversionRoutes")


class ConversionRoute(BaseModel):
    """Ordered swap path for one reward token"""
    hops: List[str]
    venues: List[str]

    @field_validator("hops", "venues")
    @classmethod
    def no_empty_addresses(cls, value: List[str]) -> List[str]:
        for address in value:
            if not address or address == ZERO_ADDRESS:
                raise ValueError("route contains an empty address")
        return value

    @model_validator(mode="after")
    def hops_match_venues(self) -> "ConversionRoute":
        if len(self.hops) < 2:
            raise ValueError(f"route needs at least 2 hops, got {len(self.hops)}")
        if len(self.hops) != len(self.venues) + 1:
            raise ValueError(
                f"hops/venues length mismatch: {len(self.hops)} hops need "
                f"{len(self.hops) - 1} venues, got {len(self.venues)}"
            )
        return self

    @property
    def source(self) -> str:
        return self.hops[0]

    @property
    def destination(self) -> str:
        return self.hops[-1]

    @classmethod
    def create(cls, hops: List[Any], venues: List[Any]) -> "ConversionRoute":
        """Build a route, raising RouteValidationError instead of pydantic's error."""
        hops = [address_of(h) for h in hops]
        venues = [address_of(v) for v in venues]
        try:
            return cls(hops=hops, venues=venues)
        except ValidationError as e:
            raise RouteValidationError(
                f"Invalid conversion route {hops}: {e.errors()[0]['msg']}",
                {"hops": hops, "venues": venues},
            )


class VenueBook:
    """Swap-factory identity -> router address"""

    def __init__(self, routers_by_factory: Dict[str, str]):
        self._routers = dict(routers_by_factory)

    def __contains__(self, factory: str) -> bool:
        return factory in self._routers

    def router_for(self, factory: str) -> str:
        router = self._routers.get(address_of(factory))
        if router is None:
            raise RouteValidationError(f"Unknown swap factory {factory}", {"factory": factory})
        return router


def long_route(reward_token, quote_token, protocol_reward_token,
               venues: VenueBook, factory: str, default_router: str) -> ConversionRoute:
    """reward -> quote on the strategy's venue, quote -> protocol reward on the default router"""
    return ConversionRoute.create(
        [reward_token, quote_token, protocol_reward_token],
        [venues.router_for(factory), default_router],
    )


def short_route(reward_token, quote_token, venues: VenueBook, factory: str) -> ConversionRoute:
    """reward -> quote only"""
    return ConversionRoute.create([reward_token, quote_token], [venues.router_for(factory)])


async def register_routes(forwarder: Any, routes: List[ConversionRoute]) -> int:
    """Push routes to the fee reward forwarder. Reverts propagate."""
    for route in routes:
        await forwarder.set_conversion_path(route.hops, route.venues)
        logger.info(f"Conversion path {route.source} -> {route.destination} via {len(route.venues)} venue(s)")
    return len(routes)
