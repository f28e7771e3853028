"""Town services: buying, selling and resting at the inn."""

from aws_lambda_powertools import Logger

from shared.exceptions import ValidationError
from shared.items import ItemDefinition, shop_items

from .events import StateEvent
from .models import ActionResult
from .state import CharacterState

logger = Logger(child=True)

INN_REST_COST = 10


class ShopService:
    """Buys, sells and rests on behalf of a character."""

    def __init__(self, state: CharacterState, max_tier: int = 6) -> None:
        """Initialize shop service.

        Args:
            state: Character to trade for
            max_tier: Highest item tier the shop stocks
        """
        self.state = state
        self.max_tier = max_tier

    def stock(self) -> list[ItemDefinition]:
        """Items available to buy, cheapest first."""
        return shop_items(self.max_tier)

    def buy_item(self, item_id: str, quantity: int = 1) -> ActionResult:
        """Buy items. Gold is checked before anything changes."""
        if quantity < 1:
            raise ValidationError("Quantity must be positive", field="quantity")

        item = self.state.lookup(item_id)
        if item is None or not item.purchasable or item.tier > self.max_tier:
            return ActionResult.rejected("not_for_sale")

        total = item.buy_price * quantity
        if not self.state.spend_gold(total):
            logger.debug(
                "Purchase refused",
                extra={"item_id": item_id, "cost": total, "gold": self.state.gold},
            )
            return ActionResult.rejected("insufficient_gold")

        self.state.add_item(item_id, quantity)
        logger.info("Item purchased", extra={"item_id": item_id, "quantity": quantity, "cost": total})
        self.state.notify(StateEvent.ITEM_PURCHASED, item_id=item_id, quantity=quantity, cost=total)
        return ActionResult.ok(f"Bought {quantity} x {item.name}")

    def sell_item(self, item_id: str, quantity: int = 1) -> ActionResult:
        """Sell items from the inventory. Equipped items are not in it."""
        if quantity < 1:
            raise ValidationError("Quantity must be positive", field="quantity")

        item = self.state.lookup(item_id)
        if item is None:
            return ActionResult.rejected("unknown_item")
        if not self.state.remove_item(item_id, quantity):
            return ActionResult.rejected("not_owned")

        total = item.sell_price * quantity
        self.state.add_gold(total)
        logger.info("Item sold", extra={"item_id": item_id, "quantity": quantity, "earned": total})
        self.state.notify(StateEvent.ITEM_SOLD, item_id=item_id, quantity=quantity, earned=total)
        return ActionResult.ok(f"Sold {quantity} x {item.name}")

    def rest_at_inn(self) -> ActionResult:
        """Pay for a full restore of health and mana."""
        state = self.state
        if state.health >= state.effective_max_health and state.mana >= state.max_mana:
            return ActionResult.rejected("already_rested")
        if not state.spend_gold(INN_REST_COST):
            return ActionResult.rejected("insufficient_gold")

        state.full_heal()
        state.full_restore_mana()
        logger.info("Rested at inn", extra={"gold": state.gold})
        state.notify(StateEvent.RESTED, cost=INN_REST_COST)
        return ActionResult.ok("You feel well rested")
