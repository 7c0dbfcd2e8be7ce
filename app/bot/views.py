"""Buttons and the vouch form. Every callback goes through the dispatcher."""

from typing import TYPE_CHECKING, Dict, Sequence, Tuple

import discord

from app.api.router import MESSAGE_FIELD, PRODUCT_FIELD, STARS_FIELD, vouch_form_id
from app.schemas.interaction import Component, EventKind

if TYPE_CHECKING:
    from app.bot.client import BotClient


BUTTONS: Dict[Component, Tuple[str, discord.ButtonStyle]] = {
    Component.CREATE_TICKET: ("Create Ticket", discord.ButtonStyle.success),
    Component.CLOSE_TICKET: ("Close Ticket", discord.ButtonStyle.danger),
}


class ComponentView(discord.ui.View):
    """
    Persistent view (no timeout, fixed custom ids). Registering one instance
    holding every button at startup keeps old panels working after a restart.
    """

    def __init__(self, bot: "BotClient", components: Sequence[Component]):
        super().__init__(timeout=None)
        self.bot = bot
        for component in components:
            label, style = BUTTONS[component]
            button = discord.ui.Button(label=label, style=style, custom_id=component.value)
            button.callback = self._callback_for(component)
            self.add_item(button)

    def _callback_for(self, component: Component):
        async def callback(interaction: discord.Interaction):
            await self.bot.handle(interaction, EventKind.BUTTON, component.value)

        return callback


class VouchModal(discord.ui.Modal):
    def __init__(self, bot: "BotClient", seller_id: int, trust_marker: str):
        super().__init__(title="Vouch for Seller", custom_id=vouch_form_id(seller_id))
        self.bot = bot
        self.stars = discord.ui.TextInput(
            label="Star Rating (1-5)",
            custom_id=STARS_FIELD,
            style=discord.TextStyle.short,
            placeholder="5",
            max_length=3,
            required=True,
        )
        self.product = discord.ui.TextInput(
            label="Product/Service",
            custom_id=PRODUCT_FIELD,
            style=discord.TextStyle.short,
            placeholder="What did you buy?",
            max_length=100,
            required=True,
        )
        self.message = discord.ui.TextInput(
            label="Vouch Message",
            custom_id=MESSAGE_FIELD,
            style=discord.TextStyle.paragraph,
            placeholder=f"Describe your experience (must include {trust_marker})",
            max_length=1000,
            required=True,
        )
        self.add_item(self.stars)
        self.add_item(self.product)
        self.add_item(self.message)

    async def on_submit(self, interaction: discord.Interaction):
        await self.bot.handle(
            interaction,
            EventKind.FORM,
            self.custom_id,
            {
                STARS_FIELD: self.stars.value,
                PRODUCT_FIELD: self.product.value,
                MESSAGE_FIELD: self.message.value,
            },
        )
