# Copyright 2025 Hathor Labs
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from typing import NamedTuple

from hathor import (
    Address,
    Amount,
    Blueprint,
    CallerId,
    Context,
    NCFail,
    export,
    public,
    view,
)


class CampaignTokenInfo(NamedTuple):
    """General ledger information."""

    name: str
    symbol: str
    total_issued: int
    total_burned: int
    holders: int
    paused: bool


class CampaignTokenBurnInfo(NamedTuple):
    """Burn totals for a single holder."""

    burned: int
    total_burned: int
    burn_count: int


class CampaignTokenError(NCFail):
    """Base error for CampaignToken operations."""

    pass


class Unauthorized(CampaignTokenError):
    """Raised when the caller is not the minter."""

    pass


class InvalidAmount(CampaignTokenError):
    """Raised when an amount is zero or negative."""

    pass


class InsufficientBalance(CampaignTokenError):
    """Raised when a holder does not own enough units."""

    pass


class TransfersPaused(CampaignTokenError):
    """Raised when transferring while the ledger is paused."""

    pass


class InvalidState(CampaignTokenError):
    """Raised when pausing a paused ledger or unpausing an active one."""

    pass


@export
class CampaignToken(Blueprint):
    """Mintable, pausable ledger issued by a campaign contract.

    The contract that creates the ledger becomes its minter. Only the minter
    may issue new units or toggle the pause flag; holders can transfer while
    the ledger is unpaused and burn their own units at any time.
    """

    name: str
    symbol: str
    minter: CallerId

    total_issued_amount: Amount
    total_burned: Amount
    paused: bool

    balances: dict[Address, Amount]
    burned: dict[Address, Amount]
    holders_count: int
    burn_count: int

    @public
    def initialize(self, ctx: Context, name: str, symbol: str) -> None:
        """Create an empty ledger owned by the caller."""
        if not name or not symbol:
            raise CampaignTokenError("Name and symbol are required")

        self.name = name
        self.symbol = symbol
        self.minter = ctx.caller_id

        self.total_issued_amount = Amount(0)
        self.total_burned = Amount(0)
        self.paused = False

        self.balances = {}
        self.burned = {}
        self.holders_count = 0
        self.burn_count = 0

    def _only_minter(self, ctx: Context) -> None:
        if ctx.caller_id != self.minter:
            raise Unauthorized("Only the minter can call this method")

    def _credit(self, address: Address, amount: Amount) -> None:
        balance = self.balances.get(address, Amount(0))
        if balance == 0:
            self.holders_count += 1
        self.balances[address] = Amount(balance + amount)

    def _debit(self, address: Address, amount: Amount) -> None:
        balance = self.balances.get(address, Amount(0))
        if balance < amount:
            raise InsufficientBalance(
                f"Insufficient balance. Has {balance}, needs {amount}"
            )
        self.balances[address] = Amount(balance - amount)
        if self.balances[address] == 0:
            self.holders_count -= 1

    @public
    def mint(self, ctx: Context, beneficiary: Address, amount: Amount) -> bool:
        """Issue new units to the beneficiary. Returns True once issued."""
        self._only_minter(ctx)
        if amount <= 0:
            raise InvalidAmount("Mint amount must be positive")

        self._credit(beneficiary, amount)
        self.total_issued_amount = Amount(self.total_issued_amount + amount)
        return True

    @public
    def pause(self, ctx: Context) -> None:
        """Disable transfers."""
        self._only_minter(ctx)
        if self.paused:
            raise InvalidState("Already paused")
        self.paused = True

    @public
    def unpause(self, ctx: Context) -> None:
        """Re-enable transfers."""
        self._only_minter(ctx)
        if not self.paused:
            raise InvalidState("Not paused")
        self.paused = False

    @public
    def transfer(self, ctx: Context, to: Address, amount: Amount) -> None:
        """Move units from the caller to another address."""
        if self.paused:
            raise TransfersPaused("Transfers are paused")
        if amount <= 0:
            raise InvalidAmount("Transfer amount must be positive")

        sender = Address(ctx.caller_id)
        self._debit(sender, amount)
        self._credit(to, amount)

    @public
    def burn(self, ctx: Context, amount: Amount) -> None:
        """Destroy units owned by the caller, reducing the issued supply."""
        if amount <= 0:
            raise InvalidAmount("Burn amount must be positive")

        holder = Address(ctx.caller_id)
        self._debit(holder, amount)
        self.total_issued_amount = Amount(self.total_issued_amount - amount)

        # Burn record
        self.burned[holder] = Amount(self.burned.get(holder, Amount(0)) + amount)
        self.total_burned = Amount(self.total_burned + amount)
        self.burn_count += 1

    @view
    def total_issued(self) -> Amount:
        return self.total_issued_amount

    @view
    def balance_of(self, address: Address) -> Amount:
        return self.balances.get(address, Amount(0))

    @view
    def is_paused(self) -> bool:
        return self.paused

    @view
    def get_token_info(self) -> CampaignTokenInfo:
        """Get general ledger information."""
        return CampaignTokenInfo(
            name=self.name,
            symbol=self.symbol,
            total_issued=self.total_issued_amount,
            total_burned=self.total_burned,
            holders=self.holders_count,
            paused=self.paused,
        )

    @view
    def get_burn_info(self, address: Address) -> CampaignTokenBurnInfo:
        """Get burn totals for an address."""
        return CampaignTokenBurnInfo(
            burned=self.burned.get(address, Amount(0)),
            total_burned=self.total_burned,
            burn_count=self.burn_count,
        )
