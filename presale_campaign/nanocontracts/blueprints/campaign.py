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

import logging
from typing import NamedTuple

from hathor import (
    Address,
    Amount,
    Blueprint,
    BlueprintId,
    CallerId,
    Context,
    ContractId,
    NCAction,
    NCDepositAction,
    NCFail,
    NCWithdrawalAction,
    Timestamp,
    TokenUid,
    export,
    public,
    view,
)

logger = logging.getLogger(__name__)

# Constants
HTR_UID = b"\x00"
DAY_IN_SECONDS = 60 * 60 * 24
SOFT_CAP_CLOSING_WINDOW = 2 * DAY_IN_SECONDS

# Presale bonus tiers in HTR cents, highest threshold first
PRESALE_MIN_CONTRIBUTION = 20_00
PRESALE_BONUS_TIERS = (
    (1000_00, 15),
    (400_00, 10),
    (100_00, 5),
    (PRESALE_MIN_CONTRIBUTION, 2),
)

# Token distribution in token cents
COMPANY_SHARE = 20_000_000_00
VAULT_SHARE = 80_000_000_00
TOTAL_SUPPLY_CROWDSALE = 150_000_000_00

TOKEN_SALT = b"campaign-token"


class CampaignPhase:
    """Time-based phases of the campaign."""

    NOT_STARTED = 0  # Before start_time
    PRESALE = 1  # [start_time, presale_end_time], bonus tiers apply
    CROWDSALE = 2  # Until end_time, or the soft-cap deadline once set; no bonus
    ENDED = 3  # After the sale window closes


class CampaignInfo(NamedTuple):
    """General campaign information."""

    token_contract: str
    rate: int
    hard_cap: int
    soft_cap: int
    presale_cap: int
    raised_total: int
    tokens_sold: int
    start_time: int
    presale_end_time: int
    end_time: int
    soft_cap_deadline: int
    purchases: int
    paused: bool
    finalized: bool


class CampaignContributorInfo(NamedTuple):
    """Contributor-specific information."""

    contributed: int
    purchased: int


class CampaignPurchase(NamedTuple):
    """A single admitted contribution."""

    contributor: str
    beneficiary: str
    amount: int
    tokens: int
    timestamp: int


class CampaignQuote(NamedTuple):
    """Issuance preview for a contribution."""

    bonus_percent: int
    base_tokens: int
    bonus_tokens: int
    total_tokens: int


class CampaignError(NCFail):
    """Base error for Campaign operations."""

    pass


class InvalidParameters(CampaignError):
    """Raised when the campaign configuration is invalid."""

    pass


class InvalidBeneficiary(CampaignError):
    """Raised when the beneficiary is an empty or all-zero address."""

    pass


class InvalidActions(CampaignError):
    """Raised when the call does not carry the expected HTR action."""

    pass


class ZeroContribution(CampaignError):
    """Raised when the contributed amount is zero."""

    pass


class CampaignPaused(CampaignError):
    """Raised when contributing while the campaign is paused."""

    pass


class OutsideSaleWindow(CampaignError):
    """Raised when contributing outside the sale window."""

    pass


class BelowPresaleMinimum(CampaignError):
    """Raised when a presale contribution is below the minimum."""

    pass


class HardCapExceeded(CampaignError):
    """Raised when a contribution would take the raise above the hard cap."""

    pass


class PresaleCapExceeded(CampaignError):
    """Raised when the presale cap has already been passed."""

    pass


class SupplyCapExceeded(CampaignError):
    """Raised when issuance would exceed the crowdsale supply."""

    pass


class CampaignNotEnded(CampaignError):
    """Raised when finalizing a campaign that is still running."""

    pass


class AlreadyFinalized(CampaignError):
    """Raised when finalizing twice."""

    pass


class MintFailed(CampaignError):
    """Raised when the ledger rejects an issuance."""

    pass


class Unauthorized(CampaignError):
    """Raised when an unauthorized caller performs an action."""

    pass


class InvalidState(CampaignError):
    """Raised when the pause flag is already in the requested state."""

    pass


class InsufficientFunds(CampaignError):
    """Raised when withdrawing more than the forwarded funds."""

    pass


@export
class Campaign(Blueprint):
    """Time-bounded token sale with presale bonus tiers and one-shot finalization.

    The life cycle of contracts using this blueprint is the following:

    1. [Owner] Create the contract; it creates and pauses its ledger contract.
    2. [User] `buy_tokens(beneficiary)` with an HTR deposit, during the presale
       (bonus tiers) or the crowdsale (no bonus).
    3. Reaching the soft cap starts a closing window of two days.
    4. [Anyone] `finalize()` once the campaign has ended: operator and reserve
       shares are minted and ledger transfers are enabled.
    5. [Operator] `withdraw_funds()` at any time.
    """

    # Campaign configuration
    token_contract: ContractId  # Ledger created by this contract
    start_time: Timestamp
    presale_end_time: Timestamp
    end_time: Timestamp
    rate: Amount  # Token units per HTR unit
    hard_cap: Amount  # Maximum raise in HTR
    soft_cap: Amount  # Raise that starts the closing window
    presale_cap: Amount  # Raise above which presale contributions stop
    operator: Address  # Receives the funds and the company share
    reserve: Address  # Receives the vault share and the top-up

    # Campaign state
    raised_total: Amount
    tokens_sold: Amount
    soft_cap_deadline: Timestamp  # 0 until the soft cap is reached
    finalized: bool
    paused: bool

    # Access control
    owner: CallerId

    # Forwarded funds
    operator_balance: Amount
    operator_withdrawn: Amount

    # Contributor tracking
    contributed: dict[Address, Amount]  # HTR per contributor
    purchased: dict[Address, Amount]  # Tokens per beneficiary

    # Purchase log
    purchase_count: int
    purchase_contributor: dict[int, Address]
    purchase_beneficiary: dict[int, Address]
    purchase_amount: dict[int, Amount]
    purchase_tokens: dict[int, Amount]
    purchase_timestamp: dict[int, Timestamp]

    @public
    def initialize(
        self,
        ctx: Context,
        token_blueprint_id: BlueprintId,
        token_name: str,
        token_symbol: str,
        start_time: Timestamp,
        presale_end_time: Timestamp,
        end_time: Timestamp,
        rate: Amount,
        hard_cap: Amount,
        soft_cap: Amount,
        presale_cap: Amount,
        operator: Address,
        reserve: Address,
    ) -> None:
        """Initialize the campaign and create its ledger contract."""
        # Validate parameters
        if soft_cap >= hard_cap:
            raise InvalidParameters("Soft cap must be less than hard cap")
        if start_time >= end_time:
            raise InvalidParameters("Invalid time range")
        if presale_end_time < start_time or presale_end_time > end_time:
            raise InvalidParameters("Presale must end within the campaign")
        if rate <= 0 or soft_cap <= 0 or presale_cap <= 0:
            raise InvalidParameters("Invalid rate or caps")
        if self._is_null_address(operator) or self._is_null_address(reserve):
            raise InvalidParameters("Invalid operator or reserve address")

        self.start_time = start_time
        self.presale_end_time = presale_end_time
        self.end_time = end_time
        self.rate = rate
        self.hard_cap = hard_cap
        self.soft_cap = soft_cap
        self.presale_cap = presale_cap
        self.operator = operator
        self.reserve = reserve

        self.raised_total = Amount(0)
        self.tokens_sold = Amount(0)
        self.soft_cap_deadline = Timestamp(0)
        self.finalized = False
        self.paused = False

        self.owner = ctx.caller_id

        self.operator_balance = Amount(0)
        self.operator_withdrawn = Amount(0)

        self.contributed = {}
        self.purchased = {}

        self.purchase_count = 0
        self.purchase_contributor = {}
        self.purchase_beneficiary = {}
        self.purchase_amount = {}
        self.purchase_tokens = {}
        self.purchase_timestamp = {}

        # Ledger transfers stay disabled until finalization
        token_contract, _ = self.syscall.create_contract(
            token_blueprint_id,
            TOKEN_SALT,
            [],
            token_name,
            token_symbol,
        )
        self.token_contract = token_contract
        self._ledger().public().pause()

    def _ledger(self):
        return self.syscall.get_contract(self.token_contract, blueprint_id=None)

    def _is_null_address(self, address: Address) -> bool:
        return len(address) == 0 or not any(address)

    def _is_owner(self, ctx: Context) -> bool:
        """Check if the caller is the owner."""
        return ctx.caller_id == self.owner

    def _closes_at(self) -> int:
        """Last second contributions are accepted."""
        if self.soft_cap_deadline != 0:
            return self.soft_cap_deadline
        return self.end_time

    def _phase_at(self, timestamp: int) -> int:
        """Phase from the configured timestamps and the closing window."""
        if timestamp < self.start_time:
            return CampaignPhase.NOT_STARTED
        if timestamp <= self.presale_end_time:
            return CampaignPhase.PRESALE
        if timestamp <= self._closes_at():
            return CampaignPhase.CROWDSALE
        return CampaignPhase.ENDED

    def _check_admissible(self, amount: Amount, timestamp: int) -> None:
        """Raise unless a contribution of `amount` can be accepted now."""
        if self.paused:
            raise CampaignPaused("Campaign is paused")

        if self.finalized:
            raise OutsideSaleWindow("Campaign is finalized")
        if timestamp < self.start_time or timestamp > self._closes_at():
            raise OutsideSaleWindow("Outside the sale window")

        if self.raised_total + amount > self.hard_cap:
            raise HardCapExceeded(
                f"Hard cap exceeded. Raised {self.raised_total}, cap {self.hard_cap}"
            )

        if (
            self._phase_at(timestamp) == CampaignPhase.PRESALE
            and self.raised_total > self.presale_cap
        ):
            raise PresaleCapExceeded("Presale cap reached")

    def _record_contribution(self, amount: Amount, timestamp: int) -> None:
        """Add to the raised total and latch the closing window at the soft cap."""
        self.raised_total = Amount(self.raised_total + amount)

        if self.raised_total >= self.soft_cap and self.soft_cap_deadline == 0:
            self.soft_cap_deadline = Timestamp(timestamp + SOFT_CAP_CLOSING_WINDOW)
            logger.info(
                "soft cap reached: raised=%s deadline=%s",
                self.raised_total,
                self.soft_cap_deadline,
            )

    def _has_ended(self, timestamp: int) -> bool:
        if self.soft_cap_deadline != 0:
            ended = timestamp >= self.soft_cap_deadline
        else:
            ended = timestamp > self.end_time
        return ended or self.raised_total >= self.hard_cap

    def _compute_bonus_percent(self, amount: Amount, timestamp: int) -> int:
        """Bonus percentage for a contribution of `amount` at `timestamp`."""
        phase = self._phase_at(timestamp)

        if phase == CampaignPhase.PRESALE:
            if amount < PRESALE_MIN_CONTRIBUTION:
                raise BelowPresaleMinimum(
                    f"Presale minimum is {PRESALE_MIN_CONTRIBUTION}"
                )
            for threshold, percent in PRESALE_BONUS_TIERS:
                if amount >= threshold:
                    return percent

        if phase == CampaignPhase.CROWDSALE:
            return 0

        raise OutsideSaleWindow("No bonus outside the sale window")

    def _calculate_tokens(self, amount: Amount, bonus_percent: int) -> CampaignQuote:
        base = amount * self.rate
        bonus = 0
        if bonus_percent > 0:
            bonus = base * bonus_percent // 100
        return CampaignQuote(
            bonus_percent=bonus_percent,
            base_tokens=base,
            bonus_tokens=bonus,
            total_tokens=base + bonus,
        )

    def _get_htr_action(self, ctx: Context) -> NCAction:
        """Single HTR action carried by the call."""
        actions = ctx.actions.get(TokenUid(HTR_UID), ())
        if len(ctx.actions) != 1 or len(actions) != 1:
            raise InvalidActions("Expected a single HTR action")
        return actions[0]

    def _get_contribution_amount(self, ctx: Context) -> Amount:
        action = self._get_htr_action(ctx)
        if not isinstance(action, NCDepositAction):
            raise InvalidActions("Expected deposit action")
        return Amount(action.amount)

    @public(allow_deposit=True)
    def buy_tokens(self, ctx: Context, beneficiary: Address) -> None:
        """Exchange the deposited HTR for newly issued tokens."""
        if self._is_null_address(beneficiary):
            raise InvalidBeneficiary("Invalid beneficiary")

        amount = self._get_contribution_amount(ctx)
        if amount == 0:
            raise ZeroContribution("Contribution must be positive")

        now = ctx.block.timestamp
        self._check_admissible(amount, now)

        bonus_percent = self._compute_bonus_percent(amount, now)
        quote = self._calculate_tokens(amount, bonus_percent)
        tokens = Amount(quote.total_tokens)

        ledger = self._ledger()
        if ledger.view().total_issued() + tokens > TOTAL_SUPPLY_CROWDSALE:
            raise SupplyCapExceeded("Crowdsale supply exhausted")

        self._record_contribution(amount, now)
        self.tokens_sold = Amount(self.tokens_sold + tokens)

        if not ledger.public().mint(beneficiary, tokens):
            raise MintFailed("Ledger rejected the issuance")

        # Funds are forwarded to the operator
        self.operator_balance = Amount(self.operator_balance + amount)

        contributor = Address(ctx.caller_id)
        self.contributed[contributor] = Amount(
            self.contributed.get(contributor, Amount(0)) + amount
        )
        self.purchased[beneficiary] = Amount(
            self.purchased.get(beneficiary, Amount(0)) + tokens
        )

        index = self.purchase_count
        self.purchase_contributor[index] = contributor
        self.purchase_beneficiary[index] = beneficiary
        self.purchase_amount[index] = amount
        self.purchase_tokens[index] = tokens
        self.purchase_timestamp[index] = Timestamp(now)
        self.purchase_count += 1

    @public
    def finalize(self, ctx: Context) -> None:
        """Distribute the operator and reserve shares and enable transfers."""
        if self.finalized:
            raise AlreadyFinalized("Campaign already finalized")
        if not self._has_ended(ctx.block.timestamp):
            raise CampaignNotEnded("Campaign has not ended")

        ledger = self._ledger()
        if not ledger.public().mint(self.operator, Amount(COMPANY_SHARE)):
            raise MintFailed("Ledger rejected the company share")
        if not ledger.public().mint(self.reserve, Amount(VAULT_SHARE)):
            raise MintFailed("Ledger rejected the vault share")

        issued = ledger.view().total_issued()
        if issued < TOTAL_SUPPLY_CROWDSALE:
            top_up = Amount(TOTAL_SUPPLY_CROWDSALE - issued)
            if not ledger.public().mint(self.reserve, top_up):
                raise MintFailed("Ledger rejected the reserve top-up")

        ledger.public().unpause()
        self.finalized = True
        logger.info("campaign finalized: raised=%s", self.raised_total)

    @public(allow_withdrawal=True)
    def withdraw_funds(self, ctx: Context) -> None:
        """Withdraw forwarded HTR (operator only)."""
        if Address(ctx.caller_id) != self.operator:
            raise Unauthorized("Only the operator can withdraw funds")

        action = self._get_htr_action(ctx)
        if not isinstance(action, NCWithdrawalAction):
            raise InvalidActions("Expected withdrawal action")
        if action.amount > self.operator_balance:
            raise InsufficientFunds(
                f"Invalid withdrawal amount. Available {self.operator_balance}"
            )

        self.operator_balance = Amount(self.operator_balance - action.amount)
        self.operator_withdrawn = Amount(self.operator_withdrawn + action.amount)

    @public
    def pause(self, ctx: Context) -> None:
        """Pause contributions (only owner)."""
        if not self._is_owner(ctx):
            raise Unauthorized("Only owner can pause")
        if self.paused:
            raise InvalidState("Already paused")
        self.paused = True

    @public
    def unpause(self, ctx: Context) -> None:
        """Resume contributions (only owner)."""
        if not self._is_owner(ctx):
            raise Unauthorized("Only owner can unpause")
        if not self.paused:
            raise InvalidState("Not paused")
        self.paused = False

    @public
    def transfer_ownership(self, ctx: Context, new_owner: Address) -> None:
        """Hand the admin role over to `new_owner` (only owner)."""
        if not self._is_owner(ctx):
            raise Unauthorized("Only owner can transfer ownership")
        if self._is_null_address(new_owner):
            raise InvalidParameters("Invalid owner address")
        self.owner = new_owner

    @view
    def get_campaign_info(self) -> CampaignInfo:
        """Get general campaign information."""
        return CampaignInfo(
            token_contract=self.token_contract.hex(),
            rate=self.rate,
            hard_cap=self.hard_cap,
            soft_cap=self.soft_cap,
            presale_cap=self.presale_cap,
            raised_total=self.raised_total,
            tokens_sold=self.tokens_sold,
            start_time=self.start_time,
            presale_end_time=self.presale_end_time,
            end_time=self.end_time,
            soft_cap_deadline=self.soft_cap_deadline,
            purchases=self.purchase_count,
            paused=self.paused,
            finalized=self.finalized,
        )

    @view
    def get_contributor_info(self, address: Address) -> CampaignContributorInfo:
        """Get contributor-specific information."""
        return CampaignContributorInfo(
            contributed=self.contributed.get(address, Amount(0)),
            purchased=self.purchased.get(address, Amount(0)),
        )

    @view
    def get_purchase(self, index: int) -> CampaignPurchase:
        if index < 0 or index >= self.purchase_count:
            raise NCFail("Purchase not found")
        return CampaignPurchase(
            contributor=self.purchase_contributor[index].hex(),
            beneficiary=self.purchase_beneficiary[index].hex(),
            amount=self.purchase_amount[index],
            tokens=self.purchase_tokens[index],
            timestamp=self.purchase_timestamp[index],
        )

    @view
    def get_phase(self, timestamp: Timestamp) -> int:
        return self._phase_at(timestamp)

    @view
    def has_ended(self, timestamp: Timestamp) -> bool:
        return self._has_ended(timestamp)

    @view
    def get_bonus_percent(self, amount: Amount, timestamp: Timestamp) -> int:
        return self._compute_bonus_percent(amount, timestamp)

    @view
    def quote_purchase(self, amount: Amount, timestamp: Timestamp) -> CampaignQuote:
        """Preview the tokens issued for a contribution, bonus included."""
        return self._calculate_tokens(
            amount, self._compute_bonus_percent(amount, timestamp)
        )
