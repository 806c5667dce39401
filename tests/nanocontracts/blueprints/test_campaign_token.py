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

import os

from hathor.crypto.util import decode_address
from hathor.nanocontracts.context import Context
from hathor.nanocontracts.types import Address, Amount
from hathor.util import not_none
from hathor.wallet.keypair import KeyPair
from hathor_tests.nanocontracts.blueprints.unittest import BlueprintTestCase

from presale_campaign.nanocontracts.blueprints.campaign_token import (
    CampaignToken,
    CampaignTokenError,
    InsufficientBalance,
    InvalidAmount,
    InvalidState,
    TransfersPaused,
    Unauthorized,
)


class CampaignTokenTest(BlueprintTestCase):
    """Test cases for the CampaignToken ledger blueprint."""

    def setUp(self) -> None:
        super().setUp()

        self.contract_id = self.gen_random_contract_id()
        self.blueprint_id = self._register_blueprint_class(CampaignToken)
        self.tx = self.get_genesis_tx()

        self.minter_address, _ = self._get_any_address()
        self.alice, _ = self._get_any_address()
        self.bob, _ = self._get_any_address()

        self.runner.create_contract(
            self.contract_id,
            self.blueprint_id,
            self._context(self.minter_address),
            "Campaign Token",
            "CMP",
        )

    def _get_any_address(self):
        password = os.urandom(12)
        key = KeyPair.create(password)
        address_b58 = key.address
        address_bytes = decode_address(not_none(address_b58))
        return address_bytes, key

    def get_current_timestamp(self):
        return int(self.clock.seconds())

    def _context(self, address: bytes) -> Context:
        return self.create_context(
            actions=[],
            vertex=self.tx,
            caller_id=Address(address),
            timestamp=self.get_current_timestamp(),
        )

    def _mint(self, address: bytes, amount: int) -> bool:
        return self.runner.call_public_method(
            self.contract_id,
            "mint",
            self._context(self.minter_address),
            Address(address),
            Amount(amount),
        )

    def _call(self, method: str, address: bytes, *args) -> None:
        self.runner.call_public_method(
            self.contract_id, method, self._context(address), *args
        )

    def _balance(self, address: bytes) -> int:
        return self.runner.call_view_method(
            self.contract_id, "balance_of", Address(address)
        )

    def test_initialize(self):
        info = self.runner.call_view_method(self.contract_id, "get_token_info")
        self.assertEqual(info.name, "Campaign Token")
        self.assertEqual(info.symbol, "CMP")
        self.assertEqual(info.total_issued, 0)
        self.assertEqual(info.holders, 0)
        self.assertFalse(info.paused)

    def test_initialize_requires_symbol(self):
        with self.assertRaises(CampaignTokenError):
            self.runner.create_contract(
                self.gen_random_contract_id(),
                self.blueprint_id,
                self._context(self.minter_address),
                "Campaign Token",
                "",
            )

    def test_mint(self):
        self.assertTrue(self._mint(self.alice, 1000_00))
        self._mint(self.alice, 500_00)
        self._mint(self.bob, 250_00)

        self.assertEqual(self._balance(self.alice), 1500_00)
        self.assertEqual(self._balance(self.bob), 250_00)
        self.assertEqual(
            self.runner.call_view_method(self.contract_id, "total_issued"), 1750_00
        )
        info = self.runner.call_view_method(self.contract_id, "get_token_info")
        self.assertEqual(info.holders, 2)

    def test_mint_only_minter(self):
        with self.assertRaises(Unauthorized):
            self._call("mint", self.alice, Address(self.alice), Amount(1000_00))

        with self.assertRaises(InvalidAmount):
            self._mint(self.alice, 0)

        self.assertEqual(self._balance(self.alice), 0)

    def test_pause(self):
        with self.assertRaises(Unauthorized):
            self._call("pause", self.alice)

        self._call("pause", self.minter_address)
        self.assertTrue(self.runner.call_view_method(self.contract_id, "is_paused"))

        with self.assertRaises(InvalidState):
            self._call("pause", self.minter_address)

        # Minting is not affected by the pause flag
        self._mint(self.alice, 1000_00)
        with self.assertRaises(TransfersPaused):
            self._call("transfer", self.alice, Address(self.bob), Amount(100_00))

        self._call("unpause", self.minter_address)
        with self.assertRaises(InvalidState):
            self._call("unpause", self.minter_address)

        self._call("transfer", self.alice, Address(self.bob), Amount(100_00))
        self.assertEqual(self._balance(self.alice), 900_00)
        self.assertEqual(self._balance(self.bob), 100_00)

    def test_transfer_insufficient_balance(self):
        self._mint(self.alice, 100_00)

        with self.assertRaises(InsufficientBalance):
            self._call("transfer", self.alice, Address(self.bob), Amount(100_01))
        with self.assertRaises(InvalidAmount):
            self._call("transfer", self.alice, Address(self.bob), Amount(0))

        self.assertEqual(self._balance(self.alice), 100_00)
        self.assertEqual(self._balance(self.bob), 0)

    def test_transfer_updates_holders(self):
        self._mint(self.alice, 100_00)
        self._call("transfer", self.alice, Address(self.bob), Amount(100_00))

        info = self.runner.call_view_method(self.contract_id, "get_token_info")
        self.assertEqual(info.holders, 1)
        self.assertEqual(self._balance(self.bob), 100_00)

    def test_burn(self):
        self._mint(self.alice, 1000_00)
        self._call("pause", self.minter_address)

        # Burning works while transfers are paused
        self._call("burn", self.alice, Amount(300_00))

        self.assertEqual(self._balance(self.alice), 700_00)
        self.assertEqual(
            self.runner.call_view_method(self.contract_id, "total_issued"), 700_00
        )
        burn_info = self.runner.call_view_method(
            self.contract_id, "get_burn_info", Address(self.alice)
        )
        self.assertEqual(burn_info.burned, 300_00)
        self.assertEqual(burn_info.total_burned, 300_00)
        self.assertEqual(burn_info.burn_count, 1)

        with self.assertRaises(InsufficientBalance):
            self._call("burn", self.alice, Amount(700_01))
        with self.assertRaises(InvalidAmount):
            self._call("burn", self.alice, Amount(0))
