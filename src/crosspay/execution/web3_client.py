"""web3.py-backed ChainClient for a locally held account.

The caller supplies an eth-account ``LocalAccount`` (how the key is stored
is outside this package) and an RPC URL per chain.
"""

import asyncio
import logging
from typing import Any, Optional

from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from web3 import Web3
from web3.exceptions import TransactionNotFound

from crosspay.execution.base import ChainClient

logger = logging.getLogger(__name__)

RECEIPT_POLL_SECONDS = 2


class Web3ChainClient(ChainClient):
    """Signs with a LocalAccount and submits over HTTP RPC."""

    def __init__(
        self,
        account: LocalAccount,
        rpc_urls: dict[int, str],
        confirmation_timeout: int = 120,
        confirmations: int = 1,
    ):
        self.account = account
        self.rpc_urls = rpc_urls
        self.confirmation_timeout = confirmation_timeout
        self.confirmations = confirmations
        self.chain_id: Optional[int] = None
        self._clients: dict[int, Web3] = {}

    @property
    def address(self) -> str:
        return self.account.address

    @property
    def web3(self) -> Web3:
        """Web3 instance for the active chain."""
        if self.chain_id is None:
            raise RuntimeError("No active chain; call switch_chain first")
        if self.chain_id not in self._clients:
            self._clients[self.chain_id] = Web3(Web3.HTTPProvider(self.rpc_urls[self.chain_id]))
        return self._clients[self.chain_id]

    async def switch_chain(self, chain_id: int) -> None:
        if chain_id not in self.rpc_urls:
            raise ValueError(f"No RPC URL configured for chain {chain_id}")
        if chain_id != self.chain_id:
            logger.debug(f"Switching active chain {self.chain_id} -> {chain_id}")
        self.chain_id = chain_id

    async def send_transaction(
        self,
        to: str,
        data: str,
        value: int,
        gas: Optional[int] = None,
        fee_fields: Optional[dict[str, int]] = None,
    ) -> str:
        """Sign and send a transaction on the active chain."""
        w3 = self.web3
        tx_params: dict[str, Any] = {
            "to": to_checksum_address(to),
            "data": data,
            "value": value,
            "chainId": self.chain_id,
        }
        tx_params["nonce"] = await asyncio.to_thread(
            w3.eth.get_transaction_count, self.account.address, "pending"
        )

        if fee_fields:
            tx_params.update(fee_fields)
        else:
            tx_params["gasPrice"] = await asyncio.to_thread(lambda: w3.eth.gas_price)

        # Estimate gas if not provided
        if gas is None:
            gas = await asyncio.to_thread(
                w3.eth.estimate_gas, {**tx_params, "from": self.account.address}
            )
        tx_params["gas"] = gas

        signed_tx = self.account.sign_transaction(tx_params)
        tx_hash = await asyncio.to_thread(w3.eth.send_raw_transaction, signed_tx.raw_transaction)
        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(f"Sent transaction {tx_hash_hex} on chain {self.chain_id}")
        return tx_hash_hex

    async def wait_for_receipt(self, tx_hash: str) -> dict:
        """Wait for the transaction to be mined with enough confirmations.

        Raises:
            TimeoutError: If not confirmed within ``confirmation_timeout``
        """
        w3 = self.web3
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.confirmation_timeout

        while True:
            receipt = await asyncio.to_thread(self._get_receipt, w3, tx_hash)
            if receipt is not None:
                current_block = await asyncio.to_thread(lambda: w3.eth.block_number)
                confirms = current_block - receipt["blockNumber"] + 1
                if confirms >= self.confirmations:
                    return dict(receipt)

            if loop.time() > deadline:
                raise TimeoutError(
                    f"Transaction {tx_hash} not confirmed after {self.confirmation_timeout}s"
                )
            await asyncio.sleep(RECEIPT_POLL_SECONDS)

    @staticmethod
    def _get_receipt(w3: Web3, tx_hash: str):
        try:
            return w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    async def read_contract(self, address: str, abi: list, fn: str, args: list) -> Any:
        contract = self.web3.eth.contract(address=to_checksum_address(address), abi=abi)
        call = getattr(contract.functions, fn)(*args)
        return await asyncio.to_thread(call.call)
