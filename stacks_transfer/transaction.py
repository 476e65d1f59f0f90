"""
Stacks Contract-Call Transactions

Assembly, wire serialization and single-signature signing of contract-call
transactions.

Wire layout:
    version(1) chain_id(4) auth_type(1) spending_condition
    anchor_mode(1) post_condition_mode(1) post_conditions(4 + n) payload

Single-sig spending condition:
    hash_mode(1) signer(20) nonce(8) fee(8) key_encoding(1) signature(65)
"""

import copy
import hashlib
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List

from coincurve import PrivateKey
from Crypto.Hash import RIPEMD160, SHA512

from .c32 import c32_address, c32_address_decode
from .clarity import ClarityValue, serialize_cv


EMPTY_SIGNATURE = bytes(65)

AUTH_TYPE_STANDARD = 0x04
HASH_MODE_P2PKH = 0x00
PAYLOAD_CONTRACT_CALL = 0x02


class AnchorMode(IntEnum):
    ON_CHAIN_ONLY = 1
    OFF_CHAIN_ONLY = 2
    ANY = 3


class PostConditionMode(IntEnum):
    ALLOW = 1
    DENY = 2


class KeyEncoding(IntEnum):
    COMPRESSED = 0x00
    UNCOMPRESSED = 0x01


def sha512_256(data: bytes) -> bytes:
    return SHA512.new(data, truncate="256").digest()


def hash160(data: bytes) -> bytes:
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


@dataclass
class SigningKey:
    """
    secp256k1 private key in Stacks hex form

    64 hex chars: uncompressed public key.
    66 hex chars ending in '01': compressed public key.
    """
    private_key: PrivateKey
    compressed: bool

    @classmethod
    def from_hex(cls, private_key_hex: str) -> 'SigningKey':
        text = private_key_hex.strip().lower()
        if text.startswith("0x"):
            text = text[2:]
        raw = bytes.fromhex(text)

        if len(raw) == 33 and raw[-1] == 0x01:
            return cls(PrivateKey(raw[:32]), compressed=True)
        if len(raw) == 32:
            return cls(PrivateKey(raw), compressed=False)
        raise ValueError(f"Invalid private key length: {len(raw)} bytes")

    @property
    def public_key(self) -> bytes:
        return self.private_key.public_key.format(compressed=self.compressed)

    @property
    def key_encoding(self) -> KeyEncoding:
        return KeyEncoding.COMPRESSED if self.compressed else KeyEncoding.UNCOMPRESSED

    def address(self, address_version: int) -> str:
        return c32_address(address_version, hash160(self.public_key))

    def sign_vrs(self, message_hash: bytes) -> bytes:
        """Recoverable signature over a 32-byte digest, recovery id first"""
        rsv = self.private_key.sign_recoverable(message_hash, hasher=None)
        return rsv[64:] + rsv[:64]


@dataclass
class SingleSigSpendingCondition:
    signer: bytes
    nonce: int
    fee: int
    key_encoding: KeyEncoding
    signature: bytes = EMPTY_SIGNATURE
    hash_mode: int = HASH_MODE_P2PKH

    def serialize(self) -> bytes:
        return (
            bytes([self.hash_mode])
            + self.signer
            + self.nonce.to_bytes(8, "big")
            + self.fee.to_bytes(8, "big")
            + bytes([self.key_encoding])
            + self.signature
        )

    def cleared(self) -> 'SingleSigSpendingCondition':
        return SingleSigSpendingCondition(
            signer=self.signer,
            nonce=0,
            fee=0,
            key_encoding=self.key_encoding,
            signature=EMPTY_SIGNATURE,
            hash_mode=self.hash_mode,
        )


@dataclass
class ContractCallPayload:
    contract_address: str
    contract_name: str
    function_name: str
    function_args: List[ClarityValue] = field(default_factory=list)

    def serialize(self) -> bytes:
        version, address_hash = c32_address_decode(self.contract_address)
        contract_name = self.contract_name.encode("ascii")
        function_name = self.function_name.encode("ascii")

        return (
            bytes([PAYLOAD_CONTRACT_CALL, version])
            + address_hash
            + bytes([len(contract_name)]) + contract_name
            + bytes([len(function_name)]) + function_name
            + len(self.function_args).to_bytes(4, "big")
            + b"".join(serialize_cv(arg) for arg in self.function_args)
        )


@dataclass
class StacksTransaction:
    version: int
    chain_id: int
    spending_condition: SingleSigSpendingCondition
    payload: ContractCallPayload
    anchor_mode: AnchorMode = AnchorMode.ANY
    post_condition_mode: PostConditionMode = PostConditionMode.ALLOW
    auth_type: int = AUTH_TYPE_STANDARD

    def serialize(self) -> bytes:
        return (
            bytes([self.version])
            + self.chain_id.to_bytes(4, "big")
            + bytes([self.auth_type])
            + self.spending_condition.serialize()
            + bytes([self.anchor_mode, self.post_condition_mode])
            + (0).to_bytes(4, "big")  # no post-conditions
            + self.payload.serialize()
        )

    def txid(self) -> str:
        return sha512_256(self.serialize()).hex()

    def initial_sighash(self) -> bytes:
        unsigned = copy.copy(self)
        unsigned.spending_condition = self.spending_condition.cleared()
        return sha512_256(unsigned.serialize())

    def presign_sighash(self) -> bytes:
        condition = self.spending_condition
        return sha512_256(
            self.initial_sighash()
            + bytes([self.auth_type])
            + condition.fee.to_bytes(8, "big")
            + condition.nonce.to_bytes(8, "big")
        )

    def sign(self, key: SigningKey):
        if hash160(key.public_key) != self.spending_condition.signer:
            raise ValueError("Signing key does not match transaction signer")
        self.spending_condition.signature = key.sign_vrs(self.presign_sighash())


def make_contract_call(
    key: SigningKey,
    payload: ContractCallPayload,
    nonce: int,
    fee: int,
    tx_version: int,
    chain_id: int,
    anchor_mode: AnchorMode = AnchorMode.ANY,
    post_condition_mode: PostConditionMode = PostConditionMode.ALLOW,
) -> StacksTransaction:
    """Build and sign a single-sig contract-call transaction"""
    condition = SingleSigSpendingCondition(
        signer=hash160(key.public_key),
        nonce=nonce,
        fee=fee,
        key_encoding=key.key_encoding,
    )
    transaction = StacksTransaction(
        version=tx_version,
        chain_id=chain_id,
        spending_condition=condition,
        payload=payload,
        anchor_mode=anchor_mode,
        post_condition_mode=post_condition_mode,
    )
    transaction.sign(key)
    return transaction
