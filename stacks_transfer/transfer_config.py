"""
Transfer Configuration

Loads transfer settings from transfer_config.yaml (optional) with
environment variable overrides for secrets and deployment targets.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Optional

import yaml
from loguru import logger

from .c32 import TESTNET_SINGLE_SIG, MAINNET_SINGLE_SIG
from .exceptions import ConfigError


@dataclass(frozen=True)
class StacksNetwork:
    """Network selector: API endpoint plus transaction/address versions"""
    name: str
    api_url: str
    tx_version: int
    chain_id: int
    address_version: int

    @property
    def address_prefix(self) -> str:
        return "ST" if self.address_version == TESTNET_SINGLE_SIG else "SP"


STACKS_TESTNET = StacksNetwork(
    name="testnet",
    api_url="https://api.testnet.hiro.so",
    tx_version=0x80,
    chain_id=0x80000000,
    address_version=TESTNET_SINGLE_SIG,
)

STACKS_MAINNET = StacksNetwork(
    name="mainnet",
    api_url="https://api.hiro.so",
    tx_version=0x00,
    chain_id=0x00000001,
    address_version=MAINNET_SINGLE_SIG,
)

NETWORKS: Dict[str, StacksNetwork] = {
    'testnet': STACKS_TESTNET,
    'mainnet': STACKS_MAINNET,
}

# Environment variable -> config field
ENV_OVERRIDES = {
    'STACKS_SENDER_KEY': 'sender_key',
    'STACKS_CONTRACT_ADDRESS': 'contract_address',
    'STACKS_CONTRACT_NAME': 'contract_name',
    'STACKS_NETWORK': 'network',
    'STACKS_API_URL': 'api_url',
}

DEFAULT_CONFIG_PATH = "transfer_config.yaml"


@dataclass
class TransferConfig:
    """Settings for one transfer run"""
    sender_key: str
    contract_address: str = "ST1X8ZTAN1JBX148PNJY4D1BPZ1QKCKV3H3CK5ACA"
    contract_name: str = "Krypto"
    network: str = "testnet"
    api_url: Optional[str] = None
    fee: int = 2000  # micro-STX

    # Verification settings
    max_attempts: int = 3
    retry_delay_seconds: float = 20.0
    settle_delay_seconds: float = 15.0

    explorer_url_template: str = "https://explorer.hiro.so/txid/{txid}?chain={network}"
    request_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.sender_key:
            raise ConfigError("Sender key is not configured (set STACKS_SENDER_KEY)")
        if self.network not in NETWORKS:
            raise ConfigError(f"Unknown network '{self.network}', expected one of {sorted(NETWORKS)}")
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1")
        if self.fee < 0:
            raise ConfigError("fee must not be negative")
        if self.retry_delay_seconds < 0 or self.settle_delay_seconds < 0:
            raise ConfigError("Delays must not be negative")
        try:
            logger.level(str(self.log_level).upper())
        except ValueError as e:
            raise ConfigError(f"Unknown log_level '{self.log_level}'") from e

    @property
    def stacks_network(self) -> StacksNetwork:
        network = NETWORKS[self.network]
        if self.api_url:
            network = StacksNetwork(
                name=network.name,
                api_url=self.api_url.rstrip('/'),
                tx_version=network.tx_version,
                chain_id=network.chain_id,
                address_version=network.address_version,
            )
        return network

    def explorer_url(self, txid: str) -> str:
        return self.explorer_url_template.format(txid=txid, network=self.network)


def _read_yaml(config_file: Path) -> Dict:
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed config file {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_file} must contain a mapping")

    return data


def load_transfer_config(
    config_path: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None
) -> TransferConfig:
    """
    Load transfer configuration

    Order of precedence: environment variables, then the YAML file, then the
    dataclass defaults. A missing YAML file is not an error.

    Args:
        config_path: Path to YAML config (default: $STACKS_TRANSFER_CONFIG or transfer_config.yaml)
        environ: Environment mapping (default: os.environ)

    Returns:
        TransferConfig
    """
    environ = os.environ if environ is None else environ
    config_file = Path(config_path or environ.get('STACKS_TRANSFER_CONFIG', DEFAULT_CONFIG_PATH))

    values: Dict = {}
    if config_file.exists():
        values = _read_yaml(config_file)
        logger.debug(f"Loaded transfer config from {config_file}")
    else:
        logger.debug(f"No config file at {config_file}, using defaults")

    known = {f.name for f in fields(TransferConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {unknown}")
        values = {k: v for k, v in values.items() if k in known}

    for env_name, field_name in ENV_OVERRIDES.items():
        if environ.get(env_name):
            values[field_name] = environ[env_name]

    values.setdefault('sender_key', '')

    try:
        return TransferConfig(**values)
    except TypeError as e:
        raise ConfigError(f"Invalid config values: {e}") from e
