import json
import logging
from pathlib import Path
from substrateinterface import SubstrateInterface
from subsend.apis.substrate_client import SubstrateClient, SubmittableCall, Subscription, MetaError
from subsend.tx.errors import SubmissionError, InvalidTransaction, DispatchFailure, ModuleDispatchFailure, \
    RawDispatchFailure, SubmissionTimeout
from subsend.tx.events import EventRecord, TypeDef, find_event, get_event_data
from subsend.tx.status import StatusUpdate, StatusKind
from subsend.tx.tx_config import TxConfig
from subsend.tx.waiter import submit_and_wait, wait_for_event

repo_root = Path(__file__).parent.parent.absolute()
logger = logging.getLogger(__name__)

DEFAULT_URL = "ws://127.0.0.1:9944"


def load_config(config_path=None) -> TxConfig:
    """
    Load the tx config, `config/tx_config.json` unless told otherwise. A missing file yields the defaults.

    :param config_path: path to the JSON config
    :type config_path: str or Path
    :return: the `TxConfig`
    """
    if config_path is None:
        config_path = repo_root / 'config' / 'tx_config.json'
    config_path = Path(config_path)

    if not config_path.exists():
        logger.info(f"No tx config at {config_path}, using defaults")
        return TxConfig()

    with config_path.open(encoding="UTF-8", mode='r') as source:
        raw_config = json.load(source)

    if raw_config.get("_version", 1) != 1:
        logger.warning("config version != 1. It could contain runtime breaking contents")
    return TxConfig(raw_config)


def client_factory(chain_name: str, chain_config: TxConfig = None) -> SubstrateClient:
    """
    Return a `SubstrateClient` connected to the node of `chain_name`.

    The node url is taken from `_url` of the config, then from `config/<chain>-url`, and falls back to a local
    development node.

    :param chain_name: name of the specific substrate chain
    :type chain_name: str
    :param chain_config: configuration for the specific chain
    :type chain_config: TxConfig
    """
    if chain_config is None:
        chain_config = TxConfig()

    url = chain_config.url
    if url is None:
        url_path = repo_root / 'config' / f'{chain_name}-url'
        if url_path.exists():
            with url_path.open(encoding="UTF-8", mode='r') as source:
                url = source.read().strip()
    if url is None:
        url = DEFAULT_URL

    logger.info(f"Connecting to {chain_name} at {url}")

    def connect():
        return SubstrateInterface(
            url=url,
            ss58_format=chain_config.ss58_format,
            type_registry_preset=chain_config.type_registry_preset
        )

    # subscriptions open further connections with the same settings
    return SubstrateClient(connect(), connect=connect)
