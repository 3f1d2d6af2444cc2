"""Constants and configuration for the Stellar vault client."""

from decimal import Decimal

# Stellar testnet endpoints. Override the RPC URL with --rpc-url or STELLAR_VAULT_RPC_URL.
TESTNET_NAME = "Testnet"
TESTNET_HORIZON_URL = "https://horizon-testnet.stellar.org"
TESTNET_SOROBAN_RPC_URL = "https://soroban-testnet.stellar.org"
TESTNET_PASSPHRASE = "Test SDF Network ; September 2015"
TESTNET_FRIENDBOT_URL = "https://friendbot.stellar.org"
EXPLORER_HOST = "stellar.expert"

# Deployed vault contract on Stellar testnet.
VAULT_CONTRACT_ID = "CDTN2SBMIXR2A6XHGBIUYTTMEMZJO4JM56KFR67K444L7XATAI34HSRP"

# Admin / deployer account. Read-only calls are simulated with this account as the source.
VAULT_ADMIN = "GDHQ6TNWZ4V2JVCDWEUVW7YKFBXCOQZRRUCT27LAKES3PGOE6JSZMSMD"

# Native XLM Stellar Asset Contract on testnet.
NATIVE_TOKEN_ID = "CDLZFC3SYJYDZT7K67VZ75HPJVIEUVNIXF47ZG2FB2RMQQVU2HHGCYSC"

STROOPS_PER_XLM = Decimal(10_000_000)

# Transaction envelope settings
BASE_FEE_STROOPS = 100_000
TX_TIMEOUT_SECONDS = 60
READ_TX_TIMEOUT_SECONDS = 30

# Confirmation polling: fixed interval, no backoff.
CONFIRM_POLL_INTERVAL_SECONDS = 2.0
CONFIRM_MAX_RETRIES = 30

# Cache
CACHE_DIR_NAME = "stellar-vault"
CACHE_STORE_FILE = "store.json"
CACHE_PREFIX = "sv_"
DEFAULT_CACHE_TTL_SECONDS = 30.0
VAULT_INFO_CACHE_KEY = "vault_info"
VAULT_INFO_TTL_SECONDS = 20.0
USER_VAULT_TTL_SECONDS = 15.0

# Event polling
EVENT_POLL_INTERVAL_SECONDS = 8.0
EVENT_PAGE_LIMIT = 50
EVENT_BACKFILL_LEDGERS = 1000  # roughly the last hour at ~5s per ledger
EVENT_BUFFER_SIZE = 50

# Event topic symbols emitted by the vault contract.
EVENT_DEPOSIT = "deposit"
EVENT_WITHDRAW = "withdraw"
EVENT_LOCK = "lock"

HTTP_TIMEOUT_SECONDS = 30
