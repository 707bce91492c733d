DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_RPC_FALLBACKS = [DEFAULT_RPC_URL]
DEFAULT_RPC_TIMEOUT = 20.0

# PDA seed labels
STORE_SEED = b"Store"
PEER_SEED = b"Peer"

PDA_MARKER = b"ProgramDerivedAddress"
MAX_SEEDS = 16
MAX_SEED_LEN = 32

DEFAULT_EID = 30109  # Polygon

# Common mainnet EIDs (extend with --eidlist)
CANDIDATE_EIDS = [
    30101,  # Ethereum
    30102,  # BNB
    30106,  # Avalanche
    30109,  # Polygon
    30110,  # Arbitrum
    30111,  # Optimism
    30145,  # Base
    30168,  # Solana
    30184,  # Linea
]

# Observed size of a Peer account; not taken from any IDL.
PEER_RECORD_LEN = 1654

# Anchor discriminator is 8 bytes, the peer bytes32 sits right after it.
DISCRIMINATOR_LEN = 8
PEER_FIELD_OFFSET = 8

BYTES32_LEN = 32
EVM_PAD_LEN = 12

U32_MAX = 0xFFFFFFFF
