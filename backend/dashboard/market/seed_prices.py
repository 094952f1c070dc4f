"""Seed coins and per-coin parameters for the simulated feed."""

# Symbols warmed up on startup so holdings render before the user asks for them
DEFAULT_SYMBOLS: list[str] = [
    "BTC", "ETH", "SOL", "BNB", "XRP", "ADA", "DOGE", "LINK", "AVAX", "DOT",
    "MATIC", "UNI", "ATOM", "LTC", "FIL", "NEAR", "ICP", "RENDER", "SUI", "APT",
    "ARB", "OP", "INJ", "TIA", "SEI", "ONDO", "PYTH", "JUP", "WIF", "BONK",
]  # fmt: skip

# symbol -> (registry id, display name, starting price USD, circulating supply)
SEED_COINS: dict[str, tuple[str, str, float, float]] = {
    "BTC": ("bitcoin", "Bitcoin", 67_000.00, 19_700_000),
    "ETH": ("ethereum", "Ethereum", 3_400.00, 120_100_000),
    "BNB": ("binancecoin", "BNB", 590.00, 147_600_000),
    "SOL": ("solana", "Solana", 165.00, 462_000_000),
    "XRP": ("ripple", "XRP", 0.52, 55_600_000_000),
    "DOGE": ("dogecoin", "Dogecoin", 0.15, 145_000_000_000),
    "ADA": ("cardano", "Cardano", 0.45, 35_400_000_000),
    "AVAX": ("avalanche-2", "Avalanche", 35.00, 394_000_000),
    "LINK": ("chainlink", "Chainlink", 16.00, 587_000_000),
    "DOT": ("polkadot", "Polkadot", 7.00, 1_430_000_000),
    "NEAR": ("near", "NEAR Protocol", 6.50, 1_070_000_000),
    "SUI": ("sui", "Sui", 1.10, 2_500_000_000),
    "APT": ("aptos", "Aptos", 9.00, 440_000_000),
    "UNI": ("uniswap", "Uniswap", 10.00, 600_000_000),
    "ARB": ("arbitrum", "Arbitrum", 1.00, 2_900_000_000),
    "OP": ("optimism", "Optimism", 2.40, 1_060_000_000),
    "WIF": ("dogwifcoin", "dogwifhat", 2.80, 998_900_000),
    "BONK": ("bonk", "Bonk", 0.000025, 68_000_000_000_000),
}

# Per-coin GBM parameters
# sigma: annualized volatility (crypto trades 24/7, so vol is quoted per calendar year)
# mu: annualized drift / expected return
COIN_PARAMS: dict[str, dict[str, float]] = {
    "BTC": {"sigma": 0.55, "mu": 0.10},
    "ETH": {"sigma": 0.65, "mu": 0.10},
    "BNB": {"sigma": 0.60, "mu": 0.08},
    "SOL": {"sigma": 0.90, "mu": 0.12},
    "XRP": {"sigma": 0.80, "mu": 0.05},
    "DOGE": {"sigma": 1.10, "mu": 0.05},  # High volatility
    "WIF": {"sigma": 1.60, "mu": 0.05},  # Meme coins swing hardest
    "BONK": {"sigma": 1.50, "mu": 0.05},
}

# Default parameters for coins not in the list above (dynamically requested)
DEFAULT_PARAMS: dict[str, float] = {"sigma": 0.90, "mu": 0.05}

# Correlation groups for the simulator's Cholesky decomposition
CORRELATION_GROUPS: dict[str, set[str]] = {
    "majors": {"BTC", "ETH", "BNB"},
    "layer1": {"SOL", "ADA", "AVAX", "DOT", "NEAR", "SUI", "APT"},
    "memes": {"DOGE", "WIF", "BONK"},
}

# Correlation coefficients
INTRA_MAJORS_CORR = 0.8  # BTC drags the majors with it
INTRA_LAYER1_CORR = 0.7
INTRA_MEMES_CORR = 0.6
CROSS_GROUP_CORR = 0.5  # Everything in crypto is correlated with everything
DEFAULT_CORR = 0.5  # Unknown coins

DEFAULT_LOGO_URL = "https://assets.coingecko.com/coins/images/{id}/large.png"
