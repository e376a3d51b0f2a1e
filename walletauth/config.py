import os
from dotenv import load_dotenv

load_dotenv()

# Identity service (GoTrue-style /nonce and /eth endpoints)
AUTH_API_URL = os.getenv("AUTH_API_URL")
AUTH_API_KEY = os.getenv("AUTH_API_KEY")

# Default scope of the nonce challenge
AUTH_CHAIN_ID = os.getenv("AUTH_CHAIN_ID", "1") # Ethereum mainnet
AUTH_ORIGIN_URL = os.getenv("AUTH_ORIGIN_URL", "http://localhost:3000") # Default to localhost:3000 for dev

# Key used by the command-line login (LocalKeySigner)
WALLET_PRIVATE_KEY = os.getenv("WALLET_PRIVATE_KEY")

# --- HTTP timeout (in seconds) ---
try:
    AUTH_REQUEST_TIMEOUT = float(os.getenv("AUTH_REQUEST_TIMEOUT", "30"))
except ValueError:
    print("Warning: Invalid AUTH_REQUEST_TIMEOUT in .env file. Defaulting to 30.")
    AUTH_REQUEST_TIMEOUT = 30.0

# Basic validation
if not AUTH_API_URL:
    print("Warning: AUTH_API_URL not found in .env file. Nonce and exchange requests will fail.")
