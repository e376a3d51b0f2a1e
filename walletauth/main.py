import argparse
import logging
import sys

from . import config
from .auth_flow import AuthFlow
from .errors import WalletAuthError, notify
from .services.identity_service import IdentityServiceClient
from .services.signer_service import LocalKeySigner

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="walletauth-login",
        description="Sign in to the identity service with an Ethereum key (WALLET_PRIVATE_KEY).",
    )
    parser.add_argument("--api-url", default=config.AUTH_API_URL, help="Identity service base URL.")
    parser.add_argument("--chain-id", default=config.AUTH_CHAIN_ID, help="Chain id the challenge is bound to.")
    parser.add_argument("--origin", default=config.AUTH_ORIGIN_URL, help="Origin URL sent with the nonce request.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every state transition.")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    if not config.WALLET_PRIVATE_KEY:
        logger.error("WALLET_PRIVATE_KEY is not set; cannot sign the challenge.")
        return 1
    if not args.api_url:
        logger.error("No identity service URL; set AUTH_API_URL or pass --api-url.")
        return 1

    signer = LocalKeySigner(config.WALLET_PRIVATE_KEY)
    flow = AuthFlow(IdentityServiceClient(base_url=args.api_url))
    flow.connect(signer.address, args.chain_id)

    try:
        credential = flow.login(signer.address, args.chain_id, args.origin, signer)
    except WalletAuthError as e:
        print(notify(e), file=sys.stderr)
        return 1

    print(f"Signed in as user {credential.user.id} ({credential.user.role}), "
          f"{credential.token_type} token valid for {credential.expires_in}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
