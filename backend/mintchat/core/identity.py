"""
Wallet identity for Mintchat.

There is no session or token layer: the caller is identified by the wallet
address it presents. Addresses are opaque strings, normalized to lowercase
so that "0xABC" and "0xabc" are the same participant everywhere.

The HTTP layer reads the address from the X-Wallet-Address header
(WalletIdentityMiddleware) and routes depend on require_wallet_from_state.
"""

import re
from typing import Optional

from fastapi import HTTPException, Request, status
from pydantic import BaseModel

from mintchat.core.constants import DISPLAY_NAME_SUFFIX, DISPLAY_NAME_TAIL_LENGTH

WALLET_HEADER = "X-Wallet-Address"
IDENTITY_MAX_LENGTH = 128

# Hex addresses, ENS/stark-style names and test handles. Commas, quotes,
# parentheses and whitespace are rejected because they break PostgREST filters.
_IDENTITY_PATTERN = re.compile(r"^[0-9a-z][0-9a-z_.:-]*$")


class InvalidIdentityError(ValueError):
    """Wallet address is empty or malformed."""

    pass


def normalize_identity(value: Optional[str]) -> str:
    """
    Normalize a wallet address to its canonical lowercase form.

    Raises:
        InvalidIdentityError: Empty, too long, or contains unsupported characters
    """
    if value is None:
        raise InvalidIdentityError("Wallet address is required")

    identity = value.strip().lower()
    if not identity:
        raise InvalidIdentityError("Wallet address is required")
    if len(identity) > IDENTITY_MAX_LENGTH:
        raise InvalidIdentityError(
            f"Wallet address exceeds {IDENTITY_MAX_LENGTH} characters"
        )
    if not _IDENTITY_PATTERN.match(identity):
        raise InvalidIdentityError(f"Malformed wallet address: {value!r}")
    return identity


def display_name_for(identity: str) -> str:
    """Short display name derived from an address: "User {last 3}.stark"."""
    return f"User {identity[-DISPLAY_NAME_TAIL_LENGTH:]}{DISPLAY_NAME_SUFFIX}"


class WalletUser(BaseModel):
    """Identified caller."""

    address: str


class WalletOptionalUser(BaseModel):
    """Caller that may or may not have presented a wallet address."""

    address: Optional[str] = None
    is_identified: bool = False


async def require_wallet_from_state(request: Request) -> WalletUser:
    """
    Require an identified caller.

    Raises 401 if no wallet address was presented, 400 if it was malformed.

    Usage:
        @router.get("/protected")
        async def protected(wallet: WalletUser = Depends(require_wallet_from_state)):
            return {"address": wallet.address}
    """
    wallet = getattr(request.state, "wallet", None)

    if wallet is None or not wallet.is_identified:
        identity_error = getattr(request.state, "identity_error", None)
        if identity_error:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=identity_error)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Wallet address required ({WALLET_HEADER} header)",
        )

    return WalletUser(address=wallet.address)
