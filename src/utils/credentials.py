"""
Encryption of customer game account credentials.

Credentials are encrypted with KMS using the order ID as encryption context,
so a ciphertext copied onto another order cannot be decrypted.
"""

import base64
import json
from typing import Any, Dict

import boto3

from .config import get_required_env


def get_kms_client() -> Any:
    """Get KMS client."""
    return boto3.client("kms")


def encrypt_credentials(order_id: str, game_username: str, game_password: str) -> str:
    """
    Encrypt game credentials for an order.

    Returns:
        Base64 ciphertext blob to store on the order
    """
    plaintext = json.dumps({"gameUsername": game_username, "gamePassword": game_password})
    response = get_kms_client().encrypt(
        KeyId=get_required_env("CREDENTIALS_KMS_KEY_ID"),
        Plaintext=plaintext.encode("utf-8"),
        EncryptionContext={"orderId": order_id},
    )
    return base64.b64encode(response["CiphertextBlob"]).decode("ascii")


def decrypt_credentials(order_id: str, blob: str) -> Dict[str, str]:
    """Decrypt the credentials stored on an order."""
    response = get_kms_client().decrypt(
        CiphertextBlob=base64.b64decode(blob),
        EncryptionContext={"orderId": order_id},
    )
    data: Dict[str, str] = json.loads(response["Plaintext"].decode("utf-8"))
    return data
