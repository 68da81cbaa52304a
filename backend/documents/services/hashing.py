"""
Unified hashing service for all hash computations.

Consolidates hash logic into a single, reusable service so the signature
coordinator, the serializers and the webhook layer agree on one algorithm.
"""

import hashlib
import json
from datetime import timezone as dt_timezone


class HashingService:
    """Service for all file and data hashing operations."""

    @staticmethod
    def compute_bytes_sha256(content):
        """
        Compute SHA256 hash of raw file content.

        Args:
            content: bytes, memoryview or None

        Returns:
            str: Hexadecimal SHA256 hash ('' when there is no content)
        """
        if content is None:
            return ''
        return hashlib.sha256(bytes(content)).hexdigest()

    @staticmethod
    def compute_json_sha256(data_dict):
        """
        Compute SHA256 hash of a dictionary (stable JSON serialization).

        Uses sorted keys so the same data always produces the same hash.

        Args:
            data_dict: dict to hash

        Returns:
            str: Hexadecimal SHA256 hash
        """
        json_str = json.dumps(data_dict, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()

    @staticmethod
    def compute_signature_hash(signature):
        """
        Compute tamper-evident hash for a signature record.

        Hashes, with stable JSON serialization:
        - document id
        - signer id and name
        - signed_at
        - signature token
        - audit trail (which carries the before/after file hashes)

        Args:
            signature: Signature instance (saved or not)

        Returns:
            str: Hexadecimal SHA256 hash
        """
        hash_input = {
            'document_id': signature.document_id,
            'signer_id': signature.signer_id,
            'signer_name': signature.signer_name,
            'signed_at': signature.signed_at.astimezone(dt_timezone.utc).isoformat() if signature.signed_at else None,
            'signature_id': signature.signature_id,
            'audit_trail': signature.audit_trail or {},
        }
        return HashingService.compute_json_sha256(hash_input)

    @staticmethod
    def is_signature_valid(signature):
        """True when the stored event_hash matches a recomputed one."""
        if not signature.event_hash:
            return False
        return HashingService.compute_signature_hash(signature) == signature.event_hash

