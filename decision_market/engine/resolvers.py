import hashlib
import logging
from typing import Dict

from decision_market.utils import is_null_address
from .errors import InvalidInputError, StateConflictError, UnauthorizedError, VerificationError
from .state import Outcome

logger = logging.getLogger(__name__)


class SimpleResolver:
    """
    Owner-attested verification gateway.

    The owner records the real-world outcome of a proposal with attest(); verify()
    then accepts exactly that outcome together with the attestation digest as proof.
    """

    def __init__(self, owner: str, address: str):
        if is_null_address(owner) or is_null_address(address):
            raise InvalidInputError("SimpleResolver needs a non-null owner and address")
        self.owner = owner
        self.address = address
        self.attestations: Dict[int, Outcome] = {}

    @staticmethod
    def attestation_digest(proposal_id: int, outcome: Outcome) -> bytes:
        return hashlib.sha256(f"{proposal_id}:{Outcome(outcome).value}".encode()).digest()

    def attest(self, caller: str, proposal_id: int, outcome: Outcome) -> bytes:
        if caller != self.owner:
            raise UnauthorizedError(f"Only the resolver owner can attest, not {caller}")
        outcome = Outcome(outcome)
        existing = self.attestations.get(proposal_id)
        if existing is not None and existing != outcome:
            raise StateConflictError(
                f"Proposal {proposal_id} already attested as {existing.value}")
        self.attestations[proposal_id] = outcome
        logger.info(f"Attested proposal {proposal_id} as {outcome.value}")
        return self.attestation_digest(proposal_id, outcome)

    def verify(self, proposal_id: int, outcome: Outcome, proof: bytes) -> None:
        attested = self.attestations.get(proposal_id)
        if attested is None:
            raise VerificationError(f"No attestation for proposal {proposal_id}")
        if attested != Outcome(outcome):
            raise VerificationError(
                f"Outcome mismatch for proposal {proposal_id}: attested {attested.value}, claimed {Outcome(outcome).value}")
        if proof != self.attestation_digest(proposal_id, attested):
            raise VerificationError(f"Invalid proof for proposal {proposal_id}")
