"""Proof selection for melting."""

from dataclasses import dataclass

from lnmixer.errors import InsufficientProofs
from lnmixer.models import EcashProof, total_amount


@dataclass(frozen=True)
class ProofSelection:
    """Proofs chosen to cover a target and the proofs left over."""

    selected: list[EcashProof]
    remaining: list[EcashProof]

    @property
    def selected_amount(self) -> int:
        return total_amount(self.selected)


def select_proofs(proofs: list[EcashProof], target: int) -> ProofSelection:
    """Take the shortest ascending-amount prefix whose sum reaches target.

    Smallest proofs go first so the remaining pool keeps a spread of
    distinguishable denominations. Ties keep their original order.
    Remaining proofs keep their original order too.

    Raises:
        InsufficientProofs: If all proofs together fall short of target
    """
    available = total_amount(proofs)
    if available < target:
        raise InsufficientProofs(target, available)

    selected: list[EcashProof] = []
    covered = 0
    chosen: set[int] = set()
    for index, proof in sorted(enumerate(proofs), key=lambda item: item[1].amount):
        if covered >= target:
            break
        selected.append(proof)
        chosen.add(index)
        covered += proof.amount

    remaining = [p for i, p in enumerate(proofs) if i not in chosen]
    return ProofSelection(selected=selected, remaining=remaining)
