"""Question ordering for newly started attempts."""
import random
from typing import List, Optional, Sequence


def question_order(question_ids: Sequence[int], randomize: bool, rng: Optional[random.Random] = None) -> List[int]:
    """Return the order in which an attempt presents the exam's questions.

    With ``randomize`` the result is a uniform permutation drawn from ``rng``;
    passing a seeded ``random.Random`` makes the order reproducible.
    """
    ordered = list(question_ids)
    if randomize and len(ordered) > 1:
        (rng or random.Random()).shuffle(ordered)
    return ordered
