import random

from assessments.sequencing import question_order


def test_keeps_exam_order_when_not_randomized():
    assert question_order([3, 1, 2], randomize=False, rng=random.Random(1)) == [3, 1, 2]


def test_randomized_order_is_a_permutation():
    ids = list(range(1, 21))
    order = question_order(ids, randomize=True, rng=random.Random(42))
    assert sorted(order) == ids


def test_same_seed_gives_same_order():
    ids = list(range(10))
    assert question_order(ids, True, random.Random(5)) == question_order(ids, True, random.Random(5))


def test_does_not_mutate_input():
    ids = [1, 2, 3, 4, 5]
    question_order(ids, randomize=True, rng=random.Random(3))
    assert ids == [1, 2, 3, 4, 5]


def test_fresh_order_per_draw():
    rng = random.Random(11)
    ids = list(range(12))
    orders = {tuple(question_order(ids, True, rng)) for _ in range(5)}
    assert len(orders) > 1


def test_empty_and_single_question_exams():
    assert question_order([], randomize=True) == []
    assert question_order([9], randomize=True) == [9]
