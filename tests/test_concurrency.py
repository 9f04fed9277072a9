"""A configured validator shared across threads.

The rule cache is the only shared mutable state: many threads hitting a cold
validator must all see complete compiled types and identical results.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from tagrules import Validator, ValidatorConfig


@dataclass
class Line:
    Sku: str = field(default="", metadata={"validate": "required,alphanum"})
    Qty: int = field(default=0, metadata={"validate": "gte=1"})


@dataclass
class Order:
    Id: str = field(default="", metadata={"validate": "required,uuid4"})
    Lines: list = field(default_factory=list, metadata={"validate": "required,dive"})
    Parent: Optional["Order"] = None


@dataclass
class Foo:
    StringValue: str = field(default="", metadata={"validate": "min=5,max=10"})
    IntValue: int = field(default=0, metadata={"validate": "min=5,max=10"})


def _bad_order() -> Order:
    return Order(Id="x", Lines=[Line("A1", 1), Line("", 0), Line("b-2", 2)])


EXPECTED = [("Id", "uuid4"), ("Lines[1].Sku", "required"), ("Lines[1].Qty", "gte"), ("Lines[2].Sku", "alphanum")]


class TestSharedValidator:

    def test_cold_cache_many_threads(self):
        validator = Validator(ValidatorConfig())

        def run(_):
            return [(e.namespace, e.tag) for e in validator.validate_struct(_bad_order())]

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(run, range(400)))

        assert all(r == EXPECTED for r in results)
        assert validator.cache_stats.compiles == 2

    def test_mixed_types_and_expressions(self):
        validator = Validator(ValidatorConfig())

        def run(i):
            match i % 3:
                case 0: return len(validator.validate_struct(Foo("Fo", 3)))
                case 1: return len(validator.validate_struct(Foo("Foobar", 7)))
                case _: return len(validator.validate_value(i, "min=5,max=10"))

        with ThreadPoolExecutor(max_workers=8) as pool:
            counts = list(pool.map(run, range(300)))

        for i, count in enumerate(counts):
            if i % 3 == 0: assert count == 2
            elif i % 3 == 1: assert count == 0
            else: assert count == (0 if 5 <= i <= 10 else 1)
