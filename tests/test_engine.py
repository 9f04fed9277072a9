"""End-to-end traversal tests through the Validator facade."""

import abc
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Annotated, Any, Optional

import pytest
from pydantic import BaseModel, Field

from tagrules import InvalidValidationError, Tag, Validator, ValidatorConfig
from tagrules.validation import TypeKind


def rules(expression: str, default: Any = None, **kwargs):
    """Dataclass field carrying a rule expression."""
    if "default_factory" in kwargs:
        return field(metadata={"validate": expression}, **kwargs)
    return field(default=default, metadata={"validate": expression})


def _events(logs, name):
    return [entry for entry in logs if entry["event"] == name]


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

@dataclass
class Foo:
    StringValue: str = rules("min=5,max=10", "")
    IntValue: int = rules("min=5,max=10", 0)


@dataclass
class Untagged:
    Name: str = ""
    Count: int = 0


@dataclass
class Profile:
    Name: str = rules("required", "")
    NickName: str = rules("required", "")
    Age: int = rules("omitempty,gte=18", 0)
    Color: str = rules("omitempty,rgb|rgba", "")


@dataclass
class Basket:
    Items: list = rules("required,dive,min=3", default_factory=list)
    Tags: dict = rules("dive,keys,alpha,endkeys,gt=0", default_factory=dict)
    Matrix: list = rules("dive,dive,gte=0", default_factory=list)
    Notes: Optional[list] = rules("omitempty,dive,required", None)


@dataclass
class Period:
    Start: Optional[datetime] = None
    End: Optional[datetime] = None


@dataclass
class Event:
    Span: Optional[Period] = None
    CreatedAt: Optional[datetime] = rules("eqcsfield=Span.Start", None)


@dataclass
class Window:
    Start: int = 0
    End: int = rules("gtfield=Start", 0)
    Label: str = rules("omitempty,nefield=Code", "")
    Code: str = ""


@dataclass
class Address:
    City: str = rules("required", "")
    Zip: str = rules("omitempty,numeric", "")


@dataclass
class Customer:
    Name: str = rules("required", "")
    Home: Optional[Address] = rules("required", None)
    Others: list = rules("dive", default_factory=list)
    Archive: dict = rules("dive", default_factory=dict)


@dataclass
class Holder:
    A: Optional[Address] = rules("structonly", None)
    B: Optional[Address] = rules("nostructlevel", None)


@dataclass
class FullName:
    First: str = ""
    Last: str = ""


class Money:
    def __init__(self, cents: int):
        self.cents = cents


@dataclass
class Invoice:
    Total: Money = rules("gt=0", None)
    Lines: list = rules("dive,gt=0", default_factory=list)


@dataclass
class Node:
    Name: str = rules("required", "")
    Next: Optional["Node"] = None


class Account(BaseModel):
    email: Annotated[str, Tag("required,email")]
    nick: str = Field("", json_schema_extra={"validate": "omitempty,min=3"})


class Point:
    x: Annotated[int, Tag("gte=0")]
    y: Annotated[int, Tag("gte=0")]

    def __init__(self, x: int, y: int):
        self.x, self.y = x, y


NOW = datetime(2024, 1, 1, 12, 0)


def _chain(length: int, last_name: str = "") -> Node:
    head = node = Node("n0")
    for i in range(1, length):
        node.Next = Node(f"n{i}")
        node = node.Next
    node.Name = last_name
    return head


# ===========================================================================
# Basic struct validation
# ===========================================================================

class TestValidateStruct:

    def test_no_tags_is_valid(self, validator):
        errors = validator.validate_struct(Untagged())
        assert not errors
        assert len(errors) == 0

    def test_foo_valid(self, validator):
        assert not validator.validate_struct(Foo("Foobar", 7))

    def test_foo_invalid(self, validator):
        errors = validator.validate_struct(Foo("Fo", 3))
        assert [e.tag for e in errors] == ["min", "min"]
        assert [e.namespace for e in errors] == ["StringValue", "IntValue"]
        assert errors[0].kind is TypeKind.STRING
        assert errors[1].kind is TypeKind.INT
        assert errors[1].value == 3
        assert errors[0].param == "5"

    def test_first_failure_ends_field(self, validator):
        errors = validator.validate_struct(Foo("Foobar-is-too-long", 7))
        assert [(e.namespace, e.tag) for e in errors] == [("StringValue", "max")]

    def test_required_fails_once(self, validator):
        errors = validator.validate_struct(Profile())
        assert [(e.namespace, e.tag) for e in errors] == [("Name", "required"), ("NickName", "required")]

    def test_omitempty_skips_zero(self, validator):
        assert not validator.validate_struct(Profile("a", "b", Age=0, Color=""))

    def test_omitempty_checks_non_zero(self, validator):
        errors = validator.validate_struct(Profile("a", "b", Age=12))
        assert [(e.namespace, e.tag, e.param) for e in errors] == [("Age", "gte", "18")]

    def test_or_group(self, validator):
        assert not validator.validate_struct(Profile("a", "b", Color="rgb(1,2,3)"))
        assert not validator.validate_struct(Profile("a", "b", Color="rgba(1,2,3,0.5)"))
        errors = validator.validate_struct(Profile("a", "b", Color="blue"))
        assert len(errors) == 1
        assert errors[0].tag == "rgb|rgba"

    @pytest.mark.parametrize("value", [None, 5, "text", [Foo("Foobar", 7)]])
    def test_non_struct_rejected(self, validator, value):
        with pytest.raises(InvalidValidationError):
            validator.validate_struct(value)

    def test_pydantic_model(self, validator):
        errors = validator.validate_struct(Account.model_construct(email="bad", nick="ab"))
        assert [(e.namespace, e.tag) for e in errors] == [("email", "email"), ("nick", "min")]

    def test_plain_annotated_class(self, validator):
        errors = validator.validate_struct(Point(-1, 2))
        assert [(e.namespace, e.tag) for e in errors] == [("x", "gte")]

    def test_error_string(self, validator):
        error = validator.validate_struct(Foo("Fo", 7))[0]
        assert str(error) == "Key: 'StringValue' Error:Field validation for 'StringValue' failed on the 'min' tag"


# ===========================================================================
# Dive
# ===========================================================================

class TestDive:

    def test_one_error_per_element(self, validator):
        errors = validator.validate_struct(Basket(Items=["a", "bb", "c"]))
        assert [e.namespace for e in errors] == ["Items[0]", "Items[1]", "Items[2]"]
        assert {e.tag for e in errors} == {"min"}
        assert errors[1].field == "Items[1]"

    def test_required_before_dive(self, validator):
        errors = validator.validate_struct(Basket(Items=[]))
        assert [(e.namespace, e.tag) for e in errors] == [("Items", "required")]

    def test_keys_and_values(self, validator):
        errors = validator.validate_struct(Basket(Items=["abc"], Tags={"ok": 1, "b4d": 2, "neg": 0}))
        assert [(e.namespace, e.tag) for e in errors] == [("Tags[b4d]", "alpha"), ("Tags[neg]", "gt")]

    def test_nested_dive(self, validator):
        errors = validator.validate_struct(Basket(Items=["abc"], Matrix=[[1, -1], [2]]))
        assert [(e.namespace, e.tag) for e in errors] == [("Matrix[0][1]", "gte")]

    def test_omitempty_none_collection(self, validator):
        assert not validator.validate_struct(Basket(Items=["abc"], Notes=None))

    def test_dive_element_required(self, validator):
        errors = validator.validate_struct(Basket(Items=["abc"], Notes=["x", ""]))
        assert [(e.namespace, e.tag) for e in errors] == [("Notes[1]", "required")]

    def test_dive_into_non_collection(self, validator):
        with pytest.raises(InvalidValidationError):
            validator.validate_value(5, "dive,min=1")

    def test_keys_on_sequence(self, validator):
        with pytest.raises(InvalidValidationError):
            validator.validate_value(["a"], "dive,keys,alpha,endkeys,min=1")

    def test_validate_value_dive(self, validator):
        errors = validator.validate_value(["ok", "x"], "dive,min=2")
        assert [(e.namespace, e.tag) for e in errors] == [("[1]", "min")]


# ===========================================================================
# Nested structs
# ===========================================================================

class TestNested:

    def test_namespaces(self, validator):
        customer = Customer("x", Address(""), Others=[Address("a"), Address("", Zip="x1")],
            Archive={"old": Address("")})
        errors = validator.validate_struct(customer)
        assert [(e.namespace, e.tag) for e in errors] == [
            ("Home.City", "required"),
            ("Others[1].City", "required"),
            ("Others[1].Zip", "numeric"),
            ("Archive[old].City", "required"),
        ]

    def test_required_nested_struct(self, validator):
        errors = validator.validate_struct(Customer("x", None))
        assert [(e.namespace, e.tag) for e in errors] == [("Home", "required")]
        assert errors[0].kind is TypeKind.INVALID

    def test_display_names(self, validator):
        validator.register_tag_name_func(lambda spec: spec.name.lower())
        errors = validator.validate_struct(Customer("x", Address("")))
        assert errors[0].namespace == "home.city"
        assert errors[0].struct_namespace == "Home.City"
        assert (errors[0].field, errors[0].struct_field) == ("city", "City")

    def test_validate_value_recurses_into_struct(self, validator):
        errors = validator.validate_value(Address(""), "required")
        assert [(e.namespace, e.tag) for e in errors] == [("City", "required")]


# ===========================================================================
# Cross-field and cross-struct
# ===========================================================================

class TestCrossField:

    def test_eqcsfield_equal(self, validator):
        assert not validator.validate_struct(Event(Period(Start=NOW), NOW))

    def test_eqcsfield_different(self, validator):
        errors = validator.validate_struct(Event(Period(Start=NOW), NOW + timedelta(seconds=1)))
        assert [(e.namespace, e.tag, e.param) for e in errors] == [("CreatedAt", "eqcsfield", "Span.Start")]

    def test_eqcsfield_missing_inner_fails(self, validator):
        errors = validator.validate_struct(Event(None, NOW))
        assert [e.tag for e in errors] == ["eqcsfield"]

    def test_gtfield(self, validator):
        assert not validator.validate_struct(Window(Start=1, End=2))
        errors = validator.validate_struct(Window(Start=2, End=2))
        assert [(e.namespace, e.tag, e.param) for e in errors] == [("End", "gtfield", "Start")]

    def test_nefield(self, validator):
        errors = validator.validate_struct(Window(Start=1, End=2, Label="a", Code="a"))
        assert [e.tag for e in errors] == ["nefield"]

    def test_relative_path_inside_nested_struct(self, validator):
        @dataclass
        class Trip:
            Leg: Window = None

        errors = validator.validate_struct(Trip(Window(Start=5, End=1)))
        assert [e.namespace for e in errors] == ["Leg.End"]

    def test_validate_value_with_value(self, validator):
        assert not validator.validate_value_with_value(5, 3, "gtfield")
        assert validator.validate_value_with_value(2, 3, "gtfield").first.tag == "gtfield"
        assert not validator.validate_value_with_value("a", "a", "eqcsfield")

    def test_contextual_predicate(self, validator):
        def before_end(fl):
            end, found = fl.resolve("End")
            return found and fl.value < end

        validator.register_validation("beforeend", before_end, contextual=True)

        @dataclass
        class Booking:
            Start: int = rules("beforeend", 0)
            End: int = 0

        assert not validator.validate_struct(Booking(1, 2))
        assert validator.validate_struct(Booking(3, 2)).first.tag == "beforeend"


# ===========================================================================
# Partial / except
# ===========================================================================

class TestSelection:

    def test_partial_only_named(self, validator):
        assert not validator.validate_struct_partial(Profile(Name="Ann"), "Name")

    def test_except_named(self, validator):
        errors = validator.validate_struct_except(Profile(Name="Ann"), "Name")
        assert [(e.namespace, e.tag) for e in errors] == [("NickName", "required")]

    def test_partial_nested_path(self, validator):
        customer = Customer("", Address(""), Others=[Address("")])
        errors = validator.validate_struct_partial(customer, "Home.City")
        assert [e.namespace for e in errors] == ["Home.City"]

    def test_partial_parent_includes_children(self, validator):
        customer = Customer("", Address("", Zip="x"))
        errors = validator.validate_struct_partial(customer, "Home")
        assert [e.namespace for e in errors] == ["Home.City", "Home.Zip"]

    def test_partial_ignores_indices(self, validator):
        customer = Customer("x", Address("y"), Others=[Address(""), Address("", Zip="z")])
        errors = validator.validate_struct_partial(customer, "Others[0].City")
        assert [e.namespace for e in errors] == ["Others[0].City", "Others[1].City"]

    def test_except_drops_subtree(self, validator):
        customer = Customer("", Address(""))
        errors = validator.validate_struct_except(customer, "Home")
        assert [e.namespace for e in errors] == ["Name"]


# ===========================================================================
# Struct-level hooks
# ===========================================================================

def require_some_name(sl):
    name = sl.current
    if not name.First and not name.Last:
        sl.report_error(name.First, "First", "First", "fnameorlname")
        sl.report_error(name.Last, "Last", "Last", "fnameorlname")


def address_hook(sl):
    sl.report_error(sl.current.City, "City", "City", "addr")


class TestStructLevel:

    def test_hook_errors(self, validator):
        validator.register_struct_validation(require_some_name, FullName)
        errors = validator.validate_struct(FullName())
        assert [(e.namespace, e.tag) for e in errors] == [("First", "fnameorlname"), ("Last", "fnameorlname")]
        assert not validator.validate_struct(FullName(First="Ann"))

    def test_hook_errors_follow_field_errors(self, validator):
        validator.register_struct_validation(address_hook, Address)
        errors = validator.validate_struct(Address("", Zip="abc"))
        assert [(e.namespace, e.tag) for e in errors] == [("City", "required"), ("Zip", "numeric"), ("City", "addr")]

    def test_structonly_and_nostructlevel(self, validator):
        validator.register_struct_validation(address_hook, Address)
        errors = validator.validate_struct(Holder(A=Address(""), B=Address("")))
        assert [(e.namespace, e.tag) for e in errors] == [("A.City", "addr"), ("B.City", "required")]

    def test_report_errors_passthrough(self, validator):
        def relay(sl):
            sl.report_errors(validator.validate_value(sl.current.City, "len=3"))

        validator.register_struct_validation(relay, Address)
        errors = validator.validate_struct(Address("Oslo"))
        assert [(e.namespace, e.tag) for e in errors] == [("", "len")]

    def test_hook_sees_top(self, validator):
        seen = []
        validator.register_struct_validation(lambda sl: seen.append((sl.top, sl.namespace)), Address)
        customer = Customer("x", Address("y"))
        validator.validate_struct(customer)
        assert seen == [(customer, "Home")]


# ===========================================================================
# Custom types, aliases
# ===========================================================================

class TestCustomTypes:

    def test_extracted_before_rules(self, validator):
        validator.register_custom_type_func(lambda m: m.cents, Money)
        assert not validator.validate_struct(Invoice(Money(5)))
        error = validator.validate_struct(Invoice(Money(0))).first
        assert (error.tag, error.value, error.kind) == ("gt", 0, TypeKind.INT)

    def test_extracted_in_dive(self, validator):
        validator.register_custom_type_func(lambda m: m.cents, Money)
        errors = validator.validate_struct(Invoice(Money(5), Lines=[Money(1), Money(0)]))
        assert [e.namespace for e in errors] == ["Lines[1]"]

    def test_extracted_through_abc_registration(self, validator):
        class Valuer(abc.ABC):
            pass

        class Points:
            def __init__(self, amount: int):
                self.amount = amount

        Valuer.register(Points)
        validator.register_custom_type_func(lambda v: v.amount, Valuer)
        error = validator.validate_value(Points(0), "gt=0").first
        assert (error.tag, error.value, error.kind) == ("gt", 0, TypeKind.INT)
        assert not validator.validate_value(Points(3), "gt=0")

    def test_alias_tags(self, validator):
        validator.register_alias("adult", "gte=18")
        error = validator.validate_value(10, "adult").first
        assert (error.tag, error.actual_tag, error.param) == ("adult", "gte", "18")


# ===========================================================================
# Cycles and depth
# ===========================================================================

class TestCycles:

    def test_two_node_cycle_terminates(self, validator):
        a, b = Node("a"), Node("")
        a.Next, b.Next = b, a
        errors = validator.validate_struct(a)
        assert [e.namespace for e in errors] == ["Next.Name"]

    def test_self_loop(self, validator, captured_logs):
        a = Node("a")
        a.Next = a
        assert not validator.validate_struct(a)
        assert _events(captured_logs, "cycle_skipped")

    def test_shared_node_validated_at_each_location(self, validator):
        @dataclass
        class Pair:
            Left: Optional[Node] = None
            Right: Optional[Node] = None

        shared = Node("")
        errors = validator.validate_struct(Pair(shared, shared))
        assert [e.namespace for e in errors] == ["Left.Name", "Right.Name"]

    def test_max_depth(self, captured_logs):
        shallow = Validator(ValidatorConfig(max_depth=2))
        assert not shallow.validate_struct(_chain(5))
        assert _events(captured_logs, "max_depth_reached")

    def test_within_depth(self, validator):
        errors = validator.validate_struct(_chain(5))
        assert [e.namespace for e in errors] == ["Next.Next.Next.Next.Name"]
