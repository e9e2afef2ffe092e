import pytest

from celltensor import InvalidArgumentError, LabelTypeError, TensorAddress, TensorType


def test_indexed_labels_must_be_integers():
    with pytest.raises(LabelTypeError) as info:
        TensorAddress.of(TensorType.indexed(x=3), ["a"])
    assert isinstance(info.value, TypeError)
    assert isinstance(info.value, InvalidArgumentError)


def test_label_coercion():
    assert TensorAddress.of(TensorType.indexed(x=3), ["2"]).labels == (2,)
    assert TensorAddress.of(TensorType.mapped("x"), [3]).labels == ("3",)
    with pytest.raises(LabelTypeError):
        TensorAddress.of(TensorType.indexed(x=3), [-1])


def test_from_mapping_orders_labels_canonically():
    tensor_type = TensorType.mapped("x", "y")
    address = TensorAddress.from_mapping(tensor_type, {"y": "0", "x": "a"})
    assert address == TensorAddress(("a", "0"))
    assert address.format(tensor_type) == "{x:a,y:0}"
    with pytest.raises(InvalidArgumentError):
        TensorAddress.from_mapping(tensor_type, {"x": "a"})
    with pytest.raises(InvalidArgumentError):
        TensorAddress.from_mapping(tensor_type, {"x": "a", "y": "0", "z": "1"})


def test_ordering_puts_shorter_addresses_first():
    addresses = [TensorAddress(("b",)), TensorAddress(("a", "z")), TensorAddress(("a",))]
    assert sorted(addresses) == [TensorAddress(("a",)), TensorAddress(("b",)), TensorAddress(("a", "z"))]
    assert sorted([TensorAddress(("b",)), TensorAddress(("10",)), TensorAddress(("9",))]) == [
        TensorAddress(("10",)),
        TensorAddress(("9",)),
        TensorAddress(("b",)),
    ]
    assert sorted([TensorAddress((10,)), TensorAddress((9,))]) == [TensorAddress((9,)), TensorAddress((10,))]


def test_partial_addresses():
    address = TensorAddress(("a", "b", "c"))
    partial = address.project([0, 2])
    assert partial == TensorAddress(("a", "c"))
    assert len(partial) == 2
    assert hash(partial) == hash(TensorAddress(("a", "c")))


@pytest.mark.parametrize("label", ["²", "٣", " ", "1.5"])
def test_indexed_string_labels_need_ascii_digits(label):
    with pytest.raises(LabelTypeError):
        TensorAddress.of(TensorType.indexed(x=3), [label])


@pytest.mark.parametrize("label", ["", "two words", "a,b", "a}", "x:y", "tab\there"])
def test_mapped_labels_reject_text_form_separators(label):
    with pytest.raises(LabelTypeError):
        TensorAddress.of(TensorType.mapped("x"), [label])
    assert TensorAddress.of(TensorType.mapped("x"), ["a-b.c"]).labels == ("a-b.c",)
