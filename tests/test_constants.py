import pytest

from bytecode_factory import (
    import_word,
    k_bool,
    k_closure,
    k_import,
    k_nil,
    k_number,
    k_string,
    k_table,
    varint,
)
from luaudisasm.constants import (
    BooleanConstant,
    ClosureConstant,
    ImportConstant,
    NilConstant,
    NumberConstant,
    StringConstant,
    TableConstant,
    dissect_import,
    read_constants,
)
from luaudisasm.errors import InvalidReference, TruncatedInput, UnknownConstantTag
from luaudisasm.reader import ByteReader, StringPool


def _encode(entries) -> bytes:
    data = bytearray(varint(len(entries)))
    for tag, payload in entries:
        data.append(tag)
        data += payload
    return bytes(data)


def test_read_constants_decodes_every_tag():
    strings = StringPool(("game", "Players"))
    data = _encode(
        [
            k_nil(),
            k_bool(True),
            k_number(1.5),
            k_string(1),
            k_string(2),
            k_import(import_word(3, 4)),
            k_table([0, 1, 2]),
            k_closure(7),
        ]
    )
    reader = ByteReader(data + b"\xAA")

    constants = read_constants(reader, strings)

    assert constants == [
        NilConstant(),
        BooleanConstant(True),
        NumberConstant(1.5),
        StringConstant("game"),
        StringConstant("Players"),
        ImportConstant("game.Players", 2),
        TableConstant(),
        ClosureConstant(),
    ]
    assert reader.read_u8() == 0xAA


def test_unknown_constant_tag_is_rejected():
    data = _encode([k_nil(), (9, b"")])

    with pytest.raises(UnknownConstantTag) as excinfo:
        read_constants(ByteReader(data), StringPool())

    assert excinfo.value.tag == 9
    assert excinfo.value.index == 1


def test_string_constant_must_reference_the_pool():
    data = _encode([k_string(2)])

    with pytest.raises(InvalidReference):
        read_constants(ByteReader(data), StringPool(("only",)))


def test_truncated_number_constant():
    data = varint(1) + b"\x02\x00\x00"

    with pytest.raises(TruncatedInput):
        read_constants(ByteReader(data), StringPool())


def test_dissect_import_two_segments():
    constants = [StringConstant("game"), StringConstant("Players"), StringConstant("x")]
    word = (2 << 30) | (0 << 20) | (1 << 10) | 2

    imported = dissect_import(word, constants)

    assert imported == ImportConstant("game.Players", 2)


def test_dissect_import_single_segment():
    constants = [NilConstant(), StringConstant("print")]

    assert dissect_import(import_word(1), constants) == ImportConstant("print", 1)


def test_dissect_import_three_segments():
    constants = [StringConstant("a"), StringConstant("b"), StringConstant("c")]

    assert dissect_import(import_word(2, 0, 1), constants).path == "c.a.b"


@pytest.mark.parametrize(
    "word,message",
    [
        (import_word(5), "decoded so far"),
        (import_word(0), "not a string"),
        (0, "no path segments"),
    ],
)
def test_dissect_import_rejects_bad_segments(word, message):
    constants = [NumberConstant(1.0)]

    with pytest.raises(InvalidReference, match=message):
        dissect_import(word, constants)


def test_import_cannot_reference_later_constants():
    strings = StringPool(("print",))
    data = _encode([k_import(import_word(1)), k_string(1)])

    with pytest.raises(InvalidReference, match="constant 0"):
        read_constants(ByteReader(data), strings)


@pytest.mark.parametrize(
    "constant,text",
    [
        (NilConstant(), "nil"),
        (BooleanConstant(False), "false"),
        (NumberConstant(3.14159), "3.142"),
        (NumberConstant(-2.0), "-2.000"),
        (StringConstant("hi"), "'hi'"),
        (ImportConstant("game.Workspace", 2), "import 'game.Workspace'"),
    ],
)
def test_constant_descriptions(constant, text):
    assert constant.describe() == text
