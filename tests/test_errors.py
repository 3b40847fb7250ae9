import pytest

from cspnet.errors import CspError, ErrorCode


@pytest.mark.parametrize(
    "member, value",
    [
        (ErrorCode.NONE, 0),
        (ErrorCode.NOMEM, -1),
        (ErrorCode.INVAL, -2),
        (ErrorCode.DRIVER, -11),
        (ErrorCode.NOSYS, -38),
        (ErrorCode.CRC32, -102),
        (ErrorCode.SFP, -103),
    ],
)
def test_error_code_values_match_wire_values(member, value):
    assert ErrorCode(value) is member


def test_error_carries_code_and_default_message():
    err = CspError(ErrorCode.INVAL)
    assert err.code is ErrorCode.INVAL
    assert err.message == "Invalid argument"
    assert "INVAL" in str(err)


def test_error_accepts_plain_integer_code():
    err = CspError(-11, "driver failed")
    assert err.code is ErrorCode.DRIVER
    assert err.message == "driver failed"


def test_error_rejects_unknown_code():
    with pytest.raises(ValueError):
        CspError(-999)


def test_error_string_names_message_and_code():
    err = CspError(ErrorCode.TIMEDOUT, "waited too long")
    assert err.code is ErrorCode.TIMEDOUT
    assert err.message == "waited too long"
    assert str(err) == "waited too long (TIMEDOUT)"