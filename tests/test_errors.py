import pytest

from upgrade_manager.chain.errors import ErrorCode, ProgramError
from upgrade_manager.chain.validation import validate_description_length


@pytest.mark.parametrize(
    ("code", "text"),
    [
        (ErrorCode.UNAUTHORIZED_SIGNER, "Unauthorized signer - not a multisig member"),
        (ErrorCode.TIMELOCK_NOT_EXPIRED, "Timelock not expired - must wait 48 hours"),
        (ErrorCode.INVALID_THRESHOLD, "Invalid multisig threshold"),
        (ErrorCode.SYSTEM_ALREADY_PAUSED, "System is already paused"),
        (ErrorCode.NOT_A_MEMBER, "Not a multisig member"),
    ],
)
def test_message_matches_program_text(code, text):
    assert code.message() == text


def test_program_error_texts_are_unique():
    texts = {str(ProgramError(code)) for code in ErrorCode}
    assert len(texts) == len(ErrorCode)


def test_program_error_carries_code_and_message():
    with pytest.raises(ProgramError) as info:
        validate_description_length("abc", 2)
    assert info.value.code is ErrorCode.DESCRIPTION_TOO_LONG
    assert str(info.value) == "Description too long"


def test_program_error_is_exception():
    err = ProgramError(ErrorCode.MATH_OVERFLOW)
    assert isinstance(err, Exception)
    assert err.code.message() == "Math overflow"