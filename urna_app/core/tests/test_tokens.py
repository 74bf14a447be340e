from __future__ import annotations

import dataclasses

import pytest

from core.errors import InvalidPersonSignatureError
from core.tokens import PersonSearchSigner, SignedPersonSearchResult


def _flip(value: str, index: int) -> str:
    replacement = "0" if value[index] != "0" else "1"
    return value[:index] + replacement + value[index + 1 :]


@pytest.fixture
def signer() -> PersonSearchSigner:
    return PersonSearchSigner()


def test_signed_result_validates(signer):
    result = signer.sign(election_id=42, username="ist1100000", display_name="Maria Silva")

    signer.validate(election_id=42, result=result)
    assert len(result.signature) == 64


def test_tampered_username_is_rejected(signer):
    result = signer.sign(election_id=42, username="ist1100000", display_name="Maria Silva")

    for index in range(len(result.username)):
        tampered = dataclasses.replace(result, username=_flip(result.username, index))
        with pytest.raises(InvalidPersonSignatureError):
            signer.validate(election_id=42, result=tampered)


def test_tampered_display_name_is_rejected(signer):
    result = signer.sign(election_id=42, username="ist1100000", display_name="Maria Silva")

    for index in range(len(result.display_name)):
        tampered = dataclasses.replace(result, display_name=_flip(result.display_name, index))
        with pytest.raises(InvalidPersonSignatureError):
            signer.validate(election_id=42, result=tampered)


def test_other_election_is_rejected(signer):
    result = signer.sign(election_id=42, username="ist1100000", display_name="Maria Silva")

    for election_id in (41, 43, 42 + 256, -42):
        with pytest.raises(InvalidPersonSignatureError):
            signer.validate(election_id=election_id, result=result)


def test_tampered_signature_is_rejected(signer):
    result = signer.sign(election_id=42, username="ist1100000", display_name="Maria Silva")

    for index in range(len(result.signature)):
        tampered = dataclasses.replace(result, signature=_flip(result.signature, index))
        with pytest.raises(InvalidPersonSignatureError):
            signer.validate(election_id=42, result=tampered)

    with pytest.raises(InvalidPersonSignatureError):
        signer.validate(election_id=42, result=dataclasses.replace(result, signature=result.signature.upper()))
    with pytest.raises(InvalidPersonSignatureError):
        signer.validate(election_id=42, result=dataclasses.replace(result, signature="not-hex"))
    with pytest.raises(InvalidPersonSignatureError):
        signer.validate(election_id=42, result=dataclasses.replace(result, signature=""))


def test_pipes_cannot_move_field_boundaries(signer):
    result = signer.sign(election_id=7, username="alice|bob", display_name="Carol")
    shifted = SignedPersonSearchResult(username="alice", display_name="bob|Carol", signature=result.signature)

    with pytest.raises(InvalidPersonSignatureError):
        signer.validate(election_id=7, result=shifted)


def test_key_is_per_signer():
    result = PersonSearchSigner().sign(election_id=1, username="ist1", display_name="A")

    with pytest.raises(InvalidPersonSignatureError):
        PersonSearchSigner().validate(election_id=1, result=result)


def test_out_of_range_election_id_is_rejected(signer):
    result = signer.sign(election_id=1, username="ist1", display_name="A")

    with pytest.raises(InvalidPersonSignatureError):
        signer.validate(election_id=2**40, result=result)


def test_signed_result_dict_round_trip(signer):
    result = signer.sign(election_id=3, username="ist1", display_name="Ana")

    assert SignedPersonSearchResult.from_dict(result.to_dict()) == result
