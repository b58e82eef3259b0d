import dataclasses
import io

import pytest

from distlab.kvrpc import Err, GetArgs, GetReply, PutArgs, PutReply
from distlab.labgob import LabDecoder, LabEncoder


def _round_trip(value, hint):
    w = io.BytesIO()
    LabEncoder(w).encode(value)
    return LabDecoder(io.BytesIO(w.getvalue())).decode(hint)


@pytest.mark.parametrize(
    "member, text",
    [
        (Err.OK, "OK"),
        (Err.NO_KEY, "ErrNoKey"),
        (Err.VERSION, "ErrVersion"),
        (Err.MAYBE, "ErrMaybe"),
        (Err.WRONG_LEADER, "ErrWrongLeader"),
        (Err.WRONG_GROUP, "ErrWrongGroup"),
    ],
)
def test_err_values_and_lookup(member, text):
    assert member == text
    assert str(member) == text
    assert Err(text) is member


def test_unknown_err_raises():
    with pytest.raises(ValueError):
        Err("ErrSomethingElse")


def test_get_reply_round_trip():
    reply = GetReply(Err.OK, "6.5840", 3)
    result = _round_trip(reply, GetReply)
    assert result == reply
    assert result.err is Err.OK


def test_put_args_round_trip():
    args = PutArgs("k", "v", 7)
    assert _round_trip(args, PutArgs) == args


def test_put_reply_and_get_args_round_trip():
    assert _round_trip(PutReply(Err.VERSION), PutReply).err is Err.VERSION
    assert _round_trip(GetArgs("key"), GetArgs) == GetArgs("key")


def test_no_key_reply_defaults():
    reply = GetReply(Err.NO_KEY)
    assert (reply.value, reply.version) == ("", 0)
    assert _round_trip(reply, GetReply) == reply


def test_args_are_immutable():
    args = PutArgs("k", "v")
    assert args.version == 0
    with pytest.raises(dataclasses.FrozenInstanceError):
        args.version = 1