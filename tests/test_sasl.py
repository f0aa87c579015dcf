import pytest

from pgwirekit.sasl import (
    NONCE_LENGTH,
    ChannelBinding,
    ScramError,
    ScramSha256,
    ServerFinalMessage,
    hi,
    md5_hash,
    parse_server_final_message,
    parse_server_first_message,
    saslprep,
)

NONCE = "9IZ2O01zb9IgiIZ1WJ/zgpJB"
CLIENT_FIRST = "n,,n=,r=9IZ2O01zb9IgiIZ1WJ/zgpJB"
SERVER_FIRST = (
    "r=9IZ2O01zb9IgiIZ1WJ/zgpJBjx/oIRLs02gGSHcw1KEty3eY,s=fs3IXBy7U7+IvVjZ,i=4096"
)
CLIENT_FINAL = (
    "c=biws,r=9IZ2O01zb9IgiIZ1WJ/zgpJBjx/oIRLs02gGSHcw1KEty3eY,"
    "p=AmNKosjJzS31NTlQYNs5BTeQjdHdk7lOflDo5re2an8="
)
SERVER_FINAL = "v=U+ppxD5XUKtradnv8e2MkeupiA8FU87Sg8CXzXHDAzw="


def _recorded_client():
    return ScramSha256(b"foobar", ChannelBinding.unsupported(), NONCE)


def test_md5():
    salt = bytes([0x2A, 0x3D, 0x8F, 0xE0])
    assert md5_hash(b"md5_user", b"password", salt) == "md562af4dd09bbb41884907a838a3233294"


def test_md5_accepts_text():
    salt = bytes([0x2A, 0x3D, 0x8F, 0xE0])
    assert md5_hash("md5_user", "password", salt) == "md562af4dd09bbb41884907a838a3233294"


def test_parse_server_first_message():
    message = parse_server_first_message(
        "r=fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j,s=QSXCR+Q6sek8bf92,i=4096"
    )
    assert message.nonce == "fyko+d2lbbFgONRv9qkxdawL3rfcNHYJY1ZVvWVs7j"
    assert message.salt == "QSXCR+Q6sek8bf92"
    assert message.iteration_count == 4096


def test_exchange():
    scram = _recorded_client()
    assert scram.message() == CLIENT_FIRST.encode()

    scram.update(SERVER_FIRST.encode())
    assert scram.message() == CLIENT_FINAL.encode()

    scram.finish(SERVER_FINAL.encode())
    with pytest.raises(ScramError, match="invalid SCRAM state"):
        scram.message()


def test_wrong_verifier_is_rejected():
    scram = _recorded_client()
    scram.update(SERVER_FIRST.encode())
    with pytest.raises(ScramError, match="SCRAM verification error"):
        scram.finish(b"v=AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA=")


def test_invalid_nonce_is_rejected():
    scram = _recorded_client()
    with pytest.raises(ScramError, match="invalid nonce"):
        scram.update(b"r=somethingelse,s=fs3IXBy7U7+IvVjZ,i=4096")


def test_finish_before_update_is_rejected():
    scram = _recorded_client()
    with pytest.raises(ScramError, match="invalid SCRAM state"):
        scram.finish(SERVER_FINAL.encode())


def test_update_twice_is_rejected():
    scram = _recorded_client()
    scram.update(SERVER_FIRST.encode())
    with pytest.raises(ScramError, match="invalid SCRAM state"):
        scram.update(SERVER_FIRST.encode())


def test_failed_update_leaves_exchange_done():
    scram = _recorded_client()
    with pytest.raises(ScramError):
        scram.update(b"garbage")
    with pytest.raises(ScramError, match="invalid SCRAM state"):
        scram.message()


def test_invalid_utf8_update_is_rejected():
    scram = _recorded_client()
    with pytest.raises(ScramError):
        scram.update(b"\xff\xfe")


def test_server_error_in_final_message():
    scram = _recorded_client()
    scram.update(SERVER_FIRST.encode())
    with pytest.raises(ScramError, match="SCRAM error: "):
        scram.finish(b"e=")


def test_parse_final_verifier():
    assert parse_server_final_message("v=abc=") == ServerFinalMessage(verifier="abc=")


def test_parse_final_error():
    assert parse_server_final_message("e=") == ServerFinalMessage(error="")


def test_parse_unexpected_character():
    with pytest.raises(ScramError, match="unexpected character at byte 0"):
        parse_server_first_message("x=abc,s=QSXC,i=1")


def test_parse_unexpected_eof():
    with pytest.raises(ScramError, match="unexpected EOF"):
        parse_server_first_message("r=abc")


def test_parse_trailing_data():
    with pytest.raises(ScramError, match="unexpected trailing data at byte 16"):
        parse_server_first_message("r=abc,s=QSXC,i=1x")


def test_parse_missing_iteration_count():
    with pytest.raises(ScramError):
        parse_server_first_message("r=abc,s=QSXC,i=")


def test_parse_iteration_count_overflow():
    with pytest.raises(ScramError):
        parse_server_first_message("r=abc,s=QSXC,i=99999999999")


def test_channel_binding_headers():
    assert ChannelBinding.unrequested().gs2_header() == "y,,"
    assert ChannelBinding.unsupported().gs2_header() == "n,,"
    binding = ChannelBinding.tls_server_end_point(b"\x01\x02")
    assert binding.gs2_header() == "p=tls-server-end-point,,"
    assert binding.cbind_data() == b"\x01\x02"
    assert ChannelBinding.unsupported().cbind_data() == b""


def test_initial_message_with_tls_binding():
    scram = ScramSha256(b"password", ChannelBinding.tls_server_end_point(b"sig"), "abc")
    assert scram.message() == b"p=tls-server-end-point,,n=,r=abc"


def test_random_nonce_is_printable_without_commas():
    scram = ScramSha256(b"password", ChannelBinding.unrequested())
    message = scram.message().decode()
    assert message.startswith("y,,n=,r=")
    nonce = message[len("y,,n=,r="):]
    assert len(nonce) == NONCE_LENGTH
    assert all(0x21 <= ord(ch) <= 0x7E and ch != "," for ch in nonce)


def test_hi_zero_iterations_matches_one():
    assert hi(b"key", b"salt", 0) == hi(b"key", b"salt", 1)
    assert len(hi(b"key", b"salt", 3)) == 32
    assert hi(b"key", b"salt", 2) != hi(b"key", b"salt", 1)


@pytest.mark.parametrize(
    ("raw", "prepared"),
    [
        ("I\u00adX", "IX"),
        ("user", "user"),
        ("USER", "USER"),
        ("\u00aa", "a"),
        ("\u2168", "IX"),
        ("a\u00a0b", "a b"),
    ],
)
def test_saslprep(raw, prepared):
    assert saslprep(raw) == prepared


@pytest.mark.parametrize("raw", ["\u0007", "\u0627\u0031"])
def test_saslprep_rejects(raw):
    with pytest.raises(ValueError):
        saslprep(raw)