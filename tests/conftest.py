import pytest

from protoknow.parser import parse


SHARED_KEY_PROTOCOL = """
roles: Alice, Bob
shared key K_AB: Alice, Bob
Alice -> Bob: c = Enc(K_AB, M1)
"""

PUBLIC_KEY_PROTOCOL = """
roles: Alice, Bob
public key pkB: Bob
private key skB: Bob
Alice -> Bob: Enc(pkB, M)
"""

NONCE_PROTOCOL = """
roles: Alice, Bob
nonce N_A: Alice
nonce N_B: Bob
Alice -> Bob: N_A || N_B
"""

SIGNED_PROTOCOL = """
roles: Alice, Bob
public key pkA: Alice
private key skA: Alice
Alice -> Bob: sig = Sign(skA, m)
Bob -> Alice: ok = Vrfy(pkA, m, sig)
"""

UNVERIFIED_SIGNATURE_PROTOCOL = """
roles: Alice, Bob
private key skA: Alice
Alice -> Bob: sig = Sign(skA, m)
"""


@pytest.fixture
def shared_key_protocol():
    return parse(SHARED_KEY_PROTOCOL)


@pytest.fixture
def public_key_protocol():
    return parse(PUBLIC_KEY_PROTOCOL)


@pytest.fixture
def nonce_protocol():
    return parse(NONCE_PROTOCOL)


@pytest.fixture
def signed_protocol():
    return parse(SIGNED_PROTOCOL)


@pytest.fixture
def write_protocol(tmp_path):
    def _write(text, name="proto.txt"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)
    return _write


@pytest.fixture
def unverified_signature_protocol():
    return parse(UNVERIFIED_SIGNATURE_PROTOCOL)


@pytest.fixture
def shared_key_source():
    return SHARED_KEY_PROTOCOL


@pytest.fixture
def public_key_source():
    return PUBLIC_KEY_PROTOCOL


@pytest.fixture
def unverified_signature_source():
    return UNVERIFIED_SIGNATURE_PROTOCOL
