"""
Tests for knowledge derivation, classification and the security verdict.
"""

import pytest

from protoknow.ast_nodes import Identifier, KeyKind
from protoknow.knowledge import (
    ADVERSARY,
    PendingEncryption,
    analyze,
    classify,
    crypto_variables,
    derive_knowledge,
)
from protoknow.parser import parse
from protoknow.policy import NamingPolicy
from protoknow.report import THIN


def knows(proto, principal):
    return derive_knowledge(proto).knows[principal]


class TestSeeding:

    def test_keys_and_nonces(self):
        proto = parse("""
            roles: Alice, Bob
            shared key K_AB: Alice, Bob
            public key pkB: Bob
            private key skB: Bob
            nonce N_A: Alice
        """)
        state = derive_knowledge(proto)
        assert state.principals == ["Alice", "Bob", ADVERSARY]
        assert state.knows["Alice"] == {"K_AB", "pkB", "N_A"}
        assert state.knows["Bob"] == {"K_AB", "pkB", "skB"}
        assert state.knows[ADVERSARY] == {"pkB"}

    def test_undeclared_owner_is_ignored(self):
        proto = parse("roles: Alice\nshared key K: Alice, Mallory\nnonce N: Mallory")
        state = derive_knowledge(proto)
        assert "Mallory" not in state.knows
        assert state.knows["Alice"] == {"K"}


class TestVisibility:

    def test_shared_key_decryption(self, shared_key_protocol):
        state = derive_knowledge(shared_key_protocol)
        assert "M1" in state.knows["Bob"]
        assert "c" in state.knows[ADVERSARY]
        assert "M1" not in state.knows[ADVERSARY]
        assert PendingEncryption("K_AB", Identifier("M1")) in state.pending[ADVERSARY]

    def test_public_key_decryption(self, public_key_protocol):
        state = derive_knowledge(public_key_protocol)
        assert "M" in state.knows["Bob"]
        assert "M" not in state.knows[ADVERSARY]

    def test_receiver_without_private_key_cannot_decrypt(self):
        proto = parse("""
            roles: Alice, Bob, Server
            public key pkB: Bob
            private key skB: Bob
            Server -> Alice: Enc(pkB, M)
        """)
        state = derive_knowledge(proto)
        assert "M" in state.knows["Server"]
        assert "M" not in state.knows["Alice"]
        assert "M" not in state.knows["Bob"]  # never saw the message

    def test_sender_knows_what_it_built(self, public_key_protocol):
        assert "M" in knows(public_key_protocol, "Alice")

    def test_concatenation_is_transparent(self, nonce_protocol):
        state = derive_knowledge(nonce_protocol)
        for p in ("Alice", "Bob", ADVERSARY):
            assert {"N_A", "N_B"} <= state.knows[p]
        assert "(N_A || N_B)" in state.knows[ADVERSARY]

    def test_mac_hash_sign_verify_are_opaque(self):
        proto = parse("""
            roles: A, B
            A -> B: Mac(K, m1) || Hash(m2) || Sign(sk, m3) || Vrfy(pk, m4, s)
        """)
        adv = derive_knowledge(proto).knows[ADVERSARY]
        assert {"Mac(K, m1)", "Hash(m2)", "Sign(sk, m3)", "Vrfy(pk, m4, s)"} <= adv
        assert not adv & {"K", "m1", "m2", "sk", "m3", "pk", "m4", "s"}

    def test_observers_are_sender_receiver_and_adversary(self):
        proto = parse("roles: A, B, C\nA -> B: m")
        state = derive_knowledge(proto)
        assert "m" in state.knows["B"]
        assert "m" in state.knows[ADVERSARY]
        assert "m" not in state.knows["C"]

    def test_undeclared_sender_still_observed_by_adversary(self):
        proto = parse("roles: Bob\nCarol -> Bob: m")
        state = derive_knowledge(proto)
        assert "Carol" not in state.knows
        assert "m" in state.knows["Bob"]
        assert "m" in state.knows[ADVERSARY]


class TestDecryption:

    def test_public_key_alone_never_decrypts(self):
        proto = parse("roles: A, B\npublic key pkX: B\nA -> B: Enc(pkX, M)")
        state = derive_knowledge(proto)
        assert "M" not in state.knows["B"]
        assert "M" not in state.knows[ADVERSARY]

    def test_undeclared_key_does_not_decrypt(self):
        proto = parse("roles: A, B\nA -> B: K_X\nA -> B: Enc(K_X, M1)")
        state = derive_knowledge(proto)
        assert "K_X" in state.knows["B"]
        assert "M1" not in state.knows["B"]

    def test_leaked_key_opens_earlier_ciphertext(self):
        proto = parse("""
            roles: A, B
            shared key K_AB: A, B
            A -> B: Enc(K_AB, M2)
            A -> B: K_AB
        """)
        assert "M2" in knows(proto, ADVERSARY)

    def test_key_learned_by_decryption_is_used(self):
        proto = parse("""
            roles: A, B
            shared key K_1: A, B
            shared key K_2: A, B
            A -> B: Enc(K_2, M1)
            A -> B: Enc(K_1, K_2)
            A -> B: K_1
        """)
        adv = knows(proto, ADVERSARY)
        assert {"K_1", "K_2", "M1"} <= adv

    def test_decrypted_concat_is_opened(self):
        proto = parse("roles: A, B\nshared key K: A, B\nA -> B: Enc(K, x || y || z)")
        assert {"x", "y", "z"} <= knows(proto, "B")

    def test_nested_ciphertext_stays_opaque(self):
        proto = parse("""
            roles: A, B
            shared key K1: A, B
            shared key K2: A, B
            A -> B: Enc(K1, Enc(K2, M))
        """)
        b = knows(proto, "B")
        assert "Enc(K2, M)" in b
        assert "M" not in b

    def test_leaked_keys_do_not_open_inner_layer(self):
        proto = parse("""
            roles: A, B
            shared key K_1: A, B
            shared key K_2: A, B
            A -> B: Enc(K_1, Enc(K_2, M_secret))
            A -> B: K_1 || K_2
        """)
        report = analyze(proto)
        adversary = derive_knowledge(proto).knows[ADVERSARY]
        assert "Enc(K_2, M_secret)" in adversary
        assert "M_secret" not in adversary
        assert "M_secret" not in report.verdict.leaked

    def test_other_plaintext_nodes_stay_opaque(self):
        proto = parse("roles: A, B\nshared key K: A, B\nA -> B: Enc(K, Hash(m))")
        b = knows(proto, "B")
        assert "Hash(m)" in b
        assert "m" not in b


class TestFixedPoint:

    PROTO = """
        roles: A, B, S
        shared key K_AS: A, S
        shared key K_BS: B, S
        S -> A: Enc(K_AS, K_AB || Enc(K_BS, K_AB || N))
        A -> B: Enc(K_AB, M)
        A -> B: K_AS
    """

    def test_monotone(self):
        state = derive_knowledge(parse(self.PROTO))
        assert len(state.history) == state.rounds + 1
        for before, after in zip(state.history, state.history[1:]):
            for p in before:
                assert before[p] <= after[p]

    def test_terminates_within_bound(self):
        state = derive_knowledge(parse(self.PROTO))
        bound = sum(len(entries) for entries in state.pending.values())
        assert 1 <= state.rounds <= bound + 1
        assert state.history[-1] == state.history[-2]

    def test_no_messages_single_round(self):
        state = derive_knowledge(parse("roles: A"))
        assert state.rounds == 1


class TestClassification:

    def test_buckets(self):
        kinds = {"K_AB": KeyKind.SHARED, "skB": KeyKind.PRIVATE, "pkB": KeyKind.PUBLIC}
        c = classify({"K_AB", "skB", "pkB", "M1", "c", "Mac(K_AB, M1)", "(a || b)", "x-y"},
                     kinds, {"c"})
        assert c.secrets == ("K_AB", "skB")
        assert c.plaintext == ("M1",)
        assert set(c.observed) == {"pkB", "c", "Mac(K_AB, M1)", "(a || b)", "x-y"}

    def test_crypto_variables(self):
        proto = parse("""
            roles: A, B
            A -> B: c = Enc(K, m)
            A -> B: t = Mac(K, m)
            A -> B: p = a || b
            A -> B: n = m
        """)
        assert crypto_variables(proto) == {"c", "t", "p"}

    def test_crypto_variable_match_ignores_case(self):
        c = classify({"C", "m"}, {}, {"c"})
        assert c.observed == ("C",)
        assert c.plaintext == ("m",)


class TestReport:

    def test_shared_key_report(self, shared_key_protocol):
        report = analyze(shared_key_protocol)
        assert [p.name for p in report.principals] == ["Alice", "Bob", ADVERSARY]
        bob = report.principal("Bob")
        assert bob.secrets == ("K_AB",)
        assert bob.plaintext == ("M1",)
        assert bob.observed == ("c",)
        adv = report.adversary
        assert adv.observed == ("c",)
        assert adv.secrets == () and adv.plaintext == ()
        assert not report.verdict.catastrophic

    def test_catastrophic_leak(self):
        proto = parse("roles: A, B\nshared key K_AB: A, B\nnonce N_A: A\nA -> B: K_AB || M1 || N_A")
        report = analyze(proto)
        assert report.verdict.catastrophic
        assert report.verdict.leaked == ("K_AB", "M1")
        assert "N_A" in report.adversary.plaintext

    def test_leak_prefixes_come_from_policy(self):
        proto = parse("roles: A, B\nnonce N_A: A\nA -> B: N_A")
        assert not analyze(proto).verdict.catastrophic
        policy = NamingPolicy(leak_prefixes=("N_",))
        assert analyze(proto, policy).verdict.leaked == ("N_A",)

    def test_key_pairing_comes_from_policy(self):
        proto = parse("""
            roles: A, B
            public key pub_B: B
            private key priv_B: B
            A -> B: Enc(pub_B, M)
        """)
        assert "M" not in analyze(proto).principal("B").plaintext
        policy = NamingPolicy(public_prefix="pub_", private_prefix="priv_")
        assert "M" in analyze(proto, policy).principal("B").plaintext

    def test_format_sections_in_order(self, shared_key_protocol):
        text = analyze(shared_key_protocol).format()
        order = [
            "PROTOCOL KNOWLEDGE ANALYSIS",
            "Principals:",
            f"{THIN}\nAlice\n{THIN}",
            f"{THIN}\nBob\n{THIN}",
            f"{THIN}\nAdversary (Passive Eavesdropper)\n{THIN}",
            "SECURITY VERDICT",
            "No catastrophic leaks detected",
        ]
        positions = [text.index(s) for s in order]
        assert positions == sorted(positions)
        assert "(none)" in text

    def test_format_lists_leaked_terms(self):
        proto = parse("roles: A, B\nprivate key skA: A\nA -> B: skA")
        text = analyze(proto).format()
        assert "Potentially catastrophic leak detected." in text
        assert text.rstrip().endswith("=" * 50)
        verdict_part = text[text.index("SECURITY VERDICT"):]
        assert "  - skA" in verdict_part

    def test_to_dict(self, nonce_protocol):
        d = analyze(nonce_protocol).to_dict()
        assert d["principals"][-1]["name"] == ADVERSARY
        assert d["principals"][-1]["plaintext"] == ["N_A", "N_B"]
        assert d["verdict"]["catastrophic"] is False

    def test_unknown_principal_lookup(self, nonce_protocol):
        with pytest.raises(KeyError):
            analyze(nonce_protocol).principal("Mallory")
