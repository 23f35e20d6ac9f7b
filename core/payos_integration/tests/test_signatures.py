import hashlib
import hmac
import json

from django.test import SimpleTestCase, override_settings

from core.payos_integration.signatures import SignatureVerifier, get_signature_verifier

SECRET = "checksum-key-for-tests"


def _sign(body: bytes, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class SignatureVerifierTests(SimpleTestCase):
    def setUp(self):
        self.verifier = SignatureVerifier(secret=SECRET)
        self.body = json.dumps({"orderCode": 1234567890, "status": "PAID"}).encode()

    def test_valid_signature_is_accepted(self):
        self.assertTrue(self.verifier.verify(self.body, _sign(self.body)))

    def test_uppercase_hex_is_accepted(self):
        self.assertTrue(self.verifier.verify(self.body, _sign(self.body).upper()))

    def test_str_body_is_accepted(self):
        self.assertTrue(self.verifier.verify(self.body.decode(), _sign(self.body)))

    def test_tampered_body_is_rejected(self):
        signature = _sign(self.body)
        tampered = self.body.replace(b"PAID", b"PAIDX")
        self.assertFalse(self.verifier.verify(tampered, signature))

    def test_wrong_secret_is_rejected(self):
        self.assertFalse(self.verifier.verify(self.body, _sign(self.body, "other-secret")))

    def test_missing_or_blank_header_is_rejected(self):
        self.assertFalse(self.verifier.verify(self.body, None))
        self.assertFalse(self.verifier.verify(self.body, "   "))

    def test_non_ascii_header_is_rejected(self):
        self.assertFalse(self.verifier.verify(self.body, "\u00e9abc"))
        self.assertFalse(self.verifier.verify(self.body, _sign(self.body)[:-1] + "\u00e9"))

    def test_unconfigured_secret_rejects_everything(self):
        verifier = SignatureVerifier(secret="")
        self.assertFalse(verifier.verify(self.body, _sign(self.body, "")))

    @override_settings(PAYOS_CHECKSUM_KEY=SECRET)
    def test_factory_reads_checksum_key_from_settings(self):
        self.assertTrue(get_signature_verifier().verify(self.body, _sign(self.body)))

