"""
Tests for the downloader — HTTP error classification and checksums.
"""

import hashlib
import io
import urllib.error
import urllib.request

import pytest

from mintsetup.adapters.net.download import Downloader, verify_checksum
from mintsetup.core.errors import MintSetupError, TransientFailure

URL = "https://dot.net/v1/dotnet-install.sh"
PAYLOAD = b"#!/bin/bash\necho installing\n"


class FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def _serve(monkeypatch, payload=PAYLOAD, error=None):
    requests = []

    def fake_urlopen(request, timeout=None):
        requests.append(request)
        if error is not None:
            raise error
        return FakeResponse(payload)

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    return requests


def _http_error(code):
    return urllib.error.HTTPError(URL, code, "error", hdrs=None, fp=None)


class TestVerifyChecksum:
    def test_match(self, tmp_path):
        path = tmp_path / "f"
        path.write_bytes(PAYLOAD)
        assert verify_checksum(path, "sha256:" + hashlib.sha256(PAYLOAD).hexdigest())

    def test_upper_case_hex(self, tmp_path):
        path = tmp_path / "f"
        path.write_bytes(PAYLOAD)
        assert verify_checksum(path, "sha256:" + hashlib.sha256(PAYLOAD).hexdigest().upper())

    def test_mismatch(self, tmp_path):
        path = tmp_path / "f"
        path.write_bytes(PAYLOAD)
        assert not verify_checksum(path, "sha256:" + "0" * 64)


class TestFetch:
    def test_writes_file(self, monkeypatch, tmp_path):
        requests = _serve(monkeypatch)
        dest = Downloader().fetch(URL, tmp_path / "dotnet-install.sh")
        assert dest.read_bytes() == PAYLOAD
        assert requests[0].get_header("User-agent").startswith("mintsetup/")

    def test_checksum_verified(self, monkeypatch, tmp_path):
        _serve(monkeypatch)
        checksum = "sha256:" + hashlib.sha256(PAYLOAD).hexdigest()
        assert Downloader().fetch(URL, tmp_path / "i.sh", checksum=checksum).exists()

    def test_checksum_mismatch(self, monkeypatch, tmp_path):
        _serve(monkeypatch, payload=b"tampered")
        with pytest.raises(MintSetupError, match="Checksum mismatch"):
            Downloader().fetch(URL, tmp_path / "i.sh", checksum="sha256:" + "0" * 64)

    @pytest.mark.parametrize("code", [429, 500, 503])
    def test_retryable_status_is_transient(self, monkeypatch, tmp_path, code):
        _serve(monkeypatch, error=_http_error(code))
        with pytest.raises(TransientFailure, match=f"HTTP {code}"):
            Downloader().fetch(URL, tmp_path / "i.sh")

    def test_not_found_is_permanent(self, monkeypatch, tmp_path):
        _serve(monkeypatch, error=_http_error(404))
        with pytest.raises(MintSetupError) as exc:
            Downloader().fetch(URL, tmp_path / "i.sh")
        assert not isinstance(exc.value, TransientFailure)

    def test_network_error_is_transient(self, monkeypatch, tmp_path):
        _serve(monkeypatch, error=urllib.error.URLError("Name or service not known"))
        with pytest.raises(TransientFailure, match="Name or service not known"):
            Downloader().fetch(URL, tmp_path / "i.sh")
